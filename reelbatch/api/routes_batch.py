"""FastAPI routes for batch runs, the asset cache and rendered outputs."""

from typing import Any, Callable

from fastapi import APIRouter, Depends, HTTPException, Query

from reelbatch.core.config import Settings
from reelbatch.core.exceptions import CacheIOError, RowSourceError
from reelbatch.core.logging_config import get_logger
from reelbatch.models.schemas import (
    BatchOptions,
    BatchResult,
    CacheStats,
    CleanupResponse,
    OutputVideo,
    RunBatchRequest,
)
from reelbatch.services.batch_runner import BatchRunner, build_batch_runner
from reelbatch.services.output_library import OutputLibrary
from reelbatch.storage.asset_cache import AssetCache

router = APIRouter(tags=["batches"])

RunnerFactory = Callable[[Settings, Any], BatchRunner]


def get_settings() -> Settings:
    """Application settings (overridable in tests)."""
    from reelbatch.core.config import settings

    return settings


def get_runner_factory() -> RunnerFactory:
    return build_batch_runner


def apply_overrides(settings: Settings, request: RunBatchRequest) -> Settings:
    """Return a new settings value with the request's non-empty overrides applied."""
    overrides = {key: value for key, value in request.model_dump().items() if value}
    if not overrides:
        return settings
    return settings.model_copy(update=overrides)


@router.post("/batches/run", response_model=BatchResult)
def run_batch(
    request: RunBatchRequest,
    settings: Settings = Depends(get_settings),
    runner_factory: RunnerFactory = Depends(get_runner_factory),
) -> BatchResult:
    """
    Process every flagged row of the spreadsheet once.

    Request fields override the configured spreadsheet, sheet, range and Drive
    folder for this run only.
    """
    effective = apply_overrides(settings, request)
    logger = get_logger(__name__, spreadsheet_id=effective.spreadsheet_id)
    logger.info("=" * 60)
    logger.info(f"Batch requested for spreadsheet {effective.spreadsheet_id}")
    logger.info("=" * 60)

    try:
        runner = runner_factory(effective, logger)
        return runner.run_once(BatchOptions())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RowSourceError as e:
        logger.error(f"Could not read rows: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    except CacheIOError as e:
        logger.error(f"Asset cache failure: {e}")
        raise HTTPException(status_code=500, detail=f"Asset cache failure: {e}")


@router.get("/cache/stats", response_model=CacheStats)
def cache_stats(settings: Settings = Depends(get_settings)) -> CacheStats:
    """File count, total size and usage of the asset cache."""
    return AssetCache(settings, get_logger(__name__)).stats()


@router.post("/cache/cleanup", response_model=CleanupResponse)
def cache_cleanup(settings: Settings = Depends(get_settings)) -> CleanupResponse:
    """Remove expired cache entries."""
    try:
        deleted = AssetCache(settings, get_logger(__name__)).cleanup_expired()
    except CacheIOError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return CleanupResponse(deleted=deleted)


@router.get("/outputs", response_model=list[OutputVideo])
def list_outputs(
    include_info: bool = Query(default=True, description="Probe each file for duration and frame size"),
    settings: Settings = Depends(get_settings),
) -> list[OutputVideo]:
    """Rendered videos, newest first."""
    return OutputLibrary(settings, get_logger(__name__)).list_videos(include_info=include_info)


@router.post("/outputs/cleanup", response_model=CleanupResponse)
def cleanup_outputs(
    older_than_hours: float = Query(default=24, ge=0, description="Delete outputs older than this"),
    settings: Settings = Depends(get_settings),
) -> CleanupResponse:
    """Delete rendered videos older than ``older_than_hours``."""
    deleted = OutputLibrary(settings, get_logger(__name__)).cleanup(older_than_hours=older_than_hours)
    return CleanupResponse(deleted=deleted)
