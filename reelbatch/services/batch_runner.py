"""Batch Runner - processes flagged rows one at a time, isolating failures."""

import shutil
import time
import uuid
from pathlib import Path
from typing import Any, Optional

from reelbatch.core.config import Settings
from reelbatch.core.exceptions import CacheIOError, DownloadFailed
from reelbatch.models.schemas import (
    BatchOptions,
    BatchResult,
    CompositionInputs,
    FetchRequest,
    ItemResult,
    WorkItem,
)
from reelbatch.services.asset_fetcher import AssetFetcher
from reelbatch.services.composition_planner import CompositionPlanner
from reelbatch.services.renderer import FFmpegRenderer, Renderer
from reelbatch.services.row_source import RowSource, create_row_source
from reelbatch.services.uploader import Uploader, create_uploader
from reelbatch.storage.asset_cache import AssetCache
from reelbatch.utils.error_handler import format_error_message, get_fallback_suggestion
from reelbatch.utils.io_utils import guess_extension, remove_files

# Local extension assumed until the download reports the real file name
DEFAULT_EXTENSIONS = {"image": ".jpg", "video": ".mp4", "audio": ".mp3"}


class BatchRunner:
    """
    Runs work items through fetch, plan, render, publish and write-back.

    Items are processed sequentially in the order given. Any per-item failure
    becomes a failed ItemResult and the loop moves on; only CacheIOError
    aborts the batch.
    """

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        cache: AssetCache,
        fetcher: AssetFetcher,
        planner: CompositionPlanner,
        renderer: Renderer,
        uploader: Uploader,
        row_source: Optional[RowSource] = None,
    ):
        """
        Initialize batch runner.

        Args:
            settings: Application settings
            logger: Logger instance
            cache: Asset cache
            fetcher: Asset fetcher
            planner: Composition planner
            renderer: Renderer
            uploader: Uploader
            row_source: Row source used for reading rows and write-back (optional)
        """
        self.settings = settings
        self.logger = logger
        self.cache = cache
        self.fetcher = fetcher
        self.planner = planner
        self.renderer = renderer
        self.uploader = uploader
        self.row_source = row_source
        self.temp_dir = settings.temp_path
        self.output_dir = settings.output_path

    def run_once(self, options: Optional[BatchOptions] = None) -> BatchResult:
        """
        Read flagged rows from the row source and process them.

        Raises:
            ValueError: If no spreadsheet id is configured or no row source is set
            RowSourceError: If the rows cannot be read
            CacheIOError: If the asset cache cannot be written
        """
        options = options or BatchOptions()
        source_id = options.source_id or self.settings.spreadsheet_id
        if not source_id:
            raise ValueError("No spreadsheet id given. Pass --spreadsheet-id or set SPREADSHEET_ID.")
        if self.row_source is None:
            raise ValueError("BatchRunner has no row source configured")

        options = options.model_copy(
            update={
                "source_id": source_id,
                "sheet_name": options.sheet_name or self.settings.sheet_name,
                "sheet_range": options.sheet_range or self.settings.sheet_range,
            }
        )
        work_items = self.row_source.get_execution_rows(source_id, options.sheet_name, options.sheet_range)
        if not work_items:
            self.logger.info("No rows flagged for execution")
            return BatchResult()
        return self.run(work_items, options)

    def run(self, work_items: list[WorkItem], options: Optional[BatchOptions] = None) -> BatchResult:
        """
        Process work items in order.

        Args:
            work_items: Rows to process
            options: Source id, sheet name and upload folder for this batch

        Returns:
            BatchResult with one ItemResult per work item, in input order

        Raises:
            CacheIOError: If the asset cache cannot be written
        """
        options = options or BatchOptions()
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        self.output_dir.mkdir(parents=True, exist_ok=True)

        self.logger.info("=" * 60)
        self.logger.info(f"Batch started: {len(work_items)} rows")
        self.logger.info("=" * 60)
        start_time = time.time()

        results = []
        for position, item in enumerate(work_items, 1):
            self.logger.info(f"[{position}/{len(work_items)}] Row {item.row_index}: {item.output_file_name}")
            results.append(self._process_item(item, options))

        batch = BatchResult.from_results(results)
        self.logger.info("=" * 60)
        self.logger.info("BATCH COMPLETE!")
        self.logger.info(f"Total time: {time.time() - start_time:.2f}s")
        self.logger.info(f"Success: {batch.successful}/{batch.total_processed}")
        self.logger.info(f"Failed: {batch.failed}/{batch.total_processed}")
        self.logger.info("=" * 60)
        for result in batch.results:
            status = "✅" if result.success else "❌"
            detail = result.video_url if result.success else result.error
            self.logger.info(f"{status} Row {result.row_index}: {result.file_name} - {detail}")
        return batch

    def _process_item(self, item: WorkItem, options: BatchOptions) -> ItemResult:
        log = self.logger.bind(row_index=item.row_index)
        start_time = time.time()
        scratch_files: set[Path] = set()
        stage = "Download"
        strategy = None

        try:
            local_paths = self._resolve_assets(item, scratch_files, log)

            stage = "Composition"
            inputs = CompositionInputs(
                background_video_path=local_paths.get("video"),
                overlay_path=local_paths.get("image"),
                audio_path=local_paths.get("audio"),
                duration=item.duration,
                video_start=item.video_start_time,
                audio_start=item.audio_start_time,
                image_scale=item.image_scale / 100,
                filter_color=item.filter_color,
                filter_opacity=item.filter_opacity / 100,
                output_name=item.output_file_name,
            )
            plan = self.planner.build_plan(inputs, self.output_dir)
            strategy = plan.strategy

            stage = "Render"
            rendered_path = self.renderer.render(plan)

            stage = "Publish"
            video_url = self.uploader.publish(rendered_path, plan.output_path.name, folder_id=options.drive_folder_id)

            recorded = marker_cleared = False
            if self.row_source is not None and options.source_id:
                recorded = self.row_source.record_result(
                    options.source_id, item.row_index, video_url, sheet_name=options.sheet_name
                ).updated
                marker_cleared = self.row_source.clear_marker(
                    options.source_id, item.row_index, sheet_name=options.sheet_name
                ).updated
                if not (recorded and marker_cleared):
                    log.warning(
                        f"Row {item.row_index} was published but the sheet was not fully updated; "
                        "the execution marker may need to be cleared manually"
                    )

            elapsed = time.time() - start_time
            log.info(f"✅ Row {item.row_index} complete in {elapsed:.1f}s: {video_url}")
            return ItemResult(
                row_index=item.row_index,
                file_name=plan.output_path.name,
                success=True,
                video_url=video_url,
                strategy=strategy,
                result_recorded=recorded,
                marker_cleared=marker_cleared,
                elapsed_seconds=elapsed,
            )

        except CacheIOError:
            raise
        except Exception as e:
            suggestion = get_fallback_suggestion(stage, e)
            log.error(
                format_error_message(
                    f"Processing row {item.row_index}",
                    e,
                    context={"stage": stage, "file_name": item.output_file_name},
                    suggestion=suggestion,
                )
            )
            return ItemResult(
                row_index=item.row_index,
                file_name=item.output_file_name,
                success=False,
                error=str(e),
                error_type=type(e).__name__,
                suggestion=suggestion,
                strategy=strategy,
                elapsed_seconds=time.time() - start_time,
            )

        finally:
            try:
                removed = remove_files(scratch_files)
            except OSError as cleanup_error:
                log.warning(f"Failed to remove temporary files for row {item.row_index}: {cleanup_error}")
            else:
                if removed:
                    log.debug(f"Removed {removed} temporary files")

    def _resolve_assets(self, item: WorkItem, scratch_files: set[Path], log: Any) -> dict[str, Path]:
        """
        Produce a local scratch copy of every referenced asset.

        Cache hits are copied out of the cache; misses are downloaded in one
        ``fetch_many`` call and written through to the cache. Every returned
        path is added to ``scratch_files``.

        Raises:
            DownloadFailed: If any asset could not be downloaded
            CacheIOError: If the cache cannot be read or written
        """
        local_paths: dict[str, Path] = {}
        cached_copies: dict[str, Path] = {}
        pending: dict[str, list[str]] = {}

        for asset_type, url in item.asset_urls().items():
            if url in cached_copies:
                local_paths[asset_type] = cached_copies[url]
                continue
            if url in pending:
                pending[url].append(asset_type)
                continue

            cached_path = self.cache.get(url) if self.settings.cache_enabled else None
            if cached_path is not None:
                scratch_path = self.temp_dir / f"{uuid.uuid4()}_{asset_type}{cached_path.suffix}"
                try:
                    shutil.copyfile(cached_path, scratch_path)
                except OSError as e:
                    raise CacheIOError(f"Failed to copy cached asset {cached_path.name}: {e}") from e
                scratch_files.add(scratch_path)
                cached_copies[url] = scratch_path
                local_paths[asset_type] = scratch_path
                log.info(f"Cache hit for {asset_type}: {url}")
                continue

            pending[url] = [asset_type]

        if not pending:
            return local_paths

        requests_to_fetch = []
        for url, asset_types in pending.items():
            label = asset_types[0]
            extension = guess_extension(url, DEFAULT_EXTENSIONS[label])
            requests_to_fetch.append(
                FetchRequest(url=url, output_path=self.temp_dir / f"{uuid.uuid4()}_{label}{extension}", label=label)
            )

        log.info(f"Downloading {len(requests_to_fetch)} assets")
        outcome = self.fetcher.fetch_many(requests_to_fetch, context=f"row {item.row_index}")

        for asset in outcome.succeeded:
            scratch_files.add(asset.path)
            for asset_type in pending[asset.url]:
                local_paths[asset_type] = asset.path
            if self.settings.cache_enabled:
                self.cache.put(asset.url, asset.path, asset.original_file_name)

        if outcome.failed:
            failures = {failure.url: f"{failure.error_type}: {failure.error}" for failure in outcome.failed}
            summary = "; ".join(
                f"{'/'.join(pending[failure.url])}: {failure.error}" for failure in outcome.failed
            )
            raise DownloadFailed(f"{len(outcome.failed)} asset(s) failed to download ({summary})", failures=failures)

        return local_paths


def build_batch_runner(settings: Settings, logger: Any) -> BatchRunner:
    """Wire a BatchRunner with the collaborators selected by configuration."""
    return BatchRunner(
        settings,
        logger,
        cache=AssetCache(settings, logger),
        fetcher=AssetFetcher(settings, logger),
        planner=CompositionPlanner(settings, logger),
        renderer=FFmpegRenderer(settings, logger),
        uploader=create_uploader(settings, logger),
        row_source=create_row_source(settings, logger),
    )
