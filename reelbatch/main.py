"""
FastAPI entrypoint for Sheet Video Batch.

The CLI (``python -m reelbatch.pipelines.run_batch``) is the primary way to
run batches; this API lets an external scheduler or UI trigger them and
serves rendered files under ``/output``.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from reelbatch.api.routes_batch import router as batch_router
from reelbatch.core.config import settings
from reelbatch.core.logging_config import get_logger, setup_logging

# Setup logging
setup_logging(log_level=settings.log_level, log_file=settings.log_file)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    settings.ensure_directories()
    logger.info("=" * 60)
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Row source: {settings.row_source_mode}, publisher: {settings.publisher_mode}")
    logger.info(f"Output directory: {settings.output_path}")
    logger.info("=" * 60)
    yield
    # Shutdown
    logger.info("Shutting down application")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Renders videos from spreadsheet rows and publishes the results",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(batch_router)
app.mount("/output", StaticFiles(directory=str(settings.output_path), check_dir=False), name="output")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "running",
        "endpoints": {
            "run_batch": "/batches/run",
            "cache_stats": "/cache/stats",
            "outputs": "/outputs",
            "docs": "/docs",
        },
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("reelbatch.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
