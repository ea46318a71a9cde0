"""
FastAPI application entry point.

create_app() wires the process-scoped objects (metadata index, blob
store, video service) onto app.state and registers the routers. Tests
call it directly with their own Settings or BlobStore.

For local development:
    uvicorn videovault.main:app --reload

For production:
    gunicorn videovault.main:app -w 1 -k uvicorn.workers.UvicornWorker

Metadata lives in process memory, so run a single worker process.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .api.dependencies import VIDEO_SVC_PATH
from .api.routes import health, videos
from .config.settings import Settings, get_settings
from .core.videos.blobs import BlobStore, StorageError
from .core.videos.index import VideoIndex
from .core.videos.service import VideoService
from .infrastructure.storage.client import S3Config, create_blob_store

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, level.upper(), logging.INFO),
    )


def build_blob_store(settings: Settings) -> BlobStore:
    """Create the blob store selected by STORAGE_BACKEND."""
    s3_config = None
    if settings.storage_backend == "s3":
        s3_config = S3Config(
            bucket_name=settings.s3_bucket_name,
            endpoint_url=settings.s3_endpoint_url,
            access_key_id=settings.s3_access_key_id,
            secret_access_key=settings.s3_secret_access_key,
            region=settings.s3_region,
            key_prefix=settings.s3_key_prefix,
        )

    return create_blob_store(
        backend=settings.storage_backend,
        storage_path=settings.storage_path,
        s3_config=s3_config,
        chunk_size=settings.stream_chunk_size,
        max_upload_bytes=settings.max_upload_bytes,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the blob store on startup; log configuration problems."""
    settings: Settings = app.state.settings

    logger.info(
        "videovault API starting",
        extra={
            "version": __version__,
            "storage_backend": settings.storage_backend,
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )

    # /health/ready reports 503 until the store opens; first use retries
    try:
        app.state.blob_store.open()
    except StorageError as e:
        logger.error(
            "Blob store unavailable at startup",
            extra={"storage_backend": settings.storage_backend, "error": str(e)}
        )

    yield

    logger.info(
        "videovault API shutting down",
        extra={"videos": len(app.state.video_index)}
    )


def create_app(
    settings: Optional[Settings] = None,
    blob_store: Optional[BlobStore] = None,
) -> FastAPI:
    """
    Application factory.

    Each call builds a fresh index and service, so separate apps never
    share state.
    """
    settings = settings or get_settings()
    blob_store = blob_store or build_blob_store(settings)
    video_index = VideoIndex()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Register videos, upload their data, and stream it back.

        ## Workflow

        1. **Register**: `POST /video` with title, duration and other metadata
           - Receive the video id and its `data_url`
        2. **Upload**: `POST /video/{id}/data` with multipart field `data`
           - The video becomes `READY`
        3. **Download**: `GET /video/{id}/data`
           - The stored bytes are streamed back
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.video_index = video_index
    app.state.blob_store = blob_store
    app.state.video_service = VideoService(video_index, blob_store)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        videos.router,
        prefix=VIDEO_SVC_PATH,
        tags=["Videos"],
    )

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "message": settings.api_title,
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """Log unexpected errors server-side and return a generic 500."""
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"}
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "storage_backend": settings.storage_backend,
        }
    )

    return app


configure_logging(get_settings().log_level)

# This is what uvicorn/gunicorn will import
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "videovault.main:app",
        host="0.0.0.0",
        port=8000,
        log_level=settings.log_level.lower(),
    )
