"""
FastAPI dependency injection.

The index, blob store and service are process-scoped objects created
once by create_app() and kept on app.state. These providers hand them to
route handlers, so tests can build an isolated app per test case.
"""

import logging
from typing import Annotated

from fastapi import Depends, Request

from ..config.settings import Settings
from ..core.videos.blobs import BlobStore
from ..core.videos.index import VideoIndex
from ..core.videos.service import VideoService

logger = logging.getLogger(__name__)

DEFAULT_PORTS = {"http": 80, "https": 443}
VIDEO_SVC_PATH = "/video"


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_video_index(request: Request) -> VideoIndex:
    return request.app.state.video_index


def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.blob_store


def get_video_service(request: Request) -> VideoService:
    return request.app.state.video_service


def get_data_base_url(
    request: Request,
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> str:
    """
    Base address that data URLs are built on.

    PUBLIC_BASE_URL wins when set (useful behind a proxy). Otherwise the
    address the client used is echoed back, leaving out the port when it
    is the scheme's default.
    """
    if settings.public_base_url:
        return settings.public_base_url.rstrip("/")

    url = request.url
    base = f"{url.scheme}://{url.hostname}"
    if url.port is not None and url.port != DEFAULT_PORTS.get(url.scheme):
        base += f":{url.port}"
    return base + VIDEO_SVC_PATH


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

SettingsDep = Annotated[Settings, Depends(get_app_settings)]
VideoIndexDep = Annotated[VideoIndex, Depends(get_video_index)]
BlobStoreDep = Annotated[BlobStore, Depends(get_blob_store)]
VideoServiceDep = Annotated[VideoService, Depends(get_video_service)]
DataBaseUrlDep = Annotated[str, Depends(get_data_base_url)]
