"""
Domain models for registered videos.

A VideoRecord is the metadata half of a video; its binary payload lives
in a blob store under the same identifier. The descriptive fields are
passed through untouched - nothing in the core interprets them.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class VideoState(Enum):
    """Whether the binary data for a record has been stored."""
    NOT_READY = "NOT_READY"
    READY = "READY"


@dataclass(frozen=True)
class VideoStatus:
    """Result of a data upload, reported back to the client."""
    state: VideoState


@dataclass
class VideoRecord:
    """
    Metadata for a single video.

    `id` and `data_url` are owned by the VideoIndex: whatever a client
    puts there is replaced when the record is created.
    """
    title: str = ""
    duration: int = 0  # seconds
    location: Optional[str] = None
    subject: Optional[str] = None
    content_type: Optional[str] = None
    id: Optional[int] = None
    data_url: Optional[str] = None
    state: VideoState = VideoState.NOT_READY

    def __post_init__(self) -> None:
        if self.duration < 0:
            raise ValueError("Duration cannot be negative")

    @property
    def is_ready(self) -> bool:
        return self.state is VideoState.READY


def build_locator(base_url: str, video_id: int) -> str:
    """
    Build the data URL for a record: ``<base>/<id>/data``.

    The base address (scheme, host, port and collection path) is supplied
    by the caller.
    """
    return f"{base_url.rstrip('/')}/{video_id}/data"
