"""
Upload/download orchestration.

VideoService binds the metadata index to a blob store. Every data
operation first resolves the record, then delegates to the store under
the same identifier. Failures are raised to the caller as-is; nothing
here retries.

    NOT_READY --(successful write)--> READY

A record never goes back to NOT_READY. Re-uploading overwrites the blob
and leaves the record READY.
"""

import logging
from typing import BinaryIO

from .blobs import BlobStore, ChunkIterator
from .index import VideoIndex
from .models import VideoRecord, VideoState, VideoStatus

logger = logging.getLogger(__name__)


class VideoService:
    """Coordinates the metadata index and the blob store."""

    def __init__(self, index: VideoIndex, blob_store: BlobStore) -> None:
        self.index = index
        self.blob_store = blob_store

    def register_metadata(self, record: VideoRecord, base_url: str) -> VideoRecord:
        return self.index.create(record, base_url)

    def list_metadata(self) -> list[VideoRecord]:
        return self.index.list()

    def get_metadata(self, video_id: int) -> VideoRecord:
        return self.index.find(video_id)

    def upload_data(self, video_id: int, source: BinaryIO) -> VideoStatus:
        """
        Store the payload for an existing record and mark it READY.

        Raises VideoNotFoundError if the record is unknown and StorageError
        if the write fails; in both cases the record state is untouched.
        """
        self.index.find(video_id)

        size = self.blob_store.write(video_id, source)
        self.index.mark_ready(video_id)

        logger.info(
            "Stored video data",
            extra={"video_id": video_id, "size_bytes": size}
        )
        return VideoStatus(state=VideoState.READY)

    def download_data(self, video_id: int, sink: BinaryIO) -> int:
        """
        Copy the payload for a record into `sink`.

        Raises VideoNotFoundError for an unknown record and
        BlobNotFoundError when the record exists but has no data yet.
        """
        self.index.find(video_id)
        size = self.blob_store.read(video_id, sink)

        logger.debug(
            "Served video data",
            extra={"video_id": video_id, "size_bytes": size}
        )
        return size

    def stream_data(self, video_id: int) -> ChunkIterator:
        """Like download_data, but returns a chunk iterator for streaming responses."""
        self.index.find(video_id)
        return self.blob_store.stream(video_id)
