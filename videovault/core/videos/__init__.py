"""
Video registration and blob storage logic.

Contains the metadata index, the blob store contract and the service
that orchestrates uploads and downloads between them.
"""

from .blobs import (
    BlobNotFoundError,
    BlobStore,
    ChunkIterator,
    KeyedLocks,
    StorageError,
    UploadTooLargeError,
    copy_stream,
    iter_chunks,
)
from .index import AllocationConflictError, VideoIndex, VideoNotFoundError
from .models import VideoRecord, VideoState, VideoStatus, build_locator
from .service import VideoService

__all__ = [
    "AllocationConflictError",
    "BlobNotFoundError",
    "BlobStore",
    "ChunkIterator",
    "KeyedLocks",
    "StorageError",
    "UploadTooLargeError",
    "VideoIndex",
    "VideoNotFoundError",
    "VideoRecord",
    "VideoService",
    "VideoState",
    "VideoStatus",
    "build_locator",
    "copy_stream",
    "iter_chunks",
]
