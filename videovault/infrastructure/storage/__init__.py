"""
Blob storage for uploaded video data.

Supports local disk and R2/S3 via the S3-compatible API.
Includes mock mode for local development without credentials.
"""

from .client import (
    LocalBlobStore,
    MockBlobStore,
    S3BlobStore,
    S3Config,
    create_blob_store,
)

__all__ = [
    "LocalBlobStore",
    "MockBlobStore",
    "S3BlobStore",
    "S3Config",
    "create_blob_store",
]
