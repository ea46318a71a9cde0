"""
Blob store backends for uploaded video data.

Three implementations of the core BlobStore protocol:
- LocalBlobStore: one file per video on local disk (default)
- S3BlobStore: one object per video in an S3-compatible bucket (R2, MinIO, AWS)
- MockBlobStore: in-memory, for local development and tests

All three write per identifier under a KeyedLocks lock and only make a
new payload visible once the source stream has been fully drained.
"""

import io
import logging
import os
import tempfile
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Optional

import boto3
from boto3.s3.transfer import TransferConfig
from botocore.config import Config
from botocore.exceptions import ClientError

from ...core.videos.blobs import (
    DEFAULT_CHUNK_SIZE,
    BlobNotFoundError,
    BlobStore,
    ChunkIterator,
    KeyedLocks,
    StorageError,
    UploadTooLargeError,
    copy_stream,
    iter_chunks,
)

logger = logging.getLogger(__name__)

BLOB_SUFFIX = ".bin"
TEMP_SUFFIX = ".part"

# temp files younger than this may belong to an upload still in flight
STALE_TEMP_AGE_SECONDS = 24 * 60 * 60

# S3 rejects multipart parts smaller than 5 MiB
MIN_MULTIPART_CHUNK = 5 * 1024 * 1024


@dataclass
class S3Config:
    """Connection settings for an S3-compatible bucket."""
    bucket_name: str
    endpoint_url: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    region: str = "auto"  # R2 uses 'auto' for region
    key_prefix: str = ""


class _ManagedBlobStore:
    """
    Shared plumbing for the backends.

    open() runs _initialize() exactly once no matter how many threads
    call it; later calls return immediately.
    check() opens if needed and then tests the storage again on every call.
    """

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE, max_upload_bytes: int = 0) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self._chunk_size = chunk_size
        self._max_upload_bytes = max_upload_bytes
        self._write_locks = KeyedLocks()
        self._open_lock = threading.Lock()
        self._opened = False

    @property
    def is_open(self) -> bool:
        return self._opened

    def open(self) -> "_ManagedBlobStore":
        if self._opened:
            return self
        with self._open_lock:
            if not self._opened:
                self._initialize()
                self._opened = True
        return self

    def _initialize(self) -> None:
        pass

    def check(self) -> None:
        self.open()
        self._check()

    def _check(self) -> None:
        pass


class LocalBlobStore(_ManagedBlobStore):
    """
    Filesystem blob store.

    Layout: {base_path}/{video_id}.bin

    Uploads go to a temp file in the same directory and are moved into
    place with os.replace, which is atomic on POSIX and Windows. Readers
    that already opened the old file keep reading the old contents.
    """

    def __init__(
        self,
        base_path: str | Path,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_upload_bytes: int = 0,
    ) -> None:
        super().__init__(chunk_size=chunk_size, max_upload_bytes=max_upload_bytes)
        self._base_path = Path(base_path)

    @property
    def base_path(self) -> Path:
        return self._base_path

    def _initialize(self) -> None:
        try:
            self._base_path.mkdir(parents=True, exist_ok=True)
            # leftovers from a crash mid-upload
            cutoff = time.time() - STALE_TEMP_AGE_SECONDS
            stale = 0
            for path in self._base_path.glob(f".*{TEMP_SUFFIX}"):
                try:
                    if path.stat().st_mtime >= cutoff:
                        continue
                    path.unlink()
                except FileNotFoundError:
                    continue
                stale += 1
        except OSError as e:
            raise StorageError(f"Cannot initialize storage at {self._base_path}: {e}") from e

        logger.info(
            "Initialized local blob store",
            extra={"base_path": str(self._base_path), "stale_removed": stale}
        )

    def _check(self) -> None:
        if not os.access(self._base_path, os.W_OK | os.X_OK):
            raise StorageError(f"Storage directory {self._base_path} is not writable")

    def blob_path(self, video_id: int) -> Path:
        return self._base_path / f"{video_id}{BLOB_SUFFIX}"

    def write(self, video_id: int, source: BinaryIO) -> int:
        self.open()
        target = self.blob_path(video_id)

        with self._write_locks.get(video_id):
            tmp_name = None
            try:
                with tempfile.NamedTemporaryFile(
                    dir=self._base_path,
                    prefix=f".{video_id}.",
                    suffix=TEMP_SUFFIX,
                    delete=False,
                ) as tmp:
                    tmp_name = tmp.name
                    size = copy_stream(source, tmp, self._chunk_size, self._max_upload_bytes)
                    tmp.flush()
                    os.fsync(tmp.fileno())
                os.replace(tmp_name, target)
            except OSError as e:
                self._discard(tmp_name)
                logger.error(
                    "Failed to write blob",
                    extra={"video_id": video_id, "error": str(e)}
                )
                raise StorageError(f"Write failed for video {video_id}: {e}") from e
            except Exception:
                self._discard(tmp_name)
                raise

        logger.debug(
            "Wrote blob",
            extra={"video_id": video_id, "size_bytes": size, "path": str(target)}
        )
        return size

    def read(self, video_id: int, sink: BinaryIO) -> int:
        with self._open_blob(video_id) as handle:
            try:
                return copy_stream(handle, sink, self._chunk_size)
            except OSError as e:
                logger.error(
                    "Failed to read blob",
                    extra={"video_id": video_id, "error": str(e)}
                )
                raise StorageError(f"Read failed for video {video_id}: {e}") from e

    def stream(self, video_id: int) -> ChunkIterator:
        return iter_chunks(self._open_blob(video_id), self._chunk_size)

    def exists(self, video_id: int) -> bool:
        return self.blob_path(video_id).is_file()

    def _open_blob(self, video_id: int) -> BinaryIO:
        self.open()
        try:
            return open(self.blob_path(video_id), "rb")
        except FileNotFoundError:
            raise BlobNotFoundError(video_id) from None
        except OSError as e:
            raise StorageError(f"Cannot open data for video {video_id}: {e}") from e

    @staticmethod
    def _discard(path: Optional[str]) -> None:
        if path is None:
            return
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(
                "Could not remove temp file",
                extra={"path": path, "error": str(e)}
            )


class S3BlobStore(_ManagedBlobStore):
    """
    S3-compatible blob store (Cloudflare R2, AWS S3, MinIO).

    Key structure: {key_prefix}videos/{video_id}/data

    upload_fileobj streams the source in multipart chunks; the object only
    becomes visible (or replaces the previous one) when the upload
    completes, so a failed upload leaves the old data in place.
    """

    def __init__(
        self,
        config: S3Config,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_upload_bytes: int = 0,
        client=None,
    ) -> None:
        super().__init__(chunk_size=chunk_size, max_upload_bytes=max_upload_bytes)
        self._config = config
        self._s3_client = client or self._create_client(config)
        self._transfer_config = TransferConfig(
            multipart_chunksize=max(chunk_size, MIN_MULTIPART_CHUNK),
        )

    @staticmethod
    def _create_client(config: S3Config):
        # R2 requires v4 signatures and path-style addressing
        boto_config = Config(
            signature_version="s3v4",
            s3={"addressing_style": "path"},
        )
        return boto3.client(
            "s3",
            endpoint_url=config.endpoint_url,
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
            region_name=config.region,
            config=boto_config,
        )

    def _initialize(self) -> None:
        try:
            self._s3_client.head_bucket(Bucket=self._config.bucket_name)
        except ClientError as e:
            raise StorageError(
                f"Bucket {self._config.bucket_name} is not accessible: {e}"
            ) from e

        logger.info(
            "Initialized S3 blob store",
            extra={
                "bucket": self._config.bucket_name,
                "endpoint": self._config.endpoint_url,
            }
        )

    def _check(self) -> None:
        try:
            self._s3_client.head_bucket(Bucket=self._config.bucket_name)
        except ClientError as e:
            raise StorageError(
                f"Bucket {self._config.bucket_name} is not accessible: {e}"
            ) from e

    def object_key(self, video_id: int) -> str:
        return f"{self._config.key_prefix}videos/{video_id}/data"

    def write(self, video_id: int, source: BinaryIO) -> int:
        self.open()
        key = self.object_key(video_id)
        counted = _CountingReader(source, self._max_upload_bytes)

        with self._write_locks.get(video_id):
            try:
                self._s3_client.upload_fileobj(
                    counted,
                    self._config.bucket_name,
                    key,
                    ExtraArgs={"ContentType": "application/octet-stream"},
                    Config=self._transfer_config,
                )
            except StorageError:
                raise
            except Exception as e:
                logger.error(
                    "Failed to upload blob",
                    extra={"video_id": video_id, "key": key, "error": str(e)}
                )
                raise StorageError(f"Upload failed for video {video_id}: {e}") from e

        logger.debug(
            "Uploaded blob",
            extra={"video_id": video_id, "key": key, "size_bytes": counted.total}
        )
        return counted.total

    def read(self, video_id: int, sink: BinaryIO) -> int:
        body = self._get_body(video_id)
        try:
            return copy_stream(body, sink, self._chunk_size)
        except Exception as e:
            logger.error(
                "Failed to download blob",
                extra={"video_id": video_id, "error": str(e)}
            )
            raise StorageError(f"Download failed for video {video_id}: {e}") from e
        finally:
            body.close()

    def stream(self, video_id: int) -> ChunkIterator:
        return iter_chunks(self._get_body(video_id), self._chunk_size)

    def exists(self, video_id: int) -> bool:
        self.open()
        try:
            self._s3_client.head_object(
                Bucket=self._config.bucket_name,
                Key=self.object_key(video_id),
            )
        except ClientError as e:
            if _is_missing(e):
                return False
            raise StorageError(f"Cannot check data for video {video_id}: {e}") from e
        return True

    def _get_body(self, video_id: int):
        self.open()
        try:
            response = self._s3_client.get_object(
                Bucket=self._config.bucket_name,
                Key=self.object_key(video_id),
            )
        except ClientError as e:
            if _is_missing(e):
                raise BlobNotFoundError(video_id) from None
            raise StorageError(f"Download failed for video {video_id}: {e}") from e
        return response["Body"]


class _CountingReader(io.RawIOBase):
    """Read-through wrapper that counts bytes and enforces an upload limit."""

    def __init__(self, source: BinaryIO, max_bytes: int = 0) -> None:
        self._source = source
        self._max_bytes = max_bytes
        self.total = 0

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        chunk = self._source.read(size)
        self.total += len(chunk)
        if self._max_bytes and self.total > self._max_bytes:
            raise UploadTooLargeError(f"Upload exceeds {self._max_bytes} bytes")
        return chunk


def _is_missing(error: ClientError) -> bool:
    code = error.response.get("Error", {}).get("Code", "")
    return code in ("NoSuchKey", "404", "NotFound")


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

class MockBlobStore(_ManagedBlobStore):
    """
    In-memory blob store.

    Payloads are drained into a private buffer and only swapped into the
    shared dict once complete. Data is lost when the process exits.
    """

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE, max_upload_bytes: int = 0) -> None:
        super().__init__(chunk_size=chunk_size, max_upload_bytes=max_upload_bytes)
        self._blobs: dict[int, bytes] = {}
        self._blobs_lock = threading.Lock()

    def _initialize(self) -> None:
        logger.info("Initialized mock blob store (in-memory)")

    def write(self, video_id: int, source: BinaryIO) -> int:
        self.open()
        with self._write_locks.get(video_id):
            buffer = io.BytesIO()
            try:
                size = copy_stream(source, buffer, self._chunk_size, self._max_upload_bytes)
            except OSError as e:
                raise StorageError(f"Write failed for video {video_id}: {e}") from e
            with self._blobs_lock:
                self._blobs[video_id] = buffer.getvalue()

        logger.debug(
            "Stored blob in mock storage",
            extra={"video_id": video_id, "size_bytes": size}
        )
        return size

    def read(self, video_id: int, sink: BinaryIO) -> int:
        return copy_stream(self._get(video_id), sink, self._chunk_size)

    def stream(self, video_id: int) -> ChunkIterator:
        return iter_chunks(self._get(video_id), self._chunk_size)

    def exists(self, video_id: int) -> bool:
        with self._blobs_lock:
            return video_id in self._blobs

    def _get(self, video_id: int) -> BinaryIO:
        self.open()
        with self._blobs_lock:
            data = self._blobs.get(video_id)
        if data is None:
            raise BlobNotFoundError(video_id)
        return io.BytesIO(data)


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_blob_store(
    backend: str = "local",
    storage_path: str | Path = "video-data",
    s3_config: Optional[S3Config] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    max_upload_bytes: int = 0,
) -> BlobStore:
    """
    Create a blob store for the configured backend.

    Args:
        backend: "local", "memory" or "s3"
        storage_path: Directory for the local backend
        s3_config: Bucket settings (required for "s3")
        chunk_size: Streaming buffer size in bytes
        max_upload_bytes: Upload limit, 0 for unlimited

    Returns:
        An unopened BlobStore; call open() before serving traffic.
    """
    backend = backend.lower()

    if backend == "memory":
        return MockBlobStore(chunk_size=chunk_size, max_upload_bytes=max_upload_bytes)

    if backend == "s3":
        if s3_config is None:
            raise ValueError("s3_config is required for the s3 backend")
        return S3BlobStore(s3_config, chunk_size=chunk_size, max_upload_bytes=max_upload_bytes)

    if backend == "local":
        return LocalBlobStore(storage_path, chunk_size=chunk_size, max_upload_bytes=max_upload_bytes)

    raise ValueError(f"Unknown storage backend: {backend}")
