"""
Blob storage contract.

A blob is the opaque payload uploaded for a video, stored under the
video's identifier. Backends live in the infrastructure layer; the core
only knows this protocol and the helpers every backend shares:
- KeyedLocks serializes writers per identifier (never globally)
- copy_stream moves bytes in bounded chunks so no payload is held whole
"""

import threading
from typing import BinaryIO, Iterator, Protocol

DEFAULT_CHUNK_SIZE = 64 * 1024


class StorageError(Exception):
    """Raised when reading or writing blob data fails."""
    pass


class BlobNotFoundError(LookupError):
    """Raised when no data has been stored for an identifier."""

    def __init__(self, video_id: int) -> None:
        super().__init__(f"No data stored for video {video_id}")
        self.video_id = video_id


class UploadTooLargeError(StorageError):
    """Raised when an upload exceeds the configured size limit."""
    pass


class BlobStore(Protocol):
    """
    Interface for streamed blob persistence.

    Implementations must never expose a partially written blob: a reader
    sees either the previous complete payload or the new one.
    """

    def open(self) -> "BlobStore":
        """Initialize backing storage once; safe to call repeatedly."""
        ...

    def write(self, video_id: int, source: BinaryIO) -> int:
        """Drain `source` into the blob for `video_id`. Returns bytes written."""
        ...

    def read(self, video_id: int, sink: BinaryIO) -> int:
        """Copy the blob for `video_id` into `sink`. Returns bytes read."""
        ...

    def stream(self, video_id: int) -> "ChunkIterator":
        """Iterate over the blob in chunks. Missing blobs fail before the first chunk.

        Callers that stop early must close() the iterator.
        """
        ...

    def exists(self, video_id: int) -> bool:
        ...

    def check(self) -> None:
        """Verify the backing storage is usable right now. Raises StorageError."""
        ...


class KeyedLocks:
    """
    One lock per key, created on first use.

    The guard lock is held only long enough to look up or create the
    per-key lock, so work on different keys never contends.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[object, threading.Lock] = {}

    def get(self, key: object) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock


def copy_stream(
    source: BinaryIO,
    sink: BinaryIO,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    max_bytes: int = 0,
) -> int:
    """
    Copy `source` to `sink` until EOF, `chunk_size` bytes at a time.

    Short reads are not treated as EOF; only an empty read ends the copy.
    With `max_bytes` > 0 the copy aborts with UploadTooLargeError as soon
    as the limit is passed.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    total = 0
    while True:
        chunk = source.read(chunk_size)
        if not chunk:
            return total
        total += len(chunk)
        if max_bytes and total > max_bytes:
            raise UploadTooLargeError(f"Upload exceeds {max_bytes} bytes")
        sink.write(chunk)


class ChunkIterator(Iterator[bytes]):
    """
    Reads `source` in fixed-size chunks.

    The source is closed once it is exhausted, or by close(), which is
    safe to call before iteration starts and more than once.
    """

    def __init__(self, source: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self._source = source
        self._chunk_size = chunk_size
        self._closed = False

    
    def closed(self) -> bool:
        return self._closed

    def __next__(self) -> bytes:
        if self._closed:
            raise StopIteration
        try:
            chunk = self._source.read(self._chunk_size)
        except Exception:
            self.close()
            raise
        if not chunk:
            self.close()
            raise StopIteration
        return chunk

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._source.close()


def iter_chunks(source: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> ChunkIterator:
    """Iterate over `source` in chunks, closing it when exhausted or abandoned."""
    return ChunkIterator(source, chunk_size)
