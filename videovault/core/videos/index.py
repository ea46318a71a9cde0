"""
In-memory metadata index.

The index is the only place identifiers are minted. Allocation and
insertion happen under one lock, so a freshly drawn id can never race
another create. Callers always receive copies; the stored records are
never handed out.
"""

import logging
import secrets
import threading
from dataclasses import replace

from .models import VideoRecord, VideoState, build_locator

logger = logging.getLogger(__name__)

ID_BITS = 63
MAX_ALLOCATION_ATTEMPTS = 16


class VideoNotFoundError(LookupError):
    """Raised when no record exists for an identifier."""

    def __init__(self, video_id: int) -> None:
        super().__init__(f"Video not found: {video_id}")
        self.video_id = video_id


class AllocationConflictError(RuntimeError):
    """Raised if a unique identifier could not be drawn."""
    pass


class VideoIndex:
    """
    Thread-safe registry of VideoRecords keyed by identifier.

    Identifiers are non-negative 63-bit values from the `secrets` CSPRNG,
    so they are neither sequential nor guessable.
    """

    def __init__(self) -> None:
        self._records: dict[int, VideoRecord] = {}
        self._lock = threading.Lock()

    def create(self, record: VideoRecord, base_url: str) -> VideoRecord:
        """
        Register a record and return the stored copy.

        Any id, data_url or state on the incoming record is ignored.
        """
        with self._lock:
            video_id = self._allocate_id()
            stored = replace(
                record,
                id=video_id,
                data_url=build_locator(base_url, video_id),
                state=VideoState.NOT_READY,
            )
            self._records[video_id] = stored
            snapshot = replace(stored)

        logger.info(
            "Registered video",
            extra={"video_id": video_id, "title": record.title}
        )
        return snapshot

    def list(self) -> list[VideoRecord]:
        """Point-in-time copy of every known record."""
        with self._lock:
            return [replace(record) for record in self._records.values()]

    def find(self, video_id: int) -> VideoRecord:
        with self._lock:
            record = self._records.get(video_id)
            if record is None:
                raise VideoNotFoundError(video_id)
            return replace(record)

    def mark_ready(self, video_id: int) -> VideoRecord:
        """Flip a record to READY. Raises VideoNotFoundError if unknown."""
        with self._lock:
            record = self._records.get(video_id)
            if record is None:
                raise VideoNotFoundError(video_id)
            record.state = VideoState.READY
            return replace(record)

    def __contains__(self, video_id: object) -> bool:
        with self._lock:
            return video_id in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def _allocate_id(self) -> int:
        # caller holds self._lock
        for _ in range(MAX_ALLOCATION_ATTEMPTS):
            candidate = secrets.randbits(ID_BITS)
            if candidate not in self._records:
                return candidate
        raise AllocationConflictError(
            f"Could not allocate a unique id after {MAX_ALLOCATION_ATTEMPTS} attempts"
        )
