"""
Unit tests for the in-memory metadata index.

Covers identifier allocation, snapshot semantics of reads and the
READY transition, including concurrent creates from many threads.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from videovault.core.videos.index import (
    ID_BITS,
    AllocationConflictError,
    VideoIndex,
    VideoNotFoundError,
)
from videovault.core.videos.models import VideoRecord, VideoState

BASE_URL = "http://localhost:8080/video"


@pytest.fixture
def index() -> VideoIndex:
    return VideoIndex()


# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------

class TestCreate:
    """Tests for registering records."""

    def test_assigns_id_and_locator(self, index):
        """The stored record gets an id and a data URL built from it."""
        record = index.create(VideoRecord(title="Intro", duration=30), BASE_URL)

        assert record.id is not None
        assert 0 <= record.id < 2 ** ID_BITS
        assert record.data_url == f"{BASE_URL}/{record.id}/data"
        assert record.state is VideoState.NOT_READY
        assert record.title == "Intro"

    def test_client_supplied_fields_are_replaced(self, index):
        """Clients cannot choose their own id, locator or state."""
        incoming = VideoRecord(
            title="Sneaky",
            id=1,
            data_url="http://evil/1/data",
            state=VideoState.READY,
        )

        record = index.create(incoming, BASE_URL)

        assert record.data_url != "http://evil/1/data"
        assert record.state is VideoState.NOT_READY
        assert record.data_url == f"{BASE_URL}/{record.id}/data"

    def test_incoming_record_not_mutated(self, index):
        incoming = VideoRecord(title="Original")
        index.create(incoming, BASE_URL)

        assert incoming.id is None
        assert incoming.data_url is None

    def test_sequential_ids_are_unique(self, index):
        ids = {index.create(VideoRecord(title=f"v{i}"), BASE_URL).id for i in range(1000)}
        assert len(ids) == 1000
        assert len(index) == 1000

    def test_concurrent_ids_are_unique(self, index):
        """Creates racing on many threads never hand out the same id."""
        def create_batch(worker: int) -> list[int]:
            return [
                index.create(VideoRecord(title=f"w{worker}-{i}"), BASE_URL).id
                for i in range(200)
            ]

        with ThreadPoolExecutor(max_workers=8) as pool:
            batches = list(pool.map(create_batch, range(8)))

        ids = [video_id for batch in batches for video_id in batch]
        assert len(ids) == 1600
        assert len(set(ids)) == 1600
        assert len(index) == 1600

    def test_collision_is_redrawn(self, index, monkeypatch):
        """A drawn id that is already taken is skipped, never overwritten."""
        draws = iter([5, 5, 9])
        monkeypatch.setattr(
            "videovault.core.videos.index.secrets.randbits",
            lambda bits: next(draws),
        )

        first = index.create(VideoRecord(title="first"), BASE_URL)
        second = index.create(VideoRecord(title="second"), BASE_URL)

        assert first.id == 5
        assert second.id == 9
        assert index.find(5).title == "first"

    def test_exhausted_allocation_raises(self, index, monkeypatch):
        monkeypatch.setattr(
            "videovault.core.videos.index.secrets.randbits",
            lambda bits: 5,
        )
        index.create(VideoRecord(title="only"), BASE_URL)

        with pytest.raises(AllocationConflictError):
            index.create(VideoRecord(title="blocked"), BASE_URL)

        assert len(index) == 1
        assert index.find(5).title == "only"


# ---------------------------------------------------------------------------
# list / find
# ---------------------------------------------------------------------------

class TestReads:
    """Tests for list and find."""

    def test_list_returns_all_records(self, index):
        created = [index.create(VideoRecord(title=t), BASE_URL) for t in ("a", "b", "c")]

        listed = index.list()

        assert {r.id for r in listed} == {r.id for r in created}

    def test_list_empty_index(self, index):
        assert index.list() == []

    def test_list_is_a_snapshot(self, index):
        """Changing what list() returned must not touch the index."""
        record = index.create(VideoRecord(title="kept"), BASE_URL)

        listed = index.list()
        listed[0].title = "changed"
        listed.clear()

        assert index.find(record.id).title == "kept"
        assert len(index.list()) == 1

    def test_find_returns_copy(self, index):
        record = index.create(VideoRecord(title="kept"), BASE_URL)

        found = index.find(record.id)
        found.state = VideoState.READY

        assert index.find(record.id).state is VideoState.NOT_READY

    def test_find_unknown_id_raises(self, index):
        with pytest.raises(VideoNotFoundError) as exc_info:
            index.find(12345)
        assert exc_info.value.video_id == 12345

    def test_contains(self, index):
        record = index.create(VideoRecord(title="x"), BASE_URL)
        assert record.id in index
        assert -1 not in index


# ---------------------------------------------------------------------------
# mark_ready
# ---------------------------------------------------------------------------

class TestMarkReady:
    """Tests for the NOT_READY -> READY transition."""

    def test_flips_state(self, index):
        record = index.create(VideoRecord(title="x"), BASE_URL)

        updated = index.mark_ready(record.id)

        assert updated.state is VideoState.READY
        assert index.find(record.id).is_ready

    def test_is_idempotent(self, index):
        record = index.create(VideoRecord(title="x"), BASE_URL)
        index.mark_ready(record.id)
        index.mark_ready(record.id)

        assert index.find(record.id).state is VideoState.READY

    def test_unknown_id_raises(self, index):
        with pytest.raises(VideoNotFoundError):
            index.mark_ready(999)
