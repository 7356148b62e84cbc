"""
Snapshot canonicalization and change detection against file and in-memory stores.
"""

import asyncio
import logging
from unittest.mock import AsyncMock

import pytest

from boards.services.leaderboard_cache import LeaderboardCache, canonicalize_snapshot, strip_volatile_field
from boards.services.snapshot_store import FileSnapshotStore
from boards.utils.exceptions import StoreError

SNAPSHOT_A = "a=1,totalLeaderboardEntries=500,b=2"
SNAPSHOT_B = "a=1,totalLeaderboardEntries=501,b=2"


class SlowMemoryStore:
    """Dict-backed store that yields between read and write to expose races."""

    def __init__(self):
        self.data = {}
        self.puts = 0

    async def get(self, key):
        await asyncio.sleep(0.01)
        return self.data.get(key)

    async def put(self, key, text):
        await asyncio.sleep(0.01)
        self.puts += 1
        self.data[key] = text


@pytest.fixture
def cache(tmp_path):
    return LeaderboardCache(FileSnapshotStore(tmp_path / "cache"))


@pytest.mark.parametrize("raw, expected", [
    (SNAPSHOT_A, "a=1,b=2"),
    ("totalLeaderboardEntries=500,b=2", "b=2"),
    ("a=1, totalLeaderboardEntries=500", "a=1"),
    ('{"a": 1, "totalLeaderboardEntries": 500, "b": 2}', '{"a": 1, "b": 2}'),
    ('{"totalLeaderboardEntries": 500, "b": 2}', '{"b": 2}'),
    ("<a>1</a>\n<totalLeaderboardEntries>500</totalLeaderboardEntries>\n<b>2</b>", "<a>1</a>\n\n<b>2</b>"),
])
def test_canonicalize_strips_volatile_field(raw, expected):
    assert canonicalize_snapshot(raw, "totalLeaderboardEntries") == expected


def test_canonical_forms_ignore_volatile_value():
    assert canonicalize_snapshot(SNAPSHOT_A) == canonicalize_snapshot(SNAPSHOT_B)


def test_canonicalize_leaves_similar_labels_alone():
    raw = "mytotalLeaderboardEntries=3,totalLeaderboardEntries=500"
    assert canonicalize_snapshot(raw) == "mytotalLeaderboardEntries=3"


def test_canonicalize_without_field_keeps_text():
    assert strip_volatile_field("a=1,b=2") == ("a=1,b=2", False)
    assert canonicalize_snapshot("a=1,b=2") == "a=1,b=2"


@pytest.mark.parametrize("raw, expected", [
    ("a=1,totalLeaderboardEntries=1,234,b=2", "a=1,b=2"),
    ("a=1,totalLeaderboardEntries=12,345,678", "a=1"),
    ('{"a": 1, "totalLeaderboardEntries": "1,234", "b": 2}', '{"a": 1, "b": 2}'),
    ("totalLeaderboardEntries=-3.5;b=2", "b=2"),
])
def test_canonicalize_removes_grouped_counts_whole(raw, expected):
    assert strip_volatile_field(raw) == (expected, True)


def test_grouped_count_change_is_noise():
    first = canonicalize_snapshot("a=1,totalLeaderboardEntries=1,234,b=2")
    second = canonicalize_snapshot("a=1,totalLeaderboardEntries=1,235,b=2")
    assert first == second == "a=1,b=2"


async def test_repeat_snapshot_reports_unchanged(cache):
    assert await cache.update(47458, SNAPSHOT_A) is True
    assert await cache.update(47458, SNAPSHOT_A) is False


async def test_volatile_field_change_is_noise(cache):
    assert await cache.update(47458, SNAPSHOT_A) is True
    assert await cache.update(47458, SNAPSHOT_B) is False


async def test_real_change_overwrites_cached_snapshot(cache, tmp_path):
    await cache.update(47458, SNAPSHOT_A)
    await cache.update(47458, SNAPSHOT_A)

    assert await cache.update(47458, "a=1,totalLeaderboardEntries=502,b=3") is True
    assert await cache.get(47458) == "a=1,b=3"
    assert (tmp_path / "cache" / "47458.cache").read_text(encoding="utf-8") == "a=1,b=3"


async def test_keys_are_independent(cache):
    assert await cache.update(1, SNAPSHOT_A) is True
    assert await cache.update(2, SNAPSHOT_A) is True
    assert await cache.get(3) is None


async def test_malformed_snapshot_compared_raw(cache):
    assert await cache.update(9, "no count here") is True
    assert await cache.update(9, "no count here") is False
    assert await cache.get(9) == "no count here"


async def test_every_malformed_snapshot_is_logged_with_its_key(cache, caplog):
    with caplog.at_level(logging.WARNING, logger="boards.services.leaderboard_cache"):
        for board_id in range(3):
            await cache.update(board_id, f"no count {board_id}")
        await cache.update(0, "no count 0")

    malformed = [r for r in caplog.records if "has no 'totalLeaderboardEntries' field" in r.getMessage()]
    assert len(malformed) == 4
    assert [r.levelno for r in malformed] == [logging.WARNING] * 4
    for board_id in range(3):
        assert any(f"leaderboard {board_id} " in r.getMessage() for r in malformed)


async def test_well_formed_snapshot_logs_no_warning(cache, caplog):
    with caplog.at_level(logging.WARNING, logger="boards.services.leaderboard_cache"):
        await cache.update(1, SNAPSHOT_A)
    assert not [r for r in caplog.records if r.levelno >= logging.WARNING]


async def test_concurrent_updates_for_one_key_are_serialized():
    store = SlowMemoryStore()
    cache = LeaderboardCache(store)

    results = await asyncio.gather(*(cache.update("47458", SNAPSHOT_A) for _ in range(5)))

    assert results.count(True) == 1
    assert store.puts == 1


async def test_concurrent_updates_for_different_keys_all_commit():
    store = SlowMemoryStore()
    cache = LeaderboardCache(store)

    results = await asyncio.gather(*(cache.update(board_id, SNAPSHOT_A) for board_id in range(5)))

    assert results == [True] * 5
    assert store.data == {str(board_id): "a=1,b=2" for board_id in range(5)}


async def test_read_failure_is_not_reported_as_unchanged():
    store = AsyncMock()
    store.get.side_effect = StoreError("snapshot_get", "disk gone")
    cache = LeaderboardCache(store)

    with pytest.raises(StoreError) as exc_info:
        await cache.update(1, SNAPSHOT_A)

    assert exc_info.value.operation == "snapshot_get"
    store.put.assert_not_awaited()


async def test_write_failure_propagates():
    store = AsyncMock()
    store.get.return_value = "old"
    store.put.side_effect = StoreError("snapshot_put", "read-only")
    cache = LeaderboardCache(store)

    with pytest.raises(StoreError) as exc_info:
        await cache.update(1, SNAPSHOT_A)

    assert exc_info.value.operation == "snapshot_put"


async def test_custom_volatile_field(tmp_path):
    cache = LeaderboardCache(FileSnapshotStore(tmp_path), volatile_field="fetchedAt")
    assert await cache.update(1, "score=5;fetchedAt=1700000000") is True
    assert await cache.update(1, "score=5;fetchedAt=1700000060") is False
    assert await cache.get(1) == "score=5"
