"""Tests for the URL-keyed asset cache."""

import json
from unittest.mock import patch

import pytest

from reelbatch.core.exceptions import CacheIOError
from reelbatch.storage.asset_cache import INDEX_FILE_NAME, AssetCache


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(settings, logger, clock):
    """Create a cache with a 1000 byte ceiling."""
    settings = settings.model_copy(update={"cache_max_size_bytes": 1000, "cache_ttl_seconds": 3600})
    return AssetCache(settings, logger, clock=clock)


def make_file(tmp_path, name: str, size: int):
    path = tmp_path / name
    path.write_bytes(b"x" * size)
    return path


def test_put_then_get_returns_identical_copy(cache, tmp_path):
    """Test that a cached file is byte-identical to its source."""
    source = tmp_path / "photo.png"
    source.write_bytes(b"\x89PNG fake image data")

    stored = cache.put("https://example.com/a", source, "photo.png")
    result = cache.get("https://example.com/a")

    assert result == stored
    assert result.read_bytes() == source.read_bytes()
    assert result.name == f"{AssetCache.cache_key('https://example.com/a')}.png"


def test_cache_key_is_stable(cache):
    assert AssetCache.cache_key("u") == AssetCache.cache_key("u")
    assert AssetCache.cache_key("u") != AssetCache.cache_key("v")


def test_get_missing_returns_none(cache):
    assert cache.get("https://example.com/missing") is None
    assert cache.has("https://example.com/missing") is False


def test_has_purges_entry_when_file_deleted(cache, tmp_path):
    """Test that an externally deleted file makes has() false and drops the entry."""
    stored = cache.put("u1", make_file(tmp_path, "a.mp4", 10), "a.mp4")
    stored.unlink()

    assert cache.has("u1") is False
    assert cache.entries() == []


def test_entries_expire_after_ttl(cache, tmp_path, clock):
    stored = cache.put("u1", make_file(tmp_path, "a.mp4", 10), "a.mp4")

    clock.advance(3599)
    assert cache.has("u1") is True
    clock.advance(2)
    assert cache.get("u1") is None
    assert not stored.exists()


def test_get_refreshes_last_access(cache, tmp_path, clock):
    cache.put("u1", make_file(tmp_path, "a.mp4", 10), "a.mp4")
    clock.advance(50)
    cache.get("u1")
    assert cache.entries()[0].last_accessed_at == clock.now


def test_put_overwrites_previous_entry(cache, tmp_path):
    """Test that re-inserting a URL replaces the entry and the old file."""
    first = cache.put("u1", make_file(tmp_path, "a.jpg", 10), "a.jpg")
    second = cache.put("u1", make_file(tmp_path, "b.png", 20), "b.png")

    assert not first.exists()
    assert second.exists()
    assert len(cache.entries()) == 1
    assert cache.stats().total_size_bytes == 20


def test_eviction_removes_least_recently_accessed_down_to_target(cache, tmp_path, clock):
    """Test LRU eviction to 80% of the ceiling once the ceiling is exceeded."""
    for name in ("a", "b", "c", "d"):
        cache.put(name, make_file(tmp_path, f"{name}.mp4", 250), f"{name}.mp4")
        clock.advance(1)

    # Touch "a" so "b" becomes the oldest
    cache.get("a")
    clock.advance(1)
    cache.put("e", make_file(tmp_path, "e.mp4", 250), "e.mp4")

    stats = cache.stats()
    assert stats.total_size_bytes <= 800
    assert cache.has("b") is False
    assert cache.has("c") is False
    assert cache.has("a") is True
    assert cache.has("e") is True


def test_eviction_is_noop_under_ceiling(cache, tmp_path):
    cache.put("a", make_file(tmp_path, "a.mp4", 400), "a.mp4")
    assert cache.evict_if_needed() == 0


def test_eviction_ties_evict_in_insertion_order(cache, tmp_path):
    """Test that entries with equal access times are evicted oldest-inserted first."""
    for name in ("a", "b", "c", "d"):
        cache.put(name, make_file(tmp_path, f"{name}.mp4", 250), f"{name}.mp4")

    cache.put("e", make_file(tmp_path, "e.mp4", 250), "e.mp4")

    assert [entry.url for entry in cache.entries()] == ["c", "d", "e"]
    assert cache.stats().total_size_bytes <= 800


def test_put_skips_file_larger_than_eviction_target(cache, tmp_path):
    source = make_file(tmp_path, "huge.mp4", 900)
    cache.put("small", make_file(tmp_path, "small.mp4", 100), "small.mp4")

    returned = cache.put("huge", source, "huge.mp4")

    assert returned == source
    assert returned.exists()
    assert cache.has("huge") is False
    assert cache.has("small") is True


def test_put_never_evicts_the_new_entry(cache, tmp_path, clock):
    """Test that eviction triggered by put keeps the file it just stored."""
    cache.put("old", make_file(tmp_path, "old.mp4", 700), "old.mp4")
    clock.advance(10)

    stored = cache.put("new", make_file(tmp_path, "new.mp4", 700), "new.mp4")

    assert stored.exists()
    assert cache.get("new") == stored
    assert cache.has("old") is False


def test_remove_is_idempotent(cache, tmp_path):
    stored = cache.put("a", make_file(tmp_path, "a.mp4", 10), "a.mp4")
    cache.remove("a")
    cache.remove("a")
    assert not stored.exists()


def test_cleanup_expired_counts_removed(cache, tmp_path, clock):
    cache.put("old", make_file(tmp_path, "a.mp4", 10), "a.mp4")
    clock.advance(4000)
    cache.put("new", make_file(tmp_path, "b.mp4", 10), "b.mp4")

    assert cache.cleanup_expired() == 1
    assert [entry.url for entry in cache.entries()] == ["new"]


def test_index_survives_restart(settings, logger, clock, tmp_path):
    """Test that a new cache instance sees entries written by a previous one."""
    first = AssetCache(settings, logger, clock=clock)
    first.put("u1", make_file(tmp_path, "a.mp4", 10), "a.mp4")

    second = AssetCache(settings, logger, clock=clock)
    assert second.has("u1") is True
    assert second.stats().file_count == 1


def test_corrupt_index_starts_empty(settings, logger, clock):
    settings.cache_path.mkdir(parents=True, exist_ok=True)
    (settings.cache_path / INDEX_FILE_NAME).write_text("{not json", encoding="utf-8")

    cache = AssetCache(settings, logger, clock=clock)
    assert cache.entries() == []


def test_index_with_wrong_shape_starts_empty(settings, logger, clock):
    settings.cache_path.mkdir(parents=True, exist_ok=True)
    (settings.cache_path / INDEX_FILE_NAME).write_text(json.dumps(["a", "b"]), encoding="utf-8")

    assert AssetCache(settings, logger, clock=clock).entries() == []


def test_disk_error_on_put_raises_cache_io_error(cache, tmp_path):
    source = make_file(tmp_path, "a.mp4", 10)
    with patch("reelbatch.storage.asset_cache.shutil.copyfile", side_effect=OSError("disk full")):
        with pytest.raises(CacheIOError):
            cache.put("u1", source, "a.mp4")


def test_stats_reports_usage(cache, tmp_path):
    cache.put("a", make_file(tmp_path, "a.mp4", 250), "a.mp4")
    stats = cache.stats()
    assert stats.file_count == 1
    assert stats.max_size_bytes == 1000
    assert stats.usage_fraction == pytest.approx(0.25)
