"""Asset Cache - URL-keyed local store for downloaded media."""

import hashlib
import json
import os
import shutil
import time
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic import ValidationError

from reelbatch.core.config import Settings
from reelbatch.core.exceptions import CacheIOError
from reelbatch.models.schemas import CacheEntry, CacheStats

INDEX_FILE_NAME = "cache-index.json"


class AssetCache:
    """
    Stores downloaded files under a hash of their source URL.

    The index (cache key -> CacheEntry) lives next to the files in
    ``cache-index.json`` and is rewritten after every mutation. Entries expire
    ``cache_ttl_seconds`` after insertion; when the total size exceeds
    ``cache_max_size_bytes`` the least recently accessed entries are evicted
    until usage drops to ``cache_eviction_target_ratio`` of the maximum.

    Lookups never raise for absent entries. Disk errors raise CacheIOError.
    Concurrent processes sharing one cache directory are not supported.
    """

    def __init__(self, settings: Settings, logger: Any, clock: Callable[[], float] = time.time):
        """
        Initialize the cache and load its index.

        Args:
            settings: Application settings
            logger: Logger instance
            clock: Source of the current time in epoch seconds
        """
        self.settings = settings
        self.logger = logger
        self.clock = clock
        self.cache_dir = settings.cache_path
        self.max_size_bytes = settings.cache_max_size_bytes
        self.ttl_seconds = settings.cache_ttl_seconds
        self.eviction_target_ratio = settings.cache_eviction_target_ratio
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.index_path = self.cache_dir / INDEX_FILE_NAME
        self._index: dict[str, CacheEntry] = self._load_index()

    # ------------------------------------------------------------------
    # Keys and index persistence
    # ------------------------------------------------------------------

    @staticmethod
    def cache_key(url: str) -> str:
        """Stable key for a URL (same URL, same key)."""
        return hashlib.md5(url.encode("utf-8")).hexdigest()

    def _load_index(self) -> dict[str, CacheEntry]:
        if not self.index_path.exists():
            return {}
        try:
            with open(self.index_path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            if not isinstance(raw, dict):
                raise ValueError(f"expected an object, got {type(raw).__name__}")
            index = {key: CacheEntry(**entry) for key, entry in raw.items()}
        except (OSError, ValueError, TypeError, ValidationError) as e:
            self.logger.warning(f"Cache index unreadable, starting with an empty cache: {e}")
            return {}
        self.logger.debug(f"Loaded cache index with {len(index)} entries")
        return index

    def _save_index(self) -> None:
        data = {key: entry.model_dump() for key, entry in self._index.items()}
        tmp_path = self.index_path.with_suffix(".json.tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.index_path)
        except OSError as e:
            raise CacheIOError(f"Failed to write cache index {self.index_path}: {e}") from e

    def _file_path(self, entry: CacheEntry) -> Path:
        return self.cache_dir / entry.stored_file_name

    def _is_expired(self, entry: CacheEntry) -> bool:
        return self.clock() - entry.created_at > self.ttl_seconds

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def has(self, url: str) -> bool:
        """
        Check whether a usable entry exists for a URL.

        Entries whose file disappeared or whose age exceeds the TTL are purged.
        """
        key = self.cache_key(url)
        entry = self._index.get(key)
        if entry is None:
            return False

        if not self._file_path(entry).exists():
            self.logger.info(f"Cached file missing on disk, dropping entry: {entry.stored_file_name}")
            del self._index[key]
            self._save_index()
            return False

        if self._is_expired(entry):
            self.logger.info(f"Cache entry expired: {entry.stored_file_name}")
            self.remove(url)
            return False

        return True

    def get(self, url: str) -> Optional[Path]:
        """
        Return the cached file for a URL, or None.

        A hit refreshes the entry's last access time.
        """
        if not self.has(url):
            return None
        key = self.cache_key(url)
        entry = self._index[key]
        self._index[key] = entry.model_copy(update={"last_accessed_at": self.clock()})
        self._save_index()
        return self._file_path(entry)

    def put(self, url: str, source_path: Path, original_file_name: str) -> Path:
        """
        Copy a file into the cache and record it under the URL.

        Any previous entry for the URL is replaced. Eviction runs afterwards and
        never removes the entry just stored. A file larger than the eviction
        target (``cache_eviction_target_ratio`` of the ceiling) is not cached;
        ``source_path`` is returned unchanged.

        Args:
            url: Source URL
            source_path: Local file to copy
            original_file_name: Name whose extension the cached copy keeps

        Returns:
            Path of the cached copy, or ``source_path`` when the file is too large
        """
        try:
            source_size = Path(source_path).stat().st_size
        except OSError as e:
            raise CacheIOError(f"Failed to read {source_path} for caching: {e}") from e
        if source_size > self.max_size_bytes * self.eviction_target_ratio:
            self.logger.warning(
                f"Not caching {url}: {source_size} bytes exceeds the eviction target of the "
                f"{self.max_size_bytes} byte cache"
            )
            return Path(source_path)

        key = self.cache_key(url)
        stored_file_name = f"{key}{Path(original_file_name).suffix.lower()}"
        cache_path = self.cache_dir / stored_file_name

        previous = self._index.get(key)
        try:
            if previous is not None and previous.stored_file_name != stored_file_name:
                self._file_path(previous).unlink(missing_ok=True)
            if Path(source_path).resolve() != cache_path.resolve():
                shutil.copyfile(source_path, cache_path)
            size_bytes = cache_path.stat().st_size
        except OSError as e:
            raise CacheIOError(f"Failed to store {source_path} in cache: {e}") from e

        now = self.clock()
        self._index[key] = CacheEntry(
            url=url,
            stored_file_name=stored_file_name,
            original_file_name=original_file_name,
            size_bytes=size_bytes,
            created_at=now,
            last_accessed_at=now,
        )
        self._save_index()
        self.logger.debug(f"Cached {url} as {stored_file_name} ({size_bytes} bytes)")

        self.evict_if_needed(keep_url=url)
        return cache_path

    def remove(self, url: str) -> None:
        """Delete the entry and its file (no-op when absent)."""
        key = self.cache_key(url)
        entry = self._index.pop(key, None)
        if entry is None:
            return
        try:
            self._file_path(entry).unlink(missing_ok=True)
        except OSError as e:
            raise CacheIOError(f"Failed to delete cached file {entry.stored_file_name}: {e}") from e
        self._save_index()

    def evict_if_needed(self, keep_url: Optional[str] = None) -> int:
        """
        Evict least recently accessed entries when over the size ceiling.

        Args:
            keep_url: Entry exempt from eviction (the one just inserted)

        Returns:
            Number of entries evicted
        """
        total_size = self.total_size_bytes()
        if total_size <= self.max_size_bytes:
            return 0

        target = self.max_size_bytes * self.eviction_target_ratio
        # sorted() is stable: equal access times keep index order
        candidates = sorted(
            (entry for entry in self._index.values() if entry.url != keep_url),
            key=lambda entry: entry.last_accessed_at,
        )
        evicted = 0
        for entry in candidates:
            if total_size <= target:
                break
            self.remove(entry.url)
            total_size -= entry.size_bytes
            evicted += 1

        self.logger.info(
            f"Cache eviction removed {evicted} files; usage now {total_size / self.max_size_bytes:.1%}"
        )
        return evicted

    def cleanup_expired(self) -> int:
        """
        Remove every entry older than the TTL.

        Returns:
            Number of entries removed
        """
        expired_urls = [entry.url for entry in self._index.values() if self._is_expired(entry)]
        for url in expired_urls:
            self.remove(url)
        if expired_urls:
            self.logger.info(f"Removed {len(expired_urls)} expired cache entries")
        return len(expired_urls)

    def total_size_bytes(self) -> int:
        return sum(entry.size_bytes for entry in self._index.values())

    def stats(self) -> CacheStats:
        """Return file count, total size and usage fraction."""
        total_size = self.total_size_bytes()
        return CacheStats(
            file_count=len(self._index),
            total_size_bytes=total_size,
            max_size_bytes=self.max_size_bytes,
            usage_fraction=total_size / self.max_size_bytes if self.max_size_bytes else 0.0,
        )

    def entries(self) -> list[CacheEntry]:
        """Snapshot of all index entries in insertion order."""
        return list(self._index.values())
