# src/cache/json_store.py — v1
"""JSON file-based cache store (one directory per namespace, one file per key).

Filenames come from fingerprint.cache_filename(): a sanitized key, or the
SHA-256 of keys longer than the hash threshold. Distinct raw keys that map to
the same filename collide; the later write wins and the displaced key reads
as a miss because every record carries its raw key.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from pydantic import ValidationError

from patternsearch.cache.base_cache_store import BaseCacheStore, CacheStoreError
from patternsearch.cache.fingerprint import DEFAULT_HASH_THRESHOLD, cache_filename
from patternsearch.cache.models import CacheEntry

logger = logging.getLogger(__name__)


class JsonCacheStore(BaseCacheStore):
    """File-based cache store using JSON files."""

    def __init__(
        self, cache_dir: Path | str, hash_threshold: int = DEFAULT_HASH_THRESHOLD
    ) -> None:
        self._root = Path(cache_dir).expanduser()
        self._root.mkdir(parents=True, exist_ok=True)
        self._hash_threshold = hash_threshold

    @property
    def root(self) -> Path:
        return self._root

    async def get(self, key: str) -> CacheEntry | None:
        """Retrieve cache entry by key; unreadable records read as None."""
        path = self._entry_path(key)
        entry = self._read(path)
        if entry is None:
            return None
        if entry.key != key:
            logger.debug("Cache file %s holds a different key, treating as miss", path.name)
            return None
        return entry

    async def put(self, entry: CacheEntry) -> None:
        """Store a cache entry (write to temp file, then atomic rename)."""
        path = self._entry_path(entry.key)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            data = entry.model_dump_json()
            self._root.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(data, encoding="utf-8")
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as e:
            tmp_path.unlink(missing_ok=True)
            raise CacheStoreError(f"Failed to write cache entry {entry.key!r}: {e}") from e

    async def delete(self, key: str) -> None:
        """Remove a cache entry."""
        path = self._entry_path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise CacheStoreError(f"Failed to delete cache entry {key!r}: {e}") from e

    async def sweep_expired(self, now: float) -> list[str]:
        """Remove expired and corrupt files.

        Returns raw keys of expired records and file names of corrupt ones.
        """
        removed: list[str] = []
        if not self._root.is_dir():
            return removed

        for path in self._root.glob("*.json"):
            entry = self._read(path)
            if entry is not None and entry.is_live(now):
                continue
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning("Failed to remove cache file %s: %s", path.name, e)
                continue
            removed.append(entry.key if entry is not None else path.name)

        return removed

    async def clear(self) -> None:
        """Remove every cache file of this namespace."""
        if not self._root.is_dir():
            return
        for path in self._root.iterdir():
            if path.is_file():
                try:
                    path.unlink(missing_ok=True)
                except OSError as e:
                    raise CacheStoreError(f"Failed to clear {path.name}: {e}") from e

    def _read(self, path: Path) -> CacheEntry | None:
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return CacheEntry.model_validate(data)
        except (OSError, ValueError, ValidationError) as e:
            logger.warning("Failed to read cache file %s: %s", path.name, e)
            return None

    def _entry_path(self, key: str) -> Path:
        """Return file path for a cache key."""
        return self._root / f"{cache_filename(key, self._hash_threshold)}.json"
