"""
File-backed JSON cache

Storage is abstracted behind ``KeyValueStore`` so another backend can be
substituted without touching call sites. ``FileStore`` keeps one JSON file per
key under the database directory; ``CacheStore`` layers TTL checks on top.

There is no locking. Concurrent writers to the same key race and the last
write wins, which is acceptable because every payload can be recomputed from
upstream.
"""

import asyncio
import fnmatch
import json
import logging
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, List, Optional

from ..core.exceptions import CacheCorrupt
from ..core.models import CacheEntry
from .keys import RATE_STATE_PATTERN


class KeyValueStore(ABC):
    """Minimal async key-value interface used by the cache and rate limiter"""

    @abstractmethod
    async def read(self, key: str) -> Optional[CacheEntry]:
        """Return the entry, None when absent, or raise CacheCorrupt"""

    @abstractmethod
    async def write(self, key: str, payload: Any) -> None:
        """Store payload under key, replacing any previous value"""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove key; returns False when it did not exist"""

    @abstractmethod
    async def keys(self, pattern: str = "*") -> List[str]:
        """Sorted keys matching a glob pattern"""


class FileStore(KeyValueStore):
    """One pretty-printed JSON file per key"""

    def __init__(self, root: Path):
        self.root = Path(root)

    def _ensure_root(self):
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        if not key or '/' in key or '\\' in key or key in ('.', '..'):
            raise ValueError(f"Invalid cache key: {key!r}")
        return self.root / key

    def _read_sync(self, key: str) -> Optional[CacheEntry]:
        self._ensure_root()
        path = self._path(key)
        if not path.exists():
            return None
        try:
            written_at = path.stat().st_mtime
            with open(path, 'r', encoding='utf-8') as f:
                payload = json.load(f)
        except (OSError, ValueError) as e:
            raise CacheCorrupt(key, str(e)) from e
        return CacheEntry(key=key, payload=payload, written_at=written_at)

    def _write_sync(self, key: str, payload: Any):
        self._ensure_root()
        path = self._path(key)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(payload, f, indent=2)

    def _delete_sync(self, key: str) -> bool:
        path = self._path(key)
        if not path.exists():
            return False
        path.unlink()
        return True

    def _keys_sync(self, pattern: str) -> List[str]:
        self._ensure_root()
        return sorted(p.name for p in self.root.glob(pattern) if p.is_file())

    async def read(self, key: str) -> Optional[CacheEntry]:
        return await asyncio.to_thread(self._read_sync, key)

    async def write(self, key: str, payload: Any) -> None:
        await asyncio.to_thread(self._write_sync, key, payload)

    async def delete(self, key: str) -> bool:
        return await asyncio.to_thread(self._delete_sync, key)

    async def keys(self, pattern: str = "*") -> List[str]:
        return await asyncio.to_thread(self._keys_sync, pattern)


class InMemoryStore(KeyValueStore):
    """Dictionary-backed store for single-process use and tests"""

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self._entries: dict = {}

    async def read(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    async def write(self, key: str, payload: Any) -> None:
        # Round-trip through JSON so stored payloads behave like file-backed ones
        self._entries[key] = CacheEntry(key=key, payload=json.loads(json.dumps(payload)),
                                        written_at=self.clock())

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def keys(self, pattern: str = "*") -> List[str]:
        return sorted(k for k in self._entries if fnmatch.fnmatch(k, pattern))


class CacheStore:
    """TTL cache over a KeyValueStore"""

    def __init__(self, store: KeyValueStore, clock: Callable[[], float] = time.time):
        self.store = store
        self.clock = clock

    async def get(self, key: str, ttl_hours: Optional[float]) -> Optional[Any]:
        """
        Return the cached payload or None.

        An entry is expired once ``now - written_at >= ttl_hours``. Passing
        ``ttl_hours=None`` reads the entry regardless of age. Unreadable
        entries count as misses.
        """
        try:
            entry = await self.store.read(key)
        except CacheCorrupt as e:
            logging.warning(f"Ignoring unreadable cache entry {key}: {e.details}")
            return None

        if entry is None:
            return None

        if ttl_hours is not None:
            age_hours = (self.clock() - entry.written_at) / 3600.0
            if age_hours >= ttl_hours:
                logging.debug(f"Cache entry {key} expired ({age_hours:.2f}h >= {ttl_hours}h)")
                return None

        logging.debug(f"Cache hit for {key}")
        return entry.payload

    async def put(self, key: str, payload: Any) -> None:
        await self.store.write(key, payload)
        logging.debug(f"Cached {key}")

    async def clear(self, key: str) -> bool:
        removed = await self.store.delete(key)
        if removed:
            logging.info(f"Cleared cache entry {key}")
        return removed

    async def clear_all(self, pattern: str = "*.json",
                        keep: Optional[str] = RATE_STATE_PATTERN) -> List[str]:
        """
        Remove every cache entry matching pattern; returns removed keys.

        Entries matching ``keep`` survive, so call budgets are not reset by a
        cache wipe.
        """
        removed = []
        for key in await self.store.keys(pattern):
            if keep and fnmatch.fnmatch(key, keep):
                continue
            if await self.store.delete(key):
                removed.append(key)
        logging.info(f"Cleared {len(removed)} cache entries")
        return removed

    async def keys(self, pattern: str = "*") -> List[str]:
        return await self.store.keys(pattern)

    async def read_entry(self, key: str) -> Optional[CacheEntry]:
        """Raw entry access; raises CacheCorrupt for unreadable entries"""
        return await self.store.read(key)


class MemoryCache:
    """
    Single in-process value with an explicit TTL.

    Holds the value, the time of its last refresh and its TTL as fields so the
    owner decides when to refresh instead of consulting module globals.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.value: Any = None
        self.refreshed_at: float = 0.0

    def is_fresh(self) -> bool:
        return self.value is not None and (self.clock() - self.refreshed_at) < self.ttl_seconds

    def get(self) -> Optional[Any]:
        return self.value if self.is_fresh() else None

    def set(self, value: Any):
        self.value = value
        self.refreshed_at = self.clock()

    def invalidate(self):
        self.value = None
        self.refreshed_at = 0.0
