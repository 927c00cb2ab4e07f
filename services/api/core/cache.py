# services/api/core/cache.py
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List

from adapters.base import RowHandle

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5.0


@dataclass
class CacheEntry:
    rows: List[RowHandle]
    timestamp: float


class RowCache:
    """
    Short-TTL, per-sheet cache of fetched rows.

    In-process only: every worker / instance keeps its own entries, so
    read-after-write consistency holds inside one process only. Writers
    must call `invalidate()` after every mutation of a sheet.
    """

    def __init__(
        self,
        loader: Callable[[str], Awaitable[List[RowHandle]]],
        ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._loader = loader
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._generations: Dict[str, int] = {}
        self.stats = {"hits": 0, "misses": 0, "invalidations": 0}

    def _fresh(self, entry: CacheEntry, now: float) -> bool:
        return (now - entry.timestamp) < self.ttl

    async def get_rows(self, collection: str, force_refresh: bool = False) -> List[RowHandle]:
        entry = self._entries.get(collection)
        if not force_refresh and entry is not None and self._fresh(entry, self._clock()):
            self.stats["hits"] += 1
            logger.debug("cache hit: %s (%d rows)", collection, len(entry.rows))
            return entry.rows

        self.stats["misses"] += 1
        logger.debug("cache miss: %s (force_refresh=%s)", collection, force_refresh)
        generation = self._generations.get(collection, 0)
        rows = await self._loader(collection)
        if self._generations.get(collection, 0) == generation:
            self._entries[collection] = CacheEntry(rows=rows, timestamp=self._clock())
        else:
            # invalidated while fetching: these rows may predate the write
            logger.debug("cache store skipped: %s changed during fetch", collection)
        return rows

    def invalidate(self, collection: str) -> None:
        self._generations[collection] = self._generations.get(collection, 0) + 1
        if self._entries.pop(collection, None) is not None:
            logger.debug("cache invalidated: %s", collection)
        self.stats["invalidations"] += 1

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, collection: str) -> bool:
        entry = self._entries.get(collection)
        return entry is not None and self._fresh(entry, self._clock())
