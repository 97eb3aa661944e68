"""In-memory lookup cache backed by ``cachetools.LRUCache``.

Used by unit tests and one-off ``perflink variants``-style experiments.
Entries are bounded by ``max_size``; an evicted entry is simply a cache miss
and will be re-queried, which is harmless because the cache is never
authoritative.
"""

from __future__ import annotations

import datetime

import structlog
from cachetools import LRUCache

from perflink.interfaces.lookup_cache_provider import ILookupCacheProvider
from perflink.models.entities import LookupCacheEntry
from perflink.utils.code_normalizer import normalize_code_key

logger = structlog.get_logger(logger_name=__name__)


class MemoryLookupCache(ILookupCacheProvider):
    """Process-local lookup cache.

    Parameters
    ----------
    max_size:
        Maximum number of (code, source) entries before the least recently
        used one is evicted.
    """

    def __init__(self, max_size: int = 100_000) -> None:
        self._entries: LRUCache[tuple[str, str], LookupCacheEntry] = LRUCache(maxsize=max_size)

    async def initialize(self) -> None:
        return None

    async def get(self, code: str, source: str) -> list[str] | None:
        entry = self._entries.get((normalize_code_key(code), source))
        if entry is None:
            logger.debug("lookup_cache_miss", code=code, source=source)
            return None
        logger.debug("lookup_cache_hit", code=code, source=source)
        return list(entry.names)

    async def put(self, code: str, source: str, names: list[str]) -> bool:
        key = normalize_code_key(code)
        if not key:
            return False
        inserted = (key, source) not in self._entries
        self._entries[(key, source)] = LookupCacheEntry(
            product_code=code.strip().upper(),
            code_key=key,
            source=source,
            names=list(names),
            updated_at=datetime.datetime.now(datetime.timezone.utc),
        )
        return inserted

    async def delete(self, code: str, source: str) -> bool:
        return self._entries.pop((normalize_code_key(code), source), None) is not None

    async def list_entries(self, source: str | None = None) -> list[LookupCacheEntry]:
        return [e for e in self._entries.values() if source is None or e.source == source]

    async def count_by_source(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for entry in self._entries.values():
            counts[entry.source] = counts.get(entry.source, 0) + 1
        return dict(sorted(counts.items()))

    def get_provider_name(self) -> str:
        return "memory_lookup_cache"
