"""Lookup cache providers.

SQLiteLookupCache persists (code, source) -> names in the shared perflink
database.  MemoryLookupCache is an LRU-bounded dict for tests and
throwaway runs.
"""

from perflink.providers.lookup_cache.memory_lookup_cache import MemoryLookupCache
from perflink.providers.lookup_cache.sqlite_lookup_cache import SQLiteLookupCache

__all__ = ["MemoryLookupCache", "SQLiteLookupCache"]
