"""Public interface definitions for every swappable collaborator.

Services depend only on these abstract base classes; concrete adapters are
built in ``perflink/main.py`` and injected, so tests can substitute the
in-memory implementations.

    Interface                  ->  Concrete implementations (perflink/providers/)
    -------------------------------------------------------------------------
    ILookupCacheProvider       ->  SQLiteLookupCache, MemoryLookupCache
    IPerformerStoreProvider    ->  SQLitePerformerStore, MemoryPerformerStore
    IPerformerIndexSource      ->  JsonIndexSource, HtmlIndexSource
"""

from perflink.interfaces.index_source import IPerformerIndexSource
from perflink.interfaces.lookup_cache_provider import ILookupCacheProvider
from perflink.interfaces.performer_store_provider import IPerformerStoreProvider

__all__ = [
    "ILookupCacheProvider",
    "IPerformerIndexSource",
    "IPerformerStoreProvider",
]
