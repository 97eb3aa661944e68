"""Performer repository providers.

SQLitePerformerStore is the production store (products, performers, aliases
and links in one SQLite file).  MemoryPerformerStore mirrors its uniqueness
rules with dicts for service-level tests.
"""

from perflink.providers.performer_store.memory_performer_store import MemoryPerformerStore
from perflink.providers.performer_store.sqlite_performer_store import SQLitePerformerStore

__all__ = ["MemoryPerformerStore", "SQLitePerformerStore"]
