"""Abstract base class for the performer lookup cache.

The lookup cache memoizes external index answers: (product code, source)
-> ordered candidate names.  It is never authoritative; every hit is run
through the name validator again before it is trusted.  Implementations
key entries on :func:`~perflink.utils.code_normalizer.normalize_code_key`
so that ``GVH-802`` and ``GVH802`` share one entry per source.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from perflink.models.entities import LookupCacheEntry


class ILookupCacheProvider(ABC):
    """Contract for the persistent (code, source) -> names memo."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create backing storage if needed.  Safe to call repeatedly."""

    @abstractmethod
    async def get(self, code: str, source: str) -> list[str] | None:
        """Return the cached candidate names for *code* from *source*.

        Parameters
        ----------
        code:
            Any rendering of the product code; it is normalized to its key.
        source:
            Index name, as configured.

        Returns
        -------
        list[str] or None
            The stored names (possibly empty) on a hit, ``None`` on a miss.
        """

    @abstractmethod
    async def put(self, code: str, source: str, names: list[str]) -> bool:
        """Upsert the names for (*code*, *source*).

        A second put for the same key overwrites the stored list; the latest
        crawl is authoritative.

        Returns
        -------
        bool
            ``True`` when a new entry was inserted, ``False`` on overwrite.
        """

    @abstractmethod
    async def delete(self, code: str, source: str) -> bool:
        """Remove the entry for (*code*, *source*).  Returns whether it existed."""

    @abstractmethod
    async def list_entries(self, source: str | None = None) -> list[LookupCacheEntry]:
        """Return all entries, optionally restricted to one source."""

    @abstractmethod
    async def count_by_source(self) -> dict[str, int]:
        """Return the number of entries per source."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""
