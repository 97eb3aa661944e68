"""Abstract base class for live performer-index sources.

An index source answers "which performer names are listed for this code?"
against one external wiki/catalog.  Fetching and markup parsing belong to
the adapter; the resolver only sees already-extracted name strings.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class IPerformerIndexSource(ABC):
    """Contract for one live performer index."""

    @abstractmethod
    async def lookup(self, code: str) -> list[str]:
        """Return the raw candidate names listed for *code*.

        Parameters
        ----------
        code:
            One code variant, already in canonical rendering.

        Returns
        -------
        list[str]
            Raw, unvalidated names; empty when the index has no entry.

        Raises
        ------
        SourceUnavailableError
            On network failure, timeout or a non-2xx response.
        """

    @abstractmethod
    def get_source_name(self) -> str:
        """Return the configured source name (the cache's ``source`` key)."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the source is enabled and configured."""
