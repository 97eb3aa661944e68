"""Abstract base class for the performer repository.

One repository covers the four tables the pipeline reads and writes:
products (read, plus ``upsert_product`` for ingestion/tests), performers,
performer aliases and product/performer links.  Services receive it by
injection; the SQLite adapter is used in production and the in-memory
adapter in tests.

Every write is individually idempotent or guarded by a uniqueness
constraint, which is what makes partial batch progress safe.
"""

from __future__ import annotations

import datetime
from abc import ABC, abstractmethod

from perflink.models.entities import Performer, PerformerAlias, Product
from perflink.models.reports import StoreStats


class IPerformerStoreProvider(ABC):
    """Contract for performer identity and link persistence.

    Implementations raise :class:`~perflink.utils.errors.PerformerConflictError`
    on a duplicate performer name and
    :class:`~perflink.utils.errors.PersistenceError` for any other storage
    failure.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables and indices if they don't exist."""

    # -- products -----------------------------------------------------------

    @abstractmethod
    async def upsert_product(
        self,
        original_product_id: str,
        normalized_product_id: str = "",
        asp_name: str = "",
        title: str = "",
    ) -> Product:
        """Insert or update a product keyed on *original_product_id*."""

    @abstractmethod
    async def get_product(self, product_id: int) -> Product | None:
        """Return the product with *product_id*, or ``None``."""

    @abstractmethod
    async def list_unlinked_products(
        self,
        limit: int,
        asp_name: str | None = None,
    ) -> list[Product]:
        """Return up to *limit* products with no performer link.

        Products never attempted come first (by id), then the least recently
        attempted, so unresolvable products cannot starve the rest.
        """

    @abstractmethod
    async def mark_attempted(
        self,
        product_ids: list[int],
        attempted_at: datetime.datetime | None = None,
    ) -> None:
        """Stamp *product_ids* as attempted at *attempted_at* (default: now, UTC)."""

    # -- performers ---------------------------------------------------------

    @abstractmethod
    async def get_performer(self, performer_id: int) -> Performer | None:
        """Return the performer with *performer_id*, or ``None``."""

    @abstractmethod
    async def get_performer_by_name(self, name: str) -> Performer | None:
        """Exact lookup on the canonical name."""

    @abstractmethod
    async def get_performer_by_alias(self, alias_name: str) -> Performer | None:
        """Return the performer an alias points at, or ``None``."""

    @abstractmethod
    async def insert_performer(self, name: str) -> Performer:
        """Insert a new performer.

        Raises
        ------
        PerformerConflictError
            If a performer with *name* already exists.
        """

    @abstractmethod
    async def rename_performer(self, performer_id: int, name: str) -> None:
        """Change a performer's canonical name.

        Raises
        ------
        PerformerConflictError
            If another performer already holds *name*.
        """

    @abstractmethod
    async def list_performers(self) -> list[Performer]:
        """Return every performer ordered by id."""

    @abstractmethod
    async def delete_performer(self, performer_id: int) -> int:
        """Delete a performer with its links and aliases.

        Returns
        -------
        int
            The number of product links removed.
        """

    # -- aliases ------------------------------------------------------------

    @abstractmethod
    async def add_alias(self, performer_id: int, alias_name: str, source: str = "") -> bool:
        """Record *alias_name* for *performer_id*.

        Returns ``False`` when the alias already exists (for any performer);
        an alias never moves implicitly.
        """

    @abstractmethod
    async def list_aliases(self, performer_id: int | None = None) -> list[PerformerAlias]:
        """Return aliases, optionally for a single performer."""

    @abstractmethod
    async def delete_dangling_aliases(self, dry_run: bool = False) -> int:
        """Remove aliases whose performer no longer exists.  Returns the count."""

    # -- links --------------------------------------------------------------

    @abstractmethod
    async def link(self, product_id: int, performer_id: int) -> bool:
        """Insert the (product, performer) pair if absent.  Returns ``created``."""

    @abstractmethod
    async def get_product_performer_ids(self, product_id: int) -> list[int]:
        """Return the performer ids linked to *product_id*."""

    @abstractmethod
    async def get_performer_product_ids(self, performer_id: int) -> list[int]:
        """Return the product ids linked to *performer_id*."""

    @abstractmethod
    async def delete_orphan_links(self, dry_run: bool = False) -> int:
        """Remove links pointing at a missing product or performer."""

    # -- maintenance --------------------------------------------------------

    @abstractmethod
    async def merge_performer(self, survivor_id: int, duplicate_id: int) -> dict[str, int]:
        """Fold *duplicate_id* into *survivor_id* in a single transaction.

        Steps, in this order:

        1. delete the duplicate's links to products already linked to the survivor
        2. re-point the duplicate's remaining links to the survivor
        3. re-point the duplicate's aliases (dropping ones the survivor has)
        4. delete the duplicate performer row

        Returns
        -------
        dict[str, int]
            ``dropped_conflicting_links``, ``relinked`` and ``migrated_aliases``.
        """

    @abstractmethod
    async def stats(self) -> StoreStats:
        """Return table counts (cache counts are filled in by the caller)."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""
