"""In-memory performer repository.

Mirrors the SQLite store's constraints (unique performer name, unique alias,
unique link pair) with plain dicts so services can be tested without a
database.  Not shared across processes.
"""

from __future__ import annotations

import datetime
import itertools

import structlog

from perflink.interfaces.performer_store_provider import IPerformerStoreProvider
from perflink.models.entities import Performer, PerformerAlias, Product
from perflink.models.reports import StoreStats
from perflink.utils.errors import PerformerConflictError

logger = structlog.get_logger(logger_name=__name__)

_NEVER = datetime.datetime.min.replace(tzinfo=datetime.timezone.utc)


def _attempt_order(product: Product) -> tuple[bool, datetime.datetime, int]:
    """Never-attempted products first, then least recently attempted."""
    attempted = product.last_attempted_at
    return attempted is not None, attempted or _NEVER, product.id


class MemoryPerformerStore(IPerformerStoreProvider):
    """Dict-backed implementation of :class:`IPerformerStoreProvider`."""

    def __init__(self) -> None:
        self._products: dict[int, Product] = {}
        self._performers: dict[int, Performer] = {}
        self._aliases: dict[str, PerformerAlias] = {}
        self._links: set[tuple[int, int]] = set()
        self._product_ids = itertools.count(1)
        self._performer_ids = itertools.count(1)
        self._alias_ids = itertools.count(1)

    async def initialize(self) -> None:
        return None

    # -- products -----------------------------------------------------------

    async def upsert_product(
        self,
        original_product_id: str,
        normalized_product_id: str = "",
        asp_name: str = "",
        title: str = "",
    ) -> Product:
        existing = next(
            (p for p in self._products.values() if p.original_product_id == original_product_id),
            None,
        )
        if existing is not None:
            updated = existing.model_copy(
                update={
                    "normalized_product_id": normalized_product_id,
                    "asp_name": asp_name,
                    "title": title,
                }
            )
            self._products[existing.id] = updated
            return updated
        product = Product(
            id=next(self._product_ids),
            original_product_id=original_product_id,
            normalized_product_id=normalized_product_id,
            asp_name=asp_name,
            title=title,
        )
        self._products[product.id] = product
        return product

    async def get_product(self, product_id: int) -> Product | None:
        return self._products.get(product_id)

    async def list_unlinked_products(
        self,
        limit: int,
        asp_name: str | None = None,
    ) -> list[Product]:
        linked = {product_id for product_id, _ in self._links}
        rows = [
            p
            for p in sorted(self._products.values(), key=_attempt_order)
            if p.id not in linked and (not asp_name or p.asp_name == asp_name)
        ]
        return rows[:limit]

    async def mark_attempted(
        self,
        product_ids: list[int],
        attempted_at: datetime.datetime | None = None,
    ) -> None:
        stamp = attempted_at or datetime.datetime.now(datetime.timezone.utc)
        for product_id in product_ids:
            product = self._products.get(product_id)
            if product is not None:
                self._products[product_id] = product.model_copy(
                    update={"last_attempted_at": stamp}
                )

    # -- performers ---------------------------------------------------------

    async def get_performer(self, performer_id: int) -> Performer | None:
        return self._performers.get(performer_id)

    async def get_performer_by_name(self, name: str) -> Performer | None:
        return next((p for p in self._performers.values() if p.name == name), None)

    async def get_performer_by_alias(self, alias_name: str) -> Performer | None:
        alias = self._aliases.get(alias_name)
        if alias is None:
            return None
        return self._performers.get(alias.performer_id)

    async def insert_performer(self, name: str) -> Performer:
        if await self.get_performer_by_name(name) is not None:
            raise PerformerConflictError(
                f"performer {name!r} already exists", provider_name=self.get_provider_name()
            )
        performer = Performer(
            id=next(self._performer_ids),
            name=name,
            created_at=datetime.datetime.now(datetime.timezone.utc),
        )
        self._performers[performer.id] = performer
        return performer

    async def rename_performer(self, performer_id: int, name: str) -> None:
        holder = await self.get_performer_by_name(name)
        if holder is not None and holder.id != performer_id:
            raise PerformerConflictError(
                f"performer {name!r} already exists", provider_name=self.get_provider_name()
            )
        performer = self._performers.get(performer_id)
        if performer is not None:
            self._performers[performer_id] = performer.model_copy(update={"name": name})

    async def list_performers(self) -> list[Performer]:
        return sorted(self._performers.values(), key=lambda p: p.id)

    async def delete_performer(self, performer_id: int) -> int:
        doomed = {pair for pair in self._links if pair[1] == performer_id}
        self._links -= doomed
        self._aliases = {
            k: a for k, a in self._aliases.items() if a.performer_id != performer_id
        }
        self._performers.pop(performer_id, None)
        return len(doomed)

    # -- aliases ------------------------------------------------------------

    async def add_alias(self, performer_id: int, alias_name: str, source: str = "") -> bool:
        if alias_name in self._aliases:
            return False
        self._aliases[alias_name] = PerformerAlias(
            id=next(self._alias_ids),
            performer_id=performer_id,
            alias_name=alias_name,
            source=source,
        )
        return True

    async def list_aliases(self, performer_id: int | None = None) -> list[PerformerAlias]:
        rows = sorted(self._aliases.values(), key=lambda a: a.id)
        if performer_id is None:
            return rows
        return [a for a in rows if a.performer_id == performer_id]

    async def delete_dangling_aliases(self, dry_run: bool = False) -> int:
        dangling = [k for k, a in self._aliases.items() if a.performer_id not in self._performers]
        if not dry_run:
            for key in dangling:
                del self._aliases[key]
        return len(dangling)

    # -- links --------------------------------------------------------------

    async def link(self, product_id: int, performer_id: int) -> bool:
        pair = (product_id, performer_id)
        if pair in self._links:
            return False
        self._links.add(pair)
        return True

    async def get_product_performer_ids(self, product_id: int) -> list[int]:
        return sorted(perf for prod, perf in self._links if prod == product_id)

    async def get_performer_product_ids(self, performer_id: int) -> list[int]:
        return sorted(prod for prod, perf in self._links if perf == performer_id)

    async def delete_orphan_links(self, dry_run: bool = False) -> int:
        orphans = {
            (prod, perf)
            for prod, perf in self._links
            if perf not in self._performers or prod not in self._products
        }
        if not dry_run:
            self._links -= orphans
        return len(orphans)

    # -- maintenance --------------------------------------------------------

    async def merge_performer(self, survivor_id: int, duplicate_id: int) -> dict[str, int]:
        if survivor_id == duplicate_id:
            return {"dropped_conflicting_links": 0, "relinked": 0, "migrated_aliases": 0}
        survivor_products = {prod for prod, perf in self._links if perf == survivor_id}
        duplicate_links = {(prod, perf) for prod, perf in self._links if perf == duplicate_id}

        conflicting = {pair for pair in duplicate_links if pair[0] in survivor_products}
        self._links -= conflicting
        remaining = duplicate_links - conflicting
        self._links -= remaining
        self._links |= {(prod, survivor_id) for prod, _ in remaining}

        migrated = 0
        for key, alias in list(self._aliases.items()):
            if alias.performer_id == duplicate_id:
                self._aliases[key] = alias.model_copy(update={"performer_id": survivor_id})
                migrated += 1

        self._performers.pop(duplicate_id, None)
        return {
            "dropped_conflicting_links": len(conflicting),
            "relinked": len(remaining),
            "migrated_aliases": migrated,
        }

    async def stats(self) -> StoreStats:
        return StoreStats(
            products=len(self._products),
            linked_products=len({prod for prod, _ in self._links}),
            performers=len(self._performers),
            aliases=len(self._aliases),
            links=len(self._links),
        )

    def get_provider_name(self) -> str:
        return "memory_performer_store"
