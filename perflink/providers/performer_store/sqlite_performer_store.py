"""SQLite-backed performer repository.

Owns four tables in the perflink database:

- ``products``            -- catalog rows; the pipeline reads them and
                             stamps ``last_attempted_at``
- ``performers``          -- canonical identities, ``name`` UNIQUE
- ``performer_aliases``   -- secondary spellings, ``alias_name`` UNIQUE
- ``product_performers``  -- (product_id, performer_id) PRIMARY KEY

No foreign keys are declared: dangling aliases and orphan links are
detected and purged by the dedup job instead of being prevented.

Every method opens its own ``aiosqlite`` connection, so the store is safe to
share between concurrent tasks; uniqueness constraints, not locks, keep
concurrent writers consistent.
"""

from __future__ import annotations

import datetime
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite
import structlog

from perflink.interfaces.performer_store_provider import IPerformerStoreProvider
from perflink.models.entities import Performer, PerformerAlias, Product
from perflink.models.reports import StoreStats
from perflink.utils.errors import PerformerConflictError, PersistenceError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/perflink.db")

_CREATE_PRODUCTS_TABLE = """\
CREATE TABLE IF NOT EXISTS products (
    id                     INTEGER PRIMARY KEY AUTOINCREMENT,
    original_product_id    TEXT    NOT NULL UNIQUE,
    normalized_product_id  TEXT    NOT NULL DEFAULT '',
    asp_name               TEXT    NOT NULL DEFAULT '',
    title                  TEXT    NOT NULL DEFAULT '',
    last_attempted_at      TEXT,
    created_at             TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
"""

_CREATE_PERFORMERS_TABLE = """\
CREATE TABLE IF NOT EXISTS performers (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    name        TEXT    NOT NULL UNIQUE,
    created_at  TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
"""

_CREATE_ALIASES_TABLE = """\
CREATE TABLE IF NOT EXISTS performer_aliases (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    performer_id  INTEGER NOT NULL,
    alias_name    TEXT    NOT NULL UNIQUE,
    source        TEXT    NOT NULL DEFAULT '',
    created_at    TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
"""

_CREATE_LINKS_TABLE = """\
CREATE TABLE IF NOT EXISTS product_performers (
    product_id    INTEGER NOT NULL,
    performer_id  INTEGER NOT NULL,
    created_at    TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    PRIMARY KEY (product_id, performer_id)
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_products_asp ON products(asp_name);",
    "CREATE INDEX IF NOT EXISTS idx_products_attempted ON products(last_attempted_at);",
    "CREATE INDEX IF NOT EXISTS idx_aliases_performer ON performer_aliases(performer_id);",
    "CREATE INDEX IF NOT EXISTS idx_links_performer ON product_performers(performer_id);",
]

_UPSERT_PRODUCT_SQL = """\
INSERT INTO products (original_product_id, normalized_product_id, asp_name, title)
VALUES (?, ?, ?, ?)
ON CONFLICT(original_product_id)
DO UPDATE SET normalized_product_id = excluded.normalized_product_id,
              asp_name              = excluded.asp_name,
              title                 = excluded.title;
"""

_PRODUCT_COLUMNS = (
    "id, original_product_id, normalized_product_id, asp_name, title, last_attempted_at"
)

# Merge steps; order matters for the (product_id, performer_id) key.
_MERGE_DROP_CONFLICTS_SQL = """\
DELETE FROM product_performers
WHERE performer_id = ?
  AND product_id IN (SELECT product_id FROM product_performers WHERE performer_id = ?);
"""
_MERGE_REPOINT_LINKS_SQL = "UPDATE product_performers SET performer_id = ? WHERE performer_id = ?;"
_MERGE_REPOINT_ALIASES_SQL = "UPDATE performer_aliases SET performer_id = ? WHERE performer_id = ?;"

_DANGLING_ALIASES_WHERE = "performer_id NOT IN (SELECT id FROM performers)"
_ORPHAN_LINKS_WHERE = (
    "performer_id NOT IN (SELECT id FROM performers) "
    "OR product_id NOT IN (SELECT id FROM products)"
)


def _parse_timestamp(value: str | None) -> datetime.datetime | None:
    if not value:
        return None
    return datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))


def _row_to_product(row: aiosqlite.Row) -> Product:
    return Product(
        id=row["id"],
        original_product_id=row["original_product_id"],
        normalized_product_id=row["normalized_product_id"],
        asp_name=row["asp_name"],
        title=row["title"],
        last_attempted_at=_parse_timestamp(row["last_attempted_at"]),
    )


def _row_to_performer(row: aiosqlite.Row) -> Performer:
    return Performer(
        id=row["id"],
        name=row["name"],
        created_at=_parse_timestamp(row["created_at"]),
    )


class SQLitePerformerStore(IPerformerStoreProvider):
    """SQLite-backed performer identity, alias and link persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                yield db
        except aiosqlite.Error as exc:
            raise PersistenceError(str(exc), provider_name=self.get_provider_name()) from exc

    async def initialize(self) -> None:
        """Create tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with self._connect() as db:
            await db.execute("PRAGMA journal_mode=WAL;")
            await db.execute(_CREATE_PRODUCTS_TABLE)
            await db.execute(_CREATE_PERFORMERS_TABLE)
            await db.execute(_CREATE_ALIASES_TABLE)
            await db.execute(_CREATE_LINKS_TABLE)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("performer_store_initialized", path=str(self._db_path))

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    async def upsert_product(
        self,
        original_product_id: str,
        normalized_product_id: str = "",
        asp_name: str = "",
        title: str = "",
    ) -> Product:
        async with self._connect() as db:
            await db.execute(
                _UPSERT_PRODUCT_SQL,
                (original_product_id, normalized_product_id, asp_name, title),
            )
            await db.commit()
            cursor = await db.execute(
                f"SELECT {_PRODUCT_COLUMNS} FROM products WHERE original_product_id = ?",
                (original_product_id,),
            )
            row = await cursor.fetchone()
        return _row_to_product(row)

    async def get_product(self, product_id: int) -> Product | None:
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {_PRODUCT_COLUMNS} FROM products WHERE id = ?", (product_id,)
            )
            row = await cursor.fetchone()
        return _row_to_product(row) if row else None

    async def list_unlinked_products(
        self,
        limit: int,
        asp_name: str | None = None,
    ) -> list[Product]:
        query = (
            f"SELECT {_PRODUCT_COLUMNS} FROM products p "
            "WHERE NOT EXISTS (SELECT 1 FROM product_performers pp WHERE pp.product_id = p.id)"
        )
        params: list = []
        if asp_name:
            query += " AND p.asp_name = ?"
            params.append(asp_name)
        # Never-attempted rows first, then least recently attempted.
        query += " ORDER BY p.last_attempted_at IS NOT NULL, p.last_attempted_at, p.id LIMIT ?"
        params.append(limit)
        async with self._connect() as db:
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()
        return [_row_to_product(r) for r in rows]

    async def mark_attempted(
        self,
        product_ids: list[int],
        attempted_at: datetime.datetime | None = None,
    ) -> None:
        if not product_ids:
            return
        stamp = (attempted_at or datetime.datetime.now(datetime.timezone.utc)).isoformat()
        async with self._connect() as db:
            await db.executemany(
                "UPDATE products SET last_attempted_at = ? WHERE id = ?",
                [(stamp, product_id) for product_id in product_ids],
            )
            await db.commit()

    # ------------------------------------------------------------------
    # Performers
    # ------------------------------------------------------------------

    async def get_performer(self, performer_id: int) -> Performer | None:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT id, name, created_at FROM performers WHERE id = ?", (performer_id,)
            )
            row = await cursor.fetchone()
        return _row_to_performer(row) if row else None

    async def get_performer_by_name(self, name: str) -> Performer | None:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT id, name, created_at FROM performers WHERE name = ?", (name,)
            )
            row = await cursor.fetchone()
        return _row_to_performer(row) if row else None

    async def get_performer_by_alias(self, alias_name: str) -> Performer | None:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT p.id, p.name, p.created_at FROM performer_aliases a "
                "JOIN performers p ON p.id = a.performer_id WHERE a.alias_name = ?",
                (alias_name,),
            )
            row = await cursor.fetchone()
        return _row_to_performer(row) if row else None

    async def insert_performer(self, name: str) -> Performer:
        async with self._connect() as db:
            try:
                cursor = await db.execute("INSERT INTO performers (name) VALUES (?)", (name,))
                await db.commit()
            except aiosqlite.IntegrityError as exc:
                raise PerformerConflictError(
                    f"performer {name!r} already exists",
                    provider_name=self.get_provider_name(),
                ) from exc
            performer_id = cursor.lastrowid
            cursor = await db.execute(
                "SELECT id, name, created_at FROM performers WHERE id = ?", (performer_id,)
            )
            row = await cursor.fetchone()
        return _row_to_performer(row)

    async def rename_performer(self, performer_id: int, name: str) -> None:
        async with self._connect() as db:
            try:
                await db.execute(
                    "UPDATE performers SET name = ? WHERE id = ?", (name, performer_id)
                )
                await db.commit()
            except aiosqlite.IntegrityError as exc:
                raise PerformerConflictError(
                    f"performer {name!r} already exists",
                    provider_name=self.get_provider_name(),
                ) from exc

    async def list_performers(self) -> list[Performer]:
        async with self._connect() as db:
            cursor = await db.execute("SELECT id, name, created_at FROM performers ORDER BY id")
            rows = await cursor.fetchall()
        return [_row_to_performer(r) for r in rows]

    async def delete_performer(self, performer_id: int) -> int:
        async with self._connect() as db:
            cursor = await db.execute(
                "DELETE FROM product_performers WHERE performer_id = ?", (performer_id,)
            )
            removed_links = cursor.rowcount
            await db.execute("DELETE FROM performer_aliases WHERE performer_id = ?", (performer_id,))
            await db.execute("DELETE FROM performers WHERE id = ?", (performer_id,))
            await db.commit()
        return removed_links

    # ------------------------------------------------------------------
    # Aliases
    # ------------------------------------------------------------------

    async def add_alias(self, performer_id: int, alias_name: str, source: str = "") -> bool:
        async with self._connect() as db:
            cursor = await db.execute(
                "INSERT OR IGNORE INTO performer_aliases (performer_id, alias_name, source) "
                "VALUES (?, ?, ?)",
                (performer_id, alias_name, source),
            )
            await db.commit()
            created = cursor.rowcount > 0
        return created

    async def list_aliases(self, performer_id: int | None = None) -> list[PerformerAlias]:
        query = "SELECT id, performer_id, alias_name, source FROM performer_aliases"
        params: tuple = ()
        if performer_id is not None:
            query += " WHERE performer_id = ?"
            params = (performer_id,)
        query += " ORDER BY id"
        async with self._connect() as db:
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()
        return [
            PerformerAlias(
                id=r["id"],
                performer_id=r["performer_id"],
                alias_name=r["alias_name"],
                source=r["source"],
            )
            for r in rows
        ]

    async def delete_dangling_aliases(self, dry_run: bool = False) -> int:
        async with self._connect() as db:
            if dry_run:
                cursor = await db.execute(
                    f"SELECT COUNT(*) FROM performer_aliases WHERE {_DANGLING_ALIASES_WHERE}"
                )
                return (await cursor.fetchone())[0]
            cursor = await db.execute(f"DELETE FROM performer_aliases WHERE {_DANGLING_ALIASES_WHERE}")
            await db.commit()
            return cursor.rowcount

    # ------------------------------------------------------------------
    # Links
    # ------------------------------------------------------------------

    async def link(self, product_id: int, performer_id: int) -> bool:
        async with self._connect() as db:
            cursor = await db.execute(
                "INSERT INTO product_performers (product_id, performer_id) VALUES (?, ?) "
                "ON CONFLICT(product_id, performer_id) DO NOTHING",
                (product_id, performer_id),
            )
            await db.commit()
            created = cursor.rowcount > 0
        return created

    async def get_product_performer_ids(self, product_id: int) -> list[int]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT performer_id FROM product_performers WHERE product_id = ? "
                "ORDER BY performer_id",
                (product_id,),
            )
            rows = await cursor.fetchall()
        return [r["performer_id"] for r in rows]

    async def get_performer_product_ids(self, performer_id: int) -> list[int]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT product_id FROM product_performers WHERE performer_id = ? "
                "ORDER BY product_id",
                (performer_id,),
            )
            rows = await cursor.fetchall()
        return [r["product_id"] for r in rows]

    async def delete_orphan_links(self, dry_run: bool = False) -> int:
        async with self._connect() as db:
            if dry_run:
                cursor = await db.execute(
                    f"SELECT COUNT(*) FROM product_performers WHERE {_ORPHAN_LINKS_WHERE}"
                )
                return (await cursor.fetchone())[0]
            cursor = await db.execute(f"DELETE FROM product_performers WHERE {_ORPHAN_LINKS_WHERE}")
            await db.commit()
            return cursor.rowcount

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def merge_performer(self, survivor_id: int, duplicate_id: int) -> dict[str, int]:
        if survivor_id == duplicate_id:
            return {"dropped_conflicting_links": 0, "relinked": 0, "migrated_aliases": 0}
        # One connection, one commit: a failure part-way leaves nothing applied.
        async with self._connect() as db:
            cursor = await db.execute(_MERGE_DROP_CONFLICTS_SQL, (duplicate_id, survivor_id))
            dropped = cursor.rowcount
            cursor = await db.execute(_MERGE_REPOINT_LINKS_SQL, (survivor_id, duplicate_id))
            relinked = cursor.rowcount
            cursor = await db.execute(_MERGE_REPOINT_ALIASES_SQL, (survivor_id, duplicate_id))
            migrated = cursor.rowcount
            await db.execute("DELETE FROM performers WHERE id = ?", (duplicate_id,))
            await db.commit()
        return {
            "dropped_conflicting_links": dropped,
            "relinked": relinked,
            "migrated_aliases": migrated,
        }

    async def stats(self) -> StoreStats:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT "
                "(SELECT COUNT(*) FROM products) AS products, "
                "(SELECT COUNT(DISTINCT product_id) FROM product_performers) AS linked_products, "
                "(SELECT COUNT(*) FROM performers) AS performers, "
                "(SELECT COUNT(*) FROM performer_aliases) AS aliases, "
                "(SELECT COUNT(*) FROM product_performers) AS links"
            )
            row = await cursor.fetchone()
        return StoreStats(
            products=row["products"],
            linked_products=row["linked_products"],
            performers=row["performers"],
            aliases=row["aliases"],
            links=row["links"],
        )

    def get_provider_name(self) -> str:
        return "sqlite_performer_store"
