"""SQLite-backed performer lookup cache.

Persists (code, source) -> candidate names in the ``performer_lookup`` table
using ``aiosqlite`` for async I/O.  The unique key is declared on the
separator-free ``code_key`` so every rendering of a code shares one row per
source, and ``put`` is an ``ON CONFLICT DO UPDATE`` upsert: re-crawls
overwrite, never append.
"""

from __future__ import annotations

import datetime
import json
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite
import structlog

from perflink.interfaces.lookup_cache_provider import ILookupCacheProvider
from perflink.models.entities import LookupCacheEntry
from perflink.utils.code_normalizer import normalize_code_key
from perflink.utils.errors import PersistenceError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/perflink.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS performer_lookup (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    product_code  TEXT    NOT NULL,
    code_key      TEXT    NOT NULL,
    source        TEXT    NOT NULL,
    names_json    TEXT    NOT NULL DEFAULT '[]',
    created_at    TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    updated_at    TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    UNIQUE(code_key, source)
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_lookup_source ON performer_lookup(source);",
]

_UPSERT_SQL = """\
INSERT INTO performer_lookup (product_code, code_key, source, names_json)
VALUES (?, ?, ?, ?)
ON CONFLICT(code_key, source)
DO UPDATE SET product_code = excluded.product_code,
              names_json   = excluded.names_json,
              updated_at   = strftime('%Y-%m-%dT%H:%M:%fZ', 'now');
"""

_SELECT_SQL = "SELECT names_json FROM performer_lookup WHERE code_key = ? AND source = ?;"


def _parse_timestamp(value: str | None) -> datetime.datetime | None:
    if not value:
        return None
    return datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))


class SQLiteLookupCache(ILookupCacheProvider):
    """SQLite-backed lookup cache.

    Parameters
    ----------
    db_path:
        Database file; shared with the performer store in production.
    """

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
        """Create the lookup table and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with self._connect() as db:
            await db.execute(_CREATE_TABLE_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("lookup_cache_initialized", path=str(self._db_path))

    async def get(self, code: str, source: str) -> list[str] | None:
        key = normalize_code_key(code)
        if not key:
            return None
        async with self._connect() as db:
            cursor = await db.execute(_SELECT_SQL, (key, source))
            row = await cursor.fetchone()
        if row is None:
            logger.debug("lookup_cache_miss", code_key=key, source=source)
            return None
        logger.debug("lookup_cache_hit", code_key=key, source=source)
        return list(json.loads(row["names_json"]))

    async def put(self, code: str, source: str, names: list[str]) -> bool:
        key = normalize_code_key(code)
        if not key:
            return False
        payload = json.dumps(list(names), ensure_ascii=False)
        async with self._connect() as db:
            cursor = await db.execute(_SELECT_SQL, (key, source))
            existed = await cursor.fetchone() is not None
            await db.execute(_UPSERT_SQL, (code.strip().upper(), key, source, payload))
            await db.commit()
        logger.debug(
            "lookup_cache_put",
            code_key=key,
            source=source,
            names=len(names),
            inserted=not existed,
        )
        return not existed

    async def delete(self, code: str, source: str) -> bool:
        key = normalize_code_key(code)
        async with self._connect() as db:
            cursor = await db.execute(
                "DELETE FROM performer_lookup WHERE code_key = ? AND source = ?",
                (key, source),
            )
            await db.commit()
            removed = cursor.rowcount > 0
        return removed

    async def list_entries(self, source: str | None = None) -> list[LookupCacheEntry]:
        query = (
            "SELECT product_code, code_key, source, names_json, updated_at "
            "FROM performer_lookup"
        )
        params: tuple = ()
        if source is not None:
            query += " WHERE source = ?"
            params = (source,)
        query += " ORDER BY id"
        async with self._connect() as db:
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()
        return [
            LookupCacheEntry(
                product_code=r["product_code"],
                code_key=r["code_key"],
                source=r["source"],
                names=json.loads(r["names_json"]),
                updated_at=_parse_timestamp(r["updated_at"]),
            )
            for r in rows
        ]

    async def count_by_source(self) -> dict[str, int]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT source, COUNT(*) AS n FROM performer_lookup GROUP BY source ORDER BY source"
            )
            rows = await cursor.fetchall()
        return {r["source"]: r["n"] for r in rows}

    def get_provider_name(self) -> str:
        return "sqlite_lookup_cache"
