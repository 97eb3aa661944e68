"""Shared pytest fixtures for the perflink test suite."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio

from perflink.config.pipeline_config import SourceConfig, SourceKind
from perflink.interfaces.index_source import IPerformerIndexSource
from perflink.providers.lookup_cache.memory_lookup_cache import MemoryLookupCache
from perflink.providers.lookup_cache.sqlite_lookup_cache import SQLiteLookupCache
from perflink.providers.performer_store.memory_performer_store import MemoryPerformerStore
from perflink.providers.performer_store.sqlite_performer_store import SQLitePerformerStore
from perflink.services.name_validator import NameValidator

# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class FakeIndexSource(IPerformerIndexSource):
    """Scripted live index: code -> names, optional error or delay."""

    def __init__(
        self,
        name: str,
        answers: dict[str, list[str]] | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
        available: bool = True,
    ) -> None:
        self._name = name
        self._answers = answers or {}
        self._error = error
        self._delay = delay
        self._available = available
        self.calls: list[str] = []

    async def lookup(self, code: str) -> list[str]:
        self.calls.append(code)
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        return list(self._answers.get(code, []))

    def get_source_name(self) -> str:
        return self._name

    def is_available(self) -> bool:
        return self._available


def make_source(
    name: str,
    kind: SourceKind = SourceKind.JSON,
    delay: float = 0.0,
    timeout: float = 2.0,
    **overrides: Any,
) -> SourceConfig:
    """Build a SourceConfig with test-friendly defaults (no delay)."""
    fields: dict[str, Any] = {
        "name": name,
        "kind": kind,
        "delay_seconds": delay,
        "timeout_seconds": timeout,
    }
    if kind != SourceKind.CACHE_ONLY:
        fields["url_template"] = f"https://{name}.example/search?q={{code}}"
    if kind == SourceKind.HTML:
        fields["name_selector"] = ".performer"
    fields.update(overrides)
    return SourceConfig(**fields)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def validator() -> NameValidator:
    return NameValidator()


@pytest.fixture
def memory_store() -> MemoryPerformerStore:
    return MemoryPerformerStore()


@pytest.fixture
def memory_cache() -> MemoryLookupCache:
    return MemoryLookupCache()


@pytest_asyncio.fixture
async def sqlite_store(tmp_path: Path) -> SQLitePerformerStore:
    """Create and initialize a performer store with a temp DB."""
    store = SQLitePerformerStore(db_path=tmp_path / "perflink.db")
    await store.initialize()
    return store


@pytest_asyncio.fixture
async def sqlite_cache(tmp_path: Path) -> SQLiteLookupCache:
    """Create and initialize a lookup cache with a temp DB."""
    cache = SQLiteLookupCache(db_path=tmp_path / "perflink.db")
    await cache.initialize()
    return cache


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """Return a minimal configuration dictionary."""
    return {
        "app": {"env": "development", "database_path": "data/test.db"},
        "logging": {"level": "INFO"},
        "pipeline": {
            "sources": [
                {"name": "minnano-av", "kind": "cache_only"},
                {
                    "name": "av-wiki",
                    "kind": "json",
                    "url_template": "https://av-wiki.example/api?code={code}",
                    "delay_seconds": 0,
                },
                {"name": "seesaawiki", "kind": "cache_only"},
            ],
            "validation": {"min_length": 2, "max_length": 30},
            "job": {"time_budget_seconds": 60, "deadline_margin_seconds": 5},
        },
    }
