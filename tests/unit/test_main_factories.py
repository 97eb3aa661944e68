"""Unit tests for the composition root in perflink/main.py."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from perflink.config.settings import Settings
from perflink.main import build_components, close_components, initialize_components
from perflink.pipeline.orchestrator import PerformerResolutionPipeline
from perflink.providers.index_source.http_index_source import JsonIndexSource
from perflink.providers.lookup_cache.sqlite_lookup_cache import SQLiteLookupCache
from perflink.providers.performer_store.sqlite_performer_store import SQLitePerformerStore
from perflink.utils.errors import ConfigurationError


def _settings(**overrides: Any) -> Settings:
    defaults: dict[str, Any] = {"app_env": "test", "_env_file": None}
    defaults.update(overrides)
    return Settings(**defaults)


@pytest.fixture
def config(mock_config: dict[str, Any], tmp_path: Path) -> dict[str, Any]:
    mock_config["app"]["database_path"] = str(tmp_path / "perflink.db")
    return mock_config


class TestBuildComponents:
    @pytest.mark.asyncio
    async def test_graph_assembled(self, config: dict[str, Any]) -> None:
        components = build_components(_settings(), config=config)
        try:
            assert isinstance(components["pipeline"], PerformerResolutionPipeline)
            assert isinstance(components["lookup_cache"], SQLiteLookupCache)
            assert isinstance(components["performer_store"], SQLitePerformerStore)
            assert list(components["live_sources"]) == ["av-wiki"]
            assert isinstance(components["live_sources"]["av-wiki"], JsonIndexSource)
            assert components["resolver"].source_priority == [
                "minnano-av",
                "av-wiki",
                "seesaawiki",
            ]
        finally:
            await close_components(components)
        assert components["http_client"].is_closed

    @pytest.mark.asyncio
    async def test_initialize_creates_database(
        self, config: dict[str, Any], tmp_path: Path
    ) -> None:
        components = build_components(_settings(), config=config)
        try:
            await initialize_components(components)
            stats = await components["performer_store"].stats()
            assert stats.performers == 0
            assert await components["lookup_cache"].count_by_source() == {}
        finally:
            await close_components(components)
        assert (tmp_path / "perflink.db").exists()

    def test_prefixes_default_when_not_configured(self, config: dict[str, Any]) -> None:
        components = build_components(_settings(), config=config)
        assert "GVH-802" in components["normalizer"].variants("FANZA-gvh00802")

    def test_invalid_config_raises(self) -> None:
        with pytest.raises(ConfigurationError):
            build_components(_settings(), config={"app": {}})

    def test_repo_config_builds(self, project_root: Path, tmp_path: Path) -> None:
        settings = _settings(
            config_path=str(project_root / "config" / "config.yaml"),
            database_path=str(tmp_path / "perflink.db"),
        )
        components = build_components(settings)
        assert list(components["live_sources"]) == ["av-wiki"]
        assert components["pipeline_config"].job.max_workers == 1
