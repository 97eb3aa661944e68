"""Composition root: builds every perflink component from configuration.

:func:`build_components` is the only place that knows which concrete
adapters back each interface.  Everything else receives its collaborators
by injection, so tests assemble the same graph with in-memory providers.

Startup order:
    1. Settings (env / .env) -> load_config (YAML + env overrides)
    2. PipelineConfig validation (raises ConfigurationError)
    3. Shared resources: one httpx.AsyncClient, one SQLite file
    4. Providers -> services -> pipeline
"""

from __future__ import annotations

from typing import Any

import httpx

from perflink.config.loader import load_config
from perflink.config.pipeline_config import PipelineConfig, build_pipeline_config
from perflink.config.settings import Settings
from perflink.interfaces.index_source import IPerformerIndexSource
from perflink.pipeline.orchestrator import PerformerResolutionPipeline
from perflink.providers.index_source.http_index_source import build_index_source
from perflink.providers.lookup_cache.sqlite_lookup_cache import SQLiteLookupCache
from perflink.providers.performer_store.sqlite_performer_store import SQLitePerformerStore
from perflink.services.dedup_service import DedupService
from perflink.services.linker import Linker
from perflink.services.lookup_ingest_service import LookupIngestService
from perflink.services.name_validator import NameValidator
from perflink.services.performer_identity import PerformerIdentityService
from perflink.services.source_resolver import SourceResolver
from perflink.services.title_matcher import TitleMatcher
from perflink.utils.code_normalizer import DEFAULT_ASP_PREFIXES, CodeNormalizer
from perflink.utils.logging import configure_logging, get_logger


def build_normalizer(pipeline_config: PipelineConfig) -> CodeNormalizer:
    """Code normalizer using the configured ASP prefixes (built-in list when empty)."""
    return CodeNormalizer(pipeline_config.asp_prefixes or DEFAULT_ASP_PREFIXES)


def build_components(
    app_settings: Settings | None = None,
    config: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Construct every provider and service instance.

    Parameters
    ----------
    app_settings:
        Deployment settings; read from the environment when omitted.
    config:
        Pre-loaded configuration dictionary; loaded from
        ``app_settings.config_path`` when omitted.

    Returns
    -------
    dict[str, Any]
        Flat dict of named components.  The caller owns ``http_client``
        and must close it (see :func:`close_components`).
    """
    app_settings = app_settings or Settings()
    raw = config if config is not None else load_config(settings=app_settings)
    pipeline_config: PipelineConfig = build_pipeline_config(raw)
    database_path = raw.get("app", {}).get("database_path", app_settings.database_path)

    # -- Shared resources --
    http_client = httpx.AsyncClient(timeout=app_settings.http_timeout_seconds)

    # -- Pure helpers --
    validator = NameValidator(pipeline_config.validation, pipeline_config.full_name)
    normalizer = build_normalizer(pipeline_config)

    # -- Providers --
    lookup_cache = SQLiteLookupCache(database_path)
    performer_store = SQLitePerformerStore(database_path)
    live_sources: dict[str, IPerformerIndexSource] = {
        source.name: build_index_source(source, http_client)
        for source in pipeline_config.sources
        if source.is_live
    }

    # -- Services --
    resolver = SourceResolver(
        cache=lookup_cache,
        sources=pipeline_config.sources,
        live_sources=live_sources,
        validator=validator,
        normalizer=normalizer,
    )
    identity = PerformerIdentityService(performer_store, validator)
    linker = Linker(performer_store)
    title_matcher = TitleMatcher(performer_store, validator)
    dedup = DedupService(performer_store, lookup_cache, validator, pipeline_config.dedup)
    ingest = LookupIngestService(
        lookup_cache, pipeline_config.source_priority, validator, identity=identity
    )

    pipeline = PerformerResolutionPipeline(
        store=performer_store,
        resolver=resolver,
        identity=identity,
        linker=linker,
        title_matcher=title_matcher,
        job=pipeline_config.job,
    )

    return {
        "settings": app_settings,
        "config": raw,
        "pipeline_config": pipeline_config,
        "http_client": http_client,
        "validator": validator,
        "normalizer": normalizer,
        "lookup_cache": lookup_cache,
        "performer_store": performer_store,
        "live_sources": live_sources,
        "resolver": resolver,
        "identity": identity,
        "linker": linker,
        "title_matcher": title_matcher,
        "dedup": dedup,
        "ingest": ingest,
        "pipeline": pipeline,
    }


async def initialize_components(components: dict[str, Any]) -> None:
    """Create database tables for both SQLite-backed providers."""
    await components["lookup_cache"].initialize()
    await components["performer_store"].initialize()


async def close_components(components: dict[str, Any]) -> None:
    await components["http_client"].aclose()


def configure_from_settings(app_settings: Settings, json_output: bool = False) -> None:
    """Configure structlog from settings and log the resolved environment."""
    configure_logging(
        log_level=app_settings.log_level,
        json_output=json_output or app_settings.app_env == "production",
    )
    get_logger(__name__).debug(
        "perflink_configured", env=app_settings.app_env, database=app_settings.database_path
    )
