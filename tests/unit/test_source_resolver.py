"""Unit tests for perflink.services.source_resolver -- cache/live cascade."""

from __future__ import annotations

import time

import httpx
import pytest

from perflink.config.pipeline_config import SourceConfig, SourceKind
from perflink.models.resolution import Found, NotFound
from perflink.pipeline.deadline import JobDeadline
from perflink.providers.lookup_cache.memory_lookup_cache import MemoryLookupCache
from perflink.services.source_resolver import SourceResolver
from perflink.utils.errors import SourceUnavailableError
from tests.conftest import FakeIndexSource, make_source


def _resolver(
    cache: MemoryLookupCache,
    configs: list[SourceConfig],
    *adapters: FakeIndexSource,
) -> SourceResolver:
    return SourceResolver(cache, configs, {a.get_source_name(): a for a in adapters})


_CACHE_ONLY = [
    make_source("minnano-av", SourceKind.CACHE_ONLY),
    make_source("seesaawiki", SourceKind.CACHE_ONLY),
]


# ======================================================================
# Cache phase
# ======================================================================


class TestCachePhase:
    @pytest.mark.asyncio
    async def test_higher_priority_source_wins(self, memory_cache: MemoryLookupCache) -> None:
        await memory_cache.put("GVH-802", "minnano-av", ["さくら"])
        await memory_cache.put("GVH-802", "seesaawiki", ["ゆい"])
        resolver = _resolver(memory_cache, _CACHE_ONLY)

        result = await resolver.resolve("GVH-802")

        assert isinstance(result, Found)
        assert result.names == ["さくら"]
        assert result.source == "minnano-av"
        assert result.from_cache is True

    @pytest.mark.asyncio
    async def test_earlier_variant_beats_higher_priority_source(
        self, memory_cache: MemoryLookupCache
    ) -> None:
        await memory_cache.put("GVH-802", "minnano-av", ["さくら"])
        await memory_cache.put("GVH00802", "seesaawiki", ["ゆい"])
        resolver = _resolver(memory_cache, _CACHE_ONLY)

        result = await resolver.resolve("FANZA-gvh00802")

        assert isinstance(result, Found)
        assert result.source == "seesaawiki"
        assert result.variant == "GVH00802"

    @pytest.mark.asyncio
    async def test_cache_exhausted_before_any_network_call(
        self, memory_cache: MemoryLookupCache
    ) -> None:
        await memory_cache.put("GVH-802", "seesaawiki", ["ゆい"])
        live = FakeIndexSource("av-wiki", {"FANZA-GVH00802": ["さくら"]})
        configs = [make_source("av-wiki"), *_CACHE_ONLY]
        resolver = _resolver(memory_cache, configs, live)

        result = await resolver.resolve("FANZA-gvh00802")

        assert isinstance(result, Found)
        assert result.names == ["ゆい"]
        assert live.calls == []

    @pytest.mark.asyncio
    async def test_cached_names_are_revalidated(self, memory_cache: MemoryLookupCache) -> None:
        await memory_cache.put("GVH-802", "minnano-av", ["素人", "さくら　ゆい"])
        resolver = _resolver(memory_cache, _CACHE_ONLY)

        result = await resolver.resolve("GVH-802")

        assert isinstance(result, Found)
        assert result.names == ["さくら ゆい"]
        assert result.rejected == 1

    @pytest.mark.asyncio
    async def test_all_invalid_cache_entry_falls_through_to_live(
        self, memory_cache: MemoryLookupCache
    ) -> None:
        await memory_cache.put("GVH-802", "minnano-av", ["素人"])
        live = FakeIndexSource("av-wiki", {"GVH-802": ["さくら"]})
        configs = [_CACHE_ONLY[0], make_source("av-wiki")]
        resolver = _resolver(memory_cache, configs, live)

        result = await resolver.resolve("GVH-802")

        assert isinstance(result, Found)
        assert result.source == "av-wiki"
        assert result.from_cache is False
        assert result.rejected == 1


# ======================================================================
# Live phase
# ======================================================================


class TestLivePhase:
    @pytest.mark.asyncio
    async def test_live_hit_is_cached(self, memory_cache: MemoryLookupCache) -> None:
        live = FakeIndexSource("av-wiki", {"GVH-802": ["さくら", "素人"]})
        resolver = _resolver(memory_cache, [make_source("av-wiki")], live)

        result = await resolver.resolve("GVH-802")

        assert isinstance(result, Found)
        assert result.names == ["さくら"]
        assert await memory_cache.get("GVH802", "av-wiki") == ["さくら"]

        live.calls.clear()
        again = await resolver.resolve("GVH-802")
        assert again.from_cache is True
        assert live.calls == []

    @pytest.mark.asyncio
    async def test_all_invalid_live_answer_not_cached(
        self, memory_cache: MemoryLookupCache
    ) -> None:
        live = FakeIndexSource("av-wiki", {"GVH-802": ["素人"]})
        resolver = _resolver(memory_cache, [make_source("av-wiki")], live)

        result = await resolver.resolve("GVH-802")

        assert isinstance(result, NotFound)
        assert result.rejected >= 1
        assert await memory_cache.get("GVH-802", "av-wiki") is None

    @pytest.mark.asyncio
    async def test_unavailable_source_falls_to_next(
        self, memory_cache: MemoryLookupCache
    ) -> None:
        broken = FakeIndexSource("av-wiki", error=SourceUnavailableError("HTTP 503"))
        backup = FakeIndexSource("backup", {"GVH-802": ["さくら"]})
        resolver = _resolver(
            memory_cache, [make_source("av-wiki"), make_source("backup")], broken, backup
        )

        result = await resolver.resolve("GVH-802")

        assert isinstance(result, Found)
        assert result.source == "backup"
        assert broken.calls == ["GVH-802"]

    @pytest.mark.asyncio
    async def test_http_error_counts_as_empty(self, memory_cache: MemoryLookupCache) -> None:
        broken = FakeIndexSource("av-wiki", error=httpx.ConnectError("refused"))
        resolver = _resolver(memory_cache, [make_source("av-wiki")], broken)

        result = await resolver.resolve("GVH-802")

        assert isinstance(result, NotFound)
        assert result.live_queries == len(result.variants_tried)

    @pytest.mark.asyncio
    async def test_timeout_counts_as_empty(self, memory_cache: MemoryLookupCache) -> None:
        slow = FakeIndexSource("av-wiki", {"GVH-802": ["ゆい"]}, delay=1.0)
        backup = FakeIndexSource("backup", {"GVH-802": ["さくら"]})
        configs = [make_source("av-wiki", timeout=0.05), make_source("backup")]
        resolver = _resolver(memory_cache, configs, slow, backup)

        result = await resolver.resolve("GVH-802")

        assert isinstance(result, Found)
        assert result.source == "backup"

    @pytest.mark.asyncio
    async def test_not_found(self, memory_cache: MemoryLookupCache) -> None:
        live = FakeIndexSource("av-wiki")
        resolver = _resolver(memory_cache, [make_source("av-wiki")], live)

        result = await resolver.resolve("GVH-802")

        assert isinstance(result, NotFound)
        assert result.found is False
        assert result.variants_tried[0] == "GVH-802"
        assert live.calls == result.variants_tried

    @pytest.mark.asyncio
    async def test_cache_only_source_never_queried_live(
        self, memory_cache: MemoryLookupCache
    ) -> None:
        adapter = FakeIndexSource("minnano-av", {"GVH-802": ["さくら"]})
        resolver = _resolver(memory_cache, [_CACHE_ONLY[0]], adapter)

        result = await resolver.resolve("GVH-802")

        assert isinstance(result, NotFound)
        assert adapter.calls == []

    @pytest.mark.asyncio
    async def test_disabled_or_unavailable_sources_skipped(
        self, memory_cache: MemoryLookupCache
    ) -> None:
        disabled = FakeIndexSource("av-wiki", {"GVH-802": ["さくら"]})
        offline = FakeIndexSource("backup", {"GVH-802": ["さくら"]}, available=False)
        configs = [make_source("av-wiki", enabled=False), make_source("backup")]
        resolver = _resolver(memory_cache, configs, disabled, offline)

        result = await resolver.resolve("GVH-802")

        assert isinstance(result, NotFound)
        assert disabled.calls == []
        assert offline.calls == []

    @pytest.mark.asyncio
    async def test_expired_deadline_prevents_live_queries(
        self, memory_cache: MemoryLookupCache
    ) -> None:
        live = FakeIndexSource("av-wiki", {"GVH-802": ["さくら"]})
        resolver = _resolver(memory_cache, [make_source("av-wiki")], live)

        result = await resolver.resolve("GVH-802", deadline=JobDeadline(0.0))

        assert isinstance(result, NotFound)
        assert result.live_queries == 0
        assert live.calls == []

    @pytest.mark.asyncio
    async def test_per_source_delay_spaces_requests(
        self, memory_cache: MemoryLookupCache
    ) -> None:
        live = FakeIndexSource("av-wiki")
        resolver = _resolver(memory_cache, [make_source("av-wiki", delay=0.2)], live)

        started = time.monotonic()
        await resolver.resolve("GVH-802")
        elapsed = time.monotonic() - started

        assert len(live.calls) == 2
        assert elapsed >= 0.15


# ======================================================================
# Product identifiers
# ======================================================================


class TestResolveProduct:
    @pytest.mark.asyncio
    async def test_normalized_id_variants_are_tried(
        self, memory_cache: MemoryLookupCache
    ) -> None:
        await memory_cache.put("ABC-123", "minnano-av", ["さくら"])
        resolver = _resolver(memory_cache, _CACHE_ONLY)

        result = await resolver.resolve_product("XYZ-PROMO-9", "ABC-123")

        assert isinstance(result, Found)
        assert result.variant == "ABC-123"
