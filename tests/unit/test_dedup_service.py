"""Unit tests for perflink.services.dedup_service."""

from __future__ import annotations

import asyncio

import pytest

from perflink.config.pipeline_config import DedupConfig
from perflink.models.entities import Performer
from perflink.providers.lookup_cache.memory_lookup_cache import MemoryLookupCache
from perflink.providers.performer_store.memory_performer_store import MemoryPerformerStore
from perflink.services.dedup_service import DedupService
from perflink.utils.errors import PipelineError


class _BlockingStore(MemoryPerformerStore):
    """Holds ``list_performers`` until the test releases it."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def list_performers(self) -> list[Performer]:
        self.entered.set()
        await self.release.wait()
        return await super().list_performers()


class _ConcurrentCreateStore(MemoryPerformerStore):
    """Another writer creates the target name just before each rename."""

    async def rename_performer(self, performer_id: int, name: str) -> None:
        if await self.get_performer_by_name(name) is None:
            await self.insert_performer(name)
        await super().rename_performer(performer_id, name)

async def _seed_spacing_drift(store: MemoryPerformerStore) -> tuple[int, int, int, int]:
    """Two spellings of one performer sharing product A; B only on the duplicate."""
    product_a = await store.upsert_product("A-1")
    product_b = await store.upsert_product("B-1")
    survivor = await store.insert_performer("さくら ゆい")
    duplicate = await store.insert_performer("さくら　ゆい")
    await store.link(product_a.id, survivor.id)
    await store.link(product_a.id, duplicate.id)
    await store.link(product_b.id, duplicate.id)
    return product_a.id, product_b.id, survivor.id, duplicate.id


# ======================================================================
# Merging
# ======================================================================


class TestMerge:
    @pytest.mark.asyncio
    async def test_spacing_drift_merged_without_losing_links(
        self, memory_store: MemoryPerformerStore, memory_cache: MemoryLookupCache
    ) -> None:
        product_a, product_b, survivor_id, duplicate_id = await _seed_spacing_drift(memory_store)
        service = DedupService(memory_store, memory_cache)

        report = await service.run()

        assert report.duplicate_clusters == 1
        assert report.merged_performers == 1
        assert report.dropped_conflicting_links == 1
        assert report.relinked == 1
        assert [p.id for p in await memory_store.list_performers()] == [survivor_id]
        assert await memory_store.get_product_performer_ids(product_a) == [survivor_id]
        assert await memory_store.get_product_performer_ids(product_b) == [survivor_id]
        assert await memory_store.get_performer(duplicate_id) is None

    @pytest.mark.asyncio
    async def test_survivor_renamed_to_canonical_form(
        self, memory_store: MemoryPerformerStore, memory_cache: MemoryLookupCache
    ) -> None:
        survivor = await memory_store.insert_performer("さくら　ゆい")
        await memory_store.insert_performer("さくら ゆい")
        service = DedupService(memory_store, memory_cache)

        report = await service.run()

        assert report.renamed_survivors == 1
        (performer,) = await memory_store.list_performers()
        assert performer.id == survivor.id
        assert performer.name == "さくら ゆい"

    @pytest.mark.asyncio
    async def test_rename_conflict_folds_survivor_into_new_row(
        self, memory_cache: MemoryLookupCache
    ) -> None:
        store = _ConcurrentCreateStore()
        product = await store.upsert_product("A-1")
        drifted = await store.insert_performer("さくら　ゆい")
        await store.link(product.id, drifted.id)
        await store.add_alias(drifted.id, "サクラユイ")
        service = DedupService(store, memory_cache)

        report = await service.run()

        assert report.renamed_survivors == 0
        assert report.merged_performers == 1
        assert report.relinked == 1
        assert report.migrated_aliases == 1
        (performer,) = await store.list_performers()
        assert performer.name == "さくら ゆい"
        assert performer.id != drifted.id
        assert await store.get_product_performer_ids(product.id) == [performer.id]
        assert (await store.get_performer_by_alias("サクラユイ")).id == performer.id

    @pytest.mark.asyncio
    async def test_aliases_follow_the_survivor(
        self, memory_store: MemoryPerformerStore, memory_cache: MemoryLookupCache
    ) -> None:
        _, _, survivor_id, duplicate_id = await _seed_spacing_drift(memory_store)
        await memory_store.add_alias(duplicate_id, "サクラユイ")
        service = DedupService(memory_store, memory_cache)

        report = await service.run()

        assert report.migrated_aliases == 1
        assert (await memory_store.get_performer_by_alias("サクラユイ")).id == survivor_id

    @pytest.mark.asyncio
    async def test_rerun_is_a_noop(
        self, memory_store: MemoryPerformerStore, memory_cache: MemoryLookupCache
    ) -> None:
        await _seed_spacing_drift(memory_store)
        service = DedupService(memory_store, memory_cache)
        await service.run()

        second = await service.run()

        assert second.duplicate_clusters == 0
        assert second.merged_performers == 0
        assert second.renamed_survivors == 0
        assert second.invalid_performers == 0
        assert second.orphan_links == 0


# ======================================================================
# Invalid data
# ======================================================================


class TestPurge:
    @pytest.mark.asyncio
    async def test_invalid_performer_purged(
        self, memory_store: MemoryPerformerStore, memory_cache: MemoryLookupCache
    ) -> None:
        product = await memory_store.upsert_product("A-1")
        junk = await memory_store.insert_performer("ランキング")
        keeper = await memory_store.insert_performer("まゆみ")
        await memory_store.link(product.id, junk.id)
        await memory_store.link(product.id, keeper.id)
        await memory_store.add_alias(junk.id, "ランク")
        service = DedupService(memory_store, memory_cache)

        report = await service.run()

        assert report.invalid_performers == 1
        assert report.purged_links == 1
        assert [p.name for p in await memory_store.list_performers()] == ["まゆみ"]
        assert await memory_store.get_product_performer_ids(product.id) == [keeper.id]
        assert await memory_store.list_aliases() == []

    @pytest.mark.asyncio
    async def test_invalid_cached_names_removed(
        self, memory_store: MemoryPerformerStore, memory_cache: MemoryLookupCache
    ) -> None:
        await memory_cache.put("GVH-802", "minnano-av", ["さくら", "素人"])
        await memory_cache.put("GVH-803", "minnano-av", ["新着"])
        service = DedupService(memory_store, memory_cache)

        report = await service.run()

        assert report.invalid_source_names == 2
        assert report.purged_cache_entries == 1
        assert await memory_cache.get("GVH-802", "minnano-av") == ["さくら"]
        assert await memory_cache.get("GVH-803", "minnano-av") is None

    @pytest.mark.asyncio
    async def test_dangling_aliases_and_orphan_links(
        self, memory_store: MemoryPerformerStore, memory_cache: MemoryLookupCache
    ) -> None:
        performer = await memory_store.insert_performer("まゆみ")
        await memory_store.add_alias(999, "ゴースト")
        await memory_store.link(999, performer.id)
        service = DedupService(memory_store, memory_cache)

        report = await service.run()

        assert report.dangling_aliases == 1
        assert report.orphan_links == 1
        assert await memory_store.list_aliases() == []
        assert await memory_store.get_performer_product_ids(performer.id) == []


# ======================================================================
# Dry run and run guard
# ======================================================================


class TestDryRun:
    @pytest.mark.asyncio
    async def test_dry_run_reports_without_writing(
        self, memory_store: MemoryPerformerStore, memory_cache: MemoryLookupCache
    ) -> None:
        product_a, product_b, survivor_id, duplicate_id = await _seed_spacing_drift(memory_store)
        await memory_store.insert_performer("ランキング")
        await memory_cache.put("GVH-802", "minnano-av", ["素人"])
        service = DedupService(memory_store, memory_cache)

        report = await service.run(dry_run=True)

        assert report.dry_run is True
        assert report.merged_performers == 1
        assert report.dropped_conflicting_links == 1
        assert report.relinked == 1
        assert report.invalid_performers == 1
        assert report.purged_cache_entries == 1
        assert len(await memory_store.list_performers()) == 3
        assert await memory_store.get_product_performer_ids(product_a) == [
            survivor_id,
            duplicate_id,
        ]
        assert await memory_store.get_product_performer_ids(product_b) == [duplicate_id]
        assert await memory_cache.get("GVH-802", "minnano-av") == ["素人"]

    @pytest.mark.asyncio
    async def test_concurrent_run_rejected(self, memory_cache: MemoryLookupCache) -> None:
        store = _BlockingStore()
        service = DedupService(store, memory_cache)

        first = asyncio.create_task(service.run())
        await store.entered.wait()
        with pytest.raises(PipelineError):
            await service.run()

        store.release.set()
        report = await first
        assert report.merged_performers == 0

    @pytest.mark.asyncio
    async def test_guard_released_after_run(
        self, memory_store: MemoryPerformerStore, memory_cache: MemoryLookupCache
    ) -> None:
        service = DedupService(memory_store, memory_cache)
        await service.run()
        await service.run()


# ======================================================================
# Near-duplicate report
# ======================================================================


class TestSimilarNames:
    @pytest.mark.asyncio
    async def test_near_duplicates_reported_not_merged(
        self, memory_store: MemoryPerformerStore, memory_cache: MemoryLookupCache
    ) -> None:
        left = await memory_store.insert_performer("あいうえおかきくけこさし")
        right = await memory_store.insert_performer("あいうえおかきくけこさす")
        await memory_store.insert_performer("まゆみ")
        service = DedupService(memory_store, memory_cache)

        report = await service.run()

        assert report.merged_performers == 0
        assert len(report.similar_pairs) == 1
        pair = report.similar_pairs[0]
        assert (pair.left_id, pair.right_id) == (left.id, right.id)
        assert pair.score >= 90
        assert len(await memory_store.list_performers()) == 3

    def test_threshold_configurable(self) -> None:
        performers = [
            Performer(id=1, name="あいうえおかきくけこさし"),
            Performer(id=2, name="あいうえおかきくけこさす"),
        ]
        strict = DedupService(
            MemoryPerformerStore(), MemoryLookupCache(), config=DedupConfig(similarity_threshold=95)
        )
        assert strict.find_similar(performers) == []

    @pytest.mark.asyncio
    async def test_similar_report_can_be_disabled(
        self, memory_store: MemoryPerformerStore, memory_cache: MemoryLookupCache
    ) -> None:
        await memory_store.insert_performer("あいうえおかきくけこさし")
        await memory_store.insert_performer("あいうえおかきくけこさす")
        service = DedupService(
            memory_store, memory_cache, config=DedupConfig(report_similar=False)
        )
        assert (await service.run()).similar_pairs == []
