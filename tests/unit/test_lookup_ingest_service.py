"""Unit tests for perflink.services.lookup_ingest_service."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from perflink.providers.lookup_cache.memory_lookup_cache import MemoryLookupCache
from perflink.providers.performer_store.memory_performer_store import MemoryPerformerStore
from perflink.services.lookup_ingest_service import LookupIngestService
from perflink.services.performer_identity import PerformerIdentityService
from perflink.utils.errors import ConfigurationError

_SOURCES = ["minnano-av", "seesaawiki"]


class TestIngest:
    @pytest.mark.asyncio
    async def test_valid_records_inserted(self, memory_cache: MemoryLookupCache) -> None:
        service = LookupIngestService(memory_cache, _SOURCES)

        report = await service.ingest(
            [
                ("minnano-av", "GVH-802", ["さくら　ゆい"]),
                ("seesaawiki", "SSIS-865", "まゆみ、ゆい"),
            ]
        )

        assert report.received == 2
        assert report.inserted == 2
        assert report.skipped == 0
        assert await memory_cache.get("GVH802", "minnano-av") == ["さくら ゆい"]
        assert await memory_cache.get("SSIS-865", "seesaawiki") == ["まゆみ", "ゆい"]

    @pytest.mark.asyncio
    async def test_recrawl_overwrites(self, memory_cache: MemoryLookupCache) -> None:
        service = LookupIngestService(memory_cache, _SOURCES)
        await service.ingest([("minnano-av", "GVH-802", ["さくら"])])

        report = await service.ingest([("minnano-av", "gvh802", ["まゆみ"])])

        assert report.updated == 1
        assert report.inserted == 0
        assert await memory_cache.get("GVH-802", "minnano-av") == ["まゆみ"]

    @pytest.mark.asyncio
    async def test_unusable_records_skipped(self, memory_cache: MemoryLookupCache) -> None:
        service = LookupIngestService(memory_cache, _SOURCES)

        report = await service.ingest(
            [
                ("unknown-wiki", "GVH-802", ["さくら"]),
                ("minnano-av", "  ", ["さくら"]),
                ("minnano-av", "GVH-803", ["素人", "ランキング"]),
                ("minnano-av", "GVH-804", ["まゆみ", "新着"]),
            ]
        )

        assert report.received == 4
        assert report.skipped == 3
        assert report.inserted == 1
        assert report.invalid_names == 3
        assert await memory_cache.get("GVH-803", "minnano-av") is None
        assert await memory_cache.count_by_source() == {"minnano-av": 1}


class TestIngestJsonl:
    @pytest.mark.asyncio
    async def test_jsonl_dump(self, memory_cache: MemoryLookupCache, tmp_path: Path) -> None:
        dump = tmp_path / "crawl.jsonl"
        lines = [
            json.dumps({"product_code": "GVH-802", "names": ["さくら ゆい"]}, ensure_ascii=False),
            json.dumps(
                {"source": "seesaawiki", "product_code": "SSIS-865", "performers": "まゆみ"},
                ensure_ascii=False,
            ),
            "",
            "{not json",
            json.dumps({"names": ["ゆい"]}, ensure_ascii=False),
        ]
        dump.write_text("\n".join(lines) + "\n", encoding="utf-8")
        service = LookupIngestService(memory_cache, _SOURCES)

        report = await service.ingest_jsonl(dump, default_source="minnano-av")

        assert report.received == 4
        assert report.inserted == 2
        assert report.skipped == 2
        assert await memory_cache.get("GVH-802", "minnano-av") == ["さくら ゆい"]
        assert await memory_cache.get("SSIS-865", "seesaawiki") == ["まゆみ"]


class TestIngestAliases:
    @pytest.mark.asyncio
    async def test_alias_list_creates_performer_and_aliases(
        self, memory_cache: MemoryLookupCache, memory_store: MemoryPerformerStore
    ) -> None:
        identity = PerformerIdentityService(memory_store)
        service = LookupIngestService(memory_cache, _SOURCES, identity=identity)

        report = await service.ingest_aliases(
            [("minnano-av", "さくら　ゆい", ["桜ゆい", "サクラユイ", "素人"])]
        )

        assert report.received == 1
        assert report.inserted == 1
        assert report.performers_created == 1
        assert report.aliases_added == 2
        assert report.invalid_names == 1
        (performer,) = await memory_store.list_performers()
        assert performer.name == "さくら ゆい"
        sources = {a.alias_name: a.source for a in await memory_store.list_aliases(performer.id)}
        assert sources == {"桜ゆい": "minnano-av", "サクラユイ": "minnano-av"}
        assert await identity.get_or_create("サクラユイ") == performer.id
        assert len(await memory_store.list_performers()) == 1

    @pytest.mark.asyncio
    async def test_existing_performer_gets_aliases_and_rerun_is_noop(
        self, memory_cache: MemoryLookupCache, memory_store: MemoryPerformerStore
    ) -> None:
        existing = await memory_store.insert_performer("まゆみ")
        service = LookupIngestService(
            memory_cache, _SOURCES, identity=PerformerIdentityService(memory_store)
        )
        records = [("seesaawiki", "まゆみ", "真由美、マユミ")]

        first = await service.ingest_aliases(records)
        second = await service.ingest_aliases(records)

        assert first.performers_created == 0
        assert first.aliases_added == 2
        assert second.aliases_added == 0
        assert second.skipped == 1
        assert {a.performer_id for a in await memory_store.list_aliases()} == {existing.id}

    @pytest.mark.asyncio
    async def test_unusable_alias_records_skipped(
        self, memory_cache: MemoryLookupCache, memory_store: MemoryPerformerStore
    ) -> None:
        other = await memory_store.insert_performer("ゆい")
        service = LookupIngestService(
            memory_cache, _SOURCES, identity=PerformerIdentityService(memory_store)
        )

        report = await service.ingest_aliases(
            [
                ("unknown-wiki", "さくら", ["サクラ"]),
                ("minnano-av", "ランキング", ["サクラ"]),
                ("minnano-av", "さくら", ["ゆい", "さくら"]),
            ]
        )

        assert report.received == 3
        assert report.skipped == 3
        assert report.aliases_added == 0
        assert await memory_store.list_aliases() == []
        assert (await memory_store.get_performer_by_name("ゆい")).id == other.id

    @pytest.mark.asyncio
    async def test_alias_ingest_requires_identity_service(
        self, memory_cache: MemoryLookupCache
    ) -> None:
        service = LookupIngestService(memory_cache, _SOURCES)
        with pytest.raises(ConfigurationError):
            await service.ingest_aliases([("minnano-av", "さくら", ["サクラ"])])

    @pytest.mark.asyncio
    async def test_jsonl_mixes_lookup_rows_and_alias_lists(
        self,
        memory_cache: MemoryLookupCache,
        memory_store: MemoryPerformerStore,
        tmp_path: Path,
    ) -> None:
        dump = tmp_path / "crawl.jsonl"
        lines = [
            json.dumps({"product_code": "GVH-802", "names": ["サクラユイ"]}, ensure_ascii=False),
            json.dumps({"name": "さくら ゆい", "aliases": ["サクラユイ"]}, ensure_ascii=False),
        ]
        dump.write_text("\n".join(lines) + "\n", encoding="utf-8")
        identity = PerformerIdentityService(memory_store)
        service = LookupIngestService(memory_cache, _SOURCES, identity=identity)

        report = await service.ingest_jsonl(dump, default_source="minnano-av")

        assert report.received == 2
        assert report.inserted == 2
        assert report.aliases_added == 1
        (performer,) = await memory_store.list_performers()
        assert await identity.get_or_create("サクラユイ") == performer.id
