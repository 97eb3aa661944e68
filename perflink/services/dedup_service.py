"""Batch repair of performer-identity drift and invalid data.

Architecture role: **Maintenance job**
--------------------------------------
Runs independently of resolution, typically on a schedule:

1. **Scan** -- group performers by canonical name (spelling drift such as
   full-width vs half-width spacing collapses into one group), and collect
   performers and cached index names that fail validation.
2. **Merge** -- per duplicate cluster the lowest id survives; each other
   member is folded in by the store's transactional ``merge_performer``
   (drop conflicting links, re-point links, re-point aliases, delete row).
   A survivor whose stored name has drifted is renamed to the canonical form;
   if a concurrent resolver has meanwhile created a row under that name, the
   survivor is folded into that row instead.
3. **Purge invalid performers** -- links, aliases, then the row.
4. **Purge invalid source data** -- invalid names are removed from lookup
   cache entries; entries left empty are deleted.
5. **Tidy** -- dangling aliases and orphan links are removed.

Finally, near-duplicate names (high rapidfuzz ratio, not identical after
canonicalization) are reported for manual review and never merged.

Re-running with nothing new to fix is a no-op.  In ``dry_run`` mode the
report holds what *would* change and nothing is written.
"""

from __future__ import annotations

import time
from collections import defaultdict

import structlog
from rapidfuzz import fuzz, process

from perflink.config.pipeline_config import DedupConfig
from perflink.interfaces.lookup_cache_provider import ILookupCacheProvider
from perflink.interfaces.performer_store_provider import IPerformerStoreProvider
from perflink.models.entities import Performer
from perflink.models.reports import DedupReport, SimilarPair
from perflink.services.name_validator import NameValidator
from perflink.utils.errors import PerformerConflictError, PipelineError
from perflink.utils.logging import get_logger


def _count_merge(counts: dict[str, int], merged: dict[str, int]) -> None:
    counts["merged_performers"] += 1
    for key in ("dropped_conflicting_links", "relinked", "migrated_aliases"):
        counts[key] += merged[key]

class DedupService:
    """Finds and merges duplicate performers; purges invalid rows.

    Only one run may be active per instance; a second concurrent call
    raises :class:`~perflink.utils.errors.PipelineError`.
    """

    def __init__(
        self,
        store: IPerformerStoreProvider,
        cache: ILookupCacheProvider,
        validator: NameValidator | None = None,
        config: DedupConfig | None = None,
    ) -> None:
        self._store = store
        self._cache = cache
        self._validator = validator or NameValidator()
        self._config = config or DedupConfig()
        self._running = False
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def run(self, dry_run: bool = False) -> DedupReport:
        if self._running:
            raise PipelineError("dedup run already in progress", provider_name="dedup")
        self._running = True
        try:
            return await self._run(dry_run)
        finally:
            self._running = False

    # -- Scan -----------------------------------------------------------------

    def scan_performers(
        self, performers: list[Performer]
    ) -> tuple[dict[str, list[Performer]], list[Performer]]:
        """Split performers into canonical-name groups and an invalid set.

        Returns
        -------
        tuple[dict[str, list[Performer]], list[Performer]]
            Groups keyed by canonical name (members sorted by id) and the
            performers whose name fails validation.
        """
        groups: dict[str, list[Performer]] = defaultdict(list)
        invalid: list[Performer] = []
        for performer in sorted(performers, key=lambda p: p.id):
            canonical = self._validator.normalize_name(performer.name)
            if canonical is None:
                invalid.append(performer)
            else:
                groups[canonical].append(performer)
        return dict(groups), invalid

    # -- Run ------------------------------------------------------------------

    async def _run(self, dry_run: bool) -> DedupReport:
        started = time.monotonic()
        counts: dict[str, int] = defaultdict(int)

        performers = await self._store.list_performers()
        groups, invalid = self.scan_performers(performers)
        clusters = {name: members for name, members in groups.items() if len(members) > 1}
        self._logger.info(
            "dedup_scan_complete",
            performers=len(performers),
            duplicate_clusters=len(clusters),
            invalid_performers=len(invalid),
            dry_run=dry_run,
        )

        # Merge duplicate clusters, then settle every survivor's name.
        for canonical, members in groups.items():
            survivor, duplicates = members[0], members[1:]
            for duplicate in duplicates:
                if dry_run:
                    merged = await self._preview_merge(survivor.id, duplicate.id)
                else:
                    merged = await self._store.merge_performer(survivor.id, duplicate.id)
                _count_merge(counts, merged)
            if duplicates:
                self._logger.info(
                    "dedup_cluster_merged",
                    name=canonical,
                    survivor_id=survivor.id,
                    merged_ids=[d.id for d in duplicates],
                    dry_run=dry_run,
                )
            if survivor.name != canonical:
                if dry_run:
                    counts["renamed_survivors"] += 1
                else:
                    await self._rename_survivor(survivor, canonical, counts)

        # Purge invalid performers.
        for performer in invalid:
            if dry_run:
                removed = len(await self._store.get_performer_product_ids(performer.id))
            else:
                removed = await self._store.delete_performer(performer.id)
            counts["purged_links"] += removed
            self._logger.info(
                "dedup_invalid_performer_purged",
                performer_id=performer.id,
                name=performer.name,
                links=removed,
                dry_run=dry_run,
            )

        await self._purge_invalid_source_names(counts, dry_run)

        counts["dangling_aliases"] = await self._store.delete_dangling_aliases(dry_run=dry_run)
        counts["orphan_links"] = await self._store.delete_orphan_links(dry_run=dry_run)

        similar: list[SimilarPair] = []
        if self._config.report_similar:
            survivors = [
                members[0].model_copy(update={"name": name}) for name, members in groups.items()
            ]
            similar = self.find_similar(survivors)

        report = DedupReport(
            duplicate_clusters=len(clusters),
            invalid_performers=len(invalid),
            similar_pairs=similar,
            dry_run=dry_run,
            **counts,
        )
        self._logger.info(
            "dedup_run_complete",
            duration_seconds=round(time.monotonic() - started, 3),
            **report.model_dump(exclude={"similar_pairs"}),
            similar_pairs=len(similar),
        )
        return report

    async def _rename_survivor(
        self, survivor: Performer, canonical: str, counts: dict[str, int]
    ) -> None:
        try:
            await self._store.rename_performer(survivor.id, canonical)
        except PerformerConflictError:
            holder = await self._store.get_performer_by_name(canonical)
            if holder is None:
                self._logger.warning(
                    "dedup_rename_skipped", performer_id=survivor.id, name=canonical
                )
                return
            _count_merge(counts, await self._store.merge_performer(holder.id, survivor.id))
            self._logger.info(
                "dedup_survivor_folded_into_new_row",
                name=canonical,
                survivor_id=holder.id,
                merged_id=survivor.id,
            )
            return
        counts["renamed_survivors"] += 1

    async def _preview_merge(self, survivor_id: int, duplicate_id: int) -> dict[str, int]:
        survivor_products = set(await self._store.get_performer_product_ids(survivor_id))
        duplicate_products = await self._store.get_performer_product_ids(duplicate_id)
        conflicting = sum(1 for p in duplicate_products if p in survivor_products)
        return {
            "dropped_conflicting_links": conflicting,
            "relinked": len(duplicate_products) - conflicting,
            "migrated_aliases": len(await self._store.list_aliases(duplicate_id)),
        }

    async def _purge_invalid_source_names(self, counts: dict[str, int], dry_run: bool) -> None:
        for entry in await self._cache.list_entries():
            kept = [n for n in entry.names if self._validator.normalize_name(n) is not None]
            dropped = len(entry.names) - len(kept)
            if not dropped:
                continue
            counts["invalid_source_names"] += dropped
            if not kept:
                counts["purged_cache_entries"] += 1
            if dry_run:
                continue
            if kept:
                await self._cache.put(entry.product_code, entry.source, kept)
            else:
                await self._cache.delete(entry.product_code, entry.source)

    # -- Near-duplicate report ------------------------------------------------

    def find_similar(self, performers: list[Performer]) -> list[SimilarPair]:
        """Pairs of distinct names scoring at least the configured threshold."""
        names = [p.name for p in performers]
        pairs: list[SimilarPair] = []
        for i, performer in enumerate(performers):
            matches = process.extract(
                performer.name,
                names,
                scorer=fuzz.ratio,
                score_cutoff=self._config.similarity_threshold,
                limit=None,
            )
            for _, score, j in matches:
                if j <= i:
                    continue
                other = performers[j]
                pairs.append(
                    SimilarPair(
                        left_id=performer.id,
                        left_name=performer.name,
                        right_id=other.id,
                        right_name=other.name,
                        score=round(float(score), 2),
                    )
                )
        pairs.sort(key=lambda p: (-p.score, p.left_id, p.right_id))
        return pairs
