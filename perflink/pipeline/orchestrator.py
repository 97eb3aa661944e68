"""Batch orchestrator for performer resolution.

One invocation processes a batch of products that have no performer link:

    product -> code variants -> SourceResolver (cache, then live)
            -> Found:    get-or-create each name -> link
            -> NotFound: optional title match against known performers
            -> nothing:  left for the next scheduled run

Products are independent, so they are fanned out through
:func:`~perflink.utils.concurrency.run_bounded` (one worker by default).
Before starting each product the :class:`JobDeadline` is consulted; once it
is within its margin the remaining products are skipped and the run exits
cleanly.  Partial progress is safe because every write is idempotent.
Every product the batch started is stamped as attempted, and the store
hands out never-attempted products first, so products that never resolve
rotate to the back instead of blocking the rest.

Failure policy per product: a :class:`PersistenceError` is counted and the
batch continues; any other exception is logged by ``run_bounded`` and
counted under ``errors``.
"""

from __future__ import annotations

import time
from collections import Counter

import structlog

from perflink.config.pipeline_config import JobConfig
from perflink.interfaces.performer_store_provider import IPerformerStoreProvider
from perflink.models.entities import Product
from perflink.models.reports import ResolutionRunReport
from perflink.models.resolution import Found
from perflink.pipeline.deadline import JobDeadline
from perflink.services.linker import Linker
from perflink.services.performer_identity import PerformerIdentityService
from perflink.services.source_resolver import SourceResolver
from perflink.services.title_matcher import TitleMatcher
from perflink.utils.concurrency import run_bounded
from perflink.utils.errors import PersistenceError
from perflink.utils.logging import get_logger


class PerformerResolutionPipeline:
    """Resolves and links performers for unlinked products.

    Parameters
    ----------
    store:
        Repository supplying unlinked products.
    resolver:
        Cache-then-network name resolver.
    identity:
        Get-or-create for performer rows.
    linker:
        Product/performer association.
    title_matcher:
        Optional fallback used when the resolver finds nothing.
    job:
        Batch limits, worker count and deadline settings.
    """

    def __init__(
        self,
        store: IPerformerStoreProvider,
        resolver: SourceResolver,
        identity: PerformerIdentityService,
        linker: Linker,
        title_matcher: TitleMatcher | None = None,
        job: JobConfig | None = None,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._identity = identity
        self._linker = linker
        self._title_matcher = title_matcher
        self._job = job or JobConfig()
        self._logger: structlog.BoundLogger = get_logger(__name__)

    def new_deadline(self) -> JobDeadline:
        return JobDeadline(self._job.time_budget_seconds, self._job.deadline_margin_seconds)

    async def run(
        self,
        limit: int | None = None,
        asp_name: str | None = None,
        deadline: JobDeadline | None = None,
    ) -> ResolutionRunReport:
        """Process one batch and return its counters."""
        started = time.monotonic()
        deadline = deadline or self.new_deadline()
        counts: Counter[str] = Counter()
        by_source: Counter[str] = Counter()
        stopped = False
        attempted: list[int] = []

        products = await self._store.list_unlinked_products(
            limit or self._job.batch_limit, asp_name=asp_name
        )
        use_titles = self._title_matcher is not None and self._job.title_match_fallback
        if use_titles and products:
            await self._title_matcher.refresh()
        self._logger.info(
            "resolution_batch_started",
            products=len(products),
            asp=asp_name,
            max_workers=self._job.max_workers,
        )

        async def _one(product: Product) -> None:
            nonlocal stopped
            if deadline.should_stop():
                if not stopped:
                    self._logger.info(
                        "resolution_deadline_reached", remaining=round(deadline.remaining(), 2)
                    )
                stopped = True
                counts["skipped"] += 1
                return
            counts["processed"] += 1
            attempted.append(product.id)
            try:
                await self._process(product, deadline, counts, by_source, use_titles)
            except PersistenceError as exc:
                counts["persistence_failures"] += 1
                self._logger.warning(
                    "product_persistence_failed",
                    product_id=product.id,
                    code=product.original_product_id,
                    error=str(exc),
                )

        results = await run_bounded(
            _one,
            products,
            max_workers=self._job.max_workers,
            logger=self._logger,
            error_msg="product_resolution_failed",
        )
        counts["errors"] += sum(1 for r in results if isinstance(r, BaseException))
        await self._store.mark_attempted(attempted)

        report = ResolutionRunReport(
            stopped_by_deadline=stopped,
            duration_seconds=round(time.monotonic() - started, 3),
            by_source=dict(by_source),
            **counts,
        )
        self._logger.info("resolution_batch_complete", **report.model_dump())
        return report

    async def _process(
        self,
        product: Product,
        deadline: JobDeadline,
        counts: Counter[str],
        by_source: Counter[str],
        use_titles: bool,
    ) -> None:
        resolution = await self._resolver.resolve_product(
            product.original_product_id, product.normalized_product_id, deadline
        )
        counts["invalid_candidates"] += resolution.rejected

        if isinstance(resolution, Found):
            linked_any = False
            for name in resolution.names:
                identity = await self._identity.resolve_identity(name)
                if identity is None:
                    counts["invalid_candidates"] += 1
                    continue
                performer, created = identity
                if created:
                    counts["performers_created"] += 1
                    if self._title_matcher is not None:
                        self._title_matcher.remember(performer.name, performer.id)
                linked_any |= await self._link(product.id, performer.id, counts)
            counts["resolved"] += 1
            by_source[resolution.source] += 1
            self._logger.debug(
                "product_resolved",
                product_id=product.id,
                source=resolution.source,
                variant=resolution.variant,
                names=resolution.names,
                new_links=linked_any,
            )
            return

        if use_titles:
            matches = self._title_matcher.match(product.title)
            for performer_id, _ in matches:
                await self._link(product.id, performer_id, counts)
            if matches:
                counts["title_matched"] += 1
                by_source["title"] += 1
                self._logger.debug(
                    "product_title_matched",
                    product_id=product.id,
                    names=[m.name for _, m in matches],
                )
                return

        counts["not_found"] += 1

    async def _link(self, product_id: int, performer_id: int, counts: Counter[str]) -> bool:
        result = await self._linker.link(product_id, performer_id)
        counts["linked" if result.created else "already_linked"] += 1
        return result.created
