"""Cache-then-network performer resolution for one product code.

Architecture role: **Cascade**
------------------------------
Given the ordered variants of a code and the configured source priority
list, the resolver answers "which performers are listed for this code?"
in two phases:

1. **Cache phase** -- every (variant, source) pair is checked against the
   lookup cache, variants outer and sources inner.  The first hit that
   still has a valid name after validation wins.  No network call is made
   until the cache has been exhausted.
2. **Live phase** -- on a full miss, enabled live sources are queried in
   the same order, one (variant, source) request at a time.  Each source
   has its own inter-request delay and per-call timeout; a timeout, a
   non-2xx response or a network error counts as "no candidates" and the
   cascade moves on.  A live answer is written to the cache before it is
   returned.

If nothing yields a valid candidate the result is :class:`NotFound`, a
normal value.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Mapping, Sequence

import httpx
import structlog

from perflink.config.pipeline_config import SourceConfig
from perflink.interfaces.index_source import IPerformerIndexSource
from perflink.interfaces.lookup_cache_provider import ILookupCacheProvider
from perflink.models.resolution import Found, NotFound, Resolution
from perflink.services.name_validator import NameValidator
from perflink.utils.code_normalizer import CodeNormalizer, normalize_code_key
from perflink.utils.errors import SourceUnavailableError
from perflink.utils.logging import get_logger

if TYPE_CHECKING:
    from perflink.pipeline.deadline import JobDeadline


class _SourceThrottle:
    """Enforces a minimum spacing between requests to one source.

    The lock serializes concurrent workers so the spacing holds across the
    whole process, not per task.
    """

    def __init__(self, delay_seconds: float) -> None:
        self._delay = delay_seconds
        self._last_request_time: float = 0.0
        self._lock = asyncio.Lock()

    async def wait(self) -> None:
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self._last_request_time
            if self._last_request_time > 0 and elapsed < self._delay:
                await asyncio.sleep(self._delay - elapsed)
            self._last_request_time = time.monotonic()


class SourceResolver:
    """Resolves performer-name candidates for product codes.

    Parameters
    ----------
    cache:
        Lookup cache consulted first and populated by live answers.
    sources:
        Configured sources; list order is the priority order.
    live_sources:
        Adapter per live source name.  Sources without an adapter (or
        configured ``cache_only``) are only read from the cache.
    validator:
        Filters cached and live candidates.
    normalizer:
        Produces the ordered code variants.
    """

    def __init__(
        self,
        cache: ILookupCacheProvider,
        sources: Sequence[SourceConfig],
        live_sources: Mapping[str, IPerformerIndexSource] | None = None,
        validator: NameValidator | None = None,
        normalizer: CodeNormalizer | None = None,
    ) -> None:
        self._cache = cache
        self._sources = list(sources)
        self._live_sources = dict(live_sources or {})
        self._validator = validator or NameValidator()
        self._normalizer = normalizer or CodeNormalizer()
        self._throttles = {s.name: _SourceThrottle(s.delay_seconds) for s in self._sources}
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @property
    def source_priority(self) -> list[str]:
        return [s.name for s in self._sources]

    def _live_order(self) -> list[tuple[SourceConfig, IPerformerIndexSource]]:
        order = []
        for config in self._sources:
            adapter = self._live_sources.get(config.name)
            if config.is_live and adapter is not None and adapter.is_available():
                order.append((config, adapter))
        return order

    # -- Public API -----------------------------------------------------------

    async def resolve(self, asp_code: str, deadline: JobDeadline | None = None) -> Resolution:
        """Resolve a single ASP code."""
        return await self.resolve_variants(self._normalizer.variants(asp_code), deadline)

    async def resolve_product(
        self,
        original_product_id: str,
        normalized_product_id: str = "",
        deadline: JobDeadline | None = None,
    ) -> Resolution:
        """Resolve using the variants of both product identifiers."""
        code_variants = self._normalizer.product_variants(original_product_id, normalized_product_id)
        return await self.resolve_variants(code_variants, deadline)

    async def resolve_variants(
        self,
        code_variants: Sequence[str],
        deadline: JobDeadline | None = None,
    ) -> Resolution:
        """Run the cache phase, then the live phase, over *code_variants*."""
        rejected = 0

        # -- Phase 1: cache, exhaustively ------------------------------------
        checked: set[tuple[str, str]] = set()
        for variant in code_variants:
            key = normalize_code_key(variant)
            for source in self.source_priority:
                if (key, source) in checked:
                    continue
                checked.add((key, source))
                cached = await self._cache.get(variant, source)
                if not cached:
                    continue
                names, dropped = self._validator.clean_candidates(cached)
                rejected += dropped
                if names:
                    self._logger.info(
                        "resolver_cache_hit", variant=variant, source=source, names=len(names)
                    )
                    return Found(
                        names=names,
                        source=source,
                        variant=variant,
                        from_cache=True,
                        rejected=rejected,
                    )

        # -- Phase 2: live sources in priority order -------------------------
        live_queries = 0
        queried: set[tuple[str, str]] = set()
        live_order = self._live_order()
        for variant in code_variants:
            for config, adapter in live_order:
                if (variant, config.name) in queried:
                    continue
                queried.add((variant, config.name))
                if deadline is not None and deadline.expired():
                    self._logger.info("resolver_deadline_reached", variant=variant)
                    return NotFound(
                        variants_tried=list(code_variants),
                        live_queries=live_queries,
                        rejected=rejected,
                    )

                raw = await self._query(config, adapter, variant, deadline)
                live_queries += 1
                if not raw:
                    continue
                names, dropped = self._validator.clean_candidates(raw)
                rejected += dropped
                if not names:
                    self._logger.debug(
                        "resolver_live_all_invalid", variant=variant, source=config.name
                    )
                    continue
                await self._cache.put(variant, config.name, names)
                self._logger.info(
                    "resolver_live_hit", variant=variant, source=config.name, names=len(names)
                )
                return Found(
                    names=names,
                    source=config.name,
                    variant=variant,
                    from_cache=False,
                    rejected=rejected,
                )

        self._logger.debug(
            "resolver_not_found", variants=len(code_variants), live_queries=live_queries
        )
        return NotFound(
            variants_tried=list(code_variants),
            live_queries=live_queries,
            rejected=rejected,
        )

    # -- Internal helpers -----------------------------------------------------

    async def _query(
        self,
        config: SourceConfig,
        adapter: IPerformerIndexSource,
        variant: str,
        deadline: JobDeadline | None,
    ) -> list[str]:
        """One throttled, time-boxed live query.  Failures yield ``[]``."""
        await self._throttles[config.name].wait()
        timeout = config.timeout_seconds
        if deadline is not None:
            timeout = min(timeout, deadline.remaining())
        try:
            return await asyncio.wait_for(adapter.lookup(variant), timeout=timeout)
        except asyncio.TimeoutError:
            self._logger.warning(
                "resolver_source_timeout", source=config.name, variant=variant, timeout=timeout
            )
        except SourceUnavailableError as exc:
            self._logger.warning(
                "resolver_source_unavailable", source=config.name, variant=variant, error=str(exc)
            )
        except httpx.HTTPError as exc:
            self._logger.warning(
                "resolver_source_http_error", source=config.name, variant=variant, error=str(exc)
            )
        return []
