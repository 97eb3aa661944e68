"""Idempotent product/performer association."""

from __future__ import annotations

import structlog

from perflink.interfaces.performer_store_provider import IPerformerStoreProvider
from perflink.models.resolution import LinkResult
from perflink.utils.logging import get_logger


class Linker:
    """Records "performer appears in product"; repeat calls are no-ops."""

    def __init__(self, store: IPerformerStoreProvider) -> None:
        self._store = store
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def link(self, product_id: int, performer_id: int) -> LinkResult:
        created = await self._store.link(product_id, performer_id)
        if created:
            self._logger.debug("product_linked", product_id=product_id, performer_id=performer_id)
        return LinkResult(product_id=product_id, performer_id=performer_id, created=created)
