"""Get-or-create for canonical performer identities.

Lookup order for a candidate name: canonical name, then alias, then insert.
The insert relies on the store's unique constraint on ``performers.name``;
when two workers race on the same new name the loser receives a
:class:`~perflink.utils.errors.PerformerConflictError` and re-selects the
winner's row, so no external locking is needed.
"""

from __future__ import annotations

import structlog

from perflink.interfaces.performer_store_provider import IPerformerStoreProvider
from perflink.models.entities import Performer
from perflink.services.name_validator import NameValidator
from perflink.utils.errors import PerformerConflictError, PersistenceError
from perflink.utils.logging import get_logger


class PerformerIdentityService:
    """Maps validated names onto performer ids, creating rows lazily."""

    def __init__(
        self,
        store: IPerformerStoreProvider,
        validator: NameValidator | None = None,
    ) -> None:
        self._store = store
        self._validator = validator or NameValidator()
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def get_or_create(self, name: str) -> int | None:
        """Return the performer id for *name*, or ``None`` if it is not a valid name."""
        resolved = await self.resolve_identity(name)
        return resolved[0].id if resolved else None

    async def resolve_identity(self, name: str) -> tuple[Performer, bool] | None:
        """Like :meth:`get_or_create` but returns the row and a ``created`` flag."""
        canonical = self._validator.normalize_name(name)
        if canonical is None:
            self._logger.debug("performer_name_rejected", candidate=name)
            return None

        performer = await self._store.get_performer_by_name(canonical)
        if performer is not None:
            return performer, False

        performer = await self._store.get_performer_by_alias(canonical)
        if performer is not None:
            self._logger.debug("performer_found_by_alias", alias=canonical, performer_id=performer.id)
            return performer, False

        try:
            performer = await self._store.insert_performer(canonical)
        except PerformerConflictError:
            performer = await self._store.get_performer_by_name(canonical)
            if performer is None:
                raise PersistenceError(
                    f"performer {canonical!r} conflicted on insert but cannot be re-selected",
                    provider_name=self._store.get_provider_name(),
                ) from None
            self._logger.debug("performer_insert_conflict_reselected", name=canonical)
            return performer, False

        self._logger.info("performer_created", performer_id=performer.id, name=canonical)
        return performer, True

    async def add_alias(self, performer_id: int, alias: str, source: str = "") -> bool:
        """Record *alias* as a spelling of *performer_id*.

        Returns ``False`` when the alias is invalid, already recorded, or is
        itself some performer's canonical name.
        """
        canonical = self._validator.normalize_name(alias)
        if canonical is None:
            return False
        if await self._store.get_performer_by_name(canonical) is not None:
            return False
        added = await self._store.add_alias(performer_id, canonical, source)
        if added:
            self._logger.info(
                "performer_alias_added", performer_id=performer_id, alias=canonical, source=source
            )
        return added
