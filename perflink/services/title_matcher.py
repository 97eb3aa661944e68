"""Last-resort performer matching against a product's free-text title.

Titles often carry the cast explicitly (``【さくら ゆい】``, ``出演：まゆみ``)
or simply mention a known performer.  Both signals are noisy, so the
matcher only ever links to performers that already exist:

- **bracket / cast_label** -- names extracted from brackets and
  ``出演：`` / ``主演：`` / ``女優：`` labels, looked up by canonical name or
  alias.
- **known_name** -- every known name that passes the full-name heuristic
  is searched for as a substring of the title, longest first, so short
  given names ("ゆい") never produce a match on their own.

The known-name index is loaded with :meth:`TitleMatcher.refresh` and kept
current with :meth:`TitleMatcher.remember` as the pipeline creates
performers.
"""

from __future__ import annotations

import re

import structlog

from perflink.interfaces.performer_store_provider import IPerformerStoreProvider
from perflink.models.resolution import TitleMatch
from perflink.services.name_validator import NameValidator
from perflink.utils.logging import get_logger

_BRACKET_PATTERNS = (
    re.compile(r"【([^】]+)】"),
    re.compile(r"（([^）]+)）"),
    re.compile(r"\(([^)]+)\)"),
    re.compile(r"「([^」]+)」"),
)
_CAST_LABEL_PATTERNS = (
    re.compile(r"出演[：:]\s*([^\s【（]+)"),
    re.compile(r"主演[：:]\s*([^\s【（]+)"),
    re.compile(r"女優[：:]\s*([^\s【（]+)"),
)
_MAX_BRACKET_NAME_LENGTH = 20


class TitleMatcher:
    """Links products to existing performers by title text."""

    def __init__(
        self,
        store: IPerformerStoreProvider,
        validator: NameValidator | None = None,
    ) -> None:
        self._store = store
        self._validator = validator or NameValidator()
        self._index: dict[str, int] = {}
        self._scan_names: list[str] = []
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def refresh(self) -> int:
        """(Re)load canonical names and aliases.  Returns the index size."""
        index: dict[str, int] = {}
        for performer in await self._store.list_performers():
            index[performer.name] = performer.id
        for alias in await self._store.list_aliases():
            index.setdefault(alias.alias_name, alias.performer_id)
        self._index = index
        self._rebuild_scan_list()
        self._logger.info("title_index_loaded", names=len(index))
        return len(index)

    def remember(self, name: str, performer_id: int) -> None:
        if name not in self._index:
            self._index[name] = performer_id
            self._rebuild_scan_list()

    def _rebuild_scan_list(self) -> None:
        self._scan_names = sorted(
            (n for n in self._index if self._validator.is_full_name(n)),
            key=len,
            reverse=True,
        )

    def extract_candidates(self, title: str) -> list[TitleMatch]:
        """Names a title states explicitly, validated, in first-seen order."""
        found: dict[str, TitleMatch] = {}
        for pattern in _BRACKET_PATTERNS:
            for match in pattern.finditer(title):
                name = self._validator.normalize_name(match.group(1))
                if name and len(name) <= _MAX_BRACKET_NAME_LENGTH:
                    found.setdefault(name, TitleMatch(name=name, method="bracket"))
        for pattern in _CAST_LABEL_PATTERNS:
            match = pattern.search(title)
            if match:
                name = self._validator.normalize_name(match.group(1))
                if name:
                    found.setdefault(name, TitleMatch(name=name, method="cast_label"))
        return list(found.values())

    def match(self, title: str | None) -> list[tuple[int, TitleMatch]]:
        """Return ``(performer_id, match)`` pairs for *title*, one per performer."""
        if not title:
            return []
        text = self._validator.canonicalize(title)
        matches: list[tuple[int, TitleMatch]] = []
        seen: set[int] = set()

        for name in self._scan_names:
            if name in text:
                performer_id = self._index[name]
                if performer_id not in seen:
                    seen.add(performer_id)
                    matches.append((performer_id, TitleMatch(name=name, method="known_name")))

        for candidate in self.extract_candidates(text):
            performer_id = self._index.get(candidate.name)
            if performer_id is not None and performer_id not in seen:
                seen.add(performer_id)
                matches.append((performer_id, candidate))
        return matches
