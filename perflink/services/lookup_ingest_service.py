"""Populates the lookup cache and alias table from offline crawler output.

Crawlers own fetching and markup parsing; they hand over two kinds of
record:

- ``(source, product_code_as_crawled, [candidate names])`` lookup tuples.
  Multi-name strings are split, each name is validated and canonicalized,
  and the survivors are upserted keyed on the code's normalized form.  A
  tuple with no valid name left is skipped rather than cached as empty.
- ``(source, canonical_name, [aliases])`` alias lists taken from a source's
  performer profile pages.  The performer is looked up or created through
  :class:`~perflink.services.performer_identity.PerformerIdentityService`
  and each alias is recorded for it; aliases already on file are left alone.

JSON-lines input, one object per line::

    {"product_code": "GVH-802", "names": ["さくら ゆい"]}
    {"source": "seesaawiki", "product_code": "SSIS-865", "names": "まゆみ、ゆい"}
    {"source": "minnano-av", "name": "さくら ゆい", "aliases": ["桜ゆい", "サクラユイ"]}
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, Sequence

import structlog

from perflink.interfaces.lookup_cache_provider import ILookupCacheProvider
from perflink.models.reports import IngestReport
from perflink.services.name_validator import NameValidator
from perflink.services.performer_identity import PerformerIdentityService
from perflink.utils.code_normalizer import normalize_code_key
from perflink.utils.errors import ConfigurationError
from perflink.utils.logging import get_logger

CrawlRecord = tuple[str, str, Sequence[str]]
AliasRecord = tuple[str, str, Sequence[str]]


def _combine(first: IngestReport, second: IngestReport) -> IngestReport:
    totals = {
        name: getattr(first, name) + getattr(second, name) for name in IngestReport.model_fields
    }
    return IngestReport(**totals)


class LookupIngestService:
    """Validates crawler records and writes them to the cache and alias table.

    Parameters
    ----------
    cache:
        Destination cache.
    known_sources:
        Configured source names.  Records for any other source are skipped
        because the resolver would never read them.
    validator:
        Name validator shared with the resolver.
    identity:
        Get-or-create service used for alias lists.  Required only by
        :meth:`ingest_aliases`.
    """

    def __init__(
        self,
        cache: ILookupCacheProvider,
        known_sources: Iterable[str],
        validator: NameValidator | None = None,
        identity: PerformerIdentityService | None = None,
    ) -> None:
        self._cache = cache
        self._known_sources = set(known_sources)
        self._validator = validator or NameValidator()
        self._identity = identity
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def ingest(self, records: Iterable[CrawlRecord]) -> IngestReport:
        """Upsert every usable record; return inserted/updated/skipped counts."""
        received = inserted = updated = skipped = invalid = 0
        for source, code, raw_names in records:
            received += 1
            if source not in self._known_sources:
                self._logger.warning("ingest_unknown_source", source=source, code=code)
                skipped += 1
                continue
            if not normalize_code_key(code):
                skipped += 1
                continue
            if isinstance(raw_names, str):
                raw_names = [raw_names]
            names, rejected = self._validator.clean_candidates(raw_names)
            invalid += rejected
            if not names:
                skipped += 1
                continue
            if await self._cache.put(code, source, names):
                inserted += 1
            else:
                updated += 1

        report = IngestReport(
            received=received,
            inserted=inserted,
            updated=updated,
            skipped=skipped,
            invalid_names=invalid,
        )
        self._logger.info("ingest_complete", **report.model_dump())
        return report

    async def ingest_aliases(self, records: Iterable[AliasRecord]) -> IngestReport:
        """Record each source's alias list against its canonical performer.

        The performer is created when no row or alias matches the canonical
        name yet.  A record counts as inserted when at least one alias was
        new, otherwise as skipped.

        Raises:
            ConfigurationError: If the service was built without an identity
                service.
        """
        if self._identity is None:
            raise ConfigurationError("alias ingestion needs a PerformerIdentityService")

        received = inserted = skipped = invalid = created = added = 0
        for source, name, raw_aliases in records:
            received += 1
            if source not in self._known_sources:
                self._logger.warning("ingest_unknown_source", source=source, performer=name)
                skipped += 1
                continue
            identity = await self._identity.resolve_identity(name)
            if identity is None:
                invalid += 1
                skipped += 1
                continue
            performer, was_created = identity
            if was_created:
                created += 1

            if isinstance(raw_aliases, str):
                raw_aliases = [raw_aliases]
            aliases, rejected = self._validator.clean_candidates(raw_aliases)
            invalid += rejected
            new = 0
            for alias in aliases:
                if alias != performer.name and await self._identity.add_alias(
                    performer.id, alias, source
                ):
                    new += 1
            added += new
            if new:
                inserted += 1
            else:
                skipped += 1

        report = IngestReport(
            received=received,
            inserted=inserted,
            skipped=skipped,
            invalid_names=invalid,
            performers_created=created,
            aliases_added=added,
        )
        self._logger.info("alias_ingest_complete", **report.model_dump())
        return report

    async def ingest_jsonl(self, path: str | Path, default_source: str) -> IngestReport:
        """Ingest a JSON-lines crawl dump.

        Objects with ``product_code`` are lookup records; objects with
        ``name`` and ``aliases`` are alias lists.  Lines that are blank, not
        JSON objects, or neither kind are counted as skipped.
        """
        records: list[CrawlRecord] = []
        alias_records: list[AliasRecord] = []
        malformed = 0
        with open(path, encoding="utf-8") as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    obj = json.loads(line)
                except json.JSONDecodeError:
                    self._logger.warning("ingest_malformed_line", path=str(path), line=line_no)
                    malformed += 1
                    continue
                if not isinstance(obj, dict):
                    malformed += 1
                    continue
                source = str(obj.get("source") or default_source)
                if obj.get("product_code"):
                    names = obj.get("names", obj.get("performers", []))
                    records.append((source, str(obj["product_code"]), names or []))
                elif obj.get("name") and "aliases" in obj:
                    alias_records.append((source, str(obj["name"]), obj["aliases"] or []))
                else:
                    malformed += 1

        report = await self.ingest(records)
        if alias_records:
            report = _combine(report, await self.ingest_aliases(alias_records))
        if malformed:
            report = report.model_copy(
                update={
                    "received": report.received + malformed,
                    "skipped": report.skipped + malformed,
                }
            )
        return report
