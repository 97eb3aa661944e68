"""Run reports for the batch jobs.

Each batch job returns one of these at the end of a run; the CLI prints
them and the scheduler's log aggregation picks them up as structured log
fields.  They are the pipeline's only observable surface for data quality.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ResolutionRunReport(BaseModel):
    """Counters for one resolution batch."""

    model_config = ConfigDict(frozen=True)

    processed: int = 0
    resolved: int = 0
    title_matched: int = 0
    not_found: int = 0
    linked: int = 0
    already_linked: int = 0
    performers_created: int = 0
    invalid_candidates: int = 0
    persistence_failures: int = 0
    errors: int = 0
    skipped: int = 0
    stopped_by_deadline: bool = False
    duration_seconds: float = 0.0
    by_source: dict[str, int] = Field(default_factory=dict)


class SimilarPair(BaseModel):
    """Two performer names close enough to be worth a manual look."""

    model_config = ConfigDict(frozen=True)

    left_id: int
    left_name: str
    right_id: int
    right_name: str
    score: float


class DedupReport(BaseModel):
    """Counters for one dedup/cleanup run.  In dry-run mode they are what
    *would* have been changed."""

    model_config = ConfigDict(frozen=True)

    duplicate_clusters: int = 0
    merged_performers: int = 0
    renamed_survivors: int = 0
    relinked: int = 0
    dropped_conflicting_links: int = 0
    migrated_aliases: int = 0
    invalid_performers: int = 0
    purged_links: int = 0
    invalid_source_names: int = 0
    purged_cache_entries: int = 0
    dangling_aliases: int = 0
    orphan_links: int = 0
    similar_pairs: list[SimilarPair] = Field(default_factory=list)
    dry_run: bool = False


class IngestReport(BaseModel):
    """Counters for one crawler-ingest batch."""

    model_config = ConfigDict(frozen=True)

    received: int = 0
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    invalid_names: int = 0
    performers_created: int = 0
    aliases_added: int = 0


class StoreStats(BaseModel):
    """Point-in-time counts surfaced by ``perflink status``."""

    model_config = ConfigDict(frozen=True)

    products: int = 0
    linked_products: int = 0
    performers: int = 0
    aliases: int = 0
    links: int = 0
    cache_entries: dict[str, int] = Field(default_factory=dict)
