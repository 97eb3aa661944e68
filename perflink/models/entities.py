"""Persistent domain entities read and written by the resolution pipeline.

All models are frozen Pydantic v2 models; stores return fresh instances and
callers derive modified copies with ``model_copy(update=...)``.

Key relationships:
    - Product is created upstream by ingestion; this pipeline only reads it
    - Performer is created lazily the first time a validated name resolves
    - PerformerAlias maps many secondary spellings to one Performer
    - ProductPerformer is the unique (product_id, performer_id) join row
    - LookupCacheEntry memoizes (normalized code, source) -> candidate names
"""

from __future__ import annotations

import datetime

from pydantic import BaseModel, ConfigDict, Field


class Product(BaseModel):
    """A catalog product awaiting (or holding) performer links."""

    model_config = ConfigDict(frozen=True)

    id: int
    original_product_id: str
    normalized_product_id: str = ""
    asp_name: str = ""
    title: str = ""
    last_attempted_at: datetime.datetime | None = None


class Performer(BaseModel):
    """Canonical performer identity.  ``name`` is unique in the store."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    created_at: datetime.datetime | None = None


class PerformerAlias(BaseModel):
    """Secondary spelling pointing at exactly one performer."""

    model_config = ConfigDict(frozen=True)

    id: int
    performer_id: int
    alias_name: str
    source: str = ""


class ProductPerformer(BaseModel):
    """Join row: this performer appears in this product."""

    model_config = ConfigDict(frozen=True)

    product_id: int
    performer_id: int


class LookupCacheEntry(BaseModel):
    """Memoized index result for one (code, source) pair.

    ``product_code`` is the rendering the entry was written with;
    ``code_key`` is its separator-free upper-case key, which is what the
    uniqueness constraint is declared on.
    """

    model_config = ConfigDict(frozen=True)

    product_code: str
    code_key: str
    source: str
    names: list[str] = Field(default_factory=list)
    updated_at: datetime.datetime | None = None
