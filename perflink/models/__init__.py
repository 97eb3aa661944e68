"""perflink domain models -- re-exports all public model classes.

    - entities.py   -- persisted rows (Product, Performer, aliases, links, cache)
    - resolution.py -- per-product result values (Found / NotFound, links)
    - reports.py    -- batch run reports and store statistics
"""

from __future__ import annotations

from perflink.models.entities import (
    LookupCacheEntry,
    Performer,
    PerformerAlias,
    Product,
    ProductPerformer,
)
from perflink.models.reports import (
    DedupReport,
    IngestReport,
    ResolutionRunReport,
    SimilarPair,
    StoreStats,
)
from perflink.models.resolution import Found, LinkResult, NotFound, Resolution, TitleMatch

__all__ = [
    "DedupReport",
    "Found",
    "IngestReport",
    "LinkResult",
    "LookupCacheEntry",
    "NotFound",
    "Performer",
    "PerformerAlias",
    "Product",
    "ProductPerformer",
    "Resolution",
    "ResolutionRunReport",
    "SimilarPair",
    "StoreStats",
    "TitleMatch",
]
