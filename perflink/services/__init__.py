"""Business services: validation, resolution, identity, linking and maintenance."""

from perflink.services.dedup_service import DedupService
from perflink.services.linker import Linker
from perflink.services.lookup_ingest_service import LookupIngestService
from perflink.services.name_validator import NameValidator, is_valid_name, normalize_name
from perflink.services.performer_identity import PerformerIdentityService
from perflink.services.source_resolver import SourceResolver
from perflink.services.title_matcher import TitleMatcher

__all__ = [
    "DedupService",
    "Linker",
    "LookupIngestService",
    "NameValidator",
    "PerformerIdentityService",
    "SourceResolver",
    "TitleMatcher",
    "is_valid_name",
    "normalize_name",
]
