"""Utility modules for perflink.

- **code_normalizer** -- ordered rule table turning an ASP-native product
  code into the canonical variants searched in performer indexes.
- **errors** -- exception hierarchy rooted at PerflinkError, one subclass
  per recovery policy.
- **concurrency** -- semaphore-bounded fan-out for the batch loop.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
"""

# -- Product-code normalization ----------------------------------------------
from perflink.utils.code_normalizer import (
    CodeNormalizer,
    VariantRule,
    normalize_code_key,
    variants,
)

# -- Async concurrency helpers -----------------------------------------------
from perflink.utils.concurrency import run_bounded, throttled_gather

# -- Domain exception hierarchy ----------------------------------------------
from perflink.utils.errors import (
    ConfigurationError,
    PerflinkError,
    PerformerConflictError,
    PersistenceError,
    PipelineError,
    SourceUnavailableError,
)

# -- Structured logging setup ------------------------------------------------
from perflink.utils.logging import configure_logging, get_logger

__all__ = [
    "CodeNormalizer",
    "ConfigurationError",
    "PerflinkError",
    "PerformerConflictError",
    "PersistenceError",
    "PipelineError",
    "SourceUnavailableError",
    "VariantRule",
    "configure_logging",
    "get_logger",
    "normalize_code_key",
    "run_bounded",
    "throttled_gather",
    "variants",
]
