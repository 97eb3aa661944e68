"""Custom exception hierarchy for perflink.

All application exceptions inherit from :class:`PerflinkError`, which
carries an optional ``provider_name`` so error handlers can identify which
collaborator (e.g. "minnano-av", "sqlite_performer_store") caused the
failure.

The hierarchy is organized by the recovery policy of each failure:

    PerflinkError  (base -- catch-all for any perflink error)
    +-- SourceUnavailableError   (live index query failed; treated as empty)
    +-- PerformerConflictError   (unique violation on performer insert; re-select)
    +-- PersistenceError         (store unreachable; fatal for one product only)
    +-- ConfigurationError       (startup / invalid config)
    +-- PipelineError            (orchestration misuse)

"No match" is deliberately absent: an unresolved product is a normal
:class:`~perflink.models.resolution.NotFound` value, not an exception.
"""


class PerflinkError(Exception):
    """Base exception for all perflink errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which collaborator triggered the error.
    The ``__str__`` method prefixes the provider name in brackets for
    structured log output, e.g. ``[av-wiki] HTTP 503``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# External index errors
# ---------------------------------------------------------------------------

class SourceUnavailableError(PerflinkError):
    """Raised when a live performer-index query fails.

    Covers network errors, timeouts and non-2xx responses.  The source
    resolver catches this and moves on to the next source/variant, so it
    never escapes a resolution.
    """

    def __init__(
        self,
        message: str = "Performer index source is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Storage errors
# ---------------------------------------------------------------------------

class PerformerConflictError(PerflinkError):
    """Raised by a performer store when an insert hits the unique name constraint.

    Concurrent creators racing on the same new name end up here; the
    identity service recovers by re-selecting the existing row.
    """

    def __init__(
        self,
        message: str = "Performer name already exists",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PersistenceError(PerflinkError):
    """Raised when the underlying store is unreachable or a statement fails.

    The batch orchestrator treats this as fatal for the current product
    only and continues with the next one.
    """

    def __init__(
        self,
        message: str = "Persistence operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Orchestration / configuration errors
# ---------------------------------------------------------------------------

class ConfigurationError(PerflinkError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PipelineError(PerflinkError):
    """Raised when a batch job is misused (e.g. a second concurrent dedup run)."""

    def __init__(
        self,
        message: str = "Pipeline orchestration failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
