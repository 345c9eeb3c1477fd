"""Unified pipeline exception taxonomy.

Every domain exception inherits from ``PipelineError`` and carries
structured context fields so the HTTP boundary can map it to a status
code and a stable JSON error body.

Taxonomy categories
-------------------
- ``ValidationError``   — input-format violations (not a zip, no KML entry,
  unusable coordinates). Never retryable.
- ``TransientError``    — network or datastore failures that may succeed
  on a later run.
- ``PermanentError``    — failures that will not fix themselves, such as a
  rejected service credential.
- ``ContractError``     — request payload or configuration drift at the
  ingress boundary. Never retryable.

Per-placemark reconciliation failures and non-binary remote files are
*not* exceptions: they travel as result values (``SyncOutcome`` and
``FetchStatus.SKIP``) so one bad item never aborts a run.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base exception for all pipeline-domain errors.

    Attributes:
        message: Human-readable error description.
        stage: Pipeline stage where the error occurred
            (e.g. ``"extract_kmz"``, ``"fetch"``).
        code: Machine-readable error code (e.g. ``"KMZ_NOT_AN_ARCHIVE"``).
        retryable: Whether a later run could succeed without intervention.
        correlation_id: Request correlation identifier.
    """

    #: Default stage for subclasses (override via class attribute or kwarg).
    default_stage: str = ""
    #: Default code for subclasses (override via class attribute or kwarg).
    default_code: str = ""

    def __init__(
        self,
        message: str = "",
        *,
        stage: str = "",
        code: str = "",
        retryable: bool = False,
        correlation_id: str = "",
    ) -> None:
        self.message = message
        self.stage = stage or self.default_stage
        self.code = code or self.default_code
        self.retryable = retryable
        self.correlation_id = correlation_id
        super().__init__(message)

    @property
    def category(self) -> str:
        """Return the error category based on concrete class."""
        if isinstance(self, ContractError):
            return "contract"
        if isinstance(self, ValidationError):
            return "validation"
        if isinstance(self, TransientError):
            return "transient"
        if isinstance(self, PermanentError):
            return "permanent"
        return "transient" if self.retryable else "permanent"

    def to_error_dict(self) -> dict[str, object]:
        """Return a structured error payload with stable keys."""
        return {
            "category": self.category,
            "code": self.code,
            "stage": self.stage,
            "message": self.message,
            "retryable": self.retryable,
            "correlation_id": self.correlation_id,
        }


# ---------------------------------------------------------------------------
# Category base classes
# ---------------------------------------------------------------------------


class ValidationError(PipelineError):
    """Input or domain-model validation failure. Never retryable."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class TransientError(PipelineError):
    """Temporary failure that may succeed on retry."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", True)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class PermanentError(PipelineError):
    """Unrecoverable domain failure. Not retryable."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class ContractError(PipelineError):
    """Request payload or configuration drift at the boundary. Never retryable."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Datastore errors
# ---------------------------------------------------------------------------


class StoreUnavailableError(TransientError):
    """The parcel datastore could not be reached at all.

    Fatal for the whole sync call: nothing can be reconciled.
    """

    default_stage = "store"
    default_code = "STORE_UNAVAILABLE"


class StoreWriteError(TransientError):
    """A single insert or update was rejected by the datastore.

    Recorded as a per-item failure by the reconciliation engine.
    """

    default_stage = "store"
    default_code = "STORE_WRITE_FAILED"


class ConfigValueMissingError(ContractError):
    """A required key is absent from the key-value configuration table."""

    default_stage = "config"
    default_code = "CONFIG_VALUE_MISSING"

    def __init__(self, key: str, hint: str = "") -> None:
        self.key = key
        message = f"Configuration value {key!r} is not set"
        if hint:
            message = f"{message}. {hint}"
        super().__init__(message)
