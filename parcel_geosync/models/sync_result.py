"""Per-placemark sync outcomes and the run summary.

Each placemark processed by the reconciliation engine yields exactly one
``SyncOutcome``. Failures are values, not exceptions, so a malformed
placemark or a rejected write never aborts the batch. ``SyncSummary``
aggregates the outcomes into the response returned to the caller; it is
never persisted.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field


class OutcomeKind(enum.Enum):
    """Result of reconciling one placemark."""

    CREATED = "created"
    UPDATED = "updated"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class SyncOutcome:
    """Result of reconciling a single placemark.

    Attributes:
        kind: Created, updated or failed.
        placemark_name: Name of the source placemark.
        parcel_id: Id of the parcel written (empty on failure).
        reason: Human-readable failure reason (empty on success).
    """

    kind: OutcomeKind
    placemark_name: str
    parcel_id: str = ""
    reason: str = ""

    @classmethod
    def created(cls, placemark_name: str, parcel_id: str) -> SyncOutcome:
        return cls(OutcomeKind.CREATED, placemark_name, parcel_id=parcel_id)

    @classmethod
    def updated(cls, placemark_name: str, parcel_id: str) -> SyncOutcome:
        return cls(OutcomeKind.UPDATED, placemark_name, parcel_id=parcel_id)

    @classmethod
    def failed(cls, placemark_name: str, reason: str) -> SyncOutcome:
        return cls(OutcomeKind.FAILED, placemark_name, reason=reason)

    @property
    def ok(self) -> bool:
        return self.kind is not OutcomeKind.FAILED


@dataclass(frozen=True, slots=True)
class SyncSummary:
    """Aggregate of one sync run.

    Attributes:
        outcomes: One outcome per placemark, in source order.
        file_id: Remote file the run synced from.
        warning: Non-empty when the run was a deliberate no-op (for
            example, the remote file has no binary content).
    """

    outcomes: list[SyncOutcome] = field(default_factory=list)
    file_id: str = ""
    warning: str = ""

    @property
    def imported(self) -> int:
        """Number of parcels newly created."""
        return sum(1 for o in self.outcomes if o.kind is OutcomeKind.CREATED)

    @property
    def updated(self) -> int:
        """Number of existing parcels updated."""
        return sum(1 for o in self.outcomes if o.kind is OutcomeKind.UPDATED)

    @property
    def failed(self) -> int:
        """Number of placemarks that could not be reconciled."""
        return sum(1 for o in self.outcomes if o.kind is OutcomeKind.FAILED)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def errors(self) -> list[str]:
        """Failure messages, one per failed placemark."""
        return [o.reason for o in self.outcomes if o.kind is OutcomeKind.FAILED]

    @property
    def message(self) -> str:
        if self.warning:
            return self.warning
        if not self.outcomes:
            return "No placemarks found in the file"
        return f"Sync completed: {self.imported} imported, {self.updated} updated"

    def to_response(self) -> dict[str, object]:
        """Build the JSON body returned by the sync endpoint.

        ``errors`` is omitted entirely when nothing failed, and ``warning``
        only appears for no-op runs.
        """
        body: dict[str, object] = {
            "success": True,
            "message": self.message,
            "imported": self.imported,
            "updated": self.updated,
            "total": self.total,
        }
        errors = self.errors
        if errors:
            body["errors"] = errors
        if self.warning:
            body["warning"] = self.warning
        return body
