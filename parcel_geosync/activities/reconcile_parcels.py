"""Reconciliation and upsert engine.

Matches each parsed placemark to an existing parcel and writes its
geometry, one placemark at a time:

1. Convert the coordinate text to GeoJSON. A conversion failure is a
   per-item failure; the loop continues.
2. Look the parcel up by stable external id, else by exact name.
3. Found: update geometry, source file id, sync timestamp and (only when
   the placemark carries one) the external id. Nothing else is touched.
4. Not found: insert a new parcel at the default lifecycle status.
5. A rejected write is a per-item failure; the loop continues.

Processing is strictly sequential. Parallel upserts against a name-based
lookup could create duplicates for placemarks sharing a name, and the
datastore offers no compare-and-swap.

Only ``StoreUnavailableError`` escapes: without a datastore nothing can
be reconciled.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from parcel_geosync.activities.convert_geometry import (
    GeometryConversionError,
    coordinates_to_geometry,
)
from parcel_geosync.core.exceptions import StoreWriteError
from parcel_geosync.models.parcel import DEFAULT_STATUS, Parcel
from parcel_geosync.models.sync_result import SyncOutcome, SyncSummary
from parcel_geosync.utils.helpers import to_iso, utc_now

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from parcel_geosync.models.placemark import Placemark
    from parcel_geosync.stores.base import ParcelStore

logger = logging.getLogger("parcel_geosync.activities.reconcile_parcels")


def find_existing(store: ParcelStore, placemark: Placemark) -> Parcel | None:
    """Stable external id first, then exact case-sensitive name."""
    if placemark.external_id:
        found = store.find_by_external_id(placemark.external_id)
        if found is not None:
            return found
    return store.find_by_name(placemark.name)


def reconcile_placemark(
    placemark: Placemark,
    store: ParcelStore,
    *,
    file_id: str,
    synced_at: str,
) -> SyncOutcome:
    """Upsert one placemark and describe what happened.

    Raises:
        StoreUnavailableError: The datastore cannot be reached at all.
    """
    try:
        geometry = coordinates_to_geometry(placemark.coordinates, placemark.kind, label=placemark.name)
    except GeometryConversionError as exc:
        logger.warning("Placemark geometry rejected | name=%s | error=%s", placemark.name, exc)
        return SyncOutcome.failed(placemark.name, f"{placemark.name}: {exc}")

    try:
        existing = find_existing(store, placemark)
        if existing is not None:
            changes: dict[str, object] = {
                "geometry": geometry,
                "source_file_id": file_id,
                "last_synced_at": synced_at,
                "external_id": placemark.external_id or existing.external_id,
            }
            updated = store.update(existing.id, changes)
            logger.debug("Parcel updated | id=%s | name=%s", updated.id, placemark.name)
            return SyncOutcome.updated(placemark.name, updated.id)

        created = store.insert(
            Parcel(
                name=placemark.name,
                status=DEFAULT_STATUS.value,
                geometry=geometry,
                source_file_id=file_id,
                external_id=placemark.external_id,
                last_synced_at=synced_at,
            )
        )
    except (StoreWriteError, TypeError, ValueError) as exc:
        logger.warning("Parcel write failed | name=%s | error=%s", placemark.name, exc)
        return SyncOutcome.failed(placemark.name, f"{placemark.name}: {exc}")

    logger.debug("Parcel created | id=%s | name=%s", created.id, placemark.name)
    return SyncOutcome.created(placemark.name, created.id)


def reconcile_placemarks(
    placemarks: Iterable[Placemark],
    store: ParcelStore,
    *,
    file_id: str,
    now: datetime | None = None,
) -> SyncSummary:
    """Reconcile every placemark sequentially and summarise the run.

    Args:
        placemarks: Parser output for one remote file.
        store: Parcel datastore.
        file_id: Remote file the placemarks came from.
        now: Sync timestamp written to every touched parcel.

    Returns:
        A ``SyncSummary`` with one outcome per placemark. Never raises for
        per-item failures.

    Raises:
        StoreUnavailableError: The datastore cannot be reached at all.
    """
    synced_at = to_iso(now or utc_now())
    outcomes = [
        reconcile_placemark(placemark, store, file_id=file_id, synced_at=synced_at)
        for placemark in placemarks
    ]
    summary = SyncSummary(outcomes=outcomes, file_id=file_id)

    logger.info(
        "Reconciliation finished | file_id=%s | imported=%d | updated=%d | failed=%d",
        file_id,
        summary.imported,
        summary.updated,
        summary.failed,
    )
    return summary
