"""ParcelStore abstract base class.

The pipeline talks to the application's datastore only through this
narrow interface: query parcels, insert one, update one by id, and read
a single key-value configuration entry.

Error contract:
    - A store that cannot be reached at all raises ``StoreUnavailableError``.
    - A single rejected insert/update raises ``StoreWriteError``.
"""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from parcel_geosync.models.parcel import Parcel


class ParcelStore(abc.ABC):
    """Datastore operations used by reconciliation and the feed."""

    @abc.abstractmethod
    def list_with_geometry(self) -> list[Parcel]:
        """Return every parcel whose geometry is not null."""

    @abc.abstractmethod
    def find_by_external_id(self, external_id: str) -> Parcel | None:
        """Return the first parcel with this stable placemark id."""

    @abc.abstractmethod
    def find_by_name(self, name: str) -> Parcel | None:
        """Return the first parcel whose name matches exactly (case-sensitive)."""

    @abc.abstractmethod
    def insert(self, parcel: Parcel) -> Parcel:
        """Persist a new parcel and return it with its assigned id."""

    @abc.abstractmethod
    def update(self, parcel_id: str, changes: dict[str, Any]) -> Parcel:
        """Merge *changes* into the stored parcel; other fields are untouched."""

    @abc.abstractmethod
    def get_config(self, key: str) -> str | None:
        """Return a configuration value, or ``None`` when unset."""
