"""Data model for a land parcel.

A Parcel is the durable entity this pipeline synchronises. Only the
geometry and sync-provenance fields are ever written by the pipeline;
every other business field belongs to the application's CRUD layer and
is carried through untouched (unknown stored keys survive in ``extra``).

Geometry is a GeoJSON-style dict (``Point``, ``LineString`` or
``Polygon`` in WGS 84 ``[lon, lat]`` order) or ``None``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any


class ParcelStatus(enum.Enum):
    """Lifecycle stage of a parcel in the acquisition pipeline.

    Declaration order is pipeline order. Values are the identifiers
    stored in the datastore.
    """

    IDENTIFIED = "identificada"
    INFORMATION_RECEIVED = "informacoes_recebidas"
    SITE_VISITED = "visita_realizada"
    PROPOSAL_SENT = "proposta_enviada"
    PROTOCOL_SIGNED = "protocolo_assinado"
    DISCARDED = "descartada"
    PROPOSAL_REJECTED = "proposta_recusada"
    DEAL_CLOSED = "negocio_fechado"
    STANDBY = "standby"

    @classmethod
    def parse(cls, value: str) -> ParcelStatus | None:
        """Return the member for *value*, or ``None`` for unknown values."""
        try:
            return cls(value)
        except ValueError:
            return None


DEFAULT_STATUS = ParcelStatus.IDENTIFIED
"""Entry stage assigned to parcels created by a sync."""

# Keys owned by this model; anything else in a stored document goes to ``extra``.
_KNOWN_KEYS = frozenset(
    {
        "id",
        "name",
        "status",
        "geometry",
        "source_file_id",
        "external_id",
        "last_synced_at",
        "number",
        "area_m2",
        "price",
        "owner_name",
        "priority",
        "accepts_swap",
        "comments",
        "city_name",
    }
)


@dataclass(frozen=True, slots=True)
class Parcel:
    """A land parcel as stored in the datastore.

    Attributes:
        id: Datastore identity (empty until inserted).
        name: Display name; the fallback reconciliation key.
        status: Lifecycle status value (see ``ParcelStatus``). Kept as a
            plain string so unknown values written by other tools survive.
        geometry: GeoJSON geometry dict, or ``None``.
        source_file_id: Remote file the geometry was last synced from.
        external_id: Stable Placemark id; the primary reconciliation key.
        last_synced_at: ISO 8601 timestamp of the last sync write.
        number: Sequential parcel number shown in titles.
        area_m2: Parcel area in square metres.
        price: Asking price.
        owner_name: Owner's name.
        priority: Whether the parcel is flagged as a priority.
        accepts_swap: Swap acceptance (``"sim"``, ``"nao"``, ``"incerto"``).
        comments: Free-text comments.
        city_name: Name of the city the parcel belongs to.
        extra: Stored keys this model does not know about.
    """

    name: str
    id: str = ""
    status: str = DEFAULT_STATUS.value
    geometry: dict[str, Any] | None = None
    source_file_id: str | None = None
    external_id: str | None = None
    last_synced_at: str | None = None
    number: int | None = None
    area_m2: float | None = None
    price: float | None = None
    owner_name: str | None = None
    priority: bool = False
    accepts_swap: str | None = None
    comments: str | None = None
    city_name: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def has_geometry(self) -> bool:
        """Whether the parcel carries a geometry."""
        return self.geometry is not None

    @property
    def title(self) -> str:
        """Display title, ``#<number> - <name>`` when numbered."""
        if self.number:
            return f"#{self.number} - {self.name}"
        return self.name

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the stored document shape."""
        doc: dict[str, Any] = dict(self.extra)
        doc.update(
            {
                "id": self.id,
                "name": self.name,
                "status": self.status,
                "geometry": self.geometry,
                "source_file_id": self.source_file_id,
                "external_id": self.external_id,
                "last_synced_at": self.last_synced_at,
                "number": self.number,
                "area_m2": self.area_m2,
                "price": self.price,
                "owner_name": self.owner_name,
                "priority": self.priority,
                "accepts_swap": self.accepts_swap,
                "comments": self.comments,
                "city_name": self.city_name,
            }
        )
        return doc

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Parcel:
        """Deserialise from a stored document.

        Missing fields are defaulted rather than raising an error.

        Raises:
            TypeError: If ``geometry`` is present but not a dict.
        """
        geometry = data.get("geometry")
        if geometry is not None and not isinstance(geometry, dict):
            msg = f"geometry must be a dict or None, got {type(geometry).__name__}"
            raise TypeError(msg)

        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            status=str(data.get("status") or DEFAULT_STATUS.value),
            geometry=geometry,
            source_file_id=_opt_str(data.get("source_file_id")),
            external_id=_opt_str(data.get("external_id")),
            last_synced_at=_opt_str(data.get("last_synced_at")),
            number=_opt_int(data.get("number")),
            area_m2=_opt_float(data.get("area_m2")),
            price=_opt_float(data.get("price")),
            owner_name=_opt_str(data.get("owner_name")),
            priority=bool(data.get("priority", False)),
            accepts_swap=_opt_str(data.get("accepts_swap")),
            comments=_opt_str(data.get("comments")),
            city_name=_opt_str(data.get("city_name")),
            extra={k: v for k, v in data.items() if k not in _KNOWN_KEYS},
        )


def _opt_str(value: object) -> str | None:
    return None if value is None else str(value)


def _opt_int(value: object) -> int | None:
    if value is None or value == "":
        return None
    return int(value)  # type: ignore[arg-type]


def _opt_float(value: object) -> float | None:
    if value is None or value == "":
        return None
    return float(value)  # type: ignore[arg-type]
