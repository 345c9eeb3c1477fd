"""Bidirectional conversion between KML coordinate text and GeoJSON.

Parse direction (``coordinates_to_geometry``)
    Splits a whitespace-delimited ``lon,lat[,alt]`` string, discards the
    altitude, drops tuples that do not parse as numbers and builds a
    GeoJSON geometry. Without an explicit geometry kind the shape is
    inferred from the points:

    - 3+ points with first == last: ``Polygon`` (one outer ring, no holes)
    - 2+ points otherwise: ``LineString``
    - exactly 1 point: ``Point``
    - no valid points: ``EmptyGeometryError``

Render direction (``geometry_to_coordinates``)
    Unwraps ``FeatureCollection`` / ``Feature`` wrappers (first feature
    wins), picks the outer ring of the first polygon for ``Polygon`` and
    ``MultiPolygon``, and returns a ``lon,lat,0`` coordinate string with
    its geometry kind. Unsupported or null geometry returns ``None`` so the
    caller can simply leave that placemark out.
"""

from __future__ import annotations

import logging
import math
from decimal import Decimal
from typing import Any

from parcel_geosync.core.exceptions import ValidationError
from parcel_geosync.models.placemark import GeometryKind

logger = logging.getLogger("parcel_geosync.activities.convert_geometry")

Position = list[float]

MIN_RING_POINTS = 3
MIN_LINE_POINTS = 2


class GeometryConversionError(ValidationError):
    """Coordinate text cannot form the requested geometry."""

    default_stage = "convert_geometry"
    default_code = "GEOMETRY_CONVERSION_FAILED"


class EmptyGeometryError(GeometryConversionError):
    """Coordinate text contains no parseable ``lon,lat`` tuple."""

    default_code = "GEOMETRY_EMPTY"


# ---------------------------------------------------------------------------
# Parse direction
# ---------------------------------------------------------------------------


def parse_positions(text: str) -> list[Position]:
    """Split coordinate text into ``[lon, lat]`` positions.

    Tuples with fewer than two members or non-finite numbers are dropped.
    """
    positions: list[Position] = []
    for token in text.split():
        parts = token.split(",")
        if len(parts) < 2:
            continue
        try:
            lon, lat = float(parts[0]), float(parts[1])
        except ValueError:
            continue
        if not (math.isfinite(lon) and math.isfinite(lat)):
            continue
        positions.append([lon, lat])
    return positions


def classify(positions: list[Position]) -> GeometryKind:
    """Infer the geometry kind from closure and point count."""
    if not positions:
        msg = "No valid coordinates"
        raise EmptyGeometryError(msg)
    if len(positions) >= MIN_RING_POINTS and positions[0] == positions[-1]:
        return GeometryKind.POLYGON
    if len(positions) >= MIN_LINE_POINTS:
        return GeometryKind.LINE_STRING
    return GeometryKind.POINT


def coordinates_to_geometry(
    text: str,
    kind: GeometryKind | None = None,
    *,
    label: str = "",
) -> dict[str, Any]:
    """Build a GeoJSON geometry from KML coordinate text.

    Args:
        text: Raw ``<coordinates>`` content.
        kind: Geometry element the text came from. ``None`` infers the
            kind from the points.
        label: Placemark name, used only in log and error messages.

    Raises:
        EmptyGeometryError: No valid ``lon,lat`` tuple in *text*.
        GeometryConversionError: Too few points for the explicit *kind*.
    """
    positions = parse_positions(text)
    if not positions:
        msg = f"No valid coordinates in placemark '{label}'" if label else "No valid coordinates"
        raise EmptyGeometryError(msg)

    if kind is None:
        kind = classify(positions)

    if kind is GeometryKind.POINT:
        return {"type": "Point", "coordinates": positions[0]}

    if kind is GeometryKind.LINE_STRING:
        if len(positions) < MIN_LINE_POINTS:
            msg = f"LineString needs at least {MIN_LINE_POINTS} points, got {len(positions)} in placemark '{label}'"
            raise GeometryConversionError(msg)
        return {"type": "LineString", "coordinates": positions}

    ring = close_ring(positions, label=label)
    check_ring_validity(ring, label=label)
    return {"type": "Polygon", "coordinates": [ring]}


def close_ring(positions: list[Position], *, label: str = "") -> list[Position]:
    """Return *positions* as a closed ring, appending the first point if needed.

    Raises:
        GeometryConversionError: Fewer than 3 points.
    """
    if len(positions) < MIN_RING_POINTS:
        msg = f"Polygon ring needs at least {MIN_RING_POINTS} points, got {len(positions)} in placemark '{label}'"
        raise GeometryConversionError(msg)
    if positions[0] != positions[-1]:
        logger.warning("Auto-closing unclosed ring | placemark=%s", label)
        return [*positions, list(positions[0])]
    return positions


def check_ring_validity(ring: list[Position], *, label: str = "") -> bool:
    """Log a warning when shapely considers *ring* an invalid polygon.

    Invalid rings (self-intersections, degenerate spikes) are kept as-is:
    the source GIS tool is the authority on the drawn shape.
    """
    from shapely.errors import GEOSException
    from shapely.geometry import Polygon
    from shapely.validation import explain_validity

    try:
        polygon = Polygon(ring)
    except (ValueError, GEOSException) as exc:
        logger.warning("Degenerate polygon ring | placemark=%s | reason=%s", label, exc)
        return False

    if not polygon.is_valid:
        logger.warning(
            "Invalid polygon geometry | placemark=%s | reason=%s",
            label,
            explain_validity(polygon),
        )
        return False
    return True


# ---------------------------------------------------------------------------
# Render direction
# ---------------------------------------------------------------------------


def geometry_to_coordinates(geometry: Any) -> tuple[str, GeometryKind] | None:
    """Render GeoJSON as KML coordinate text plus its geometry kind.

    Returns:
        ``(coordinates, kind)`` or ``None`` when there is nothing to render.
    """
    geometry = _unwrap(geometry)
    if geometry is None:
        return None

    geom_type = geometry.get("type")
    coords = geometry.get("coordinates")

    try:
        if geom_type == "Polygon":
            positions, kind = coords[0], GeometryKind.POLYGON
        elif geom_type == "MultiPolygon":
            positions, kind = coords[0][0], GeometryKind.POLYGON
        elif geom_type == "LineString":
            positions, kind = coords, GeometryKind.LINE_STRING
        elif geom_type == "Point":
            positions, kind = [coords], GeometryKind.POINT
        else:
            return None
        text = " ".join(_format_position(p) for p in positions)
    except (TypeError, IndexError, KeyError, ValueError):
        logger.debug("Unrenderable geometry | type=%s", geom_type)
        return None

    if not text:
        return None
    return text, kind


def _unwrap(geometry: Any) -> dict[str, Any] | None:
    """Strip FeatureCollection and Feature wrappers, first feature wins."""
    while isinstance(geometry, dict):
        geom_type = geometry.get("type")
        if geom_type == "FeatureCollection":
            features = geometry.get("features") or []
            geometry = features[0] if features else None
        elif geom_type == "Feature":
            geometry = geometry.get("geometry")
        else:
            return geometry
    return None


def _format_position(position: Any) -> str:
    lon, lat = position[0], position[1]
    return f"{_format_number(lon)},{_format_number(lat)},0"


def _format_number(value: Any) -> str:
    """Shortest round-tripping decimal in fixed notation (``10.0`` renders as ``10``, ``1e-05`` as ``0.00001``)."""
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return format(Decimal(repr(number)), "f")
