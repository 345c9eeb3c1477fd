"""Shared constants for placemark extraction."""

from __future__ import annotations

from parcel_geosync.models.placemark import GeometryKind

# KML 2.2 namespace
KML_NAMESPACE = "http://www.opengis.net/kml/2.2"

# Geometry elements searched inside a Placemark, highest priority first.
GEOMETRY_PRIORITY: tuple[GeometryKind, ...] = (
    GeometryKind.POLYGON,
    GeometryKind.LINE_STRING,
    GeometryKind.POINT,
)

# ExtendedData field carrying a stable placemark id.
EXTENDED_ID_FIELD = "id"
