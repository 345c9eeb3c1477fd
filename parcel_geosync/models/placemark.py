"""Data model for a Placemark extracted from KML text.

A Placemark exists only for the duration of one sync invocation: the
parser produces them, the geometry converter turns their raw coordinate
text into GeoJSON, and the reconciliation engine upserts parcels from
them. They are never persisted.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

UNNAMED_PLACEMARK = "Unnamed"
"""Name given to a Placemark with no ``<name>`` element."""


class GeometryKind(enum.Enum):
    """Geometry type of a Placemark or converted geometry.

    Values match the GeoJSON ``type`` member and the KML element names.
    """

    POINT = "Point"
    LINE_STRING = "LineString"
    POLYGON = "Polygon"


@dataclass(frozen=True, slots=True)
class Placemark:
    """A named KML Placemark with its raw coordinate text.

    Attributes:
        name: Placemark ``<name>`` text (``"Unnamed"`` when absent).
        coordinates: Raw ``<coordinates>`` text, ``lon,lat[,alt]`` tuples
            separated by whitespace. May be empty or malformed; the
            geometry converter decides.
        external_id: Stable id from the ``id`` attribute or an
            ``ExtendedData`` field named ``id``; ``None`` when absent.
        kind: The geometry element the coordinates were found in, or
            ``None`` when the source did not say.
    """

    name: str
    coordinates: str
    external_id: str | None = None
    kind: GeometryKind | None = None
