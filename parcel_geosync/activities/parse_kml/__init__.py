"""KML placemark extraction.

Turns decompressed KML text into a sequence of ``Placemark`` records:
name, optional stable id, raw coordinate text and the geometry element
the coordinates came from. The reconciliation engine depends only on
that sequence, never on how it was produced.

Two interchangeable implementations:
- **_regex_parser**: pattern search over the raw text (default). Tolerates
  documents that are not well-formed XML.
- **_lxml_parser**: lxml element tree in recover mode.

Extraction rules:
- ``name`` defaults to ``"Unnamed"``.
- The stable id comes from the Placemark ``id`` attribute, else from an
  ``ExtendedData`` ``SimpleData``/``Data`` field named ``id``.
- The first ``Polygon``, ``LineString`` or ``Point`` coordinate block is
  captured, in that priority order.
- Placemarks without any coordinate block are skipped, not failed.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from parcel_geosync.activities.parse_kml._constants import (
    GEOMETRY_PRIORITY,
    KML_NAMESPACE,
)
from parcel_geosync.activities.parse_kml._lxml_parser import parse_with_lxml
from parcel_geosync.activities.parse_kml._regex_parser import parse_with_regex

if TYPE_CHECKING:
    from collections.abc import Callable

    from parcel_geosync.models.placemark import Placemark

logger = logging.getLogger("parcel_geosync.activities.parse_kml")

__all__ = [
    "GEOMETRY_PRIORITY",
    "KML_NAMESPACE",
    "PARSERS",
    "parse_placemarks",
    "parse_with_lxml",
    "parse_with_regex",
]

PARSERS: dict[str, Callable[[str], list[Placemark]]] = {
    "regex": parse_with_regex,
    "lxml": parse_with_lxml,
}


def parse_placemarks(kml_text: str, *, parser: str = "regex") -> list[Placemark]:
    """Extract placemarks from KML text.

    Args:
        kml_text: Decompressed KML document text.
        parser: Implementation name, ``"regex"`` or ``"lxml"``.

    Returns:
        Placemarks in document order. Empty when the document has none
        with coordinates.

    Raises:
        ValueError: If *parser* is not a known implementation.
    """
    try:
        parse = PARSERS[parser]
    except KeyError:
        msg = f"Unknown placemark parser {parser!r} (known: {', '.join(sorted(PARSERS))})"
        raise ValueError(msg) from None

    placemarks = parse(kml_text)
    logger.info(
        "Parsed placemarks | parser=%s | count=%d | size=%d chars",
        parser,
        len(placemarks),
        len(kml_text),
    )
    return placemarks
