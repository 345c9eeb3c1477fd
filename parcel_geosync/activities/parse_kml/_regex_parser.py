"""Pattern-matching placemark extractor (primary parser).

KML exported by desktop GIS tools is not reliably well-formed: stray
ampersands, unknown prefixes and truncated trailers are common. This
parser therefore never builds a DOM; it scans the text for
``Placemark`` blocks and pulls the few elements it needs out of each.

Namespace prefixes (``<kml:Placemark>``) are tolerated everywhere.
"""

from __future__ import annotations

import html
import logging
import re

from parcel_geosync.activities.parse_kml._constants import (
    EXTENDED_ID_FIELD,
    GEOMETRY_PRIORITY,
)
from parcel_geosync.models.placemark import UNNAMED_PLACEMARK, GeometryKind, Placemark

logger = logging.getLogger("parcel_geosync.activities.parse_kml")

_P = r"(?:[\w.-]+:)?"  # optional namespace prefix

_PLACEMARK_RE = re.compile(
    rf"<{_P}Placemark\b([^>]*)>(.*?)</{_P}Placemark\s*>",
    re.IGNORECASE | re.DOTALL,
)
_NAME_RE = re.compile(rf"<{_P}name\s*>(.*?)</{_P}name\s*>", re.IGNORECASE | re.DOTALL)
_ID_ATTR_RE = re.compile(r"""\bid\s*=\s*["']([^"']+)["']""", re.IGNORECASE)
_SIMPLE_DATA_ID_RE = re.compile(
    rf"""<{_P}SimpleData\s+name\s*=\s*["']{EXTENDED_ID_FIELD}["']\s*>(.*?)</{_P}SimpleData\s*>""",
    re.IGNORECASE | re.DOTALL,
)
_DATA_ID_RE = re.compile(
    rf"""<{_P}Data\s+name\s*=\s*["']{EXTENDED_ID_FIELD}["']\s*>\s*"""
    rf"<{_P}value\s*>(.*?)</{_P}value\s*>",
    re.IGNORECASE | re.DOTALL,
)
_CDATA_RE = re.compile(r"<!\[CDATA\[(.*?)\]\]>", re.DOTALL)

_GEOMETRY_RES: dict[GeometryKind, re.Pattern[str]] = {
    kind: re.compile(
        rf"<{_P}{kind.value}\b.*?<{_P}coordinates\b[^>]*>([^<]*)</{_P}coordinates\s*>",
        re.IGNORECASE | re.DOTALL,
    )
    for kind in GEOMETRY_PRIORITY
}

def parse_with_regex(kml_text: str) -> list[Placemark]:
    """Extract placemarks from KML text by pattern search.

    A placemark with no ``<coordinates>`` block at all is skipped. One
    whose block is present but empty or malformed is still returned, so
    the reconciliation engine can report it as a per-item failure.
    """
    placemarks: list[Placemark] = []

    for index, match in enumerate(_PLACEMARK_RE.finditer(kml_text)):
        attrs, body = match.group(1), match.group(2)
        name = _extract_name(body)

        geometry = _extract_geometry(body)
        if geometry is None:
            logger.debug("Skipping placemark without coordinates | index=%d | name=%s", index, name)
            continue
        kind, coordinates = geometry

        placemarks.append(
            Placemark(
                name=name,
                coordinates=coordinates,
                external_id=_extract_external_id(attrs, body),
                kind=kind,
            )
        )

    return placemarks


def _extract_name(body: str) -> str:
    match = _NAME_RE.search(body)
    if not match:
        return UNNAMED_PLACEMARK
    name = _text(match.group(1))
    return name or UNNAMED_PLACEMARK


def _extract_external_id(attrs: str, body: str) -> str | None:
    """Stable id: the Placemark ``id`` attribute, else ``ExtendedData`` ``id``."""
    attr_match = _ID_ATTR_RE.search(attrs)
    if attr_match and attr_match.group(1).strip():
        return attr_match.group(1).strip()

    for pattern in (_SIMPLE_DATA_ID_RE, _DATA_ID_RE):
        data_match = pattern.search(body)
        if data_match:
            value = _text(data_match.group(1))
            if value:
                return value
    return None


def _extract_geometry(body: str) -> tuple[GeometryKind, str] | None:
    for kind in GEOMETRY_PRIORITY:
        match = _GEOMETRY_RES[kind].search(body)
        if match:
            return kind, match.group(1).strip()
    return None


def _text(raw: str) -> str:
    """Element text with CDATA unwrapped and character references resolved."""
    cdata = _CDATA_RE.search(raw)
    if cdata:
        return cdata.group(1).strip()
    return html.unescape(raw).strip()
