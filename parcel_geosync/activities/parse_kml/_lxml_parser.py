"""lxml-based placemark extractor (alternate parser).

Walks an lxml element tree built in ``recover`` mode, so mildly broken
documents still yield whatever placemarks the parser could salvage.
Produces the same ``Placemark`` sequence as the regex parser and is
selected with ``KML_PARSER=lxml``.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from parcel_geosync.activities.parse_kml._constants import (
    EXTENDED_ID_FIELD,
    GEOMETRY_PRIORITY,
)
from parcel_geosync.models.placemark import UNNAMED_PLACEMARK, GeometryKind, Placemark

if TYPE_CHECKING:
    from lxml.etree import _Element

logger = logging.getLogger("parcel_geosync.activities.parse_kml")

# lxml refuses str input that carries an encoding declaration.
_XML_DECLARATION_RE = re.compile(r"^\s*<\?xml[^>]*\?>")


def parse_with_lxml(kml_text: str) -> list[Placemark]:
    """Extract placemarks by walking a recovered lxml element tree."""
    from lxml import etree  # type: ignore[attr-defined]

    parser = etree.XMLParser(
        recover=True,
        resolve_entities=False,
        no_network=True,
        huge_tree=False,
    )
    text = _XML_DECLARATION_RE.sub("", kml_text, count=1)
    try:
        root: _Element | None = etree.fromstring(text, parser=parser)
    except etree.XMLSyntaxError as exc:
        logger.warning("lxml could not recover any document structure: %s", exc)
        return []
    if root is None:
        return []

    placemarks: list[Placemark] = []
    for pm in root.iter("{*}Placemark"):
        name_elem = _child(pm, "name")
        name = (name_elem.text or "").strip() if name_elem is not None else ""

        geometry = _find_geometry(pm)
        if geometry is None:
            continue
        kind, coordinates = geometry

        placemarks.append(
            Placemark(
                name=name or UNNAMED_PLACEMARK,
                coordinates=coordinates,
                external_id=_find_external_id(pm),
                kind=kind,
            )
        )
    return placemarks


def _find_geometry(pm: _Element) -> tuple[GeometryKind, str] | None:
    for kind in GEOMETRY_PRIORITY:
        for geom in pm.iter(f"{{*}}{kind.value}"):
            for coords in geom.iter("{*}coordinates"):
                return kind, (coords.text or "").strip()
    return None


def _find_external_id(pm: _Element) -> str | None:
    attr = (pm.get("id") or "").strip()
    if attr:
        return attr

    for simple in pm.iter("{*}SimpleData"):
        if simple.get("name") == EXTENDED_ID_FIELD and (simple.text or "").strip():
            return (simple.text or "").strip()

    for data in pm.iter("{*}Data"):
        if data.get("name") != EXTENDED_ID_FIELD:
            continue
        value = _child(data, "value")
        if value is not None and (value.text or "").strip():
            return (value.text or "").strip()
    return None


def _child(elem: _Element, local_name: str) -> _Element | None:
    """First direct child with *local_name*, in any namespace."""
    for child in elem:
        tag = child.tag
        if isinstance(tag, str) and tag.rsplit("}", 1)[-1] == local_name:
            return child
    return None
