"""Outbound KML feed generator.

Renders every parcel that has a geometry into one KML document for a
GIS viewer polling it as a network link. The render is pure and
uncached: it runs fresh against current parcel state on every request.

Document structure::

    <kml>
      <NetworkLinkControl>   refresh period, "updated at" message
      <Document>
        <Style id="style_<status>">   one per known status, plus a default
        <Placemark id="<parcel id>">  one per renderable parcel

All text is entity-escaped. The HTML balloon description is built as a
fragment and then escaped as a whole, so names are escaped twice there
(once for HTML, once for XML) and the viewer unescapes once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING
from xml.sax.saxutils import escape

from parcel_geosync.activities.convert_geometry import geometry_to_coordinates
from parcel_geosync.core.constants import KML_CONTENT_TYPE
from parcel_geosync.models.parcel import ParcelStatus
from parcel_geosync.models.placemark import GeometryKind
from parcel_geosync.utils.formatting import format_area, format_currency
from parcel_geosync.utils.helpers import utc_now

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from parcel_geosync.models.parcel import Parcel

logger = logging.getLogger("parcel_geosync.activities.render_feed")

FEED_TITLE = "Parcels"
FEED_FILENAME = "parcels.kml"

FEED_HEADERS: dict[str, str] = {
    "Content-Type": KML_CONTENT_TYPE,
    "Content-Disposition": f'inline; filename="{FEED_FILENAME}"',
    "Cache-Control": "no-cache, no-store, must-revalidate",
}
"""HTTP headers for the feed response. Caching is explicitly disabled."""


@dataclass(frozen=True, slots=True)
class StatusStyle:
    """KML colours (``aabbggrr``) and display label for one status."""

    fill: str
    line: str
    label: str


STATUS_STYLES: dict[str, StatusStyle] = {
    ParcelStatus.IDENTIFIED.value: StatusStyle("800000ff", "ff0000ff", "Identified"),
    ParcelStatus.INFORMATION_RECEIVED.value: StatusStyle("8000a5ff", "ff00a5ff", "Information Received"),
    ParcelStatus.SITE_VISITED.value: StatusStyle("8000ffff", "ff00ffff", "Site Visited"),
    ParcelStatus.PROPOSAL_SENT.value: StatusStyle("80ff0000", "ffff0000", "Proposal Sent"),
    ParcelStatus.PROTOCOL_SIGNED.value: StatusStyle("8000ff00", "ff00ff00", "Protocol Signed"),
    ParcelStatus.DISCARDED.value: StatusStyle("80808080", "ff808080", "Discarded"),
    ParcelStatus.PROPOSAL_REJECTED.value: StatusStyle("800000aa", "ff0000aa", "Proposal Rejected"),
    ParcelStatus.DEAL_CLOSED.value: StatusStyle("8000aa00", "ff00aa00", "Deal Closed"),
    ParcelStatus.STANDBY.value: StatusStyle("80aa00aa", "ffaa00aa", "Standby"),
}

DEFAULT_STYLE_ID = "style_default"
DEFAULT_STYLE = StatusStyle("80c0c0c0", "ffc0c0c0", "")

SWAP_LABELS = {"sim": "Yes", "nao": "No"}
SWAP_UNKNOWN = "Uncertain"

_QUOTE_ESCAPES = {'"': "&quot;", "'": "&apos;"}


def escape_xml(text: object) -> str:
    """Escape ``& < > " '`` for XML element text and attribute values."""
    return escape(str(text), _QUOTE_ESCAPES)


def style_for(status: str) -> tuple[str, StatusStyle]:
    """Return ``(style id, style)`` for *status*, neutral for unknown values."""
    style = STATUS_STYLES.get(status)
    if style is None:
        return DEFAULT_STYLE_ID, StatusStyle(DEFAULT_STYLE.fill, DEFAULT_STYLE.line, status)
    return f"style_{status}", style


def detail_url(app_url: str, parcel_id: str) -> str:
    """Deep link to the parcel inside the application."""
    return f"{app_url.rstrip('/')}/glebas?id={parcel_id}"


# ---------------------------------------------------------------------------
# Fragments
# ---------------------------------------------------------------------------


def render_description(parcel: Parcel, app_url: str) -> str:
    """Build the HTML balloon fragment for *parcel* (not yet XML-escaped)."""
    _, style = style_for(parcel.status)
    rows = [("Status", escape_xml(style.label))]
    if parcel.city_name:
        rows.append(("City", escape_xml(parcel.city_name)))
    rows.append(("Area", escape_xml(format_area(parcel.area_m2))))
    rows.append(("Price", escape_xml(format_currency(parcel.price))))
    if parcel.owner_name:
        rows.append(("Owner", escape_xml(parcel.owner_name)))
    rows.append(("Accepts swap", SWAP_LABELS.get(parcel.accepts_swap or "", SWAP_UNKNOWN)))

    parts = [
        '<div style="font-family: Arial, sans-serif; max-width: 320px;">',
        f"<h2>{escape_xml(parcel.title)}</h2>",
        "<table>",
        *(f"<tr><td>{label}:</td><td><b>{value}</b></td></tr>" for label, value in rows),
        "</table>",
    ]
    if parcel.comments:
        parts.append(f"<p><i>Comments:</i> {escape_xml(parcel.comments)}</p>")
    if parcel.priority:
        parts.append("<p><b>Priority parcel</b></p>")
    parts.append(f'<p><a href="{escape_xml(detail_url(app_url, parcel.id))}" target="_blank">Open in app</a></p>')
    parts.append("</div>")
    return "".join(parts)


def render_geometry(coordinates: str, kind: GeometryKind) -> str:
    """KML geometry element for rendered coordinate text."""
    if kind is GeometryKind.POLYGON:
        return (
            "<Polygon><extrude>0</extrude><altitudeMode>clampToGround</altitudeMode>"
            "<outerBoundaryIs><LinearRing>"
            f"<coordinates>{coordinates}</coordinates>"
            "</LinearRing></outerBoundaryIs></Polygon>"
        )
    if kind is GeometryKind.LINE_STRING:
        return (
            "<LineString><tessellate>1</tessellate><altitudeMode>clampToGround</altitudeMode>"
            f"<coordinates>{coordinates}</coordinates></LineString>"
        )
    return f"<Point><altitudeMode>clampToGround</altitudeMode><coordinates>{coordinates}</coordinates></Point>"


def render_placemark(parcel: Parcel, app_url: str) -> str | None:
    """One ``<Placemark>`` for *parcel*, or ``None`` if its geometry cannot render."""
    rendered = geometry_to_coordinates(parcel.geometry)
    if rendered is None:
        logger.warning("Skipping parcel with unrenderable geometry | id=%s | name=%s", parcel.id, parcel.name)
        return None
    coordinates, kind = rendered
    style_id, _ = style_for(parcel.status)

    return (
        f'<Placemark id="{escape_xml(parcel.id)}">'
        f"<name>{escape_xml(parcel.title)}</name>"
        f"<description>{escape_xml(render_description(parcel, app_url))}</description>"
        f"<styleUrl>#{escape_xml(style_id)}</styleUrl>"
        f"{render_geometry(coordinates, kind)}"
        "</Placemark>"
    )


def render_styles() -> str:
    """Shared ``<Style>`` blocks, one per known status plus the default."""
    entries = [(f"style_{status}", style) for status, style in STATUS_STYLES.items()]
    entries.append((DEFAULT_STYLE_ID, DEFAULT_STYLE))
    return "\n".join(
        f'<Style id="{style_id}">'
        f"<PolyStyle><color>{style.fill}</color><fill>1</fill><outline>1</outline></PolyStyle>"
        f"<LineStyle><color>{style.line}</color><width>2</width></LineStyle>"
        f"<IconStyle><color>{style.line}</color><scale>1.0</scale></IconStyle>"
        "<BalloonStyle><bgColor>ffffffff</bgColor><textColor>ff000000</textColor></BalloonStyle>"
        "</Style>"
        for style_id, style in entries
    )


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------


def render_feed(
    parcels: Iterable[Parcel],
    *,
    app_url: str,
    refresh_s: int = 60,
    now: datetime | None = None,
) -> str:
    """Render *parcels* as a complete network-link KML document.

    Parcels without geometry, or whose geometry cannot be rendered, are
    left out.

    Args:
        parcels: Parcels to render (normally ``ParcelStore.list_with_geometry()``).
        app_url: Application base URL for deep links.
        refresh_s: Minimum refresh period advertised to the GIS client.
        now: Render time for the "updated at" message (defaults to now).
    """
    moment = now or utc_now()
    placemarks: list[str] = []
    skipped = 0
    for parcel in parcels:
        if not parcel.has_geometry:
            continue
        fragment = render_placemark(parcel, app_url)
        if fragment is None:
            skipped += 1
            continue
        placemarks.append(fragment)

    logger.info("Rendered feed | placemarks=%d | skipped=%d", len(placemarks), skipped)

    updated = moment.strftime("%Y-%m-%d %H:%M UTC")
    return "\n".join(
        [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<kml xmlns="http://www.opengis.net/kml/2.2">',
            "<NetworkLinkControl>",
            f"<minRefreshPeriod>{int(refresh_s)}</minRefreshPeriod>",
            "<maxSessionLength>-1</maxSessionLength>",
            f"<message>{escape_xml(f'{FEED_TITLE} updated at {updated}')}</message>",
            f"<linkName>{FEED_TITLE}</linkName>",
            f"<linkDescription>Parcel map, refreshed every {int(refresh_s)} seconds</linkDescription>",
            "</NetworkLinkControl>",
            "<Document>",
            f"<name>{FEED_TITLE}</name>",
            "<description>Parcels tracked by the acquisition pipeline. Automatic refresh enabled.</description>",
            "<open>1</open>",
            render_styles(),
            *placemarks,
            "</Document>",
            "</kml>",
            "",
        ]
    )
