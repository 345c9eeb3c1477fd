"""Single-file KMZ import for one parcel.

A parcel form may carry a link to a KMZ (or KML) file, usually on
Google Drive. This activity downloads it through the same fetch
strategies as the sync, unwraps it and converts the first coordinate
block into a GeoJSON geometry for the form to save.

Response shapes (always HTTP 200):

- ``{"success": true, "geojson": {...}}``
- ``{"success": true, "geojson": null, "warning": "..."}`` when the link
  points at a non-binary item or the file has no usable coordinates
- ``{"success": false, "error": "not_a_url", "message": "..."}`` when the
  value is a bare filename rather than a link
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from parcel_geosync.activities.convert_geometry import GeometryConversionError, coordinates_to_geometry
from parcel_geosync.activities.extract_kmz import unwrap_kml
from parcel_geosync.activities.parse_kml import parse_placemarks
from parcel_geosync.core.exceptions import ContractError
from parcel_geosync.providers.base import FetchStatus, RemoteFileRef

if TYPE_CHECKING:
    from parcel_geosync.providers.fetcher import RemoteFileFetcher

logger = logging.getLogger("parcel_geosync.activities.process_kmz")


def process_kmz(
    kmz_url: Any,
    *,
    fetcher: RemoteFileFetcher,
    parser: str = "regex",
) -> dict[str, Any]:
    """Download *kmz_url* and return its first geometry as GeoJSON.

    Raises:
        ContractError: *kmz_url* is missing or not a string.
        TokenExchangeError: Authentication failed and no public path worked.
        DownloadFailedError: Every fetch strategy failed.
        NotAnArchiveError: The content is neither KMZ nor KML.
        NoKmlEntryError: The KMZ holds no KML document.
    """
    if not isinstance(kmz_url, str) or not kmz_url.strip():
        msg = "kmzUrl is required"
        raise ContractError(msg, stage="process_kmz", code="MISSING_KMZ_URL")

    kmz_url = kmz_url.strip()
    if not kmz_url.startswith(("http://", "https://")):
        logger.info("Ignoring non-URL KMZ reference | value=%s", kmz_url)
        return {
            "success": False,
            "error": "not_a_url",
            "message": f"'{kmz_url}' is a filename, not a URL. Skipping.",
        }

    ref = RemoteFileRef.from_input(kmz_url)
    result = fetcher.fetch(ref)
    if result.status is FetchStatus.SKIP:
        return {"success": True, "geojson": None, "warning": f"File skipped: {result.reason}"}

    placemarks = parse_placemarks(unwrap_kml(result.content), parser=parser)
    if not placemarks:
        return {"success": True, "geojson": None, "warning": "No coordinates found in the file"}

    first = placemarks[0]
    try:
        geojson = coordinates_to_geometry(first.coordinates, label=first.name)
    except GeometryConversionError as exc:
        logger.warning("KMZ geometry rejected | ref=%s | error=%s", ref.label, exc)
        return {"success": True, "geojson": None, "warning": str(exc)}

    logger.info("Processed KMZ | ref=%s | type=%s", ref.label, geojson["type"])
    return {"success": True, "geojson": geojson}
