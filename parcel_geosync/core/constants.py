"""Shared pipeline constants — single source of truth.

Centralises configuration keys, content types and remote endpoints that
are referenced from the fetcher, the stores and the HTTP wiring layer.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Datastore layout
# ---------------------------------------------------------------------------

DEFAULT_PARCEL_CONTAINER: str = "parcel-data"
"""Default blob container holding parcel and configuration documents."""

PARCEL_PREFIX: str = "parcels/"
"""Blob name prefix for parcel documents (``parcels/<id>.json``)."""

CONFIG_PREFIX: str = "config/"
"""Blob name prefix for key-value configuration entries."""

FILE_ID_CONFIG_KEY: str = "google_drive_kml_file_id"
"""Config key naming the remote file synced when a request omits ``fileId``."""

FEED_TOKEN_CONFIG_KEY: str = "kml_access_token"
"""Config key holding the shared token required by the live feed."""

# ---------------------------------------------------------------------------
# Content types
# ---------------------------------------------------------------------------

KML_CONTENT_TYPE: str = "application/vnd.google-earth.kml+xml"
JSON_CONTENT_TYPE: str = "application/json"

# ---------------------------------------------------------------------------
# Remote file hosting (Google Drive)
# ---------------------------------------------------------------------------

DEFAULT_TOKEN_URI: str = "https://oauth2.googleapis.com/token"
DRIVE_READONLY_SCOPE: str = "https://www.googleapis.com/auth/drive.readonly"
DRIVE_API_FILES_URL: str = "https://www.googleapis.com/drive/v3/files"
DRIVE_PUBLIC_DOWNLOAD_URL: str = "https://drive.google.com/uc"
JWT_BEARER_GRANT_TYPE: str = "urn:ietf:params:oauth:grant-type:jwt-bearer"

GOOGLE_APPS_MIME_PREFIX: str = "application/vnd.google-apps."
"""Mime-type prefix of Drive items with no binary content (docs, shortcuts)."""

BROWSER_USER_AGENT: str = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)
