"""Sync pipeline: remote KML/KMZ file to parcel upserts.

Runs to completion inside one request:

1. Resolve the file id (request value, else the configured default)
2. Fetch the bytes (API -> public link -> API retry)
3. Unwrap KMZ or bare KML
4. Parse placemarks
5. Reconcile placemarks into parcels, sequentially

A non-binary remote file (shortcut, native document) ends the run as a
successful no-op with a warning. Input-format, authentication and
download failures abort the run by raising; per-placemark failures are
collected in the returned summary.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from parcel_geosync.activities.extract_kmz import unwrap_kml
from parcel_geosync.activities.parse_kml import parse_placemarks
from parcel_geosync.activities.reconcile_parcels import reconcile_placemarks
from parcel_geosync.core.constants import FILE_ID_CONFIG_KEY
from parcel_geosync.core.exceptions import ConfigValueMissingError
from parcel_geosync.models.sync_result import SyncSummary
from parcel_geosync.providers.base import FetchStatus, RemoteFileRef

if TYPE_CHECKING:
    from datetime import datetime

    from parcel_geosync.providers.fetcher import RemoteFileFetcher
    from parcel_geosync.stores.base import ParcelStore

logger = logging.getLogger("parcel_geosync.orchestrators.sync_pipeline")


def resolve_file_id(
    requested: str | None,
    store: ParcelStore,
    *,
    config_key: str = FILE_ID_CONFIG_KEY,
) -> str:
    """The request's file id, or the one stored under *config_key*.

    Raises:
        ConfigValueMissingError: Neither is available.
    """
    if requested and requested.strip():
        return requested.strip()

    configured = store.get_config(config_key)
    if not configured:
        raise ConfigValueMissingError(
            config_key,
            hint=f"Pass fileId in the request or set config key '{config_key}'",
        )
    return configured.strip()


def run_sync(
    requested_file_id: str | None,
    *,
    store: ParcelStore,
    fetcher: RemoteFileFetcher,
    parser: str = "regex",
    file_id_config_key: str = FILE_ID_CONFIG_KEY,
    now: datetime | None = None,
) -> SyncSummary:
    """Synchronise parcels from one remote KML/KMZ file.

    Args:
        requested_file_id: File id or Drive URL from the request, if any.
        store: Parcel datastore.
        fetcher: Remote file fetcher (owns the HTTP client and credential).
        parser: Placemark parser implementation name.
        file_id_config_key: Config key holding the default file id.
        now: Sync timestamp (defaults to now).

    Returns:
        Summary of the run; ``warning`` is set for non-binary files.

    Raises:
        ConfigValueMissingError: No file id supplied or configured.
        ContractError: The file reference is malformed.
        TokenExchangeError: Authentication failed and no public path worked.
        DownloadFailedError: Every fetch strategy failed.
        NotAnArchiveError: The content is neither KMZ nor KML.
        NoKmlEntryError: The KMZ holds no KML document.
        StoreUnavailableError: The datastore cannot be reached.
    """
    file_id = resolve_file_id(requested_file_id, store, config_key=file_id_config_key)
    ref = RemoteFileRef.from_input(file_id)
    logger.info("Sync started | file_id=%s | parser=%s", ref.label, parser)

    result = fetcher.fetch(ref)
    if result.status is FetchStatus.SKIP:
        logger.warning("Sync skipped | file_id=%s | reason=%s", ref.label, result.reason)
        return SyncSummary(file_id=ref.label, warning=f"File skipped: {result.reason}")

    kml_text = unwrap_kml(result.content)
    placemarks = parse_placemarks(kml_text, parser=parser)
    if not placemarks:
        logger.info("Sync found no placemarks | file_id=%s", ref.label)
        return SyncSummary(file_id=ref.label)

    summary = reconcile_placemarks(placemarks, store, file_id=ref.label, now=now)
    logger.info(
        "Sync completed | file_id=%s | imported=%d | updated=%d | failed=%d",
        ref.label,
        summary.imported,
        summary.updated,
        summary.failed,
    )
    return summary
