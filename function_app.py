"""Azure Functions entry point — Parcel Geometry Sync.

This module registers all Azure Functions (HTTP routes and the timer
trigger) using the Python v2 programming model.

All business logic lives in the parcel_geosync package. This file is
purely the wiring layer between Azure Functions bindings and application
code: build per-request clients, hand off, map errors to HTTP.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

import azure.functions as func

from parcel_geosync.activities.process_kmz import process_kmz
from parcel_geosync.activities.render_feed import FEED_HEADERS, render_feed
from parcel_geosync.core.config import SyncConfig, load_service_credential
from parcel_geosync.core.constants import JSON_CONTENT_TYPE
from parcel_geosync.core.ingress import (
    CallerMode,
    build_http_client,
    check_feed_token,
    error_payload,
    get_blob_service_client,
    optional_str_field,
    parse_json_body,
    resolve_caller,
    status_for_error,
)
from parcel_geosync.orchestrators.sync_pipeline import run_sync
from parcel_geosync.providers.fetcher import RemoteFileFetcher
from parcel_geosync.stores.blob_store import BlobParcelStore

if TYPE_CHECKING:
    import httpx

    from parcel_geosync.models.sync_result import SyncSummary

app = func.FunctionApp(http_auth_level=func.AuthLevel.ANONYMOUS)

logger = logging.getLogger("parcel_geosync.function_app")


def _json_response(body: dict[str, object], status_code: int = 200) -> func.HttpResponse:
    return func.HttpResponse(
        json.dumps(body, ensure_ascii=False),
        status_code=status_code,
        mimetype=JSON_CONTENT_TYPE,
    )


def _error_response(exc: Exception, route: str) -> func.HttpResponse:
    status = status_for_error(exc)
    if status >= 500 and status not in (502, 503):
        logger.exception("Unhandled error | route=%s", route)
    else:
        logger.warning("Request failed | route=%s | status=%d | error=%s", route, status, exc)
    return _json_response(error_payload(exc), status)


def _sync(config: SyncConfig, client: httpx.Client, file_id: str | None) -> SyncSummary:
    store = BlobParcelStore(get_blob_service_client(), config.parcel_container)
    fetcher = RemoteFileFetcher(client, load_service_credential(), scope=config.drive_scope)
    return run_sync(
        file_id,
        store=store,
        fetcher=fetcher,
        parser=config.kml_parser,
        file_id_config_key=config.file_id_config_key,
    )


# ---------------------------------------------------------------------------
# HTTP: Sync from remote file
# ---------------------------------------------------------------------------


@app.function_name("sync_parcels")
@app.route(route="sync", methods=["POST"])
def sync_parcels(req: func.HttpRequest) -> func.HttpResponse:
    """Sync parcel geometry from a remote KML/KMZ file.

    Body: ``{"fileId": "<id or Drive URL>"}`` (optional; falls back to the
    configured file id). Returns the run summary.
    """
    try:
        config = SyncConfig.from_env()
        payload = parse_json_body(req.get_body())
        file_id = optional_str_field(payload, "fileId")

        with build_http_client(config) as client:
            caller = resolve_caller(
                req.headers.get("Authorization"),
                scheduler_anon_key=config.scheduler_anon_key,
                userinfo_url=config.auth_userinfo_url,
                client=client,
            )
            logger.info("Sync requested | caller=%s | file_id=%s", caller.value, file_id or "<configured>")
            summary = _sync(config, client, file_id)
    except Exception as exc:
        return _error_response(exc, "sync")

    return _json_response(summary.to_response())


# ---------------------------------------------------------------------------
# Timer: Scheduled sync
# ---------------------------------------------------------------------------


@app.function_name("scheduled_sync")
@app.timer_trigger(schedule="%SYNC_SCHEDULE%", arg_name="timer", run_on_startup=False)
def scheduled_sync(timer: func.TimerRequest) -> None:
    """Run the sync as the scheduled caller on the ``SYNC_SCHEDULE`` NCRONTAB."""
    if timer.past_due:
        logger.warning("Scheduled sync is running late")

    config = SyncConfig.from_env()
    with build_http_client(config) as client:
        summary = _sync(config, client, None)

    logger.info(
        "Scheduled sync finished | caller=%s | imported=%d | updated=%d | failed=%d",
        CallerMode.SCHEDULER.value,
        summary.imported,
        summary.updated,
        summary.failed,
    )


# ---------------------------------------------------------------------------
# HTTP: Live KML feed
# ---------------------------------------------------------------------------


@app.function_name("parcel_feed")
@app.route(route="feed", methods=["GET"])
def parcel_feed(req: func.HttpRequest) -> func.HttpResponse:
    """Serve every parcel with geometry as a network-link KML document.

    Query: ``token`` (required, matches the configured feed token) and
    ``app_url`` (optional base URL for deep links).
    """
    try:
        config = SyncConfig.from_env()
        store = BlobParcelStore(get_blob_service_client(), config.parcel_container)
        check_feed_token(req.params.get("token"), store.get_config(config.feed_token_config_key))

        app_url = (req.params.get("app_url") or config.app_base_url).rstrip("/")
        kml = render_feed(
            store.list_with_geometry(),
            app_url=app_url,
            refresh_s=config.feed_refresh_s,
        )
    except Exception as exc:
        return _error_response(exc, "feed")

    return func.HttpResponse(kml, status_code=200, headers=FEED_HEADERS)


# ---------------------------------------------------------------------------
# HTTP: Single KMZ to GeoJSON
# ---------------------------------------------------------------------------


@app.function_name("process_kmz")
@app.route(route="kmz/process", methods=["POST"])
def process_kmz_http(req: func.HttpRequest) -> func.HttpResponse:
    """Convert one remote KMZ/KML link into a GeoJSON geometry.

    Body: ``{"kmzUrl": "<url>"}``.
    """
    try:
        config = SyncConfig.from_env()
        payload = parse_json_body(req.get_body())
        with build_http_client(config) as client:
            fetcher = RemoteFileFetcher(client, load_service_credential(), scope=config.drive_scope)
            result = process_kmz(payload.get("kmzUrl"), fetcher=fetcher, parser=config.kml_parser)
    except Exception as exc:
        return _error_response(exc, "kmz/process")

    return _json_response(result)
