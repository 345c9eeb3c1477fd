"""Thin ingress boundary helpers for the HTTP and timer entrypoints.

Centralises the transport concerns so that ``function_app.py`` contains
only trigger bindings and handoff:

- **parse_json_body** — decodes an optional JSON-object request body.
- **optional_str_field** — reads a typed optional field from a payload.
- **resolve_caller** — tells the scheduled caller from an interactive
  one and validates the interactive bearer token against the host's
  session service (delegated, not reimplemented).
- **check_feed_token** — guards the live feed with the shared token.
- **status_for_error** / **error_payload** — exception-to-HTTP mapping.
- **get_blob_service_client** / **build_http_client** — client factories.
"""

from __future__ import annotations

import enum
import hmac
import json
import logging
import os
from typing import TYPE_CHECKING, Any

import httpx

from parcel_geosync.core.config import ConfigValidationError
from parcel_geosync.core.exceptions import (
    ContractError,
    PipelineError,
    StoreUnavailableError,
    ValidationError,
)
from parcel_geosync.models.credential import CredentialError
from parcel_geosync.providers.fetcher import DownloadFailedError
from parcel_geosync.providers.google_auth import TokenExchangeError

if TYPE_CHECKING:
    from azure.storage.blob import BlobServiceClient

    from parcel_geosync.core.config import SyncConfig

logger = logging.getLogger("parcel_geosync.core.ingress")

BEARER_PREFIX = "Bearer "


class UnauthorizedError(PipelineError):
    """The caller could not be authenticated."""

    default_stage = "ingress"
    default_code = "UNAUTHORIZED"


class CallerMode(enum.Enum):
    """Who triggered a sync."""

    SCHEDULER = "scheduler"
    INTERACTIVE = "interactive"


# ---------------------------------------------------------------------------
# Request body
# ---------------------------------------------------------------------------


def parse_json_body(raw: bytes | str | None) -> dict[str, Any]:
    """Decode an optional JSON-object body. Empty bodies yield ``{}``.

    Raises:
        ContractError: If the body is not JSON or not a JSON object.
    """
    if raw is None:
        return {}
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if not raw.strip():
        return {}

    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, ValueError) as exc:
        msg = f"Request body is not valid JSON: {exc}"
        raise ContractError(msg, stage="ingress", code="INVALID_JSON") from exc
    if not isinstance(parsed, dict):
        msg = f"Request body must be a JSON object, got {type(parsed).__name__}"
        raise ContractError(msg, stage="ingress", code="INVALID_INPUT_TYPE")
    return parsed


def optional_str_field(payload: dict[str, Any], key: str) -> str | None:
    """Return ``payload[key]`` as a string, ``None`` when absent or null.

    Raises:
        ContractError: If the value is present but not a string.
    """
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        msg = f"Field '{key}' must be a string, got {type(value).__name__}"
        raise ContractError(msg, stage="ingress", code="INVALID_INPUT_TYPE")
    return value


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


def resolve_caller(
    authorization: str | None,
    *,
    scheduler_anon_key: str,
    userinfo_url: str,
    client: httpx.Client,
) -> CallerMode:
    """Classify the caller of the sync endpoint.

    No ``Authorization`` header, or ``Bearer <scheduler key>``, is the
    scheduled job. Any other bearer token belongs to an interactive user
    and is accepted only if the session service answers 200 for it.

    Raises:
        UnauthorizedError: Malformed header, unconfigured session service,
            or a token the session service rejects.
    """
    if not authorization:
        return CallerMode.SCHEDULER
    if scheduler_anon_key and _same(authorization, f"{BEARER_PREFIX}{scheduler_anon_key}"):
        return CallerMode.SCHEDULER

    if not authorization.startswith(BEARER_PREFIX):
        msg = "Authorization header must use the Bearer scheme"
        raise UnauthorizedError(msg)
    if not userinfo_url:
        msg = "Interactive callers are not accepted: AUTH_USERINFO_URL is not configured"
        raise UnauthorizedError(msg)

    try:
        response = client.get(userinfo_url, headers={"Authorization": authorization})
    except httpx.HTTPError as exc:
        msg = f"Session service unreachable: {exc}"
        raise UnauthorizedError(msg) from exc

    if response.status_code != httpx.codes.OK:
        logger.warning("Interactive caller rejected | status=%d", response.status_code)
        msg = "Invalid or expired session token"
        raise UnauthorizedError(msg)

    return CallerMode.INTERACTIVE


def check_feed_token(provided: str | None, expected: str | None) -> None:
    """Require the feed's ``token`` query parameter to match the configured one.

    Raises:
        UnauthorizedError: Missing, mismatched or unconfigured token.
    """
    if not expected:
        msg = "Feed access token is not configured"
        raise UnauthorizedError(msg)
    if not provided or not _same(provided, expected):
        msg = "Invalid feed access token"
        raise UnauthorizedError(msg)


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------

# First match wins; order matters where classes overlap.
_STATUS_BY_ERROR: tuple[tuple[type[BaseException], int], ...] = (
    (UnauthorizedError, 401),
    (TokenExchangeError, 502),
    (CredentialError, 502),
    (DownloadFailedError, 502),
    (StoreUnavailableError, 503),
    (ConfigValidationError, 400),
    (ContractError, 400),
    (ValidationError, 422),
)


def status_for_error(exc: BaseException) -> int:
    """HTTP status for an exception escaping a handler."""
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


def error_payload(exc: BaseException) -> dict[str, object]:
    """JSON error body: ``error``, ``code`` and ``category``.

    Unexpected exceptions get a generic message so internals do not leak.
    """
    if isinstance(exc, PipelineError):
        details = exc.to_error_dict()
        body: dict[str, object] = {
            "error": details["message"],
            "code": details["code"],
            "category": details["category"],
        }
        if isinstance(exc, DownloadFailedError) and exc.hint:
            body["hint"] = exc.hint
        return body
    return {"error": "Internal server error", "code": "INTERNAL_ERROR", "category": "unexpected"}


# ---------------------------------------------------------------------------
# Client factories
# ---------------------------------------------------------------------------


def get_blob_service_client() -> BlobServiceClient:
    """Create a ``BlobServiceClient`` from the ``AzureWebJobsStorage`` env var.

    Raises:
        ContractError: If the environment variable is not set.
    """
    from azure.storage.blob import BlobServiceClient

    connection_string = os.environ.get("AzureWebJobsStorage", "")  # noqa: SIM112
    if not connection_string:
        msg = "AzureWebJobsStorage environment variable is not set"
        raise ContractError(msg, stage="ingress", code="MISSING_CONNECTION_STRING")

    return BlobServiceClient.from_connection_string(connection_string)


def build_http_client(config: SyncConfig) -> httpx.Client:
    """Outbound HTTP client shared by one request's fetcher and auth checks."""
    return httpx.Client(timeout=config.http_timeout_s)


def _same(left: str, right: str) -> bool:
    """Constant-time string comparison."""
    return hmac.compare_digest(left.encode("utf-8"), right.encode("utf-8"))
