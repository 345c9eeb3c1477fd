"""Google Drive fetch strategies.

``DriveApiStrategy``
    Authenticated Drive v3 API download. Reliable, but only works when the
    file is shared with the service account.

``PublicLinkStrategy``
    Unauthenticated ``uc?export=download`` link. Works for files shared
    "anyone with the link", but Drive answers large or unscanned files
    with an HTML confirmation page instead of bytes; that page is detected
    and the request retried once with ``confirm=t``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from parcel_geosync.core.constants import (
    BROWSER_USER_AGENT,
    DRIVE_API_FILES_URL,
    DRIVE_PUBLIC_DOWNLOAD_URL,
    GOOGLE_APPS_MIME_PREFIX,
)
from parcel_geosync.models.credential import CredentialError
from parcel_geosync.providers.base import FetchResult, FetchStrategy
from parcel_geosync.providers.google_auth import TokenExchangeError

if TYPE_CHECKING:
    from parcel_geosync.providers.base import RemoteFileRef
    from parcel_geosync.providers.google_auth import TokenIssuer

logger = logging.getLogger("parcel_geosync.providers.drive")

# Bytes inspected when deciding whether a body is an HTML page.
HTML_SNIFF_BYTES = 500

# Drive API error reasons meaning "valid item, but no binary to download".
NOT_DOWNLOADABLE_REASONS = frozenset({"fileNotDownloadable", "cannotDownloadAbusiveFile"})


def looks_like_html(content: bytes) -> bool:
    """Return ``True`` when the body starts like an HTML document."""
    head = content[:HTML_SNIFF_BYTES].lstrip().lower()
    return b"<!doctype html" in head or b"<html" in head


class DriveApiStrategy(FetchStrategy):
    """Download through the Drive v3 API with a service-account token."""

    def __init__(
        self,
        issuer: TokenIssuer,
        client: httpx.Client,
        *,
        name: str = "drive_api",
        after_confirm_page: bool = False,
    ) -> None:
        self._issuer = issuer
        self._client = client
        self.name = name
        self.after_confirm_page = after_confirm_page

    def fetch(self, ref: RemoteFileRef) -> FetchResult:
        if not ref.file_id:
            return FetchResult.failed("no file id to request from the API", self.name)

        try:
            token = self._issuer.token()
        except (TokenExchangeError, CredentialError) as exc:
            logger.warning("Token unavailable | strategy=%s | file_id=%s | error=%s", self.name, ref.file_id, exc)
            return FetchResult.failed(f"token exchange failed: {exc}", self.name, auth_failed=True)

        headers = {"Authorization": f"Bearer {token}"}
        file_url = f"{DRIVE_API_FILES_URL}/{ref.file_id}"

        try:
            meta = self._client.get(
                file_url,
                params={"fields": "id,name,mimeType", "supportsAllDrives": "true"},
                headers=headers,
            )
        except httpx.HTTPError as exc:
            return FetchResult.failed(f"metadata request failed: {exc}", self.name)

        if meta.status_code != httpx.codes.OK:
            return FetchResult.failed(
                f"metadata request returned HTTP {meta.status_code} ({_first_reason(meta) or 'no reason'})",
                self.name,
            )

        info = _json_or_empty(meta)
        mime_type = str(info.get("mimeType", ""))
        if mime_type.startswith(GOOGLE_APPS_MIME_PREFIX):
            reason = f"'{info.get('name', ref.file_id)}' is a {mime_type} item with no binary content"
            logger.warning("Remote file is not binary | file_id=%s | mime_type=%s", ref.file_id, mime_type)
            return FetchResult.skip(reason, self.name)

        try:
            response = self._client.get(
                file_url,
                params={"alt": "media", "supportsAllDrives": "true"},
                headers=headers,
            )
        except httpx.HTTPError as exc:
            return FetchResult.failed(f"download request failed: {exc}", self.name)

        if response.status_code == httpx.codes.FORBIDDEN and _first_reason(response) in NOT_DOWNLOADABLE_REASONS:
            logger.warning("Remote file is not downloadable | file_id=%s", ref.file_id)
            return FetchResult.skip(f"file {ref.file_id} cannot be downloaded as binary content", self.name)

        if response.status_code != httpx.codes.OK:
            return FetchResult.failed(f"download returned HTTP {response.status_code}", self.name)

        logger.info("Downloaded via API | file_id=%s | size=%d", ref.file_id, len(response.content))
        return FetchResult.ok(response.content, self.name)


class PublicLinkStrategy(FetchStrategy):
    """Unauthenticated download via the public link, with confirm-page retry."""

    def __init__(self, client: httpx.Client, *, name: str = "public_link") -> None:
        self._client = client
        self.name = name

    def fetch(self, ref: RemoteFileRef) -> FetchResult:
        if ref.file_id:
            url = DRIVE_PUBLIC_DOWNLOAD_URL
            params: dict[str, str] = {"export": "download", "id": ref.file_id}
        elif ref.url:
            url, params = ref.url, {}
        else:
            return FetchResult.failed("no URL or file id", self.name)

        result = self._get(url, params)
        if result is not None:
            return result

        logger.info("Confirmation page received, retrying with confirm | ref=%s", ref.label)
        result = self._get(url, {**params, "confirm": "t"})
        if result is not None:
            return result
        return FetchResult.failed(
            "public link still returns an HTML confirmation page", self.name, confirm_page=True
        )

    def _get(self, url: str, params: dict[str, str]) -> FetchResult | None:
        """GET once; ``None`` means an HTML page came back instead of bytes."""
        try:
            response = self._client.get(
                url,
                params=params or None,
                headers={"User-Agent": BROWSER_USER_AGENT},
                follow_redirects=True,
            )
        except httpx.HTTPError as exc:
            return FetchResult.failed(f"public download failed: {exc}", self.name)

        if response.status_code != httpx.codes.OK:
            return FetchResult.failed(f"public download returned HTTP {response.status_code}", self.name)
        if looks_like_html(response.content):
            return None

        logger.info("Downloaded via public link | size=%d", len(response.content))
        return FetchResult.ok(response.content, self.name)


def _json_or_empty(response: httpx.Response) -> dict[str, Any]:
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


def _first_reason(response: httpx.Response) -> str:
    """First ``error.errors[].reason`` of a Drive API error body, or ``""``."""
    error = _json_or_empty(response).get("error")
    if not isinstance(error, dict):
        return ""
    errors = error.get("errors")
    if isinstance(errors, list) and errors and isinstance(errors[0], dict):
        return str(errors[0].get("reason", ""))
    return ""
