"""Tests for remote file references, Drive strategies and the fetcher.

All HTTP is served by ``httpx.MockTransport``; the token endpoint lives
at the test credential's ``token_uri``.
"""

from __future__ import annotations

from collections.abc import Callable

import httpx
import pytest

from parcel_geosync.core.exceptions import ContractError
from parcel_geosync.providers.base import FetchResult, FetchStatus, RemoteFileRef, extract_drive_file_id
from parcel_geosync.providers.drive import DriveApiStrategy, PublicLinkStrategy, looks_like_html
from parcel_geosync.providers.fetcher import DownloadFailedError, RemoteFileFetcher
from parcel_geosync.providers.google_auth import TokenExchangeError, TokenIssuer

FILE_ID = "1AbCdEfGhIjKlMnOpQrStUvWxYz012345"
KMZ = b"PK\x03\x04kmz-bytes"
HTML = b"<!DOCTYPE html><html><body>Google Drive can't scan this file for viruses.</body></html>"

Handler = Callable[[httpx.Request], httpx.Response]


def _client(handler: Handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def _clone(response: httpx.Response) -> httpx.Response:
    return httpx.Response(response.status_code, content=response.content, headers=response.headers)


def drive_handler(
    *,
    token_status: int = 200,
    meta: httpx.Response | None = None,
    media: httpx.Response | None = None,
    public: list[httpx.Response] | None = None,
    log: list[str] | None = None,
) -> Handler:
    """Fake Google endpoints. ``public`` responses are served in order."""
    public_queue = list(public or [httpx.Response(404)])

    def handler(request: httpx.Request) -> httpx.Response:
        url = request.url
        if log is not None:
            log.append(f"{url.host}{url.path}?{url.query.decode()}")
        if url.host == "oauth2.example.test":
            if token_status != 200:
                return httpx.Response(token_status, text='{"error":"invalid_grant"}')
            return httpx.Response(200, json={"access_token": "tok"})
        if url.host == "www.googleapis.com":
            assert request.headers["Authorization"] == "Bearer tok"
            if url.params.get("alt") == "media":
                return _clone(media) if media is not None else httpx.Response(200, content=KMZ)
            if meta is not None:
                return _clone(meta)
            return httpx.Response(200, json={"id": FILE_ID, "name": "glebas.kmz", "mimeType": "application/zip"})
        if url.host == "drive.google.com":
            return _clone(public_queue.pop(0) if len(public_queue) > 1 else public_queue[0])
        return httpx.Response(404)

    return handler


class TestRemoteFileRef:
    @pytest.mark.parametrize(
        "value",
        [
            FILE_ID,
            f"https://drive.google.com/file/d/{FILE_ID}/view?usp=sharing",
            f"https://drive.google.com/open?id={FILE_ID}",
            f"https://docs.google.com/document/d/{FILE_ID}/edit",
            f"https://drive.google.com/uc?export=download&id={FILE_ID}",
            f"https://drive.google.com/drive/u/0/folders/x/{FILE_ID}",
        ],
    )
    def test_file_id_extracted(self, value: str) -> None:
        assert RemoteFileRef.from_input(value).file_id == FILE_ID

    def test_non_drive_url_has_no_id(self) -> None:
        ref = RemoteFileRef.from_input("https://example.com/files/lot.kmz")
        assert ref == RemoteFileRef(url="https://example.com/files/lot.kmz", file_id="")
        assert extract_drive_file_id(ref.url) is None

    @pytest.mark.parametrize("value", ["", "   ", "lot 7.kmz"])
    def test_rejects_invalid(self, value: str) -> None:
        with pytest.raises(ContractError):
            RemoteFileRef.from_input(value)


class TestLooksLikeHtml:
    def test_doctype(self) -> None:
        assert looks_like_html(b"\n  <!doctype HTML><html>")

    def test_html_tag(self) -> None:
        assert looks_like_html(b"<html lang='en'>")

    def test_kml_is_not_html(self) -> None:
        assert not looks_like_html(b'<?xml version="1.0"?><kml>')

    def test_only_head_inspected(self) -> None:
        assert not looks_like_html(b"PK" + b"\x00" * 600 + b"<html>")


class TestDriveApiStrategy:
    def _fetch(self, credential, handler: Handler) -> FetchResult:
        with _client(handler) as client:
            strategy = DriveApiStrategy(TokenIssuer(credential, client), client)
            return strategy.fetch(RemoteFileRef(file_id=FILE_ID))

    def test_downloads_binary(self, service_credential) -> None:
        result = self._fetch(service_credential, drive_handler())
        assert result == FetchResult.ok(KMZ, "drive_api")

    def test_native_document_is_skip(self, service_credential) -> None:
        meta = httpx.Response(200, json={"name": "Map", "mimeType": "application/vnd.google-apps.shortcut"})
        result = self._fetch(service_credential, drive_handler(meta=meta))
        assert result.status is FetchStatus.SKIP
        assert "application/vnd.google-apps.shortcut" in result.reason

    def test_file_not_downloadable_is_skip(self, service_credential) -> None:
        media = httpx.Response(403, json={"error": {"code": 403, "errors": [{"reason": "fileNotDownloadable"}]}})
        result = self._fetch(service_credential, drive_handler(media=media))
        assert result.status is FetchStatus.SKIP

    def test_not_shared_is_failure(self, service_credential) -> None:
        meta = httpx.Response(404, json={"error": {"code": 404, "errors": [{"reason": "notFound"}]}})
        result = self._fetch(service_credential, drive_handler(meta=meta))
        assert result.status is FetchStatus.FAILED
        assert "notFound" in result.reason

    def test_token_failure_is_flagged(self, service_credential) -> None:
        result = self._fetch(service_credential, drive_handler(token_status=400))
        assert result.status is FetchStatus.FAILED
        assert result.auth_failed

    def test_needs_file_id(self, service_credential) -> None:
        with _client(drive_handler()) as client:
            result = DriveApiStrategy(TokenIssuer(service_credential, client), client).fetch(
                RemoteFileRef(url="https://example.com/a.kmz")
            )
        assert result.status is FetchStatus.FAILED


class TestPublicLinkStrategy:
    def test_direct_bytes(self) -> None:
        log: list[str] = []
        with _client(drive_handler(public=[httpx.Response(200, content=KMZ)], log=log)) as client:
            result = PublicLinkStrategy(client).fetch(RemoteFileRef(file_id=FILE_ID))
        assert result == FetchResult.ok(KMZ, "public_link")
        assert log == [f"drive.google.com/uc?export=download&id={FILE_ID}"]

    def test_confirmation_page_retried_with_confirm(self) -> None:
        log: list[str] = []
        responses = [httpx.Response(200, content=HTML), httpx.Response(200, content=KMZ)]
        with _client(drive_handler(public=responses, log=log)) as client:
            result = PublicLinkStrategy(client).fetch(RemoteFileRef(file_id=FILE_ID))
        assert result.status is FetchStatus.CONTENT
        assert log[1].endswith("confirm=t")

    def test_html_twice_fails(self) -> None:
        with _client(drive_handler(public=[httpx.Response(200, content=HTML)])) as client:
            result = PublicLinkStrategy(client).fetch(RemoteFileRef(file_id=FILE_ID))
        assert result.status is FetchStatus.FAILED
        assert "confirmation page" in result.reason
        assert result.confirm_page

    def test_raw_url_used_without_file_id(self) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            assert "Mozilla" in request.headers["User-Agent"]
            return httpx.Response(200, content=KMZ)

        with _client(handler) as client:
            PublicLinkStrategy(client).fetch(RemoteFileRef(url="https://files.example.com/lot.kmz"))
        assert seen == ["https://files.example.com/lot.kmz"]


class TestRemoteFileFetcher:
    def test_api_first_when_credential_present(self, service_credential) -> None:
        log: list[str] = []
        with _client(drive_handler(log=log)) as client:
            result = RemoteFileFetcher(client, service_credential).fetch(RemoteFileRef(file_id=FILE_ID))
        assert result.strategy == "drive_api"
        assert not any(entry.startswith("drive.google.com") for entry in log)

    def test_public_link_when_api_fails(self, service_credential) -> None:
        handler = drive_handler(
            meta=httpx.Response(404),
            public=[httpx.Response(200, content=KMZ)],
        )
        with _client(handler) as client:
            result = RemoteFileFetcher(client, service_credential).fetch(RemoteFileRef(file_id=FILE_ID))
        assert result.strategy == "public_link"

    def test_api_retry_after_public_html(self, service_credential) -> None:
        meta_calls = {"n": 0}
        base = drive_handler(public=[httpx.Response(200, content=HTML)])

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "www.googleapis.com" and request.url.params.get("alt") != "media":
                meta_calls["n"] += 1
                if meta_calls["n"] == 1:
                    return httpx.Response(503)
            return base(request)

        with _client(handler) as client:
            result = RemoteFileFetcher(client, service_credential).fetch(RemoteFileRef(file_id=FILE_ID))
        assert result.strategy == "drive_api_retry"
        assert result.content == KMZ

    def test_api_retry_not_run_after_public_http_error(self, service_credential) -> None:
        log: list[str] = []
        handler = drive_handler(meta=httpx.Response(404), public=[httpx.Response(404)], log=log)
        with _client(handler) as client, pytest.raises(DownloadFailedError) as exc_info:
            RemoteFileFetcher(client, service_credential).fetch(RemoteFileRef(file_id=FILE_ID))

        assert [a.strategy for a in exc_info.value.attempts] == ["drive_api", "public_link"]
        assert sum(entry.startswith("www.googleapis.com") for entry in log) == 1

    def test_skip_stops_the_chain(self, service_credential) -> None:
        meta = httpx.Response(200, json={"mimeType": "application/vnd.google-apps.document"})
        log: list[str] = []
        with _client(drive_handler(meta=meta, log=log)) as client:
            result = RemoteFileFetcher(client, service_credential).fetch(RemoteFileRef(file_id=FILE_ID))
        assert result.status is FetchStatus.SKIP
        assert not any(entry.startswith("drive.google.com") for entry in log)

    def test_without_credential_only_public(self) -> None:
        log: list[str] = []
        with _client(drive_handler(public=[httpx.Response(200, content=KMZ)], log=log)) as client:
            result = RemoteFileFetcher(client, None).fetch(RemoteFileRef(file_id=FILE_ID))
        assert result.strategy == "public_link"
        assert all(entry.startswith("drive.google.com") for entry in log)

    def test_all_failed_raises_download_failed_with_hint(self, service_credential) -> None:
        handler = drive_handler(meta=httpx.Response(404), public=[httpx.Response(200, content=HTML)])
        with _client(handler) as client, pytest.raises(DownloadFailedError) as exc_info:
            RemoteFileFetcher(client, service_credential).fetch(RemoteFileRef(file_id=FILE_ID))

        error = exc_info.value
        assert service_credential.client_email in error.hint
        assert [a.strategy for a in error.attempts] == ["drive_api", "public_link", "drive_api_retry"]
        assert error.retryable
        assert error.to_error_dict()["hint"] == error.hint

    def test_all_failed_after_token_failure_raises_token_error(self, service_credential) -> None:
        handler = drive_handler(token_status=400, public=[httpx.Response(500)])
        with _client(handler) as client, pytest.raises(TokenExchangeError) as exc_info:
            RemoteFileFetcher(client, service_credential).fetch(RemoteFileRef(file_id=FILE_ID))
        assert "invalid_grant" in exc_info.value.response_body

    def test_token_failure_but_public_works(self, service_credential) -> None:
        handler = drive_handler(token_status=400, public=[httpx.Response(200, content=KMZ)])
        with _client(handler) as client:
            result = RemoteFileFetcher(client, service_credential).fetch(RemoteFileRef(file_id=FILE_ID))
        assert result.strategy == "public_link"
