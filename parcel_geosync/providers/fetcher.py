"""Remote file fetcher: runs fetch strategies in order.

Strategy order for a reference with a file id and a service credential::

    drive_api  ->  public_link (+ confirm retry)  ->  drive_api_retry

Without a credential (or without a file id) only ``public_link`` runs.
The first ``CONTENT`` or ``SKIP`` result wins. When every strategy fails
the run is aborted: with ``TokenExchangeError`` if authentication was
what broke, otherwise with ``DownloadFailedError`` carrying an
actionable hint.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from parcel_geosync.core.constants import DRIVE_READONLY_SCOPE
from parcel_geosync.core.exceptions import TransientError
from parcel_geosync.providers.base import FetchResult, FetchStatus, FetchStrategy
from parcel_geosync.providers.drive import DriveApiStrategy, PublicLinkStrategy
from parcel_geosync.providers.google_auth import TokenIssuer

if TYPE_CHECKING:
    import httpx

    from parcel_geosync.models.credential import ServiceCredential
    from parcel_geosync.providers.base import RemoteFileRef

logger = logging.getLogger("parcel_geosync.providers.fetcher")


class DownloadFailedError(TransientError):
    """Every fetch strategy failed for a remote file.

    Attributes:
        hint: What the operator can do about it.
        attempts: One ``FetchResult`` per strategy tried, in order.
    """

    default_stage = "fetch"
    default_code = "DOWNLOAD_FAILED"

    def __init__(
        self,
        message: str,
        *,
        hint: str = "",
        attempts: list[FetchResult] | None = None,
        **kwargs: object,
    ) -> None:
        self.hint = hint
        self.attempts = list(attempts or [])
        if hint:
            message = f"{message}. Hint: {hint}"
        super().__init__(message, **kwargs)  # type: ignore[arg-type]

    def to_error_dict(self) -> dict[str, object]:
        payload = super().to_error_dict()
        payload["hint"] = self.hint
        payload["attempts"] = [f"{a.strategy}: {a.reason}" for a in self.attempts]
        return payload


class RemoteFileFetcher:
    """Resolve a ``RemoteFileRef`` to bytes, or to a typed skip.

    Args:
        client: Shared ``httpx.Client`` (timeouts configured by the caller).
        credential: Service credential; ``None`` disables the API strategies.
        scope: OAuth scope requested for the API strategies.
    """

    def __init__(
        self,
        client: httpx.Client,
        credential: ServiceCredential | None = None,
        *,
        scope: str = DRIVE_READONLY_SCOPE,
    ) -> None:
        self._client = client
        self._credential = credential
        self._scope = scope

    def strategies(self, ref: RemoteFileRef) -> tuple[list[FetchStrategy], TokenIssuer | None]:
        """Ordered strategy list for *ref*, plus the token issuer they share."""
        public = PublicLinkStrategy(self._client)
        if not (ref.file_id and self._credential is not None):
            return [public], None

        issuer = TokenIssuer(self._credential, self._client, self._scope)
        return [
            DriveApiStrategy(issuer, self._client),
            public,
            DriveApiStrategy(issuer, self._client, name="drive_api_retry", after_confirm_page=True),
        ], issuer

    def fetch(self, ref: RemoteFileRef) -> FetchResult:
        """Run the strategies in order; return the first content or skip.

        Raises:
            TokenExchangeError: All strategies failed and a token exchange
                failed along the way.
            CredentialError: As above, but the key could not even be loaded.
            DownloadFailedError: All strategies failed otherwise.
        """
        strategies, issuer = self.strategies(ref)
        attempts: list[FetchResult] = []

        for strategy in strategies:
            if strategy.after_confirm_page and not (attempts and attempts[-1].confirm_page):
                logger.info("Fetch strategy not needed | ref=%s | strategy=%s", ref.label, strategy.name)
                continue
            result = strategy.fetch(ref)
            if result.status is not FetchStatus.FAILED:
                logger.info(
                    "Fetch finished | ref=%s | strategy=%s | status=%s",
                    ref.label,
                    result.strategy,
                    result.status.value,
                )
                return result
            logger.warning(
                "Fetch strategy failed | ref=%s | strategy=%s | reason=%s",
                ref.label,
                result.strategy,
                result.reason,
            )
            attempts.append(result)

        if issuer is not None and issuer.error is not None:
            raise issuer.error

        raise DownloadFailedError(
            f"Could not download {ref.label} ({len(attempts)} strategies tried)",
            hint=self._hint(),
            attempts=attempts,
        )

    def _hint(self) -> str:
        if self._credential is not None:
            return (
                f"ensure the file is shared with the service account "
                f"{self._credential.client_email} or publicly via link"
            )
        return "ensure the file is shared publicly via link, or configure a service account credential"
