"""Remote file retrieval.

- ``base``: strategy contract and value types
- ``google_auth``: service-account JWT assertion and token exchange
- ``drive``: Drive API and public-link strategies
- ``fetcher``: ordered strategy runner
"""

from parcel_geosync.providers.base import (
    FetchResult,
    FetchStatus,
    FetchStrategy,
    RemoteFileRef,
)
from parcel_geosync.providers.fetcher import DownloadFailedError, RemoteFileFetcher
from parcel_geosync.providers.google_auth import TokenExchangeError

__all__ = [
    "DownloadFailedError",
    "FetchResult",
    "FetchStatus",
    "FetchStrategy",
    "RemoteFileFetcher",
    "RemoteFileRef",
    "TokenExchangeError",
]
