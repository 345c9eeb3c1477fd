"""Parcel datastore adapters.

- ``ParcelStore``: abstract datastore contract used by the pipeline
- ``BlobParcelStore``: JSON documents in an Azure Blob Storage container
"""

from parcel_geosync.stores.base import ParcelStore
from parcel_geosync.stores.blob_store import BlobParcelStore

__all__ = ["BlobParcelStore", "ParcelStore"]
