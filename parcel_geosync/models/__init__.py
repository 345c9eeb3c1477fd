"""Data models and schemas.

Defines the data structures used throughout the pipeline:
- Parcel: The durable land-tract entity synchronised by the pipeline
- Placemark: Ephemeral parser output for one KML Placemark
- ServiceCredential: Service-account identity used for token exchange
- SyncOutcome / SyncSummary: Per-placemark results and their aggregate
"""

from parcel_geosync.models.credential import CredentialError, ServiceCredential
from parcel_geosync.models.parcel import DEFAULT_STATUS, Parcel, ParcelStatus
from parcel_geosync.models.placemark import GeometryKind, Placemark
from parcel_geosync.models.sync_result import OutcomeKind, SyncOutcome, SyncSummary

__all__ = [
    "DEFAULT_STATUS",
    "CredentialError",
    "GeometryKind",
    "OutcomeKind",
    "Parcel",
    "ParcelStatus",
    "Placemark",
    "ServiceCredential",
    "SyncOutcome",
    "SyncSummary",
]
