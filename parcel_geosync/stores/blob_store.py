"""Parcel store backed by JSON documents in Azure Blob Storage.

Layout inside the container::

    parcels/<parcel id>.json   one parcel document
    config/<key>.json          {"value": ...}

The parcel set is listed once per store instance and kept write-through,
so lookups later in a sync run see parcels inserted earlier in that run.
A store instance is meant to live for a single request.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import TYPE_CHECKING, Any

from azure.core.exceptions import AzureError, ResourceNotFoundError

from parcel_geosync.core.constants import CONFIG_PREFIX, DEFAULT_PARCEL_CONTAINER, PARCEL_PREFIX
from parcel_geosync.core.exceptions import StoreUnavailableError, StoreWriteError
from parcel_geosync.models.parcel import Parcel
from parcel_geosync.stores.base import ParcelStore

if TYPE_CHECKING:
    from azure.storage.blob import BlobServiceClient

logger = logging.getLogger("parcel_geosync.stores.blob_store")


class BlobParcelStore(ParcelStore):
    """``ParcelStore`` over one blob container.

    Args:
        blob_service_client: An ``azure.storage.blob.BlobServiceClient``.
        container: Container holding the parcel and config documents.
    """

    def __init__(
        self,
        blob_service_client: BlobServiceClient,
        container: str = DEFAULT_PARCEL_CONTAINER,
    ) -> None:
        self._service = blob_service_client
        self._container = container
        # Raw stored documents keyed by parcel id, in listing order.
        self._docs: dict[str, dict[str, Any]] | None = None

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def _snapshot(self) -> dict[str, dict[str, Any]]:
        if self._docs is None:
            self._docs = self._load_all()
        return self._docs

    def _load_all(self) -> dict[str, dict[str, Any]]:
        container_client = self._service.get_container_client(self._container)
        docs: dict[str, dict[str, Any]] = {}
        try:
            for blob in container_client.list_blobs(name_starts_with=PARCEL_PREFIX):
                if not blob.name.endswith(".json"):
                    continue
                data = container_client.download_blob(blob.name).readall()
                try:
                    doc = json.loads(data)
                except (json.JSONDecodeError, UnicodeDecodeError) as exc:
                    logger.warning("Ignoring corrupt parcel document | blob=%s | error=%s", blob.name, exc)
                    continue
                if not isinstance(doc, dict):
                    logger.warning("Ignoring non-object parcel document | blob=%s", blob.name)
                    continue
                parcel_id = str(doc.get("id") or blob.name[len(PARCEL_PREFIX) : -len(".json")])
                doc["id"] = parcel_id
                docs[parcel_id] = doc
        except ResourceNotFoundError as exc:
            msg = f"Parcel container {self._container!r} does not exist"
            raise StoreUnavailableError(msg) from exc
        except AzureError as exc:
            msg = f"Cannot list parcels in container {self._container!r}: {exc}"
            raise StoreUnavailableError(msg) from exc

        logger.info("Loaded parcels | container=%s | count=%d", self._container, len(docs))
        return docs

    def _write(self, parcel_id: str, doc: dict[str, Any]) -> None:
        blob_name = f"{PARCEL_PREFIX}{parcel_id}.json"
        try:
            self._service.get_blob_client(container=self._container, blob=blob_name).upload_blob(
                json.dumps(doc, ensure_ascii=False).encode("utf-8"),
                overwrite=True,
            )
        except AzureError as exc:
            msg = f"Failed to write parcel {parcel_id}: {exc}"
            raise StoreWriteError(msg) from exc

    # ------------------------------------------------------------------
    # ParcelStore
    # ------------------------------------------------------------------

    def list_with_geometry(self) -> list[Parcel]:
        parcels: list[Parcel] = []
        for parcel_id, doc in self._snapshot().items():
            if doc.get("geometry") is None:
                continue
            try:
                parcels.append(Parcel.from_dict(doc))
            except (TypeError, ValueError) as exc:
                logger.warning("Skipping malformed parcel | id=%s | error=%s", parcel_id, exc)
        return parcels

    def find_by_external_id(self, external_id: str) -> Parcel | None:
        for doc in self._snapshot().values():
            if doc.get("external_id") == external_id:
                return Parcel.from_dict(doc)
        return None

    def find_by_name(self, name: str) -> Parcel | None:
        for doc in self._snapshot().values():
            if doc.get("name") == name:
                return Parcel.from_dict(doc)
        return None

    def insert(self, parcel: Parcel) -> Parcel:
        docs = self._snapshot()
        parcel_id = parcel.id or uuid.uuid4().hex
        doc = parcel.to_dict()
        doc["id"] = parcel_id
        self._write(parcel_id, doc)
        docs[parcel_id] = doc
        logger.debug("Inserted parcel | id=%s | name=%s", parcel_id, parcel.name)
        return Parcel.from_dict(doc)

    def update(self, parcel_id: str, changes: dict[str, Any]) -> Parcel:
        docs = self._snapshot()
        current = docs.get(parcel_id)
        if current is None:
            msg = f"Parcel {parcel_id} does not exist"
            raise StoreWriteError(msg)
        doc = {**current, **changes, "id": parcel_id}
        self._write(parcel_id, doc)
        docs[parcel_id] = doc
        logger.debug("Updated parcel | id=%s | fields=%s", parcel_id, ",".join(sorted(changes)))
        return Parcel.from_dict(doc)

    def get_config(self, key: str) -> str | None:
        blob_name = f"{CONFIG_PREFIX}{key}.json"
        try:
            data = self._service.get_blob_client(container=self._container, blob=blob_name).download_blob().readall()
        except ResourceNotFoundError:
            return None
        except AzureError as exc:
            msg = f"Cannot read config value {key!r}: {exc}"
            raise StoreUnavailableError(msg) from exc

        try:
            doc = json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            msg = f"Config value {key!r} is not valid JSON: {exc}"
            raise StoreUnavailableError(msg) from exc

        value = doc.get("value") if isinstance(doc, dict) else None
        if value is None or value == "":
            return None
        return str(value)
