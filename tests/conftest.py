"""Shared pytest fixtures for the parcel geosync test suite."""

from __future__ import annotations

import io
import json
import uuid
import zipfile
from collections.abc import Callable
from typing import Any

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from parcel_geosync.core.exceptions import StoreUnavailableError, StoreWriteError
from parcel_geosync.models.credential import ServiceCredential
from parcel_geosync.models.parcel import Parcel
from parcel_geosync.stores.base import ParcelStore

# ---------------------------------------------------------------------------
# In-memory parcel store
# ---------------------------------------------------------------------------


class InMemoryParcelStore(ParcelStore):
    """Dict-backed ``ParcelStore`` with failure injection for tests."""

    def __init__(self) -> None:
        self.docs: dict[str, dict[str, Any]] = {}
        self.config: dict[str, str] = {}
        self.fail_writes_for: set[str] = set()
        self.unavailable = False
        self.inserts = 0
        self.updates = 0

    def seed(self, **fields: Any) -> Parcel:
        """Store a parcel document directly, bypassing counters."""
        doc = {"id": uuid.uuid4().hex, "status": "identificada", "geometry": None, **fields}
        self.docs[doc["id"]] = doc
        return Parcel.from_dict(doc)

    def _check(self) -> None:
        if self.unavailable:
            msg = "datastore offline"
            raise StoreUnavailableError(msg)

    def list_with_geometry(self) -> list[Parcel]:
        self._check()
        return [Parcel.from_dict(d) for d in self.docs.values() if d.get("geometry") is not None]

    def find_by_external_id(self, external_id: str) -> Parcel | None:
        self._check()
        for doc in self.docs.values():
            if doc.get("external_id") == external_id:
                return Parcel.from_dict(doc)
        return None

    def find_by_name(self, name: str) -> Parcel | None:
        self._check()
        for doc in self.docs.values():
            if doc.get("name") == name:
                return Parcel.from_dict(doc)
        return None

    def insert(self, parcel: Parcel) -> Parcel:
        self._check()
        if parcel.name in self.fail_writes_for:
            msg = f"insert rejected for {parcel.name}"
            raise StoreWriteError(msg)
        doc = parcel.to_dict()
        doc["id"] = parcel.id or uuid.uuid4().hex
        self.docs[doc["id"]] = doc
        self.inserts += 1
        return Parcel.from_dict(doc)

    def update(self, parcel_id: str, changes: dict[str, Any]) -> Parcel:
        self._check()
        current = self.docs[parcel_id]
        if current.get("name") in self.fail_writes_for:
            msg = f"update rejected for {current.get('name')}"
            raise StoreWriteError(msg)
        self.docs[parcel_id] = {**current, **changes}
        self.updates += 1
        return Parcel.from_dict(self.docs[parcel_id])

    def get_config(self, key: str) -> str | None:
        self._check()
        return self.config.get(key)


@pytest.fixture()
def memory_store() -> InMemoryParcelStore:
    """Empty in-memory parcel store."""
    return InMemoryParcelStore()


# ---------------------------------------------------------------------------
# KML / KMZ builders
# ---------------------------------------------------------------------------


def build_kml(*placemarks: str) -> str:
    """Wrap placemark snippets in a KML 2.2 document."""
    body = "\n".join(placemarks)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<kml xmlns="http://www.opengis.net/kml/2.2">\n'
        f"<Document>\n{body}\n</Document>\n</kml>\n"
    )


def polygon_placemark(name: str, coordinates: str, *, pm_id: str | None = None) -> str:
    id_attr = f' id="{pm_id}"' if pm_id else ""
    return (
        f"<Placemark{id_attr}><name>{name}</name>"
        "<Polygon><outerBoundaryIs><LinearRing>"
        f"<coordinates>{coordinates}</coordinates>"
        "</LinearRing></outerBoundaryIs></Polygon></Placemark>"
    )


def build_kmz(kml_text: str, *, entry_name: str = "doc.kml", extra: dict[str, bytes] | None = None) -> bytes:
    """Zip *kml_text* (plus optional extra entries first) into KMZ bytes."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for name, data in (extra or {}).items():
            archive.writestr(name, data)
        archive.writestr(entry_name, kml_text.encode("utf-8"))
    return buffer.getvalue()


@pytest.fixture()
def make_kml() -> Callable[..., str]:
    return build_kml


@pytest.fixture()
def make_polygon_placemark() -> Callable[..., str]:
    return polygon_placemark


@pytest.fixture()
def make_kmz() -> Callable[..., bytes]:
    return build_kmz


LOT_A_RING = "-47.1,-22.9,0 -47.0,-22.9,0 -47.0,-22.8,0 -47.1,-22.9,0"
"""Four-point closed ring used by the Lot A examples."""


@pytest.fixture()
def lot_a_kmz() -> bytes:
    """KMZ with one Placemark named ``Lot A`` and a 4-point closed ring."""
    return build_kmz(build_kml(polygon_placemark("Lot A", LOT_A_RING)))


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_key_pem(rsa_key: rsa.RSAPrivateKey) -> str:
    """PKCS#8 PEM for the session test key."""
    return rsa_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")


@pytest.fixture()
def credential_json(private_key_pem: str) -> str:
    return json.dumps(
        {
            "type": "service_account",
            "client_email": "sync@example-project.iam.gserviceaccount.com",
            "private_key": private_key_pem,
            "token_uri": "https://oauth2.example.test/token",
        }
    )


@pytest.fixture()
def service_credential(credential_json: str) -> ServiceCredential:
    return ServiceCredential.from_json(credential_json)
