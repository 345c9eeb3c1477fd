"""Tests for the KMZ archive extractor."""

from __future__ import annotations

import io
import zipfile

import pytest

from parcel_geosync.activities.extract_kmz import (
    NoKmlEntryError,
    NotAnArchiveError,
    decode_kml,
    extract_kml,
    is_archive,
    unwrap_kml,
)

KML = '<?xml version="1.0" encoding="UTF-8"?><kml><Document><name>Fazenda São João</name></Document></kml>'


class TestExtractKml:
    def test_returns_kml_text(self, make_kmz) -> None:
        assert extract_kml(make_kmz(KML)) == KML

    def test_first_kml_entry_wins(self) -> None:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as archive:
            archive.writestr("files/icon.png", b"\x89PNG")
            archive.writestr("first.KML", b"<kml>first</kml>")
            archive.writestr("second.kml", b"<kml>second</kml>")
        assert extract_kml(buffer.getvalue()) == "<kml>first</kml>"

    def test_not_zip_signature(self) -> None:
        with pytest.raises(NotAnArchiveError) as exc_info:
            extract_kml(b"<html>sign in</html>")
        assert exc_info.value.code == "KMZ_NOT_AN_ARCHIVE"
        assert exc_info.value.category == "validation"

    def test_corrupt_zip_after_signature(self) -> None:
        with pytest.raises(NotAnArchiveError, match="not a readable zip"):
            extract_kml(b"PK\x03\x04garbage")

    def test_no_kml_entry_lists_entries(self, make_kmz) -> None:
        content = make_kmz("x", entry_name="readme.txt", extra={"icon.png": b"png"})
        with pytest.raises(NoKmlEntryError, match="icon.png") as exc_info:
            extract_kml(content)
        assert exc_info.value.code == "KMZ_NO_KML_ENTRY"


class TestDecodeKml:
    def test_declared_latin1(self) -> None:
        data = '<?xml version="1.0" encoding="ISO-8859-1"?><kml>Ribeirão</kml>'.encode("latin-1")
        assert "Ribeirão" in decode_kml(data)

    def test_strips_bom(self) -> None:
        assert decode_kml(b"\xef\xbb\xbf<kml/>") == "<kml/>"

    def test_unknown_encoding_falls_back(self) -> None:
        data = b'<?xml version="1.0" encoding="x-made-up"?><kml>ok</kml>'
        assert decode_kml(data).endswith("<kml>ok</kml>")


class TestUnwrapKml:
    def test_zip_is_extracted(self, make_kmz) -> None:
        assert unwrap_kml(make_kmz(KML)) == KML

    def test_bare_kml_passes_through(self) -> None:
        assert unwrap_kml(KML.encode("utf-8")) == KML

    def test_other_content_rejected(self) -> None:
        with pytest.raises(NotAnArchiveError, match="neither a KMZ archive nor a KML"):
            unwrap_kml(b"%PDF-1.7 binary")

    def test_is_archive(self, make_kmz) -> None:
        assert is_archive(make_kmz(KML))
        assert not is_archive(b"<kml/>")
