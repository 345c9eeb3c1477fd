"""Archive extractor: unwrap the KML document inside a KMZ.

A KMZ is a zip container wrapping one KML document (plus optional
icons/overlays). This activity is a pure transform: bytes in, KML text
out, no side effects.
"""

from __future__ import annotations

import io
import logging
import zipfile

from parcel_geosync.core.exceptions import ValidationError

logger = logging.getLogger("parcel_geosync.activities.extract_kmz")

ZIP_SIGNATURE = b"PK"
KML_EXTENSION = ".kml"
DEFAULT_ENCODING = "utf-8"


class NotAnArchiveError(ValidationError):
    """Raised when the bytes do not start with the zip local-file signature."""

    default_stage = "extract_kmz"
    default_code = "KMZ_NOT_AN_ARCHIVE"


class NoKmlEntryError(ValidationError):
    """Raised when a zip container holds no ``.kml`` entry."""

    default_stage = "extract_kmz"
    default_code = "KMZ_NO_KML_ENTRY"


def is_archive(content: bytes) -> bool:
    """Return ``True`` if *content* starts with the zip signature."""
    return content[:2] == ZIP_SIGNATURE


def extract_kml(content: bytes) -> str:
    """Return the text of the first ``.kml`` entry in a KMZ container.

    Entries are visited in archive order; the first whose name ends in
    ``.kml`` (case-insensitive) wins.

    Args:
        content: Raw bytes of the KMZ file.

    Returns:
        The decompressed KML document text.

    Raises:
        NotAnArchiveError: If *content* is not a zip container.
        NoKmlEntryError: If the container holds no ``.kml`` entry.
    """
    if not is_archive(content):
        msg = f"Content is not a KMZ/zip archive (starts with {content[:4]!r})"
        raise NotAnArchiveError(msg)

    try:
        archive = zipfile.ZipFile(io.BytesIO(content))
    except zipfile.BadZipFile as exc:
        msg = f"Content is not a readable zip archive: {exc}"
        raise NotAnArchiveError(msg) from exc

    with archive:
        for info in archive.infolist():
            if info.is_dir() or not info.filename.lower().endswith(KML_EXTENSION):
                continue
            try:
                data = archive.read(info)
            except (zipfile.BadZipFile, OSError) as exc:
                msg = f"KML entry {info.filename!r} could not be decompressed: {exc}"
                raise NotAnArchiveError(msg) from exc
            logger.debug(
                "Extracted KML entry | entry=%s | size=%d bytes",
                info.filename,
                len(data),
            )
            return decode_kml(data)

        names = ", ".join(archive.namelist()) or "<empty>"
        msg = f"No .kml entry found inside KMZ (entries: {names})"
        raise NoKmlEntryError(msg)


def decode_kml(data: bytes) -> str:
    """Decode KML bytes using the declared XML encoding (default UTF-8).

    A UTF-8 BOM is stripped. An unknown declared encoding falls back to
    UTF-8 with replacement characters rather than failing the run.
    """
    if data.startswith(b"\xef\xbb\xbf"):
        data = data[3:]

    encoding = _declared_encoding(data) or DEFAULT_ENCODING
    try:
        return data.decode(encoding)
    except (LookupError, UnicodeDecodeError):
        logger.warning(
            "KML could not be decoded as %s, falling back to %s",
            encoding,
            DEFAULT_ENCODING,
        )
        return data.decode(DEFAULT_ENCODING, errors="replace")


def _declared_encoding(data: bytes) -> str:
    """Read ``encoding="..."`` from the XML declaration, if any."""
    head = data[:200]
    if not head.startswith(b"<?xml"):
        return ""
    end = head.find(b"?>")
    declaration = head[: end if end != -1 else len(head)].decode("ascii", errors="ignore")
    for quote in ('"', "'"):
        marker = f"encoding={quote}"
        start = declaration.find(marker)
        if start != -1:
            start += len(marker)
            stop = declaration.find(quote, start)
            if stop != -1:
                return declaration[start:stop].strip()
    return ""


def unwrap_kml(content: bytes) -> str:
    """Return KML text from either a KMZ container or a bare KML file.

    Remote files are not always zipped: desktop GIS tools export both
    forms and users upload either.

    Raises:
        NotAnArchiveError: If *content* is neither a zip nor KML text.
        NoKmlEntryError: If a zip container holds no ``.kml`` entry.
    """
    if is_archive(content):
        return extract_kml(content)

    text = decode_kml(content)
    head = text[:4096].lower()
    if "<kml" in head or "<placemark" in head or "<document" in head:
        logger.debug("Content is bare KML | size=%d bytes", len(content))
        return text

    msg = f"Content is neither a KMZ archive nor a KML document (starts with {content[:4]!r})"
    raise NotAnArchiveError(msg)
