"""Fetch strategy abstract base class and shared value types.

A remote file is retrieved by running an ordered list of strategies
(``RemoteFileFetcher``). Every strategy answers with one of three
outcomes, never an exception:

- ``CONTENT``: the file bytes were retrieved; stop.
- ``SKIP``: the reference is valid but has no binary content
  (a shortcut or a native cloud document); stop, report a warning.
- ``FAILED``: this strategy could not retrieve the file; try the next.

Keeping the outcome a value separates "try the next strategy" from
"give up", which the fetcher alone decides.
"""

from __future__ import annotations

import abc
import enum
import re
from dataclasses import dataclass
from urllib.parse import parse_qs, urlparse

from parcel_geosync.core.exceptions import ContractError


class FetchStatus(enum.Enum):
    """Outcome of a single fetch strategy."""

    CONTENT = "content"
    SKIP = "skip"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class FetchResult:
    """Result of one strategy attempt.

    Attributes:
        status: Outcome kind.
        content: File bytes (``CONTENT`` only, else empty).
        strategy: Name of the strategy that produced the result.
        reason: Human-readable explanation for ``SKIP`` and ``FAILED``.
        auth_failed: ``True`` when the failure was a token exchange.
        confirm_page: ``True`` when a public link kept answering with an
            HTML confirmation page instead of bytes.
    """

    status: FetchStatus
    content: bytes = b""
    strategy: str = ""
    reason: str = ""
    auth_failed: bool = False
    confirm_page: bool = False

    @classmethod
    def ok(cls, content: bytes, strategy: str) -> FetchResult:
        return cls(FetchStatus.CONTENT, content=content, strategy=strategy)

    @classmethod
    def skip(cls, reason: str, strategy: str) -> FetchResult:
        return cls(FetchStatus.SKIP, strategy=strategy, reason=reason)

    @classmethod
    def failed(
        cls, reason: str, strategy: str, *, auth_failed: bool = False, confirm_page: bool = False
    ) -> FetchResult:
        return cls(
            FetchStatus.FAILED, strategy=strategy, reason=reason, auth_failed=auth_failed, confirm_page=confirm_page
        )


# Drive URL forms, most specific first.
_DRIVE_ID_PATTERNS = (
    re.compile(r"drive\.google\.com/file/d/([-\w]+)"),
    re.compile(r"docs\.google\.com/.*?/d/([-\w]+)"),
    re.compile(r"drive\.google\.com/.*?/d/([-\w]+)"),
)
_DRIVE_ID_TOKEN = re.compile(r"[-\w]{25,}")
_BARE_ID = re.compile(r"^[-\w]+$")


@dataclass(frozen=True, slots=True)
class RemoteFileRef:
    """A remote file addressed by URL, by stable file id, or both.

    Attributes:
        url: Original URL (empty when only an id was given).
        file_id: Stable file id on the hosting service, when one could be
            extracted.
    """

    url: str = ""
    file_id: str = ""

    @classmethod
    def from_input(cls, value: str) -> RemoteFileRef:
        """Build a reference from a bare file id or any Drive URL form.

        Raises:
            ContractError: If *value* is empty or neither an id nor a URL.
        """
        value = (value or "").strip()
        if not value:
            msg = "Remote file reference is empty"
            raise ContractError(msg, code="INVALID_FILE_REFERENCE")

        if not value.startswith(("http://", "https://")):
            if not _BARE_ID.match(value):
                msg = f"Not a file id or URL: {value!r}"
                raise ContractError(msg, code="INVALID_FILE_REFERENCE")
            return cls(file_id=value)

        return cls(url=value, file_id=extract_drive_file_id(value) or "")

    @property
    def label(self) -> str:
        """Short identifier for log lines."""
        return self.file_id or self.url


def extract_drive_file_id(url: str) -> str | None:
    """Extract the file id from a Google Drive / Docs URL, or ``None``."""
    for pattern in _DRIVE_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)

    parsed = urlparse(url)
    host = parsed.netloc.lower()
    if not host.endswith(("drive.google.com", "docs.google.com")):
        return None

    ids = parse_qs(parsed.query).get("id")
    if ids and ids[0]:
        return ids[0]

    token = _DRIVE_ID_TOKEN.search(parsed.path)
    return token.group(0) if token else None


class FetchStrategy(abc.ABC):
    """One way of turning a ``RemoteFileRef`` into bytes."""

    #: Strategy name used in results and log lines.
    name: str = ""

    #: Run only when the previous attempt ended on a confirmation page.
    after_confirm_page: bool = False

    @abc.abstractmethod
    def fetch(self, ref: RemoteFileRef) -> FetchResult:
        """Attempt to retrieve *ref*.

        Must not raise for network or HTTP failures: those are reported
        as ``FetchStatus.FAILED`` so the fetcher can move on.
        """
