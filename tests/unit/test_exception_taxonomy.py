"""Tests for the unified exception taxonomy.

Validates:
- PipelineError hierarchy and structured attributes
- Category classification (validation, transient, permanent, contract)
- ``to_error_dict()`` produces stable payload keys
- Retry semantics are consistent with taxonomy class
- All activity/provider exceptions are PipelineError subclasses
"""

from __future__ import annotations

from typing import ClassVar

import pytest

from parcel_geosync.activities.convert_geometry import EmptyGeometryError, GeometryConversionError
from parcel_geosync.activities.extract_kmz import NoKmlEntryError, NotAnArchiveError
from parcel_geosync.core.config import ConfigValidationError
from parcel_geosync.core.exceptions import (
    ConfigValueMissingError,
    ContractError,
    PermanentError,
    PipelineError,
    StoreUnavailableError,
    StoreWriteError,
    TransientError,
    ValidationError,
)
from parcel_geosync.core.ingress import UnauthorizedError
from parcel_geosync.models.credential import CredentialError
from parcel_geosync.providers.fetcher import DownloadFailedError
from parcel_geosync.providers.google_auth import TokenExchangeError


class TestPipelineErrorBase:
    """PipelineError base class behavior."""

    def test_default_attributes(self) -> None:
        err = PipelineError("boom")
        assert err.message == "boom"
        assert err.stage == ""
        assert err.code == ""
        assert err.retryable is False
        assert err.correlation_id == ""

    def test_custom_attributes(self) -> None:
        err = PipelineError("fail", stage="fetch", code="DOWNLOAD_FAILED", retryable=True, correlation_id="abc-123")
        assert err.stage == "fetch"
        assert err.code == "DOWNLOAD_FAILED"
        assert err.retryable is True
        assert err.correlation_id == "abc-123"

    def test_str_is_message(self) -> None:
        assert str(PipelineError("human-readable error")) == "human-readable error"

    def test_to_error_dict_keys(self) -> None:
        d = PipelineError("x", stage="s", code="C", retryable=True, correlation_id="id").to_error_dict()
        assert set(d.keys()) == {"category", "code", "stage", "message", "retryable", "correlation_id"}
        assert d["message"] == "x"
        assert d["retryable"] is True


class TestCategoryBases:
    """Category base classes set correct defaults."""

    def test_validation_error_not_retryable(self) -> None:
        err = ValidationError("bad input")
        assert err.retryable is False
        assert err.category == "validation"

    def test_transient_error_retryable(self) -> None:
        err = TransientError("timeout")
        assert err.retryable is True
        assert err.category == "transient"

    def test_permanent_error_not_retryable(self) -> None:
        err = PermanentError("gone")
        assert err.retryable is False
        assert err.category == "permanent"

    def test_contract_error_not_retryable(self) -> None:
        err = ContractError("schema drift")
        assert err.retryable is False
        assert err.category == "contract"

    def test_dynamic_category_from_retryable(self) -> None:
        assert PipelineError("x", retryable=True).category == "transient"
        assert PipelineError("x", retryable=False).category == "permanent"


class TestAllExceptionsArePipelineError:
    """Every custom exception inherits from PipelineError."""

    EXCEPTION_CLASSES: ClassVar[list[type[PipelineError]]] = [
        NotAnArchiveError,
        NoKmlEntryError,
        GeometryConversionError,
        EmptyGeometryError,
        CredentialError,
        TokenExchangeError,
        DownloadFailedError,
        StoreUnavailableError,
        StoreWriteError,
        ConfigValueMissingError,
        ConfigValidationError,
        UnauthorizedError,
    ]

    def test_all_subclass_pipeline_error(self) -> None:
        for cls in self.EXCEPTION_CLASSES:
            assert issubclass(cls, PipelineError), f"{cls.__name__} is not a PipelineError"


class TestStageAndCode:
    """Every domain exception has a default stage and code."""

    @pytest.mark.parametrize(
        ("err", "stage", "code", "category"),
        [
            (NotAnArchiveError("x"), "extract_kmz", "KMZ_NOT_AN_ARCHIVE", "validation"),
            (NoKmlEntryError("x"), "extract_kmz", "KMZ_NO_KML_ENTRY", "validation"),
            (GeometryConversionError("x"), "convert_geometry", "GEOMETRY_CONVERSION_FAILED", "validation"),
            (EmptyGeometryError("x"), "convert_geometry", "GEOMETRY_EMPTY", "validation"),
            (CredentialError("x"), "credential", "CREDENTIAL_INVALID", "validation"),
            (TokenExchangeError("x"), "token_exchange", "TOKEN_EXCHANGE_FAILED", "permanent"),
            (DownloadFailedError("x"), "fetch", "DOWNLOAD_FAILED", "transient"),
            (StoreUnavailableError("x"), "store", "STORE_UNAVAILABLE", "transient"),
            (StoreWriteError("x"), "store", "STORE_WRITE_FAILED", "transient"),
            (ConfigValueMissingError("k"), "config", "CONFIG_VALUE_MISSING", "contract"),
            (UnauthorizedError("x"), "ingress", "UNAUTHORIZED", "permanent"),
        ],
    )
    def test_defaults(self, err: PipelineError, stage: str, code: str, category: str) -> None:
        assert err.stage == stage
        assert err.code == code
        assert err.category == category

    def test_config_validation_error(self) -> None:
        err = ConfigValidationError("HTTP_TIMEOUT_S", -1, "must be > 0 (seconds)")
        assert err.stage == "config"
        assert err.code == "CONFIG_VALIDATION_FAILED"
        assert err.key == "HTTP_TIMEOUT_S"
        assert err.value == -1

    def test_empty_geometry_is_conversion_error(self) -> None:
        assert issubclass(EmptyGeometryError, GeometryConversionError)

    def test_config_value_missing_hint(self) -> None:
        err = ConfigValueMissingError("kml_access_token", hint="Set it in the config table")
        assert err.key == "kml_access_token"
        assert err.message.endswith("Set it in the config table")


class TestErrorDictStability:
    """to_error_dict() always includes required keys regardless of exception type."""

    REQUIRED_KEYS: ClassVar[set[str]] = {"category", "code", "stage", "message", "retryable", "correlation_id"}

    def test_download_failed_error_dict(self) -> None:
        d = DownloadFailedError("all strategies failed", hint="share the file").to_error_dict()
        assert set(d.keys()) >= self.REQUIRED_KEYS | {"hint", "attempts"}
        assert d["hint"] == "share the file"
        assert d["message"] == "all strategies failed. Hint: share the file"

    def test_token_exchange_error_dict(self) -> None:
        d = TokenExchangeError("rejected", response_body='{"error":"invalid_grant"}').to_error_dict()
        assert set(d.keys()) >= self.REQUIRED_KEYS
        assert d["code"] == "TOKEN_EXCHANGE_FAILED"

    def test_correlation_id_propagated(self) -> None:
        err = PipelineError("x", correlation_id="corr-xyz")
        assert err.to_error_dict()["correlation_id"] == "corr-xyz"
