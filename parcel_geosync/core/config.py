"""Pipeline configuration loaded from environment variables.

Azure Functions app settings (or ``local.settings.json`` for local dev)
are the source of truth. ``SyncConfig.from_env()`` fails fast with
``ConfigValidationError`` when a value is out of range, so a bad setting
surfaces on the first request rather than halfway through a sync.

The service credential is not a field here: it is read on
demand by ``load_service_credential`` and lives only as long as one
token exchange.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import TYPE_CHECKING

from parcel_geosync.core.constants import (
    DEFAULT_PARCEL_CONTAINER,
    DRIVE_READONLY_SCOPE,
    FEED_TOKEN_CONFIG_KEY,
    FILE_ID_CONFIG_KEY,
)
from parcel_geosync.core.exceptions import PipelineError

if TYPE_CHECKING:
    from parcel_geosync.models.credential import ServiceCredential

CREDENTIAL_ENV_VAR = "GOOGLE_SERVICE_ACCOUNT_JSON"

KNOWN_PARSERS = frozenset({"regex", "lxml"})


class ConfigValidationError(PipelineError):
    """Raised when configuration values are out of valid range.

    Attributes:
        key: The configuration key that failed validation.
        value: The invalid value.
        message: Human-readable description of the valid range.
    """

    default_stage = "config"
    default_code = "CONFIG_VALIDATION_FAILED"

    def __init__(self, key: str, value: object, message: str) -> None:
        self.key = key
        self.value = value
        self.message = message
        super().__init__(f"Invalid configuration {key}={value!r}: {message}")


@dataclass(frozen=True, slots=True)
class SyncConfig:
    """Immutable pipeline configuration.

    Attributes:
        parcel_container: Blob container holding parcel and config documents.
        file_id_config_key: Config key naming the default remote file.
        feed_token_config_key: Config key holding the live-feed access token.
        app_base_url: Base URL used to build deep links in feed descriptions.
        scheduler_anon_key: Fixed bearer value identifying the scheduled caller.
        auth_userinfo_url: Endpoint validating interactive callers' bearer tokens.
        drive_scope: OAuth scope requested in the token exchange.
        kml_parser: Placemark parser implementation (``regex`` or ``lxml``).
        http_timeout_s: Timeout applied to every outbound HTTP request.
        feed_refresh_s: ``minRefreshPeriod`` advertised to GIS clients.
    """

    parcel_container: str = DEFAULT_PARCEL_CONTAINER
    file_id_config_key: str = FILE_ID_CONFIG_KEY
    feed_token_config_key: str = FEED_TOKEN_CONFIG_KEY
    app_base_url: str = "http://localhost:5173"
    scheduler_anon_key: str = ""
    auth_userinfo_url: str = ""
    drive_scope: str = DRIVE_READONLY_SCOPE
    kml_parser: str = "regex"
    http_timeout_s: float = 30.0
    feed_refresh_s: int = 60

    @classmethod
    def from_env(cls) -> SyncConfig:
        """Load and validate configuration from environment variables.

        Raises:
            ConfigValidationError: If a value is out of range or a
                required string value is empty.
            ValueError: If a numeric environment variable cannot be
                parsed (e.g. ``HTTP_TIMEOUT_S=abc``).
        """
        config = cls(
            parcel_container=os.getenv("PARCEL_CONTAINER", DEFAULT_PARCEL_CONTAINER),
            file_id_config_key=os.getenv("SYNC_FILE_ID_CONFIG_KEY", FILE_ID_CONFIG_KEY),
            feed_token_config_key=os.getenv("FEED_TOKEN_CONFIG_KEY", FEED_TOKEN_CONFIG_KEY),
            app_base_url=os.getenv("APP_BASE_URL", "http://localhost:5173").rstrip("/"),
            scheduler_anon_key=os.getenv("SCHEDULER_ANON_KEY", ""),
            auth_userinfo_url=os.getenv("AUTH_USERINFO_URL", ""),
            drive_scope=os.getenv("DRIVE_SCOPE", DRIVE_READONLY_SCOPE),
            kml_parser=os.getenv("KML_PARSER", "regex").strip().lower(),
            http_timeout_s=float(os.getenv("HTTP_TIMEOUT_S", "30")),
            feed_refresh_s=int(os.getenv("FEED_REFRESH_S", "60")),
        )
        _validate(config)
        return config


def load_service_credential() -> ServiceCredential | None:
    """Parse the service credential from the environment, if configured.

    Returns ``None`` when ``GOOGLE_SERVICE_ACCOUNT_JSON`` is unset so that
    callers fall back to public download strategies.

    Raises:
        CredentialError: If the variable is set but is not a valid credential.
    """
    from parcel_geosync.models.credential import ServiceCredential

    raw = os.environ.get(CREDENTIAL_ENV_VAR, "")
    if not raw.strip():
        return None
    return ServiceCredential.from_json(raw)


def _validate(config: SyncConfig) -> None:
    """Validate configuration ranges.  Raises ``ConfigValidationError``."""
    if not config.parcel_container:
        raise ConfigValidationError(
            "PARCEL_CONTAINER",
            config.parcel_container,
            "must not be empty",
        )

    if not config.file_id_config_key:
        raise ConfigValidationError(
            "SYNC_FILE_ID_CONFIG_KEY",
            config.file_id_config_key,
            "must not be empty",
        )

    if not config.feed_token_config_key:
        raise ConfigValidationError(
            "FEED_TOKEN_CONFIG_KEY",
            config.feed_token_config_key,
            "must not be empty",
        )

    if config.kml_parser not in KNOWN_PARSERS:
        raise ConfigValidationError(
            "KML_PARSER",
            config.kml_parser,
            f"must be one of {', '.join(sorted(KNOWN_PARSERS))}",
        )

    if config.http_timeout_s <= 0:
        raise ConfigValidationError(
            "HTTP_TIMEOUT_S",
            config.http_timeout_s,
            "must be > 0 (seconds)",
        )

    if config.feed_refresh_s < 1:
        raise ConfigValidationError(
            "FEED_REFRESH_S",
            config.feed_refresh_s,
            "must be >= 1 (seconds)",
        )
