"""Service credential model.

The credential is supplied out-of-band as the JSON key file of a service
account. Only three members matter to the pipeline; everything else in
the key file is ignored. The private key is a ``SecretStr`` so it never
appears in ``repr()``, logs, or serialised models.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, SecretStr
from pydantic import ValidationError as PydanticValidationError

from parcel_geosync.core.constants import DEFAULT_TOKEN_URI
from parcel_geosync.core.exceptions import ValidationError


class CredentialError(ValidationError):
    """Raised when the service credential blob is missing fields or not JSON."""

    default_stage = "credential"
    default_code = "CREDENTIAL_INVALID"


class ServiceCredential(BaseModel):
    """Service principal identity and signing key.

    Attributes:
        client_email: Principal identifier, used as the JWT issuer.
        private_key: PKCS8 PEM-encoded RSA private key.
        token_uri: OAuth token endpoint, also the JWT audience.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    client_email: str = Field(min_length=1)
    private_key: SecretStr
    token_uri: str = DEFAULT_TOKEN_URI

    @classmethod
    def from_json(cls, raw: str | bytes) -> ServiceCredential:
        """Parse a service-account key file.

        Raises:
            CredentialError: If *raw* is not JSON or lacks required members.
        """
        try:
            return cls.model_validate_json(raw)
        except PydanticValidationError as exc:
            fields = ", ".join(
                sorted({".".join(str(p) for p in err["loc"]) or "<root>" for err in exc.errors()})
            )
            msg = f"Service credential is invalid (problem fields: {fields})"
            raise CredentialError(msg) from None
