"""Project, credential and environment configuration.

``ProjectInfo`` and ``Credentials`` are read from keyword arguments first and
then from ``STELLA_*`` environment variables, e.g. ``STELLA_ORGANIZATION_ID``
maps to ``ProjectInfo.organization_id`` and ``STELLA_API_KEY`` to
``Credentials.api_key``. Invalid or missing values fail at construction.
"""

import re

from pydantic import BaseModel, ConfigDict, SecretStr, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from stellanow_sdk.core.exceptions import InvalidArgumentError, InvalidUuidError

DEFAULT_OIDC_CLIENT_ID = "event-ingestor"

_UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def is_uuid(value: str) -> bool:
    return bool(_UUID_PATTERN.match(value))


class ProjectInfo(BaseSettings):
    """Organization and project the SDK publishes for."""

    model_config = SettingsConfigDict(
        env_prefix="STELLA_",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    organization_id: str
    project_id: str

    @field_validator("organization_id", "project_id")
    @classmethod
    def validate_uuid(cls, v: str, info: ValidationInfo) -> str:
        v = v.strip()
        if not is_uuid(v):
            raise InvalidUuidError(info.field_name, v)
        return v


class Credentials(BaseSettings):
    """OIDC credentials used by the MQTT auth strategy.

    Attributes:
        api_key: Username for the password grant.
        api_secret: Password for the password grant.
        sink_client_id: MQTT client id. A random one is generated per
            connection attempt when empty.
        oidc_client: OIDC client id used for the token requests.
    """

    model_config = SettingsConfigDict(
        env_prefix="STELLA_",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    api_key: str
    api_secret: SecretStr
    sink_client_id: str = ""
    oidc_client: str = DEFAULT_OIDC_CLIENT_ID

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        if not v.strip():
            raise InvalidArgumentError("api_key")
        return v

    @field_validator("api_secret")
    @classmethod
    def validate_api_secret(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value():
            raise InvalidArgumentError("api_secret")
        return v

    @field_validator("oidc_client")
    @classmethod
    def validate_oidc_client(cls, v: str) -> str:
        return v.strip() or DEFAULT_OIDC_CLIENT_ID


class EnvConfig(BaseModel):
    """Endpoints of a StellaNow environment."""

    model_config = ConfigDict(frozen=True)

    api_base_url: str
    broker_url: str

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def authority(self) -> str:
        return f"{self.api_base_url}/auth"

    @classmethod
    def saas_prod(cls) -> "EnvConfig":
        return cls(
            api_base_url="https://api.prod.stella.cloud",
            broker_url="wss://ingestor.prod.stella.cloud:8083/mqtt",
        )

    @classmethod
    def saas_stage(cls) -> "EnvConfig":
        return cls(
            api_base_url="https://api.stage.stella.cloud",
            broker_url="wss://ingestor.stage.stella.cloud:8083/mqtt",
        )

    @classmethod
    def saas_dev(cls) -> "EnvConfig":
        return cls(
            api_base_url="https://api.dev.stella.cloud",
            broker_url="wss://ingestor.dev.stella.cloud:8083/mqtt",
        )

    @classmethod
    def custom(cls, api_base_url: str, broker_url: str) -> "EnvConfig":
        return cls(api_base_url=api_base_url, broker_url=broker_url)
