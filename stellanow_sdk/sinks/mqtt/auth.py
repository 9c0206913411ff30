"""Authentication strategies for MQTT connections.

A strategy is invoked by the sink's connection monitor before every
connection attempt and prepares the transport's pending connection options.
"""

import logging
import secrets
import string
from typing import Any, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from stellanow_sdk.config import Credentials, EnvConfig, ProjectInfo
from stellanow_sdk.core.exceptions import (
    DiscoveryDocumentError,
    OidcAuthenticationError,
    TokenValidationError,
)
from stellanow_sdk.core.logging import get_logger
from stellanow_sdk.sinks.mqtt.transport import MqttTransport

CLIENT_ID_PREFIX = "StellaNowSdkPython-"
_CLIENT_ID_ALPHABET = string.ascii_letters + string.digits + "_-"


def generate_client_id(length: int = 10) -> str:
    suffix = "".join(secrets.choice(_CLIENT_ID_ALPHABET) for _ in range(length))
    return f"{CLIENT_ID_PREFIX}{suffix}"


class MqttAuthStrategy(Protocol):
    async def auth(self, transport: MqttTransport) -> None:
        """Prepare the transport's connection options for the next attempt.

        Does nothing if the transport is already connected.
        """
        ...


class NoAuthMqttAuthStrategy:
    """Connects without credentials; only assigns a client id.

    Intended for local brokers that do not require authentication.
    """

    def __init__(self, client_id: str = "", logger: logging.Logger | None = None) -> None:
        self.client_id = client_id
        self._log = logger or get_logger("stellanow_sdk.auth")

    async def auth(self, transport: MqttTransport) -> None:
        if transport.connected:
            return
        client_id = self.client_id or generate_client_id()
        self._log.info(f"MQTT clientId: {client_id}")
        transport.options.client_id = client_id
        transport.options.username = ""
        transport.options.password = ""


class DiscoveryDocument(BaseModel):
    """The parts of the OIDC discovery document the SDK uses."""

    model_config = ConfigDict(extra="allow", frozen=True)

    issuer: str | None = None
    token_endpoint: str


class TokenSet(BaseModel):
    """Token endpoint response."""

    model_config = ConfigDict(extra="allow", frozen=True)

    access_token: str | None = None
    refresh_token: str | None = None
    token_type: str | None = None
    expires_in: int | None = None
    refresh_expires_in: int | None = None
    error: str | None = None
    error_description: str | None = None

    @property
    def can_refresh(self) -> bool:
        return self.error is None and bool(self.refresh_token)


class OidcMqttAuthStrategy:
    """Keeps a bearer token fresh through OIDC and hands it to the broker.

    The discovery document is fetched once and cached; a failed fetch clears
    the cache so the next attempt fetches it again. Each ``authenticate``
    first tries a refresh-token grant when the cached token set allows it and
    falls back to a resource-owner-password grant on any failure.

    Args:
        env_config: Environment whose authority hosts the OIDC realm.
        project_info: The organization id names the realm.
        credentials: API key and secret for the password grant.
        http_client: Optional shared ``httpx.AsyncClient``. When omitted a
            short-lived client is created per request.
        timeout: Timeout in seconds for each HTTP request.
        logger: Logger to use. Defaults to ``stellanow_sdk.auth``.
    """

    def __init__(
        self,
        env_config: EnvConfig,
        project_info: ProjectInfo,
        credentials: Credentials,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
        logger: logging.Logger | None = None,
    ) -> None:
        self.env_config = env_config
        self.project_info = project_info
        self.credentials = credentials
        self.timeout = timeout
        self._http_client = http_client
        self._log = logger or get_logger("stellanow_sdk.auth")
        self.discovery_document_url = (
            f"{env_config.authority}/realms/{project_info.organization_id}"
            "/.well-known/openid-configuration"
        )
        self._discovery: DiscoveryDocument | None = None
        self._token_set: TokenSet | None = None

    @property
    def token_set(self) -> TokenSet | None:
        return self._token_set

    @property
    def access_token(self) -> str | None:
        return self._token_set.access_token if self._token_set else None

    async def auth(self, transport: MqttTransport) -> None:
        if transport.connected:
            return

        await self.authenticate()
        access_token = self.access_token
        if not access_token:
            raise OidcAuthenticationError("No valid access token available for connection")

        client_id = self.credentials.sink_client_id or generate_client_id()
        self._log.info(f"MQTT clientId: {client_id}")

        transport.options.username = access_token
        transport.options.password = ""
        transport.options.client_id = client_id

    async def authenticate(self) -> TokenSet:
        """Obtain a valid token set, refreshing when possible.

        Raises:
            DiscoveryDocumentError: The discovery document could not be fetched.
            OidcAuthenticationError: The token request failed.
            TokenValidationError: The token endpoint answered with an error.
        """
        if await self._try_refresh():
            return self._token_set
        return await self._login()

    async def _try_refresh(self) -> bool:
        token_set = self._token_set
        if token_set is None or not token_set.can_refresh:
            return False

        self._log.info("Attempting token refresh")
        try:
            self._token_set = await self._grant(
                {"grant_type": "refresh_token", "refresh_token": token_set.refresh_token}
            )
        except (DiscoveryDocumentError, OidcAuthenticationError, TokenValidationError) as e:
            self._log.warning(f"Token refresh failed, falling back to login: {e}")
            self._token_set = None
            return False

        self._log.info("Token refresh successful")
        return True

    async def _login(self) -> TokenSet:
        self._log.info("Attempting to authenticate")
        self._token_set = await self._grant(
            {
                "grant_type": "password",
                "username": self.credentials.api_key,
                "password": self.credentials.api_secret.get_secret_value(),
            }
        )
        self._log.info("Authentication successful")
        return self._token_set

    async def _grant(self, form: dict[str, str]) -> TokenSet:
        discovery = await self.get_discovery_document()
        data = {"client_id": self.credentials.oidc_client, **form}

        try:
            response = await self._request("POST", discovery.token_endpoint, data=data)
        except httpx.HTTPError as e:
            self._log.error(f"Token request error: {e}")
            raise OidcAuthenticationError(f"{form['grant_type']} grant request failed", e) from e

        token_set = self._parse_token_response(response)
        self._validate_token_set(token_set)
        return token_set

    def _parse_token_response(self, response: httpx.Response) -> TokenSet:
        try:
            body = response.json()
        except ValueError as e:
            raise OidcAuthenticationError(
                f"Token endpoint returned non-JSON response (HTTP {response.status_code})", e
            ) from e

        if not isinstance(body, dict):
            raise OidcAuthenticationError(
                f"Token endpoint returned unexpected response (HTTP {response.status_code})"
            )
        if response.is_error and "error" not in body:
            raise OidcAuthenticationError(f"Token endpoint returned HTTP {response.status_code}")

        try:
            return TokenSet.model_validate(body)
        except ValidationError as e:
            raise OidcAuthenticationError("Malformed token response", e) from e

    def _validate_token_set(self, token_set: TokenSet) -> None:
        if token_set.error or not token_set.access_token:
            error = token_set.error or "missing access_token"
            description = token_set.error_description
            message = f"{error}: {description}" if description else error
            self._log.error(f"Failed to authenticate: {message}")
            raise TokenValidationError(f"Invalid token response: {message}", token_set.error)

    async def get_discovery_document(self) -> DiscoveryDocument:
        if self._discovery is not None:
            return self._discovery

        self._log.info(
            f"No current discovery document, requesting one from: {self.discovery_document_url}"
        )
        try:
            response = await self._request("GET", self.discovery_document_url)
            response.raise_for_status()
            self._discovery = DiscoveryDocument.model_validate(response.json())
        except (httpx.HTTPError, ValueError) as e:
            # ValidationError is a ValueError too
            self._log.error(f"Error retrieving discovery document: {e}")
            self._discovery = None
            raise DiscoveryDocumentError("Could not retrieve discovery document", e) from e
        return self._discovery

    def invalidate_discovery_document(self) -> None:
        self._discovery = None

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.request(method, url, timeout=self.timeout, **kwargs)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.request(method, url, **kwargs)
