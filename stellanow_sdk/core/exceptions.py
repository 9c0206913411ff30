"""Exception hierarchy for the StellaNow SDK."""


class StellaNowError(Exception):
    """Base class for all SDK errors.

    Attributes:
        code: Machine readable error code.
        cause: The underlying exception, if any.
    """

    code = "STELLANOW_ERROR"

    def __init__(self, message: str, cause: BaseException | None = None):
        self.cause = cause
        super().__init__(message)

    def __str__(self) -> str:
        base = super().__str__()
        if self.cause is not None:
            return f"{base} (cause: {self.cause})"
        return base


class InvalidArgumentError(StellaNowError, ValueError):
    """Raised when an argument is missing or malformed."""

    code = "INVALID_ARGUMENT"

    def __init__(self, argument_name: str, reason: str = "cannot be empty"):
        self.argument_name = argument_name
        self.reason = reason
        super().__init__(f"Invalid argument '{argument_name}': {reason}")


class InvalidUuidError(InvalidArgumentError):
    code = "INVALID_UUID"

    def __init__(self, argument_name: str, value: str | None = None):
        self.value = value
        super().__init__(argument_name, f"not a valid UUID: {value!r}")


class EntityReferencesEmptyError(InvalidArgumentError):
    """Raised when an event key is derived from a message without entity references."""

    code = "ENTITY_REFERENCES_EMPTY"

    def __init__(self) -> None:
        super().__init__("entity_type_ids", "at least one entity reference is required")


class AuthenticationError(StellaNowError):
    """Base class for recoverable authentication failures."""

    code = "AUTHENTICATION_ERROR"


class DiscoveryDocumentError(AuthenticationError):
    code = "DISCOVERY_DOCUMENT_ERROR"

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(f"Discovery document error: {message}", cause)


class OidcAuthenticationError(AuthenticationError):
    code = "OIDC_AUTHENTICATION_ERROR"

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(f"OIDC authentication failed: {message}", cause)


class TokenValidationError(AuthenticationError):
    """Raised when a token endpoint answers with an error or without an access token."""

    code = "TOKEN_VALIDATION_ERROR"

    def __init__(self, message: str, error: str | None = None):
        self.error = error
        super().__init__(f"Token validation failed: {message}")


class MqttConnectionError(StellaNowError):
    code = "MQTT_CONNECTION_ERROR"

    def __init__(
        self,
        message: str,
        broker_url: str | None = None,
        cause: BaseException | None = None,
    ):
        self.broker_url = broker_url
        if broker_url:
            message = f"{message} (broker: {broker_url})"
        super().__init__(message, cause)


class SinkInitializationError(StellaNowError):
    code = "SINK_INITIALIZATION_ERROR"

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(f"Sink initialization failed: {message}", cause)


class SinkOperationError(StellaNowError):
    code = "SINK_OPERATION_ERROR"

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(f"Sink operation failed: {message}", cause)


class SdkCreationError(StellaNowError):
    code = "SDK_CREATION_ERROR"

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(f"SDK creation failed: {message}", cause)
