"""Core components for the StellaNow SDK.

This module exposes the primary types and utilities:

Types:
    Signal: Observer list with per-listener failure isolation.
    EntityType: Reference to the entity a message is about.
    StellaNowMessageBase: Base class for application messages.
    StellaNowMessageWrapper: Message with generated id, timestamp and serialized payload.
    EventKey / StellaNowEventWrapper: Routing key and the envelope that gets published.
    PerformanceMonitor: Messages-per-second logger.

Errors:
    StellaNowError and its subclasses, see ``stellanow_sdk.core.exceptions``.
"""

from stellanow_sdk.core.events import EventKey, StellaNowEventWrapper
from stellanow_sdk.core.exceptions import (
    AuthenticationError,
    DiscoveryDocumentError,
    EntityReferencesEmptyError,
    InvalidArgumentError,
    InvalidUuidError,
    MqttConnectionError,
    OidcAuthenticationError,
    SdkCreationError,
    SinkInitializationError,
    SinkOperationError,
    StellaNowError,
    TokenValidationError,
)
from stellanow_sdk.core.messages import (
    EntityType,
    MessageMetadata,
    StellaNowMessageBase,
    StellaNowMessageWrapper,
)
from stellanow_sdk.core.performance import PerformanceMonitor
from stellanow_sdk.core.signal import Signal

__all__ = [
    "EntityType",
    "EventKey",
    "MessageMetadata",
    "PerformanceMonitor",
    "Signal",
    "StellaNowEventWrapper",
    "StellaNowMessageBase",
    "StellaNowMessageWrapper",
    "AuthenticationError",
    "DiscoveryDocumentError",
    "EntityReferencesEmptyError",
    "InvalidArgumentError",
    "InvalidUuidError",
    "MqttConnectionError",
    "OidcAuthenticationError",
    "SdkCreationError",
    "SinkInitializationError",
    "SinkOperationError",
    "StellaNowError",
    "TokenValidationError",
]
