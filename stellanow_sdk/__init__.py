"""StellaNow SDK - reliable, at-least-once event delivery to StellaNow."""

from stellanow_sdk.config import Credentials, EnvConfig, ProjectInfo
from stellanow_sdk.core import (
    EntityReferencesEmptyError,
    EntityType,
    Signal,
    StellaNowError,
    StellaNowEventWrapper,
    StellaNowMessageBase,
    StellaNowMessageWrapper,
)
from stellanow_sdk.queues import FifoQueue, MessageQueue
from stellanow_sdk.sdk import StellaNowSDK
from stellanow_sdk.sinks import Sink, StellaNowMqttSink
from stellanow_sdk.sinks.mqtt import NoAuthMqttAuthStrategy, OidcMqttAuthStrategy

__version__ = "0.1.0"

__all__ = [
    # Facade
    "StellaNowSDK",
    # Configuration
    "Credentials",
    "EnvConfig",
    "ProjectInfo",
    # Messages
    "EntityType",
    "StellaNowEventWrapper",
    "StellaNowMessageBase",
    "StellaNowMessageWrapper",
    "Signal",
    # Queues
    "FifoQueue",
    "MessageQueue",
    # Sinks
    "Sink",
    "StellaNowMqttSink",
    "NoAuthMqttAuthStrategy",
    "OidcMqttAuthStrategy",
    # Errors
    "EntityReferencesEmptyError",
    "StellaNowError",
    # Meta
    "__version__",
]
