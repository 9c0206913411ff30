"""MQTT sink, transport and authentication strategies."""

from stellanow_sdk.sinks.mqtt.auth import (
    MqttAuthStrategy,
    NoAuthMqttAuthStrategy,
    OidcMqttAuthStrategy,
)
from stellanow_sdk.sinks.mqtt.sink import StellaNowMqttSink, compute_backoff_delay
from stellanow_sdk.sinks.mqtt.transport import ConnectOptions, MqttTransport, PahoMqttTransport

__all__ = [
    "ConnectOptions",
    "MqttAuthStrategy",
    "MqttTransport",
    "NoAuthMqttAuthStrategy",
    "OidcMqttAuthStrategy",
    "PahoMqttTransport",
    "StellaNowMqttSink",
    "compute_backoff_delay",
]
