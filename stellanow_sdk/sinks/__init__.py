"""Delivery sinks."""

from stellanow_sdk.sinks.base import Sink
from stellanow_sdk.sinks.mqtt import StellaNowMqttSink

__all__ = ["Sink", "StellaNowMqttSink"]
