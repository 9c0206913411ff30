"""Sink protocol: where the SDK delivers events."""

from typing import Protocol

from stellanow_sdk.core.events import StellaNowEventWrapper
from stellanow_sdk.core.signal import Signal


class Sink(Protocol):
    """Protocol for delivery sinks.

    Sinks own the connection to the ingestion endpoint and its reconnection
    lifecycle. ``on_message_ack`` is raised with the message id once the
    endpoint confirms a message, and is the only way queued events get
    retired.
    """

    on_connected: Signal[[]]
    on_disconnected: Signal[[]]
    on_error: Signal[[str]]
    on_message_ack: Signal[[str]]

    @property
    def is_connected(self) -> bool: ...

    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    async def send_message_async(self, event: StellaNowEventWrapper) -> None:
        """Publish an event.

        Raises:
            MqttConnectionError: If the sink is not connected.
            SinkOperationError: If the publish failed.
        """
        ...
