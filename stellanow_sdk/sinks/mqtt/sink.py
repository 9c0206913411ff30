"""MQTT sink: owns the broker connection and publishes events.

Connection lifecycle::

    Disconnected -> Connecting (auth + connect) -> Connected -> Disconnected

A connection monitor task is the only thing that moves the sink out of
Disconnected. It retries with exponential backoff and keeps polling while
connected so a dropped connection is picked up again.
"""

import asyncio
import logging

from stellanow_sdk.config import EnvConfig, ProjectInfo
from stellanow_sdk.core.events import StellaNowEventWrapper
from stellanow_sdk.core.exceptions import (
    MqttConnectionError,
    SinkInitializationError,
    SinkOperationError,
)
from stellanow_sdk.core.logging import get_logger
from stellanow_sdk.core.performance import PerformanceMonitor
from stellanow_sdk.core.signal import Signal
from stellanow_sdk.sinks.mqtt.auth import MqttAuthStrategy
from stellanow_sdk.sinks.mqtt.transport import MqttTransport, PahoMqttTransport, parse_broker_url

BASE_RECONNECT_DELAY = 5.0
MAX_RECONNECT_DELAY = 60.0
CONNECTED_POLL_INTERVAL = 2.5
DEFAULT_CONNECT_TIMEOUT = 30.0

# At-least-once: the broker must acknowledge every publish
PUBLISH_QOS = 1

# 2**32 already exceeds any sane max delay; keeps the float math finite
_MAX_BACKOFF_EXPONENT = 32


def compute_backoff_delay(
    attempt: int,
    base: float = BASE_RECONNECT_DELAY,
    maximum: float = MAX_RECONNECT_DELAY,
) -> float:
    """Delay before the next connection attempt.

    ``min(base * 2 ** (attempt - 1), maximum)``; attempts below 1 count as 1.
    """
    exponent = min(max(attempt, 1) - 1, _MAX_BACKOFF_EXPONENT)
    return min(base * 2**exponent, maximum)


class StellaNowMqttSink:
    """Publishes events to ``in/{organization_id}`` over MQTT.

    Signals:
        on_connected: The broker accepted a connection.
        on_disconnected: An established connection was lost or closed.
        on_error: A recoverable error occurred (message as argument).
        on_message_ack: The broker acknowledged a message (message id as argument).

    Args:
        auth_strategy: Prepares credentials before every connection attempt.
        project_info: Supplies the organization id for the topic.
        env_config: Supplies the broker URL.
        transport: Connection to drive. Defaults to a ``PahoMqttTransport``
            for the broker URL, created on ``start``.
        logger: Logger to use. Defaults to ``stellanow_sdk.sink``.
        performance_monitor_on: Log published messages per second.
        base_reconnect_delay: Backoff delay after the first failed attempt.
        max_reconnect_delay: Upper bound for the backoff delay.
        connected_poll_interval: Monitor interval while connected.
        connect_timeout: Seconds to wait for the broker to accept a connection.

    Raises:
        SinkInitializationError: If a required argument is missing or the
            broker URL is invalid.
    """

    def __init__(
        self,
        auth_strategy: MqttAuthStrategy,
        project_info: ProjectInfo,
        env_config: EnvConfig,
        transport: MqttTransport | None = None,
        logger: logging.Logger | None = None,
        performance_monitor_on: bool = False,
        base_reconnect_delay: float = BASE_RECONNECT_DELAY,
        max_reconnect_delay: float = MAX_RECONNECT_DELAY,
        connected_poll_interval: float = CONNECTED_POLL_INTERVAL,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    ) -> None:
        if auth_strategy is None or project_info is None or env_config is None:
            raise SinkInitializationError("Invalid constructor parameters")
        if not project_info.organization_id or not env_config.broker_url:
            raise SinkInitializationError("Invalid constructor parameters")
        try:
            parse_broker_url(env_config.broker_url)
        except ValueError as e:
            raise SinkInitializationError(
                f"Broker URL is not a valid URI: {env_config.broker_url}", e
            ) from e

        self.on_connected: Signal[[]] = Signal("on_connected")
        self.on_disconnected: Signal[[]] = Signal("on_disconnected")
        self.on_error: Signal[[str]] = Signal("on_error")
        self.on_message_ack: Signal[[str]] = Signal("on_message_ack")

        self.broker_url = env_config.broker_url
        self.topic = f"in/{project_info.organization_id}"
        self.base_reconnect_delay = base_reconnect_delay
        self.max_reconnect_delay = max_reconnect_delay
        self.connected_poll_interval = connected_poll_interval
        self.connect_timeout = connect_timeout

        self._auth_strategy = auth_strategy
        self._transport = transport
        self._log = logger or get_logger("stellanow_sdk.sink")
        self._lock = asyncio.Lock()
        self._monitor_task: asyncio.Task[None] | None = None
        self._running = False
        self._wakeup = asyncio.Event()
        # packet id -> message id, for the connection currently open
        self._pending_acks: dict[int, str] = {}
        self._early_acks: set[int] = set()
        self._performance_monitor = (
            PerformanceMonitor(self._log) if performance_monitor_on else None
        )

    @property
    def is_connected(self) -> bool:
        return self._transport is not None and self._transport.connected

    @property
    def is_started(self) -> bool:
        return self._monitor_task is not None

    @property
    def pending_ack_count(self) -> int:
        return len(self._pending_acks)

    async def start(self) -> None:
        """Wire the transport and launch the connection monitor.

        Raises:
            SinkInitializationError: If the sink is already started.
        """
        async with self._lock:
            if self._monitor_task is not None:
                self._log.error("Failed to start MQTT sink: Sink is already started")
                raise SinkInitializationError("Sink is already started")

            try:
                if self._transport is None:
                    self._transport = PahoMqttTransport(self.broker_url)
                self._wire_transport(self._transport)
            except Exception as e:
                self._log.error(f"Failed to start MQTT sink: {e}", extra={"broker": self.broker_url})
                raise

            self._running = True
            self._wakeup.clear()
            self._monitor_task = asyncio.create_task(
                self._monitor_connection(), name="stellanow-mqtt-monitor"
            )
            if self._performance_monitor is not None:
                self._performance_monitor.start()

    async def stop(self) -> None:
        """Cancel the connection monitor, wait for it to exit, then close the transport.

        Raises:
            SinkOperationError: If the monitor failed or the transport could
                not be closed. The sink is stopped either way.
        """
        async with self._lock:
            task = self._monitor_task
            if task is None:
                self._log.debug("MQTT sink is not started")
                return

            self._log.info("Disconnecting from MQTT broker", extra={"broker": self.broker_url})
            self._running = False
            # The monitor may be inside auth() or connect(), which can take a while
            task.cancel()

            monitor_error: Exception | None = None
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                monitor_error = e
            finally:
                self._monitor_task = None

            try:
                if self._transport is not None:
                    await self._transport.close()
            except Exception as e:
                self._log.error(
                    f"Failed to disconnect from MQTT broker: {e}", extra={"broker": self.broker_url}
                )
                raise SinkOperationError("Failed to disconnect from the MQTT broker", e) from e
            finally:
                self._pending_acks.clear()
                self._early_acks.clear()
                if self._performance_monitor is not None:
                    await self._performance_monitor.stop()

            self._log.info("Disconnected from MQTT broker", extra={"broker": self.broker_url})
            if monitor_error is not None:
                raise SinkOperationError("Connection monitor failed", monitor_error) from monitor_error

    async def send_message_async(self, event: StellaNowEventWrapper) -> None:
        """Publish ``event`` with broker acknowledgment.

        Any publish error closes the connection, so the monitor reconnects and
        re-authenticates before the next publish.

        Raises:
            MqttConnectionError: If not connected. No network I/O happens.
            SinkOperationError: If the publish failed.
        """
        if event is None:
            self._log.error("Failed to publish message: Event cannot be None")
            raise SinkOperationError("Event cannot be None")
        if not self.is_connected:
            self._log.error("Failed to publish message: Sink is not connected")
            raise MqttConnectionError("Cannot publish message: Sink is not connected", self.broker_url)

        message_id = event.message_id
        async with self._lock:
            transport = self._transport
            if transport is None or not transport.connected:
                raise MqttConnectionError(
                    "Cannot publish message: Sink is not connected", self.broker_url
                )

            self._log.debug(
                f"Publishing message with ID: {message_id}", extra={"message_id": message_id}
            )
            try:
                packet_id = await transport.publish(self.topic, event.to_json(), qos=PUBLISH_QOS)
            except Exception as e:
                self._log.warning(f"MQTT publish error: {e}", extra={"message_id": message_id})
                await self._force_close(transport)
                raise SinkOperationError(f"Failed to publish message {message_id}", e) from e

            self._track_ack(packet_id, message_id)
            if self._performance_monitor is not None:
                self._performance_monitor.record_event()

    async def _force_close(self, transport: MqttTransport) -> None:
        try:
            await transport.close()
        except Exception as e:
            self._log.error(f"Failed to close MQTT connection after publish error: {e}")

    def _wire_transport(self, transport: MqttTransport) -> None:
        transport.on_connect = self._handle_connect
        transport.on_disconnect = self._handle_disconnect
        transport.on_error = self._handle_error
        transport.on_publish = self._handle_publish_ack

    def _track_ack(self, packet_id: int, message_id: str) -> None:
        if packet_id in self._early_acks:
            self._early_acks.discard(packet_id)
            self._ack(message_id)
        else:
            self._pending_acks[packet_id] = message_id

    def _ack(self, message_id: str) -> None:
        self._log.debug(f"Message acknowledged: {message_id}", extra={"message_id": message_id})
        self.on_message_ack.trigger(message_id)

    # -- transport callbacks -------------------------------------------------

    def _handle_connect(self) -> None:
        self._log.info("Connected to MQTT broker", extra={"broker": self.broker_url})
        self.on_connected.trigger()

    def _handle_disconnect(self, reason: str) -> None:
        self._log.info(f"Disconnected from MQTT broker: {reason}", extra={"broker": self.broker_url})
        # Packet ids are only meaningful for the connection that issued them
        self._pending_acks.clear()
        self._early_acks.clear()
        self.on_disconnected.trigger()
        if self._running:
            self._wakeup.set()

    def _handle_error(self, message: str) -> None:
        self._log.error(f"MQTT error: {message}", extra={"broker": self.broker_url})
        self.on_error.trigger(message)

    def _handle_publish_ack(self, packet_id: int) -> None:
        message_id = self._pending_acks.pop(packet_id, None)
        if message_id is None:
            # Ack arrived before publish() returned the packet id
            self._early_acks.add(packet_id)
            return
        self._ack(message_id)

    # -- connection monitor --------------------------------------------------

    async def _sleep(self, delay: float) -> None:
        try:
            await asyncio.wait_for(self._wakeup.wait(), timeout=delay)
        except TimeoutError:
            pass
        if self._running:
            self._wakeup.clear()

    async def _monitor_connection(self) -> None:
        self._log.info("Started connection monitor")
        transport = self._transport
        attempt = 0

        try:
            while self._running:
                if not transport.connected:
                    attempt += 1
                    try:
                        self._log.info(
                            f"Attempting connection (Attempt {attempt})",
                            extra={"attempt": attempt, "broker": self.broker_url},
                        )
                        await self._auth_strategy.auth(transport)
                        await transport.connect(self.connect_timeout)
                        attempt = 0
                    except Exception as e:
                        message = f"Connection attempt {attempt} failed: {e}"
                        self._log.error(message, extra={"attempt": attempt, "error": str(e)})
                        self.on_error.trigger(message)

                if not self._running:
                    break

                if not transport.connected:
                    delay = compute_backoff_delay(
                        attempt, self.base_reconnect_delay, self.max_reconnect_delay
                    )
                    self._log.info(
                        f"Retrying connection in {delay} seconds...",
                        extra={"attempt": attempt, "delay": delay},
                    )
                    await self._sleep(delay)
                else:
                    await self._sleep(self.connected_poll_interval)
        except Exception as e:
            self._log.error(f"Unexpected error in connection monitor: {e}")
            raise SinkOperationError("Unexpected error in connection monitor", e) from e
        finally:
            self._log.info("Connection monitor cancelled")
