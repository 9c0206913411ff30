"""MQTT transport used by the MQTT sink.

The sink never talks to paho directly. It drives an ``MqttTransport``, which
exposes the pending connection options (set by the auth strategy before each
connection attempt), an async connect/publish/close API, and plain callbacks
for connection and acknowledgment events.

``PahoMqttTransport`` runs paho's network loop in its own thread and hands
every paho callback over to the asyncio event loop, so the callbacks the sink
installs always run on the event loop thread.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol
from urllib.parse import urlparse

import paho.mqtt.client as mqtt

from stellanow_sdk.core.exceptions import MqttConnectionError

logger = logging.getLogger("stellanow_sdk.transport")

_DEFAULT_PORTS = {
    "ws": 80,
    "wss": 443,
    "mqtt": 1883,
    "tcp": 1883,
    "mqtts": 8883,
    "ssl": 8883,
}
_TLS_SCHEMES = frozenset({"wss", "mqtts", "ssl"})
_WEBSOCKET_SCHEMES = frozenset({"ws", "wss"})


@dataclass(frozen=True)
class BrokerEndpoint:
    host: str
    port: int
    transport: str
    path: str
    tls: bool


def parse_broker_url(url: str) -> BrokerEndpoint:
    """Split a broker URL into what paho needs to connect.

    Raises:
        ValueError: If the scheme is unsupported or the host is missing.
    """
    parsed = urlparse(url)
    scheme = parsed.scheme.lower()
    if scheme not in _DEFAULT_PORTS:
        raise ValueError(f"Unsupported broker URL scheme: {parsed.scheme!r}")
    if not parsed.hostname:
        raise ValueError(f"Broker URL has no host: {url!r}")

    websocket = scheme in _WEBSOCKET_SCHEMES
    return BrokerEndpoint(
        host=parsed.hostname,
        port=parsed.port or _DEFAULT_PORTS[scheme],
        transport="websockets" if websocket else "tcp",
        path=(parsed.path or "/mqtt") if websocket else "",
        tls=scheme in _TLS_SCHEMES,
    )


@dataclass
class ConnectOptions:
    """Credentials applied on the next connection attempt."""

    client_id: str = ""
    username: str = ""
    password: str = field(default="", repr=False)


class MqttTransport(Protocol):
    """Protocol for the connection the MQTT sink drives.

    Callbacks are invoked on the event loop thread. ``on_disconnect`` fires
    once for every connection that was established, whether the broker
    dropped it or ``close`` was called.
    """

    options: ConnectOptions
    on_connect: Callable[[], None] | None
    on_disconnect: Callable[[str], None] | None
    on_error: Callable[[str], None] | None
    on_publish: Callable[[int], None] | None

    @property
    def connected(self) -> bool: ...

    async def connect(self, timeout: float = 30.0) -> None:
        """Open the connection and wait for the broker to accept it.

        Raises:
            MqttConnectionError: If the connection cannot be established.
        """
        ...

    async def publish(self, topic: str, payload: str, qos: int = 1) -> int:
        """Hand a message to the connection.

        Returns:
            The packet id the broker acknowledgment will refer to.

        Raises:
            MqttConnectionError: If the message could not be sent.
        """
        ...

    async def close(self) -> None: ...


class PahoMqttTransport:
    """MQTT v5 transport built on paho-mqtt.

    A fresh paho client is created for every connection attempt, so options
    changed by the auth strategy (client id, bearer token) always take effect
    and packet ids of a dropped connection can never be confused with those
    of the next one. paho's own reconnect logic is disabled; reconnecting is
    the sink's job.

    Args:
        broker_url: ``ws://``, ``wss://``, ``mqtt://`` or ``mqtts://`` URL.
        keepalive: MQTT keepalive in seconds.
        client_factory: Creates the paho client for a client id. Defaults to
            a client configured for the broker URL.
    """

    def __init__(
        self,
        broker_url: str,
        keepalive: int = 60,
        client_factory: Callable[[str], Any] | None = None,
    ) -> None:
        self.broker_url = broker_url
        self.endpoint = parse_broker_url(broker_url)
        self.keepalive = keepalive
        self.options = ConnectOptions()
        self.on_connect: Callable[[], None] | None = None
        self.on_disconnect: Callable[[str], None] | None = None
        self.on_error: Callable[[str], None] | None = None
        self.on_publish: Callable[[int], None] | None = None

        self._client_factory = client_factory or self._create_client
        self._client: Any = None
        self._connected = False
        self._connack: asyncio.Future[None] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._loop_stops: set[asyncio.Task[None]] = set()

    @property
    def connected(self) -> bool:
        return self._connected

    def _create_client(self, client_id: str) -> mqtt.Client:
        client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id,
            protocol=mqtt.MQTTv5,
            transport=self.endpoint.transport,
            reconnect_on_failure=False,
        )
        if self.endpoint.transport == "websockets":
            client.ws_set_options(path=self.endpoint.path)
        if self.endpoint.tls:
            client.tls_set()
        return client

    async def connect(self, timeout: float = 30.0) -> None:
        if self._connected:
            return
        await self._discard_client()

        loop = asyncio.get_running_loop()
        self._loop = loop
        client = self._client_factory(self.options.client_id)
        client.username_pw_set(self.options.username or None, self.options.password or None)
        client.on_connect = self._on_paho_connect
        client.on_disconnect = self._on_paho_disconnect
        client.on_publish = self._on_paho_publish

        connack: asyncio.Future[None] = loop.create_future()
        self._connack = connack
        self._client = client

        try:
            await asyncio.to_thread(
                client.connect,
                self.endpoint.host,
                self.endpoint.port,
                self.keepalive,
                clean_start=True,
            )
        except (OSError, ValueError) as e:
            self._client = None
            self._connack = None
            raise MqttConnectionError("Failed to open connection", self.broker_url, e) from e

        client.loop_start()
        try:
            await asyncio.wait_for(connack, timeout)
        except TimeoutError as e:
            await self._discard_client()
            raise MqttConnectionError(
                f"No CONNACK within {timeout}s", self.broker_url, e
            ) from e
        except MqttConnectionError:
            await self._discard_client()
            raise
        finally:
            self._connack = None

    async def publish(self, topic: str, payload: str, qos: int = 1) -> int:
        client = self._client
        if client is None or not self._connected:
            raise MqttConnectionError("Cannot publish: not connected", self.broker_url)

        info = client.publish(topic, payload, qos=qos)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise MqttConnectionError(
                f"Publish failed: {mqtt.error_string(info.rc)}", self.broker_url
            )
        return info.mid

    async def close(self) -> None:
        was_connected = self._connected
        await self._discard_client()
        if was_connected and self.on_disconnect:
            self.on_disconnect("closed by client")

    async def _discard_client(self) -> None:
        client = self._client
        self._client = None
        self._connected = False
        self._fail_connack(MqttConnectionError("Connection closed", self.broker_url))
        if client is None:
            return
        try:
            client.disconnect()
        finally:
            await asyncio.to_thread(client.loop_stop)

    def _join_network_thread(self, client: Any) -> None:
        task = asyncio.get_running_loop().create_task(asyncio.to_thread(client.loop_stop))
        self._loop_stops.add(task)
        task.add_done_callback(self._on_network_thread_joined)

    def _on_network_thread_joined(self, task: asyncio.Task[None]) -> None:
        self._loop_stops.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning(f"Failed to stop MQTT network loop: {task.exception()}")

    def _fail_connack(self, error: Exception) -> None:
        if self._connack is not None and not self._connack.done():
            self._connack.set_exception(error)

    # -- paho callbacks (network thread) -------------------------------------

    def _call_in_loop(self, callback: Callable[..., None], *args: Any) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(callback, *args)
        except RuntimeError:
            # Loop shut down between the check and the call
            logger.debug("Dropped MQTT callback, event loop is closed")

    def _on_paho_connect(self, client, userdata, flags, reason_code, properties) -> None:
        self._call_in_loop(self._handle_connect, client, reason_code)

    def _on_paho_disconnect(self, client, userdata, flags, reason_code, properties) -> None:
        self._call_in_loop(self._handle_disconnect, client, reason_code)

    def _on_paho_publish(self, client, userdata, mid, reason_code, properties) -> None:
        self._call_in_loop(self._handle_publish, client, mid, reason_code)

    # -- handlers (event loop thread) ----------------------------------------

    def _handle_connect(self, client: Any, reason_code: Any) -> None:
        if client is not self._client:
            return
        if reason_code.is_failure:
            error = MqttConnectionError(f"Broker refused connection: {reason_code}", self.broker_url)
            if self._connack is not None and not self._connack.done():
                self._connack.set_exception(error)
            elif self.on_error:
                self.on_error(str(error))
            return

        self._connected = True
        if self._connack is not None and not self._connack.done():
            self._connack.set_result(None)
        if self.on_connect:
            self.on_connect()

    def _handle_disconnect(self, client: Any, reason_code: Any) -> None:
        if client is not self._client:
            return
        was_connected = self._connected
        self._client = None
        self._connected = False
        self._join_network_thread(client)
        self._fail_connack(
            MqttConnectionError(f"Connection closed before CONNACK: {reason_code}", self.broker_url)
        )
        if was_connected and self.on_disconnect:
            self.on_disconnect(str(reason_code))

    def _handle_publish(self, client: Any, mid: int, reason_code: Any) -> None:
        if client is not self._client:
            return
        if reason_code.is_failure:
            if self.on_error:
                self.on_error(f"Broker rejected message {mid}: {reason_code}")
            # Folded into the reconnect path like any other publish failure
            client.disconnect()
            return
        if self.on_publish:
            self.on_publish(mid)
