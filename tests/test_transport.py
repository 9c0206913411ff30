"""Tests for broker URL parsing and the paho-mqtt transport."""

import asyncio

import paho.mqtt.client as mqtt
import pytest

from stellanow_sdk.core.exceptions import MqttConnectionError
from stellanow_sdk.sinks.mqtt.transport import PahoMqttTransport, parse_broker_url
from tests.fakes import wait_until

pytestmark = pytest.mark.timeout(5)


class FakeReasonCode:
    def __init__(self, name: str = "Success", is_failure: bool = False) -> None:
        self.name = name
        self.is_failure = is_failure

    def __str__(self) -> str:
        return self.name


class FakePublishInfo:
    def __init__(self, rc: int, mid: int) -> None:
        self.rc = rc
        self.mid = mid


class FakePahoClient:
    """Minimal stand-in for ``paho.mqtt.client.Client``.

    ``loop_start`` answers the connect with ``connack``, or stays silent when
    ``connack`` is None.
    """

    def __init__(self, client_id: str, connack: FakeReasonCode | None = None) -> None:
        self.client_id = client_id
        self.connack = connack
        self.credentials = None
        self.connect_args = None
        self.connect_error: Exception | None = None
        self.publish_rc = mqtt.MQTT_ERR_SUCCESS
        self.published: list[tuple[str, str, int]] = []
        self.disconnect_calls = 0
        self.loop_stopped = False
        self.on_connect = None
        self.on_disconnect = None
        self.on_publish = None

    def username_pw_set(self, username, password=None) -> None:
        self.credentials = (username, password)

    def connect(self, host, port, keepalive, **kwargs) -> None:
        if self.connect_error is not None:
            raise self.connect_error
        self.connect_args = (host, port, keepalive, kwargs)

    def loop_start(self) -> None:
        if self.connack is not None:
            self.on_connect(self, None, {}, self.connack, None)

    def loop_stop(self) -> None:
        self.loop_stopped = True

    def publish(self, topic, payload, qos=0) -> FakePublishInfo:
        self.published.append((topic, payload, qos))
        return FakePublishInfo(self.publish_rc, len(self.published))

    def disconnect(self) -> None:
        self.disconnect_calls += 1

    # Broker-side events, delivered the way paho's network thread would
    def drop(self, reason: str = "Keep alive timeout") -> None:
        self.on_disconnect(self, None, {}, FakeReasonCode(reason, is_failure=True), None)

    def puback(self, mid: int, reason: FakeReasonCode | None = None) -> None:
        self.on_publish(self, None, mid, reason or FakeReasonCode(), None)


class ClientFactory:
    def __init__(self, connack: FakeReasonCode | None = FakeReasonCode()) -> None:
        self.connack = connack
        self.clients: list[FakePahoClient] = []

    def __call__(self, client_id: str) -> FakePahoClient:
        client = FakePahoClient(client_id, self.connack)
        self.clients.append(client)
        return client

    @property
    def last(self) -> FakePahoClient:
        return self.clients[-1]


class Recorder:
    """Collects the transport callbacks in order."""

    def __init__(self, transport: PahoMqttTransport) -> None:
        self.events: list[tuple] = []
        transport.on_connect = lambda: self.events.append(("connect",))
        transport.on_disconnect = lambda reason: self.events.append(("disconnect", reason))
        transport.on_error = lambda message: self.events.append(("error", message))
        transport.on_publish = lambda mid: self.events.append(("publish", mid))


BROKER = "wss://ingestor.test.stella.cloud:8083/mqtt"


def make_transport(factory: ClientFactory) -> tuple[PahoMqttTransport, Recorder]:
    transport = PahoMqttTransport(BROKER, client_factory=factory)
    transport.options.client_id = "client-1"
    transport.options.username = "token"
    return transport, Recorder(transport)


async def drain() -> None:
    """Let callbacks scheduled with call_soon_threadsafe run."""
    for _ in range(3):
        await asyncio.sleep(0)


@pytest.mark.parametrize(
    "url,host,port,transport,path,tls",
    [
        (BROKER, "ingestor.test.stella.cloud", 8083, "websockets", "/mqtt", True),
        ("ws://localhost", "localhost", 80, "websockets", "/mqtt", False),
        ("wss://broker.local/ws", "broker.local", 443, "websockets", "/ws", True),
        ("mqtt://localhost", "localhost", 1883, "tcp", "", False),
        ("tcp://10.0.0.5:1884", "10.0.0.5", 1884, "tcp", "", False),
        ("mqtts://broker.local", "broker.local", 8883, "tcp", "", True),
    ],
)
def test_parse_broker_url(url, host, port, transport, path, tls):
    endpoint = parse_broker_url(url)

    assert (endpoint.host, endpoint.port, endpoint.transport, endpoint.path, endpoint.tls) == (
        host,
        port,
        transport,
        path,
        tls,
    )


@pytest.mark.parametrize("url", ["http://broker.local", "not a url", "wss://:8083/mqtt", ""])
def test_parse_broker_url_rejects_invalid(url):
    with pytest.raises(ValueError):
        parse_broker_url(url)


async def test_connect_applies_options_and_reports_connect():
    factory = ClientFactory()
    transport, recorder = make_transport(factory)

    await transport.connect(timeout=1.0)

    client = factory.last
    assert transport.connected
    assert client.client_id == "client-1"
    assert client.credentials == ("token", None)
    assert client.connect_args == ("ingestor.test.stella.cloud", 8083, 60, {"clean_start": True})
    assert recorder.events == [("connect",)]


async def test_connect_refused_raises():
    factory = ClientFactory(connack=FakeReasonCode("Not authorized", is_failure=True))
    transport, recorder = make_transport(factory)

    with pytest.raises(MqttConnectionError, match="Not authorized"):
        await transport.connect(timeout=1.0)

    assert not transport.connected
    assert factory.last.loop_stopped
    assert recorder.events == []


async def test_connect_without_connack_times_out():
    factory = ClientFactory(connack=None)
    transport, _ = make_transport(factory)

    with pytest.raises(MqttConnectionError, match="No CONNACK"):
        await transport.connect(timeout=0.05)

    assert not transport.connected
    assert factory.last.loop_stopped


async def test_connect_socket_error_raises():
    factory = ClientFactory()
    transport, _ = make_transport(factory)
    original = factory.__call__

    def failing_factory(client_id):
        client = original(client_id)
        client.connect_error = ConnectionRefusedError("refused")
        return client

    transport._client_factory = failing_factory

    with pytest.raises(MqttConnectionError) as exc_info:
        await transport.connect(timeout=1.0)

    assert isinstance(exc_info.value.cause, ConnectionRefusedError)
    assert not transport.connected


async def test_each_connect_uses_fresh_client():
    factory = ClientFactory()
    transport, _ = make_transport(factory)

    await transport.connect()
    await transport.close()
    transport.options.client_id = "client-2"
    await transport.connect()

    assert [c.client_id for c in factory.clients] == ["client-1", "client-2"]


async def test_publish_returns_packet_id():
    factory = ClientFactory()
    transport, _ = make_transport(factory)
    await transport.connect()

    mid = await transport.publish("in/org", '{"k": 1}', qos=1)

    assert mid == 1
    assert factory.last.published == [("in/org", '{"k": 1}', 1)]


async def test_publish_when_not_connected_raises():
    transport, _ = make_transport(ClientFactory())

    with pytest.raises(MqttConnectionError):
        await transport.publish("in/org", "{}")


async def test_publish_error_code_raises():
    factory = ClientFactory()
    transport, _ = make_transport(factory)
    await transport.connect()
    factory.last.publish_rc = mqtt.MQTT_ERR_NO_CONN

    with pytest.raises(MqttConnectionError, match="Publish failed"):
        await transport.publish("in/org", "{}")


async def test_puback_is_reported():
    factory = ClientFactory()
    transport, recorder = make_transport(factory)
    await transport.connect()

    factory.last.puback(7)
    await drain()

    assert recorder.events[-1] == ("publish", 7)


async def test_failed_puback_reports_error_and_disconnects():
    factory = ClientFactory()
    transport, recorder = make_transport(factory)
    await transport.connect()

    factory.last.puback(3, FakeReasonCode("Quota exceeded", is_failure=True))
    await drain()

    assert recorder.events[-1] == ("error", "Broker rejected message 3: Quota exceeded")
    assert factory.last.disconnect_calls == 1


async def test_broker_drop_reports_disconnect():
    factory = ClientFactory()
    transport, recorder = make_transport(factory)
    await transport.connect()

    factory.last.drop("Keep alive timeout")
    await drain()

    assert not transport.connected
    assert recorder.events == [("connect",), ("disconnect", "Keep alive timeout")]


async def test_close_reports_disconnect_once():
    factory = ClientFactory()
    transport, recorder = make_transport(factory)
    await transport.connect()

    await transport.close()
    await transport.close()

    assert not transport.connected
    assert factory.last.loop_stopped
    assert recorder.events == [("connect",), ("disconnect", "closed by client")]


async def test_callbacks_from_previous_client_are_ignored():
    factory = ClientFactory()
    transport, recorder = make_transport(factory)
    await transport.connect()
    old_client = factory.last
    await transport.close()
    await transport.connect()

    old_client.drop()
    old_client.puback(1)
    await drain()

    assert transport.connected
    assert recorder.events == [("connect",), ("disconnect", "closed by client"), ("connect",)]


async def test_broker_drop_stops_network_loop():
    factory = ClientFactory()
    transport, _ = make_transport(factory)
    await transport.connect()
    client = factory.last

    client.drop()
    await wait_until(lambda: client.loop_stopped)

    assert not transport.connected
