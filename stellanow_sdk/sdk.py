"""StellaNow SDK facade.

The SDK is the entry point applications use. It:
- Wraps application messages into events and enqueues them
- Runs a pump that drains the queue into the sink while the sink is connected
- Puts events back into the queue when a publish fails

IMPORTANT: the SDK does NOT buffer events itself. All buffering goes through
the queue; events leave the queue's in-flight set only when the sink reports
a broker acknowledgment.
"""

import asyncio
import logging

from stellanow_sdk.config import Credentials, EnvConfig, ProjectInfo
from stellanow_sdk.core.events import StellaNowEventWrapper
from stellanow_sdk.core.exceptions import SdkCreationError
from stellanow_sdk.core.logging import get_logger
from stellanow_sdk.core.messages import StellaNowMessageBase, StellaNowMessageWrapper
from stellanow_sdk.core.signal import Signal
from stellanow_sdk.queues.base import MessageQueue
from stellanow_sdk.queues.fifo import FifoQueue
from stellanow_sdk.sinks.base import Sink
from stellanow_sdk.sinks.mqtt.auth import OidcMqttAuthStrategy
from stellanow_sdk.sinks.mqtt.sink import StellaNowMqttSink

DEFAULT_BATCH_SIZE = 100
DEFAULT_LOOP_DELAY = 0.05


class StellaNowSDK:
    """Reliable, at-least-once delivery of messages to StellaNow.

    Signals ``on_connected``, ``on_disconnected`` and ``on_error`` are the
    sink's own signals. Delivery does not depend on anyone subscribing.

    Args:
        project_info: Organization and project the events are keyed by.
        sink: Where events are published.
        queue: Buffer for outbound events.
        logger: Logger to use. Defaults to ``stellanow_sdk.sdk``.
        batch_size: Maximum number of events published per pump cycle.
        loop_delay: Seconds between pump cycles.
    """

    def __init__(
        self,
        project_info: ProjectInfo,
        sink: Sink,
        queue: MessageQueue,
        logger: logging.Logger | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        loop_delay: float = DEFAULT_LOOP_DELAY,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")

        self.project_info = project_info
        self.sink = sink
        self.queue = queue
        self.batch_size = batch_size
        self.loop_delay = loop_delay
        self._log = logger or get_logger("stellanow_sdk.sdk")
        self._running = False
        self._pump_task: asyncio.Task[None] | None = None

        self.on_connected: Signal[[]] = sink.on_connected
        self.on_disconnected: Signal[[]] = sink.on_disconnected
        self.on_error: Signal[[str]] = sink.on_error

        sink.on_message_ack.subscribe(queue.mark_ack)
        # Acks for the old connection can never arrive, so in-flight events go back
        sink.on_disconnected.subscribe(self._recover_in_flight)

    @property
    def is_running(self) -> bool:
        return self._pump_task is not None

    async def start(self) -> None:
        """Start the sink, then the pump. A second call while running does nothing."""
        if self._pump_task is not None:
            self._log.warning("StellaNowSDK is already started")
            return

        try:
            await self.sink.start()
        except Exception as e:
            self._log.error(f"Failed to start StellaNowSDK: {e}")
            raise

        self._running = True
        self._pump_task = asyncio.create_task(self._run_event_loop(), name="stellanow-pump")
        self._log.info("StellaNowSDK started successfully")

    async def stop(self) -> None:
        """Let the current pump cycle finish, then stop the sink."""
        self._running = False
        task, self._pump_task = self._pump_task, None
        try:
            if task is not None:
                await task
            await self.sink.stop()
        except Exception as e:
            self._log.error(f"Failed to stop StellaNowSDK: {e}")
            raise
        self._log.info("StellaNowSDK stopped successfully")

    async def __aenter__(self) -> "StellaNowSDK":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    def send_event(self, event: StellaNowEventWrapper) -> None:
        self.queue.enqueue(event)

    def send_message(self, message: StellaNowMessageBase) -> StellaNowEventWrapper:
        """Wrap ``message`` and enqueue it for delivery.

        Returns:
            The enqueued event, whose ``message_id`` identifies it in the queue.

        Raises:
            EntityReferencesEmptyError: If the message has no entity
                references. Nothing is enqueued.
        """
        wrapper = StellaNowMessageWrapper.from_message(message)
        event = StellaNowEventWrapper.from_wrapper(self.project_info, wrapper)
        self.send_event(event)
        return event

    def messages_in_queue_count(self) -> int:
        return self.queue.length()

    def messages_in_flight_count(self) -> int:
        return self.queue.number_in_flight()

    def _recover_in_flight(self) -> None:
        moved = self.queue.re_enqueue_all()
        if moved:
            self._log.warning(
                f"Re-enqueued {moved} unacknowledged messages after disconnect",
                extra={"batch_size": moved},
            )

    async def _run_event_loop(self) -> None:
        while self._running:
            try:
                await self._pump()
            except Exception as e:
                self._log.error(f"Event loop iteration failed: {e}")
            await asyncio.sleep(self.loop_delay)

    async def _pump(self) -> None:
        if not self.sink.is_connected:
            self._log.debug("Unable to publish: Sink is not connected")
            return
        if self.queue.is_empty():
            return

        batch: list[StellaNowEventWrapper] = []
        while len(batch) < self.batch_size:
            event = self.queue.try_dequeue()
            if event is None:
                break
            batch.append(event)

        if batch:
            self._log.debug(
                f"Publishing {len(batch)} queued messages", extra={"batch_size": len(batch)}
            )
            await asyncio.gather(*(self._publish(event) for event in batch))

    async def _publish(self, event: StellaNowEventWrapper) -> None:
        try:
            await self.sink.send_message_async(event)
        except Exception as e:
            self._log.error(
                f"Failed to publish event {event.message_id}: {e}",
                extra={"message_id": event.message_id},
            )
            self.queue.enqueue(event)

    @classmethod
    def create_with_mqtt_and_oidc(
        cls,
        logger: logging.Logger | None = None,
        env_config: EnvConfig | None = None,
        queue: MessageQueue | None = None,
        project_info: ProjectInfo | None = None,
        credentials: Credentials | None = None,
        performance_monitor_on: bool = False,
    ) -> "StellaNowSDK":
        """Assemble an SDK publishing over MQTT with OIDC authentication.

        Missing arguments default to the production environment, a new
        ``FifoQueue``, and project info and credentials read from
        ``STELLA_*`` environment variables.

        Raises:
            SdkCreationError: If any part cannot be created.
        """
        log = logger or get_logger("stellanow_sdk.sdk")
        try:
            log.info("Creating StellaNowSDK instance with MQTT and OIDC authentication")
            env_config = env_config or EnvConfig.saas_prod()
            project_info = project_info or ProjectInfo()
            credentials = credentials or Credentials()
            auth_strategy = OidcMqttAuthStrategy(
                env_config, project_info, credentials, logger=logger
            )
            sink = StellaNowMqttSink(
                auth_strategy,
                project_info,
                env_config,
                logger=logger,
                performance_monitor_on=performance_monitor_on,
            )
            return cls(project_info, sink, queue if queue is not None else FifoQueue(), logger=logger)
        except Exception as e:
            log.error(f"Failed to create StellaNowSDK: {e}")
            raise SdkCreationError(str(e), e) from e
