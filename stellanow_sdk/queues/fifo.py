"""In-memory FIFO queue with in-flight tracking."""

import threading
from collections import OrderedDict

from stellanow_sdk.core.events import StellaNowEventWrapper


class FifoQueue:
    """First-in-first-out queue that remembers which events are in flight.

    This queue is suitable for a single process. It provides no durability
    guarantees: queued and in-flight events are lost if the process
    terminates.

    Ordering: events come out in the order they went in. An event that is put
    back after a failed publish goes to the tail, so it can be delivered after
    events that were enqueued later.

    An event is never both queued and in flight. Enqueueing an in-flight event
    takes it out of the in-flight map, and enqueueing an event that is already
    queued keeps its current position.

    All operations take an internal ``threading.Lock``. The pump and the ack
    callback mutate the in-flight map independently, and the methods are
    synchronous, so application threads may call ``send_message`` while the
    event loop drains the queue.
    """

    def __init__(self) -> None:
        self._items: OrderedDict[str, StellaNowEventWrapper] = OrderedDict()
        self._in_flight: dict[str, StellaNowEventWrapper] = {}
        self._lock = threading.Lock()

    def enqueue(self, event: StellaNowEventWrapper) -> bool:
        with self._lock:
            self._append(event)
        return True

    def try_dequeue(self) -> StellaNowEventWrapper | None:
        with self._lock:
            if not self._items:
                return None
            message_id, event = self._items.popitem(last=False)
            self._in_flight[message_id] = event
            return event

    def mark_ack(self, message_id: str) -> None:
        # Acks may race with a requeue, so a missing id is not an error
        with self._lock:
            self._in_flight.pop(message_id, None)

    def re_enqueue_all(self) -> int:
        with self._lock:
            events = list(self._in_flight.values())
            for event in events:
                self._append(event)
            self._in_flight.clear()
            return len(events)

    def is_empty(self) -> bool:
        with self._lock:
            return not self._items

    def length(self) -> int:
        with self._lock:
            return len(self._items)

    def number_in_flight(self) -> int:
        with self._lock:
            return len(self._in_flight)

    def is_in_flight(self, message_id: str) -> bool:
        with self._lock:
            return message_id in self._in_flight

    def __contains__(self, message_id: object) -> bool:
        """Whether an event with this message id is waiting in the queue."""
        with self._lock:
            return message_id in self._items

    def _append(self, event: StellaNowEventWrapper) -> None:
        message_id = event.message_id
        self._in_flight.pop(message_id, None)
        if message_id not in self._items:
            self._items[message_id] = event
