"""Queue protocol for outbound events.

ALL buffering lives in the queue, not in the SDK facade. The facade pulls
events from the queue, hands them to the sink and relies on the sink's ack
signal to retire them.
"""

from typing import Protocol

from stellanow_sdk.core.events import StellaNowEventWrapper


class MessageQueue(Protocol):
    """Protocol defining the interface for outbound message queues.

    Queues are responsible for:
    - Ordering events (enqueue / try_dequeue)
    - Tracking events handed to the sink but not yet acknowledged (in-flight)
    - Recovering in-flight events whose outcome is unknown (re_enqueue_all)

    Implementations must be safe to call from the pump and from the ack
    callback concurrently. A durable implementation may be substituted as long
    as it honours the same contract.
    """

    def enqueue(self, event: StellaNowEventWrapper) -> bool:
        """Append an event to the tail of the queue.

        Returns:
            True once the event is queued.
        """
        ...

    def try_dequeue(self) -> StellaNowEventWrapper | None:
        """Remove the head event and mark it in-flight.

        Returns:
            The head event, or None if the queue is empty.
        """
        ...

    def mark_ack(self, message_id: str) -> None:
        """Retire an in-flight event. Unknown ids are ignored."""
        ...

    def re_enqueue_all(self) -> int:
        """Move every in-flight event back to the tail of the queue.

        Returns:
            The number of events moved.
        """
        ...

    def is_empty(self) -> bool: ...

    def length(self) -> int: ...

    def number_in_flight(self) -> int: ...
