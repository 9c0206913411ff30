"""Outbound message queues."""

from stellanow_sdk.queues.base import MessageQueue
from stellanow_sdk.queues.fifo import FifoQueue

__all__ = ["FifoQueue", "MessageQueue"]
