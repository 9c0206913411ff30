"""Observer-list signal used for lifecycle and acknowledgment notifications."""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, ParamSpec

P = ParamSpec("P")

_log = logging.getLogger("stellanow_sdk.signal")


class Signal(Generic[P]):
    """A list of listeners invoked in subscription order on ``trigger``.

    Each listener runs in isolation: an exception raised by one listener is
    logged and does not prevent the remaining listeners from being called.
    Listeners may be coroutine functions; their coroutines are scheduled on the
    running event loop and failures are logged when they complete.
    """

    def __init__(self, name: str | None = None) -> None:
        self.name = name or "signal"
        self._listeners: list[Callable[P, None | Awaitable[None]]] = []
        self._pending: set[asyncio.Task[None]] = set()

    def subscribe(self, listener: Callable[P, None | Awaitable[None]]) -> None:
        """Add a listener. Subscribing the same listener twice has no effect."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Callable[P, None | Awaitable[None]]) -> None:
        """Remove a listener. Unknown listeners are ignored."""
        self._listeners = [existing for existing in self._listeners if existing != listener]

    def trigger(self, *args: P.args, **kwargs: P.kwargs) -> None:
        # Iterate over a snapshot so listeners may unsubscribe themselves
        for listener in list(self._listeners):
            try:
                result = listener(*args, **kwargs)
                if inspect.iscoroutine(result):
                    try:
                        loop = asyncio.get_running_loop()
                    except RuntimeError:
                        result.close()
                        raise
                    task = loop.create_task(result)
                    self._pending.add(task)
                    task.add_done_callback(self._on_task_done)
            except Exception as e:
                _log.error(
                    f"Listener of {self.name} raised exception: {e}",
                    extra={"signal": self.name, "error": str(e)},
                )

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            _log.error(
                f"Async listener of {self.name} raised exception: {error}",
                extra={"signal": self.name, "error": str(error)},
            )

    def __len__(self) -> int:
        return len(self._listeners)
