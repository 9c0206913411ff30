"""Messages-per-second monitor."""

import asyncio
import logging
import time


class PerformanceMonitor:
    """Counts recorded events and logs the rate at a fixed interval.

    The reporting task runs between ``start`` and ``stop``; ``record_event``
    may be called at any time.
    """

    def __init__(self, logger: logging.Logger, log_interval: float = 1.0) -> None:
        self._log = logger
        self.log_interval = log_interval
        self._event_count = 0
        self._total_events = 0
        self._last_log_time = time.monotonic()
        self._task: asyncio.Task[None] | None = None

    @property
    def total_events(self) -> int:
        return self._total_events

    def record_event(self) -> None:
        self._event_count += 1
        self._total_events += 1

    def start(self) -> None:
        if self._task is not None:
            return
        self._last_log_time = time.monotonic()
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def log_rate(self) -> float:
        """Log and return the rate since the previous call, then reset the counter."""
        now = time.monotonic()
        elapsed = now - self._last_log_time
        if elapsed <= 0:
            return 0.0
        mps = self._event_count / elapsed
        self._log.debug(f"MPS: {mps:.2f}", extra={"mps": round(mps, 2)})
        self._event_count = 0
        self._last_log_time = now
        return mps

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.log_interval)
            self.log_rate()
