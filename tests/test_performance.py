"""Tests for the messages-per-second monitor."""

import asyncio
import logging

import pytest

from stellanow_sdk.core.performance import PerformanceMonitor

pytestmark = pytest.mark.timeout(5)


def test_log_rate_resets_counter(log_capture):
    monitor = PerformanceMonitor(logging.getLogger("stellanow_sdk.perf"))
    for _ in range(5):
        monitor.record_event()

    first = monitor.log_rate()
    second = monitor.log_rate()

    assert first > 0
    assert second == 0
    assert monitor.total_events == 5
    assert any(m.startswith("MPS: ") for m in log_capture.messages())


async def test_reporting_task_logs_periodically(log_capture):
    monitor = PerformanceMonitor(logging.getLogger("stellanow_sdk.perf"), log_interval=0.01)
    monitor.start()
    monitor.record_event()

    await asyncio.sleep(0.05)
    await monitor.stop()

    rates = [r for r in log_capture.records if hasattr(r, "mps")]
    assert len(rates) >= 2


async def test_stop_without_start_is_noop():
    monitor = PerformanceMonitor(logging.getLogger("stellanow_sdk.perf"))

    await monitor.stop()

    assert monitor.total_events == 0
