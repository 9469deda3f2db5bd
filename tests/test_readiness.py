"""
Tests for the readiness monitor: probing, gating and shutdown.
"""

import threading
import time
from unittest.mock import Mock

import pytest
from redis.exceptions import ConnectionError

from job_manager import JobManagerTerminatedError, NoContextError, Store
from job_manager.readiness import ReadinessMonitor
from tests.fixtures.jobs import wait_for


@pytest.fixture
def monitor(store) -> ReadinessMonitor:
    return ReadinessMonitor(store, interval=0.05)


def test_requires_shutdown_event(monitor):
    with pytest.raises(NoContextError):
        monitor.start(None)


def test_not_ready_before_start(monitor):
    assert monitor.is_ready() is False


def test_becomes_ready(monitor, shutdown):
    monitor.start(shutdown)

    assert wait_for(monitor.is_ready)


def test_wait_until_ready_returns_when_ready(monitor, shutdown):
    monitor.start(shutdown)
    monitor.wait_until_ready()

    assert monitor.is_ready()


def test_outage_flips_readiness(monitor, shutdown, server):
    monitor.start(shutdown)
    monitor.wait_until_ready()

    server.connected = False
    assert wait_for(lambda: not monitor.is_ready(), timeout=1.0)

    server.connected = True
    assert wait_for(monitor.is_ready, timeout=1.0)


def test_waiters_block_during_outage(monitor, shutdown, server):
    server.connected = False
    monitor.start(shutdown)

    released = threading.Event()

    def waiter():
        monitor.wait_until_ready()
        released.set()

    threading.Thread(target=waiter, daemon=True).start()

    assert not released.wait(0.3)

    server.connected = True
    assert released.wait(2.0)


def test_stop_is_idempotent():
    store = Mock(spec=Store)
    done = Mock()
    monitor = ReadinessMonitor(store, interval=0.05)
    shutdown = threading.Event()
    monitor.start(shutdown, done)

    monitor.stop()
    monitor.stop()
    shutdown.set()

    assert wait_for(lambda: done.call_count >= 1)
    # The shutdown watcher calls stop() as well
    time.sleep(0.1)
    done.assert_called_once_with()
    store.close.assert_called_once_with()


def test_shutdown_event_stops_monitor(monitor):
    shutdown = threading.Event()
    done = threading.Event()
    monitor.start(shutdown, done.set)

    shutdown.set()

    assert done.wait(1.0)
    assert monitor.stopped
    assert monitor.is_ready() is False


def test_stop_releases_waiters(monitor, server):
    server.connected = False
    shutdown = threading.Event()
    monitor.start(shutdown)

    errors = []

    def waiter():
        try:
            monitor.wait_until_ready()
        except JobManagerTerminatedError as e:
            errors.append(e)

    thread = threading.Thread(target=waiter, daemon=True)
    thread.start()

    shutdown.set()
    thread.join(1.0)

    assert len(errors) == 1


def test_ping_failure_is_not_fatal(shutdown):
    store = Mock(spec=Store)
    store.ping.side_effect = [ConnectionError("down"), None, None, None, None]
    monitor = ReadinessMonitor(store, interval=0.05)

    monitor.start(shutdown)

    assert wait_for(monitor.is_ready, timeout=1.0)


def test_before_close_runs_before_store_is_closed():
    calls = []
    store = Mock(spec=Store)
    store.close.side_effect = lambda: calls.append("close")
    monitor = ReadinessMonitor(store, interval=0.05)
    monitor.before_close = lambda: calls.append(("before_close", monitor.is_ready()))

    monitor.start(threading.Event(), lambda: calls.append("done"))
    monitor.stop()

    assert calls == [("before_close", False), "close", "done"]
