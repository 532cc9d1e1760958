import threading

import pytest

from cirrus_rag.cloud.ingestion import IngestionMonitor
from cirrus_rag.common.errors import (
    IngestionCancelledError,
    IngestionFailedError,
    IngestionTimeoutError,
)
from cirrus_rag.common.schemas import IngestionStatus


class DummyStatusClient:
    """Returns a scripted sequence of statuses; the last one repeats forever."""

    def __init__(self, statuses):
        self.statuses = list(statuses)
        self.calls = 0

    def get_managed_ingestion(self, pipeline_id, run_id):
        self.calls += 1
        status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        return {"id": run_id, "status": status}


class DummyClock:
    def __init__(self):
        self.now = 100.0
        self.sleeps = []

    def monotonic(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def _monitor(client, **kwargs):
    kwargs.setdefault("clock", DummyClock())
    return IngestionMonitor(client, "pipe-1", "run-1", **kwargs)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("SUCCESS", IngestionStatus.SUCCESS),
        ("success", IngestionStatus.SUCCESS),
        ("ERROR", IngestionStatus.ERROR),
        ("NOT_STARTED", IngestionStatus.PENDING),
        ("IN_PROGRESS", IngestionStatus.PENDING),
        ("PARTIAL_SUCCESS", IngestionStatus.PENDING),
        (None, IngestionStatus.PENDING),
    ],
)
def test_status_from_remote(raw, expected):
    assert IngestionStatus.from_remote(raw) is expected


def test_only_success_and_error_are_terminal():
    assert IngestionStatus.SUCCESS.is_terminal
    assert IngestionStatus.ERROR.is_terminal
    assert not IngestionStatus.PENDING.is_terminal


def test_wait_returns_run_on_success():
    """
    Test that wait returns a successful run and records the number of checks.
    """
    client = DummyStatusClient(["NOT_STARTED", "IN_PROGRESS", "SUCCESS"])
    monitor = _monitor(client)

    run = monitor.wait()

    assert run.id == "run-1"
    assert run.status is IngestionStatus.SUCCESS
    assert monitor.checks == 3
    assert monitor.state is IngestionStatus.SUCCESS


def test_wait_raises_on_error_status():
    client = DummyStatusClient(["ERROR"])
    monitor = _monitor(client)

    with pytest.raises(IngestionFailedError):
        monitor.wait()

    assert monitor.checks == 1
    assert monitor.state is IngestionStatus.ERROR


def test_on_pending_called_once_per_wait():
    client = DummyStatusClient(["IN_PROGRESS", "IN_PROGRESS", "IN_PROGRESS", "SUCCESS"])
    ticks = []

    _monitor(client, on_pending=lambda: ticks.append(1)).wait()

    assert len(ticks) == 3


def test_wait_times_out_without_terminal_status():
    """
    Test that a run stuck in progress stops with IngestionTimeoutError once the
    clock passes the timeout.
    """
    client = DummyStatusClient(["IN_PROGRESS"])
    clock = DummyClock()
    monitor = _monitor(client, clock=clock, poll_interval=2.0, timeout=5.0)

    with pytest.raises(IngestionTimeoutError) as excinfo:
        monitor.wait()

    # checks at t=0, 2, 4, 6; the fourth one sees 6 >= 5
    assert client.calls == 4
    assert clock.sleeps == [2.0, 2.0, 2.0]
    assert excinfo.value.timeout == 5.0
    assert isinstance(excinfo.value, IngestionFailedError)


def test_cancel_event_stops_before_next_check():
    """
    Test that setting the cancellation token stops polling before another check.
    """
    cancel = threading.Event()
    client = DummyStatusClient(["IN_PROGRESS"])
    ticks = []

    def on_pending():
        ticks.append(1)
        if len(ticks) == 2:
            cancel.set()

    monitor = _monitor(client, cancel_event=cancel, on_pending=on_pending)

    with pytest.raises(IngestionCancelledError):
        monitor.wait()

    assert client.calls == 2


def test_already_cancelled_makes_no_checks():
    cancel = threading.Event()
    cancel.set()
    client = DummyStatusClient(["SUCCESS"])

    with pytest.raises(IngestionCancelledError):
        _monitor(client, cancel_event=cancel).wait()

    assert client.calls == 0


def test_negative_poll_interval_rejected():
    with pytest.raises(ValueError):
        _monitor(DummyStatusClient(["SUCCESS"]), poll_interval=-1)
