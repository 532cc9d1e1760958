"""cirrus_rag.cloud.ingestion

Polling state machine for managed ingestion runs.

A run starts in :attr:`IngestionStatus.PENDING` and moves to ``SUCCESS`` or
``ERROR`` exactly once. :class:`IngestionMonitor` checks the run's status on a
fixed interval until it is terminal. Time is read and spent through an
injected :class:`Clock`, so tests can drive the loop without real delays and
callers can bound it with a timeout or stop it with a cancellation token.

Classes
-------
Clock
    Protocol for the time source used while polling.
SystemClock
    Wall-clock implementation backed by :mod:`time`.
IngestionMonitor
    Polls one ingestion run until it reaches a terminal status.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Optional, Protocol

from cirrus_rag.common.errors import (
    IngestionCancelledError,
    IngestionFailedError,
    IngestionTimeoutError,
)
from cirrus_rag.common.schemas import IngestionRun, IngestionStatus

logger = logging.getLogger("cirrus_rag.cloud.ingestion")


class Clock(Protocol):
    """Time source used by :class:`IngestionMonitor`."""

    def monotonic(self) -> float:
        """Return a monotonic timestamp in seconds."""

    def sleep(self, seconds: float) -> None:
        """Block for ``seconds``."""


class SystemClock:
    """Clock backed by :func:`time.monotonic` and :func:`time.sleep`."""

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)


class IngestionMonitor:
    """Poll a managed ingestion run until it succeeds or fails.

    Parameters
    ----------
    client : Any
        Platform client exposing ``get_managed_ingestion(pipeline_id, run_id)``.
    pipeline_id : str
        Pipeline the run belongs to.
    run_id : str
        Run to poll.
    clock : Clock or None, optional
        Time source. Defaults to :class:`SystemClock`.
    poll_interval : float, optional
        Delay in seconds between status checks. Defaults to ``1.0``.
    timeout : float or None, optional
        Give up with :class:`IngestionTimeoutError` once this many seconds
        have elapsed without a terminal status. ``None`` polls without bound.
    cancel_event : threading.Event or None, optional
        When set, polling stops with :class:`IngestionCancelledError` before
        the next status check.
    on_pending : Callable[[], None] or None, optional
        Called after every wait that follows a pending status (e.g. to print
        a progress indicator).

    Attributes
    ----------
    state : IngestionStatus
        Last observed status. Starts as ``PENDING``.
    checks : int
        Number of status checks performed so far.
    """

    def __init__(
            self,
            client: Any,
            pipeline_id: str,
            run_id: str,
            *,
            clock: Optional[Clock] = None,
            poll_interval: float = 1.0,
            timeout: Optional[float] = None,
            cancel_event: Optional[threading.Event] = None,
            on_pending: Optional[Callable[[], None]] = None,
        ):
        if poll_interval < 0:
            raise ValueError("poll_interval must be >= 0")

        self.client = client
        self.pipeline_id = pipeline_id
        self.run_id = run_id
        self.clock = clock or SystemClock()
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.cancel_event = cancel_event
        self.on_pending = on_pending

        self.state = IngestionStatus.PENDING
        self.checks = 0

    def poll(self) -> IngestionStatus:
        """Check the run's status once and record it.

        Returns
        -------
        IngestionStatus
            The normalised status reported by the platform.
        """
        payload = self.client.get_managed_ingestion(self.pipeline_id, self.run_id) or {}
        self.checks += 1
        self.state = IngestionStatus.from_remote(payload.get("status"))
        logger.debug(
            "Ingestion %s for pipeline %s: check %d -> %s",
            self.run_id,
            self.pipeline_id,
            self.checks,
            self.state.value,
        )
        return self.state

    def wait(self) -> IngestionRun:
        """Poll until the run reaches a terminal status.

        Returns
        -------
        IngestionRun
            The run in state ``SUCCESS``.

        Raises
        ------
        IngestionFailedError
            If the platform reports ``ERROR``.
        IngestionTimeoutError
            If ``timeout`` elapses first.
        IngestionCancelledError
            If ``cancel_event`` is set.
        """
        started = self.clock.monotonic()

        while True:
            if self.cancel_event is not None and self.cancel_event.is_set():
                raise IngestionCancelledError(self.pipeline_id, self.run_id)

            status = self.poll()

            if status is IngestionStatus.SUCCESS:
                return IngestionRun(id=self.run_id, status=status)

            if status is IngestionStatus.ERROR:
                raise IngestionFailedError(self.pipeline_id, self.run_id)

            if self.timeout is not None and self.clock.monotonic() - started >= self.timeout:
                raise IngestionTimeoutError(self.pipeline_id, self.run_id, self.timeout)

            self.clock.sleep(self.poll_interval)
            if self.on_pending is not None:
                self.on_pending()


__all__ = ["Clock", "SystemClock", "IngestionMonitor"]
