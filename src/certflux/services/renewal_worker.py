"""Periodic renewal worker.

Daemon thread that runs a renewal cycle every
``renewal.interval_seconds``.  The stop event it waits on is the same
one handed to the challenge processor, so :meth:`RenewalWorker.stop`
also cancels any validation poll in flight.

Usage::

    worker = RenewalWorker(scheduler, interval_seconds=86400, stop_event=stop)
    worker.start()
    ...
    worker.stop()
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from certflux.metrics.collector import MetricsCollector
    from certflux.services.renewal import RenewalScheduler

log = logging.getLogger(__name__)

_DEFAULT_RETRY_SECONDS = 300


class RenewalWorker:
    """Runs :meth:`RenewalScheduler.run_cycle` on a fixed interval."""

    def __init__(
        self,
        scheduler: RenewalScheduler,
        interval_seconds: int = 86400,
        *,
        retry_seconds: int = _DEFAULT_RETRY_SECONDS,
        stop_event: threading.Event | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._interval = interval_seconds
        self._retry_seconds = min(retry_seconds, interval_seconds)
        self._stop_event = stop_event or threading.Event()
        self._thread: threading.Thread | None = None
        self._metrics = metrics
        self._consecutive_failures = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the background worker thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            name="renewal-worker",
            daemon=True,
        )
        self._thread.start()
        log.info("Renewal worker started (interval=%ds)", self._interval)

    def stop(self, timeout: float | None = 30.0) -> None:
        """Signal the worker to stop and wait for it."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            log.info("Renewal worker stopped")

    def _run(self) -> None:
        """Main worker loop."""
        while not self._stop_event.is_set():
            try:
                report = self._scheduler.run_cycle()
                self._consecutive_failures = 0
            except Exception:
                self._consecutive_failures += 1
                log.exception(
                    "Renewal cycle failed (consecutive: %d)",
                    self._consecutive_failures,
                )
                if self._metrics:
                    self._metrics.increment("certflux_worker_errors_total")
                # Exponential backoff, capped at the regular interval
                backoff = min(
                    self._retry_seconds * (2**self._consecutive_failures),
                    self._interval,
                )
                self._stop_event.wait(timeout=backoff)
                continue

            if report.failed:
                log.warning(
                    "%d domain(s) failed this cycle; they are retried next cycle",
                    len(report.failed),
                )
            self._stop_event.wait(timeout=self._interval)
