"""Optional background thread that periodically drains the write-ahead log."""

from __future__ import annotations

import threading

import structlog

from rental_sync.ledger.ledger import ReservationLedger

logger = structlog.get_logger(__name__)


class PeriodicReconciler:
    """
    Run ``ledger.reconcile()`` every ``interval_seconds`` on a daemon thread.

    Example:
        >>> reconciler = PeriodicReconciler(ledger, interval_seconds=60)
        >>> reconciler.start()
        >>> ...
        >>> reconciler.stop()
    """

    def __init__(self, ledger: ReservationLedger, interval_seconds: float):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.ledger = ledger
        self.interval_seconds = interval_seconds
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def run_once(self) -> None:
        try:
            if self.ledger.pending_count():
                self.ledger.reconcile()
        except Exception as e:
            # Keep the thread alive; the next tick retries.
            logger.exception("wal_reconcile_failed", error=str(e))

    def _run(self) -> None:
        logger.info("reconciler_started", interval_seconds=self.interval_seconds)
        while not self._stop.wait(self.interval_seconds):
            self.run_once()
        logger.info("reconciler_stopped")

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="wal-reconciler", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
