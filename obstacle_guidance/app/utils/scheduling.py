"""Cancellable periodic worker used for background flush cycles."""
from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

LOGGER = logging.getLogger(__name__)


class PeriodicWorker:
    """Run ``task`` every ``interval`` seconds on a daemon thread until stopped.

    The task may return a number of seconds to pause in addition to the
    regular interval before the next cycle (used for retry backoff). Both
    waits go through the stop event, so :meth:`stop` interrupts them.
    """

    def __init__(self, task: Callable[[], Optional[float]], interval: float, name: str = "periodic-worker") -> None:
        if interval <= 0:
            raise ValueError(f"Interval must be positive, got {interval}")
        self._task = task
        self.interval = interval
        self.name = name
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        LOGGER.debug("Worker %s started (interval=%.2fs)", self.name, self.interval)

    def stop(self, timeout: Optional[float] = None) -> bool:
        """Signal the loop to exit and wait for it; return True once the thread is gone."""

        self._stop_event.set()
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout=timeout)
        if thread.is_alive():
            LOGGER.warning("Worker %s did not stop within %.1fs", self.name, timeout or 0.0)
            return False
        self._thread = None
        LOGGER.debug("Worker %s stopped", self.name)
        return True

    def _run(self) -> None:
        delay = self.interval
        while not self._stop_event.wait(delay):
            try:
                pause = self._task() or 0.0
            except Exception:
                LOGGER.exception("Worker %s task failed", self.name)
                pause = 0.0
            delay = self.interval + max(pause, 0.0)
