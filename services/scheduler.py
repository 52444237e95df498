from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from settings import get_settings

logger = logging.getLogger(__name__)


class AggregationScheduler:
    """Run a job at a fixed rate on a single background thread.

    The first run happens as soon as the scheduler starts. Runs never overlap:
    when one overruns its slot the next starts immediately after it finishes.
    """

    def __init__(
        self,
        job: Callable[[], object],
        interval_seconds: float,
        name: str = "aggregation-scheduler",
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive.")
        self.job = job
        self.interval_seconds = interval_seconds
        self.name = name
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        logger.info("Scheduler started with interval %.1fs", self.interval_seconds)

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
        self._thread = None
        logger.info("Scheduler stopped after %d runs", self.runs)

    def _run(self) -> None:
        next_run = time.monotonic()
        while not self._stop_event.is_set():
            delay = next_run - time.monotonic()
            if delay > 0 and self._stop_event.wait(delay):
                break

            next_run += self.interval_seconds
            try:
                self.job()
            except Exception:
                logger.exception("Scheduled job failed")
            self.runs += 1

            now = time.monotonic()
            if next_run < now:
                next_run = now


def build_default_scheduler(job: Callable[[], object]) -> AggregationScheduler:
    settings = get_settings()
    return AggregationScheduler(job, settings.aggregation_interval_seconds)
