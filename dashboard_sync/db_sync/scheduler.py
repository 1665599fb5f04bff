# dashboard_sync/db_sync/scheduler.py
import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)

OVERLAP_POLICIES = ('allow', 'skip')


class SyncScheduler:
    """
    Fires a job on a fixed-rate timer

    Firings are spaced from the scheduler's start time, not from the end of the
    previous run. With the 'allow' policy a slow tick can overlap the next one;
    with 'skip' a firing is dropped while the previous tick is still running.
    """

    def __init__(self, job: Callable[[], object], interval: float,
                 overlap_policy: str = 'allow',
                 stop_event: Optional[threading.Event] = None):
        if interval <= 0:
            raise ValueError("Sync interval must be positive")
        if overlap_policy not in OVERLAP_POLICIES:
            raise ValueError(f"Unknown overlap policy: {overlap_policy}")

        self.job = job
        self.interval = interval
        self.overlap_policy = overlap_policy
        self.stop_event = stop_event or threading.Event()
        self.ticks_started = 0
        self.ticks_skipped = 0
        self._timer_thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._in_flight = 0

    @property
    def is_running(self) -> bool:
        return self._timer_thread is not None and self._timer_thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self.stop_event.clear()
        self._timer_thread = threading.Thread(
            target=self._timer_loop, name='sync-scheduler', daemon=True
        )
        self._timer_thread.start()
        logger.info(f"Sync scheduler started, interval {self.interval} seconds")

    def stop(self, timeout: float = 1.0) -> None:
        """Stop firing; an in-flight tick is left to finish on its own"""
        self.stop_event.set()
        if self._timer_thread is not None:
            self._timer_thread.join(timeout)
            self._timer_thread = None
        logger.info("Sync scheduler stopped")

    def _timer_loop(self) -> None:
        next_run = time.monotonic() + self.interval
        while not self.stop_event.wait(max(0.0, next_run - time.monotonic())):
            self._dispatch()
            next_run += self.interval
            now = time.monotonic()
            if next_run <= now:
                missed = int((now - next_run) // self.interval) + 1
                logger.warning(f"Scheduler fell behind, dropping {missed} firing(s)")
                next_run += missed * self.interval

    def _dispatch(self) -> None:
        with self._lock:
            if self._in_flight:
                if self.overlap_policy == 'skip':
                    self.ticks_skipped += 1
                    logger.warning("Previous sync tick still running, skipping this one")
                    return
                logger.warning("Previous sync tick still running, starting an overlapping tick")
            self._in_flight += 1
            self.ticks_started += 1

        worker = threading.Thread(target=self._run_tick, name='sync-tick', daemon=True)
        worker.start()

    def _run_tick(self) -> None:
        try:
            self.job()
        except Exception as e:
            logger.error(f"Unexpected error in sync tick: {str(e)}")
        finally:
            with self._lock:
                self._in_flight -= 1
