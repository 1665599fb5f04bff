# dashboard_sync/lifecycle.py
import logging
import signal
import sys
from typing import Any, Callable, List

logger = logging.getLogger(__name__)


class ShutdownHandler:
    """Runs cleanup callbacks once on SIGINT/SIGTERM, then exits with status 0"""

    def __init__(self):
        self._callbacks: List[Callable[[], None]] = []
        self._original_handlers = {}
        self.shutting_down = False

    def on_shutdown(self, callback: Callable[[], None]) -> None:
        self._callbacks.append(callback)

    def register(self) -> None:
        for signum in (signal.SIGINT, signal.SIGTERM):
            self._original_handlers[signum] = signal.signal(signum, self._handle_signal)

    def unregister(self) -> None:
        for signum, handler in self._original_handlers.items():
            signal.signal(signum, handler)
        self._original_handlers = {}

    def run_callbacks(self) -> None:
        if self.shutting_down:
            return
        self.shutting_down = True
        for callback in self._callbacks:
            try:
                callback()
            except Exception as e:
                logger.error(f"Error during shutdown: {str(e)}")

    def _handle_signal(self, signum: int, frame: Any) -> None:
        logger.info(f"{signal.Signals(signum).name} received, closing connections")
        self.run_callbacks()
        sys.exit(0)
