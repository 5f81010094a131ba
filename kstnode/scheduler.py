"""
Periodic background tasks

Each task owns its thread and can be cancelled, so node shutdown and tests
control exactly when work runs.
"""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTask:
    """
    Run a function every `interval` seconds on a daemon thread.

    Exceptions raised by the function are logged and counted; the loop
    keeps going.
    """

    def __init__(self, name: str, interval: float, func: Callable[[], object],
                 run_immediately: bool = False):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = interval
        self.func = func
        self.run_immediately = run_immediately
        self.runs = 0
        self.errors = 0
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> bool:
        """
        Run one step in the calling thread.

        Returns:
            True if the function completed without raising
        """
        self.runs += 1
        try:
            self.func()
            return True
        except Exception as e:
            self.errors += 1
            logger.error(f"Task '{self.name}' failed: {e}")
            return False

    def start(self):
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name=self.name)
        self._thread.daemon = True
        self._thread.start()

    def cancel(self, timeout: Optional[float] = 5.0):
        """Stop the loop and wait for the current step to finish."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _loop(self):
        if self.run_immediately:
            self.run_once()
        while not self._stop_event.wait(self.interval):
            self.run_once()
