"""Timer scheduling backed by ``threading.Timer``."""

from __future__ import annotations

import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class ThreadingScheduler:
    """Runs callbacks on daemon timer threads; every call returns a cancellable handle."""

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(max(delay_s, 0.0), self._run, args=(callback,))
        timer.daemon = True
        timer.start()
        return timer

    @staticmethod
    def _run(callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception:
            logger.exception("scheduled callback %r failed", callback)
