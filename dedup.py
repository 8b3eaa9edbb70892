"""Duplicate final-transcript suppression."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from command_parser import normalize
from interfaces import Scheduler, TimerHandle
from models import SessionState, SuppressedTranscript

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_S = 2.0


class DuplicateSuppressor:
    """Rejects a final transcript identical to the last accepted one.

    The record lives in ``SessionState.suppressed_transcript`` and is cleared
    by a scheduled timer ``window_s`` after acceptance.  This is an exact
    comparison of normalized text, not a similarity check.
    """

    def __init__(
        self,
        state: SessionState,
        scheduler: Scheduler,
        window_s: float = DEFAULT_WINDOW_S,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._state = state
        self._scheduler = scheduler
        self._window_s = window_s
        self._clock = clock
        self._lock = threading.Lock()
        self._expiry: Optional[TimerHandle] = None

    @property
    def window_s(self) -> float:
        return self._window_s

    def accept(self, transcript: str) -> bool:
        normalized = normalize(transcript)
        with self._lock:
            last = self._state.suppressed_transcript
            if last is not None and last.text == normalized:
                logger.debug("suppressed duplicate transcript %r", transcript)
                return False
            self._cancel_expiry()
            self._state.suppressed_transcript = SuppressedTranscript(
                text=normalized, accepted_at=self._clock()
            )
            record = self._state.suppressed_transcript
            self._expiry = self._scheduler.call_later(
                self._window_s, lambda: self._expire(record)
            )
            return True

    def clear(self) -> None:
        with self._lock:
            self._cancel_expiry()
            self._state.suppressed_transcript = None

    def _expire(self, record: SuppressedTranscript) -> None:
        with self._lock:
            # A newer acceptance owns the slot now.
            if self._state.suppressed_transcript is not record:
                return
            self._state.suppressed_transcript = None
            self._expiry = None

    def _cancel_expiry(self) -> None:
        if self._expiry is not None:
            self._expiry.cancel()
            self._expiry = None
