"""State-machine based continuous listening session."""

from __future__ import annotations

import logging
import threading
from collections import Counter
from functools import partial
from typing import Callable, Optional

from errors import (
    ABORTED,
    ENGINE_UNSUPPORTED,
    RECOVERABLE_KINDS,
    RESTART_LIMIT_REACHED,
    START_FAILED,
    SURFACE_AFTER,
    classify_engine_error,
    is_fatal,
    message_for,
)
from interfaces import RecognitionEngine, Scheduler, TimerHandle
from models import EngineEvent, EngineEventKind, SessionState, SessionStatus
from patterns import SUPPORTED_LANGUAGES
from scheduler import ThreadingScheduler

logger = logging.getLogger(__name__)

StateCallback = Callable[[SessionStatus, SessionStatus], None]
PartialCallback = Callable[[str], None]
FinalCallback = Callable[[str], None]
ErrorCallback = Callable[[str, str], None]

DEFAULT_RESTART_DELAY_S = 0.3
DEFAULT_START_RETRY_DELAY_S = 0.5

_ACTIVE = (SessionStatus.LISTENING, SessionStatus.RESTARTING)


def check_language(language_tag: str) -> str:
    if language_tag not in SUPPORTED_LANGUAGES:
        raise ValueError(f"unsupported language tag: {language_tag!r}")
    return language_tag


class SessionController:
    """Keeps one recognition engine listening until told to stop.

    The engine may end after every utterance and reports faults as loose
    error codes.  Recoverable faults and plain ends schedule a restart after
    ``restart_delay_s``; fatal faults park the session in ``FATAL``.  At most
    one restart timer is pending at any time.
    """

    def __init__(
        self,
        engine: RecognitionEngine,
        scheduler: Optional[Scheduler] = None,
        state: Optional[SessionState] = None,
        language_tag: Optional[str] = None,
        restart_delay_s: float = DEFAULT_RESTART_DELAY_S,
        start_retry_delay_s: float = DEFAULT_START_RETRY_DELAY_S,
        max_restart_attempts: Optional[int] = None,
        on_state_change: Optional[StateCallback] = None,
        on_partial: Optional[PartialCallback] = None,
        on_final: Optional[FinalCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        on_stop: Optional[Callable[[], None]] = None,
    ) -> None:
        self._engine = engine
        self._scheduler = scheduler or ThreadingScheduler()
        self._state = state or SessionState()
        if language_tag is not None:
            self._state.language_tag = check_language(language_tag)
        self._restart_delay_s = restart_delay_s
        self._start_retry_delay_s = start_retry_delay_s
        self._max_restart_attempts = max_restart_attempts
        self._on_state_change = on_state_change
        self._on_partial = on_partial
        self._on_final = on_final
        self._on_error = on_error
        self._on_stop = on_stop

        self._lock = threading.RLock()
        self._session_id = 0
        self._should_listen = False
        self._restart_timer: Optional[TimerHandle] = None
        self._restart_attempts = 0
        self._fault_counts: Counter = Counter()

    @property
    def state(self) -> SessionStatus:
        return self._state.status

    @property
    def session_state(self) -> SessionState:
        return self._state

    @property
    def last_error(self) -> Optional[str]:
        return self._state.last_error

    @property
    def language_tag(self) -> str:
        return self._state.language_tag

    @property
    def restart_pending(self) -> bool:
        return self._restart_timer is not None

    # ------------------------------------------------------------------
    # Caller operations
    # ------------------------------------------------------------------

    def start(self, language_tag: Optional[str] = None) -> None:
        with self._lock:
            if language_tag is not None:
                check_language(language_tag)
            if self._state.status in _ACTIVE:
                logger.debug("start ignored, session already %s", self._state.status.value)
                return
            if not self._engine.is_supported():
                if self._state.last_error != ENGINE_UNSUPPORTED:
                    self._state.last_error = ENGINE_UNSUPPORTED
                    self._emit_error(ENGINE_UNSUPPORTED)
                return
            if language_tag is not None:
                self._state.language_tag = language_tag

            self._session_id += 1
            self._should_listen = True
            self._restart_attempts = 0
            self._fault_counts.clear()
            self._state.last_error = None
            self._state.preview_text = ""

            if self._launch():
                self._transition(SessionStatus.LISTENING)
                return
            self._transition(SessionStatus.RESTARTING)
            self._restart_timer = self._scheduler.call_later(
                self._start_retry_delay_s, partial(self._retry_start, self._session_id)
            )

    def stop(self) -> None:
        with self._lock:
            if self._state.status == SessionStatus.IDLE and not self._should_listen:
                return
            self._should_listen = False
            self._session_id += 1
            self._cancel_restart()
            self._state.preview_text = ""
            self._transition(SessionStatus.IDLE)
            self._safe_stop_engine()
            if self._on_stop:
                self._on_stop()

    def close(self) -> None:
        self.stop()

    def set_language(self, language_tag: str) -> None:
        check_language(language_tag)
        with self._lock:
            if language_tag == self._state.language_tag:
                return
            self._state.language_tag = language_tag
            logger.info("recognition language set to %s", language_tag)
            if self._should_listen:
                self.stop()
                self.start()

    # ------------------------------------------------------------------
    # Engine callbacks
    # ------------------------------------------------------------------

    def on_engine_start(self) -> None:
        with self._lock:
            if not self._should_listen:
                return
            self._transition(SessionStatus.LISTENING)

    def on_transcript(self, text: str, is_final: bool) -> None:
        with self._lock:
            if self._state.status not in _ACTIVE:
                return
            if not is_final:
                self._state.preview_text = text
                if self._on_partial:
                    self._on_partial(text)
                return
            spoken = (text or "").strip()
            if not spoken:
                return
            self._state.preview_text = spoken
            self._restart_attempts = 0
            self._fault_counts.clear()
            if self._state.last_error in RECOVERABLE_KINDS:
                self._state.last_error = None
            if self._on_final:
                self._on_final(spoken)

    def on_engine_error(self, code: str) -> None:
        with self._lock:
            kind = classify_engine_error(code)
            if not self._should_listen or self._state.status not in _ACTIVE:
                logger.debug("engine error %r ignored while %s", code, self._state.status.value)
                return
            if kind == ABORTED:
                return
            if is_fatal(kind):
                self._fail(kind)
                return

            self._fault_counts[kind] += 1
            threshold = SURFACE_AFTER.get(kind)
            if threshold is not None and self._fault_counts[kind] == threshold:
                self._state.last_error = kind
                self._emit_error(kind)
            self._schedule_restart(kind)

    def on_engine_end(self) -> None:
        with self._lock:
            if not self._should_listen or self._state.status not in _ACTIVE:
                return
            if self._restart_timer is not None:
                return
            self._schedule_restart("end")

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _handle_engine_event(self, session_id: int, event: EngineEvent) -> None:
        with self._lock:
            if session_id != self._session_id:
                return
            kind = event.kind
            if kind == EngineEventKind.START.value:
                self.on_engine_start()
            elif kind == EngineEventKind.RESULT.value:
                self.on_transcript(event.text, event.is_final)
            elif kind == EngineEventKind.ERROR.value:
                self.on_engine_error(event.code)
            elif kind == EngineEventKind.END.value:
                self.on_engine_end()

    def _launch(self) -> bool:
        try:
            self._engine.start(
                self._state.language_tag, partial(self._handle_engine_event, self._session_id)
            )
        except Exception as exc:
            logger.warning("engine start failed: %s", exc)
            return False
        return True

    def _schedule_restart(self, reason: str) -> None:
        if self._restart_timer is not None:
            return
        limit = self._max_restart_attempts
        if limit is not None and self._restart_attempts >= limit:
            self._fail(RESTART_LIMIT_REACHED)
            return
        self._restart_attempts += 1
        logger.debug("restart #%d scheduled (%s)", self._restart_attempts, reason)
        self._transition(SessionStatus.RESTARTING)
        self._restart_timer = self._scheduler.call_later(
            self._restart_delay_s, partial(self._fire_restart, self._session_id)
        )

    def _fire_restart(self, session_id: int) -> None:
        with self._lock:
            if session_id != self._session_id or not self._should_listen:
                return
            self._restart_timer = None
            if self._launch():
                return
            self._restart_timer = self._scheduler.call_later(
                self._start_retry_delay_s, partial(self._retry_start, session_id)
            )

    def _retry_start(self, session_id: int) -> None:
        with self._lock:
            if session_id != self._session_id or not self._should_listen:
                return
            self._restart_timer = None
            if not self._launch():
                self._fail(START_FAILED)

    def _fail(self, kind: str) -> None:
        self._should_listen = False
        self._session_id += 1
        self._cancel_restart()
        self._state.last_error = kind
        self._transition(SessionStatus.FATAL)
        self._safe_stop_engine()
        if self._on_stop:
            self._on_stop()
        self._emit_error(kind)

    def _cancel_restart(self) -> None:
        if self._restart_timer is not None:
            self._restart_timer.cancel()
            self._restart_timer = None

    def _emit_error(self, kind: str) -> None:
        logger.warning("voice session error %s", kind)
        if self._on_error:
            self._on_error(kind, message_for(kind))

    def _safe_stop_engine(self) -> None:
        try:
            self._engine.stop()
        except Exception:
            logger.debug("engine stop failed", exc_info=True)

    def _transition(self, to_state: SessionStatus) -> None:
        from_state = self._state.status
        if from_state == to_state:
            return
        self._state.status = to_state
        logger.debug("session %s -> %s", from_state.value, to_state.value)
        if self._on_state_change:
            self._on_state_change(from_state, to_state)
