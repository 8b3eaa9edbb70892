"""Hand-rolled fakes shared by the session, suppressor and emitter tests."""

from __future__ import annotations

from typing import Callable, List, Optional

from models import EngineEvent, EngineEventKind


class FakeTimer:
    def __init__(self, due: float, callback: Callable[[], None]) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Manual clock: timers only fire inside ``advance``."""

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: List[FakeTimer] = []

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(self.now + delay_s, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> List[FakeTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = sorted((t for t in self.pending if t.due <= target + 1e-9), key=lambda t: t.due)
            if not due:
                break
            timer = due[0]
            self.now = max(self.now, timer.due)
            timer.fired = True
            timer.callback()
        self.now = target

    def clock(self) -> float:
        return self.now


class FakeEngine:
    def __init__(self, supported: bool = True, fail_starts: int = 0) -> None:
        self.supported = supported
        self.fail_starts = fail_starts
        self.start_calls: List[str] = []
        self.stop_calls = 0
        self.on_event: Optional[Callable[[EngineEvent], None]] = None

    def is_supported(self) -> bool:
        return self.supported

    def start(self, language_tag: str, on_event: Callable[[EngineEvent], None]) -> None:
        self.start_calls.append(language_tag)
        if self.fail_starts > 0:
            self.fail_starts -= 1
            raise RuntimeError("recognition already started")
        self.on_event = on_event

    def stop(self) -> None:
        self.stop_calls += 1

    def emit(self, event: EngineEvent) -> None:
        assert self.on_event is not None
        self.on_event(event)

    def emit_start(self) -> None:
        self.emit(EngineEvent(kind=EngineEventKind.START.value))

    def emit_result(self, text: str, is_final: bool = True) -> None:
        self.emit(EngineEvent(kind=EngineEventKind.RESULT.value, text=text, is_final=is_final))

    def emit_error(self, code: str) -> None:
        self.emit(EngineEvent(kind=EngineEventKind.ERROR.value, code=code))

    def emit_end(self) -> None:
        self.emit(EngineEvent(kind=EngineEventKind.END.value))


class RecordingFeedback:
    def __init__(self) -> None:
        self.commands: list = []
        self.startups = 0

    def startup(self) -> None:
        self.startups += 1

    def command_recognized(self, command) -> None:  # noqa: ANN001
        self.commands.append(command)

    def action_succeeded(self) -> None:
        pass

    def action_failed(self) -> None:
        pass
