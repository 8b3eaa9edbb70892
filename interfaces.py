"""Protocol interfaces used by SessionController and CommandEmitter."""

from __future__ import annotations

from queue import Queue
from typing import Callable, Optional, Protocol

from models import AudioFrame, Command, EngineEvent


class RecognitionEngine(Protocol):
    def is_supported(self) -> bool: ...

    def start(self, language_tag: str, on_event: Callable[[EngineEvent], None]) -> None: ...

    def stop(self) -> None: ...


class Recorder(Protocol):
    def start(self, audio_queue: Queue[AudioFrame | None]) -> None: ...

    def stop(self) -> None: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle: ...


class FeedbackService(Protocol):
    def startup(self) -> None: ...

    def command_recognized(self, command: Command) -> None: ...

    def action_succeeded(self) -> None: ...

    def action_failed(self) -> None: ...


class ConfigStore(Protocol):
    def get_api_key(self) -> str: ...

    def set_api_key(self, key: str) -> None: ...

    def get_language(self) -> str: ...

    def set_language(self, language_tag: str) -> None: ...

    def get_hotkey(self) -> str: ...

    def set_hotkey(self, hotkey: str) -> None: ...

    def get_max_restart_attempts(self) -> Optional[int]: ...

    def set_max_restart_attempts(self, attempts: Optional[int]) -> None: ...
