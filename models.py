"""Core data models for the voice command engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional


class SessionStatus(str, Enum):
    IDLE = "IDLE"
    LISTENING = "LISTENING"
    RESTARTING = "RESTARTING"
    FATAL = "FATAL"


class CommandType(str, Enum):
    CONNECT = "connect"
    DISCONNECT = "disconnect"
    BALANCE = "balance"
    ACCOUNT = "account"
    SEND = "send"
    UNKNOWN = "unknown"


class EngineEventKind(str, Enum):
    START = "start"
    RESULT = "result"
    ERROR = "error"
    END = "end"


@dataclass
class AudioFrame:
    pcm16_bytes: bytes
    sample_rate: int = 16000
    channels: int = 1
    timestamp_ms: int = 0
    rms: float = 0.0

    @property
    def duration_ms(self) -> float:
        samples = len(self.pcm16_bytes) // (2 * max(self.channels, 1))
        return samples * 1000.0 / self.sample_rate


@dataclass
class EngineEvent:
    kind: str
    text: str = ""
    is_final: bool = False
    code: str = ""
    message: str = ""


@dataclass(frozen=True)
class Command:
    type: CommandType
    original_text: str
    amount: Optional[Decimal] = None
    address: Optional[str] = None
    confidence: Optional[float] = None


@dataclass
class SuppressedTranscript:
    text: str
    accepted_at: float


@dataclass
class SessionState:
    """Mutable session fields; written only by SessionController and its suppressor."""

    language_tag: str = "en-US"
    status: SessionStatus = SessionStatus.IDLE
    last_error: Optional[str] = None
    preview_text: str = ""
    suppressed_transcript: Optional[SuppressedTranscript] = field(default=None)
