"""Shared error codes, engine error classification and user-facing messages."""

from __future__ import annotations

ENGINE_UNSUPPORTED = "ENGINE_UNSUPPORTED"
NO_SPEECH_TIMEOUT = "NO_SPEECH_TIMEOUT"
AUDIO_CAPTURE_UNAVAILABLE = "AUDIO_CAPTURE_UNAVAILABLE"
PERMISSION_DENIED = "PERMISSION_DENIED"
NETWORK_FAILURE = "NETWORK_FAILURE"
ABORTED = "ABORTED"
UNCLASSIFIED = "UNCLASSIFIED"
START_FAILED = "START_FAILED"
RESTART_LIMIT_REACHED = "RESTART_LIMIT_REACHED"
AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"

# Codes emitted by recognition engines.
ENGINE_NO_SPEECH = "no-speech"
ENGINE_AUDIO_CAPTURE = "audio-capture"
ENGINE_NOT_ALLOWED = "not-allowed"
ENGINE_NETWORK = "network"
ENGINE_ABORTED = "aborted"
ENGINE_AUTH_FAILED = "auth-failed"

ENGINE_ERROR_KINDS = {
    ENGINE_NO_SPEECH: NO_SPEECH_TIMEOUT,
    ENGINE_AUDIO_CAPTURE: AUDIO_CAPTURE_UNAVAILABLE,
    ENGINE_NOT_ALLOWED: PERMISSION_DENIED,
    ENGINE_NETWORK: NETWORK_FAILURE,
    ENGINE_ABORTED: ABORTED,
    ENGINE_AUTH_FAILED: AUTHENTICATION_FAILED,
}

FATAL_KINDS = frozenset(
    {
        ENGINE_UNSUPPORTED,
        AUDIO_CAPTURE_UNAVAILABLE,
        PERMISSION_DENIED,
        START_FAILED,
        RESTART_LIMIT_REACHED,
        AUTHENTICATION_FAILED,
    }
)

RECOVERABLE_KINDS = frozenset({NO_SPEECH_TIMEOUT, NETWORK_FAILURE, UNCLASSIFIED})

# Recoverable kinds become user-visible only after this many consecutive
# occurrences without a final transcript in between.
SURFACE_AFTER = {
    NETWORK_FAILURE: 3,
    UNCLASSIFIED: 2,
}

ERROR_MESSAGES = {
    ENGINE_UNSUPPORTED: "Speech recognition is not supported in this environment.",
    NO_SPEECH_TIMEOUT: "No speech detected.",
    AUDIO_CAPTURE_UNAVAILABLE: "Microphone not available.",
    PERMISSION_DENIED: "Microphone permission denied, please enable it in system settings.",
    NETWORK_FAILURE: "Speech service unreachable, still retrying.",
    ABORTED: "Recognition aborted.",
    UNCLASSIFIED: "Speech recognition keeps failing, still retrying.",
    START_FAILED: "Failed to start voice recognition.",
    RESTART_LIMIT_REACHED: "Voice recognition stopped after too many restarts.",
    AUTHENTICATION_FAILED: "Speech service API key is missing or was rejected, check DASHSCOPE_API_KEY.",
}


def classify_engine_error(code: str) -> str:
    """Map a raw engine error code to an error kind."""
    return ENGINE_ERROR_KINDS.get((code or "").strip().lower(), UNCLASSIFIED)


def is_fatal(kind: str) -> bool:
    return kind in FATAL_KINDS


def message_for(kind: str) -> str:
    return ERROR_MESSAGES.get(kind, kind)
