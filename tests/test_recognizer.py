"""Tests for DashscopeSpeechEngine."""

from __future__ import annotations

import base64
import threading
import time
from queue import Queue
from typing import List, Optional
from unittest.mock import MagicMock, patch

import pytest

from models import AudioFrame, EngineEvent, EngineEventKind
from recognizer import DashscopeSpeechEngine, _pcm_to_wav_base64
from recorder import AudioCaptureError, MicrophonePermissionError


# ---------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------

def _make_frame(rms: float, n_samples: int = 1600) -> AudioFrame:
    """100 ms frame at 16 kHz with a preset level."""
    return AudioFrame(
        pcm16_bytes=b"\x01\x00" * n_samples,
        sample_rate=16000,
        channels=1,
        timestamp_ms=0,
        rms=rms,
    )


class FakeRecorder:
    """Feeds a fixed list of frames followed by the end-of-stream sentinel."""

    def __init__(self, frames: Optional[List[AudioFrame]] = None, error: Optional[Exception] = None) -> None:
        self.frames = frames or []
        self.error = error
        self.started = 0
        self.stopped = 0

    def start(self, audio_queue: Queue[AudioFrame | None]) -> None:
        self.started += 1
        if self.error is not None:
            raise self.error
        for frame in self.frames:
            audio_queue.put(frame)
        audio_queue.put(None)

    def stop(self) -> None:
        self.stopped += 1


def _speech() -> FakeRecorder:
    return FakeRecorder([_make_frame(0.3), _make_frame(0.3), _make_frame(0.0)])


def _wait_for_end(events: list, *, timeout: float = 3.0) -> None:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if any(e.kind == EngineEventKind.END.value for e in events):
            return
        time.sleep(0.02)
    raise AssertionError("engine did not end")


def _kinds(events: List[EngineEvent]) -> List[str]:
    return [e.kind for e in events]


def _errors(events: List[EngineEvent]) -> List[EngineEvent]:
    return [e for e in events if e.kind == EngineEventKind.ERROR.value]


def _chunk(text: str) -> dict:
    return {"output": {"choices": [{"message": {"content": [{"text": text}]}}]}}


# ---------------------------------------------------------------
# _pcm_to_wav_base64
# ---------------------------------------------------------------

def test_pcm_to_wav_base64_produces_valid_base64() -> None:
    pcm = b"\x00\x00" * 1600
    result = _pcm_to_wav_base64(pcm, sample_rate=16000, channels=1)
    decoded = base64.b64decode(result)
    assert decoded[:4] == b"RIFF"
    assert decoded[8:12] == b"WAVE"


# ---------------------------------------------------------------
# Support check
# ---------------------------------------------------------------

@patch("recognizer.dashscope", None)
def test_unsupported_without_dashscope() -> None:
    assert not DashscopeSpeechEngine(api_key="k", recorder=FakeRecorder()).is_supported()


@patch("recognizer.dashscope", MagicMock())
def test_supported_with_dashscope_and_recorder() -> None:
    assert DashscopeSpeechEngine(api_key="k", recorder=FakeRecorder()).is_supported()


# ---------------------------------------------------------------
# Successful streaming
# ---------------------------------------------------------------

@patch("recognizer.dashscope")
def test_successful_streaming_emits_start_partials_final_end(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = iter(
        [_chunk("check"), _chunk("check bal"), _chunk("check balance")]
    )

    engine = DashscopeSpeechEngine(api_key="test-key", recorder=_speech())
    events: List[EngineEvent] = []
    engine.start("en-US", events.append)
    _wait_for_end(events)
    engine.stop()

    assert _kinds(events) == ["start", "result", "result", "result", "result", "end"]
    partials = [e.text for e in events if e.kind == "result" and not e.is_final]
    finals = [e.text for e in events if e.kind == "result" and e.is_final]
    assert partials == ["check", "check bal", "check balance"]
    assert finals == ["check balance"]


@patch("recognizer.dashscope")
def test_request_carries_language_and_audio(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = iter([_chunk("余额")])

    engine = DashscopeSpeechEngine(api_key="test-key", recorder=_speech())
    events: List[EngineEvent] = []
    engine.start("zh-CN", events.append)
    _wait_for_end(events)
    engine.stop()

    kwargs = mock_ds.MultiModalConversation.call.call_args.kwargs
    assert kwargs["api_key"] == "test-key"
    assert kwargs["model"] == "qwen3-asr-flash"
    assert kwargs["asr_options"]["language"] == "zh"
    audio = kwargs["messages"][1]["content"][0]["audio"]
    assert audio.startswith("data:audio/wav;base64,")


@patch("recognizer.dashscope")
def test_blank_transcript_yields_no_final(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = iter([_chunk(""), {"output": {}}])

    engine = DashscopeSpeechEngine(api_key="test-key", recorder=_speech())
    events: List[EngineEvent] = []
    engine.start("en-US", events.append)
    _wait_for_end(events)

    assert _kinds(events) == ["start", "end"]


# ---------------------------------------------------------------
# Capture outcomes
# ---------------------------------------------------------------

@patch("recognizer.dashscope")
def test_silence_times_out_with_no_speech(mock_ds: MagicMock) -> None:
    recorder = FakeRecorder([_make_frame(0.0) for _ in range(5)])
    engine = DashscopeSpeechEngine(api_key="test-key", recorder=recorder, no_speech_timeout_ms=300)
    events: List[EngineEvent] = []
    engine.start("en-US", events.append)
    _wait_for_end(events)

    assert _kinds(events) == ["start", "error", "end"]
    assert _errors(events)[0].code == "no-speech"
    mock_ds.MultiModalConversation.call.assert_not_called()


@patch("recognizer.dashscope")
def test_stream_closed_before_speech_ends_quietly(mock_ds: MagicMock) -> None:
    engine = DashscopeSpeechEngine(api_key="test-key", recorder=FakeRecorder([]))
    events: List[EngineEvent] = []
    engine.start("en-US", events.append)
    _wait_for_end(events)

    assert _kinds(events) == ["start", "end"]
    mock_ds.MultiModalConversation.call.assert_not_called()


@pytest.mark.parametrize(
    "error,code",
    [
        (MicrophonePermissionError("denied"), "not-allowed"),
        (AudioCaptureError("no input device"), "audio-capture"),
    ],
)
@patch("recognizer.dashscope", MagicMock())
def test_recorder_failures_map_to_engine_codes(error: Exception, code: str) -> None:
    engine = DashscopeSpeechEngine(api_key="test-key", recorder=FakeRecorder(error=error))
    events: List[EngineEvent] = []
    engine.start("en-US", events.append)
    _wait_for_end(events)

    assert _kinds(events) == ["error", "end"]
    assert _errors(events)[0].code == code


# ---------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------

@patch("recognizer.dashscope", MagicMock())
@patch.dict("os.environ", {"DASHSCOPE_API_KEY": ""}, clear=False)
def test_missing_api_key_is_an_auth_failure() -> None:
    engine = DashscopeSpeechEngine(api_key="", recorder=_speech())
    events: List[EngineEvent] = []
    engine.start("en-US", events.append)
    _wait_for_end(events)

    assert [e.code for e in _errors(events)] == ["auth-failed"]


@pytest.mark.parametrize(
    "exc,code",
    [
        (ConnectionError("connection reset"), "network"),
        (TimeoutError("read timed out"), "network"),
        (Exception("401 Unauthorized: invalid api key"), "auth-failed"),
        (Exception("InvalidParameter: audio too short"), "asr-error"),
    ],
)
@patch("recognizer.dashscope")
def test_sdk_errors_are_mapped(mock_ds: MagicMock, exc: Exception, code: str) -> None:
    mock_ds.MultiModalConversation.call.side_effect = exc

    engine = DashscopeSpeechEngine(api_key="test-key", recorder=_speech())
    events: List[EngineEvent] = []
    engine.start("en-US", events.append)
    _wait_for_end(events)

    errors = _errors(events)
    assert len(errors) == 1
    assert errors[0].code == code
    assert _kinds(events)[-1] == "end"


# ---------------------------------------------------------------
# Stop and concurrency
# ---------------------------------------------------------------

@patch("recognizer.dashscope")
def test_stop_during_streaming_silences_the_run(mock_ds: MagicMock) -> None:
    streaming = threading.Event()
    release = threading.Event()

    def slow_response():
        yield _chunk("hello")
        streaming.set()
        release.wait(2.0)
        yield _chunk("hello world")

    mock_ds.MultiModalConversation.call.return_value = slow_response()

    engine = DashscopeSpeechEngine(api_key="test-key", recorder=_speech())
    events: List[EngineEvent] = []
    engine.start("en-US", events.append)
    assert streaming.wait(2.0)

    engine.stop()
    release.set()
    engine._thread.join(2.0)

    assert _kinds(events) == ["start", "result"]
    assert not any(e.is_final for e in events)


@patch("recognizer.dashscope")
def test_start_while_running_raises(mock_ds: MagicMock) -> None:
    streaming = threading.Event()
    release = threading.Event()

    def slow_response():
        streaming.set()
        release.wait(2.0)
        yield _chunk("balance")

    mock_ds.MultiModalConversation.call.return_value = slow_response()

    engine = DashscopeSpeechEngine(api_key="test-key", recorder=_speech())
    engine.start("en-US", lambda event: None)
    assert streaming.wait(2.0)

    with pytest.raises(RuntimeError, match="already started"):
        engine.start("en-US", lambda event: None)

    release.set()
    engine._thread.join(2.0)
    engine.stop()
