"""Continuous recognition engine built on DashScope qwen3-asr-flash.

The engine behaves like a browser continuous-recognition object: each run
captures one utterance from the microphone, segments it with a simple
energy gate, streams it to the model, reports interim and final results and
then ends.  ``SessionController`` restarts it for the next utterance.
If nothing is said within ``no_speech_timeout_ms`` of audio the run ends
with a ``no-speech`` error.

Once ``stop()`` has been called the current run emits no further events.
"""

from __future__ import annotations

import base64
import io
import logging
import os
import threading
import wave
from queue import Empty, Queue
from typing import Callable, Optional

from errors import (
    ENGINE_AUDIO_CAPTURE,
    ENGINE_AUTH_FAILED,
    ENGINE_NETWORK,
    ENGINE_NOT_ALLOWED,
    ENGINE_NO_SPEECH,
)
from interfaces import Recorder
from models import AudioFrame, EngineEvent, EngineEventKind
from patterns import base_language
from recorder import AudioCaptureError, MicrophonePermissionError, SoundDeviceRecorder

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore

logger = logging.getLogger(__name__)

ENGINE_ASR_ERROR = "asr-error"

EventCallback = Callable[[EngineEvent], None]


def _pcm_to_wav_base64(
    pcm: bytes,
    sample_rate: int = 16000,
    channels: int = 1,
    sample_width: int = 2,
) -> str:
    """Convert raw PCM bytes to a base64-encoded WAV data URI payload."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sample_width)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    return base64.b64encode(buf.getvalue()).decode("ascii")


class DashscopeSpeechEngine:
    def __init__(
        self,
        api_key: str = "",
        model: str = "qwen3-asr-flash",
        recorder: Optional[Recorder] = None,
        speech_threshold: float = 0.02,
        end_silence_ms: float = 800.0,
        no_speech_timeout_ms: float = 8000.0,
        max_utterance_ms: float = 15000.0,
        request_timeout_s: float = 10.0,
        queue_maxsize: int = 200,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._recorder = recorder or SoundDeviceRecorder()
        self._speech_threshold = speech_threshold
        self._end_silence_ms = end_silence_ms
        self._no_speech_timeout_ms = no_speech_timeout_ms
        self._max_utterance_ms = max_utterance_ms
        self._request_timeout_s = request_timeout_s
        self._queue_maxsize = queue_maxsize
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    def is_supported(self) -> bool:
        if dashscope is None:
            return False
        if isinstance(self._recorder, SoundDeviceRecorder):
            return self._recorder.is_available()
        return True

    def start(self, language_tag: str, on_event: EventCallback) -> None:
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                # A run that is just finishing its END callback is not busy.
                self._thread.join(timeout=0.1)
                if self._thread.is_alive():
                    raise RuntimeError("recognition already started")
            stop_event = threading.Event()
            self._stop_event = stop_event
            audio_queue: Queue[AudioFrame | None] = Queue(maxsize=self._queue_maxsize)
            self._thread = threading.Thread(
                target=self._run,
                args=(language_tag, audio_queue, on_event, stop_event),
                daemon=True,
            )
            self._thread.start()

    def stop(self) -> None:
        with self._lock:
            self._stop_event.set()
            thread = self._thread
        try:
            self._recorder.stop()
        finally:
            if thread is not None and thread.is_alive() and thread is not threading.current_thread():
                thread.join(timeout=0.5)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _run(
        self,
        language_tag: str,
        audio_queue: Queue[AudioFrame | None],
        on_event: EventCallback,
        stop_event: threading.Event,
    ) -> None:
        def emit(event: EngineEvent) -> None:
            if not stop_event.is_set():
                on_event(event)

        try:
            try:
                self._recorder.start(audio_queue)
            except MicrophonePermissionError as exc:
                emit(self._error(ENGINE_NOT_ALLOWED, str(exc)))
                return
            except AudioCaptureError as exc:
                emit(self._error(ENGINE_AUDIO_CAPTURE, str(exc)))
                return

            emit(EngineEvent(kind=EngineEventKind.START.value))
            pcm, sample_rate, channels = self._capture_utterance(audio_queue, stop_event)
            self._safe_stop_recorder()
            if stop_event.is_set():
                return
            if pcm is None:
                emit(self._error(ENGINE_NO_SPEECH, "no speech detected"))
                return
            if not pcm:
                return
            self._recognize(_pcm_to_wav_base64(pcm, sample_rate, channels), language_tag, emit, stop_event)
        finally:
            self._safe_stop_recorder()
            emit(EngineEvent(kind=EngineEventKind.END.value))

    def _capture_utterance(
        self,
        audio_queue: Queue[AudioFrame | None],
        stop_event: threading.Event,
    ) -> tuple[Optional[bytes], int, int]:
        """Collect one utterance.  Returns ``None`` audio on a no-speech timeout."""
        pcm = bytearray()
        sample_rate = 16000
        channels = 1
        heard_ms = 0.0
        speech_ms = 0.0
        silence_ms = 0.0
        in_speech = False

        while not stop_event.is_set():
            try:
                frame = audio_queue.get(timeout=0.2)
            except Empty:
                continue
            if frame is None:
                break
            sample_rate = frame.sample_rate
            channels = frame.channels
            duration = frame.duration_ms
            heard_ms += duration

            if frame.rms >= self._speech_threshold:
                in_speech = True
                silence_ms = 0.0
            elif in_speech:
                silence_ms += duration

            if in_speech:
                pcm.extend(frame.pcm16_bytes)
                speech_ms += duration
                if silence_ms >= self._end_silence_ms or speech_ms >= self._max_utterance_ms:
                    break
            elif heard_ms >= self._no_speech_timeout_ms:
                return None, sample_rate, channels

        return bytes(pcm), sample_rate, channels

    def _recognize(
        self,
        wav_base64: str,
        language_tag: str,
        emit: EventCallback,
        stop_event: threading.Event,
    ) -> None:
        if dashscope is None:
            emit(self._error(ENGINE_ASR_ERROR, "dashscope is not installed"))
            return
        api_key = self._api_key or os.getenv("DASHSCOPE_API_KEY", "")
        if not api_key:
            emit(self._error(ENGINE_AUTH_FAILED, "No API key configured"))
            return

        try:
            response = dashscope.MultiModalConversation.call(
                api_key=api_key,
                model=self._model,
                messages=[
                    {"role": "system", "content": [{"text": ""}]},
                    {"role": "user", "content": [{"audio": f"data:audio/wav;base64,{wav_base64}"}]},
                ],
                result_format="message",
                asr_options={"enable_itn": True, "language": base_language(language_tag)},
                stream=True,
                timeout=self._request_timeout_s,
            )
            latest_text = ""
            for chunk in response:
                if stop_event.is_set():
                    return
                text = self._extract_text(chunk)
                if text:
                    latest_text = text
                    emit(EngineEvent(kind=EngineEventKind.RESULT.value, text=text, is_final=False))
        except Exception as exc:
            emit(self._to_error_event(exc))
            return

        if latest_text.strip():
            emit(EngineEvent(kind=EngineEventKind.RESULT.value, text=latest_text, is_final=True))

    def _extract_text(self, chunk: object) -> str:
        """Pull text from a dashscope streaming chunk dict."""
        if isinstance(chunk, dict):
            output = chunk.get("output", {})
            choices = output.get("choices", [])
            if not choices:
                return ""
            content = choices[0].get("message", {}).get("content", [])
            if not content:
                return ""
            value = content[0]
            if isinstance(value, dict):
                return str(value.get("text", ""))
        return ""

    def _to_error_event(self, exc: Exception) -> EngineEvent:
        """Map an SDK/network exception to an engine error code."""
        message = str(exc)
        low = message.lower()
        if "401" in low or "403" in low or "auth" in low or "api key" in low:
            code = ENGINE_AUTH_FAILED
        elif isinstance(exc, (ConnectionError, TimeoutError)) or any(
            word in low for word in ("timeout", "timed out", "network", "connection")
        ):
            code = ENGINE_NETWORK
        else:
            code = ENGINE_ASR_ERROR
        return self._error(code, message)

    @staticmethod
    def _error(code: str, message: str) -> EngineEvent:
        logger.debug("engine error %s: %s", code, message)
        return EngineEvent(kind=EngineEventKind.ERROR.value, code=code, message=message)

    def _safe_stop_recorder(self) -> None:
        try:
            self._recorder.stop()
        except Exception:
            logger.debug("recorder stop failed", exc_info=True)
