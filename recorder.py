"""Microphone recorder adapter producing level-annotated frames."""

from __future__ import annotations

import logging
import threading
import time
from queue import Full, Queue
from typing import Any

from models import AudioFrame

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger(__name__)


class AudioCaptureError(RuntimeError):
    """No usable input device, or the device refused to open."""


class MicrophonePermissionError(AudioCaptureError):
    """The OS denied access to the microphone."""


def frame_rms(pcm16: Any) -> float:
    """Root mean square of int16 samples, scaled to [0, 1]."""
    if np is None:
        return 0.0
    samples = np.frombuffer(pcm16, dtype=np.int16) if isinstance(pcm16, (bytes, bytearray)) else np.asarray(pcm16)
    if samples.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(samples.astype(np.float32)))) / 32768.0)


class SoundDeviceRecorder:
    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        chunk_ms: int = 100,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_ms = chunk_ms
        self._stream: Any = None
        self._running = False
        self._lock = threading.Lock()
        self.dropped_chunks = 0
        self._audio_queue: Queue[AudioFrame | None] | None = None

    @staticmethod
    def is_available() -> bool:
        if sd is None or np is None:
            return False
        try:
            devices = sd.query_devices()
        except Exception:
            logger.debug("device query failed", exc_info=True)
            return False
        return any(int(d.get("max_input_channels", 0)) > 0 for d in devices)

    def start(self, audio_queue: Queue[AudioFrame | None]) -> None:
        with self._lock:
            if self._running:
                return
            if sd is None:
                raise AudioCaptureError("sounddevice is not installed")
            self._audio_queue = audio_queue
            blocksize = int(self.sample_rate * (self.chunk_ms / 1000.0))
            try:
                self._stream = sd.InputStream(
                    samplerate=self.sample_rate,
                    channels=self.channels,
                    dtype="int16",
                    blocksize=blocksize,
                    callback=self._on_audio,
                )
                self._stream.start()
            except Exception as exc:
                self._stream = None
                message = str(exc)
                if "permission" in message.lower() or "not authorized" in message.lower():
                    raise MicrophonePermissionError(message) from exc
                raise AudioCaptureError(message) from exc
            self._running = True

    def stop(self) -> None:
        with self._lock:
            if not self._running:
                self._emit_sentinel_if_needed()
                return
            self._running = False
            if self._stream is not None:
                try:
                    self._stream.stop()
                    self._stream.close()
                finally:
                    self._stream = None
            self._emit_sentinel_if_needed()

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if not self._running or self._audio_queue is None:
            return
        if np is None:
            return
        if status:
            logger.debug("input stream status: %s", status)
        samples = np.asarray(indata, dtype=np.int16)
        frame = AudioFrame(
            pcm16_bytes=samples.tobytes(),
            sample_rate=self.sample_rate,
            channels=self.channels,
            timestamp_ms=int(time.time() * 1000),
            rms=frame_rms(samples),
        )
        try:
            self._audio_queue.put_nowait(frame)
        except Full:
            self.dropped_chunks += 1

    def _emit_sentinel_if_needed(self) -> None:
        if self._audio_queue is None:
            return
        try:
            self._audio_queue.put_nowait(None)
        except Full:
            pass
