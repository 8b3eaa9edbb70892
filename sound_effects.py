"""Synthesized feedback tones played through sounddevice."""

from __future__ import annotations

import logging
from typing import Any, Sequence, Tuple

from models import Command

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger(__name__)

# (start offset s, frequency Hz, duration s, waveform)
Tone = Tuple[float, float, float, str]

STARTUP: Sequence[Tone] = (
    (0.0, 440, 0.2, "sine"),
    (0.2, 554, 0.2, "sine"),
    (0.4, 659, 0.3, "sine"),
    (0.7, 880, 0.4, "sine"),
)
COMMAND: Sequence[Tone] = ((0.0, 800, 0.1, "square"),)
SUCCESS: Sequence[Tone] = (
    (0.0, 523, 0.15, "sine"),
    (0.15, 659, 0.15, "sine"),
    (0.3, 784, 0.2, "sine"),
)
ERROR: Sequence[Tone] = (
    (0.0, 300, 0.2, "sawtooth"),
    (0.2, 250, 0.2, "sawtooth"),
)


def render(tones: Sequence[Tone], sample_rate: int = 22050, gain: float = 0.1) -> Any:
    """Mix a tone sequence into one float32 buffer with exponential fade-out."""
    if np is None:
        raise RuntimeError("numpy is not installed")
    total = max(offset + duration for offset, _, duration, _ in tones)
    out = np.zeros(int(total * sample_rate) + 1, dtype=np.float32)
    for offset, freq, duration, waveform in tones:
        n = int(duration * sample_rate)
        t = np.arange(n, dtype=np.float32) / sample_rate
        phase = freq * t
        if waveform == "square":
            wave = np.sign(np.sin(2 * np.pi * phase))
        elif waveform == "sawtooth":
            wave = 2.0 * (phase - np.floor(phase + 0.5))
        else:
            wave = np.sin(2 * np.pi * phase)
        # Fade from gain to a tenth of it, like an exponential gain ramp.
        envelope = gain * np.power(0.1, t / duration)
        start = int(offset * sample_rate)
        segment = (wave * envelope).astype(np.float32)[: len(out) - start]
        out[start : start + len(segment)] += segment
    return out


class ToneFeedback:
    def __init__(self, sample_rate: int = 22050, enabled: bool = True) -> None:
        self.sample_rate = sample_rate
        self.enabled = enabled

    def startup(self) -> None:
        self._play(STARTUP)

    def command_recognized(self, command: Command) -> None:
        self._play(COMMAND)

    def action_succeeded(self) -> None:
        self._play(SUCCESS)

    def action_failed(self) -> None:
        self._play(ERROR)

    def _play(self, tones: Sequence[Tone]) -> None:
        if not self.enabled:
            return
        if sd is None or np is None:
            logger.debug("audio feedback unavailable")
            return
        try:
            sd.play(render(tones, self.sample_rate), self.sample_rate)
        except Exception:
            logger.debug("audio feedback playback failed", exc_info=True)
