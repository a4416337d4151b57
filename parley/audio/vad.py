from __future__ import annotations

import math
from array import array
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from parley.contracts import AudioChunk

_PCM16_FULL_SCALE = 32768.0


def pcm16_rms(pcm16: bytes) -> float:
    """Return RMS energy for little-endian int16 PCM bytes."""
    if not pcm16:
        return 0.0

    samples = array("h")
    samples.frombytes(pcm16[: len(pcm16) - (len(pcm16) % 2)])
    if not samples:
        return 0.0

    sum_sq = 0.0
    for value in samples:
        fv = float(value)
        sum_sq += fv * fv
    return math.sqrt(sum_sq / len(samples))


def pcm16_level(pcm16: bytes) -> float:
    """RMS normalized to 0..1."""
    return min(1.0, pcm16_rms(pcm16) / _PCM16_FULL_SCALE)


@dataclass(frozen=True)
class VadSettings:
    silence_threshold: float = 0.015
    silence_timeout: float = 1.2
    smoothing_time_constant: float = 0.8

    def __post_init__(self) -> None:
        if not 0.0 < self.silence_threshold <= 1.0:
            raise ValueError("silence_threshold must be within (0, 1]")
        if self.silence_timeout <= 0:
            raise ValueError("silence_timeout must be > 0")
        if not 0.0 <= self.smoothing_time_constant < 1.0:
            raise ValueError("smoothing_time_constant must be within [0, 1)")


ENVIRONMENT_PRESETS: dict[str, VadSettings] = {
    "quiet": VadSettings(silence_threshold=0.015, silence_timeout=1.2, smoothing_time_constant=0.8),
    "moderate": VadSettings(silence_threshold=0.03, silence_timeout=1.0, smoothing_time_constant=0.85),
    "noisy": VadSettings(silence_threshold=0.06, silence_timeout=0.8, smoothing_time_constant=0.9),
}


def preset_name_for(settings: VadSettings) -> Optional[str]:
    for name, preset in ENVIRONMENT_PRESETS.items():
        if preset == settings:
            return name
    return None


class VadEvent(str, Enum):
    SPEECH_STARTED = "speech_started"
    SPEECH_ENDED = "speech_ended"


class SilenceTimer:
    """Cancellable deadline on the audio timeline."""

    def __init__(self, timeout: float) -> None:
        self.timeout = float(timeout)
        self._armed_at: Optional[float] = None

    @property
    def armed(self) -> bool:
        return self._armed_at is not None

    def arm(self, now: float) -> None:
        if self._armed_at is None:
            self._armed_at = float(now)

    def cancel(self) -> None:
        self._armed_at = None

    def expired(self, now: float) -> bool:
        if self._armed_at is None:
            return False
        return (float(now) - self._armed_at) >= self.timeout


class VoiceActivityDetector:
    """
    Edge-triggered speech detector over a stream of PCM16 chunks.

    The smoothed level crossing `silence_threshold` upwards emits SPEECH_STARTED.
    SPEECH_ENDED is emitted only once the level has stayed below the threshold
    for `silence_timeout` seconds of audio; any louder chunk in between cancels
    the pending silence timer.
    """

    def __init__(self, settings: VadSettings | None = None) -> None:
        self.settings = settings or VadSettings()
        self._timer = SilenceTimer(self.settings.silence_timeout)
        self._smoothed = 0.0
        self._speaking = False

    @property
    def speaking(self) -> bool:
        return self._speaking

    @property
    def level(self) -> float:
        return self._smoothed

    def reset(self) -> None:
        self._timer.cancel()
        self._smoothed = 0.0
        self._speaking = False

    def update(self, level: float, start_time: float, end_time: float) -> Optional[VadEvent]:
        tau = self.settings.smoothing_time_constant
        self._smoothed = tau * self._smoothed + (1.0 - tau) * float(level)

        if self._smoothed >= self.settings.silence_threshold:
            self._timer.cancel()
            if not self._speaking:
                self._speaking = True
                return VadEvent.SPEECH_STARTED
            return None

        if not self._speaking:
            return None

        self._timer.arm(start_time)
        if self._timer.expired(end_time):
            self._timer.cancel()
            self._speaking = False
            return VadEvent.SPEECH_ENDED
        return None

    def push(self, chunk: AudioChunk) -> Optional[VadEvent]:
        return self.update(
            pcm16_level(chunk.pcm16),
            start_time=chunk.start_time,
            end_time=chunk.start_time + chunk.duration,
        )
