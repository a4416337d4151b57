from __future__ import annotations

import io
import logging
import wave
from typing import Iterable, Optional, Protocol

from parley.app.logging_setup import log_event
from parley.contracts import AudioChunk, AudioSegment

WAV_MIME = "audio/wav"
WAV_HEADER_BYTES = 44


class _Subscription(Protocol):
    def close(self) -> None:
        ...


class MicSource(Protocol):
    sample_rate: int
    channels: int

    def subscribe(self, callback) -> _Subscription:
        ...


def encode_wav(pcm16: bytes, sample_rate: int, channels: int) -> bytes:
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm16)
    return buf.getvalue()


def wav_duration_from_size(size: int, sample_rate: int, channels: int) -> float:
    bytes_per_second = sample_rate * channels * 2
    if bytes_per_second <= 0:
        return 0.0
    return max(0, size - WAV_HEADER_BYTES) / float(bytes_per_second)


def min_segment_bytes(min_segment_sec: float, sample_rate: int, channels: int) -> int:
    return WAV_HEADER_BYTES + int(min_segment_sec * sample_rate * channels * 2)


class RecordingSession:
    """
    Captures microphone audio between start() and stop() and encodes it as WAV.

    Every start() releases any capture still held from a previous cycle before
    subscribing again, so repeated cycles never hold more than one handle.
    Segments smaller than `min_segment_sec` worth of encoded audio are dropped.
    """

    def __init__(
        self,
        mic: MicSource,
        *,
        min_segment_sec: float = 0.5,
        logger: logging.Logger | None = None,
    ) -> None:
        if min_segment_sec < 0:
            raise ValueError("min_segment_sec must be >= 0")
        self.mic = mic
        self.min_segment_sec = float(min_segment_sec)
        self.logger = logger
        self._subscription: Optional[_Subscription] = None
        self._parts: list[bytes] = []
        self._bytes = 0

    @property
    def is_active(self) -> bool:
        return self._subscription is not None

    @property
    def min_bytes(self) -> int:
        return min_segment_bytes(self.min_segment_sec, self.mic.sample_rate, self.mic.channels)

    @property
    def buffered_seconds(self) -> float:
        bytes_per_second = self.mic.sample_rate * self.mic.channels * 2
        return self._bytes / float(bytes_per_second) if bytes_per_second > 0 else 0.0

    def start(self, preroll: Iterable[AudioChunk] = ()) -> None:
        self._release()
        self._parts = []
        self._bytes = 0
        self._subscription = self.mic.subscribe(self._on_chunk)
        for chunk in preroll:
            self._on_chunk(chunk)
        log_event(self.logger, logging.DEBUG, "recording_started")

    def stop(self) -> Optional[AudioSegment]:
        if self._subscription is None:
            return None
        self._release()
        pcm16 = b"".join(self._parts)
        self._parts = []
        self._bytes = 0

        data = encode_wav(pcm16, self.mic.sample_rate, self.mic.channels)
        duration = wav_duration_from_size(len(data), self.mic.sample_rate, self.mic.channels)
        if len(data) < self.min_bytes:
            log_event(
                self.logger,
                logging.DEBUG,
                "recording_discarded_short",
                bytes=len(data),
                min_bytes=self.min_bytes,
                duration=round(duration, 3),
            )
            return None

        log_event(self.logger, logging.INFO, "recording_finalized", bytes=len(data), duration=round(duration, 3))
        return AudioSegment(data=data, mime_type=WAV_MIME, duration=duration)

    def discard(self) -> None:
        if self._subscription is None:
            return
        self._release()
        self._parts = []
        self._bytes = 0
        log_event(self.logger, logging.INFO, "recording_discarded")

    def _release(self) -> None:
        sub = self._subscription
        self._subscription = None
        if sub is not None:
            sub.close()

    def _on_chunk(self, chunk: AudioChunk) -> None:
        if self._subscription is None:
            return
        self._parts.append(chunk.pcm16)
        self._bytes += len(chunk.pcm16)
