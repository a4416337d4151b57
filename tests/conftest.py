"""
Pytest fixtures shared by the audio, listening and pipeline tests.
"""

from __future__ import annotations

from array import array
from typing import Callable, List, Optional

import pytest

from parley.contracts import (
    AudioChunk,
    AudioSegment,
    Language,
    LanguagePair,
    TranscriptionResult,
)


def pcm16_constant(amplitude: int, frames: int, channels: int = 1) -> bytes:
    return array("h", [amplitude] * (frames * channels)).tobytes()


class FakeSubscription:
    def __init__(self, mic: "FakeMic", callback: Callable[[AudioChunk], None]) -> None:
        self.mic = mic
        self.callback = callback
        self.closed = False

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.mic.subs.remove(self)


class FakeMic:
    """Stands in for SoundDeviceMicSource: same subscribe/fan-out contract, no device."""

    def __init__(self, sample_rate: int = 16000, channels: int = 1) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.subs: List[FakeSubscription] = []
        self.subscribe_calls = 0
        self.fail_with: Optional[Exception] = None
        self.closed = False

    def subscribe(self, callback):
        if self.fail_with is not None:
            raise self.fail_with
        self.subscribe_calls += 1
        sub = FakeSubscription(self, callback)
        self.subs.append(sub)
        return sub

    def close(self) -> None:
        self.closed = True
        for sub in list(self.subs):
            sub.close()

    def emit(self, chunk: AudioChunk) -> None:
        for sub in list(self.subs):
            if not sub.closed:
                sub.callback(chunk)


class ChunkFactory:
    def __init__(self, sample_rate: int = 16000, chunk_sec: float = 0.125) -> None:
        self.sample_rate = sample_rate
        self.chunk_sec = chunk_sec
        self.t = 0.0

    def _make(self, amplitude: int) -> AudioChunk:
        frames = int(self.sample_rate * self.chunk_sec)
        chunk = AudioChunk(
            pcm16=pcm16_constant(amplitude, frames),
            sample_rate=self.sample_rate,
            channels=1,
            start_time=self.t,
            duration=self.chunk_sec,
        )
        self.t += self.chunk_sec
        return chunk

    def speech(self) -> AudioChunk:
        return self._make(3000)

    def silence(self) -> AudioChunk:
        return self._make(0)


@pytest.fixture
def fake_mic() -> FakeMic:
    return FakeMic()


@pytest.fixture
def chunks() -> ChunkFactory:
    return ChunkFactory()


@pytest.fixture
def english_spanish() -> LanguagePair:
    return LanguagePair(Language("en", "English"), Language("es", "Spanish"))


@pytest.fixture
def segment() -> AudioSegment:
    return AudioSegment(data=b"\x00" * 20000, mime_type="audio/wav", duration=0.6)


class FakeTranscriber:
    """Pops scripted results (or raises scripted errors) in call order."""

    name = "fake"

    def __init__(self, *outcomes) -> None:
        self.outcomes = list(outcomes)
        self.calls: list = []
        self.gate = None  # optional asyncio.Event to hold the call open

    async def transcribe(self, segment, hint=None):
        self.calls.append((segment, hint))
        if self.gate is not None:
            await self.gate.wait()
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, str):
            return TranscriptionResult(text=outcome, language_code=None)
        return outcome


class FakeDetector:
    def __init__(self, *pairs) -> None:
        self.pairs = list(pairs)
        self.calls: list[str] = []

    async def detect(self, text: str):
        self.calls.append(text)
        outcome = self.pairs.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class FakeTranslator:
    name = "fake"

    def __init__(self, partials=(), final: Optional[str] = None, error: Optional[Exception] = None) -> None:
        self.partials = list(partials)
        self.final = final
        self.error = error
        self.calls: list = []

    async def translate(self, text, pair, source_code, on_partial=None):
        self.calls.append((text, pair, source_code))
        for partial in self.partials:
            if on_partial is not None:
                on_partial(partial)
        if self.error is not None:
            raise self.error
        if self.final is not None:
            return self.final
        return self.partials[-1] if self.partials else f"T({text})"


@pytest.fixture
def fakes():
    class _Fakes:
        Transcriber = FakeTranscriber
        Detector = FakeDetector
        Translator = FakeTranslator

    return _Fakes
