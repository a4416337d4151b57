from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class AudioChunk:
    """
    Raw PCM16 audio chunk captured from a live source (e.g., microphone).
    pcm16: little-endian signed 16-bit PCM bytes (interleaved if channels > 1).
    """
    pcm16: bytes
    sample_rate: int
    channels: int
    start_time: float  # seconds since stream start
    duration: float    # seconds


@dataclass(frozen=True)
class AudioSegment:
    """One finalized utterance, encoded and ready to hand to a transcriber."""
    data: bytes
    mime_type: str
    duration: float  # estimated from the encoded size

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class Language:
    code: str
    name: str


@dataclass(frozen=True)
class LanguagePair:
    source: Language
    target: Language

    def __post_init__(self) -> None:
        if self.source.code == self.target.code:
            raise ValueError(f"language pair needs two distinct languages, got {self.source.code!r} twice")

    @property
    def codes(self) -> tuple[str, str]:
        return (self.source.code, self.target.code)

    def has(self, code: Optional[str]) -> bool:
        return code in self.codes

    def other(self, code: Optional[str]) -> Language:
        # Unknown codes are treated as the source side.
        if code == self.target.code:
            return self.source
        return self.target

    def resolve(self, code: Optional[str]) -> Language:
        if code == self.target.code:
            return self.target
        return self.source


class PipelinePhase(str, Enum):
    AWAITING_LANGUAGE_PAIR = "awaiting_language_pair"
    STEADY = "steady"


@dataclass(frozen=True)
class TranscriptionResult:
    text: str
    language_code: Optional[str] = None


@dataclass(frozen=True)
class TranslationMessage:
    original_text: str
    translated_text: str
    source_lang: str
    target_lang: str
    timestamp: float = field(default_factory=time.time)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)


@dataclass(frozen=True)
class SynthesizedAudio:
    data: bytes
    mime_type: str
