from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Optional
from parley.contracts import AudioSegment, LanguagePair, TranscriptionResult

class Transcriber(ABC):
    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    async def transcribe(
        self,
        segment: AudioSegment,
        hint: Optional[LanguagePair] = None,
    ) -> TranscriptionResult: ...
