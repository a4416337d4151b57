from __future__ import annotations
from abc import ABC, abstractmethod
from parley.contracts import SynthesizedAudio

class Synthesizer(ABC):
    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    async def synthesize(self, text: str) -> SynthesizedAudio: ...
