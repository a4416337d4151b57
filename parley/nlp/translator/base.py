from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Callable, Optional
from parley.contracts import LanguagePair

PartialCallback = Callable[[str], None]

class Translator(ABC):
    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    async def translate(
        self,
        text: str,
        pair: LanguagePair,
        source_code: str,
        on_partial: Optional[PartialCallback] = None,
    ) -> str:
        """Return the final translation. `on_partial` receives growing prefixes of it."""
