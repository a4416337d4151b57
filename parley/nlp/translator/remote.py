from __future__ import annotations

from typing import Optional

from .base import PartialCallback, Translator
from parley.asr.remote import languages_payload
from parley.contracts import LanguagePair
from parley.errors import FailureCategory, ServiceError
from parley.remote.client import ServiceClient


class RemoteTranslator(Translator):
    """
    Streams POST {base}/api/translate. The body arrives as text deltas; the
    accumulated text is reported after each delta and returned at the end.
    """

    def __init__(self, client: ServiceClient, *, path: str = "/api/translate") -> None:
        self.client = client
        self.path = path

    @property
    def name(self) -> str:
        return "remote"

    async def translate(
        self,
        text: str,
        pair: LanguagePair,
        source_code: str,
        on_partial: Optional[PartialCallback] = None,
    ) -> str:
        body = {
            "text": text,
            "languages": languages_payload(pair),
            "sourceLanguage": source_code,
        }
        translated = ""
        async for piece in self.client.stream_text(self.path, json=body):
            translated += piece
            if on_partial is not None:
                on_partial(translated)
        if not translated.strip():
            raise ServiceError(FailureCategory.UNKNOWN, "Failed to translate text")
        return translated
