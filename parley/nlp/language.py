from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from parley.contracts import Language, LanguagePair
from parley.errors import FailureCategory, ServiceError
from parley.remote.client import ServiceClient


class LanguagePairDetector(ABC):
    @abstractmethod
    async def detect(self, text: str) -> LanguagePair: ...


def _language_from_payload(value: Any) -> Language:
    if not isinstance(value, dict):
        raise ValueError("language entry must be an object")
    code = str(value.get("code") or "").strip()
    name = str(value.get("name") or "").strip()
    if not code:
        raise ValueError("language entry needs a code")
    return Language(code=code, name=name or code)


def pair_from_payload(payload: dict[str, Any]) -> LanguagePair:
    try:
        return LanguagePair(
            source=_language_from_payload(payload.get("sourceLanguage")),
            target=_language_from_payload(payload.get("targetLanguage")),
        )
    except ValueError as e:
        raise ServiceError(FailureCategory.UNKNOWN, f"Failed to detect languages: {e}") from e


class RemoteLanguagePairDetector(LanguagePairDetector):
    """POST {base}/api/language {"text": ...} -> {"sourceLanguage", "targetLanguage"}."""

    def __init__(self, client: ServiceClient, *, path: str = "/api/language") -> None:
        self.client = client
        self.path = path

    async def detect(self, text: str) -> LanguagePair:
        payload = await self.client.post_json(self.path, json={"text": text})
        return pair_from_payload(payload)
