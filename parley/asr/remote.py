from __future__ import annotations

import json
from typing import Optional

from parley.asr.base import Transcriber
from parley.contracts import AudioSegment, LanguagePair, TranscriptionResult
from parley.errors import FailureCategory, ServiceError
from parley.remote.client import ServiceClient


def languages_payload(pair: LanguagePair) -> list[dict[str, str]]:
    return [
        {"code": pair.source.code, "name": pair.source.name},
        {"code": pair.target.code, "name": pair.target.name},
    ]


class RemoteTranscriber(Transcriber):
    """POST {base}/api/speech with the encoded segment as multipart `audio`."""

    def __init__(self, client: ServiceClient, *, path: str = "/api/speech") -> None:
        self.client = client
        self.path = path

    @property
    def name(self) -> str:
        return "remote"

    async def transcribe(
        self,
        segment: AudioSegment,
        hint: Optional[LanguagePair] = None,
    ) -> TranscriptionResult:
        if not segment.data:
            raise ServiceError(FailureCategory.INVALID_AUDIO, "Empty audio segment")
        ext = segment.mime_type.split("/")[-1].split(";")[0] or "bin"
        files = {"audio": (f"audio.{ext}", segment.data, segment.mime_type)}
        data = {}
        if hint is not None:
            data["languages"] = json.dumps(languages_payload(hint), ensure_ascii=False)

        payload = await self.client.post_json(self.path, files=files, data=data)
        text = str(payload.get("text") or "").strip()
        if not text:
            raise ServiceError(FailureCategory.NO_SPEECH_DETECTED, "No speech detected")
        language = payload.get("language")
        return TranscriptionResult(text=text, language_code=str(language) if language else None)
