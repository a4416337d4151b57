from __future__ import annotations

from parley.contracts import SynthesizedAudio
from parley.errors import FailureCategory, ServiceError
from parley.remote.client import ServiceClient
from parley.tts.base import Synthesizer


class RemoteSynthesizer(Synthesizer):
    def __init__(self, client: ServiceClient, *, path: str = "/api/speech/tts") -> None:
        self.client = client
        self.path = path

    @property
    def name(self) -> str:
        return "remote"

    async def synthesize(self, text: str) -> SynthesizedAudio:
        response = await self.client.post(self.path, json={"text": text})
        mime_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
        if not mime_type.startswith("audio/"):
            raise ServiceError(
                FailureCategory.INVALID_SYNTHESIS_RESPONSE,
                f"Invalid audio format: {mime_type or 'unknown'}",
            )
        if not response.content:
            raise ServiceError(FailureCategory.INVALID_SYNTHESIS_RESPONSE, "Empty audio response")
        return SynthesizedAudio(data=response.content, mime_type=mime_type)
