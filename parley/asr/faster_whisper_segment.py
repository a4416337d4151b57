from __future__ import annotations

import asyncio
import os
import tempfile
from typing import Any, List, Optional, Tuple

from parley.asr.base import Transcriber
from parley.contracts import AudioSegment, LanguagePair, TranscriptionResult
from parley.errors import FailureCategory, ServiceError


def _pick_pair_language(info: Any, pair: LanguagePair) -> str:
    probs = dict(getattr(info, "all_language_probs", None) or [])
    return max(pair.codes, key=lambda code: float(probs.get(code, 0.0)))


class FasterWhisperSegmentTranscriber(Transcriber):
    """
    Local speech-to-text for one encoded segment.

    With a language pair hint, a detection outside the pair is re-run with the
    more probable pair language forced.
    """

    def __init__(
        self,
        *,
        model_size: str = "base",
        device: str = "cpu",
        compute_type: str = "int8",
        beam_size: int = 1,
        no_speech_threshold: float = 0.6,
        min_chars: int = 2,
    ) -> None:
        self.model_size = model_size
        self.device = device
        self.compute_type = compute_type
        self.beam_size = beam_size
        self.no_speech_threshold = float(no_speech_threshold)
        self.min_chars = int(min_chars)
        self._model = None

    @property
    def name(self) -> str:
        return "faster-whisper"

    def _get_model(self):
        if self._model is None:
            from faster_whisper import WhisperModel

            self._model = WhisperModel(
                self.model_size,
                device=self.device,
                compute_type=self.compute_type,
            )
        return self._model

    def _run(self, path: str, language: Optional[str]) -> Tuple[str, Any, float]:
        model = self._get_model()
        segments, info = model.transcribe(
            path,
            language=language,
            beam_size=self.beam_size,
            vad_filter=False,
            condition_on_previous_text=False,
        )
        texts: List[str] = []
        no_speech: List[float] = []
        for s in segments:
            no_speech.append(float(getattr(s, "no_speech_prob", 0.0)))
            text = (s.text or "").strip()
            if text:
                texts.append(text)
        mean_no_speech = sum(no_speech) / len(no_speech) if no_speech else 1.0
        return " ".join(texts).strip(), info, mean_no_speech

    def transcribe_sync(
        self,
        segment: AudioSegment,
        hint: Optional[LanguagePair] = None,
    ) -> TranscriptionResult:
        if not segment.data:
            raise ServiceError(FailureCategory.INVALID_AUDIO, "Empty audio segment")

        # Model load failures are not audio problems; let them propagate as-is.
        self._get_model()
        suffix = "." + (segment.mime_type.split("/")[-1].split(";")[0] or "wav")
        fd, tmp_path = tempfile.mkstemp(suffix=suffix, prefix="parley_segment_")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(segment.data)

            text, info, mean_no_speech = self._run(tmp_path, None)
            language = getattr(info, "language", None)
            if hint is not None and not hint.has(language):
                language = _pick_pair_language(info, hint)
                text, info, mean_no_speech = self._run(tmp_path, language)
        except Exception as e:
            raise ServiceError(FailureCategory.INVALID_AUDIO, f"Could not decode audio: {e}") from e
        finally:
            try:
                os.remove(tmp_path)
            except OSError:
                pass

        if not text:
            raise ServiceError(FailureCategory.NO_SPEECH_DETECTED, "No speech detected")
        if mean_no_speech > self.no_speech_threshold:
            raise ServiceError(FailureCategory.LOW_QUALITY_SPEECH, "Low quality speech detected")
        if len(text) < self.min_chars:
            category = (
                FailureCategory.SPEECH_TOO_SHORT if hint is None else FailureCategory.TRANSCRIPTION_TOO_SHORT
            )
            raise ServiceError(category, "Transcription too short")
        return TranscriptionResult(text=text, language_code=language)

    async def transcribe(
        self,
        segment: AudioSegment,
        hint: Optional[LanguagePair] = None,
    ) -> TranscriptionResult:
        return await asyncio.to_thread(self.transcribe_sync, segment, hint)
