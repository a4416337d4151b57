from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional

from parley.app.diagnostics import generic_message, user_message
from parley.app.logging_setup import log_event
from parley.asr.base import Transcriber
from parley.contracts import (
    AudioSegment,
    LanguagePair,
    PipelinePhase,
    TranslationMessage,
)
from parley.errors import ServiceError
from parley.nlp.language import LanguagePairDetector
from parley.nlp.translator.base import Translator


class MessageLog:
    """Append-only, ordered record of finished translations."""

    def __init__(self) -> None:
        self._items: List[TranslationMessage] = []

    def append(self, message: TranslationMessage) -> None:
        self._items.append(message)

    def snapshot(self) -> tuple[TranslationMessage, ...]:
        return tuple(self._items)

    @property
    def last(self) -> Optional[TranslationMessage]:
        return self._items[-1] if self._items else None

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[TranslationMessage]:
        return iter(tuple(self._items))


@dataclass
class PipelineState:
    phase: PipelinePhase = PipelinePhase.AWAITING_LANGUAGE_PAIR
    language_pair: Optional[LanguagePair] = None
    transcribed_text: str = ""
    translated_text: str = ""
    error: Optional[str] = None
    is_processing: bool = False
    messages: MessageLog = field(default_factory=MessageLog)


Listener = Callable[[str, PipelineState], None]


class TranslationPipeline:
    """
    Turns finalized audio segments into translation messages.

    The first intelligible segment is only used to discover the language pair
    (AWAITING_LANGUAGE_PAIR -> STEADY, once). Every later segment is
    transcribed with that pair as a hint and translated with streaming
    partials. One segment is processed at a time; segments arriving while
    another is in flight are dropped.

    Listener events: processing, transcript, phase, partial, message, error.
    """

    def __init__(
        self,
        *,
        transcriber: Transcriber,
        detector: LanguagePairDetector,
        translator: Translator,
        min_segment_bytes: int = 0,
        ui_language: str = "en",
        logger: logging.Logger | None = None,
    ) -> None:
        if min_segment_bytes < 0:
            raise ValueError("min_segment_bytes must be >= 0")
        self.transcriber = transcriber
        self.detector = detector
        self.translator = translator
        self.min_segment_bytes = int(min_segment_bytes)
        self.ui_language = ui_language
        self.logger = logger
        self._state = PipelineState()
        self._in_flight = False
        self._listeners: List[Listener] = []

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def phase(self) -> PipelinePhase:
        return self._state.phase

    @property
    def language_pair(self) -> Optional[LanguagePair]:
        return self._state.language_pair

    @property
    def messages(self) -> MessageLog:
        return self._state.messages

    @property
    def busy(self) -> bool:
        return self._in_flight

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _emit(self, event: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, self._state)
            except Exception:
                # A broken listener must not abort the segment.
                if self.logger is not None:
                    self.logger.exception("pipeline_listener_error", extra={"listener_event": event})

    async def process(self, segment: AudioSegment) -> bool:
        """Run one segment end to end. Returns False when the segment was dropped."""
        if self._in_flight:
            log_event(self.logger, logging.INFO, "segment_dropped_busy", bytes=segment.size)
            return False
        if segment.size < self.min_segment_bytes:
            log_event(
                self.logger,
                logging.INFO,
                "segment_dropped_short",
                bytes=segment.size,
                min_bytes=self.min_segment_bytes,
            )
            return False

        # Set before the first await so a second task sees it immediately.
        self._in_flight = True
        phase = self._state.phase
        started = time.perf_counter()
        try:
            self._state.is_processing = True
            self._state.error = None
            self._emit("processing")
            if phase == PipelinePhase.AWAITING_LANGUAGE_PAIR:
                await self._detect_pair(segment)
            else:
                await self._translate(segment)
        except ServiceError as e:
            if e.is_quality_failure(phase):
                log_event(
                    self.logger,
                    logging.INFO,
                    "segment_ignored_quality",
                    phase=phase.value,
                    category=e.category.value,
                )
            else:
                self._fail(e, phase)
        except Exception:
            if self.logger is not None:
                self.logger.exception("pipeline_unexpected_error", extra={"phase": phase.value})
            self._state.error = generic_message(self.ui_language)
            self._emit("error")
        finally:
            self._in_flight = False
            self._state.is_processing = False
            log_event(
                self.logger,
                logging.INFO,
                "segment_done",
                phase=phase.value,
                ms=round((time.perf_counter() - started) * 1000.0, 2),
            )
            self._emit("processing")
        return True

    async def _detect_pair(self, segment: AudioSegment) -> None:
        result = await self.transcriber.transcribe(segment, None)
        self._state.transcribed_text = result.text
        self._emit("transcript")

        pair = await self.detector.detect(result.text)
        self._state.language_pair = pair
        self._state.phase = PipelinePhase.STEADY
        log_event(
            self.logger,
            logging.INFO,
            "language_pair_detected",
            source=pair.source.code,
            target=pair.target.code,
        )
        self._emit("phase")

    async def _translate(self, segment: AudioSegment) -> None:
        pair = self._state.language_pair
        if pair is None:
            raise RuntimeError("steady phase without a language pair")

        result = await self.transcriber.transcribe(segment, pair)
        self._state.transcribed_text = result.text
        self._emit("transcript")

        source = pair.resolve(result.language_code)
        target = pair.other(source.code)
        if not pair.has(result.language_code):
            log_event(
                self.logger,
                logging.INFO,
                "transcript_language_outside_pair",
                detected=result.language_code,
                assumed=source.code,
            )

        def _on_partial(partial: str) -> None:
            # Each partial is a longer prefix of the same translation; replace, never append.
            self._state.translated_text = partial
            self._emit("partial")

        translated = await self.translator.translate(result.text, pair, source.code, _on_partial)
        self._state.translated_text = translated
        message = TranslationMessage(
            original_text=result.text,
            translated_text=translated,
            source_lang=source.code,
            target_lang=target.code,
        )
        self._state.messages.append(message)
        log_event(
            self.logger,
            logging.INFO,
            "translation_committed",
            message_id=message.id,
            source=source.code,
            target=target.code,
            chars=len(result.text),
        )
        self._emit("message")

    def _fail(self, error: ServiceError, phase: PipelinePhase) -> None:
        self._state.error = user_message(error, self.ui_language)
        log_event(
            self.logger,
            logging.WARNING,
            "segment_failed",
            phase=phase.value,
            category=error.category.value,
            detail=error.detail,
        )
        self._emit("error")
