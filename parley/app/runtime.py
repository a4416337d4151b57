from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

from parley.app.diagnostics import user_message
from parley.app.logging_setup import log_event
from parley.app.services import ParleyServices
from parley.contracts import AudioSegment, PipelinePhase
from parley.errors import MicError
from parley.live.listening import ListeningController, ListeningState
from parley.live.pipeline import PipelineState, TranslationPipeline
from parley.tts.player import AutoSpeaker


def format_event(event: str, state: PipelineState) -> Optional[str]:
    """Console line for a pipeline event, or None when nothing should be printed."""
    if event == "transcript":
        return f"[heard] {state.transcribed_text}"
    if event == "phase" and state.phase == PipelinePhase.STEADY and state.language_pair is not None:
        pair = state.language_pair
        return f"[pair] {pair.source.name} <-> {pair.target.name}"
    if event == "partial":
        return f"[...] {state.translated_text}"
    if event == "message":
        msg = state.messages.last
        if msg is None:
            return None
        return f"[{msg.source_lang}->{msg.target_lang}] {msg.translated_text}"
    if event == "error" and state.error:
        return f"[error] {state.error}"
    return None


class ParleyRuntime:
    """Wires mic, VAD, recorder, pipeline and speech playback onto one event loop."""

    def __init__(
        self,
        args: Any,
        services: ParleyServices,
        *,
        printer: Callable[[str], None] = print,
        logger: logging.Logger | None = None,
    ) -> None:
        self.args = args
        self.services = services
        self.logger = logger
        self.printer = printer
        self.pipeline = TranslationPipeline(
            transcriber=services.transcriber,
            detector=services.detector,
            translator=services.translator,
            min_segment_bytes=services.session.min_bytes,
            ui_language=str(args.ui_language),
            logger=logger,
        )
        max_segment_sec = getattr(args, "max_segment_sec", None)
        self.controller = ListeningController(
            mic=services.mic,
            vad=services.vad,
            session=services.session,
            on_segment=self.submit,
            on_state=self._on_listening_state,
            on_error=self._on_mic_error,
            max_segment_sec=None if max_segment_sec is None else float(max_segment_sec),
            logger=logger,
        )
        self.speaker = AutoSpeaker(services.player, enabled=bool(args.tts_enabled))
        self.pipeline.subscribe(self.speaker.on_pipeline_event)
        if bool(getattr(args, "print_console", True)):
            self.pipeline.subscribe(self._print_event)
        self._tasks: set[asyncio.Task] = set()

    def submit(self, segment: AudioSegment) -> None:
        task = asyncio.get_running_loop().create_task(self.pipeline.process(segment))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _print_event(self, event: str, state: PipelineState) -> None:
        line = format_event(event, state)
        if line is not None:
            self.printer(line)

    def _on_listening_state(self, state: ListeningState) -> None:
        if self.args.debug:
            self.printer(f"[state] {state.value}")

    def _on_mic_error(self, error: MicError) -> None:
        self.pipeline.state.error = user_message(error, str(self.args.ui_language))
        self._print_event("error", self.pipeline.state)

    async def run(self, stop: asyncio.Event) -> None:
        try:
            self.controller.start_listening()
            log_event(self.logger, logging.INFO, "runtime_started")
            await stop.wait()
        finally:
            await self.shutdown(flush=bool(getattr(self.args, "flush_on_exit", False)))

    async def shutdown(self, *, flush: bool = False) -> None:
        self.controller.stop_listening(flush=flush)
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        await self.services.player.aclose()
        self.services.mic.close()
        await self.services.client.aclose()
        log_event(
            self.logger,
            logging.INFO,
            "runtime_stopped",
            messages=len(self.pipeline.messages),
            phase=self.pipeline.phase.value,
        )
