from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Optional, Protocol

from parley.app.logging_setup import log_event
from parley.audio.recorder import RecordingSession
from parley.audio.vad import VadEvent, VoiceActivityDetector
from parley.contracts import AudioChunk, AudioSegment
from parley.errors import MicError


class ListeningState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    RECORDING = "recording"


class _Subscription(Protocol):
    def close(self) -> None:
        ...


class _Mic(Protocol):
    def subscribe(self, callback: Callable[[AudioChunk], None]) -> _Subscription:
        ...


class ListeningController:
    """
    Glues VAD edges to the recording session.

    Only a VAD-detected end of speech submits a segment. Stopping by hand
    throws the current recording away unless a final flush is requested.
    """

    def __init__(
        self,
        *,
        mic: _Mic,
        vad: VoiceActivityDetector,
        session: RecordingSession,
        on_segment: Callable[[AudioSegment], None],
        on_state: Optional[Callable[[ListeningState], None]] = None,
        on_error: Optional[Callable[[MicError], None]] = None,
        max_segment_sec: float | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if max_segment_sec is not None and max_segment_sec <= 0:
            raise ValueError("max_segment_sec must be > 0 when set")
        self.mic = mic
        self.vad = vad
        self.session = session
        self.on_segment = on_segment
        self.on_state = on_state
        self.on_error = on_error
        self.max_segment_sec = float(max_segment_sec) if max_segment_sec is not None else None
        self.logger = logger
        self._state = ListeningState.IDLE
        self._monitor: Optional[_Subscription] = None

    @property
    def state(self) -> ListeningState:
        return self._state

    @property
    def is_listening(self) -> bool:
        return self._state != ListeningState.IDLE

    @property
    def is_recording(self) -> bool:
        return self._state == ListeningState.RECORDING

    def _set_state(self, state: ListeningState) -> None:
        if state == self._state:
            return
        previous = self._state
        self._state = state
        log_event(self.logger, logging.INFO, "listening_state", previous=previous.value, state=state.value)
        if self.on_state is not None:
            self.on_state(state)

    def start_listening(self) -> None:
        if self._state != ListeningState.IDLE:
            return
        self.vad.reset()
        self._monitor = self.mic.subscribe(self.on_chunk)
        self._set_state(ListeningState.LISTENING)

    def stop_listening(self, *, flush: bool = False) -> None:
        if self._state == ListeningState.IDLE:
            return
        monitor = self._monitor
        self._monitor = None
        if monitor is not None:
            monitor.close()

        if self._state == ListeningState.RECORDING:
            if flush:
                self._submit(self.session.stop(), reason="flush")
            else:
                self.session.discard()
        self.vad.reset()
        self._set_state(ListeningState.IDLE)

    def toggle(self) -> None:
        if self._state == ListeningState.IDLE:
            self.start_listening()
        else:
            self.stop_listening()

    def on_chunk(self, chunk: AudioChunk) -> None:
        if self._state == ListeningState.IDLE:
            return
        event = self.vad.push(chunk)
        if self.logger is not None and self.logger.isEnabledFor(logging.DEBUG):
            log_event(
                self.logger,
                logging.DEBUG,
                "vad_level",
                t=round(chunk.start_time, 3),
                smoothed=round(self.vad.level, 5),
                speaking=self.vad.speaking,
            )

        if event == VadEvent.SPEECH_STARTED and self._state == ListeningState.LISTENING:
            self._start_recording(chunk)
            return

        if event == VadEvent.SPEECH_ENDED and self._state == ListeningState.RECORDING:
            segment = self.session.stop()
            self._set_state(ListeningState.LISTENING)
            self._submit(segment, reason="silence")
            return

        if (
            self._state == ListeningState.RECORDING
            and self.max_segment_sec is not None
            and self.session.buffered_seconds >= self.max_segment_sec
        ):
            self._submit(self.session.stop(), reason="max_segment_sec")
            # The monitor sees each chunk before the recorder does, so the
            # current chunk opens the next segment.
            self._start_recording(chunk)

    def _start_recording(self, chunk: AudioChunk) -> None:
        try:
            self.session.start(preroll=(chunk,))
        except MicError as e:
            log_event(self.logger, logging.ERROR, "recording_start_failed", error=str(e))
            self._set_state(ListeningState.LISTENING)
            if self.on_error is not None:
                self.on_error(e)
            return
        self._set_state(ListeningState.RECORDING)

    def _submit(self, segment: Optional[AudioSegment], *, reason: str) -> None:
        if segment is None:
            return
        log_event(
            self.logger,
            logging.INFO,
            "segment_submitted",
            reason=reason,
            bytes=segment.size,
            duration=round(segment.duration, 3),
        )
        self.on_segment(segment)
