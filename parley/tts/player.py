from __future__ import annotations

import asyncio
import io
import logging
import threading
import time
from typing import Any, Callable, Optional, Tuple

from parley.app.logging_setup import log_event
from parley.contracts import TranslationMessage
from parley.errors import FailureCategory, ServiceError
from parley.tts.base import Synthesizer

PLAY_ATTEMPTS = 3
PLAY_BACKOFF_SEC = 0.1
CLOSE_WAIT_SEC = 1.0


class Playback:
    """One open output stream. Closed exactly once, by whoever gets there first."""

    def __init__(self, stream: Any) -> None:
        self.stream = stream
        self.stopped = threading.Event()
        self._stream_closed = threading.Event()
        self._lock = threading.Lock()
        self._writing = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def wait_closed(self, timeout: Optional[float] = None) -> bool:
        """Blocking. True once the stream has actually been closed."""
        return self._stream_closed.wait(timeout)

    def claim_for_writing(self) -> bool:
        with self._lock:
            if self._closed or self.stopped.is_set():
                return False
            self._writing = True
            return True

    def release(self) -> None:
        """Ask playback to end. Closes the stream here unless a writer owns it."""
        self.stopped.set()
        with self._lock:
            if self._writing or self._closed:
                return
            self._closed = True
        self._close_stream()

    def finish(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._close_stream()

    def _close_stream(self) -> None:
        try:
            self.stream.stop()
        finally:
            try:
                self.stream.close()
            finally:
                self._stream_closed.set()


class AudioOutput:
    """
    Single owner of the output device. Opening a new playback releases the
    previous one first. Audio is written in short blocks so a stop request
    takes effect within one block.
    """

    def __init__(
        self,
        *,
        device: Optional[int] = None,
        block_seconds: float = 0.02,
        stream_factory: Optional[Callable[..., Any]] = None,
    ) -> None:
        self.device = device
        self.block_seconds = float(block_seconds)
        self._stream_factory = stream_factory
        self._current: Optional[Playback] = None
        self._releasing: Optional[Playback] = None

    @staticmethod
    def decode(data: bytes) -> Tuple[Any, int]:
        import soundfile as sf

        try:
            frames, samplerate = sf.read(io.BytesIO(data), dtype="float32", always_2d=True)
        except Exception as e:
            raise ServiceError(
                FailureCategory.INVALID_SYNTHESIS_RESPONSE,
                f"Could not decode synthesized audio: {e}",
            ) from e
        return frames, int(samplerate)

    def _make_stream(self, samplerate: int, channels: int):
        if self._stream_factory is not None:
            return self._stream_factory(
                samplerate=samplerate,
                channels=channels,
                dtype="float32",
                device=self.device,
            )
        import sounddevice as sd

        return sd.OutputStream(
            samplerate=samplerate,
            channels=channels,
            dtype="float32",
            device=self.device,
        )

    def open(self, samplerate: int, channels: int) -> Playback:
        self.stop()
        stream = self._make_stream(samplerate, channels)
        try:
            stream.start()
        except Exception:
            stream.close()
            raise
        playback = Playback(stream)
        self._current = playback
        return playback

    def write_all(self, playback: Playback, frames: Any, samplerate: int) -> bool:
        """Blocking. Returns True when every frame was written."""
        if not playback.claim_for_writing():
            return False
        block = max(1, int(samplerate * self.block_seconds))
        idx = 0
        try:
            while idx < len(frames):
                if playback.stopped.is_set():
                    return False
                playback.stream.write(frames[idx : idx + block])
                idx += block
            return True
        finally:
            playback.finish()

    def stop(self) -> None:
        current = self._current
        self._current = None
        if current is not None:
            current.release()
            if not current.wait_closed(0):
                self._releasing = current

    async def wait_released(self, timeout: float = CLOSE_WAIT_SEC) -> bool:
        """
        Wait, off the event loop, for a stopped playback whose writer still
        holds the stream. The device must not be reopened before that.
        """
        pending = self._releasing
        if pending is None:
            return True
        closed = await asyncio.to_thread(pending.wait_closed, timeout)
        if closed and self._releasing is pending:
            self._releasing = None
        return closed


class SpeechPlayer:
    """
    Speaks one text at a time. A new request cancels the previous synthesis
    call (aborting its HTTP request) and stops its playback before starting.
    """

    def __init__(
        self,
        *,
        synthesizer: Synthesizer,
        output: AudioOutput,
        attempts: int = PLAY_ATTEMPTS,
        backoff_sec: float = PLAY_BACKOFF_SEC,
        logger: logging.Logger | None = None,
    ) -> None:
        if attempts <= 0:
            raise ValueError("attempts must be > 0")
        self.synthesizer = synthesizer
        self.output = output
        self.attempts = int(attempts)
        self.backoff_sec = float(backoff_sec)
        self.logger = logger
        self._task: Optional[asyncio.Task] = None
        self.is_loading = False
        self.is_playing = False

    @property
    def current_task(self) -> Optional[asyncio.Task]:
        return self._task

    def speak(self, text: str) -> asyncio.Task:
        self.cancel()
        task = asyncio.get_running_loop().create_task(self._run(text))
        self._task = task
        return task

    def cancel(self) -> None:
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()
        self.output.stop()
        self.is_loading = False
        self.is_playing = False

    async def aclose(self) -> None:
        task = self._task
        self.cancel()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _open_with_retry(self, samplerate: int, channels: int) -> Playback:
        attempt = 0
        while True:
            try:
                return self.output.open(samplerate, channels)
            except Exception as e:
                attempt += 1
                if attempt >= self.attempts:
                    raise
                delay = self.backoff_sec * (2 ** (attempt - 1))
                log_event(
                    self.logger,
                    logging.WARNING,
                    "playback_retry",
                    attempt=attempt,
                    delay_sec=delay,
                    error=str(e),
                )
                await asyncio.sleep(delay)

    async def _run(self, text: str) -> bool:
        playback: Optional[Playback] = None
        self.is_loading = True
        try:
            audio = await self.synthesizer.synthesize(text)
            frames, samplerate = self.output.decode(audio.data)
            if not await self.output.wait_released():
                log_event(self.logger, logging.WARNING, "playback_close_timeout")
            playback = await self._open_with_retry(samplerate, int(frames.shape[1]))
            self.is_loading = False
            self.is_playing = True
            log_event(self.logger, logging.INFO, "playback_started", chars=len(text), samplerate=samplerate)
            done = await asyncio.to_thread(self.output.write_all, playback, frames, samplerate)
            log_event(self.logger, logging.INFO, "playback_finished", completed=done)
            return done
        except asyncio.CancelledError:
            log_event(self.logger, logging.INFO, "playback_aborted", chars=len(text))
            raise
        except Exception as e:
            if self.logger is not None:
                self.logger.warning("playback_failed", exc_info=True, extra={"error": str(e)})
            return False
        finally:
            if playback is not None:
                playback.release()
            if self._task is asyncio.current_task():
                self.is_loading = False
                self.is_playing = False


class AutoSpeaker:
    """Speaks finished translations, but only those created after TTS was (re)enabled."""

    def __init__(
        self,
        player: SpeechPlayer,
        *,
        enabled: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.player = player
        self._clock = clock
        self._enabled_at: Optional[float] = clock() if enabled else None

    @property
    def enabled(self) -> bool:
        return self._enabled_at is not None

    def enable(self) -> None:
        if self._enabled_at is None:
            self._enabled_at = self._clock()

    def disable(self) -> None:
        self._enabled_at = None
        self.player.cancel()

    def toggle(self) -> bool:
        if self.enabled:
            self.disable()
        else:
            self.enable()
        return self.enabled

    def maybe_speak(self, message: TranslationMessage) -> Optional[asyncio.Task]:
        if self._enabled_at is None or message.timestamp < self._enabled_at:
            return None
        return self.player.speak(message.translated_text)

    def on_pipeline_event(self, event: str, state: Any) -> None:
        if event != "message":
            return
        message = state.messages.last
        if message is not None:
            self.maybe_speak(message)
