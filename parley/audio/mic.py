from __future__ import annotations

import threading
from typing import Any, Callable, Optional

from parley.contracts import AudioChunk
from parley.errors import DeviceUnavailable, MicError, PermissionDenied

ChunkCallback = Callable[[AudioChunk], None]
Dispatcher = Callable[..., Any]

_PERMISSION_HINTS = ("permission", "denied", "not permitted", "not authorized", "unauthorized")


def _import_sounddevice():
    try:
        import sounddevice as sd
    except ImportError as e:
        raise MicError(
            "sounddevice is not installed. Install with: python -m pip install sounddevice"
        ) from e
    except OSError as e:
        # PortAudio library missing on the host.
        raise DeviceUnavailable(f"PortAudio is not available: {e}") from e
    return sd


def classify_open_error(exc: BaseException) -> MicError:
    if isinstance(exc, MicError):
        return exc
    if isinstance(exc, PermissionError):
        return PermissionDenied("Microphone access was denied.")
    text = str(exc).lower()
    if any(hint in text for hint in _PERMISSION_HINTS):
        return PermissionDenied(f"Microphone access was denied: {exc}")
    return DeviceUnavailable(
        "Failed to open microphone stream. "
        "Try --list-devices and select a device id with --device."
    )


class MicSubscription:
    def __init__(self, source: "SoundDeviceMicSource", callback: ChunkCallback) -> None:
        self._source = source
        self.callback = callback
        self.closed = False

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._source._unsubscribe(self)


class SoundDeviceMicSource:
    """
    Single owner of the input device, using the `sounddevice` package (PortAudio).

    The stream is opened for the first subscriber and closed when the last one
    leaves. Each PortAudio block becomes one AudioChunk that is handed to every
    subscriber through `dispatch` (pass `loop.call_soon_threadsafe` to move
    delivery onto an event loop thread).
    """

    def __init__(
        self,
        *,
        block_seconds: float = 0.05,
        sample_rate: int = 16000,
        channels: int = 1,
        device: Optional[int] = None,
        dispatch: Optional[Dispatcher] = None,
        stream_factory: Optional[Callable[..., Any]] = None,
    ) -> None:
        if block_seconds <= 0:
            raise ValueError("block_seconds must be > 0")
        if sample_rate <= 0:
            raise ValueError("sample_rate must be > 0")
        if channels not in (1, 2):
            raise ValueError("channels must be 1 or 2 (for now)")

        self.block_seconds = float(block_seconds)
        self.sample_rate = int(sample_rate)
        self.channels = int(channels)
        self.device = device
        self.dispatch = dispatch
        self._stream_factory = stream_factory
        self._stream: Any = None
        self._subscribers: list[MicSubscription] = []
        self._frames_seen = 0
        self._lock = threading.Lock()

    @staticmethod
    def list_devices() -> str:
        sd = _import_sounddevice()
        return str(sd.query_devices())

    @property
    def is_open(self) -> bool:
        return self._stream is not None

    @property
    def bytes_per_second(self) -> int:
        return self.sample_rate * self.channels * 2

    def subscribe(self, callback: ChunkCallback) -> MicSubscription:
        sub = MicSubscription(self, callback)
        with self._lock:
            if self._stream is None:
                self._open()
            self._subscribers.append(sub)
        return sub

    def close(self) -> None:
        with self._lock:
            for sub in self._subscribers:
                sub.closed = True
            self._subscribers = []
            stream, self._stream = self._stream, None
        self._close(stream)

    def _unsubscribe(self, sub: MicSubscription) -> None:
        stream = None
        with self._lock:
            if sub in self._subscribers:
                self._subscribers.remove(sub)
            if not self._subscribers:
                stream, self._stream = self._stream, None
        # Stopping waits for the PortAudio callback, so it must not hold the lock.
        self._close(stream)

    def _make_stream(self):
        if self._stream_factory is not None:
            return self._stream_factory(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="int16",
                device=self.device,
                blocksize=int(round(self.block_seconds * self.sample_rate)),
                callback=self._on_block,
            )
        sd = _import_sounddevice()
        return sd.RawInputStream(
            samplerate=self.sample_rate,
            channels=self.channels,
            dtype="int16",
            device=self.device,
            blocksize=int(round(self.block_seconds * self.sample_rate)),
            callback=self._on_block,
        )

    def _open(self) -> None:
        try:
            stream = self._make_stream()
            stream.start()
        except Exception as e:
            raise classify_open_error(e) from e
        self._frames_seen = 0
        self._stream = stream

    @staticmethod
    def _close(stream: Any) -> None:
        if stream is None:
            return
        try:
            stream.stop()
        finally:
            stream.close()

    def _on_block(self, indata, frames, time_info, status) -> None:
        del time_info, status  # overflow just means PortAudio dropped frames
        start_time = self._frames_seen / self.sample_rate
        self._frames_seen += int(frames)
        chunk = AudioChunk(
            pcm16=bytes(indata),
            sample_rate=self.sample_rate,
            channels=self.channels,
            start_time=start_time,
            duration=int(frames) / self.sample_rate,
        )
        if self.dispatch is None:
            self._fan_out(chunk)
        else:
            self.dispatch(self._fan_out, chunk)

    def _fan_out(self, chunk: AudioChunk) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for sub in subscribers:
            if not sub.closed:
                sub.callback(chunk)
