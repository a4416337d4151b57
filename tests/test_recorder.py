from __future__ import annotations

import io
import wave

import pytest

from parley.audio.recorder import RecordingSession, WAV_MIME, min_segment_bytes, wav_duration_from_size
from parley.errors import PermissionDenied


def test_stop_without_start_is_noop(fake_mic) -> None:
    session = RecordingSession(fake_mic)
    assert session.stop() is None
    session.discard()
    assert fake_mic.subscribe_calls == 0


def test_start_stop_yields_wav_segment(fake_mic, chunks) -> None:
    session = RecordingSession(fake_mic, min_segment_sec=0.25)
    first = chunks.speech()
    session.start(preroll=[first])
    assert session.is_active
    for _ in range(3):
        fake_mic.emit(chunks.speech())

    segment = session.stop()
    assert segment is not None
    assert segment.mime_type == WAV_MIME
    assert segment.duration == pytest.approx(0.5)
    assert not session.is_active
    assert fake_mic.subs == []

    with wave.open(io.BytesIO(segment.data), "rb") as wf:
        assert wf.getframerate() == 16000
        assert wf.getnchannels() == 1
        assert wf.getnframes() == 8000


def test_short_recording_is_discarded(fake_mic, chunks) -> None:
    session = RecordingSession(fake_mic, min_segment_sec=0.5)
    session.start()
    fake_mic.emit(chunks.speech())
    fake_mic.emit(chunks.speech())
    fake_mic.emit(chunks.speech())  # 0.375s < 0.5s
    assert session.stop() is None
    assert fake_mic.subs == []


def test_exactly_min_duration_is_kept(fake_mic, chunks) -> None:
    session = RecordingSession(fake_mic, min_segment_sec=0.5)
    session.start()
    for _ in range(4):
        fake_mic.emit(chunks.speech())
    segment = session.stop()
    assert segment is not None
    assert segment.size == session.min_bytes


def test_restart_releases_previous_capture(fake_mic, chunks) -> None:
    session = RecordingSession(fake_mic, min_segment_sec=0.0)
    for _ in range(5):
        session.start()
        fake_mic.emit(chunks.speech())
        assert len(fake_mic.subs) == 1
    session.start()
    assert len(fake_mic.subs) == 1
    assert session.buffered_seconds == 0.0
    session.discard()
    assert fake_mic.subs == []


def test_start_propagates_permission_error(fake_mic) -> None:
    fake_mic.fail_with = PermissionDenied("denied")
    session = RecordingSession(fake_mic)
    with pytest.raises(PermissionDenied):
        session.start()
    assert not session.is_active
    assert session.stop() is None


def test_size_helpers() -> None:
    assert min_segment_bytes(0.5, 16000, 1) == 44 + 16000
    assert wav_duration_from_size(44 + 32000, 16000, 1) == pytest.approx(1.0)
    assert wav_duration_from_size(10, 16000, 1) == 0.0
