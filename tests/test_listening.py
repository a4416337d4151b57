from __future__ import annotations

import pytest

from parley.audio.recorder import RecordingSession
from parley.audio.vad import VadSettings, VoiceActivityDetector
from parley.errors import DeviceUnavailable
from parley.live.listening import ListeningController, ListeningState


def _controller(fake_mic, *, max_segment_sec=None, min_segment_sec=0.25):
    segments, states, errors = [], [], []
    controller = ListeningController(
        mic=fake_mic,
        vad=VoiceActivityDetector(
            VadSettings(silence_threshold=0.05, silence_timeout=0.25, smoothing_time_constant=0.0)
        ),
        session=RecordingSession(fake_mic, min_segment_sec=min_segment_sec),
        on_segment=segments.append,
        on_state=states.append,
        on_error=errors.append,
        max_segment_sec=max_segment_sec,
    )
    return controller, segments, states, errors


def test_vad_silence_submits_segment(fake_mic, chunks) -> None:
    controller, segments, states, _ = _controller(fake_mic)
    assert controller.state == ListeningState.IDLE

    controller.start_listening()
    assert controller.state == ListeningState.LISTENING
    assert len(fake_mic.subs) == 1  # monitor only, recorder on standby

    fake_mic.emit(chunks.silence())
    fake_mic.emit(chunks.speech())
    assert controller.state == ListeningState.RECORDING
    assert len(fake_mic.subs) == 2
    fake_mic.emit(chunks.speech())
    fake_mic.emit(chunks.speech())
    fake_mic.emit(chunks.silence())
    fake_mic.emit(chunks.silence())

    assert controller.state == ListeningState.LISTENING
    assert len(segments) == 1
    # Three speech chunks plus the first trailing silence chunk.
    assert segments[0].duration == pytest.approx(0.5)
    assert states == [ListeningState.LISTENING, ListeningState.RECORDING, ListeningState.LISTENING]
    assert len(fake_mic.subs) == 1


def test_manual_stop_discards_recording(fake_mic, chunks) -> None:
    controller, segments, _, _ = _controller(fake_mic)
    controller.start_listening()
    for _ in range(6):
        fake_mic.emit(chunks.speech())
    assert controller.is_recording

    controller.stop_listening()
    assert controller.state == ListeningState.IDLE
    assert segments == []
    assert fake_mic.subs == []


def test_flush_submits_recording(fake_mic, chunks) -> None:
    controller, segments, _, _ = _controller(fake_mic)
    controller.start_listening()
    for _ in range(6):
        fake_mic.emit(chunks.speech())

    controller.stop_listening(flush=True)
    assert controller.state == ListeningState.IDLE
    assert len(segments) == 1
    assert segments[0].duration == pytest.approx(0.75)


def test_stop_is_idempotent(fake_mic) -> None:
    controller, _, states, _ = _controller(fake_mic)
    controller.stop_listening()
    controller.start_listening()
    controller.start_listening()
    controller.stop_listening()
    controller.stop_listening()
    assert states == [ListeningState.LISTENING, ListeningState.IDLE]
    assert fake_mic.subscribe_calls == 1


def test_toggle(fake_mic) -> None:
    controller, _, _, _ = _controller(fake_mic)
    controller.toggle()
    assert controller.is_listening
    controller.toggle()
    assert not controller.is_listening


def test_short_utterance_not_submitted(fake_mic, chunks) -> None:
    controller, segments, _, _ = _controller(fake_mic, min_segment_sec=1.0)
    controller.start_listening()
    fake_mic.emit(chunks.speech())
    fake_mic.emit(chunks.silence())
    fake_mic.emit(chunks.silence())
    assert controller.state == ListeningState.LISTENING
    assert segments == []


def test_max_segment_splits_long_speech(fake_mic, chunks) -> None:
    controller, segments, _, _ = _controller(fake_mic, max_segment_sec=0.5, min_segment_sec=0.0)
    controller.start_listening()
    for _ in range(9):
        fake_mic.emit(chunks.speech())
    assert controller.state == ListeningState.RECORDING
    assert [round(s.duration, 3) for s in segments] == [0.5, 0.5]

    controller.stop_listening(flush=True)
    assert [round(s.duration, 3) for s in segments] == [0.5, 0.5, 0.125]


def test_recording_start_failure_reports_and_keeps_listening(fake_mic, chunks) -> None:
    controller, segments, _, errors = _controller(fake_mic)
    controller.start_listening()
    fake_mic.fail_with = DeviceUnavailable("gone")
    fake_mic.emit(chunks.speech())
    assert controller.state == ListeningState.LISTENING
    assert len(errors) == 1
    assert segments == []


def test_start_listening_failure_stays_idle(fake_mic) -> None:
    controller, _, _, _ = _controller(fake_mic)
    fake_mic.fail_with = DeviceUnavailable("gone")
    with pytest.raises(DeviceUnavailable):
        controller.start_listening()
    assert controller.state == ListeningState.IDLE


def test_chunks_ignored_when_idle(fake_mic, chunks) -> None:
    controller, segments, states, _ = _controller(fake_mic)
    controller.on_chunk(chunks.speech())
    assert states == []
    assert segments == []
