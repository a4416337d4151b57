from __future__ import annotations

from parley.app.diagnostics import (
    generic_message,
    hint_for_exception,
    summarize_exception,
    user_message,
)
from parley.errors import DeviceUnavailable, FailureCategory, PermissionDenied, ServiceError


def test_summarize_exception_picks_last_meaningful_line() -> None:
    detail = (
        "Traceback (most recent call last):\n"
        '  File "x.py", line 1, in <module>\n'
        "    boom()\n"
        "RuntimeError: failed to start worker"
    )
    assert summarize_exception(detail) == "RuntimeError: failed to start worker"


def test_summarize_exception_truncates_long_line() -> None:
    detail = "ValueError: " + ("x" * 500)
    out = summarize_exception(detail, max_len=60)
    assert out.startswith("ValueError: ")
    assert out.endswith("...")
    assert len(out) <= 60


def test_hint_for_exception_portaudio() -> None:
    hint = hint_for_exception("OSError: PortAudio library not found")
    assert "Microphone init failed" in hint


def test_hint_for_exception_unreachable_service() -> None:
    hint = hint_for_exception("ConnectError: [Errno 111] Connection refused")
    assert "--service-url" in hint


def test_hint_for_exception_default() -> None:
    hint = hint_for_exception("RuntimeError: unknown")
    assert hint == "Check logs for full traceback."


def test_user_message_is_localized() -> None:
    error = ServiceError(FailureCategory.NETWORK_ERROR, "Network connection failed")
    assert user_message(error, "en").startswith("The network connection is unstable")
    assert user_message(error, "ko").startswith("네트워크 연결이 불안정합니다")
    assert user_message(error, "fr") == user_message(error, "en")


def test_user_message_falls_back_to_detail_then_generic() -> None:
    assert user_message(ServiceError(FailureCategory.UNKNOWN, "Failed to translate text")) == "Failed to translate text"
    assert user_message(ServiceError(FailureCategory.UNKNOWN)) == generic_message("en")
    assert generic_message("ko") == "알 수 없는 오류가 발생했습니다."


def test_user_message_for_microphone_errors() -> None:
    assert "denied" in user_message(PermissionDenied("x"))
    assert "microphone" in user_message(DeviceUnavailable("x")).lower()
    assert user_message(RuntimeError("")) == generic_message()


def test_too_short_categories_have_localized_messages() -> None:
    for category in (FailureCategory.SPEECH_TOO_SHORT, FailureCategory.TRANSCRIPTION_TOO_SHORT):
        error = ServiceError(category, "Speech too short")
        en = user_message(error, "en")
        ko = user_message(error, "ko")
        assert en != error.detail
        assert ko != error.detail
        assert en != ko
    assert "languages" in user_message(ServiceError(FailureCategory.TRANSCRIPTION_TOO_SHORT))
