from __future__ import annotations

from parley.errors import DeviceUnavailable, FailureCategory, PermissionDenied, ServiceError

_MESSAGES: dict[str, dict[object, str]] = {
    "en": {
        FailureCategory.NETWORK_ERROR: (
            "The network connection is unstable. Check your data connection and try again."
        ),
        FailureCategory.ACCESS_BLOCKED: (
            "Access to the server is temporarily restricted. Please try again shortly."
        ),
        FailureCategory.REQUEST_TIMEOUT: (
            "The network is too slow. Try again on a more stable connection."
        ),
        FailureCategory.INVALID_AUDIO: (
            "The recorded audio is invalid. Check microphone permissions and try again."
        ),
        FailureCategory.INVALID_SYNTHESIS_RESPONSE: "Could not play the spoken translation.",
        FailureCategory.SPEECH_TOO_SHORT: "That was too short to translate. Please say a little more.",
        FailureCategory.TRANSCRIPTION_TOO_SHORT: (
            "Not enough speech to detect the languages. Please say a full sentence."
        ),
        PermissionDenied: "Microphone access was denied. Allow microphone access and try again.",
        DeviceUnavailable: "No usable microphone was found. Check the input device selection.",
        None: "An unknown error occurred.",
    },
    "ko": {
        FailureCategory.NETWORK_ERROR: "네트워크 연결이 불안정합니다. 모바일 데이터 연결을 확인하고 다시 시도해주세요.",
        FailureCategory.ACCESS_BLOCKED: "서버 접속이 일시적으로 제한되었습니다. 잠시 후 다시 시도해주세요.",
        FailureCategory.REQUEST_TIMEOUT: "네트워크 속도가 너무 느립니다. 더 안정적인 네트워크 환경에서 시도해주세요.",
        FailureCategory.INVALID_AUDIO: "오디오 파일이 올바르지 않습니다. 마이크 권한을 확인하고 다시 시도해주세요.",
        FailureCategory.INVALID_SYNTHESIS_RESPONSE: "번역 음성을 재생할 수 없습니다.",
        FailureCategory.SPEECH_TOO_SHORT: "번역하기에 너무 짧습니다. 조금 더 길게 말씀해주세요.",
        FailureCategory.TRANSCRIPTION_TOO_SHORT: "언어를 감지하기에 음성이 부족합니다. 완전한 문장으로 말씀해주세요.",
        PermissionDenied: "마이크 접근이 거부되었습니다. 마이크 권한을 허용해주세요.",
        DeviceUnavailable: "사용할 수 있는 마이크가 없습니다. 입력 장치 설정을 확인해주세요.",
        None: "알 수 없는 오류가 발생했습니다.",
    },
}


def generic_message(language: str = "en") -> str:
    return _MESSAGES.get(language, _MESSAGES["en"])[None]


def user_message(error: BaseException, language: str = "en") -> str:
    """
    Localized text for a failure shown to the user.
    Categories without a dedicated message fall back to the error's own detail.
    """
    table = _MESSAGES.get(language, _MESSAGES["en"])
    if isinstance(error, ServiceError):
        if error.category in table:
            return table[error.category]
        return error.detail or table[None]
    for kind in (PermissionDenied, DeviceUnavailable):
        if isinstance(error, kind):
            return table[kind]
    return str(error).strip() or table[None]


def summarize_exception(detail: str, *, max_len: int = 220) -> str:
    text = str(detail or "").strip()
    if not text:
        return "Unknown runtime error."
    lines = [ln.strip() for ln in text.splitlines() if ln.strip()]
    if not lines:
        return "Unknown runtime error."
    for ln in reversed(lines):
        if ln.startswith("File "):
            continue
        if ln.startswith("^"):
            continue
        if ln.startswith("Traceback "):
            continue
        out = ln
        break
    else:
        out = lines[-1]
    if len(out) > max_len:
        return out[: max_len - 3].rstrip() + "..."
    return out


def hint_for_exception(summary: str) -> str:
    s = str(summary or "").lower()
    if "no module named" in s:
        return "A required package is missing in this virtualenv. Reinstall dependencies and retry."
    if "config file not found" in s:
        return "Configured JSON file is missing. Update the config path or restore the file."
    if "portaudio" in s or ("microphone" in s and ("failed" in s or "denied" in s)):
        return "Microphone init failed. Check input device selection and app mic permissions."
    if "connect" in s and "refused" in s:
        return "The speech service is not reachable. Check --service-url."
    return "Check logs for full traceback."
