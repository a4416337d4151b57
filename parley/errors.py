from __future__ import annotations

from enum import Enum
from typing import Optional

from parley.contracts import PipelinePhase


class ParleyError(RuntimeError):
    pass


class FailureCategory(str, Enum):
    LOW_QUALITY_SPEECH = "low_quality_speech"
    NO_SPEECH_DETECTED = "no_speech_detected"
    SPEECH_TOO_SHORT = "speech_too_short"
    TRANSCRIPTION_TOO_SHORT = "transcription_too_short"
    NETWORK_ERROR = "network_error"
    INVALID_AUDIO = "invalid_audio"
    REQUEST_TIMEOUT = "request_timeout"
    ACCESS_BLOCKED = "access_blocked"
    INVALID_SYNTHESIS_RESPONSE = "invalid_synthesis_response"
    UNKNOWN = "unknown"


# The setup and steady phases do not share the same "too short" category.
QUALITY_FAILURES: dict[PipelinePhase, frozenset[FailureCategory]] = {
    PipelinePhase.AWAITING_LANGUAGE_PAIR: frozenset(
        {
            FailureCategory.LOW_QUALITY_SPEECH,
            FailureCategory.NO_SPEECH_DETECTED,
            FailureCategory.SPEECH_TOO_SHORT,
        }
    ),
    PipelinePhase.STEADY: frozenset(
        {
            FailureCategory.LOW_QUALITY_SPEECH,
            FailureCategory.NO_SPEECH_DETECTED,
            FailureCategory.TRANSCRIPTION_TOO_SHORT,
        }
    ),
}


class ServiceError(ParleyError):
    """A remote or local provider call failed with a known category."""

    def __init__(self, category: FailureCategory, detail: Optional[str] = None) -> None:
        self.category = FailureCategory(category)
        self.detail = (detail or "").strip() or None
        super().__init__(self.detail or self.category.value)

    def is_quality_failure(self, phase: PipelinePhase) -> bool:
        return self.category in QUALITY_FAILURES[phase]


class MicError(ParleyError):
    pass


class PermissionDenied(MicError):
    pass


class DeviceUnavailable(MicError):
    pass
