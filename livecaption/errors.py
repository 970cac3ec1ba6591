"""Error taxonomy for capture, pipeline and session control."""

from __future__ import annotations


class CaptureError(Exception):
    """Base class for microphone/device failures."""


class DeviceUnavailable(CaptureError):
    pass


class PermissionDenied(CaptureError):
    pass


class DeviceBusy(CaptureError):
    pass


class CaptureInterrupted(CaptureError):
    """The input device was lost while a session was recording."""


class ProviderError(Exception):
    """Base class for transcription/translation backend failures."""


class TranscriptionFailed(ProviderError):
    pass


class TranslationFailed(ProviderError):
    pass


class SessionError(Exception):
    pass


class InvalidTransition(SessionError):
    def __init__(self, current: str, action: str) -> None:
        super().__init__(f"Cannot {action} while session is {current}")
        self.current = current
        self.action = action


class SpeakerRequired(SessionError):
    pass


class UnknownSpeaker(KeyError):
    def __init__(self, speaker_id: str) -> None:
        super().__init__(speaker_id)
        self.speaker_id = speaker_id

    def __str__(self) -> str:
        return f"Unknown speaker: {self.speaker_id}"


__all__ = [
    "CaptureError",
    "CaptureInterrupted",
    "DeviceBusy",
    "DeviceUnavailable",
    "InvalidTransition",
    "PermissionDenied",
    "ProviderError",
    "SessionError",
    "SpeakerRequired",
    "TranscriptionFailed",
    "TranslationFailed",
    "UnknownSpeaker",
]
