"""Pipeline job and transcript segment records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional

from ..audio.types import AudioChunk

if TYPE_CHECKING:
    from ..speakers.registry import Speaker


class JobState(str, Enum):
    QUEUED = "queued"
    CHECKING_SILENCE = "checking_silence"
    TRANSCRIBING = "transcribing"
    TRANSLATING = "translating"
    DONE = "done"
    FAILED = "failed"


class TranslationStatus(str, Enum):
    DISABLED = "disabled"
    SAME_LANGUAGE = "same_language"
    TRANSLATED = "translated"
    FAILED = "failed"


@dataclass(slots=True, eq=False)
class PipelineJob:
    chunk: AudioChunk
    target_language: Optional[str] = None
    state: JobState = JobState.QUEUED
    error: Optional[str] = None

    @property
    def sequence(self) -> int:
        return self.chunk.sequence

    @property
    def finished(self) -> bool:
        return self.state in (JobState.DONE, JobState.FAILED)


@dataclass(frozen=True, slots=True, eq=False)
class TranscriptSegment:
    """Committed result of one non-silent chunk."""

    sequence: int
    speaker: "Speaker | None"
    text: str
    language: str
    timestamp: datetime
    ended_at: datetime
    translated_text: Optional[str] = None
    target_language: Optional[str] = None
    translation_status: TranslationStatus = TranslationStatus.DISABLED

    @property
    def id(self) -> str:
        return f"segment-{self.sequence}"

    @property
    def speaker_label(self) -> str:
        return self.speaker.label if self.speaker else "Speaker"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "sequence": self.sequence,
            "speaker_id": self.speaker.id if self.speaker else None,
            "speaker_label": self.speaker_label,
            "speaker_color": self.speaker.color if self.speaker else None,
            "text": self.text,
            "language": self.language,
            "translated_text": self.translated_text,
            "target_language": self.target_language,
            "translation_status": self.translation_status.value,
            "timestamp": _iso(self.timestamp),
            "ended_at": _iso(self.ended_at),
        }


def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


__all__ = ["JobState", "PipelineJob", "TranscriptSegment", "TranslationStatus"]
