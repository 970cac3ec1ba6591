"""Known speakers and the currently active one."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from ..errors import UnknownSpeaker

SPEAKER_COLORS = (
    "#3B82F6",  # blue
    "#10B981",  # green
    "#F59E0B",  # amber
    "#EF4444",  # red
    "#8B5CF6",  # purple
    "#EC4899",  # pink
    "#14B8A6",  # teal
    "#F97316",  # orange
)


@dataclass(slots=True, eq=False)
class Speaker:
    """A speaker record; segments hold a reference to it, never a copy."""

    id: str
    label: str
    color: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "color": self.color,
            "created_at": self.created_at.isoformat().replace("+00:00", "Z"),
        }


class SpeakerRegistry:
    def __init__(self, palette: tuple[str, ...] = SPEAKER_COLORS) -> None:
        if not palette:
            raise ValueError("palette must not be empty")
        self.palette = palette
        self._speakers: Dict[str, Speaker] = {}
        self._order: List[str] = []
        self._active_id: Optional[str] = None

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, speaker_id: object) -> bool:
        return speaker_id in self._speakers

    @property
    def speakers(self) -> List[Speaker]:
        return [self._speakers[speaker_id] for speaker_id in self._order]

    @property
    def active(self) -> Optional[Speaker]:
        if self._active_id is None:
            return None
        return self._speakers[self._active_id]

    def get(self, speaker_id: str) -> Speaker:
        try:
            return self._speakers[speaker_id]
        except KeyError:
            raise UnknownSpeaker(speaker_id) from None

    def add_speaker(self, label: str | None = None) -> Speaker:
        number = len(self._order) + 1
        text = _clean_label(label) if label is not None else f"Voice {number}"
        speaker = Speaker(
            id=f"speaker-{uuid.uuid4().hex[:12]}",
            label=text,
            color=self.palette[(number - 1) % len(self.palette)],
        )
        self._speakers[speaker.id] = speaker
        self._order.append(speaker.id)
        if self._active_id is None:
            self._active_id = speaker.id
        return speaker

    def rename_speaker(self, speaker_id: str, new_label: str) -> Speaker:
        speaker = self.get(speaker_id)
        # Segments and the active reference share this object.
        speaker.label = _clean_label(new_label)
        return speaker

    def set_active_speaker(self, speaker_id: str) -> Speaker:
        speaker = self.get(speaker_id)
        self._active_id = speaker.id
        return speaker

    def next_speaker(self) -> Optional[Speaker]:
        if not self._order:
            return None
        if self._active_id is None:
            self._active_id = self._order[0]
        else:
            index = self._order.index(self._active_id)
            self._active_id = self._order[(index + 1) % len(self._order)]
        return self.active


def _clean_label(label: str) -> str:
    text = (label or "").strip()
    if not text:
        raise ValueError("Speaker label must not be empty")
    return text


__all__ = ["SPEAKER_COLORS", "Speaker", "SpeakerRegistry"]
