"""Dataclasses shared across audio helpers."""

from __future__ import annotations

import io
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Union

import numpy as np
import soundfile as sf

if TYPE_CHECKING:
    from ..speakers.registry import Speaker

AudioPayload = Union[np.ndarray, bytes]


class ChunkReason(str, Enum):
    """Why the capturer finalized a buffer."""

    TIMER = "timer"
    SWITCH = "switch"
    STOP = "stop"


@dataclass(frozen=True, slots=True, eq=False)
class AudioChunk:
    """A finalized, immutable span of captured audio."""

    sequence: int
    payload: AudioPayload
    sample_rate: int
    started_at: datetime
    ended_at: datetime
    speaker: "Speaker | None" = None
    language: str = "auto"
    reason: ChunkReason = ChunkReason.TIMER

    @property
    def duration(self) -> float:
        if isinstance(self.payload, np.ndarray):
            return len(self.payload) / float(self.sample_rate)
        return (self.ended_at - self.started_at).total_seconds()

    def encode(self, fmt: str = "FLAC") -> bytes:
        """Return the payload as an uploadable audio file."""
        if isinstance(self.payload, bytes):
            return self.payload
        buffer = io.BytesIO()
        sf.write(
            buffer,
            self.payload.astype(np.int16, copy=False),
            self.sample_rate,
            format=fmt,
            subtype="PCM_16",
        )
        return buffer.getvalue()
