"""Fading caption lines layered over the ordered segment stream."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, List

from ..pipeline.jobs import TranscriptSegment


@dataclass(slots=True, eq=False)
class CaptionLine:
    segment: TranscriptSegment
    inserted_at: float
    opacity: float = 1.0

    @property
    def id(self) -> str:
        return self.segment.id

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sequence": self.segment.sequence,
            "speaker_label": self.segment.speaker_label,
            "text": self.segment.text,
            "translated_text": self.segment.translated_text,
            "opacity": round(self.opacity, 3),
        }


class CaptionRenderer:
    """Keeps the N most recent captions and fades them out by age.

    Opacity is 1.0 until ``fade_start_ms``, falls linearly to 0 at
    ``fade_end_ms`` and the line is dropped once that age is reached.
    """

    def __init__(
        self,
        *,
        fade_start_ms: int = 5000,
        fade_end_ms: int = 10000,
        max_lines: int = 5,
        tick_ms: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if fade_end_ms <= fade_start_ms:
            raise ValueError("fade_end_ms must be greater than fade_start_ms")
        self.fade_start = fade_start_ms / 1000.0
        self.fade_end = fade_end_ms / 1000.0
        self.max_lines = max(1, int(max_lines))
        self.tick_interval = tick_ms / 1000.0
        self.clock = clock
        self._lines: List[CaptionLine] = []

    def add(self, segment: TranscriptSegment, now: float | None = None) -> CaptionLine:
        line = CaptionLine(segment=segment, inserted_at=self.clock() if now is None else now)
        self._lines.append(line)
        if len(self._lines) > self.max_lines:
            del self._lines[: len(self._lines) - self.max_lines]
        return line

    def tick(self, now: float | None = None) -> List[CaptionLine]:
        now = self.clock() if now is None else now
        kept: List[CaptionLine] = []
        for line in self._lines:
            age = now - line.inserted_at
            if age >= self.fade_end:
                continue
            if age > self.fade_start:
                line.opacity = 1.0 - (age - self.fade_start) / (self.fade_end - self.fade_start)
            else:
                line.opacity = 1.0
            kept.append(line)
        self._lines = kept[-self.max_lines :]
        return list(self._lines)

    def visible(self) -> List[CaptionLine]:
        return list(self._lines)

    def clear(self) -> None:
        self._lines = []

    def set_max_lines(self, value: int) -> None:
        self.max_lines = max(1, int(value))
        if len(self._lines) > self.max_lines:
            del self._lines[: len(self._lines) - self.max_lines]

    async def run(self) -> None:
        while True:
            self.tick()
            await asyncio.sleep(self.tick_interval)


__all__ = ["CaptionLine", "CaptionRenderer"]
