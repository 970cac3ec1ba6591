"""Append-only transcript of emitted segments, with text and SRT export."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional

from ..pipeline.jobs import TranscriptSegment

EXPORT_FORMATS = ("text", "srt")


class TranscriptAccumulator:
    """Ordered transcript for one session; segments must arrive in sequence order."""

    def __init__(self, session_start: datetime | None = None) -> None:
        self.session_start = session_start
        self._segments: List[TranscriptSegment] = []

    def __len__(self) -> int:
        return len(self._segments)

    def __iter__(self) -> Iterator[TranscriptSegment]:
        return iter(list(self._segments))

    @property
    def segments(self) -> List[TranscriptSegment]:
        return list(self._segments)

    @property
    def last_sequence(self) -> Optional[int]:
        return self._segments[-1].sequence if self._segments else None

    def append(self, segment: TranscriptSegment) -> None:
        last = self.last_sequence
        if last is not None and segment.sequence <= last:
            raise ValueError(
                f"Segment {segment.sequence} arrived after segment {last}; transcript is append-only"
            )
        self._segments.append(segment)

    def clear(self) -> None:
        self._segments = []

    def export(self, fmt: str = "text") -> str:
        if fmt == "text":
            return self.export_text()
        if fmt == "srt":
            return self.export_srt()
        raise ValueError(f"Unsupported export format: {fmt}")

    def export_text(self) -> str:
        lines = [
            "# Conversation Transcript",
            "",
            f"Session Start: {self._clock(self.session_start) if self.session_start else 'N/A'}",
            f"Total Segments: {len(self._segments)}",
            "",
            "---",
            "",
        ]
        for segment in self._segments:
            lines.append(f"[{self._clock(segment.timestamp)}] {segment.speaker_label}:")
            lines.append(segment.text)
            if segment.translated_text:
                lines.append(f"({segment.target_language}) {segment.translated_text}")
            lines.append("")
        return "\n".join(lines)

    def export_srt(self) -> str:
        origin = self.session_start or (self._segments[0].timestamp if self._segments else None)
        blocks: List[str] = []
        for index, segment in enumerate(self._segments, start=1):
            start_ts = self._offset_timestamp(segment.timestamp, origin)
            end_ts = self._offset_timestamp(segment.ended_at, origin)
            blocks.extend(
                [
                    str(index),
                    f"{start_ts} --> {end_ts}",
                    f"{segment.speaker_label}: {segment.text}",
                    "",
                ]
            )
        return "\n".join(blocks)

    def save(self, path: Path | str, fmt: str = "text") -> Path:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.export(fmt), encoding="utf-8")
        return target

    @staticmethod
    def _clock(value: datetime) -> str:
        return _local(value).strftime("%H:%M:%S")

    @staticmethod
    def _offset_timestamp(value: datetime, origin: datetime | None) -> str:
        if origin is None:
            return "00:00:00,000"
        millis = max(0, int(round((_utc(value) - _utc(origin)).total_seconds() * 1000)))
        hours, rem = divmod(millis, 3_600_000)
        minutes, rem = divmod(rem, 60_000)
        seconds, millis = divmod(rem, 1000)
        return f"{hours:02d}:{minutes:02d}:{seconds:02d},{millis:03d}"


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _local(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone()


__all__ = ["EXPORT_FORMATS", "TranscriptAccumulator"]
