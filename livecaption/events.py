"""Tagged pipeline/session events and the bus that delivers them."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Union

from .pipeline.jobs import TranscriptSegment

LOGGER = logging.getLogger("livecaption.events")


class PipelineStatus(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    PROCESSING = "processing"
    ERROR = "error"


class FailureReason(str, Enum):
    SILENT_CHUNK = "silent_chunk"
    TRANSCRIPTION_FAILED = "transcription_failed"
    TRANSLATION_FAILED = "translation_failed"
    CAPTURE_INTERRUPTED = "capture_interrupted"
    DEVICE_UNAVAILABLE = "device_unavailable"
    PERMISSION_DENIED = "permission_denied"
    DEVICE_BUSY = "device_busy"


@dataclass(frozen=True, slots=True)
class SegmentReady:
    segment: TranscriptSegment


@dataclass(frozen=True, slots=True)
class StatusChanged:
    status: PipelineStatus


@dataclass(frozen=True, slots=True)
class ChunkFailure:
    reason: FailureReason
    message: str
    sequence: Optional[int] = None

    @property
    def fatal(self) -> bool:
        return self.reason in _FATAL


_FATAL = {
    FailureReason.CAPTURE_INTERRUPTED,
    FailureReason.DEVICE_UNAVAILABLE,
    FailureReason.PERMISSION_DENIED,
    FailureReason.DEVICE_BUSY,
}

Event = Union[SegmentReady, StatusChanged, ChunkFailure]
Handler = Callable[[Event], None]


class EventBus:
    """Synchronous fan-out in subscription order."""

    def __init__(self) -> None:
        self._handlers: List[Handler] = []

    def subscribe(self, handler: Handler) -> Callable[[], None]:
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def publish(self, event: Event) -> None:
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                LOGGER.exception("Event handler %r failed on %s", handler, type(event).__name__)


__all__ = [
    "ChunkFailure",
    "Event",
    "EventBus",
    "FailureReason",
    "PipelineStatus",
    "SegmentReady",
    "StatusChanged",
]
