"""One recording run: capturer + pipeline + transcript behind an explicit state machine."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, FrozenSet

from .audio.capturer import ChunkCapturer
from .audio.devices import AudioInput, DeviceToken
from .audio.silence import SilenceDetector
from .errors import CaptureError, CaptureInterrupted, DeviceBusy, InvalidTransition, PermissionDenied, SpeakerRequired
from .events import ChunkFailure, Event, FailureReason, PipelineStatus, SegmentReady, StatusChanged
from .pipeline.pipeline import TranscriptionPipeline
from .pipeline.providers import Transcriber, Translator
from .services.logger import LogBuffer
from .speakers.registry import Speaker
from .store.transcript_store import TranscriptAccumulator


class RecordingMode(str, Enum):
    CAPTIONS = "captions"
    TRANSCRIPT = "transcript"


class SessionState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    PAUSED = "paused"
    STOPPED = "stopped"
    ERROR = "error"


TRANSITIONS: Dict[SessionState, FrozenSet[SessionState]] = {
    SessionState.IDLE: frozenset({SessionState.RECORDING}),
    SessionState.RECORDING: frozenset({SessionState.PAUSED, SessionState.STOPPED, SessionState.ERROR}),
    SessionState.PAUSED: frozenset({SessionState.RECORDING, SessionState.STOPPED, SessionState.ERROR}),
    SessionState.STOPPED: frozenset(),
    SessionState.ERROR: frozenset(),
}


def _failure_reason(exc: CaptureError) -> FailureReason:
    if isinstance(exc, PermissionDenied):
        return FailureReason.PERMISSION_DENIED
    if isinstance(exc, DeviceBusy):
        return FailureReason.DEVICE_BUSY
    if isinstance(exc, CaptureInterrupted):
        return FailureReason.CAPTURE_INTERRUPTED
    return FailureReason.DEVICE_UNAVAILABLE


class Session:
    """Owns one capturer, one pipeline and one transcript for a single run."""

    def __init__(
        self,
        mode: RecordingMode,
        *,
        device: AudioInput,
        token: DeviceToken,
        transcriber: Transcriber,
        translator: Translator | None,
        publish: Callable[[Event], None],
        logger: LogBuffer,
        chunk_seconds: float,
        sample_rate: int,
        language: str = "auto",
        target_language: str | None = None,
        detector: SilenceDetector | None = None,
        provider_timeout: float | None = 30.0,
        upload_format: str = "FLAC",
    ) -> None:
        self.mode = mode
        self.language = language
        self.target_language = target_language or None
        self.logger = logger
        self._publish_out = publish
        self.state = SessionState.IDLE
        self.status = PipelineStatus.IDLE
        self.started_at: datetime | None = None
        self.accumulator = TranscriptAccumulator()
        self.pipeline = TranscriptionPipeline(
            transcriber,
            translator,
            self._publish,
            logger,
            detector=detector,
            target_language=self.target_language,
            provider_timeout=provider_timeout,
            upload_format=upload_format,
        )
        self.capturer = ChunkCapturer(
            device,
            token,
            self.pipeline,
            logger,
            chunk_seconds=chunk_seconds,
            sample_rate=sample_rate,
            language=language,
            on_interrupted=self._on_interrupted,
        )
        self._stopping = False
        self._elapsed = 0.0
        self._running_since: float | None = None

    @property
    def stopping(self) -> bool:
        return self._stopping

    @property
    def active(self) -> bool:
        return self.state in (SessionState.RECORDING, SessionState.PAUSED)

    @property
    def duration(self) -> float:
        """Seconds spent recording, pauses excluded."""
        if self._running_since is None:
            return self._elapsed
        return self._elapsed + (time.monotonic() - self._running_since)

    def start(self, speaker: Speaker | None = None) -> None:
        self._check(SessionState.RECORDING, "start")
        if self.mode is RecordingMode.TRANSCRIPT and speaker is None:
            raise SpeakerRequired("Transcript mode needs an active speaker")
        try:
            self.capturer.start(speaker)
        except CaptureError as exc:
            self._emit_status(PipelineStatus.ERROR)
            self._publish(ChunkFailure(_failure_reason(exc), str(exc)))
            raise
        self.started_at = datetime.now(timezone.utc)
        self.accumulator.session_start = self.started_at
        self.pipeline.start()
        self._running_since = time.monotonic()
        self._move(SessionState.RECORDING)
        self._emit_status(PipelineStatus.RECORDING)
        self.logger.add(f"Session started in {self.mode.value} mode")

    def pause(self) -> None:
        self._check(SessionState.PAUSED, "pause")
        self.capturer.pause()
        self._bank_elapsed()
        self._move(SessionState.PAUSED)

    def resume(self) -> None:
        self._check(SessionState.RECORDING, "resume")
        if self.state is not SessionState.PAUSED:
            raise InvalidTransition(self.state.value, "resume")
        self.capturer.resume()
        self._running_since = time.monotonic()
        self._move(SessionState.RECORDING)

    async def stop(self) -> None:
        self._check(SessionState.STOPPED, "stop")
        self._stopping = True
        try:
            await self.capturer.stop()
            self._bank_elapsed()
            await self.pipeline.drain()
        finally:
            self._stopping = False
        if self.state is not SessionState.ERROR:
            self._move(SessionState.STOPPED)
        self.logger.add(
            f"Session stopped after {self.duration:.1f}s with {len(self.accumulator)} segments"
        )

    def switch_speaker(self, speaker: Speaker | None) -> None:
        if self._stopping or not self.active:
            raise InvalidTransition(self.state_label, "switch speaker")
        if self.mode is RecordingMode.TRANSCRIPT and speaker is None:
            raise SpeakerRequired("Transcript mode needs an active speaker")
        self.capturer.flush_and_switch(speaker)

    def _check(self, target: SessionState, action: str) -> None:
        if self._stopping or target not in TRANSITIONS[self.state]:
            raise InvalidTransition(self.state_label, action)

    def _move(self, target: SessionState) -> None:
        if target not in TRANSITIONS[self.state]:
            raise InvalidTransition(self.state.value, target.value)
        self.state = target

    @property
    def state_label(self) -> str:
        return "stopping" if self._stopping else self.state.value

    def _bank_elapsed(self) -> None:
        if self._running_since is not None:
            self._elapsed += time.monotonic() - self._running_since
            self._running_since = None

    def _emit_status(self, status: PipelineStatus) -> None:
        self._publish(StatusChanged(status))

    def _publish(self, event: Event) -> None:
        if isinstance(event, SegmentReady):
            self.accumulator.append(event.segment)
        elif isinstance(event, StatusChanged):
            # An errored session keeps reporting ERROR while queued jobs drain.
            if self.status is PipelineStatus.ERROR and event.status is not PipelineStatus.ERROR:
                return
            self.status = event.status
        self._publish_out(event)

    def _on_interrupted(self, exc: CaptureInterrupted) -> None:
        if not self.active:
            return
        self._bank_elapsed()
        self._move(SessionState.ERROR)
        self._publish(ChunkFailure(FailureReason.CAPTURE_INTERRUPTED, str(exc)))
        self._emit_status(PipelineStatus.ERROR)


__all__ = ["RecordingMode", "Session", "SessionState", "TRANSITIONS"]
