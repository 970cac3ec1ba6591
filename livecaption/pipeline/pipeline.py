"""Single-consumer queue that turns chunks into ordered transcript segments."""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Optional

from ..audio.silence import SilenceDetector
from ..audio.types import AudioChunk
from ..errors import ProviderError, TranscriptionFailed, TranslationFailed
from ..events import (
    ChunkFailure,
    Event,
    FailureReason,
    PipelineStatus,
    SegmentReady,
    StatusChanged,
)
from ..services.logger import LogBuffer
from ..services.metrics import PIPELINE_JOBS, PROVIDER_LATENCY, QUEUE_DEPTH
from .jobs import JobState, PipelineJob, TranscriptSegment, TranslationStatus
from .providers import Transcriber, Translator

_CLOSED = None


class TranscriptionPipeline:
    """Processes one job at a time, in submission order.

    Each job's result is published the moment the job finishes, so segment
    order always equals chunk order. A failing job is reported and skipped.
    """

    def __init__(
        self,
        transcriber: Transcriber,
        translator: Translator | None,
        publish: Callable[[Event], None],
        logger: LogBuffer,
        *,
        detector: SilenceDetector | None = None,
        target_language: str | None = None,
        provider_timeout: float | None = 30.0,
        upload_format: str = "FLAC",
    ) -> None:
        self.transcriber = transcriber
        self.translator = translator
        self.publish = publish
        self.logger = logger
        self.detector = detector or SilenceDetector()
        self.target_language = target_language or None
        self.provider_timeout = provider_timeout
        self.upload_format = upload_format
        self._queue: asyncio.Queue[Optional[PipelineJob]] = asyncio.Queue()
        self._task: asyncio.Task | None = None
        self._closed = False
        self._current: PipelineJob | None = None
        self._pending = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Jobs submitted and not yet finished."""
        return self._pending

    @property
    def current(self) -> PipelineJob | None:
        return self._current

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._run())

    def submit(self, chunk: AudioChunk) -> PipelineJob:
        if self._closed:
            raise RuntimeError("Pipeline is closed; no further chunks accepted")
        job = PipelineJob(chunk=chunk, target_language=self.target_language)
        self._queue.put_nowait(job)
        self._pending += 1
        QUEUE_DEPTH.inc()
        return job

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    async def drain(self) -> None:
        self.close()
        if self._task is None:
            self.start()
        assert self._task is not None
        await asyncio.shield(self._task)

    async def _run(self) -> None:
        while True:
            job = await self._queue.get()
            if job is _CLOSED:
                break
            self._current = job
            try:
                await self._process(job)
            except Exception as exc:
                self._fail(job, TranscriptionFailed(f"unexpected error: {exc}"))
            finally:
                self._current = None
                self._pending -= 1
                QUEUE_DEPTH.dec()
            if self._queue.empty() and not self._closed:
                self.publish(StatusChanged(PipelineStatus.RECORDING))
        self.publish(StatusChanged(PipelineStatus.IDLE))

    async def _process(self, job: PipelineJob) -> None:
        chunk = job.chunk
        self.publish(StatusChanged(PipelineStatus.PROCESSING))

        job.state = JobState.CHECKING_SILENCE
        if self.detector.is_silent(chunk):
            self._skip(job, "silence detected")
            return

        job.state = JobState.TRANSCRIBING
        try:
            audio = chunk.encode(self.upload_format)
        except (RuntimeError, TypeError, ValueError) as exc:
            self._fail(job, TranscriptionFailed(f"could not encode chunk: {exc}"))
            return
        try:
            text = await self._call(
                "transcribe",
                lambda: self.transcriber.transcribe(audio, chunk.language),
                TranscriptionFailed,
            )
        except ProviderError as exc:
            self._fail(job, exc)
            return
        text = (text or "").strip()
        if not text:
            self._skip(job, "no speech in transcription")
            return

        translated, status = await self._translate(job, text)
        segment = TranscriptSegment(
            sequence=chunk.sequence,
            speaker=chunk.speaker,
            text=text,
            language=chunk.language,
            timestamp=chunk.started_at,
            ended_at=chunk.ended_at,
            translated_text=translated,
            target_language=job.target_language if translated else None,
            translation_status=status,
        )
        job.state = JobState.DONE
        PIPELINE_JOBS.labels(outcome="segment").inc()
        self.logger.add(f"Chunk {chunk.sequence}: {text[:60]}")
        self.publish(SegmentReady(segment))

    async def _translate(self, job: PipelineJob, text: str) -> tuple[Optional[str], TranslationStatus]:
        target = job.target_language
        if not target or self.translator is None:
            return None, TranslationStatus.DISABLED
        source = job.chunk.language
        if target == source:
            return None, TranslationStatus.SAME_LANGUAGE
        job.state = JobState.TRANSLATING
        try:
            translated = await self._call(
                "translate",
                lambda: self.translator.translate(text, source, target),
                TranslationFailed,
            )
        except ProviderError as exc:
            self._report(job, FailureReason.TRANSLATION_FAILED, str(exc))
            return None, TranslationStatus.FAILED
        translated = (translated or "").strip()
        if not translated:
            self._report(job, FailureReason.TRANSLATION_FAILED, "empty translation")
            return None, TranslationStatus.FAILED
        return translated, TranslationStatus.TRANSLATED

    async def _call(
        self,
        operation: str,
        factory: Callable[[], Awaitable[str]],
        failure: type[ProviderError],
    ):
        start = time.perf_counter()
        try:
            if self.provider_timeout:
                return await asyncio.wait_for(factory(), timeout=self.provider_timeout)
            return await factory()
        except ProviderError:
            raise
        except asyncio.TimeoutError as exc:
            raise failure(f"{operation} timed out after {self.provider_timeout:g}s") from exc
        except Exception as exc:
            raise failure(f"{operation} error: {exc}") from exc
        finally:
            PROVIDER_LATENCY.labels(operation=operation).observe(time.perf_counter() - start)

    def _skip(self, job: PipelineJob, why: str) -> None:
        job.state = JobState.DONE
        PIPELINE_JOBS.labels(outcome="silent").inc()
        self.logger.add(f"Chunk {job.sequence} skipped: {why}")
        self.publish(ChunkFailure(FailureReason.SILENT_CHUNK, why, job.sequence))

    def _fail(self, job: PipelineJob, exc: ProviderError) -> None:
        job.state = JobState.FAILED
        job.error = str(exc)
        PIPELINE_JOBS.labels(outcome="failed").inc()
        self._report(job, FailureReason.TRANSCRIPTION_FAILED, str(exc))

    def _report(self, job: PipelineJob, reason: FailureReason, message: str) -> None:
        self.logger.warning(f"Chunk {job.sequence} {reason.value}: {message}")
        self.publish(ChunkFailure(reason, message, job.sequence))


__all__ = ["TranscriptionPipeline"]
