"""Continuous microphone capture split into gap-free chunks."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, List, Optional, Protocol

import numpy as np

from ..errors import CaptureError, CaptureInterrupted
from ..services.logger import LogBuffer
from ..services.metrics import CHUNKS_FINALIZED
from .devices import AudioInput, DeviceToken
from .types import AudioChunk, ChunkReason

if TYPE_CHECKING:
    from ..speakers.registry import Speaker


class ChunkSink(Protocol):
    def submit(self, chunk: AudioChunk) -> object: ...

    def close(self) -> None: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChunkCapturer:
    """Buffers device audio and finalizes it into chunks on a timer or on demand.

    Finalizing swaps in a fresh buffer before the chunk is handed to the sink,
    so the next chunk starts recording regardless of downstream latency.
    """

    def __init__(
        self,
        device: AudioInput,
        token: DeviceToken,
        sink: ChunkSink,
        logger: LogBuffer,
        *,
        chunk_seconds: float,
        sample_rate: int,
        language: str = "auto",
        on_interrupted: Callable[[CaptureInterrupted], None] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if chunk_seconds <= 0:
            raise ValueError("chunk_seconds must be positive")
        self.device = device
        self.token = token
        self.sink = sink
        self.logger = logger
        self.chunk_seconds = float(chunk_seconds)
        self.sample_rate = sample_rate
        self.language = language
        self.on_interrupted = on_interrupted
        self.clock = clock
        self._loop: asyncio.AbstractEventLoop | None = None
        self._buffer: List[np.ndarray] = []
        self._buffer_started: datetime | None = None
        self._speaker: "Speaker | None" = None
        self._sequence = 0
        self._active = False
        self._paused = False
        self._timer: asyncio.TimerHandle | None = None
        self._deadline = 0.0
        self._remaining: float | None = None
        self._paused_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def speaker(self) -> "Speaker | None":
        return self._speaker

    @property
    def buffered_samples(self) -> int:
        return sum(len(block) for block in self._buffer)

    @property
    def chunks_finalized(self) -> int:
        return self._sequence

    def start(self, speaker: "Speaker | None" = None) -> None:
        if self._active:
            return
        self._loop = asyncio.get_running_loop()
        self.token.acquire(self)
        try:
            self.device.open(self._on_audio, self._on_device_error)
        except CaptureError as exc:
            self.token.release(self)
            self.logger.error(f"Microphone unavailable: {exc}")
            raise
        self._speaker = speaker
        self._buffer = []
        self._buffer_started = self.clock()
        self._active = True
        self._paused = False
        self._paused_at = None
        self._schedule(self.chunk_seconds)
        self.logger.add(f"Recording started ({self.chunk_seconds:g}s chunks)")

    def on_chunk_boundary(self, reason: ChunkReason = ChunkReason.TIMER) -> Optional[AudioChunk]:
        chunk = self._finalize(reason)
        if chunk is not None:
            self.sink.submit(chunk)
        return chunk

    def flush_and_switch(self, speaker: "Speaker | None") -> Optional[AudioChunk]:
        if not self._active:
            self._speaker = speaker
            return None
        chunk = self.on_chunk_boundary(ChunkReason.SWITCH)
        self._speaker = speaker
        if not self._paused:
            self._schedule(self.chunk_seconds)
        else:
            self._remaining = self.chunk_seconds
        label = speaker.label if speaker else "none"
        self.logger.add(f"Speaker switched to {label}")
        return chunk

    def pause(self) -> None:
        if not self._active or self._paused:
            return
        loop = self._loop
        self._remaining = max(0.0, self._deadline - loop.time()) if loop else self.chunk_seconds
        self._cancel_timer()
        self._paused = True
        self._paused_at = self.clock()
        self.logger.add("Recording paused")

    def resume(self) -> None:
        if not self._active or not self._paused:
            return
        self._paused = False
        # Paused time is not part of the buffered chunk.
        if self._paused_at is not None and self._buffer_started is not None:
            self._buffer_started += self.clock() - self._paused_at
        self._paused_at = None
        remaining = self._remaining if self._remaining is not None else self.chunk_seconds
        self._remaining = None
        self._schedule(remaining)
        self.logger.add("Recording resumed")

    async def stop(self) -> Optional[AudioChunk]:
        if not self._active:
            return None
        self._cancel_timer()
        self.device.close()
        # Let blocks already handed over by the device land in the buffer.
        await asyncio.sleep(0)
        self._active = False
        self._paused = False
        chunk = self._finalize(ChunkReason.STOP)
        self._paused_at = None
        if chunk is not None:
            self.sink.submit(chunk)
        self.token.release(self)
        self.sink.close()
        self.logger.add("Recording stopped")
        return chunk

    def _schedule(self, delay: float) -> None:
        self._cancel_timer()
        assert self._loop is not None
        self._deadline = self._loop.time() + delay
        self._timer = self._loop.call_later(delay, self._on_timer)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self) -> None:
        self._timer = None
        if not self._active or self._paused:
            return
        self.on_chunk_boundary(ChunkReason.TIMER)
        assert self._loop is not None
        # Next deadline follows the previous deadline, not the fire time.
        self._deadline += self.chunk_seconds
        self._timer = self._loop.call_at(self._deadline, self._on_timer)

    def _on_audio(self, block: np.ndarray) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._append, block)

    def _append(self, block: np.ndarray) -> None:
        if not self._active or self._paused:
            return
        data = np.asarray(block)
        if data.ndim > 1:
            data = data[:, 0]
        if data.size:
            self._buffer.append(data.astype(np.int16, copy=False))

    def _finalize(self, reason: ChunkReason) -> Optional[AudioChunk]:
        blocks = self._buffer
        started = self._buffer_started or self.clock()
        ended = self._paused_at or self.clock()
        self._buffer = []
        self._buffer_started = ended
        if not blocks:
            self.logger.add(f"Empty buffer at {reason.value} boundary; no chunk")
            return None
        pcm = np.concatenate(blocks)
        self._sequence += 1
        chunk = AudioChunk(
            sequence=self._sequence,
            payload=pcm,
            sample_rate=self.sample_rate,
            started_at=started,
            ended_at=ended,
            speaker=self._speaker,
            language=self.language,
            reason=reason,
        )
        CHUNKS_FINALIZED.labels(reason=reason.value).inc()
        self.logger.add(f"Chunk {chunk.sequence} finalized ({chunk.duration:.1f}s, {reason.value})")
        return chunk

    def _on_device_error(self, error: CaptureError) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._interrupt, error)

    def _interrupt(self, error: CaptureError) -> None:
        if not self._active:
            return
        self._cancel_timer()
        self._active = False
        self._paused = False
        self._paused_at = None
        dropped = self.buffered_samples
        self._buffer = []
        try:
            self.device.close()
        except Exception as exc:
            self.logger.warning(f"Device close after interruption failed: {exc}")
        self.token.release(self)
        self.sink.close()
        self.logger.error(f"Capture interrupted: {error} ({dropped} samples discarded)")
        interrupted = error if isinstance(error, CaptureInterrupted) else CaptureInterrupted(str(error))
        if self.on_interrupted:
            self.on_interrupted(interrupted)


__all__ = ["ChunkCapturer", "ChunkSink"]
