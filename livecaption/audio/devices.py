"""Audio input devices and the microphone ownership token."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, Optional, Protocol

import numpy as np
import soundfile as sf

from ..errors import (
    CaptureError,
    CaptureInterrupted,
    DeviceBusy,
    DeviceUnavailable,
    PermissionDenied,
)

LOGGER = logging.getLogger("livecaption.devices")

AudioCallback = Callable[[np.ndarray], None]
ErrorCallback = Callable[[CaptureError], None]


class AudioInput(Protocol):
    def open(self, on_audio: AudioCallback, on_error: ErrorCallback) -> None: ...

    def close(self) -> None: ...


class DeviceToken:
    """Exclusive claim on an input device, held by one capturer at a time."""

    def __init__(self, name: str = "default") -> None:
        self.name = name
        self._owner: object | None = None

    @property
    def held(self) -> bool:
        return self._owner is not None

    def acquire(self, owner: object) -> None:
        if self._owner is not None and self._owner is not owner:
            raise DeviceBusy(f"Input device '{self.name}' is already in use")
        self._owner = owner

    def release(self, owner: object) -> None:
        if self._owner is owner:
            self._owner = None


class SoundDeviceInput:
    """Live microphone input through a PortAudio stream."""

    def __init__(
        self,
        sample_rate: int,
        channels: int = 1,
        *,
        device: int | str | None = None,
        blocksize: int = 1024,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.device = device
        self.blocksize = blocksize
        self._stream = None
        self._closing = False
        self._on_audio: Optional[AudioCallback] = None
        self._on_error: Optional[ErrorCallback] = None

    def open(self, on_audio: AudioCallback, on_error: ErrorCallback) -> None:
        try:
            import sounddevice as sd
        except OSError as exc:
            raise DeviceUnavailable(f"PortAudio library not available: {exc}") from exc

        try:
            sd.query_devices(self.device, kind="input")
        except (ValueError, sd.PortAudioError) as exc:
            raise DeviceUnavailable(f"No input device found: {exc}") from exc

        self._on_audio = on_audio
        self._on_error = on_error
        self._closing = False
        try:
            stream = sd.InputStream(
                device=self.device,
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="int16",
                blocksize=self.blocksize,
                callback=self._callback,
                finished_callback=self._finished,
            )
            stream.start()
        except sd.PortAudioError as exc:
            raise _classify_portaudio_error(exc) from exc
        self._stream = stream

    def close(self) -> None:
        self._closing = True
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
        finally:
            stream.close()

    def _callback(self, indata, frames, time_info, status) -> None:  # noqa: ARG002
        if status:
            LOGGER.debug("Input stream status: %s", status)
        if self._on_audio:
            self._on_audio(np.array(indata[:, 0], dtype=np.int16, copy=True))

    def _finished(self) -> None:
        if not self._closing and self._on_error:
            self._on_error(CaptureInterrupted("Input stream ended unexpectedly"))


class ArrayInput:
    """Replays a waveform in real-time blocks, standing in for a microphone."""

    def __init__(
        self,
        samples: np.ndarray,
        sample_rate: int,
        *,
        block_seconds: float = 0.02,
        realtime: bool = True,
    ) -> None:
        data = np.asarray(samples)
        if data.ndim > 1:
            data = data[:, 0]
        if np.issubdtype(data.dtype, np.floating):
            data = (np.clip(data, -1.0, 1.0) * 32767).astype(np.int16)
        self.samples = data.astype(np.int16, copy=False)
        self.sample_rate = sample_rate
        self.block_seconds = block_seconds
        self.realtime = realtime
        self._task: asyncio.Task | None = None

    @classmethod
    def from_file(cls, path: Path | str, **kwargs) -> "ArrayInput":
        data, sample_rate = sf.read(str(path), dtype="int16", always_2d=True)
        return cls(data[:, 0], sample_rate, **kwargs)

    @property
    def finished(self) -> bool:
        return self._task is not None and self._task.done()

    def open(self, on_audio: AudioCallback, on_error: ErrorCallback) -> None:  # noqa: ARG002
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._pump(on_audio))

    def close(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _pump(self, on_audio: AudioCallback) -> None:
        block = max(1, int(self.sample_rate * self.block_seconds))
        for offset in range(0, len(self.samples), block):
            on_audio(self.samples[offset : offset + block].copy())
            await asyncio.sleep(self.block_seconds if self.realtime else 0)


def _classify_portaudio_error(exc: Exception) -> CaptureError:
    message = str(exc)
    lowered = message.lower()
    if "permission" in lowered or "not permitted" in lowered or "access denied" in lowered:
        return PermissionDenied(message)
    if "busy" in lowered or "in use" in lowered or "unavailable" in lowered:
        return DeviceBusy(message)
    return DeviceUnavailable(message)


__all__ = ["ArrayInput", "AudioInput", "DeviceToken", "SoundDeviceInput"]
