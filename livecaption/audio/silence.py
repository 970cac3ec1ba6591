"""RMS loudness estimate used to skip silent chunks before transcription."""

from __future__ import annotations

import io
import logging

import numpy as np
import soundfile as sf

from .types import AudioChunk, AudioPayload

LOGGER = logging.getLogger("livecaption.silence")


class SilenceDetector:
    """Classifies a chunk as silent when its RMS falls below ``threshold``."""

    def __init__(self, threshold: float = 0.01) -> None:
        self.threshold = max(0.0, float(threshold))

    def loudness(self, payload: AudioPayload) -> float:
        samples = self._decode(payload)
        if samples.size == 0:
            return 0.0
        return float(np.sqrt(np.mean(np.square(samples, dtype=np.float64))))

    def is_silent(self, chunk: AudioChunk) -> bool:
        try:
            rms = self.loudness(chunk.payload)
        except (RuntimeError, TypeError, ValueError) as exc:
            # Undecodable audio still goes to the transcriber.
            LOGGER.warning("Chunk %s could not be analyzed: %s", chunk.sequence, exc)
            return False
        LOGGER.debug("Chunk %s loudness %.4f", chunk.sequence, rms)
        return rms < self.threshold

    def set_threshold(self, value: float) -> None:
        self.threshold = max(0.0, float(value))

    @staticmethod
    def _decode(payload: AudioPayload) -> np.ndarray:
        if isinstance(payload, (bytes, bytearray)):
            data, _ = sf.read(io.BytesIO(payload), dtype="float32", always_2d=True)
            return data[:, 0]
        data = np.asarray(payload)
        if data.ndim > 1:
            data = data[:, 0]
        if data.dtype == np.int16:
            return data.astype(np.float32) / 32768.0
        if np.issubdtype(data.dtype, np.floating):
            return data.astype(np.float32, copy=False)
        raise TypeError(f"Unsupported sample type {data.dtype}")


__all__ = ["SilenceDetector"]
