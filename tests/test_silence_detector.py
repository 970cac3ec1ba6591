import io

import numpy as np
import soundfile as sf

from livecaption.audio.silence import SilenceDetector
from fakes import SAMPLE_RATE, make_chunk, silence, tone


def test_zero_signal_is_silent():
    detector = SilenceDetector(threshold=0.01)
    assert detector.is_silent(make_chunk(1, silence(0.5))) is True


def test_tone_is_not_silent():
    detector = SilenceDetector(threshold=0.01)
    assert detector.is_silent(make_chunk(1, tone(0.5, amplitude=0.2))) is False


def test_threshold_boundary_is_speech():
    # Constant signal: RMS equals the normalized amplitude exactly.
    samples = np.full(1600, 328, dtype=np.int16)
    detector = SilenceDetector()
    rms = detector.loudness(samples)
    detector.set_threshold(rms)
    assert detector.is_silent(make_chunk(1, samples)) is False
    detector.set_threshold(rms + 1e-6)
    assert detector.is_silent(make_chunk(1, samples)) is True


def test_float_payload_is_used_as_is():
    detector = SilenceDetector()
    samples = np.full(100, 0.5, dtype=np.float32)
    assert abs(detector.loudness(samples) - 0.5) < 1e-6


def test_encoded_bytes_are_decoded():
    buffer = io.BytesIO()
    sf.write(buffer, tone(0.25), SAMPLE_RATE, format="FLAC", subtype="PCM_16")
    chunk = make_chunk(1, buffer.getvalue())
    assert SilenceDetector().is_silent(chunk) is False


def test_undecodable_payload_is_not_silent():
    chunk = make_chunk(1, b"definitely not audio")
    assert SilenceDetector().is_silent(chunk) is False


def test_empty_payload_is_silent():
    assert SilenceDetector().is_silent(make_chunk(1, np.zeros(0, dtype=np.int16))) is True
