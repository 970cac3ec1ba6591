import asyncio

import pytest

from livecaption.audio.silence import SilenceDetector
from livecaption.events import ChunkFailure, FailureReason, PipelineStatus, SegmentReady, StatusChanged
from livecaption.pipeline.jobs import TranslationStatus
from livecaption.pipeline.pipeline import TranscriptionPipeline
from livecaption.services.logger import LogBuffer
from fakes import EventLog, FlightTracker, StubTranscriber, StubTranslator, make_chunk, silence


def _run(chunks, transcriber, translator=None, **kwargs):
    events = EventLog()

    async def scenario():
        pipeline = TranscriptionPipeline(transcriber, translator, events, LogBuffer(), **kwargs)
        pipeline.start()
        for chunk in chunks:
            pipeline.submit(chunk)
        await pipeline.drain()
        return pipeline

    pipeline = asyncio.run(scenario())
    return events, pipeline


def _segments(events):
    return [event.segment for event in events.of(SegmentReady)]


def test_inverted_latencies_keep_chunk_order():
    delays = [0.05, 0.04, 0.03, 0.02, 0.01]
    transcriber = StubTranscriber(delays=delays)
    events, _ = _run([make_chunk(n) for n in range(1, 6)], transcriber)
    segments = _segments(events)
    assert [s.sequence for s in segments] == [1, 2, 3, 4, 5]
    assert [s.text for s in segments] == ["text 1", "text 2", "text 3", "text 4", "text 5"]


def test_single_flight_across_transcribe_and_translate():
    tracker = FlightTracker()
    transcriber = StubTranscriber(delay=0.01, tracker=tracker)
    translator = StubTranslator(delay=0.01, tracker=tracker)
    events, _ = _run(
        [make_chunk(n) for n in range(1, 5)],
        transcriber,
        translator,
        target_language="es",
    )
    assert tracker.max_in_flight == 1
    assert len(_segments(events)) == 4


def test_silent_chunk_never_calls_transcriber():
    transcriber = StubTranscriber()
    events, _ = _run([make_chunk(1, silence(0.5)), make_chunk(2)], transcriber)
    assert len(transcriber.calls) == 1
    failures = events.of(ChunkFailure)
    assert [(f.reason, f.sequence) for f in failures] == [(FailureReason.SILENT_CHUNK, 1)]
    assert [s.sequence for s in _segments(events)] == [2]


def test_failure_is_isolated_to_its_chunk():
    transcriber = StubTranscriber(fail_on={2})
    events, pipeline = _run([make_chunk(1), make_chunk(2), make_chunk(3)], transcriber)
    assert [s.sequence for s in _segments(events)] == [1, 3]
    failures = events.of(ChunkFailure)
    assert len(failures) == 1
    assert failures[0].reason is FailureReason.TRANSCRIPTION_FAILED
    assert failures[0].sequence == 2
    assert failures[0].fatal is False
    assert pipeline.pending == 0


class _RaisesOnSecondCall:
    """Transcriber whose second call blows up before returning an awaitable."""

    def __init__(self) -> None:
        self.stub = StubTranscriber()
        self.calls = 0

    def transcribe(self, audio, language="auto"):
        self.calls += 1
        if self.calls == 2:
            raise RuntimeError("boom")
        return self.stub.transcribe(audio, language)


def test_provider_raising_on_call_does_not_stop_the_cursor():
    events, pipeline = _run([make_chunk(1), make_chunk(2), make_chunk(3)], _RaisesOnSecondCall())
    assert [s.sequence for s in _segments(events)] == [1, 3]
    failure = events.of(ChunkFailure)[0]
    assert failure.sequence == 2
    assert "boom" in failure.message
    assert pipeline.pending == 0


def test_unexpected_detector_error_fails_only_that_job():
    class BrokenDetector(SilenceDetector):
        def is_silent(self, chunk):
            if chunk.sequence == 1:
                raise LookupError("bad frame")
            return False

    events, _ = _run([make_chunk(1), make_chunk(2)], StubTranscriber(), detector=BrokenDetector())
    assert [s.sequence for s in _segments(events)] == [2]
    failure = events.of(ChunkFailure)[0]
    assert failure.reason is FailureReason.TRANSCRIPTION_FAILED
    assert failure.sequence == 1


def test_blank_transcription_is_treated_as_silence():
    transcriber = StubTranscriber(texts=["   ", "hello"])
    events, _ = _run([make_chunk(1), make_chunk(2)], transcriber)
    assert [s.text for s in _segments(events)] == ["hello"]
    assert events.of(ChunkFailure)[0].reason is FailureReason.SILENT_CHUNK


def test_translation_failure_still_emits_segment():
    translator = StubTranslator(fail=True)
    events, _ = _run(
        [make_chunk(1, language="ht")], StubTranscriber(["Bonjou"]), translator, target_language="en"
    )
    (segment,) = _segments(events)
    assert segment.text == "Bonjou"
    assert segment.translated_text is None
    assert segment.target_language is None
    assert segment.translation_status is TranslationStatus.FAILED
    assert events.of(ChunkFailure)[0].reason is FailureReason.TRANSLATION_FAILED


def test_translation_statuses():
    translator = StubTranslator()
    events, _ = _run([make_chunk(1, language="en")], StubTranscriber(["hi"]), translator, target_language="es")
    (segment,) = _segments(events)
    assert segment.translation_status is TranslationStatus.TRANSLATED
    assert segment.translated_text == "es:hi"
    assert segment.target_language == "es"
    assert translator.calls == [("hi", "en", "es")]

    events, _ = _run([make_chunk(1, language="es")], StubTranscriber(["hola"]), translator, target_language="es")
    assert _segments(events)[0].translation_status is TranslationStatus.SAME_LANGUAGE

    events, _ = _run([make_chunk(1)], StubTranscriber(["hi"]), None)
    assert _segments(events)[0].translation_status is TranslationStatus.DISABLED


def test_empty_translation_counts_as_failure():
    events, _ = _run([make_chunk(1)], StubTranscriber(["hi"]), StubTranslator(result=""), target_language="fr")
    assert _segments(events)[0].translation_status is TranslationStatus.FAILED


def test_provider_timeout_fails_the_job():
    transcriber = StubTranscriber(delays=[0.5, 0.0])
    events, _ = _run([make_chunk(1), make_chunk(2)], transcriber, provider_timeout=0.05)
    assert [s.sequence for s in _segments(events)] == [2]
    failure = events.of(ChunkFailure)[0]
    assert failure.reason is FailureReason.TRANSCRIPTION_FAILED
    assert "timed out" in failure.message


def test_status_events_end_idle():
    events, _ = _run([make_chunk(1)], StubTranscriber())
    statuses = [event.status for event in events.of(StatusChanged)]
    assert statuses[0] is PipelineStatus.PROCESSING
    assert statuses[-1] is PipelineStatus.IDLE
    assert statuses.count(PipelineStatus.IDLE) == 1


def test_submit_after_close_is_rejected():
    async def scenario():
        pipeline = TranscriptionPipeline(StubTranscriber(), None, EventLog(), LogBuffer())
        pipeline.close()
        with pytest.raises(RuntimeError):
            pipeline.submit(make_chunk(1))
        await pipeline.drain()

    asyncio.run(scenario())


def test_custom_detector_threshold():
    transcriber = StubTranscriber()
    detector = SilenceDetector(threshold=0.9)
    events, _ = _run([make_chunk(1)], transcriber, detector=detector)
    assert transcriber.calls == []
    assert events.of(ChunkFailure)[0].reason is FailureReason.SILENT_CHUNK
