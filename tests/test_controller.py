import asyncio

import pytest

from livecaption.config import CaptionSettings
from livecaption.controller import LiveCaptionController, build_providers
from livecaption.errors import DeviceBusy, InvalidTransition, SpeakerRequired
from livecaption.events import SegmentReady
from livecaption.services.network import ApiClient
from livecaption.services.openai_provider import OpenAIProvider
from livecaption.session import RecordingMode, SessionState
from livecaption.store.settings_store import SettingsStore
from fakes import EventLog, FakeMicrophone, StubTranscriber, StubTranslator, settle, tone


def _settings(tmp_path, **overrides):
    return CaptionSettings(data_dir=str(tmp_path), caption_chunk_seconds=60, transcript_chunk_seconds=60, **overrides)


def _controller(tmp_path, mic=None, **kwargs):
    mic = mic or FakeMicrophone()
    controller = LiveCaptionController(
        _settings(tmp_path),
        device_factory=lambda: mic,
        transcriber=kwargs.pop("transcriber", StubTranscriber()),
        translator=kwargs.pop("translator", None),
        **kwargs,
    )
    return controller, mic


def test_caption_session_feeds_transcript_and_captions(tmp_path):
    controller, mic = _controller(tmp_path)
    events = EventLog()
    controller.subscribe(events)

    async def scenario():
        controller.start(RecordingMode.CAPTIONS, language="en")
        assert controller.state is SessionState.RECORDING
        mic.emit(tone(0.2))
        await settle()
        await controller.stop()
        await controller.close()

    asyncio.run(scenario())
    assert controller.state is SessionState.STOPPED
    assert len(events.of(SegmentReady)) == 1
    assert [line.segment.text for line in controller.captions()] == ["text 1"]
    exported = controller.export_transcript()
    assert exported.startswith("# Conversation Transcript")
    assert "text 1" in exported


def test_only_one_session_at_a_time(tmp_path):
    controller, _ = _controller(tmp_path)

    async def scenario():
        controller.start()
        with pytest.raises(InvalidTransition):
            controller.start()
        await controller.stop()
        controller.start()
        await controller.stop()

    asyncio.run(scenario())


def test_shared_token_blocks_second_controller(tmp_path):
    first, _ = _controller(tmp_path)
    second, _ = _controller(tmp_path, token=first.token)

    async def scenario():
        first.start()
        with pytest.raises(DeviceBusy):
            second.start()
        await first.stop()

    asyncio.run(scenario())


def test_transcript_mode_needs_a_speaker(tmp_path):
    controller, _ = _controller(tmp_path)

    async def scenario():
        with pytest.raises(SpeakerRequired):
            controller.start(RecordingMode.TRANSCRIPT)
        speaker = controller.add_speaker("Host")
        controller.start(RecordingMode.TRANSCRIPT)
        assert controller.session.capturer.speaker is speaker
        await controller.stop()

    asyncio.run(scenario())


def test_switch_and_rename_during_transcript(tmp_path):
    controller, mic = _controller(tmp_path)
    host = controller.add_speaker("Host")
    guest = controller.add_speaker()

    async def scenario():
        controller.start("transcript")
        mic.emit(tone(0.1))
        await settle()
        controller.switch_speaker(guest.id)
        mic.emit(tone(0.1))
        await settle()
        await controller.stop()

    asyncio.run(scenario())
    controller.rename_speaker(guest.id, "Guest")
    segments = controller.transcript.segments
    assert [s.speaker_label for s in segments] == ["Host", "Guest"]
    assert controller.registry.active is guest
    assert controller.captions() == []
    assert host.label == "Host"


def test_next_speaker_cycles_mid_session(tmp_path):
    controller, mic = _controller(tmp_path)
    a = controller.add_speaker("A")
    b = controller.add_speaker("B")

    async def scenario():
        controller.start("transcript")
        mic.emit(tone(0.1))
        await settle()
        assert controller.next_speaker() is b
        mic.emit(tone(0.1))
        await settle()
        assert controller.next_speaker() is a
        await controller.stop()

    asyncio.run(scenario())
    assert controller.session.capturer.chunks_finalized == 2


def test_clear_transcript_rejected_while_running(tmp_path):
    controller, mic = _controller(tmp_path)

    async def scenario():
        controller.start()
        mic.emit(tone(0.1))
        await settle()
        with pytest.raises(InvalidTransition):
            controller.clear_transcript()
        await controller.stop()

    asyncio.run(scenario())
    assert len(controller.transcript) == 1
    controller.clear_transcript()
    assert len(controller.transcript) == 0
    assert controller.state is SessionState.IDLE


def test_new_session_waits_for_errored_session_to_drain(tmp_path):
    controller, mic = _controller(tmp_path, transcriber=StubTranscriber(delay=0.2))

    async def scenario():
        old = controller.start(RecordingMode.CAPTIONS, language="en")
        mic.emit(tone(0.1))
        await settle()
        old.capturer.on_chunk_boundary()
        mic.emit(tone(0.1))
        await settle()
        old.capturer.on_chunk_boundary()
        mic.fail()
        await settle()
        assert controller.state is SessionState.ERROR
        with pytest.raises(InvalidTransition):
            controller.start(RecordingMode.CAPTIONS, language="en")
        with pytest.raises(InvalidTransition):
            controller.clear_transcript()

        await old.pipeline.drain()
        assert [s.sequence for s in controller.transcript] == [1, 2]

        new = controller.start(RecordingMode.CAPTIONS, language="en")
        assert controller.captions() == []
        await controller.stop()
        await controller.close()
        return old, new

    old, new = asyncio.run(scenario())
    assert len(old.accumulator) == 2
    assert len(new.accumulator) == 0
    assert controller.captions() == []


def test_target_language_from_settings_store(tmp_path):
    store = SettingsStore(tmp_path / "settings.json")
    store.update(source_language="ht", target_language="en")
    translator = StubTranslator()
    controller = LiveCaptionController(
        _settings(tmp_path),
        store=store,
        device_factory=FakeMicrophone,
        transcriber=StubTranscriber(["Bonjou"]),
        translator=translator,
    )

    async def scenario():
        session = controller.start()
        session.capturer.device.emit(tone(0.1))
        await settle()
        await controller.stop()

    asyncio.run(scenario())
    (segment,) = controller.transcript.segments
    assert segment.translated_text == "en:Bonjou"
    assert translator.calls == [("Bonjou", "ht", "en")]


def test_unsupported_language_is_rejected(tmp_path):
    controller, _ = _controller(tmp_path)

    async def scenario():
        with pytest.raises(ValueError):
            controller.start(language="xx")

    asyncio.run(scenario())


def test_build_providers(tmp_path):
    store = SettingsStore(tmp_path / "settings.json")
    transcriber, translator, closer = build_providers(
        _settings(tmp_path, provider="server", server_url="https://env.example.com"), store
    )
    assert isinstance(transcriber, ApiClient)
    assert transcriber.server_url == "https://env.example.com"
    assert translator is transcriber
    asyncio.run(closer())

    transcriber, _, closer = build_providers(
        _settings(tmp_path, provider="openai", openai_api_key="sk-test"), store
    )
    assert isinstance(transcriber, OpenAIProvider)
    asyncio.run(closer())

    with pytest.raises(ValueError):
        build_providers(_settings(tmp_path, provider="carrier-pigeon"), store)
