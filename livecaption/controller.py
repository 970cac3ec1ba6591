"""Control surface shared by the CLI and the HTTP API."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from . import languages
from .audio.devices import AudioInput, DeviceToken, SoundDeviceInput
from .audio.silence import SilenceDetector
from .captions.renderer import CaptionLine, CaptionRenderer
from .config import CaptionSettings, get_settings
from .errors import InvalidTransition, SpeakerRequired
from .events import Event, EventBus, PipelineStatus, SegmentReady, StatusChanged
from .pipeline.providers import Transcriber, Translator
from .services.logger import LogBuffer
from .services.network import ApiClient
from .services.openai_provider import OpenAIProvider
from .session import RecordingMode, Session, SessionState
from .speakers.registry import Speaker, SpeakerRegistry
from .store.settings_store import SettingsStore
from .store.transcript_store import TranscriptAccumulator

DeviceFactory = Callable[[], AudioInput]


def build_providers(
    settings: CaptionSettings, store: SettingsStore
) -> Tuple[Transcriber, Translator, Callable[[], Any]]:
    """Transcriber, translator and an async closer for the configured backend."""
    if settings.provider == "openai":
        provider = OpenAIProvider(
            settings.openai_api_key,
            transcribe_model=settings.openai_transcribe_model,
            translate_model=settings.openai_translate_model,
            upload_format=settings.upload_format,
        )
        return provider, provider, provider.aclose
    if settings.provider != "server":
        raise ValueError(f"Unknown provider: {settings.provider}")
    client = ApiClient(
        store,
        timeout=settings.provider_timeout,
        upload_format=settings.upload_format,
        server_url=settings.server_url,
        api_key=settings.api_key,
    )
    return client, client, client.aclose


class LiveCaptionController:
    """Holds the shared speaker registry, event bus, device token and caption renderer.

    At most one session is active at a time. The last session's transcript stays
    available for export until it is cleared or a new session starts.
    """

    def __init__(
        self,
        settings: CaptionSettings | None = None,
        *,
        store: SettingsStore | None = None,
        device_factory: DeviceFactory | None = None,
        transcriber: Transcriber | None = None,
        translator: Translator | None = None,
        logger: LogBuffer | None = None,
        registry: SpeakerRegistry | None = None,
        token: DeviceToken | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.store = store or SettingsStore(Path(self.settings.data_dir) / self.settings.settings_file)
        self.logger = logger or LogBuffer(history=self.settings.log_history)
        self.registry = registry or SpeakerRegistry()
        self.token = token or DeviceToken(self.settings.input_device or "default")
        self.bus = EventBus()
        self.renderer = CaptionRenderer(
            fade_start_ms=self.settings.fade_start_ms,
            fade_end_ms=self.settings.fade_end_ms,
            max_lines=self.store.get().max_captions or self.settings.max_captions,
            tick_ms=self.settings.caption_tick_ms,
        )
        self.device_factory = device_factory or self._default_device
        self._transcriber = transcriber
        self._translator = translator
        self._closer: Optional[Callable[[], Any]] = None
        self.status = PipelineStatus.IDLE
        self._session: Session | None = None
        self._transcript = TranscriptAccumulator()
        self._render_task: asyncio.Task | None = None
        self.bus.subscribe(self._on_event)

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def state(self) -> SessionState:
        return self._session.state if self._session else SessionState.IDLE

    @property
    def transcript(self) -> TranscriptAccumulator:
        return self._session.accumulator if self._session else self._transcript

    @property
    def running(self) -> bool:
        session = self._session
        return session is not None and (session.active or session.stopping)

    def subscribe(self, handler: Callable[[Event], None]) -> Callable[[], None]:
        return self.bus.subscribe(handler)

    def start(
        self,
        mode: RecordingMode | str = RecordingMode.CAPTIONS,
        speaker_id: str | None = None,
        language: str | None = None,
        target_language: str | None = None,
        *,
        chunk_seconds: float | None = None,
    ) -> Session:
        mode = RecordingMode(mode)
        self._require_idle("start")
        prefs = self.store.get()
        source = languages.validate(language or prefs.source_language or languages.AUTO)
        target = target_language if target_language is not None else prefs.target_language
        target = languages.validate(target, allow_auto=False) if target else None
        speaker = self.registry.get(speaker_id) if speaker_id else self.registry.active
        if mode is RecordingMode.TRANSCRIPT and speaker is None:
            raise SpeakerRequired("Add a speaker before starting transcript mode")
        transcriber, translator = self._providers()
        if chunk_seconds is None:
            chunk_seconds = (
                self.settings.caption_chunk_seconds
                if mode is RecordingMode.CAPTIONS
                else self.settings.transcript_chunk_seconds
            )
        session = Session(
            mode,
            device=self.device_factory(),
            token=self.token,
            transcriber=transcriber,
            translator=translator if target else None,
            publish=self.bus.publish,
            logger=self.logger,
            chunk_seconds=chunk_seconds,
            sample_rate=self.settings.sample_rate,
            language=source,
            target_language=target,
            detector=SilenceDetector(self.settings.silence_threshold),
            provider_timeout=self.settings.provider_timeout,
            upload_format=self.settings.upload_format,
        )
        session.start(speaker)
        if speaker is not None:
            self.registry.set_active_speaker(speaker.id)
        self._session = session
        self._stop_renderer()
        self.renderer.clear()
        if mode is RecordingMode.CAPTIONS:
            self._render_task = asyncio.get_running_loop().create_task(self.renderer.run())
        return session

    def pause(self) -> None:
        self._require_session("pause").pause()

    def resume(self) -> None:
        self._require_session("resume").resume()

    async def stop(self) -> Session:
        session = self._require_session("stop")
        try:
            await session.stop()
        finally:
            self._stop_renderer()
        self._transcript = session.accumulator
        return session

    def switch_speaker(self, speaker_id: str) -> Speaker:
        speaker = self.registry.get(speaker_id)
        if self.running:
            assert self._session is not None
            self._session.switch_speaker(speaker)
        return self.registry.set_active_speaker(speaker.id)

    def next_speaker(self) -> Optional[Speaker]:
        if self.running:
            assert self._session is not None
            if self._session.stopping:
                raise InvalidTransition("stopping", "switch speaker")
        speaker = self.registry.next_speaker()
        if speaker is not None and self.running:
            assert self._session is not None
            self._session.switch_speaker(speaker)
        return speaker

    def add_speaker(self, label: str | None = None) -> Speaker:
        speaker = self.registry.add_speaker(label)
        self.logger.add(f"Speaker added: {speaker.label}")
        return speaker

    def rename_speaker(self, speaker_id: str, label: str) -> Speaker:
        speaker = self.registry.rename_speaker(speaker_id, label)
        self.logger.add(f"Speaker {speaker_id} renamed to {speaker.label}")
        return speaker

    def captions(self) -> List[CaptionLine]:
        return self.renderer.visible()

    def export_transcript(self, fmt: str = "text") -> str:
        return self.transcript.export(fmt)

    def save_transcript(self, path: Path | str, fmt: str = "text") -> Path:
        return self.transcript.save(path, fmt)

    def clear_transcript(self) -> None:
        self._require_idle("clear the transcript")
        self._session = None
        self._transcript = TranscriptAccumulator()
        self.renderer.clear()
        self.logger.add("Transcript cleared")

    def snapshot(self) -> Dict[str, Any]:
        session = self._session
        active = self.registry.active
        return {
            "state": "stopping" if session and session.stopping else self.state.value,
            "status": self.status.value,
            "mode": session.mode.value if session else None,
            "language": session.language if session else None,
            "target_language": session.target_language if session else None,
            "started_at": session.started_at.isoformat() if session and session.started_at else None,
            "duration": round(session.duration, 3) if session else 0.0,
            "chunks": session.capturer.chunks_finalized if session else 0,
            "pending_jobs": session.pipeline.pending if session else 0,
            "segments": len(self.transcript),
            "active_speaker": active.to_dict() if active else None,
        }

    async def close(self) -> None:
        session = self._session
        if session is not None:
            if session.active and not session.stopping:
                await self.stop()
            elif session.state is SessionState.ERROR:
                await session.pipeline.drain()
        self._stop_renderer()
        if self._closer is not None:
            await self._closer()
            self._closer = None

    def _providers(self) -> Tuple[Transcriber, Translator | None]:
        if self._transcriber is None:
            transcriber, translator, closer = build_providers(self.settings, self.store)
            self._transcriber = transcriber
            self._translator = self._translator or translator
            self._closer = closer
        return self._transcriber, self._translator

    def _require_session(self, action: str) -> Session:
        if self._session is None:
            raise InvalidTransition(SessionState.IDLE.value, action)
        return self._session

    def _require_idle(self, action: str) -> None:
        session = self._session
        if session is None:
            return
        if self.running:
            raise InvalidTransition(session.state_label, action)
        # A session that ended in error may still be draining queued chunks.
        if session.pipeline.pending:
            raise InvalidTransition("draining", action)

    def _stop_renderer(self) -> None:
        if self._render_task is not None:
            self._render_task.cancel()
            self._render_task = None

    def _default_device(self) -> AudioInput:
        device = self.settings.input_device
        return SoundDeviceInput(
            self.settings.sample_rate,
            self.settings.channels,
            device=int(device) if device and device.isdigit() else device,
        )

    def _on_event(self, event: Event) -> None:
        if isinstance(event, StatusChanged):
            self.status = event.status
        elif isinstance(event, SegmentReady):
            session = self._session
            if session is not None and session.mode is RecordingMode.CAPTIONS:
                self.renderer.add(event.segment)


__all__ = ["LiveCaptionController", "build_providers"]
