"""Command line entry point: run a caption/transcript session, serve the API, edit settings."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import signal
import sys
from pathlib import Path
from typing import List, Optional

from . import languages
from .audio.devices import ArrayInput
from .config import CaptionSettings, get_settings
from .controller import LiveCaptionController
from .errors import CaptureError, SessionError
from .events import ChunkFailure, Event, FailureReason, SegmentReady
from .services.logger import configure_logging
from .session import RecordingMode, SessionState
from .store.settings_store import SettingsStore


def _settings_store(settings: CaptionSettings) -> SettingsStore:
    return SettingsStore(Path(settings.data_dir) / settings.settings_file)


def _print_event(event: Event) -> None:
    if isinstance(event, SegmentReady):
        segment = event.segment
        print(f"[{segment.timestamp.astimezone().strftime('%H:%M:%S')}] {segment.speaker_label}: {segment.text}")
        if segment.translated_text:
            print(f"    ({segment.target_language}) {segment.translated_text}")
    elif isinstance(event, ChunkFailure) and event.reason is not FailureReason.SILENT_CHUNK:
        print(f"! {event.reason.value}: {event.message}", file=sys.stderr)


async def run_session(args: argparse.Namespace) -> int:
    settings = get_settings()
    device_factory = None
    if args.replay:
        replay = ArrayInput.from_file(args.replay)
        settings = settings.model_copy(update={"sample_rate": replay.sample_rate})
        device_factory = lambda: replay  # noqa: E731
    controller = LiveCaptionController(settings, store=_settings_store(settings), device_factory=device_factory)
    for label in args.speaker or []:
        controller.add_speaker(label)
    mode = RecordingMode(args.command)
    if mode is RecordingMode.TRANSCRIPT and len(controller.registry) == 0:
        controller.add_speaker()
    controller.subscribe(_print_event)

    stop_requested = asyncio.Event()
    loop = asyncio.get_running_loop()
    with contextlib.suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGINT, stop_requested.set)

    try:
        controller.start(
            mode,
            language=args.lang,
            target_language=args.target,
            chunk_seconds=args.chunk_seconds,
        )
    except (CaptureError, SessionError, ValueError) as exc:
        print(f"Cannot start: {exc}", file=sys.stderr)
        await controller.close()
        return 1

    print(f"Recording ({mode.value}); press Ctrl+C to stop.", file=sys.stderr)
    try:
        while not stop_requested.is_set():
            if args.replay and replay.finished:
                break
            if not controller.running:
                break
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(stop_requested.wait(), timeout=0.25)
        if controller.running:
            print("Stopping; finishing queued chunks...", file=sys.stderr)
            await controller.stop()
    finally:
        await controller.close()

    if args.export:
        path = controller.save_transcript(args.export, args.format)
        print(f"Transcript saved to {path}", file=sys.stderr)
    return 2 if controller.state is SessionState.ERROR else 0


def run_serve(args: argparse.Namespace) -> int:
    import uvicorn

    from .api.app import create_app

    uvicorn.run(create_app(), host=args.host, port=args.port, log_level=get_settings().log_level.lower())
    return 0


def run_config(args: argparse.Namespace) -> int:
    store = _settings_store(get_settings())
    updates = {
        "server_url": args.server_url,
        "api_key": args.api_key,
        "source_language": languages.validate(args.lang) if args.lang else None,
        "target_language": args.target,
        "max_captions": args.max_captions,
    }
    if args.target:
        updates["target_language"] = languages.validate(args.target, allow_auto=False)
    current = store.update(**updates)
    print(f"server_url      = {current.server_url or '(unset)'}")
    print(f"api_key         = {'*' * 8 if current.api_key else '(unset)'}")
    print(f"source_language = {current.source_language}")
    print(f"target_language = {current.target_language or '(none)'}")
    print(f"max_captions    = {current.max_captions}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="livecaption", description="Live captions and transcripts from a microphone.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("captions", "Live captions in short chunks"),
        ("transcript", "Continuous speaker-attributed transcript"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--lang", choices=languages.choices(), help="Spoken language (default: from settings)")
        sub.add_argument("--target", choices=languages.choices(allow_auto=False), help="Translate into this language")
        sub.add_argument("--chunk-seconds", type=float, help="Override chunk duration")
        sub.add_argument("--speaker", action="append", help="Register a speaker label (repeatable)")
        sub.add_argument("--replay", type=Path, help="Replay an audio file instead of the microphone")
        sub.add_argument("--export", type=Path, help="Save the transcript here after stopping")
        sub.add_argument("--format", choices=("text", "srt"), default="text", help="Export format (default: text)")

    serve = subparsers.add_parser("serve", help="Run the HTTP control API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    config = subparsers.add_parser("config", help="Show or update saved settings")
    config.add_argument("--server-url")
    config.add_argument("--api-key")
    config.add_argument("--lang", choices=languages.choices())
    config.add_argument("--target", help="Default translation target (empty string disables)")
    config.add_argument("--max-captions", type=int)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(get_settings().log_level)
    try:
        if args.command == "serve":
            return run_serve(args)
        if args.command == "config":
            return run_config(args)
        return asyncio.run(run_session(args))
    except KeyboardInterrupt:
        return 130
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
