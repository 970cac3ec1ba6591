"""Interfaces of the external speech-to-text and translation services."""

from __future__ import annotations

from typing import Protocol


class Transcriber(Protocol):
    async def transcribe(self, audio: bytes, language: str) -> str:
        """Return the transcribed text, possibly empty; raise TranscriptionFailed."""


class Translator(Protocol):
    async def translate(self, text: str, source_lang: str, target_lang: str) -> str:
        """Return the translated text; raise TranslationFailed."""


__all__ = ["Transcriber", "Translator"]
