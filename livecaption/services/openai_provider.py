"""Direct OpenAI backend: Whisper transcription and chat-completion translation."""

from __future__ import annotations

from typing import Optional

from openai import AsyncOpenAI, OpenAIError

from ..errors import TranscriptionFailed, TranslationFailed
from ..languages import language_name, whisper_hint

SYSTEM_PROMPT = (
    "You are a professional interpreter. Translate the user's message from "
    "{source} to {target}. Preserve meaning and tone. "
    "Return only the translation, with no notes or quotes."
)


class OpenAIProvider:
    def __init__(
        self,
        api_key: str | None = None,
        *,
        transcribe_model: str = "whisper-1",
        translate_model: str = "gpt-4o-mini",
        upload_format: str = "FLAC",
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        if client is None:
            if not api_key:
                raise ValueError("OPENAI_API_KEY is required for the openai provider")
            client = AsyncOpenAI(api_key=api_key)
        self._client = client
        self.transcribe_model = transcribe_model
        self.translate_model = translate_model
        self.upload_format = upload_format.upper()

    async def transcribe(self, audio: bytes, language: str = "auto") -> str:
        suffix, mime = ("flac", "audio/flac") if self.upload_format == "FLAC" else ("wav", "audio/wav")
        params = {
            "model": self.transcribe_model,
            "file": (f"chunk.{suffix}", audio, mime),
            "response_format": "json",
        }
        hint = whisper_hint(language)
        if hint:
            params["language"] = hint
        try:
            transcript = await self._client.audio.transcriptions.create(**params)
        except OpenAIError as exc:
            raise TranscriptionFailed(f"OpenAI transcription failed: {exc}") from exc
        return (transcript.text or "").strip()

    async def translate(self, text: str, source_lang: str, target_lang: str) -> str:
        prompt = SYSTEM_PROMPT.format(source=language_name(source_lang), target=language_name(target_lang))
        try:
            response = await self._client.chat.completions.create(
                model=self.translate_model,
                messages=[
                    {"role": "system", "content": prompt},
                    {"role": "user", "content": text},
                ],
                max_tokens=1000,
                temperature=0.3,
            )
        except OpenAIError as exc:
            raise TranslationFailed(f"OpenAI translation failed: {exc}") from exc
        if not response.choices:
            raise TranslationFailed("OpenAI returned no choices")
        return (response.choices[0].message.content or "").strip()

    async def aclose(self) -> None:
        await self._client.close()


__all__ = ["OpenAIProvider", "SYSTEM_PROMPT"]
