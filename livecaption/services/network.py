"""HTTP client for the caption backend (transcribe + translate)."""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from ..errors import ProviderError, TranscriptionFailed, TranslationFailed
from ..store.settings_store import SettingsStore

_MIME_TYPES = {"FLAC": ("chunk.flac", "audio/flac"), "WAV": ("chunk.wav", "audio/wav")}


class ApiError(ProviderError):
    pass


class ApiClient:
    def __init__(
        self,
        settings: SettingsStore,
        *,
        timeout: float = 30.0,
        upload_format: str = "FLAC",
        server_url: str = "",
        api_key: str = "",
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.settings_store = settings
        # Used when the settings store leaves a value blank.
        self.server_url = server_url
        self.api_key = api_key
        self.timeout = timeout
        self.upload_format = upload_format.upper()
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def _headers(self) -> dict:
        api_key = self.settings_store.get().api_key or self.api_key
        if not api_key:
            raise ApiError("API key missing")
        return {"X-API-Key": api_key}

    def _url(self, path: str) -> str:
        base = (self.settings_store.get().server_url or self.server_url).rstrip("/")
        if not base:
            raise ApiError("Server URL missing")
        return f"{base}{path}"

    async def test_connection(self) -> bool:
        try:
            resp = await self._client.get(self._url("/healthz"), headers=self._headers())
            return resp.status_code == 200
        except httpx.HTTPError as exc:
            raise ApiError(str(exc)) from exc

    async def transcribe(self, audio: bytes, language: str = "auto") -> str:
        filename, mime = _MIME_TYPES.get(self.upload_format, ("chunk.bin", "application/octet-stream"))
        try:
            resp = await self._client.post(
                self._url("/api/transcribe"),
                headers=self._headers(),
                files={"audio": (filename, audio, mime)},
                data={"language": language},
            )
            data = self._json(resp)
        except ApiError as exc:
            raise TranscriptionFailed(str(exc)) from exc
        except httpx.HTTPStatusError as exc:
            raise TranscriptionFailed(f"Transcription failed: {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise TranscriptionFailed(f"Transcription request error: {exc}") from exc
        text = data.get("transcription", data.get("text", ""))
        return str(text or "")

    async def translate(self, text: str, source_lang: str, target_lang: str) -> str:
        try:
            resp = await self._client.post(
                self._url("/api/translate"),
                headers=self._headers(),
                json={"text": text, "sourceLang": source_lang, "targetLang": target_lang},
            )
            data = self._json(resp)
        except ApiError as exc:
            raise TranslationFailed(str(exc)) from exc
        except httpx.HTTPStatusError as exc:
            raise TranslationFailed(f"Translation failed: {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise TranslationFailed(f"Translation request error: {exc}") from exc
        return str(data.get("translation", "") or "")

    @staticmethod
    def _json(resp: httpx.Response) -> Dict[str, Any]:
        if resp.status_code == 401:
            raise ApiError("Unauthorized: check API key")
        resp.raise_for_status()
        try:
            data = resp.json()
        except ValueError as exc:
            raise ApiError(f"Invalid response: {exc}") from exc
        if not isinstance(data, dict):
            raise ApiError("Invalid response: expected a JSON object")
        return data

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = ["ApiClient", "ApiError"]
