"""Runtime settings resolved from the environment."""

from __future__ import annotations

import os
from functools import lru_cache

from pydantic import BaseModel, Field


class CaptionSettings(BaseModel):
    app_name: str = Field(default="LiveCaption")
    version: str = Field(default="0.1.0")
    data_dir: str = Field(default=os.getenv("LIVECAPTION_DATA_DIR", os.path.expanduser("~/.livecaption")))
    settings_file: str = Field(default="settings.json")
    sample_rate: int = Field(default=int(os.getenv("LIVECAPTION_SAMPLE_RATE", "16000")))
    channels: int = Field(default=1)
    input_device: str | None = Field(default=os.getenv("LIVECAPTION_INPUT_DEVICE"))
    caption_chunk_seconds: float = Field(
        default=float(os.getenv("LIVECAPTION_CAPTION_CHUNK_SECONDS", "3"))
    )
    transcript_chunk_seconds: float = Field(
        default=float(os.getenv("LIVECAPTION_TRANSCRIPT_CHUNK_SECONDS", "30"))
    )
    silence_threshold: float = Field(
        default=float(os.getenv("LIVECAPTION_SILENCE_THRESHOLD", "0.01"))
    )
    fade_start_ms: int = Field(default=int(os.getenv("LIVECAPTION_FADE_START_MS", "5000")))
    fade_end_ms: int = Field(default=int(os.getenv("LIVECAPTION_FADE_END_MS", "10000")))
    caption_tick_ms: int = Field(default=int(os.getenv("LIVECAPTION_CAPTION_TICK_MS", "100")))
    max_captions: int = Field(default=int(os.getenv("LIVECAPTION_MAX_CAPTIONS", "5")))
    upload_format: str = Field(default=os.getenv("LIVECAPTION_UPLOAD_FORMAT", "FLAC"))
    provider: str = Field(default=os.getenv("LIVECAPTION_PROVIDER", "server"))
    provider_timeout: float = Field(
        default=float(os.getenv("LIVECAPTION_PROVIDER_TIMEOUT", "30"))
    )
    server_url: str = Field(default=os.getenv("LIVECAPTION_SERVER_URL", ""))
    api_key: str = Field(default=os.getenv("LIVECAPTION_API_KEY", ""))
    openai_api_key: str | None = Field(default=os.getenv("OPENAI_API_KEY"))
    openai_transcribe_model: str = Field(
        default=os.getenv("LIVECAPTION_OPENAI_TRANSCRIBE_MODEL", "whisper-1")
    )
    openai_translate_model: str = Field(
        default=os.getenv("LIVECAPTION_OPENAI_TRANSLATE_MODEL", "gpt-4o-mini")
    )
    log_level: str = Field(default=os.getenv("LIVECAPTION_LOG_LEVEL", "INFO"))
    log_history: int = Field(default=int(os.getenv("LIVECAPTION_LOG_HISTORY", "200")))


@lru_cache()
def get_settings() -> CaptionSettings:
    return CaptionSettings()
