"""Persistent user preferences: caption backend, languages, caption count."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, asdict
from pathlib import Path

LOGGER = logging.getLogger("livecaption.settings")


@dataclass(slots=True)
class AppSettings:
    server_url: str = ""
    api_key: str = ""
    source_language: str = "en"
    target_language: str = ""
    max_captions: int = 5


class SettingsStore:
    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._settings = self._load()

    def _load(self) -> AppSettings:
        if not self.path.exists():
            return AppSettings()
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            LOGGER.warning("Ignoring unreadable settings file %s: %s", self.path, exc)
            raw = {}
        if not isinstance(raw, dict):
            raw = {}
        settings = AppSettings()
        settings.server_url = str(raw.get("server_url", ""))
        settings.api_key = str(raw.get("api_key", ""))
        settings.source_language = str(raw.get("source_language", settings.source_language)) or "en"
        settings.target_language = str(raw.get("target_language", "") or "")
        try:
            settings.max_captions = max(1, int(raw.get("max_captions", settings.max_captions)))
        except (TypeError, ValueError):
            pass
        return settings

    def get(self) -> AppSettings:
        return self._settings

    def update(self, **kwargs) -> AppSettings:
        for key, value in kwargs.items():
            if value is None or not hasattr(self._settings, key):
                continue
            current = getattr(self._settings, key)
            if isinstance(current, int):
                setattr(self._settings, key, max(1, int(value)))
            else:
                setattr(self._settings, key, str(value).strip())
        self._persist()
        return self._settings

    def _persist(self) -> None:
        self.path.write_text(json.dumps(asdict(self._settings)), encoding="utf-8")


__all__ = ["AppSettings", "SettingsStore"]
