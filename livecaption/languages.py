"""Languages offered for transcription and translation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List

AUTO = "auto"


@dataclass(frozen=True, slots=True)
class Language:
    code: str
    name: str
    native_name: str
    whisper_supported: bool = True


LANGUAGES: Dict[str, Language] = {
    lang.code: lang
    for lang in (
        Language("en", "English", "English"),
        Language("es", "Spanish", "Español"),
        Language("ht", "Haitian Creole", "Kreyòl Ayisyen", whisper_supported=False),
        Language("fr", "French", "Français"),
        Language("pt", "Portuguese", "Português"),
        Language("de", "German", "Deutsch"),
    )
}


def is_supported(code: str, *, allow_auto: bool = True) -> bool:
    if code == AUTO:
        return allow_auto
    return code in LANGUAGES


def language_name(code: str) -> str:
    if code == AUTO:
        return "Auto-detect"
    lang = LANGUAGES.get(code)
    return lang.name if lang else code


def whisper_hint(code: str) -> str | None:
    """Language hint to send to Whisper, or None to let it auto-detect."""
    lang = LANGUAGES.get(code)
    if lang is None or not lang.whisper_supported:
        return None
    return lang.code


def validate(code: str, *, allow_auto: bool = True) -> str:
    code = (code or "").strip().lower()
    if not is_supported(code, allow_auto=allow_auto):
        raise ValueError(f"Unsupported language: {code!r}")
    return code


def choices(allow_auto: bool = True) -> List[str]:
    codes = list(LANGUAGES)
    return [AUTO, *codes] if allow_auto else codes


__all__ = [
    "AUTO",
    "LANGUAGES",
    "Language",
    "choices",
    "is_supported",
    "language_name",
    "validate",
    "whisper_hint",
]
