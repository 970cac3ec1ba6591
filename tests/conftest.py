"""Pytest configuration helpers."""

from __future__ import annotations

import sys
from pathlib import Path

TESTS_DIR = Path(__file__).resolve().parent


def _ensure_on_path(*paths: Path) -> None:
    """Import ``livecaption`` from the checkout and ``fakes`` from this directory."""
    for path in paths:
        path_str = str(path)
        if path_str not in sys.path:
            sys.path.insert(0, path_str)


_ensure_on_path(TESTS_DIR.parent, TESTS_DIR)
