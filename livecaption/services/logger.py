"""Activity log buffer backed by the standard logging module."""

from __future__ import annotations

import logging
import threading
from collections import deque
from datetime import datetime
from typing import List

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str | int = "INFO") -> None:
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=DATE_FORMAT)


class LogBuffer:
    """Keeps the most recent activity lines for display and mirrors them to logging."""

    def __init__(self, history: int = 200, name: str = "livecaption") -> None:
        self._lines: deque[str] = deque(maxlen=max(1, int(history)))
        self._lock = threading.Lock()
        self._logger = logging.getLogger(name)

    def add(self, message: str, level: int = logging.INFO) -> None:
        stamp = datetime.now().strftime("%H:%M:%S")
        with self._lock:
            self._lines.append(f"{stamp} {message}")
        self._logger.log(level, message)

    def warning(self, message: str) -> None:
        self.add(message, logging.WARNING)

    def error(self, message: str) -> None:
        self.add(message, logging.ERROR)

    def get(self) -> List[str]:
        with self._lock:
            return list(self._lines)

    def clear(self) -> None:
        with self._lock:
            self._lines.clear()


__all__ = ["LogBuffer", "configure_logging"]
