"""Console logger built on the standard library ``logging`` module.

Each call renders ``message key=value key=value`` (or a single JSON object
per line when ``json_format=True``) and hands it to a named stdlib logger,
so extra handlers such as ``--log-file`` output can be attached later.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Any

from .base import Logger

_TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(message)s"
_MAX_FIELD_CHARS = 512


def _render_value(value: Any) -> str:
    text = value if isinstance(value, str) else repr(value)
    if len(text) > _MAX_FIELD_CHARS:
        text = text[:_MAX_FIELD_CHARS] + "...[truncated]"
    if isinstance(value, str) and (" " in text or not text):
        return json.dumps(text)
    return text


class ConsoleLogger(Logger):
    """Logger writing structured lines to stderr (or any text stream)."""

    def __init__(
        self,
        name: str = "radgen",
        *,
        level: int = logging.INFO,
        json_format: bool = False,
        stream: IO[str] | None = None,
    ) -> None:
        self._json_format = json_format
        self._logger = logging.getLogger(name)
        self._logger.setLevel(level)
        self._logger.propagate = False

        if stream is not None or not self._logger.handlers:
            for handler in list(self._logger.handlers):
                self._logger.removeHandler(handler)
            self._add_handler(logging.StreamHandler(stream or sys.stderr))

    @property
    def level(self) -> int:
        return self._logger.level

    def set_level(self, level: int | str) -> None:
        if isinstance(level, str):
            level = logging.getLevelName(level.upper())
            if not isinstance(level, int):
                raise ValueError(f"unknown log level: {level}")
        self._logger.setLevel(level)

    def add_file_output(self, path: str | Path) -> None:
        """Also append log lines to ``path`` (parent directories are created)."""
        log_path = Path(path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        self._add_handler(logging.FileHandler(log_path, encoding="utf-8"))

    def close(self) -> None:
        for handler in list(self._logger.handlers):
            if isinstance(handler, logging.FileHandler):
                self._logger.removeHandler(handler)
                handler.close()

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, message, kwargs)

    def critical(self, message: str, **kwargs: Any) -> None:
        self._log(logging.CRITICAL, message, kwargs)

    def _add_handler(self, handler: logging.Handler) -> None:
        if not self._json_format:
            handler.setFormatter(logging.Formatter(_TEXT_FORMAT))
        self._logger.addHandler(handler)

    def _log(self, level: int, message: str, fields: dict[str, Any]) -> None:
        if not self._logger.isEnabledFor(level):
            return
        self._logger.log(level, self._render(level, message, fields))

    def _render(self, level: int, message: str, fields: dict[str, Any]) -> str:
        if self._json_format:
            payload: dict[str, Any] = {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "level": logging.getLevelName(level),
                "message": message,
            }
            payload.update(fields)
            return json.dumps(payload, default=str)

        if not fields:
            return message
        rendered = " ".join(f"{key}={_render_value(value)}" for key, value in fields.items())
        return f"{message} {rendered}"
