# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Logging setup for the Spotify MCP server.

Everything goes through the standard library.  Plain text output is colored
when attached to a terminal, and ``SPOTIFY_MCP_LOG_JSON`` switches to one JSON
object per line for log shippers.  Structured fields are passed through
``extra=`` (``event``, ``session_id`` ...) and end up under ``context`` in JSON
mode.
"""

from __future__ import annotations

from collections.abc import Callable
import json
import logging
import os
from typing import Any, ClassVar, Final


RESET: Final[str] = "\033[0m"
TIMESTAMP_COLOR: Final[str] = "\033[90m"
LOGGER_COLOR: Final[str] = "\033[94m"

DEFAULT_LOGGER_NAME: Final[str] = "spotify_remote_mcp"
ENV_LOG_LEVEL: Final[str] = "SPOTIFY_MCP_LOG_LEVEL"
ENV_LOG_JSON: Final[str] = "SPOTIFY_MCP_LOG_JSON"
ENV_NO_COLOR: Final[str] = "NO_COLOR"
DEFAULT_FORMAT: Final[str] = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
DEFAULT_DATEFMT: Final[str] = "%Y-%m-%d %H:%M:%S"

JsonSerializer = Callable[[dict[str, Any]], str]

# Attributes every LogRecord carries; anything else arrived through ``extra=``.
_RECORD_ATTRIBUTES: frozenset[str] = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}


class ColoredFormatter(logging.Formatter):
    """Plain-text formatter that colors the level and logger name."""

    LEVEL_COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[1;31m",
        "CRITICAL": "\033[1;35m",
    }

    def format(self, record: logging.LogRecord) -> str:
        levelname, name = record.levelname, record.name
        record.levelname = f"{self.LEVEL_COLORS.get(levelname, '')}{levelname}{RESET}"
        record.name = f"{LOGGER_COLOR}{name}{RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname, record.name = levelname, name

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:  # noqa: N802
        return f"{TIMESTAMP_COLOR}{super().formatTime(record, datefmt)}{RESET}"


class StructuredJSONFormatter(logging.Formatter):
    """Render each record as a single JSON object."""

    def __init__(self, serializer: JsonSerializer | None = None, *, datefmt: str | None = None) -> None:
        super().__init__(datefmt=datefmt)
        self._serializer = serializer or _default_json_serializer

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        context = {key: value for key, value in record.__dict__.items() if key not in _RECORD_ATTRIBUTES}
        if context:
            payload["context"] = context
        return self._serializer(payload)


class ServerLogHandler(logging.StreamHandler):  # type: ignore[type-arg]
    """Marker handler so repeated setup calls do not stack handlers."""


def _default_json_serializer(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, default=str)


def _env_flag(key: str) -> bool:
    value = os.getenv(key)
    return value is not None and value.strip().lower() in {"1", "true", "yes", "on"}


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = os.getenv(ENV_LOG_LEVEL) or logging.INFO
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logger(
    *,
    level: int | str | None = None,
    use_json: bool | None = None,
    use_color: bool | None = None,
    json_serializer: JsonSerializer | None = None,
    fmt: str | None = None,
    datefmt: str | None = DEFAULT_DATEFMT,
    force: bool = False,
) -> None:
    """Attach the server handler to the root logger.

    Args:
        level: Log level; falls back to ``SPOTIFY_MCP_LOG_LEVEL`` then ``INFO``.
        use_json: Emit JSON lines; defaults to ``SPOTIFY_MCP_LOG_JSON``.
        use_color: Colorize plain output; defaults to on unless ``NO_COLOR`` is
            set or JSON output is selected.
        json_serializer: Replacement for ``json.dumps`` in JSON mode.
        fmt: Plain-text format string.
        datefmt: Timestamp format.
        force: Replace a handler installed by an earlier call.
    """
    root = logging.getLogger()
    existing = [handler for handler in root.handlers if isinstance(handler, ServerLogHandler)]
    if existing and not force:
        return
    for handler in existing:
        root.removeHandler(handler)
        handler.close()

    resolved_level = _resolve_level(level)
    json_mode = use_json if use_json is not None else _env_flag(ENV_LOG_JSON)
    if use_color is None:
        use_color = not json_mode and not os.getenv(ENV_NO_COLOR)

    formatter: logging.Formatter
    if json_mode:
        formatter = StructuredJSONFormatter(json_serializer, datefmt=datefmt)
    elif use_color:
        formatter = ColoredFormatter(fmt or DEFAULT_FORMAT, datefmt=datefmt)
    else:
        formatter = logging.Formatter(fmt or DEFAULT_FORMAT, datefmt=datefmt)

    handler = ServerLogHandler()
    handler.setLevel(resolved_level)
    handler.setFormatter(formatter)
    root.setLevel(resolved_level)
    root.addHandler(handler)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a logger, installing the default handler on first use."""
    if not any(isinstance(handler, ServerLogHandler) for handler in logging.getLogger().handlers):
        setup_logger()
    return logging.getLogger(name or DEFAULT_LOGGER_NAME)


__all__ = [
    "DEFAULT_LOGGER_NAME",
    "ColoredFormatter",
    "ServerLogHandler",
    "StructuredJSONFormatter",
    "get_logger",
    "setup_logger",
]
