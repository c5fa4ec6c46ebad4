"""Helpers for configuring engine logging."""

from __future__ import annotations

import logging
from pathlib import Path

_LEVEL_MAP: dict[str, int | None] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "off": None,
}

_DEFAULT_LEVEL = "info"
_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def resolve_log_level(value: str | None) -> int | None:
    """Map a human-readable level name to a logging level (``None`` = off)."""

    normalized = (value or _DEFAULT_LEVEL).strip().lower()
    return _LEVEL_MAP.get(normalized, _LEVEL_MAP[_DEFAULT_LEVEL])


def configure_logging(level: str | None = None, log_file: Path | None = None) -> int | None:
    """Configure console (and optional file) logging for the engine."""

    log_level = resolve_log_level(level)
    if log_level is None:
        logging.getLogger("partstream").disabled = True
        return None

    formatter = logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT)
    handlers: list[logging.Handler] = []

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    engine_logger = logging.getLogger("partstream")
    engine_logger.disabled = False
    engine_logger.setLevel(log_level)

    # Keep transport chatter out unless we are debugging the wire
    noisy_level = log_level if log_level <= logging.DEBUG else logging.WARNING
    for name in ("httpx", "httpcore", "google_genai"):
        logging.getLogger(name).setLevel(noisy_level)

    return log_level


__all__ = ["configure_logging", "resolve_log_level"]
