"""Logging configuration helpers for the media composition service."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional, Union

DEFAULT_LOG_FILE = Path("logs") / "nodes_media.log"

# Libraries that log every request or decoded chunk at INFO/DEBUG.
NOISY_LOGGERS = ("PIL", "urllib3", "apscheduler", "werkzeug")


def resolve_log_level(level: Union[int, str, None], default: int = logging.INFO) -> int:
    """Translate ``"debug"``/``"INFO"``/numeric levels into logging constants."""
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        candidate = logging.getLevelName(level.strip().upper())
        if isinstance(candidate, int):
            return candidate
    return default


def _open_file_handler(log_file: Union[str, Path]) -> tuple[Optional[logging.Handler], Optional[str]]:
    """Create a file handler, falling back to the working directory."""
    log_path = Path(log_file)
    if not log_path.is_absolute():
        log_path = Path.cwd() / log_path

    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(log_path, encoding="utf-8"), None
    except OSError as exc:
        fallback_path = Path.cwd() / log_path.name
        try:
            handler = logging.FileHandler(fallback_path, encoding="utf-8")
        except OSError as fallback_exc:
            return None, (
                f"Failed to open log file at '{log_path}' "
                f"and fallback '{fallback_path}'. Reason: {fallback_exc}"
            )
        return handler, (
            f"Failed to open log file at '{log_path}'. Falling back to '{fallback_path}'. "
            f"Reason: {exc}"
        )


def quiet_loggers(names: Iterable[str] = NOISY_LOGGERS, level: int = logging.WARNING) -> None:
    for name in names:
        logging.getLogger(name).setLevel(level)


def configure_logging(
    logger_name: Optional[str] = None,
    *,
    level: Union[int, str] = logging.INFO,
    log_file: Union[str, Path, None] = DEFAULT_LOG_FILE,
    include_stream: bool = True,
) -> logging.Logger:
    """Configure application logging and return the service logger.

    Parameters
    ----------
    logger_name:
        Name of the logger to return. Defaults to ``"nodes_media"``.
    level:
        Logging level (name or number) applied to the root configuration.
    log_file:
        Optional path to the log file. Pass ``None`` to disable file logging.
    include_stream:
        When ``True`` (default) attach a `logging.StreamHandler` as well.
    """

    resolved_level = resolve_log_level(level)
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")

    handlers: list[logging.Handler] = []
    pending_warning: Optional[str] = None
    if log_file:
        file_handler, pending_warning = _open_file_handler(log_file)
        if file_handler is not None:
            handlers.append(file_handler)

    if include_stream:
        handlers.append(logging.StreamHandler())

    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(level=resolved_level, handlers=handlers, force=True)
    if resolved_level > logging.DEBUG:
        quiet_loggers()

    logger = logging.getLogger(logger_name or "nodes_media")
    logger.setLevel(resolved_level)

    if pending_warning:
        logger.warning(pending_warning)

    return logger


__all__ = ["configure_logging", "quiet_loggers", "resolve_log_level"]
