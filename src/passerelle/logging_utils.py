"""Configuration des logs (loguru)."""

import sys

from loguru import logger

_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<7} | {name}:{function}:{line} | {message}"

# loguru n'a pas de niveau "warn"
_LEVELS = {
    "debug": "DEBUG",
    "info": "INFO",
    "warn": "WARNING",
    "error": "ERROR",
}

_CONFIGURED_LEVEL: str | None = None


def configure_logging(level: str = "info") -> None:
    """Configure le sink stderr une seule fois par niveau."""
    global _CONFIGURED_LEVEL
    loguru_level = _LEVELS.get(level.lower(), level.upper())
    if loguru_level == _CONFIGURED_LEVEL:
        return

    logger.remove()
    logger.add(
        sys.stderr,
        level=loguru_level,
        format=_FORMAT,
        backtrace=False,
        diagnose=False,
    )
    _CONFIGURED_LEVEL = loguru_level
