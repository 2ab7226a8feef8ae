from __future__ import annotations

import logging
import os
from collections.abc import MutableMapping
from typing import Any, Literal

import coloredlogs  # type: ignore[import]

LogLevel = Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"]

DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
DEFAULT_DATE_FORMAT = "%H:%M:%S"

NOISY_LOGGERS = (
    "aiohttp.access",
    "aiohttp.client",
    "aiohttp.server",
    "aiohttp.websocket",
)


def setup_logging(
    level: LogLevel | None = None, noisy: tuple[str, ...] = NOISY_LOGGERS
) -> None:
    resolved = (level or os.environ.get("LOGLEVEL", "INFO")).upper()

    coloredlogs.install(
        level=resolved,
        fmt=DEFAULT_FORMAT,
        datefmt=DEFAULT_DATE_FORMAT,
    )

    for name in noisy:
        logging.getLogger(name).setLevel(logging.WARNING)


class HostLoggerAdapter(logging.LoggerAdapter):
    """Prefix records with the device address they concern."""

    def __init__(self, logger: logging.Logger, host: str) -> None:
        super().__init__(logger, {"host": host})

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        return f"[{self.extra['host']}] {msg}", kwargs  # type: ignore[index]


def host_logger(
    host: str, logger: logging.Logger | logging.LoggerAdapter | None, default: str
) -> logging.LoggerAdapter:
    if isinstance(logger, logging.LoggerAdapter):
        return logger
    return HostLoggerAdapter(logger or logging.getLogger(default), host)
