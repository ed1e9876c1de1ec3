"""
Logging setup for the ``parley`` logger namespace.

Every module logs through ``logging.getLogger("parley.<area>")``. Nothing is
emitted unless the application configures logging itself, calls
``configure_logging``, or sets ``PARLEY_LOG_LEVEL``:

    PARLEY_LOG_LEVEL=FINE python my_script.py
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from parley.config import get_env

LOGGER_NAME = "parley"
ENV_VAR = "PARLEY_LOG_LEVEL"

# FINE and SEVERE are accepted alongside the stdlib names.
LEVELS: dict[str, int] = {
    "FINE": logging.DEBUG,
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "SEVERE": logging.ERROR,
    "ERROR": logging.ERROR,
    "OFF": logging.CRITICAL + 10,
}

DEFAULT_FORMAT = "%(levelname)s: %(asctime)s: %(name)s: %(message)s"


@dataclass(frozen=True)
class LoggingOptions:
    """
    Level, logger-name filter, and handler for parley's log output.

    ``filter`` is a substring matched against the logger name; "" matches
    everything, "openai" shows only the OpenAI-compatible binding.
    """
    level: int = logging.INFO
    filter: str = ""
    handler: logging.Handler | None = None


class _NameFilter(logging.Filter):
    def __init__(self, needle: str):
        super().__init__()
        self.needle = needle

    def filter(self, record: logging.LogRecord) -> bool:
        return not self.needle or self.needle in record.name


_handler: logging.Handler | None = None
_env_checked = False


def configure_logging(options: LoggingOptions) -> logging.Handler:
    """Install (or replace) the parley log handler and return it."""
    global _handler
    root = logging.getLogger(LOGGER_NAME)
    if _handler is not None:
        root.removeHandler(_handler)

    handler = options.handler or logging.StreamHandler()
    if options.handler is None:
        handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
    handler.addFilter(_NameFilter(options.filter))
    root.addHandler(handler)
    root.setLevel(options.level)
    _handler = handler
    return handler


def configure_from_environment() -> None:
    """
    Apply PARLEY_LOG_LEVEL once per process; unknown values are ignored.

    The value is looked up through ``parley.config.environment`` first.
    """
    global _env_checked
    if _env_checked:
        return
    _env_checked = True
    value = (get_env(ENV_VAR) or "").strip().upper()
    level = LEVELS.get(value)
    if level is not None:
        configure_logging(LoggingOptions(level=level))
