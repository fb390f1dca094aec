"""Diagnostics for tune-in.

User-facing messages go through rich consoles in the command modules; this
module only carries the ``tunein`` logger tree. Records reach a log file
(``logging.file`` or ``TUNEIN_LOG``) and, when nothing else owns the
terminal, stderr.

``-v`` counts map onto five levels: error, warning, info, verbose, trace.
In wrap mode the assistant draws on the terminal, so the CLI passes
``console=False`` and records only reach the log file.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tunein.config.schema import LoggingConfig

TRACE = 5
VERBOSE = 15

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(VERBOSE, "VERBOSE")

LOG_ENV = "TUNEIN_LOG"

logger = logging.getLogger("tunein")

_initialized = False

_NAMED_LEVELS = {
    "TRACE": TRACE,
    "DEBUG": logging.DEBUG,
    "VERBOSE": VERBOSE,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Index is the verbosity count; anything past the end means trace
_VERBOSITY_LEVELS = (logging.ERROR, logging.WARNING, logging.INFO, VERBOSE, TRACE)


class _LowercaseLevelFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        record.levelname = record.levelname.lower()
        return super().format(record)


def resolve_level(config: LoggingConfig | None) -> int:
    """Numeric level for ``config``; a verbosity count beats a level name."""
    if config is None:
        return logging.WARNING
    if config.verbose is not None:
        index = max(config.verbose, 0)
        return _VERBOSITY_LEVELS[index] if index < len(_VERBOSITY_LEVELS) else TRACE
    if config.level:
        return _NAMED_LEVELS.get(config.level.upper(), logging.WARNING)
    return logging.WARNING


def setup_logging(config: LoggingConfig | None = None, console: bool = True) -> None:
    """Attach handlers to the ``tunein`` logger. Only the first call counts.

    Args:
        config: Level, verbosity and log file settings.
        console: Whether stderr may receive records. Even when allowed,
            stderr is only used if it is a TTY.
    """
    global _initialized
    if _initialized:
        return
    _initialized = True

    level = resolve_level(config)
    logger.setLevel(level)
    formatter = _LowercaseLevelFormatter(
        "%(asctime)s %(levelname)s: %(message)s", datefmt="%H:%M:%S"
    )
    use_stderr = console and sys.stderr.isatty()

    path = (config.file if config else None) or os.environ.get(LOG_ENV)
    if path:
        try:
            handler: logging.Handler = logging.FileHandler(
                os.path.expanduser(path), mode="a", encoding="utf-8"
            )
        except OSError as e:
            if use_stderr:
                print(f"[tune-in] cannot write log file {path}: {e}", file=sys.stderr)
                handler = logging.StreamHandler(sys.stderr)
            else:
                handler = logging.NullHandler()
    elif use_stderr:
        handler = logging.StreamHandler(sys.stderr)
    else:
        # The last-resort handler would print into the assistant's screen
        handler = logging.NullHandler()

    handler.setLevel(level)
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def reset_logging() -> None:
    """Drop installed handlers so setup_logging() can run again (tests)."""
    global _initialized
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    _initialized = False


def get_logger(name: str | None = None) -> logging.Logger:
    """The ``tunein`` logger, or its ``name`` child (e.g. "wrapper")."""
    return logger.getChild(name) if name else logger
