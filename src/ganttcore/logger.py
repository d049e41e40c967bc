"""Logging setup for ganttcore with semantic verbosity levels."""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

# Between INFO (20) and WARNING (30): mutations submitted to persistence
CHANGES_LEVEL = 25
# Between DEBUG (10) and INFO (20): validation decisions and rejections
CHECKS_LEVEL = 15

logging.addLevelName(CHANGES_LEVEL, "CHANGES")
logging.addLevelName(CHECKS_LEVEL, "CHECKS")

VERBOSITY_SILENT = 0
VERBOSITY_CHANGES = 1
VERBOSITY_CHECKS = 2
VERBOSITY_DEBUG = 3

_LEVELS = {
    VERBOSITY_SILENT: logging.ERROR,
    VERBOSITY_CHANGES: CHANGES_LEVEL,
    VERBOSITY_CHECKS: CHECKS_LEVEL,
    VERBOSITY_DEBUG: logging.DEBUG,
}


class GanttLogger(logging.Logger):
    """Logger with one method per verbosity level.

    - changes(): level 1, reschedules, reparents, reorders and dependency edits
      handed to the persistence layer
    - checks(): level 2, validation outcomes (rejected indents, self links, ...)
    - debug(): level 3, layout and routing details
    """

    def changes(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log a submitted mutation (verbosity level 1)."""
        if self.isEnabledFor(CHANGES_LEVEL):
            self._log(CHANGES_LEVEL, msg, args, **kwargs)

    def checks(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log a validation decision (verbosity level 2)."""
        if self.isEnabledFor(CHECKS_LEVEL):
            self._log(CHECKS_LEVEL, msg, args, **kwargs)


def get_logger() -> GanttLogger:
    """Return the shared ganttcore logger.

    Call setup_logger() first to attach a handler; until then only records at
    ERROR and above reach the root logger.
    """
    logging.setLoggerClass(GanttLogger)
    logger = logging.getLogger("ganttcore")
    assert isinstance(logger, GanttLogger)
    return logger


def setup_logger(verbosity: int, stream: TextIO | None = None) -> None:
    """Configure the ganttcore logger.

    Args:
        verbosity: 0=errors only, 1=changes, 2=checks, 3=debug
        stream: Output stream, defaults to sys.stderr
    """
    logger = get_logger()
    logger.handlers.clear()
    logger.setLevel(_LEVELS.get(verbosity, logging.ERROR))

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.propagate = False


def reset_logger() -> None:
    """Drop handlers and go back to errors-only. Used between tests."""
    logger = get_logger()
    logger.handlers.clear()
    logger.setLevel(logging.ERROR)


def changes_enabled() -> bool:
    """Whether changes-level records are emitted."""
    return get_logger().isEnabledFor(CHANGES_LEVEL)


def checks_enabled() -> bool:
    """Whether checks-level records are emitted."""
    return get_logger().isEnabledFor(CHECKS_LEVEL)
