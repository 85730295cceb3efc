"""
Logging setup for the stackup CLI.

main.py calls ``setup_logging`` once.  Every module logs through
``logging.getLogger(__name__)``; the captured output of the external
tools (make, composer, mutagen) is logged at DEBUG.

How the level is chosen:
    --debug / --verbose / --quiet  >  STACKUP_LOG_LEVEL  >  WARNING

A log file can be added with STACKUP_LOG_FILE (and STACKUP_LOG_FILE_LEVEL).
"""

from __future__ import annotations

import logging
import sys

_CONSOLE_FORMATS: dict[int, tuple[str, str | None]] = {
    logging.DEBUG: ("%(asctime)s %(levelname)-5s %(name)s:%(lineno)d  %(message)s", "%H:%M:%S"),
    logging.INFO: ("%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
}
_FMT_PLAIN = "%(message)s"

_FMT_FILE = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d  %(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"

# per-line tool output, shown with --debug only
_CHATTY_LOGGERS = ("stackup.core.services.command_runner",)


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_runner: bool = True,
) -> None:
    """Install the stackup handlers on the root logger.

    Args:
        level: Console level name.
        log_file: Also write records to this file.
        log_file_level: Level for the file, ``level`` when not given.
        quiet_runner: Hide the per-line tool output below DEBUG.
    """
    console_level = _parse_level(level)
    if console_level <= logging.DEBUG:
        fmt, datefmt = _CONSOLE_FORMATS[logging.DEBUG]
    elif console_level <= logging.INFO:
        fmt, datefmt = _CONSOLE_FORMATS[logging.INFO]
    else:
        fmt, datefmt = _FMT_PLAIN, None

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(console_level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root_level = console_level

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        root_level = min(root_level, file_level)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(file_level)
        file_handler.setFormatter(logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE))
        root.addHandler(file_handler)

    root.setLevel(root_level)

    if quiet_runner and console_level > logging.DEBUG:
        for name in _CHATTY_LOGGERS:
            logging.getLogger(name).setLevel(max(logging.INFO, root_level))

    logging.raiseExceptions = False


def _parse_level(level: str | None) -> int:
    """Level name to number; unknown names fall back to WARNING."""
    numeric = getattr(logging, (level or "").upper(), None)
    return numeric if isinstance(numeric, int) else logging.WARNING
