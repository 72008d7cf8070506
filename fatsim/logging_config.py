"""
Logging configuration for the FAT volume simulator.

The package logs through one logger tree rooted at 'fatsim'. Core modules
take a child logger with get_logger('fat'), get_logger('tree'), ...; the
CLI picks the level from its -q/-v flags or from the settings file.
"""

import logging
import sys
from typing import TextIO

# Log levels for the application
QUIET = logging.WARNING
NORMAL = logging.INFO
VERBOSE = logging.DEBUG

LEVEL_NAMES = {
    'quiet': QUIET,
    'normal': NORMAL,
    'verbose': VERBOSE,
}

logger = logging.getLogger('fatsim')


class ColorFormatter(logging.Formatter):
    """
    Formatter that colors records by level on a terminal.

    Plain text when the stream is not a tty.
    """

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
        'RESET': '\033[0m',
    }

    def __init__(self, fmt: str | None = None, use_colors: bool = True, stream: TextIO | None = None):
        super().__init__(fmt)
        self.use_colors = use_colors and self._supports_color(stream or sys.stderr)

    @staticmethod
    def _supports_color(stream: TextIO) -> bool:
        return hasattr(stream, 'isatty') and stream.isatty()

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        if self.use_colors and record.levelname in self.COLORS:
            return f"{self.COLORS[record.levelname]}{message}{self.COLORS['RESET']}"
        return message


def level_from_flags(quiet: bool = False, verbose: bool = False, default: int = NORMAL) -> int:
    """Map the CLI -q/-v flags to a logging level. -q wins over -v."""
    if quiet:
        return QUIET
    if verbose:
        return VERBOSE
    return default


def level_from_name(name: str | None, default: int = NORMAL) -> int:
    """Map a settings-file level name ('quiet', 'normal', 'verbose') to a level."""
    if not name:
        return default
    return LEVEL_NAMES.get(name.lower(), default)


def setup_logging(
    level: int = NORMAL,
    stream: TextIO | None = None,
    use_colors: bool = True,
    format_string: str | None = None
) -> None:
    """
    Configure the package logger.

    Args:
        level: Logging level (QUIET, NORMAL, or VERBOSE)
        stream: Output stream (defaults to stderr)
        use_colors: Whether to use colored output
        format_string: Custom format string (optional)
    """
    if stream is None:
        stream = sys.stderr

    if format_string is None:
        if level <= logging.DEBUG:
            format_string = '%(levelname)s: %(name)s: %(message)s'
        else:
            format_string = '%(message)s'

    logger.handlers.clear()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(ColorFormatter(format_string, use_colors, stream))
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False


def get_logger(name: str | None = None) -> logging.Logger:
    """
    Get the package logger or one of its children.

    Args:
        name: Child name, e.g. 'fat' for 'fatsim.fat' (optional)

    Returns:
        Logger instance
    """
    if name is None:
        return logger
    return logger.getChild(name)


# Library default: warnings and errors reach stderr until the CLI reconfigures
setup_logging(level=QUIET)
