"""
Logging configuration for PerimeterAgent.
"""

import logging
import sys
from typing import Optional

ROOT_LOGGER = "perimeter_agent"


class LogColors:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    RED = "\033[91m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    GRAY = "\033[90m"


class ColoredFormatter(logging.Formatter):
    """Formatter that colours the level name."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.colors = {
            logging.DEBUG: LogColors.GRAY,
            logging.INFO: LogColors.BLUE,
            logging.WARNING: LogColors.YELLOW,
            logging.ERROR: LogColors.RED,
            logging.CRITICAL: LogColors.RED + LogColors.BOLD,
        }

    def format(self, record):
        levelname = record.levelname
        if record.levelno in self.colors:
            record.levelname = f"{self.colors[record.levelno]}{levelname}{LogColors.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


def setup_logging(verbosity: int = 0, use_colors: bool = True) -> None:
    """
    Setup logging configuration based on verbosity level.

    Args:
        verbosity: Verbosity level (0-2)
            0: Only show warnings and errors (compliance violations included)
            1: Show INFO messages from PerimeterAgent modules (-v)
            2: Show DEBUG messages: every allocation, rule and statement (-vv)
        use_colors: Whether to use colored output
    """
    if verbosity <= 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    fmt = "%(levelname)s: %(message)s"
    if use_colors and sys.stderr.isatty():
        formatter: logging.Formatter = ColoredFormatter(fmt=fmt, datefmt="%H:%M:%S")
    else:
        formatter = logging.Formatter(fmt=fmt, datefmt="%H:%M:%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.WARNING)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    logging.getLogger(ROOT_LOGGER).setLevel(level)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger namespaced under ``perimeter_agent``.

    Args:
        name: Module name (usually __name__)
    """
    if not name.startswith(ROOT_LOGGER):
        if name == "__main__":
            name = f"{ROOT_LOGGER}.cli"
        elif "." not in name:
            name = f"{ROOT_LOGGER}.{name}"

    return logging.getLogger(name)


def log_success(message: str, logger: Optional[logging.Logger] = None) -> None:
    """Log a success message."""
    (logger or get_logger(ROOT_LOGGER)).info(f"✓ {message}")


def log_error(message: str, logger: Optional[logging.Logger] = None) -> None:
    """Log an error message."""
    (logger or get_logger(ROOT_LOGGER)).error(f"✗ {message}")


def log_violation(
    invariant: str, severity: str, message: str, logger: Optional[logging.Logger] = None
) -> None:
    """Log one compliance violation; violations never raise."""
    (logger or get_logger(ROOT_LOGGER)).warning(f"⚠ [{severity}] {invariant}: {message}")
