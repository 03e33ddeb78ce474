#!/usr/bin/env python3
"""
Terminal output helpers.

Progress for the operator is printed with colored level markers; detailed
tracing goes through the logging module and only shows up at DEBUG level.
"""

from __future__ import annotations

import logging

# Color codes for output
BLUE = '\033[94m'
GREEN = '\033[92m'
YELLOW = '\033[93m'
RED = '\033[91m'
RESET = '\033[0m'

RULE = '═' * 59

logger = logging.getLogger(__name__)


def configure_logging(log_level: str = "INFO") -> None:
    """
    Configure logging module with specified level.
    """
    level_map = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR
    }

    level = level_map.get(str(log_level).upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format='[%(levelname)s] %(message)s',
        force=True  # Reconfigure if already configured
    )
    logging.getLogger('ipam_installer').setLevel(level)

    logger.debug(f"Logging configured: {str(log_level).upper()}")


def _emit(marker: str, color: str, msg: str, context: dict) -> None:
    print(f"{color}{marker}{RESET} {msg}", flush=True)
    for key, value in context.items():
        print(f"  {key}: {value}", flush=True)


def info(msg, **context):
    """Print an informational line with optional key/value context."""
    _emit('[INFO]', BLUE, msg, context)


def success(msg, **context):
    _emit('[SUCCESS]', GREEN, msg, context)


def warn(msg, **context):
    _emit('[WARN]', YELLOW, msg, context)


def error(msg, **context):
    """Print an error line. Does not exit; the caller decides the exit code."""
    _emit('[ERROR]', RED, msg, context)


def step(index: int, total: int, title: str) -> None:
    print(f"{YELLOW}[{index}/{total}] {title}...{RESET}", flush=True)


def section(title: str, color: str = YELLOW) -> None:
    print(f"{color}{RULE}{RESET}", flush=True)
    print(f"{color}{title}{RESET}", flush=True)
    print(f"{color}{RULE}{RESET}", flush=True)


def banner(lines: list[str], color: str = GREEN) -> None:
    """Print lines inside a box drawn with double-line characters."""
    width = max(len(line) for line in lines) + 4
    print(f"{color}╔{'═' * width}╗{RESET}", flush=True)
    for line in lines:
        print(f"{color}║  {line.ljust(width - 2)}║{RESET}", flush=True)
    print(f"{color}╚{'═' * width}╝{RESET}", flush=True)
