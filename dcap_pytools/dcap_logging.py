# Copyright 2025 Hewlett Packard Enterprise Development LP.
# SPDX-License-Identifier: MIT
#
# Logging utilities - Logging configuration for the dcap-tool command line.

"""
Logging utilities for dcap_pytools

Diagnostics always go to stderr. Standard output is reserved for command
results (JSON documents and collateral dumps).
"""

import logging
import sys
from typing import Optional, Union

CLI_FORMAT = "%(name)s - %(levelname)s: %(message)s"


class ColoredFormatter(logging.Formatter):
    """Formatter that colors level names on a terminal."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record):
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


def setup_cli_logging(
    verbose: bool = False,
    quiet: bool = False,
    level: Union[str, int] = logging.INFO,
) -> logging.Logger:
    """
    Configure the root logger for the command line.

    Args:
        verbose: Log at DEBUG
        quiet: Log at WARNING
        level: Level used when neither verbose nor quiet is set; an unknown
            level name falls back to INFO

    Returns:
        The package logger
    """
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    elif isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    # Looked up at call time so redirected streams are honoured
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    if sys.stderr.isatty():
        handler.setFormatter(ColoredFormatter(CLI_FORMAT))
    else:
        handler.setFormatter(logging.Formatter(CLI_FORMAT))
    root_logger.addHandler(handler)

    return logging.getLogger("dcap_pytools")


def get_logger(name: str = "dcap_pytools") -> logging.Logger:
    """Get a logger instance with the given name."""
    return logging.getLogger(name)


logger = get_logger(__name__)


def log_status(message: str) -> None:
    """
    Write a progress line to stderr.

    Status lines are part of the command's output contract, so they are
    written as-is and do not depend on the configured log level.
    """
    print(message, file=sys.stderr, flush=True)


def log_verification_step(step: str, status: str, details: str = "") -> None:
    """Log a verification step with status."""
    suffix = f" - {details}" if details else ""
    if status.upper() in ("PASS", "SUCCESS", "OK"):
        logger.info(f"✓ {step}: {status}{suffix}")
    elif status.upper() in ("FAIL", "FAILED", "ERROR"):
        logger.error(f"! {step}: {status}{suffix}")
    else:
        logger.info(f"  {step}: {status}{suffix}")


def log_network_request(
    url: str, method: str = "GET", status_code: Optional[int] = None
) -> None:
    """Log network requests at DEBUG."""
    msg = f"{method} {url}"
    if status_code:
        msg += f" - Status: {status_code}"
    logger.debug(msg)
