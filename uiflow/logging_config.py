"""Unified logging configuration for the pipeline CLI and API."""
from __future__ import annotations

import logging
import os
from pathlib import Path

# Log directory: configurable via LOG_DIR env var
LOG_DIR = Path(os.getenv("LOG_DIR", str(Path.home() / ".cache" / "uiflow" / "logs")))

# Prevent duplicate handlers
_configured_loggers: set[str] = set()


def setup_logger(name: str, filename: str, level: int = logging.INFO) -> logging.Logger:
    """Setup a logger with file and console handlers.

    Args:
        name: Logger name (e.g., 'uiflow', 'uiflow.api')
        filename: Log file name (e.g., 'gates.log')
        level: Threshold for both handlers

    Returns:
        Configured logger instance
    """
    if name in _configured_loggers:
        return logging.getLogger(name)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False  # Prevent duplicate logs

    # File handler
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    fh = logging.FileHandler(LOG_DIR / filename, encoding='utf-8')
    fh.setLevel(level)
    fh.setFormatter(logging.Formatter(
        "%(asctime)s [%(name)s] [%(levelname)s] %(message)s"
    ))

    # Console handler (stderr, so stdout stays reserved for reports)
    sh = logging.StreamHandler()
    sh.setLevel(level)
    sh.setFormatter(logging.Formatter(
        "%(asctime)s [%(name)s] %(message)s"
    ))

    logger.addHandler(fh)
    logger.addHandler(sh)

    _configured_loggers.add(name)
    return logger


def get_cli_logger(verbose: bool = False) -> logging.Logger:
    """Logger root for CLI runs; all uiflow.* module loggers report here."""
    return setup_logger("uiflow", "uiflow.log", logging.DEBUG if verbose else logging.WARNING)


def get_api_logger() -> logging.Logger:
    """Logger for API requests."""
    return setup_logger("uiflow.api", "api.log")
