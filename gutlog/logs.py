"""Log file setup for the gutlog command line."""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path


def setup_logging(log_dir: Path | None = None) -> logging.Logger:
    """Configure secure logging with rotation.

    Logs are written to ~/.gutlog/logs/ with owner-only permissions.
    Uses INFO level by default; set GUTLOG_DEBUG=1 for DEBUG level.

    Args:
        log_dir: Override for the log directory (tests use a tmp path)

    Returns:
        The gutlog package logger
    """
    log_dir = log_dir or Path.home() / ".gutlog" / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_dir.chmod(0o700)

    log_file = log_dir / "gutlog.log"
    log_level = logging.DEBUG if os.environ.get("GUTLOG_DEBUG") else logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Repeated calls must not stack handlers on the same file
    for existing in root_logger.handlers:
        if isinstance(existing, RotatingFileHandler) and Path(existing.baseFilename) == log_file:
            return logging.getLogger("gutlog")

    handler = RotatingFileHandler(
        log_file,
        maxBytes=5 * 1024 * 1024,  # 5 MB
        backupCount=3,
        encoding="utf-8",
    )
    handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    root_logger.addHandler(handler)

    return logging.getLogger("gutlog")


__all__ = ["setup_logging"]
