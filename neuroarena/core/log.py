# SPDX-License-Identifier: MIT
"""
Loguru configuration for the command-line trainer.
"""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from loguru import logger


def setup_logging(level: str = "INFO", log_dir: Optional[Path] = None) -> Optional[Path]:
    """Route log records to stderr and, when ``log_dir`` is given, to a timestamped file.

    Returns the log file path, or ``None`` for console-only logging.
    """
    logger.remove()
    colorize = sys.stderr.isatty()
    logger.add(
        sys.stderr,
        level=level,
        format=(
            "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <level>{message}</level>"
        ),
        colorize=colorize,
    )
    if log_dir is None:
        return None

    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"training_{stamp}.log"
    logger.add(
        log_file,
        level=level,
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}",
        encoding="utf-8",
    )
    logger.debug(f"[Logging] Writing to {log_file}")
    return log_file
