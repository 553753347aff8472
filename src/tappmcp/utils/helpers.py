#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Common utility functions
Provides logging setup, size estimation and duration conversion
"""

import json
import logging
import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Optional, Union

Duration = Union[int, float, timedelta]


def setup_logging(verbose: bool = False, log_dir: Optional[str] = None) -> logging.Logger:
    """
    Setup logging system

    Args:
        verbose: Whether to enable verbose logging mode
        log_dir: Directory for dated log files, console only if None

    Returns:
        Configured logger object
    """
    log_level = logging.DEBUG if verbose else logging.INFO

    # Create log format
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # Configure package root logger
    logger = logging.getLogger('tappmcp')
    logger.setLevel(log_level)

    # Avoid duplicate handlers
    if not logger.handlers:
        # MCP hosts own stdout, so log to stderr
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

        if log_dir:
            log_path = Path(log_dir).expanduser()
            log_path.mkdir(parents=True, exist_ok=True)

            log_file = log_path / f'tappmcp_{datetime.now().strftime("%Y%m%d")}.log'
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger


def estimate_size(value: Any) -> int:
    """
    Approximate byte size of a value

    Uses the UTF-8 length of its JSON encoding, falling back to str()
    for values JSON cannot represent.

    Args:
        value: Any value

    Returns:
        Size in bytes
    """
    if isinstance(value, bytes):
        return len(value)
    try:
        encoded = json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError):
        encoded = str(value)
    return len(encoded.encode('utf-8'))


def duration_to_seconds(duration: Duration) -> float:
    """
    Convert a duration to float seconds

    Args:
        duration: Seconds as a number, or a timedelta

    Returns:
        Seconds
    """
    if isinstance(duration, timedelta):
        return duration.total_seconds()
    if isinstance(duration, bool) or not isinstance(duration, (int, float)):
        raise TypeError(f"Duration must be seconds or timedelta, got {type(duration).__name__}")
    return float(duration)
