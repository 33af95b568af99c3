"""Utility functions for WhisperBurn."""

import os
import logging
import time
from typing import Optional

from .exceptions import FileSystemError

logger = logging.getLogger(__name__)

def ensure_dir_exists(dir_path: str) -> None:
    """
    Ensures that a directory exists. Creates it if it doesn't.

    Args:
        dir_path: The path to the directory.

    Raises:
        FileSystemError: If the directory cannot be created due to permissions
                         or if the path exists but is not a directory.
    """
    if not dir_path:
        raise ValueError("Directory path cannot be empty.")
    try:
        if not os.path.exists(dir_path):
            os.makedirs(dir_path, exist_ok=True)
            logger.info(f"Created directory: {dir_path}")
        elif not os.path.isdir(dir_path):
            raise FileSystemError(f"Path exists but is not a directory: {dir_path}")
    except OSError as e:
        logger.error(f"Error creating or accessing directory {dir_path}: {e}", exc_info=True)
        raise FileSystemError(f"Could not create or access directory {dir_path}: {e}") from e

def format_time_srt(centiseconds: int) -> str:
    """
    Formats a time in hundredths of a second into SRT time format HH:MM:SS,mmm.

    Args:
        centiseconds: Time in hundredths of a second.

    Returns:
        Formatted time string.
    """
    t = max(int(centiseconds), 0)
    hours = t // 360000
    minutes = (t // 6000) % 60
    seconds = (t // 100) % 60
    millis = (t % 100) * 10
    return f"{hours:02d}:{minutes:02d}:{seconds:02d},{millis:03d}"

def parse_time_srt(value: str) -> int:
    """
    Parses an SRT timestamp (HH:MM:SS,mmm or HH:MM:SS.mmm) into hundredths of a second.

    Raises:
        ValueError: If the value is not a valid timestamp.
    """
    clock, _, fraction = value.strip().replace('.', ',').partition(',')
    parts = clock.split(':')
    if len(parts) != 3 or not fraction.isdigit():
        raise ValueError(f"Invalid SRT timestamp: {value!r}")
    hours, minutes, seconds = (int(p) for p in parts)
    millis = int(fraction.ljust(3, '0')[:3])
    total_ms = ((hours * 60 + minutes) * 60 + seconds) * 1000 + millis
    return int(round(total_ms / 10))

def reserve_unique_path(directory: str, stem: str, extension: str, timestamp: Optional[int] = None) -> str:
    """
    Creates an empty '<directory>/<stem>_<timestamp><extension>' and returns its path.

    A '_N' counter is added when the name is taken. The file is created with
    O_EXCL, so concurrent callers never receive the same path.

    Raises:
        OSError: If the directory cannot be written.
    """
    stamp = int(time.time()) if timestamp is None else timestamp
    candidate = os.path.join(directory, f"{stem}_{stamp}{extension}")
    counter = 1
    while True:
        try:
            fd = os.open(candidate, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            candidate = os.path.join(directory, f"{stem}_{stamp}_{counter}{extension}")
            counter += 1
            continue
        os.close(fd)
        return candidate
