"""Utility functions for the brew-maintainer application."""

import os
import logging
from typing import Optional

logger = logging.getLogger("brewmaintainer.utils")

APPLE_SILICON_LOG_DIR = "/opt/homebrew/var/log"
INTEL_LOG_DIR = "/usr/local/var/log"

# Lower-cased fragments brew and its installers print when they wait for an answer
INPUT_PROMPT_PATTERNS = (
    "y/n",
    "(y/n)",
    "[y/n]",
    "yes/no",
    "(yes/no)",
    "[yes/no]",
    "press enter",
    "continue?",
    "proceed?",
    "password:",
    "passphrase:",
    "are you sure",
    "do you want",
    "would you like",
)


def is_waiting_for_input(line: str) -> bool:
    """
    Check whether an output line is a prompt waiting for user input.

    Args:
        line: A single line of command output

    Returns:
        True if the line looks like a prompt, False otherwise
    """
    line_lower = line.lower()
    return any(pattern in line_lower for pattern in INPUT_PROMPT_PATTERNS)


def default_log_dir() -> str:
    """
    Pick the Homebrew log directory for this machine.

    Returns:
        The Apple Silicon log directory if it exists, the Intel one otherwise
    """
    if os.path.isdir(APPLE_SILICON_LOG_DIR):
        return APPLE_SILICON_LOG_DIR
    return INTEL_LOG_DIR


def ensure_dir(path: str) -> Optional[str]:
    """
    Create a directory if it does not exist yet.

    Args:
        path: Directory to create

    Returns:
        The directory path, or None if it could not be created
    """
    try:
        os.makedirs(path, exist_ok=True)
        return path
    except OSError as e:
        logger.warning(f"Could not create directory {path}: {e}")
        return None


def format_duration(seconds: float) -> str:
    """
    Format a duration in seconds to a human-readable string.

    Args:
        seconds: Duration in seconds

    Returns:
        Human-readable duration (e.g., "1m 05s")
    """
    if seconds < 60:
        return f"{seconds:.2f}s"

    minutes, secs = divmod(int(seconds), 60)
    if minutes < 60:
        return f"{minutes}m {secs:02d}s"

    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes:02d}m {secs:02d}s"
