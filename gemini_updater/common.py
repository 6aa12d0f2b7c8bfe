"""
Common utilities shared across gemini_updater modules.
"""

from __future__ import annotations

import os
import time
from pathlib import Path

# Per-user data directory (config document and log file)
DEFAULT_HOME_DIRNAME = ".gemini-cli-updater"

TRUTHY = {"1", "true", "yes", "on"}


class UpdaterError(Exception):
    """
    Base exception for updater errors.

    Attributes:
        message: Human-readable error message
        remediation: Suggested fix for the error
    """
    def __init__(self, message: str, remediation: str | None = None):
        self.message = message
        self.remediation = remediation
        super().__init__(message)


def env_flag(name: str) -> bool:
    """
    Check whether a boolean environment variable is set.

    Accepts "1", "true", "yes" and "on" (case-insensitive).
    """
    return os.environ.get(name, "").strip().lower() in TRUTHY


def is_debug_enabled() -> bool:
    """Check if verbose/debug logging was requested via environment."""
    return env_flag("GEMINI_UPDATER_DEBUG")


def get_updater_home() -> Path:
    """Get the per-user data directory from env or default.

    Returns:
        Path to the data directory (not created)
    """
    override = os.environ.get("GEMINI_UPDATER_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / DEFAULT_HOME_DIRNAME


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)

