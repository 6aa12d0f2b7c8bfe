"""
Persistent per-user state for the updater.

Manages ~/.gemini-cli-updater/config.json: the last check and update
timestamps (epoch milliseconds), the capped version history used for
rollback, and user settings. Keys are stored in camelCase so the file stays
compatible with documents written by earlier releases.

Two invocations running at once may race on the file; the last writer wins.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from .common import get_updater_home, now_ms

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.json"

DEFAULT_UPDATE_COOLDOWN_MS = 60 * 60 * 1000
DEFAULT_MAX_VERSION_HISTORY = 10


@dataclass
class Settings:
    """User-adjustable settings stored in the config document."""

    update_cooldown: int = DEFAULT_UPDATE_COOLDOWN_MS
    max_version_history: int = DEFAULT_MAX_VERSION_HISTORY
    enable_logging: bool = True
    auto_update: bool = True

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "updateCooldown": self.update_cooldown,
            "maxVersionHistory": self.max_version_history,
            "enableLogging": self.enable_logging,
            "autoUpdate": self.auto_update,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Settings":
        """Create from dictionary, filling missing keys with defaults."""
        return cls(
            update_cooldown=_at_least(
                _as_int(data.get("updateCooldown"), DEFAULT_UPDATE_COOLDOWN_MS), 0, DEFAULT_UPDATE_COOLDOWN_MS
            ),
            max_version_history=_at_least(
                _as_int(data.get("maxVersionHistory"), DEFAULT_MAX_VERSION_HISTORY), 1, DEFAULT_MAX_VERSION_HISTORY
            ),
            enable_logging=data.get("enableLogging", True) is not False,
            auto_update=data.get("autoUpdate", True) is not False,
        )


@dataclass
class VersionHistoryEntry:
    """One recorded update transition."""

    from_version: str
    to_version: str
    timestamp: int
    success: bool = True

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "from": self.from_version,
            "to": self.to_version,
            "timestamp": self.timestamp,
            "success": self.success,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VersionHistoryEntry":
        """Create from dictionary."""
        return cls(
            from_version=str(data.get("from") or ""),
            to_version=str(data.get("to") or ""),
            timestamp=_as_int(data.get("timestamp"), 0),
            success=bool(data.get("success", True)),
        )


@dataclass
class ConfigDocument:
    """The whole persisted document."""

    last_update_check: int | None = None
    last_update_time: int | None = None
    version_history: list[VersionHistoryEntry] = field(default_factory=list)
    settings: Settings = field(default_factory=Settings)
    extra: dict[str, Any] = field(default_factory=dict)

    def cap_history(self) -> None:
        """Drop the oldest entries beyond settings.max_version_history."""
        cap = self.settings.max_version_history
        if cap < 1:
            cap = DEFAULT_MAX_VERSION_HISTORY
        if len(self.version_history) > cap:
            self.version_history = self.version_history[-cap:]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = dict(self.extra)
        data.update({
            "lastUpdateCheck": self.last_update_check,
            "lastUpdateTime": self.last_update_time,
            "versionHistory": [entry.to_dict() for entry in self.version_history],
            "settings": self.settings.to_dict(),
        })
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConfigDocument":
        """Create from dictionary, merging over defaults.

        Unknown top-level keys are kept in `extra` and written back unchanged.
        """
        known = {"lastUpdateCheck", "lastUpdateTime", "versionHistory", "settings"}
        history_raw = data.get("versionHistory")
        settings_raw = data.get("settings")

        history = []
        if isinstance(history_raw, list):
            history = [
                VersionHistoryEntry.from_dict(item)
                for item in history_raw
                if isinstance(item, dict)
            ]

        doc = cls(
            last_update_check=_as_int(data.get("lastUpdateCheck"), None),
            last_update_time=_as_int(data.get("lastUpdateTime"), None),
            version_history=history,
            settings=Settings.from_dict(settings_raw if isinstance(settings_raw, dict) else {}),
            extra={key: value for key, value in data.items() if key not in known},
        )
        doc.cap_history()
        return doc


def _as_int(value: Any, default: Any) -> Any:
    """Coerce JSON numbers to int; anything else yields default."""
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, (int, float)):
        return int(value)
    return default


def _at_least(value: int, minimum: int, default: int) -> int:
    return value if value >= minimum else default


def get_config_path(home: Path | None = None) -> Path:
    """Get config document path inside the data directory."""
    return (home or get_updater_home()) / CONFIG_FILE_NAME


class ConfigStore:
    """
    Read-modify-write access to the config document.

    Constructed once per invocation and handed to the components that need it.

    Attributes:
        path: Location of the JSON document
    """

    def __init__(self, path: Path | None = None, clock: Callable[[], int] = now_ms):
        self.path = path or get_config_path()
        self.clock = clock
        self.ensure_exists()

    def ensure_exists(self) -> None:
        """Create the data directory and a default document if missing."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning(f"Could not create config directory {self.path.parent}: {e}")
            return
        if not self.path.exists():
            self.write(ConfigDocument())

    def read(self) -> ConfigDocument:
        """Load the document merged over defaults.

        Never raises: a missing or corrupt file yields defaults, which are
        persisted so the file is valid afterwards.
        """
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.debug(f"Config file missing, writing defaults: {self.path}")
            doc = ConfigDocument()
            self.write(doc)
            return doc
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read config file {self.path}: {e}")
            doc = ConfigDocument()
            self.write(doc)
            return doc

        if not isinstance(data, dict):
            logger.warning(f"Config file {self.path} does not hold an object, resetting")
            doc = ConfigDocument()
            self.write(doc)
            return doc

        return ConfigDocument.from_dict(data)

    def write(self, doc: ConfigDocument) -> None:
        """Persist the document.

        Atomic write: write to temp file then rename. Failures are logged, not raised.
        The history is capped before it is written.
        """
        doc.cap_history()
        temp_path = self.path.with_suffix(".tmp")
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(doc.to_dict(), f, indent=2, ensure_ascii=False)
                f.write("\n")
            temp_path.replace(self.path)
        except OSError as e:
            logger.warning(f"Could not write config file {self.path}: {e}")

    def get_last_check(self) -> int | None:
        return self.read().last_update_check

    def set_last_check(self, timestamp: int | None) -> None:
        doc = self.read()
        doc.last_update_check = timestamp
        self.write(doc)

    def get_last_update_time(self) -> int | None:
        return self.read().last_update_time

    def set_last_update_time(self, timestamp: int | None) -> None:
        doc = self.read()
        doc.last_update_time = timestamp
        self.write(doc)

    def get_version_history(self) -> list[VersionHistoryEntry]:
        return self.read().version_history

    def append_version_history(self, from_version: str, to_version: str) -> VersionHistoryEntry:
        """
        Record an update transition.

        Keeps only the most recent maxVersionHistory entries (oldest dropped first).

        Returns:
            The entry that was appended
        """
        doc = self.read()
        entry = VersionHistoryEntry(
            from_version=from_version,
            to_version=to_version,
            timestamp=self.clock(),
            success=True,
        )
        doc.version_history.append(entry)
        self.write(doc)
        return entry

    def get_settings(self) -> Settings:
        return self.read().settings

    def update_settings(self, **changes: Any) -> Settings:
        """
        Update selected settings fields.

        Args:
            **changes: Settings field names (snake_case) and new values

        Returns:
            The updated Settings

        Raises:
            ValueError: On unknown field names or invalid values
        """
        doc = self.read()
        for name, value in changes.items():
            if not hasattr(doc.settings, name):
                raise ValueError(f"Unknown setting: {name}")
            if name in ("update_cooldown", "max_version_history"):
                if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                    raise ValueError(f"Invalid {name}: {value!r}. Must be a non-negative integer")
                if name == "max_version_history" and value < 1:
                    raise ValueError("Invalid max_version_history: must be at least 1")
            setattr(doc.settings, name, value)

        # Lowering the cap shrinks the history on write
        self.write(doc)
        return doc.settings

    def is_auto_update_enabled(self) -> bool:
        return self.get_settings().auto_update

    def get_update_cooldown(self) -> int:
        """Cooldown in milliseconds (default one hour)."""
        return self.get_settings().update_cooldown

    def export_config(self) -> dict[str, Any]:
        """The whole document as a JSON-ready dict, for backups."""
        return self.read().to_dict()

    def import_config(self, data: Any) -> bool:
        """
        Replace the document with a backup, merged over defaults.

        Returns:
            False if data is not a JSON object
        """
        if not isinstance(data, dict):
            logger.warning(f"Could not import config: expected an object, got {type(data).__name__}")
            return False
        merged = {**ConfigDocument().to_dict(), **data}
        self.write(ConfigDocument.from_dict(merged))
        return True

    def reset(self) -> None:
        """Delete the document and recreate defaults."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove config file {self.path}: {e}")
        self.ensure_exists()
