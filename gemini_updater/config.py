"""
Options file parsing and management.

Reads YAML option files describing which package the wrapper manages and how.
Merges options from multiple sources (explicit path → user → system → defaults).
The mutable per-user state (timestamps, history, settings) lives in
config_store instead.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from typing import Any

import yaml

logger = logging.getLogger(__name__)


# Option file locations (in priority order, after $GEMINI_UPDATER_CONFIG)
CONFIG_LOCATIONS = [
    os.path.expanduser("~/.config/gemini-cli-updater/config.yml"),   # User global
    os.path.expanduser("~/.config/gemini-cli-updater/config.yaml"),
    "/etc/gemini-cli-updater/config.yml",                            # System global
    "/etc/gemini-cli-updater/config.yaml",
]

SUPPORTED_PACKAGE_MANAGERS = ("npm", "pnpm", "yarn")


@dataclass(frozen=True)
class UpdaterOptions:
    """
    Static options for the wrapper.

    Attributes:
        package_name: Registry package that provides the wrapped tool
        command_name: Executable name of the wrapped tool
        wrapper_command: Executable name of this wrapper (alias target)
        alias_name: Shell alias that redirects to the wrapper
        registry_url: Base URL of the package registry
        package_manager: Package manager used to install ('npm', 'pnpm' or 'yarn')
        version_timeout_seconds: Timeout for the `--version` query
        registry_timeout_seconds: Timeout for the registry lookup
        install_timeout_seconds: Timeout for install/rollback commands
        source: Path to the option file that was loaded
    """
    package_name: str = "@google/gemini-cli"
    command_name: str = "gemini"
    wrapper_command: str = "gemini-cli-updater"
    alias_name: str = "gemini"
    registry_url: str = "https://registry.npmjs.org"
    package_manager: str = "npm"
    version_timeout_seconds: int = 5
    registry_timeout_seconds: int = 10
    install_timeout_seconds: int = 300
    source: str = ""

    def __post_init__(self):
        """Validate options after initialization."""
        for name in ("package_name", "command_name", "wrapper_command", "alias_name"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"Invalid {name}: {value!r}. Must be a non-empty string")

        url = self.registry_url
        if not isinstance(url, str) or not url.startswith(("http://", "https://")):
            raise ValueError(
                f"Invalid registry_url: {url!r}. "
                "Must start with http:// or https://"
            )

        if self.package_manager not in SUPPORTED_PACKAGE_MANAGERS:
            raise ValueError(
                f"Invalid package_manager: {self.package_manager}. "
                f"Must be one of: {', '.join(SUPPORTED_PACKAGE_MANAGERS)}"
            )

        if self.version_timeout_seconds < 1 or self.version_timeout_seconds > 60:
            raise ValueError(
                f"Invalid version_timeout_seconds: {self.version_timeout_seconds}. "
                "Must be between 1 and 60"
            )

        if self.registry_timeout_seconds < 1 or self.registry_timeout_seconds > 120:
            raise ValueError(
                f"Invalid registry_timeout_seconds: {self.registry_timeout_seconds}. "
                "Must be between 1 and 120"
            )

        if self.install_timeout_seconds < 10 or self.install_timeout_seconds > 3600:
            raise ValueError(
                f"Invalid install_timeout_seconds: {self.install_timeout_seconds}. "
                "Must be between 10 and 3600"
            )

    @staticmethod
    def from_dict(data: dict[str, Any], source: str = "", base: UpdaterOptions | None = None) -> UpdaterOptions:
        """
        Create UpdaterOptions from dictionary.

        Keys missing from data keep the value from base (defaults if None).
        Unknown keys are ignored.
        """
        base = base or UpdaterOptions()
        known = {f.name for f in fields(UpdaterOptions)} - {"source"}
        changes = {key: value for key, value in data.items() if key in known}
        return replace(base, source=source or base.source, **changes)


def _load_yaml(file_path: str) -> dict[str, Any] | None:
    """
    Load YAML option file.

    Returns:
        Parsed dictionary ({} for an empty file), or None if the file is unreadable or invalid
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
            if data is None:
                return {}
            return data if isinstance(data, dict) else None
    except (OSError, yaml.YAMLError) as e:
        logger.debug(f"Could not parse {file_path}: {e}")
        return None


def load_options_file(file_path: str) -> dict[str, Any] | None:
    """
    Load and validate raw options from a single file.

    Args:
        file_path: Path to YAML file

    Returns:
        Option dictionary, or None if the file is missing, invalid, or fails validation
    """
    if not os.path.exists(file_path):
        return None

    logger.debug(f"Loading options from: {file_path}")
    data = _load_yaml(file_path)
    if data is None:
        logger.warning(f"Invalid options file: {file_path}")
        return None

    try:
        UpdaterOptions.from_dict(data, source=file_path)
    except (ValueError, TypeError) as e:
        logger.warning(f"Options validation failed for {file_path}: {e}")
        return None

    return data


def load_options(custom_path: str | None = None) -> UpdaterOptions:
    """
    Load and merge options from all sources.

    Precedence (highest to lowest):
    1. custom_path argument, else $GEMINI_UPDATER_CONFIG
    2. User ~/.config/gemini-cli-updater/config.yml
    3. System /etc/gemini-cli-updater/config.yml
    4. Defaults

    Raises:
        ValueError: If an explicit path is given but cannot be loaded
    """
    explicit = custom_path or os.environ.get("GEMINI_UPDATER_CONFIG")
    layers: list[tuple[str, dict[str, Any]]] = []

    if explicit:
        data = load_options_file(explicit)
        if data is None:
            raise ValueError(f"Could not load options from specified path: {explicit}")
        layers.append((explicit, data))

    for location in CONFIG_LOCATIONS:
        data = load_options_file(location)
        if data is not None:
            layers.append((location, data))
            logger.debug(f"Found options at: {location}")

    if not layers:
        logger.debug("No option files found, using defaults")
        return UpdaterOptions()

    # Apply lowest priority first so higher layers override
    options = UpdaterOptions()
    for location, data in reversed(layers):
        options = UpdaterOptions.from_dict(data, source=location, base=options)

    logger.debug(f"Merged {len(layers)} option files")
    return options


def validate_options(options: UpdaterOptions) -> list[str]:
    """
    Validate option combinations and return warning messages.

    Returns:
        List of warnings (empty if consistent)
    """
    warnings = []

    if options.alias_name == options.wrapper_command:
        warnings.append(
            f"alias_name and wrapper_command are the same ({options.alias_name}); "
            "the alias would point at itself"
        )

    if options.command_name == options.wrapper_command:
        warnings.append(
            f"command_name and wrapper_command are the same ({options.command_name}); "
            "the wrapper would launch itself"
        )

    if options.registry_url.startswith("http://"):
        warnings.append(f"registry_url uses plain HTTP: {options.registry_url}")

    return warnings
