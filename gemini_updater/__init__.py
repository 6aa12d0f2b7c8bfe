"""
Gemini CLI Updater - keeps the Gemini CLI current, then runs it.

Core Modules:
- State: Persistent JSON config document (timestamps, history, settings)
- Versions: Installed version detection, registry lookup, comparison
- Updates: Cooldown-gated checks, installation, rollback
- Launch: Locating and running the wrapped tool with signal forwarding
- Setup: Shell alias management and the management CLI
"""

__version__ = "1.0.0"
__author__ = "Gemini CLI Updater Contributors"

VERSION = __version__

# State
from .common import UpdaterError, get_updater_home, now_ms
from .config_store import (
    ConfigDocument,
    ConfigStore,
    Settings,
    VersionHistoryEntry,
    get_config_path,
)
from .config import UpdaterOptions, load_options, load_options_file, validate_options

# Versions
from .versions import (
    NetworkError,
    ParseError,
    RegistryTimeoutError,
    VersionNotFoundError,
    compare_versions,
    get_current_version,
    get_latest_version,
    is_newer,
)

# Updates
from .package_managers import PackageManager, get_package_manager, select_package_manager
from .installer import CommandResult, InstallError, install_package
from .updater import NoRollbackTargetError, UpdateVerificationError, Updater

# Launch
from .launcher import DependencyNotFoundError, Launcher

# Setup
from .shell_alias import AliasError, add_alias, alias_exists, detect_shell, remove_alias
from .logging_config import setup_logging, get_logger

__all__ = [
    "__version__",
    "VERSION",
    # State
    "UpdaterError",
    "get_updater_home",
    "now_ms",
    "ConfigDocument",
    "ConfigStore",
    "Settings",
    "VersionHistoryEntry",
    "get_config_path",
    "UpdaterOptions",
    "load_options",
    "load_options_file",
    "validate_options",
    # Versions
    "NetworkError",
    "ParseError",
    "RegistryTimeoutError",
    "VersionNotFoundError",
    "compare_versions",
    "get_current_version",
    "get_latest_version",
    "is_newer",
    # Updates
    "PackageManager",
    "get_package_manager",
    "select_package_manager",
    "CommandResult",
    "InstallError",
    "install_package",
    "NoRollbackTargetError",
    "UpdateVerificationError",
    "Updater",
    # Launch
    "DependencyNotFoundError",
    "Launcher",
    # Setup
    "AliasError",
    "add_alias",
    "alias_exists",
    "detect_shell",
    "remove_alias",
    "setup_logging",
    "get_logger",
]
