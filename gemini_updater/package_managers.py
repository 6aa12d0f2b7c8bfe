"""
Package manager registry for installing the wrapped tool.

Each manager knows how to install the latest or a pinned version of a
package globally, and how to report its global module root (used by the
launcher when the tool is not on PATH).
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


# Cache for package manager availability checks
_PM_CACHE: dict[str, bool] = {}
_PM_CACHE_LOCK = threading.Lock()


@dataclass(frozen=True)
class PackageManager:
    """
    Package manager definition.

    Attributes:
        name: Package manager identifier (e.g., "npm", "pnpm")
        display_name: Human-readable name
        check_command: Command to check if manager is available
        install_command_template: Template for install-latest ({package} placeholder)
        pinned_install_template: Template for installing an exact version ({package}, {version})
        root_command: Command that prints the global module root
    """
    name: str
    display_name: str
    check_command: tuple[str, ...]
    install_command_template: tuple[str, ...]
    pinned_install_template: tuple[str, ...]
    root_command: tuple[str, ...]

    def is_available(self, timeout: int = 2) -> bool:
        """
        Check if this package manager is available on the system.

        Args:
            timeout: Timeout in seconds for check command

        Returns:
            True if package manager is installed and accessible
        """
        with _PM_CACHE_LOCK:
            if self.name in _PM_CACHE:
                return _PM_CACHE[self.name]

        try:
            result = subprocess.run(
                _resolve(self.check_command),
                capture_output=True,
                timeout=timeout,
                text=True,
            )
            available = result.returncode == 0
        except (OSError, subprocess.TimeoutExpired):
            available = False

        with _PM_CACHE_LOCK:
            _PM_CACHE[self.name] = available

        return available

    def get_install_command(self, package: str, version: str = "latest") -> tuple[str, ...]:
        """
        Get install command for a package.

        Args:
            package: Package name
            version: "latest" or an exact version to pin

        Returns:
            Command tuple to install the package
        """
        template = self.install_command_template if version == "latest" else self.pinned_install_template
        command = []
        for part in template:
            part = part.replace("{package}", package)
            part = part.replace("{version}", version)
            command.append(part)
        return tuple(command)

    def get_global_root(self, timeout: int = 5) -> Path | None:
        """
        Ask the manager for its global module root.

        Returns:
            Directory holding globally installed packages, or None if unknown
        """
        try:
            result = subprocess.run(
                _resolve(self.root_command),
                capture_output=True,
                text=True,
                timeout=timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug(f"{self.name} global root lookup failed: {e}")
            return None

        if result.returncode != 0:
            logger.debug(f"{' '.join(self.root_command)} exited with {result.returncode}")
            return None

        root = result.stdout.strip().splitlines()[-1].strip() if result.stdout.strip() else ""
        if not root:
            return None

        path = Path(root)
        # yarn reports the global dir; packages live under node_modules
        if self.name == "yarn":
            path = path / "node_modules"
        return path


def _resolve(command: tuple[str, ...]) -> list[str]:
    """Resolve the executable through PATH (needed for .cmd shims on Windows)."""
    argv = list(command)
    argv[0] = shutil.which(argv[0]) or argv[0]
    return argv


PACKAGE_MANAGERS = (
    PackageManager(
        name="npm",
        display_name="npm",
        check_command=("npm", "--version"),
        install_command_template=("npm", "install", "-g", "{package}"),
        pinned_install_template=("npm", "install", "-g", "{package}@{version}"),
        root_command=("npm", "root", "-g"),
    ),
    PackageManager(
        name="pnpm",
        display_name="pnpm",
        check_command=("pnpm", "--version"),
        install_command_template=("pnpm", "add", "-g", "{package}"),
        pinned_install_template=("pnpm", "add", "-g", "{package}@{version}"),
        root_command=("pnpm", "root", "-g"),
    ),
    PackageManager(
        name="yarn",
        display_name="yarn",
        check_command=("yarn", "--version"),
        install_command_template=("yarn", "global", "add", "{package}"),
        pinned_install_template=("yarn", "global", "add", "{package}@{version}"),
        root_command=("yarn", "global", "dir"),
    ),
)


# Package manager lookup by name
_PM_BY_NAME = {pm.name: pm for pm in PACKAGE_MANAGERS}


def get_package_manager(name: str) -> PackageManager | None:
    """
    Get package manager by name.

    Returns:
        PackageManager object, or None if not found
    """
    return _PM_BY_NAME.get(name)


def select_package_manager(preferred: str) -> PackageManager:
    """
    Pick the package manager to use.

    Uses the preferred manager when available, otherwise the first available
    one in registry order. Falls back to the preferred definition when none
    responds, so the install step reports the real "command not found" error.

    Raises:
        ValueError: If preferred is not a known package manager
    """
    pm = get_package_manager(preferred)
    if pm is None:
        raise ValueError(
            f"Unknown package manager: {preferred}. "
            f"Must be one of: {', '.join(_PM_BY_NAME)}"
        )
    if pm.is_available():
        return pm

    for candidate in PACKAGE_MANAGERS:
        if candidate.name != preferred and candidate.is_available():
            logger.debug(f"{preferred} not available, using {candidate.name}")
            return candidate

    return pm


def clear_cache() -> None:
    """Clear the package manager availability cache."""
    with _PM_CACHE_LOCK:
        _PM_CACHE.clear()
