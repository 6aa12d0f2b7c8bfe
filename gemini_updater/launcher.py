"""
Launching the wrapped tool.

Locates the tool's executable (PATH first, then the package manager's global
module root), runs it with the user's arguments on the inherited standard
streams, forwards SIGINT/SIGTERM to it, and reports its exit code.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import signal
import subprocess
import sys
import threading
from pathlib import Path
from typing import Sequence

from .common import UpdaterError
from .config import UpdaterOptions
from .package_managers import PackageManager, get_package_manager

logger = logging.getLogger(__name__)

FORWARDED_SIGNALS = ("SIGINT", "SIGTERM")
SCRIPT_SUFFIXES = {".js", ".mjs", ".cjs"}


class DependencyNotFoundError(UpdaterError):
    """Raised when the wrapped tool's executable cannot be located."""
    pass


def _same_file(a: str | Path, b: str | Path) -> bool:
    try:
        return os.path.samefile(a, b)
    except OSError:
        return False


def find_on_path(command_name: str, exclude: Sequence[str | Path] = ()) -> str | None:
    """
    Find an executable on PATH, skipping any that are the same file as an excluded path.

    Args:
        command_name: Binary name to search for
        exclude: Paths that must not be returned (e.g. the wrapper itself)

    Returns:
        Absolute path to the executable, or None
    """
    for directory in os.environ.get("PATH", "").split(os.pathsep):
        if not directory:
            continue
        candidate = shutil.which(command_name, path=directory)
        if not candidate:
            continue
        if any(_same_file(candidate, other) for other in exclude):
            logger.debug(f"Skipping {candidate} (wrapper executable)")
            continue
        return candidate
    return None


def resolve_bin_entry(package_dir: Path, command_name: str) -> Path | None:
    """
    Read package.json in package_dir and resolve its declared entry point.

    The bin field may be a string or a mapping of command names to paths.
    A mapping entry named command_name wins, otherwise the first entry is used.
    """
    manifest = package_dir / "package.json"
    try:
        with open(manifest, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.debug(f"Could not read {manifest}: {e}")
        return None

    bin_field = data.get("bin") if isinstance(data, dict) else None
    if isinstance(bin_field, str):
        relative = bin_field
    elif isinstance(bin_field, dict) and bin_field:
        relative = bin_field.get(command_name) or next(iter(bin_field.values()))
    else:
        logger.debug(f"No bin entry in {manifest}")
        return None

    if not isinstance(relative, str):
        return None

    entry = (package_dir / relative).resolve()
    if not entry.is_file():
        logger.debug(f"Declared entry point does not exist: {entry}")
        return None
    return entry


class Launcher:
    """
    Runs the wrapped tool on behalf of the user.

    Attributes:
        options: Package and command options
    """

    def __init__(
        self,
        options: UpdaterOptions | None = None,
        package_manager: PackageManager | None = None,
    ):
        self.options = options or UpdaterOptions()
        self._package_manager = package_manager

    @property
    def package_manager(self) -> PackageManager | None:
        if self._package_manager is None:
            self._package_manager = get_package_manager(self.options.package_manager)
        return self._package_manager

    def _find_in_global_root(self) -> list[str] | None:
        pm = self.package_manager
        if pm is None:
            return None

        root = pm.get_global_root()
        if root is None:
            return None

        package_dir = root / self.options.package_name
        entry = resolve_bin_entry(package_dir, self.options.command_name)
        if entry is None:
            return None

        if entry.suffix in SCRIPT_SUFFIXES or not os.access(entry, os.X_OK):
            node = shutil.which("node")
            if not node:
                logger.debug(f"Found {entry} but node is not on PATH")
                return None
            return [node, str(entry)]
        return [str(entry)]

    def locate(self) -> list[str]:
        """
        Command prefix that runs the wrapped tool.

        Raises:
            DependencyNotFoundError: If the tool is neither on PATH nor in the global root
        """
        command_name = self.options.command_name
        exclude = [sys.argv[0]] if sys.argv and sys.argv[0] else []

        path = find_on_path(command_name, exclude=exclude)
        if path:
            logger.debug(f"Found {command_name} on PATH: {path}")
            return [path]

        command = self._find_in_global_root()
        if command:
            logger.debug(f"Found {command_name} in global module root: {' '.join(command)}")
            return command

        raise DependencyNotFoundError(
            f"{command_name} not found",
            remediation=f"Install it first with: npm i -g {self.options.package_name}",
        )

    def _install_signal_forwarding(self, process: subprocess.Popen) -> dict:
        """Forward termination signals to the child; returns previous handlers."""
        if threading.current_thread() is not threading.main_thread():
            return {}

        def forward(signum, frame):
            if process.poll() is not None:
                return
            if sys.platform == "win32" and signum == signal.SIGINT:
                # Console Ctrl+C already reaches the child directly
                return
            try:
                process.send_signal(signum)
            except (ProcessLookupError, OSError) as e:
                logger.debug(f"Could not forward signal {signum}: {e}")

        previous = {}
        for name in FORWARDED_SIGNALS:
            signum = getattr(signal, name, None)
            if signum is None:
                continue
            previous[signum] = signal.signal(signum, forward)
        return previous

    @staticmethod
    def _restore_signal_handlers(previous: dict) -> None:
        for signum, handler in previous.items():
            signal.signal(signum, handler)

    def launch(self, args: Sequence[str]) -> int:
        """
        Run the wrapped tool with args and wait for it.

        Returns:
            The child's exit code, or 0 if it was killed by a signal

        Raises:
            DependencyNotFoundError: If the tool cannot be located or started
        """
        argv = self.locate() + list(args)
        logger.debug(f"Launching: {' '.join(argv)}")

        try:
            process = subprocess.Popen(argv)
        except (FileNotFoundError, PermissionError) as e:
            raise DependencyNotFoundError(
                f"Could not start {self.options.command_name}: {e}",
                remediation=f"Reinstall with: npm i -g {self.options.package_name}",
            ) from e

        previous = self._install_signal_forwarding(process)
        try:
            returncode = process.wait()
        finally:
            self._restore_signal_handlers(previous)

        if returncode < 0:
            logger.debug(f"{self.options.command_name} terminated by signal {-returncode}")
            return 0
        return returncode
