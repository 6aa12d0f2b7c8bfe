"""
Update decision core.

Decides whether the wrapped tool needs an update (cooldown gate, then
installed-vs-latest comparison), installs it, and rolls back to an earlier
version from the recorded history.

State flow:
    idle -> checking -> up_to_date | update_needed
    update_needed -> installing -> installed | install_failed
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable

from .common import UpdaterError
from .config import UpdaterOptions
from .config_store import ConfigStore
from .installer import InstallError, install_package
from .launcher import DependencyNotFoundError, Launcher
from .package_managers import PackageManager, select_package_manager
from .versions import get_current_version, get_latest_version, is_newer

logger = logging.getLogger(__name__)

STATE_IDLE = "idle"
STATE_CHECKING = "checking"
STATE_UP_TO_DATE = "up_to_date"
STATE_UPDATE_NEEDED = "update_needed"
STATE_INSTALLING = "installing"
STATE_INSTALLED = "installed"
STATE_INSTALL_FAILED = "install_failed"


class UpdateVerificationError(UpdaterError):
    """Raised when an install succeeded but no version can be detected afterwards."""
    pass


class NoRollbackTargetError(UpdaterError):
    """Raised when the history holds no earlier version to return to."""
    pass


class Updater:
    """
    Checks for, installs and rolls back updates of the wrapped tool.

    Attributes:
        store: Config store holding timestamps, history and settings
        options: Package, command and timeout options
        state: Current state name (see module docstring)
    """

    def __init__(
        self,
        store: ConfigStore,
        options: UpdaterOptions | None = None,
        package_manager: PackageManager | None = None,
        clock: Callable[[], int] | None = None,
    ):
        self.store = store
        self.options = options or UpdaterOptions()
        self.clock = clock or store.clock
        self.state = STATE_IDLE
        self._package_manager = package_manager

    @property
    def package_manager(self) -> PackageManager:
        if self._package_manager is None:
            self._package_manager = select_package_manager(self.options.package_manager)
        return self._package_manager

    def resolve_command(self) -> list[str] | None:
        """
        Command prefix for the wrapped tool, found the same way the launcher finds it.

        Returns:
            Prefix such as ["/usr/bin/gemini"] or ["node", "/path/cli.js"], or None
        """
        launcher = Launcher(self.options, package_manager=self._package_manager)
        try:
            return launcher.locate()
        except DependencyNotFoundError as e:
            logger.debug(f"Could not locate {self.options.command_name}: {e}")
            return None

    def get_current_version(self) -> str | None:
        command = self.resolve_command()
        if command is None:
            return None
        return get_current_version(
            command,
            timeout=self.options.version_timeout_seconds,
        )

    def get_latest_version(self) -> str:
        return get_latest_version(
            self.options.package_name,
            registry_url=self.options.registry_url,
            timeout=self.options.registry_timeout_seconds,
        )

    def is_within_cooldown(self) -> bool:
        """True if the last check happened less than the cooldown ago."""
        doc = self.store.read()
        last_check = doc.last_update_check
        if not last_check:
            return False
        return (self.clock() - last_check) < doc.settings.update_cooldown

    def _resolve_versions(self) -> tuple[str | None, str]:
        """Query installed and latest versions concurrently."""
        executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="version-lookup")
        try:
            current_future = executor.submit(self.get_current_version)
            latest_future = executor.submit(self.get_latest_version)
            return current_future.result(), latest_future.result()
        finally:
            # Do not block on a stuck lookup once the result (or error) is known
            executor.shutdown(wait=False, cancel_futures=True)

    def check_for_update(self, raise_errors: bool = False) -> bool:
        """
        Decide whether an update is due.

        Within the cooldown window this returns False without touching the
        network or running any process. A completed check stamps
        lastUpdateCheck with its start time; a failed one leaves it alone so
        the next invocation retries.

        Args:
            raise_errors: Propagate lookup errors instead of returning False

        Returns:
            True if an update should be installed
        """
        if self.is_within_cooldown():
            logger.debug("Skipping update check (within cooldown period)")
            self.state = STATE_IDLE
            return False

        self.state = STATE_CHECKING
        started = self.clock()

        try:
            current, latest = self._resolve_versions()
        except UpdaterError as e:
            self.state = STATE_IDLE
            if raise_errors:
                raise
            logger.error(f"Error checking for updates: {e}")
            return False

        if not current:
            logger.warning(f"{self.options.command_name} not found, update needed")
            self.state = STATE_UPDATE_NEEDED
            return True

        needs_update = is_newer(current, latest)

        self.store.set_last_check(started)

        if needs_update:
            logger.info(f"Update available: {current} -> {latest}")
            # Recorded before the install runs, for rollback
            self.store.append_version_history(current, latest)
            self.state = STATE_UPDATE_NEEDED
        else:
            logger.debug(f"{self.options.command_name} is up to date ({current})")
            self.state = STATE_UP_TO_DATE

        return needs_update

    def perform_update(self) -> str:
        """
        Install the latest version and verify it.

        Returns:
            Version reported by the tool after the install

        Raises:
            InstallError: If the install command fails
            UpdateVerificationError: If no version is detectable afterwards
        """
        package = self.options.package_name
        self.state = STATE_INSTALLING
        logger.info(f"Updating {package}...")

        result = install_package(
            self.package_manager,
            package,
            version="latest",
            timeout=self.options.install_timeout_seconds,
        )
        if not result.success:
            self.state = STATE_INSTALL_FAILED
            logger.error(f"Update failed: {result.error_message}")
            raise InstallError(
                f"Update of {package} failed: {result.error_message}",
                remediation=f"Run manually: {' '.join(result.command)}",
                result=result,
            )

        self.store.set_last_update_time(self.clock())

        new_version = self.get_current_version()
        if not new_version:
            self.state = STATE_INSTALL_FAILED
            logger.error("Update verification failed")
            raise UpdateVerificationError(
                f"Installed {package} but {self.options.command_name} --version reports no version",
                remediation=f"Check that {self.options.command_name} is on your PATH",
            )

        self.state = STATE_INSTALLED
        logger.info(f"Successfully updated to version {new_version}")
        return new_version

    def force_update(self) -> bool:
        """
        Check and update immediately, ignoring the cooldown.

        Returns:
            True if an update was installed, False if already up to date

        Raises:
            UpdaterError: Any lookup, install or verification failure
        """
        self.store.set_last_check(0)
        if not self.check_for_update(raise_errors=True):
            return False
        self.perform_update()
        return True

    def rollback_to_previous_version(self) -> str:
        """
        Reinstall the version recorded before the latest update.

        Returns:
            The version that was installed

        Raises:
            NoRollbackTargetError: If fewer than two history entries exist
            InstallError: If the pinned install fails
        """
        history = self.store.get_version_history()
        if len(history) < 2:
            raise NoRollbackTargetError(
                "No previous version available for rollback",
                remediation="Rollback needs at least two recorded updates",
            )

        target = history[-2].from_version
        if not target:
            raise NoRollbackTargetError("Rollback entry has no version recorded")

        package = self.options.package_name
        logger.info(f"Rolling back to version {target}")
        self.state = STATE_INSTALLING

        result = install_package(
            self.package_manager,
            package,
            version=target,
            timeout=self.options.install_timeout_seconds,
        )
        if not result.success:
            self.state = STATE_INSTALL_FAILED
            logger.error(f"Rollback failed: {result.error_message}")
            raise InstallError(
                f"Rollback of {package} to {target} failed: {result.error_message}",
                remediation=f"Run manually: {' '.join(result.command)}",
                result=result,
            )

        self.state = STATE_INSTALLED
        logger.info(f"Successfully rolled back to {target}")
        return target
