"""
gemini-cli-updater - update the wrapped tool if needed, then run it.

Usage:
    gemini-cli-updater [args...]                 # check/update, then run
    gemini-cli-updater --skip-update [args...]   # run without checking

Every argument except --skip-update is passed to the wrapped tool unchanged.

Environment:
    GEMINI_UPDATER_DEBUG=true        verbose console logging
    GEMINI_UPDATER_SKIP_UPDATE=true  never check for updates
    GEMINI_UPDATER_HOME              data directory (default ~/.gemini-cli-updater)
    GEMINI_UPDATER_CONFIG            YAML options file
"""

from __future__ import annotations

import logging
import sys
from typing import Sequence

from .common import UpdaterError, env_flag, is_debug_enabled
from .config import UpdaterOptions, load_options
from .config_store import ConfigStore
from .launcher import DependencyNotFoundError, Launcher
from .logging_config import get_log_path, setup_logging
from .updater import Updater

logger = logging.getLogger(__name__)

SKIP_UPDATE_FLAG = "--skip-update"

EXIT_FATAL = 1
EXIT_NOT_FOUND = 127
EXIT_INTERRUPTED = 130


def split_args(argv: Sequence[str]) -> tuple[bool, list[str]]:
    """Separate the wrapper's own flag from the pass-through arguments."""
    skip_update = SKIP_UPDATE_FLAG in argv
    return skip_update, [arg for arg in argv if arg != SKIP_UPDATE_FLAG]


def configure_logging(store: ConfigStore) -> logging.Logger:
    """Console on stderr; file log in the data directory unless disabled."""
    log_file = None
    if store.get_settings().enable_logging:
        log_file = str(get_log_path(store.path.parent))
    try:
        return setup_logging(verbose=is_debug_enabled(), log_file=log_file)
    except OSError:
        # Unwritable data directory: keep console logging only
        return setup_logging(verbose=is_debug_enabled())


def should_check(skip_flag: bool, store: ConfigStore) -> bool:
    if skip_flag:
        logger.debug(f"{SKIP_UPDATE_FLAG} given, skipping update check")
        return False
    if env_flag("GEMINI_UPDATER_SKIP_UPDATE"):
        logger.debug("GEMINI_UPDATER_SKIP_UPDATE set, skipping update check")
        return False
    if not store.is_auto_update_enabled():
        logger.debug("Auto-update disabled in settings")
        return False
    return True


def check_and_update(updater: Updater) -> bool:
    """
    Run the update phase. Never raises: failures are logged and the
    caller carries on with whatever is installed.

    Returns:
        True if a new version was installed
    """
    package = updater.options.package_name
    try:
        if not updater.check_for_update():
            logger.debug(f"{package} is up to date")
            return False

        print(f"Updating {package}...", file=sys.stderr)
        new_version = updater.perform_update()
        print(f"{package} updated to {new_version}", file=sys.stderr)
        return True
    except KeyboardInterrupt:
        logger.warning("Update interrupted, proceeding with current version")
    except UpdaterError as e:
        logger.warning(f"Update check failed, proceeding with current version: {e}")
        if e.remediation:
            logger.debug(e.remediation)
    except Exception as e:
        logger.warning(f"Unexpected error during update, proceeding with current version: {e}")
        logger.debug("Update failure details", exc_info=True)
    return False


def run(
    argv: Sequence[str] | None = None,
    options: UpdaterOptions | None = None,
    store: ConfigStore | None = None,
) -> int:
    """
    Wrapper entry point.

    Returns:
        Process exit code (the wrapped tool's, or an EXIT_* code)
    """
    argv = list(sys.argv[1:] if argv is None else argv)
    skip_flag, args = split_args(argv)

    try:
        options = options or load_options()
    except ValueError as e:
        setup_logging(verbose=is_debug_enabled())
        logger.error(str(e))
        return EXIT_FATAL

    store = store or ConfigStore()
    configure_logging(store)

    try:
        if should_check(skip_flag, store):
            check_and_update(Updater(store, options))
    except KeyboardInterrupt:
        return EXIT_INTERRUPTED

    launcher = Launcher(options)
    try:
        return launcher.launch(args)
    except DependencyNotFoundError as e:
        logger.error(str(e))
        if e.remediation:
            logger.error(e.remediation)
        return EXIT_NOT_FOUND
    except OSError as e:
        logger.error(f"Failed to run {options.command_name}: {e}")
        return EXIT_FATAL


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
