"""
Install command execution.

Runs package manager commands synchronously and reports the outcome as a
CommandResult instead of raising, so callers decide how failures surface.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import time
from dataclasses import dataclass

from .common import UpdaterError
from .package_managers import PackageManager

logger = logging.getLogger(__name__)

DEFAULT_INSTALL_TIMEOUT = 300


@dataclass(frozen=True)
class CommandResult:
    """
    Result of running an install command.

    Attributes:
        command: Command that was executed
        success: Whether the command succeeded
        stdout: Standard output from command execution
        stderr: Standard error from command execution
        exit_code: Process exit code (-1 if it never ran or timed out)
        duration_seconds: Time taken
        error_message: Human-readable error message if failed
    """
    command: tuple[str, ...]
    success: bool
    stdout: str
    stderr: str
    exit_code: int
    duration_seconds: float
    error_message: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "command": list(self.command),
            "success": self.success,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "exit_code": self.exit_code,
            "duration_seconds": self.duration_seconds,
            "error_message": self.error_message,
        }


class InstallError(UpdaterError):
    """
    Raised when an install or rollback command fails.

    Attributes:
        result: The failed command result, if the command ran
    """
    def __init__(
        self,
        message: str,
        remediation: str | None = None,
        result: CommandResult | None = None,
    ):
        self.result = result
        super().__init__(message, remediation)


def run_command(command: tuple[str, ...], timeout: int | None = DEFAULT_INSTALL_TIMEOUT) -> CommandResult:
    """
    Execute a command and capture its output.

    Args:
        command: Command to execute
        timeout: Command timeout in seconds

    Returns:
        CommandResult with execution outcome
    """
    start_time = time.time()
    argv = list(command)
    argv[0] = shutil.which(argv[0]) or argv[0]

    logger.debug(f"Executing: {' '.join(command)}")

    try:
        result = subprocess.run(
            argv,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        return CommandResult(
            command=command,
            success=False,
            stdout=_as_text(e.stdout),
            stderr=_as_text(e.stderr),
            exit_code=-1,
            duration_seconds=time.time() - start_time,
            error_message=f"Command timed out after {timeout}s",
        )
    except FileNotFoundError:
        return CommandResult(
            command=command,
            success=False,
            stdout="",
            stderr="",
            exit_code=-1,
            duration_seconds=time.time() - start_time,
            error_message=f"Command not found: {command[0]}",
        )
    except OSError as e:
        return CommandResult(
            command=command,
            success=False,
            stdout="",
            stderr="",
            exit_code=-1,
            duration_seconds=time.time() - start_time,
            error_message=f"Could not run {command[0]}: {e}",
        )

    duration = time.time() - start_time
    success = result.returncode == 0

    error_msg = None
    if not success:
        error_msg = f"Command failed with exit code {result.returncode}"
        if result.stderr:
            error_msg += f": {result.stderr.strip()[:200]}"

    return CommandResult(
        command=command,
        success=success,
        stdout=result.stdout,
        stderr=result.stderr,
        exit_code=result.returncode,
        duration_seconds=duration,
        error_message=error_msg,
    )


def _as_text(data: bytes | str | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode(errors="replace")
    return data


def install_package(
    package_manager: PackageManager,
    package_name: str,
    version: str = "latest",
    timeout: int | None = DEFAULT_INSTALL_TIMEOUT,
) -> CommandResult:
    """
    Install a package globally.

    Args:
        package_manager: Manager that performs the install
        package_name: Package to install
        version: "latest" or an exact version to pin
        timeout: Command timeout in seconds

    Returns:
        CommandResult of the install command
    """
    command = package_manager.get_install_command(package_name, version)
    result = run_command(command, timeout=timeout)

    if result.success:
        logger.debug(f"Install output: {result.stdout.strip()}")
        logger.debug(f"Installed {package_name}@{version} in {result.duration_seconds:.1f}s")
    else:
        logger.debug(f"Install of {package_name}@{version} failed: {result.error_message}")

    return result
