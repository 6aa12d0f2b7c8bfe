"""
Shell detection and alias management.

Adds and removes the alias that points the short command name at the
wrapper, in the rc file of each supported shell.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path

from .common import UpdaterError

logger = logging.getLogger(__name__)

ALIAS_MARKER = "# Added by gemini-cli-updater"

# Candidate rc files per shell, primary first
SHELL_CONFIG_FILES: dict[str, tuple[str, ...]] = {
    "zsh": (".zshrc", ".zprofile"),
    "bash": (".bashrc", ".bash_profile", ".profile"),
    "fish": (".config/fish/config.fish",),
    "powershell": (
        "Documents/PowerShell/profile.ps1",
        "Documents/WindowsPowerShell/profile.ps1",
    ),
    "cmd": (),
}

RC_SHELLS = ("zsh", "bash", "fish")


class AliasError(UpdaterError):
    """Raised when a shell config file cannot be updated."""
    pass


@dataclass(frozen=True)
class ShellConfig:
    """A shell and the rc file that belongs to it."""
    shell: str
    path: Path


def _home() -> Path:
    return Path.home()


def _shell_from_string(value: str) -> str | None:
    value = value.lower()
    if "zsh" in value:
        return "zsh"
    if "bash" in value:
        return "bash"
    if "fish" in value:
        return "fish"
    if "powershell" in value or "pwsh" in value:
        return "powershell"
    if "cmd" in value:
        return "cmd"
    return None


def detect_windows_shell() -> str:
    """PowerShell if it answers, otherwise cmd."""
    try:
        result = subprocess.run(
            ["powershell.exe", "-NoProfile", "-Command", "Get-Host"],
            capture_output=True,
            timeout=5,
            check=False,
        )
        if result.returncode == 0:
            return "powershell"
    except (OSError, subprocess.TimeoutExpired):
        pass
    return "cmd"


def detect_unix_shell(shells_file: Path = Path("/etc/shells")) -> str:
    """Prefer zsh when installed, then bash."""
    try:
        available = shells_file.read_text(encoding="utf-8")
    except OSError:
        return "bash"

    if "/bin/zsh" in available or "/usr/bin/zsh" in available:
        return "zsh"
    return "bash"


def detect_shell() -> str:
    """
    Detect the user's shell.

    Detection priority:
    1. $SHELL (or $ComSpec on Windows)
    2. Platform heuristics

    Returns:
        One of 'zsh', 'bash', 'fish', 'powershell', 'cmd'
    """
    env_shell = os.environ.get("SHELL") or os.environ.get("ComSpec") or ""
    shell = _shell_from_string(env_shell)
    if shell:
        return shell

    if sys.platform == "win32":
        return detect_windows_shell()
    return detect_unix_shell()


def get_shell_config_file(shell: str | None = None) -> Path | None:
    """
    The rc file for a shell: the first existing candidate, else the primary one.

    Returns:
        Path (which may not exist yet), or None for shells without rc files
    """
    shell = shell or detect_shell()
    candidates = SHELL_CONFIG_FILES.get(shell)
    if not candidates:
        return None

    home = _home()
    for candidate in candidates:
        path = home / candidate
        if path.exists():
            return path
    return home / candidates[0]


def get_all_shell_config_files() -> list[ShellConfig]:
    """Existing rc files for every rc-based shell."""
    configs = []
    for shell in RC_SHELLS:
        path = get_shell_config_file(shell)
        if path is not None and path.exists():
            configs.append(ShellConfig(shell=shell, path=path))
    return configs


def generate_alias_command(alias_name: str, target_command: str, shell: str | None = None) -> str:
    """Alias definition line in the syntax of the given shell."""
    shell = shell or detect_shell()
    if shell == "fish":
        return f"alias {alias_name} '{target_command}'"
    if shell == "powershell":
        return f"function {alias_name} {{ & {target_command} $args }}"
    if shell == "cmd":
        return f"doskey {alias_name}={target_command} $*"
    return f"alias {alias_name}='{target_command}'"


def _is_alias_line(line: str, alias_name: str) -> bool:
    stripped = line.strip()
    return (
        stripped.startswith(f"alias {alias_name}=")
        or stripped.startswith(f"alias {alias_name} ")
        or stripped.startswith(f"function {alias_name} ")
        or stripped.startswith(f"doskey {alias_name}=")
    )


def add_alias(alias_name: str, target_command: str, shell: str | None = None) -> bool:
    """
    Append the alias to the shell's rc file.

    Returns:
        True if the alias was added, False if it was already present

    Raises:
        AliasError: If the shell has no rc file or it cannot be written
    """
    shell = shell or detect_shell()
    config_file = get_shell_config_file(shell)
    if config_file is None:
        raise AliasError(
            f"No config file found for shell: {shell}",
            remediation="Add the alias manually",
        )

    alias_command = generate_alias_command(alias_name, target_command, shell)

    try:
        config_file.parent.mkdir(parents=True, exist_ok=True)
        if config_file.exists():
            content = config_file.read_text(encoding="utf-8")
            if alias_command in content:
                return False
        with open(config_file, "a", encoding="utf-8") as f:
            f.write(f"\n{ALIAS_MARKER}\n{alias_command}\n")
    except (OSError, UnicodeDecodeError) as e:
        raise AliasError(f"Failed to add alias to {config_file}: {e}") from e

    logger.info(f"Added alias {alias_name} to {config_file}")
    return True


def remove_alias(alias_name: str, shell: str | None = None) -> bool:
    """
    Remove the alias definition and marker comment from the shell's rc file.

    Returns:
        True if the file changed

    Raises:
        AliasError: If the file cannot be rewritten
    """
    shell = shell or detect_shell()
    config_file = get_shell_config_file(shell)
    if config_file is None or not config_file.exists():
        return False

    try:
        lines = config_file.read_text(encoding="utf-8").split("\n")
        kept = [
            line for line in lines
            if not _is_alias_line(line, alias_name) and line.strip() != ALIAS_MARKER
        ]
        if len(kept) == len(lines):
            return False
        config_file.write_text("\n".join(kept), encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise AliasError(f"Failed to remove alias from {config_file}: {e}") from e

    logger.info(f"Removed alias {alias_name} from {config_file}")
    return True


def alias_exists(alias_name: str, shell: str | None = None) -> bool:
    """Check whether the shell's rc file defines the alias."""
    config_file = get_shell_config_file(shell or detect_shell())
    if config_file is None or not config_file.exists():
        return False
    try:
        content = config_file.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return False
    return any(_is_alias_line(line, alias_name) for line in content.split("\n"))


def get_system_info() -> dict:
    """Shell facts for status output and logs."""
    shell = detect_shell()
    config_file = get_shell_config_file(shell)
    return {
        "platform": sys.platform,
        "shell": shell,
        "home_dir": str(_home()),
        "config_file": str(config_file) if config_file else None,
        "available_shells": [
            {"shell": c.shell, "file": str(c.path)} for c in get_all_shell_config_files()
        ],
    }
