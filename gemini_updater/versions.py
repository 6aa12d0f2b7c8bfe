"""
Version resolution for the wrapped tool.

Finds the installed version by running the tool with --version, fetches the
latest published version from the package registry, and compares the two.
"""

from __future__ import annotations

import http.client
import json
import logging
import os
import re
import shutil
import socket
import subprocess
import urllib.error
import urllib.request
from typing import Sequence

from packaging import version as pkg_version

from . import __version__
from .common import UpdaterError

logger = logging.getLogger(__name__)

VERSION_QUERY_TIMEOUT = 5
REGISTRY_TIMEOUT = 10
DEFAULT_REGISTRY_URL = "https://registry.npmjs.org"

VERSION_TRIPLE_RE = re.compile(r"(\d+\.\d+\.\d+)")
FALLBACK_VERSION_RE = re.compile(r"^v?(\d+(?:\.\d+)*)(.*)$")


class NetworkError(UpdaterError):
    """Raised when the registry cannot be reached."""
    pass


class RegistryTimeoutError(UpdaterError, TimeoutError):
    """Raised when the registry does not answer before the deadline."""
    pass


class ParseError(UpdaterError):
    """Raised when the registry response is not usable."""
    pass


class VersionNotFoundError(UpdaterError):
    """Raised when the wrapped tool is absent or prints no version."""
    pass


def extract_version(output: str) -> str | None:
    """Return the first dotted x.y.z triple in output, or None."""
    match = VERSION_TRIPLE_RE.search(output or "")
    return match.group(1) if match else None


def query_installed_version(
    command: str | Sequence[str],
    timeout: float = VERSION_QUERY_TIMEOUT,
) -> str:
    """
    Run the wrapped tool with --version and parse its output.

    Args:
        command: Executable name, or a command prefix such as ("node", "/path/cli.js")
        timeout: Timeout in seconds

    Returns:
        Installed version string

    Raises:
        VersionNotFoundError: If the tool cannot run or prints no version
    """
    if isinstance(command, str):
        argv = [shutil.which(command) or command]
    else:
        argv = list(command)
    argv.append("--version")

    try:
        proc = subprocess.run(
            argv,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            stdin=subprocess.DEVNULL,  # Isolate stdin
            text=True,
            timeout=timeout,
            check=False,
            env={**os.environ, "TERM": "dumb", "NO_COLOR": "1"},
        )
    except FileNotFoundError as e:
        raise VersionNotFoundError(
            f"Command not found: {argv[0]}",
            remediation="Install the wrapped tool or check your PATH",
        ) from e
    except subprocess.TimeoutExpired as e:
        raise VersionNotFoundError(f"Version query timed out after {timeout}s") from e
    except OSError as e:
        raise VersionNotFoundError(f"Could not run {argv[0]}: {e}") from e

    if proc.returncode != 0:
        raise VersionNotFoundError(
            f"{argv[0]} --version exited with code {proc.returncode}"
        )

    found = extract_version(proc.stdout or "")
    if not found:
        raise VersionNotFoundError(f"No version found in output of {argv[0]} --version")
    return found


def get_current_version(
    command: str | Sequence[str],
    timeout: float = VERSION_QUERY_TIMEOUT,
) -> str | None:
    """
    Installed version of the wrapped tool, or None if not installed or unknown.
    """
    try:
        return query_installed_version(command, timeout)
    except VersionNotFoundError as e:
        logger.debug(f"Could not get current version: {e}")
        return None


def registry_latest_url(package_name: str, registry_url: str = DEFAULT_REGISTRY_URL) -> str:
    """URL of the registry's latest-version metadata for a package."""
    return f"{registry_url.rstrip('/')}/{package_name}/latest"


def get_latest_version(
    package_name: str,
    registry_url: str = DEFAULT_REGISTRY_URL,
    timeout: float = REGISTRY_TIMEOUT,
) -> str:
    """
    Fetch the latest published version of a package.

    Args:
        package_name: Registry package name (scoped names allowed)
        registry_url: Base URL of the registry
        timeout: Timeout in seconds

    Returns:
        Latest version string

    Raises:
        NetworkError: If the request fails
        RegistryTimeoutError: If the registry does not answer in time
        ParseError: If the body is not JSON or has no version field
    """
    url = registry_latest_url(package_name, registry_url)
    logger.debug(f"Fetching latest version: {url}")

    req = urllib.request.Request(
        url,
        headers={
            "User-Agent": f"gemini-cli-updater/{__version__}",
            "Accept": "application/json",
        },
    )
    try:
        with urllib.request.urlopen(req, timeout=timeout) as response:
            body = response.read()
    except (socket.timeout, TimeoutError) as e:
        raise RegistryTimeoutError(
            f"Request timeout while fetching latest version of {package_name}"
        ) from e
    except urllib.error.URLError as e:
        if isinstance(e.reason, (socket.timeout, TimeoutError)):
            raise RegistryTimeoutError(
                f"Request timeout while fetching latest version of {package_name}"
            ) from e
        raise NetworkError(
            f"Failed to fetch latest version: {e}",
            remediation="Check your network connection or registry_url",
        ) from e
    except http.client.HTTPException as e:
        raise NetworkError(
            f"Incomplete or malformed registry response: {e!r}",
            remediation="Retry later or check registry_url",
        ) from e
    except OSError as e:
        raise NetworkError(f"Failed to fetch latest version: {e}") from e

    try:
        data = json.loads(body)
    except ValueError as e:
        raise ParseError("Failed to parse registry response") from e

    latest = data.get("version") if isinstance(data, dict) else None
    if not isinstance(latest, str) or not latest.strip():
        raise ParseError(f"Registry response for {package_name} has no version field")

    return latest.strip()


def _release_key(release: str) -> tuple[tuple[int, ...], str]:
    """Numeric release parts, plus any unparsed remainder.

    Trailing zeros are dropped so 1.2 and 1.2.0 compare equal.
    """
    try:
        parsed = pkg_version.Version(release)
    except pkg_version.InvalidVersion:
        parsed = None

    if parsed is not None and parsed.epoch == 0 and parsed.pre is None \
            and parsed.post is None and parsed.dev is None and parsed.local is None:
        numbers, leftover = parsed.release, ""
    else:
        match = FALLBACK_VERSION_RE.match(release)
        if not match:
            return (), release
        numbers = tuple(int(part) for part in match.group(1).split("."))
        leftover = match.group(2).lstrip(".-")

    while numbers and numbers[-1] == 0:
        numbers = numbers[:-1]
    return numbers, leftover


def _prerelease_key(prerelease: str) -> tuple:
    """Semver pre-release precedence.

    A release without pre-release sorts after any pre-release. Numeric
    identifiers compare numerically and sort before alphanumeric ones.
    """
    if not prerelease:
        return (1,)
    identifiers = []
    for part in prerelease.split("."):
        if part.isascii() and part.isdigit():
            identifiers.append((0, int(part), ""))
        else:
            identifiers.append((1, 0, part))
    return (0, tuple(identifiers))


def version_key(v: str) -> tuple:
    """Sort key following semantic versioning; build metadata is ignored."""
    core = v.strip()
    if core.startswith(("v", "V")):
        core = core[1:]
    core = core.split("+", 1)[0]
    release, _, prerelease = core.partition("-")

    numbers, leftover = _release_key(release)
    if leftover:
        # 1.0.0rc1 is read as 1.0.0-rc1
        prerelease = f"{leftover}.{prerelease}" if prerelease else leftover
    return numbers, _prerelease_key(prerelease)


def compare_versions(v1: str, v2: str) -> int:
    """
    Compare two version strings.

    Returns:
        -1 if v1 < v2, 0 if v1 == v2, 1 if v1 > v2
    """
    key1 = version_key(v1)
    key2 = version_key(v2)
    if key1 < key2:
        return -1
    elif key1 > key2:
        return 1
    else:
        return 0


def is_newer(current: str, latest: str) -> bool:
    """True if latest is strictly newer than current."""
    return compare_versions(current, latest) < 0
