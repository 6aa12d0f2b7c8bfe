"""
Tests for version resolution (gemini_updater/versions.py).
"""

import http.client
import json
import socket
import subprocess
import urllib.error

import pytest
from unittest.mock import MagicMock, patch

from gemini_updater.versions import (
    NetworkError,
    ParseError,
    RegistryTimeoutError,
    VersionNotFoundError,
    compare_versions,
    extract_version,
    get_current_version,
    get_latest_version,
    is_newer,
    query_installed_version,
    registry_latest_url,
)


def completed(stdout="", returncode=0):
    return subprocess.CompletedProcess(args=["gemini", "--version"], returncode=returncode, stdout=stdout)


def registry_response(mock_urlopen, body):
    response = MagicMock()
    response.read.return_value = body
    mock_urlopen.return_value.__enter__.return_value = response
    return response


class TestExtractVersion:
    """Tests for version triple extraction."""

    def test_plain_version(self):
        assert extract_version("0.1.14\n") == "0.1.14"

    def test_version_inside_text(self):
        """Test first triple is taken from noisy output."""
        assert extract_version("gemini-cli v0.2.1 (node 20.11.0)") == "0.2.1"

    def test_no_triple(self):
        assert extract_version("version 12") is None
        assert extract_version("") is None


class TestQueryInstalledVersion:
    """Tests for running the tool with --version."""

    @patch("gemini_updater.versions.shutil.which", return_value="/usr/bin/gemini")
    @patch("gemini_updater.versions.subprocess.run")
    def test_success(self, mock_run, mock_which):
        """Test version parsed from stdout."""
        mock_run.return_value = completed("0.3.0\n")
        assert query_installed_version("gemini", timeout=5) == "0.3.0"

        args, kwargs = mock_run.call_args
        assert args[0] == ["/usr/bin/gemini", "--version"]
        assert kwargs["timeout"] == 5
        assert kwargs["stdin"] == subprocess.DEVNULL
        assert kwargs["env"]["NO_COLOR"] == "1"

    @patch("gemini_updater.versions.subprocess.run")
    def test_command_prefix(self, mock_run):
        """Test a sequence command is used as-is."""
        mock_run.return_value = completed("1.0.0")
        query_installed_version(["node", "/opt/cli.js"])
        assert mock_run.call_args[0][0] == ["node", "/opt/cli.js", "--version"]

    @patch("gemini_updater.versions.shutil.which", return_value=None)
    @patch("gemini_updater.versions.subprocess.run", side_effect=FileNotFoundError())
    def test_not_installed(self, mock_run, mock_which):
        """Test missing executable raises VersionNotFoundError."""
        with pytest.raises(VersionNotFoundError, match="Command not found"):
            query_installed_version("gemini")

    @patch("gemini_updater.versions.shutil.which", return_value="/usr/bin/gemini")
    @patch("gemini_updater.versions.subprocess.run")
    def test_timeout(self, mock_run, mock_which):
        """Test a hanging tool raises VersionNotFoundError."""
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="gemini", timeout=5)
        with pytest.raises(VersionNotFoundError, match="timed out"):
            query_installed_version("gemini")

    @patch("gemini_updater.versions.shutil.which", return_value="/usr/bin/gemini")
    @patch("gemini_updater.versions.subprocess.run")
    def test_nonzero_exit(self, mock_run, mock_which):
        """Test a failing tool raises even if it printed a version."""
        mock_run.return_value = completed("1.0.0", returncode=1)
        with pytest.raises(VersionNotFoundError, match="exited with code 1"):
            query_installed_version("gemini")

    @patch("gemini_updater.versions.shutil.which", return_value="/usr/bin/gemini")
    @patch("gemini_updater.versions.subprocess.run")
    def test_no_version_in_output(self, mock_run, mock_which):
        """Test output without a triple raises."""
        mock_run.return_value = completed("unknown")
        with pytest.raises(VersionNotFoundError, match="No version found"):
            query_installed_version("gemini")


class TestGetCurrentVersion:
    """Tests for the non-raising wrapper."""

    @patch("gemini_updater.versions.query_installed_version", return_value="0.1.0")
    def test_returns_version(self, mock_query):
        assert get_current_version("gemini") == "0.1.0"

    @patch("gemini_updater.versions.query_installed_version")
    def test_absent_is_none(self, mock_query):
        """Test failures map to None."""
        mock_query.side_effect = VersionNotFoundError("Command not found: gemini")
        assert get_current_version("gemini") is None


class TestRegistryUrl:
    """Tests for registry URL construction."""

    def test_scoped_package(self):
        assert (
            registry_latest_url("@google/gemini-cli")
            == "https://registry.npmjs.org/@google/gemini-cli/latest"
        )

    def test_trailing_slash_trimmed(self):
        assert registry_latest_url("pkg", "http://localhost:4873/") == "http://localhost:4873/pkg/latest"


class TestGetLatestVersion:
    """Tests for registry lookup."""

    @patch("gemini_updater.versions.urllib.request.urlopen")
    def test_success(self, mock_urlopen):
        """Test version read from the latest document."""
        registry_response(mock_urlopen, json.dumps({"name": "@google/gemini-cli", "version": "0.4.0"}).encode())
        assert get_latest_version("@google/gemini-cli", timeout=3) == "0.4.0"

        request = mock_urlopen.call_args[0][0]
        assert request.full_url == "https://registry.npmjs.org/@google/gemini-cli/latest"
        assert request.get_header("User-agent").startswith("gemini-cli-updater/")
        assert mock_urlopen.call_args[1]["timeout"] == 3

    @patch("gemini_updater.versions.urllib.request.urlopen")
    def test_timeout(self, mock_urlopen):
        """Test socket timeout maps to RegistryTimeoutError."""
        mock_urlopen.side_effect = socket.timeout("timed out")
        with pytest.raises(RegistryTimeoutError, match="Request timeout"):
            get_latest_version("@google/gemini-cli")

    @patch("gemini_updater.versions.urllib.request.urlopen")
    def test_timeout_wrapped_in_url_error(self, mock_urlopen):
        """Test connect timeout reported through URLError."""
        mock_urlopen.side_effect = urllib.error.URLError(socket.timeout("timed out"))
        with pytest.raises(RegistryTimeoutError):
            get_latest_version("@google/gemini-cli")

    def test_timeout_error_is_builtin_timeout(self):
        """Test callers can catch the builtin TimeoutError."""
        assert issubclass(RegistryTimeoutError, TimeoutError)

    @patch("gemini_updater.versions.urllib.request.urlopen")
    def test_network_error(self, mock_urlopen):
        """Test connection failures map to NetworkError."""
        mock_urlopen.side_effect = urllib.error.URLError("Name or service not known")
        with pytest.raises(NetworkError, match="Failed to fetch latest version"):
            get_latest_version("@google/gemini-cli")

    @patch("gemini_updater.versions.urllib.request.urlopen")
    def test_http_error(self, mock_urlopen):
        """Test HTTP errors map to NetworkError."""
        mock_urlopen.side_effect = urllib.error.HTTPError(
            "https://registry.npmjs.org/x/latest", 404, "Not Found", {}, None
        )
        with pytest.raises(NetworkError):
            get_latest_version("x")

    @pytest.mark.parametrize("error", [
        http.client.IncompleteRead(b"{"),
        http.client.RemoteDisconnected("Remote end closed connection"),
        http.client.BadStatusLine("garbage"),
    ])
    @patch("gemini_updater.versions.urllib.request.urlopen")
    def test_broken_response(self, mock_urlopen, error):
        """Test truncated or malformed HTTP responses map to NetworkError."""
        registry_response(mock_urlopen, b"").read.side_effect = error
        with pytest.raises(NetworkError):
            get_latest_version("@google/gemini-cli")

    @patch("gemini_updater.versions.urllib.request.urlopen")
    def test_invalid_json(self, mock_urlopen):
        """Test an unparseable body raises ParseError."""
        registry_response(mock_urlopen, b"<html>")
        with pytest.raises(ParseError, match="Failed to parse registry response"):
            get_latest_version("@google/gemini-cli")

    @pytest.mark.parametrize("body", [b'{"name": "x"}', b'{"version": ""}', b'["0.1.0"]'])
    @patch("gemini_updater.versions.urllib.request.urlopen")
    def test_missing_version(self, mock_urlopen, body):
        """Test a body without a usable version raises ParseError."""
        registry_response(mock_urlopen, body)
        with pytest.raises(ParseError):
            get_latest_version("x")


class TestCompareVersions:
    """Tests for version comparison."""

    def test_semantic_ordering(self):
        assert compare_versions("0.1.9", "0.1.10") == -1
        assert compare_versions("1.2.0", "1.1.9") == 1
        assert compare_versions("2.5.3", "2.5.3") == 0

    def test_prerelease_before_release(self):
        assert compare_versions("1.0.0-beta", "1.0.0") == -1
        assert compare_versions("1.0.0-alpha", "1.0.0-beta") == -1

    def test_numeric_prerelease_before_release(self):
        """Test 1.0.0-1 is a pre-release, not a post-release."""
        assert compare_versions("1.0.0-1", "1.0.0") == -1
        assert is_newer("1.0.0", "1.0.0-1") is False

    def test_build_metadata_ignored(self):
        assert compare_versions("1.0.0", "1.0.0+build.5") == 0
        assert compare_versions("1.0.0-rc.1+a", "1.0.0-rc.1+b") == 0

    @pytest.mark.parametrize("lower,higher", [
        ("1.0.0-x.9", "1.0.0-x.10"),
        ("1.0.0-alpha", "1.0.0-alpha.1"),
        ("1.0.0-1", "1.0.0-alpha"),
        ("1.0.0-alpha.beta", "1.0.0-beta"),
        ("1.0.0-beta.2", "1.0.0-beta.11"),
        ("1.0.0-rc.1", "1.0.0"),
    ])
    def test_prerelease_identifier_precedence(self, lower, higher):
        """Test pre-release identifiers follow semver precedence."""
        assert compare_versions(lower, higher) == -1
        assert compare_versions(higher, lower) == 1

    def test_leading_v_and_short_release(self):
        assert compare_versions("v1.2.0", "1.2") == 0

    def test_nightly_builds(self):
        """Test nightly suffixes compare by release first."""
        assert compare_versions("0.2.0-nightly.20250101", "0.3.0") == -1
        assert compare_versions("0.2.0", "0.2.0-nightly.20250101") == 1
        assert compare_versions("0.3.0-nightly.20250827.abc", "0.3.0-nightly.20250901.abc") == -1

    def test_garbage_does_not_crash(self):
        assert compare_versions("nightly", "stable") in (-1, 0, 1)


class TestIsNewer:
    """Tests for the update decision comparison."""

    def test_newer(self):
        assert is_newer("0.1.0", "0.2.0") is True

    def test_same(self):
        assert is_newer("0.2.0", "0.2.0") is False

    def test_downgrade_is_not_newer(self):
        """Test a registry rollback does not trigger an install."""
        assert is_newer("0.3.0", "0.2.0") is False
