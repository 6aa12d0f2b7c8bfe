"""
Tests for shell detection and alias management (gemini_updater/shell_alias.py).
"""

import subprocess
from pathlib import Path

import pytest
from unittest.mock import MagicMock, patch

from gemini_updater.shell_alias import (
    ALIAS_MARKER,
    AliasError,
    add_alias,
    alias_exists,
    detect_shell,
    detect_unix_shell,
    detect_windows_shell,
    generate_alias_command,
    get_all_shell_config_files,
    get_shell_config_file,
    get_system_info,
    remove_alias,
)


@pytest.fixture
def home(tmp_path, monkeypatch):
    monkeypatch.setattr("gemini_updater.shell_alias._home", lambda: tmp_path)
    return tmp_path


class TestDetectShell:
    """Tests for shell detection."""

    @pytest.mark.parametrize("env_value,expected", [
        ("/bin/zsh", "zsh"),
        ("/usr/local/bin/bash", "bash"),
        ("/usr/bin/fish", "fish"),
        ("/usr/bin/pwsh", "powershell"),
    ])
    def test_from_shell_env(self, monkeypatch, env_value, expected):
        monkeypatch.setenv("SHELL", env_value)
        assert detect_shell() == expected

    def test_from_comspec(self, monkeypatch):
        monkeypatch.delenv("SHELL", raising=False)
        monkeypatch.setenv("ComSpec", r"C:\Windows\system32\cmd.exe")
        assert detect_shell() == "cmd"

    def test_unix_fallback(self, monkeypatch):
        monkeypatch.delenv("SHELL", raising=False)
        monkeypatch.delenv("ComSpec", raising=False)
        monkeypatch.setattr("gemini_updater.shell_alias.sys.platform", "linux")
        with patch("gemini_updater.shell_alias.detect_unix_shell", return_value="zsh"):
            assert detect_shell() == "zsh"

    def test_unix_shells_file(self, tmp_path):
        shells = tmp_path / "shells"
        shells.write_text("/bin/sh\n/bin/bash\n/usr/bin/zsh\n")
        assert detect_unix_shell(shells) == "zsh"
        shells.write_text("/bin/sh\n/bin/bash\n")
        assert detect_unix_shell(shells) == "bash"
        assert detect_unix_shell(tmp_path / "missing") == "bash"

    @patch("gemini_updater.shell_alias.subprocess.run")
    def test_windows_powershell(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0)
        assert detect_windows_shell() == "powershell"

    @patch("gemini_updater.shell_alias.subprocess.run", side_effect=FileNotFoundError())
    def test_windows_cmd_fallback(self, mock_run):
        assert detect_windows_shell() == "cmd"


class TestConfigFiles:
    """Tests for rc file lookup."""

    def test_primary_file_when_none_exist(self, home):
        assert get_shell_config_file("bash") == home / ".bashrc"
        assert get_shell_config_file("fish") == home / ".config" / "fish" / "config.fish"

    def test_existing_secondary_file_wins(self, home):
        (home / ".bash_profile").write_text("")
        assert get_shell_config_file("bash") == home / ".bash_profile"

    def test_cmd_has_no_file(self, home):
        assert get_shell_config_file("cmd") is None

    def test_all_existing_files(self, home):
        (home / ".zshrc").write_text("")
        (home / ".bashrc").write_text("")
        configs = get_all_shell_config_files()
        assert [(c.shell, c.path) for c in configs] == [
            ("zsh", home / ".zshrc"),
            ("bash", home / ".bashrc"),
        ]


class TestGenerateAliasCommand:
    """Tests for alias syntax per shell."""

    @pytest.mark.parametrize("shell,expected", [
        ("bash", "alias gemini='gemini-cli-updater'"),
        ("zsh", "alias gemini='gemini-cli-updater'"),
        ("fish", "alias gemini 'gemini-cli-updater'"),
        ("powershell", "function gemini { & gemini-cli-updater $args }"),
        ("cmd", "doskey gemini=gemini-cli-updater $*"),
    ])
    def test_syntax(self, shell, expected):
        assert generate_alias_command("gemini", "gemini-cli-updater", shell) == expected


class TestAddRemoveAlias:
    """Tests for editing rc files."""

    def test_add_creates_file_with_marker(self, home):
        assert add_alias("gemini", "gemini-cli-updater", "zsh") is True
        content = (home / ".zshrc").read_text()
        assert f"{ALIAS_MARKER}\nalias gemini='gemini-cli-updater'\n" in content

    def test_add_is_idempotent(self, home):
        add_alias("gemini", "gemini-cli-updater", "bash")
        assert add_alias("gemini", "gemini-cli-updater", "bash") is False
        assert (home / ".bashrc").read_text().count("alias gemini=") == 1

    def test_add_fish_creates_directory(self, home):
        add_alias("gemini", "gemini-cli-updater", "fish")
        assert (home / ".config" / "fish" / "config.fish").exists()

    def test_add_for_cmd_fails(self, home):
        with pytest.raises(AliasError):
            add_alias("gemini", "gemini-cli-updater", "cmd")

    def test_add_write_error(self, home):
        with patch("builtins.open", side_effect=PermissionError("denied")):
            with pytest.raises(AliasError, match="Failed to add alias"):
                add_alias("gemini", "gemini-cli-updater", "zsh")

    def test_non_utf8_rc_file(self, home):
        """Test an undecodable rc file raises AliasError for add and remove."""
        (home / ".zshrc").write_bytes(b"export NAME=\xff\xfe\n")
        with pytest.raises(AliasError, match="Failed to add alias"):
            add_alias("gemini", "gemini-cli-updater", "zsh")
        with pytest.raises(AliasError, match="Failed to remove alias"):
            remove_alias("gemini", "zsh")
        assert alias_exists("gemini", "zsh") is False

    def test_remove_keeps_other_lines(self, home):
        rc = home / ".zshrc"
        rc.write_text("export EDITOR=vim\nalias ll='ls -l'\n")
        add_alias("gemini", "gemini-cli-updater", "zsh")

        assert remove_alias("gemini", "zsh") is True
        content = rc.read_text()
        assert "gemini" not in content
        assert "export EDITOR=vim" in content
        assert "alias ll='ls -l'" in content

    def test_remove_without_alias(self, home):
        (home / ".bashrc").write_text("alias ll='ls -l'\n")
        assert remove_alias("gemini", "bash") is False

    def test_remove_missing_file(self, home):
        assert remove_alias("gemini", "bash") is False

    def test_alias_exists(self, home):
        assert alias_exists("gemini", "zsh") is False
        add_alias("gemini", "gemini-cli-updater", "zsh")
        assert alias_exists("gemini", "zsh") is True
        assert alias_exists("gem", "zsh") is False


class TestSystemInfo:
    """Tests for get_system_info."""

    def test_fields(self, home, monkeypatch):
        monkeypatch.setenv("SHELL", "/bin/bash")
        (home / ".bashrc").write_text("")
        info = get_system_info()
        assert info["shell"] == "bash"
        assert info["config_file"] == str(home / ".bashrc")
        assert info["home_dir"] == str(home)
        assert {"shell": "bash", "file": str(home / ".bashrc")} in info["available_shells"]
