"""
Shared fixtures.
"""

import logging

import pytest


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep tests away from the real data directory and option files."""
    monkeypatch.setenv("GEMINI_UPDATER_HOME", str(tmp_path / "updater-home"))
    monkeypatch.delenv("GEMINI_UPDATER_CONFIG", raising=False)
    monkeypatch.delenv("GEMINI_UPDATER_DEBUG", raising=False)
    monkeypatch.delenv("GEMINI_UPDATER_SKIP_UPDATE", raising=False)
    monkeypatch.setattr("gemini_updater.config.CONFIG_LOCATIONS", [])
    yield
    # Release file handlers opened under tmp_path
    logger = logging.getLogger("gemini_updater")
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
