"""Root pytest configuration for all tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from tunein.config import clear_secret_cache, reset_config
from tunein.logging import reset_logging

pytest_plugins = ("pytest_asyncio",)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Keep every test away from the real ~/.tune-in and user config."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("TUNEIN_HOME", str(home / ".tune-in"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    for var in (
        "TUNEIN_LOG",
        "TUNEIN_BACKEND",
        "TUNEIN_ASSISTANT",
        "SPOTIFY_CLIENT_ID",
        "SPOTIFY_CLIENT_SECRET",
    ):
        monkeypatch.delenv(var, raising=False)
    reset_config()
    clear_secret_cache()
    reset_logging()
    yield home
    reset_config()
    clear_secret_cache()
    reset_logging()
