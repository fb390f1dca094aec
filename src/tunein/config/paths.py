"""Platform-aware path resolution.

Config files:
- Windows: %PROGRAMDATA% (system), %APPDATA% (user)
- Unix: /etc/ (system), $XDG_CONFIG_HOME, ~/.config/tune-in/ or ~/.tune-in/ (user)
- Project: ./.tune-in/

Runtime state (credentials, daemon files) lives in ~/.tune-in unless
TUNEIN_HOME points elsewhere. The session identifier file sits in the
system temp directory so guarded hook commands can find it without any
environment of their own.
"""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

CONFIG_FILENAME = "config.yaml"
APP_NAME = "tune-in"
SHORT_NAME = ".tune-in"

CREDENTIALS_FILENAME = "credentials.json"
SESSION_ID_FILENAME = "tune-in-claude.pid"


def get_system_config_path() -> Path | None:
    """Get system-level config path (the file may not exist)."""
    if sys.platform == "win32":
        program_data = os.environ.get("PROGRAMDATA")
        if program_data:
            return Path(program_data) / APP_NAME / CONFIG_FILENAME
        return None
    return Path("/etc") / APP_NAME / CONFIG_FILENAME


def get_user_config_path() -> Path | None:
    """Get user-level config path (the file may not exist)."""
    if sys.platform == "win32":
        app_data = os.environ.get("APPDATA")
        if app_data:
            return Path(app_data) / APP_NAME / CONFIG_FILENAME
        return None

    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config) / APP_NAME / CONFIG_FILENAME

    home = Path.home()
    xdg_default = home / ".config"
    if xdg_default.exists():
        return xdg_default / APP_NAME / CONFIG_FILENAME

    return home / SHORT_NAME / CONFIG_FILENAME


def get_project_config_path(project_root: str) -> Path:
    """Get project-level config path (the file may not exist)."""
    return Path(project_root) / SHORT_NAME / CONFIG_FILENAME


def get_config_paths(project_root: str | None = None) -> list[Path]:
    """Get all config paths in priority order (lowest to highest).

    Args:
        project_root: Optional directory holding a project-level config.

    Returns:
        System, user, then project path. Later paths override earlier ones.
    """
    paths: list[Path] = []

    system_path = get_system_config_path()
    if system_path:
        paths.append(system_path)

    user_path = get_user_config_path()
    if user_path:
        paths.append(user_path)

    if project_root:
        paths.append(get_project_config_path(project_root))

    return paths


def get_state_dir() -> Path:
    """Directory for credentials and daemon runtime files."""
    override = os.environ.get("TUNEIN_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / SHORT_NAME


def get_credentials_path() -> Path:
    return get_state_dir() / CREDENTIALS_FILENAME


def get_daemon_paths() -> tuple[Path, Path, Path]:
    """Return (pid file, state file, socket) for the daemon."""
    state_dir = get_state_dir()
    return (
        state_dir / "daemon.pid",
        state_dir / "daemon.state",
        state_dir / "daemon.sock",
    )


def get_session_id_path() -> Path:
    return Path(tempfile.gettempdir()) / SESSION_ID_FILENAME


def get_assistant_settings_path() -> Path:
    """Default location of the assistant's hook settings."""
    return Path.home() / ".claude" / "settings.json"


def get_settings_lock_path() -> Path:
    return get_state_dir() / "settings.lock"
