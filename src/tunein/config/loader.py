"""Configuration file loading and caching.

Handles:
- YAML file parsing
- Environment variable overrides
- Config caching
- Conversion from dict to typed Config dataclass
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from tunein.config.merge import merge_layers
from tunein.config.paths import get_config_paths
from tunein.config.schema import (
    BACKEND_CHOICES,
    ActivityConfig,
    AssistantConfig,
    AuthConfig,
    Config,
    LoggingConfig,
    PlaybackConfig,
    WrapConfig,
)

# Module logger (may not be configured yet at import time)
_log = logging.getLogger("tunein.config")

_cached_config: Config | None = None


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning empty dict if not found or invalid."""
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except yaml.YAMLError as e:
        _log.warning("Invalid YAML in %s: %s", path, e)
        return {}
    except PermissionError:
        _log.debug("Permission denied reading %s", path)
        return {}
    except OSError as e:
        _log.warning("Error reading %s: %s", path, e)
        return {}


def env_overrides() -> dict[str, Any]:
    """Build config dict from environment variables.

    TUNEIN_LOG -> logging.file
    TUNEIN_BACKEND -> playback.backend
    TUNEIN_ASSISTANT -> assistant.command
    """
    overrides: dict[str, Any] = {}

    log_path = os.environ.get("TUNEIN_LOG")
    if log_path:
        overrides.setdefault("logging", {})["file"] = log_path

    backend = os.environ.get("TUNEIN_BACKEND")
    if backend:
        overrides.setdefault("playback", {})["backend"] = backend

    assistant = os.environ.get("TUNEIN_ASSISTANT")
    if assistant:
        overrides.setdefault("assistant", {})["command"] = assistant

    return overrides


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name, {})
    return value if isinstance(value, dict) else {}


def dict_to_config(data: dict[str, Any]) -> Config:
    """Convert merged dict to typed Config dataclass."""
    log_data = _section(data, "logging")
    logging_config = LoggingConfig(
        level=log_data.get("level"),
        verbose=log_data.get("verbose"),
        file=log_data.get("file"),
    )

    activity_data = _section(data, "activity")
    activity = ActivityConfig(
        play_threshold=int(activity_data.get("play_threshold", 3)),
        idle_timeout_ms=int(activity_data.get("idle_timeout_ms", 6000)),
    )

    assistant_data = _section(data, "assistant")
    assistant = AssistantConfig(
        command=assistant_data.get("command", "claude"),
        settings_path=assistant_data.get("settings_path"),
        install_hint=assistant_data.get("install_hint", AssistantConfig.install_hint),
    )

    playback_data = _section(data, "playback")
    backend = playback_data.get("backend", "auto")
    if backend not in BACKEND_CHOICES:
        _log.warning("Unknown playback backend %r, using auto", backend)
        backend = "auto"
    playback = PlaybackConfig(
        backend=backend,
        launch_wait=float(playback_data.get("launch_wait", 3.0)),
        api_timeout=float(playback_data.get("api_timeout", 10.0)),
    )

    auth_data = _section(data, "auth")
    auth = AuthConfig(
        redirect_port=int(auth_data.get("redirect_port", 8888)),
        timeout=float(auth_data.get("timeout", 300.0)),
    )

    wrap_data = _section(data, "wrap")
    wrap = WrapConfig(no_pause=bool(wrap_data.get("no_pause", False)))

    known_keys = {"logging", "activity", "assistant", "playback", "auth", "wrap"}
    extra = {k: v for k, v in data.items() if k not in known_keys}

    return Config(
        logging=logging_config,
        activity=activity,
        assistant=assistant,
        playback=playback,
        auth=auth,
        wrap=wrap,
        extra=extra,
    )


def load_config(project_root: str | None = None, reload: bool = False) -> Config:
    """Load and merge config from all sources.

    Priority order (highest to lowest):
    1. Environment variables
    2. Project config (./.tune-in/config.yaml)
    3. User config (~/.config/tune-in/config.yaml or %APPDATA%)
    4. System config (/etc/tune-in/ or %PROGRAMDATA%)

    Args:
        project_root: Directory for project-level config.
        reload: Force reload even if cached.

    Returns:
        Merged Config object.
    """
    global _cached_config

    if _cached_config is not None and not reload and project_root is None:
        return _cached_config

    layers: list[dict[str, Any]] = []

    for path in get_config_paths(project_root):
        config_data = load_yaml_file(path)
        if config_data:
            _log.debug("Loaded config from %s", path)
            layers.append(config_data)

    env_config = env_overrides()
    if env_config:
        layers.append(env_config)

    config = dict_to_config(merge_layers(*layers))

    # Cache only global config (no project_root)
    if project_root is None:
        _cached_config = config

    return config


def get_config() -> Config:
    """Get the cached global config, loading it on first use."""
    if _cached_config is None:
        return load_config()
    return _cached_config


def reset_config() -> None:
    """Reset cached config (used by tests)."""
    global _cached_config
    _cached_config = None
