"""Configuration schema dataclasses for tune-in.

All fields have defaults so partial configs merge cleanly.

Example config.yaml:
    assistant:
      command: claude
    activity:
      play_threshold: 3
      idle_timeout_ms: 6000
    playback:
      backend: auto
    wrap:
      no_pause: false
    logging:
      file: ~/.tune-in/tune-in.log
      verbose: 2
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

BACKEND_CHOICES = ("auto", "native", "remote")


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # DEBUG, INFO, WARNING, ERROR
    verbose: int | None = None  # 0-4, overrides level
    file: str | None = None  # Log file path


@dataclass
class ActivityConfig:
    """Typing cadence thresholds for the activity engine."""

    play_threshold: int = 3  # Printable chars before a typing burst plays
    idle_timeout_ms: int = 6000  # Quiet time before a burst pauses


@dataclass
class AssistantConfig:
    """The wrapped interactive assistant."""

    command: str = "claude"
    settings_path: str | None = None  # Default: ~/.claude/settings.json
    install_hint: str = "Install Claude Code: https://claude.ai/code"


@dataclass
class PlaybackConfig:
    """Playback backend selection."""

    backend: str = "auto"  # auto, native, remote
    launch_wait: float = 3.0  # Seconds to wait after opening the player
    api_timeout: float = 10.0  # Web API request timeout in seconds


@dataclass
class AuthConfig:
    """Delegated authorization settings.

    Client id/secret are secrets and come from SPOTIFY_CLIENT_ID /
    SPOTIFY_CLIENT_SECRET (environment or .env.secrets), not from YAML.
    """

    redirect_port: int = 8888
    timeout: float = 300.0  # Seconds to wait for the browser callback


@dataclass
class WrapConfig:
    """Defaults for `tune-in wrap`."""

    no_pause: bool = False


@dataclass
class Config:
    """Root configuration object."""

    logging: LoggingConfig = field(default_factory=LoggingConfig)
    activity: ActivityConfig = field(default_factory=ActivityConfig)
    assistant: AssistantConfig = field(default_factory=AssistantConfig)
    playback: PlaybackConfig = field(default_factory=PlaybackConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    wrap: WrapConfig = field(default_factory=WrapConfig)

    # Unknown top-level sections, kept for forward compatibility
    extra: dict[str, Any] = field(default_factory=dict)
