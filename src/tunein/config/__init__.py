"""Configuration management for tune-in.

Provides hierarchical YAML-based configuration with:
- System-level config (/etc/tune-in/ or %PROGRAMDATA%)
- User-level config (~/.config/tune-in/ or %APPDATA%)
- Project-level config (./.tune-in/)
- Environment variable overrides (highest priority)

Example usage:
    from tunein.config import load_config

    config = load_config(project_root=os.getcwd())
    print(config.activity.idle_timeout_ms)
"""

from tunein.config.loader import (
    get_config,
    load_config,
    reset_config,
)
from tunein.config.paths import (
    get_assistant_settings_path,
    get_config_paths,
    get_credentials_path,
    get_daemon_paths,
    get_session_id_path,
    get_settings_lock_path,
    get_state_dir,
)
from tunein.config.schema import (
    ActivityConfig,
    AssistantConfig,
    AuthConfig,
    Config,
    LoggingConfig,
    PlaybackConfig,
    WrapConfig,
)
from tunein.config.secrets import (
    CLIENT_ID_KEY,
    CLIENT_SECRET_KEY,
    clear_secret_cache,
    fetch_secret,
)

__all__ = [
    # Main API
    "Config",
    "load_config",
    "get_config",
    "reset_config",
    # Schema types
    "ActivityConfig",
    "AssistantConfig",
    "AuthConfig",
    "LoggingConfig",
    "PlaybackConfig",
    "WrapConfig",
    # Secrets
    "CLIENT_ID_KEY",
    "CLIENT_SECRET_KEY",
    "fetch_secret",
    "clear_secret_cache",
    # Paths
    "get_config_paths",
    "get_state_dir",
    "get_credentials_path",
    "get_daemon_paths",
    "get_session_id_path",
    "get_assistant_settings_path",
    "get_settings_lock_path",
]
