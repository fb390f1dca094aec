"""Secret lookup for the OAuth client credentials.

Priority order:
1. Environment variables (os.environ)
2. .env.secrets file in the working directory, then in the state dir (cached)
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from dotenv import dotenv_values

from tunein.config.paths import get_state_dir

SECRETS_FILE = ".env.secrets"

CLIENT_ID_KEY = "SPOTIFY_CLIENT_ID"
CLIENT_SECRET_KEY = "SPOTIFY_CLIENT_SECRET"


@lru_cache(maxsize=1)
def _load_secrets(secrets_path: Path | None = None) -> dict[str, str | None]:
    """Load and cache the first .env.secrets file found."""
    if secrets_path:
        return dotenv_values(secrets_path) if secrets_path.exists() else {}

    for candidate in (Path(SECRETS_FILE), get_state_dir() / SECRETS_FILE):
        if candidate.exists():
            return dotenv_values(candidate)
    return {}


def fetch_secret(
    key: str,
    default: str | None = None,
    secrets_path: Path | None = None,
) -> str | None:
    """Fetch a secret from environment or .env.secrets.

    Real environment variables win so tests can monkeypatch them.

    Example:
        >>> fetch_secret("SPOTIFY_CLIENT_ID")
        '3f1c...'
    """
    value = os.environ.get(key)
    if value is not None:
        return value

    secrets = _load_secrets(secrets_path)
    if secrets.get(key) is not None:
        return secrets[key]

    return default


def clear_secret_cache() -> None:
    """Forget the cached .env.secrets contents."""
    _load_secrets.cache_clear()
