"""Persisted OAuth tokens."""

from __future__ import annotations

import json
import os
import time
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from tunein.logging import get_logger

log = get_logger("auth")


class Credentials(BaseModel):
    """Access/refresh token pair with expiry in epoch milliseconds."""

    model_config = ConfigDict(populate_by_name=True)

    access_token: str | None = Field(default=None, alias="accessToken")
    refresh_token: str | None = Field(default=None, alias="refreshToken")
    expires_at: int | None = Field(default=None, alias="expiresAt")

    @property
    def authenticated(self) -> bool:
        return bool(self.access_token and self.refresh_token)

    def expires_within(self, seconds: float, now_ms: int | None = None) -> bool:
        """True if the token is unknown-expiry or expires within ``seconds``."""
        if self.expires_at is None:
            return True
        now_ms = now_ms if now_ms is not None else now_millis()
        return self.expires_at < now_ms + int(seconds * 1000)


def now_millis() -> int:
    return int(time.time() * 1000)


class TokenStore:
    """JSON file holding the user's Credentials (mode 0600)."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Credentials:
        """Read stored credentials; missing or corrupt files read as empty."""
        if not self._path.exists():
            return Credentials()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            return Credentials.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            log.warning("Ignoring unreadable credentials at %s: %s", self._path, e)
            return Credentials()

    def save(self, credentials: Credentials) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = credentials.model_dump(by_alias=True, exclude_none=True)
        self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        os.chmod(self._path, 0o600)

    def clear(self) -> bool:
        """Remove stored credentials. Returns True if a file was deleted."""
        try:
            self._path.unlink()
        except FileNotFoundError:
            return False
        return True
