"""Delegated authorization for the Spotify Web API."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

from tunein.auth.oauth import SCOPES, SpotifyAuth
from tunein.auth.store import Credentials, TokenStore

if TYPE_CHECKING:
    from tunein.config import Config


def build_auth(
    config: Config, transport: httpx.AsyncBaseTransport | None = None
) -> SpotifyAuth:
    """SpotifyAuth wired to the configured token store and client secrets."""
    from tunein.config import (
        CLIENT_ID_KEY,
        CLIENT_SECRET_KEY,
        fetch_secret,
        get_credentials_path,
    )

    return SpotifyAuth(
        TokenStore(get_credentials_path()),
        client_id=fetch_secret(CLIENT_ID_KEY),
        client_secret=fetch_secret(CLIENT_SECRET_KEY),
        redirect_uri=f"http://localhost:{config.auth.redirect_port}/callback",
        timeout=config.playback.api_timeout,
        transport=transport,
    )


__all__ = [
    "Credentials",
    "SCOPES",
    "SpotifyAuth",
    "TokenStore",
    "build_auth",
]
