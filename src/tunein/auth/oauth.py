"""Spotify authorization-code flow and token refresh."""

from __future__ import annotations

from typing import Any
from urllib.parse import urlencode

import httpx

from tunein.auth.store import Credentials, TokenStore, now_millis
from tunein.errors import AuthError, AuthExpired, AuthMissing
from tunein.logging import get_logger

log = get_logger("auth")

AUTHORIZE_URL = "https://accounts.spotify.com/authorize"
TOKEN_URL = "https://accounts.spotify.com/api/token"

SCOPES = [
    "user-read-playback-state",
    "user-modify-playback-state",
    "user-read-currently-playing",
]

# Refresh when the access token expires within this many seconds
REFRESH_MARGIN = 5 * 60


class SpotifyAuth:
    """Owns the token lifecycle for the remote playback backend.

    Every network call is bounded by ``timeout``. ``transport`` lets tests
    plug in an ``httpx.MockTransport``.
    """

    def __init__(
        self,
        store: TokenStore,
        client_id: str | None,
        client_secret: str | None,
        redirect_uri: str = "http://localhost:8888/callback",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._store = store
        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri
        self._timeout = timeout
        self._transport = transport

    @property
    def store(self) -> TokenStore:
        return self._store

    @property
    def redirect_uri(self) -> str:
        return self._redirect_uri

    def authorize_url(self, state: str | None = None) -> str:
        self._require_client()
        params = {
            "client_id": self._client_id,
            "response_type": "code",
            "redirect_uri": self._redirect_uri,
            "scope": " ".join(SCOPES),
        }
        if state:
            params["state"] = state
        return f"{AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> Credentials:
        """Trade an authorization code for tokens and persist them."""
        try:
            payload = await self._token_request(
                {"grant_type": "authorization_code", "code": code, "redirect_uri": self._redirect_uri}
            )
        except httpx.HTTPStatusError as e:
            raise AuthError(f"Code exchange failed: HTTP {e.response.status_code}") from e

        credentials = Credentials(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            expires_at=now_millis() + int(payload.get("expires_in", 3600)) * 1000,
        )
        self._store.save(credentials)
        log.info("Stored new Spotify credentials")
        return credentials

    async def refresh(self, credentials: Credentials | None = None) -> Credentials:
        """Refresh the access token and persist the result."""
        credentials = credentials or self._store.load()
        if not credentials.refresh_token:
            raise AuthMissing()

        try:
            payload = await self._token_request(
                {"grant_type": "refresh_token", "refresh_token": credentials.refresh_token}
            )
        except httpx.HTTPStatusError as e:
            if e.response.status_code in (400, 401):
                raise AuthExpired(e.response.text.strip()) from e
            raise AuthError(f"Token refresh failed: HTTP {e.response.status_code}") from e

        refreshed = Credentials(
            access_token=payload["access_token"],
            # Spotify may rotate the refresh token; keep the old one otherwise
            refresh_token=payload.get("refresh_token") or credentials.refresh_token,
            expires_at=now_millis() + int(payload.get("expires_in", 3600)) * 1000,
        )
        self._store.save(refreshed)
        log.debug("Refreshed Spotify access token")
        return refreshed

    async def get_valid_access_token(self) -> str:
        """Return a usable access token, refreshing it first if needed.

        Raises:
            AuthMissing: No stored credentials.
            AuthExpired: The refresh token was rejected.
            AuthError: The token endpoint could not be reached or answered badly.
        """
        credentials = self._store.load()
        if not credentials.authenticated:
            raise AuthMissing()

        if credentials.expires_within(REFRESH_MARGIN):
            credentials = await self.refresh(credentials)

        assert credentials.access_token is not None
        return credentials.access_token

    def client(self) -> httpx.AsyncClient:
        """An AsyncClient bound to this instance's timeout and transport."""
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    async def _token_request(self, form: dict[str, str]) -> dict[str, Any]:
        """POST to the token endpoint and return the decoded reply.

        A non-2xx answer is raised as ``httpx.HTTPStatusError`` so callers
        can tell a rejected grant apart. Transport failures and malformed
        replies become ``AuthError``.
        """
        self._require_client()
        form = {**form, "client_id": self._client_id, "client_secret": self._client_secret}
        try:
            async with self.client() as client:
                response = await client.post(
                    TOKEN_URL,
                    data=form,
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
        except httpx.HTTPError as e:
            raise AuthError(f"Spotify token request failed: {e}") from e

        response.raise_for_status()
        try:
            payload = response.json()
        except ValueError as e:
            raise AuthError("Spotify token endpoint returned invalid JSON") from e
        if not isinstance(payload, dict) or not payload.get("access_token"):
            raise AuthError("Spotify token reply has no access token")
        return payload

    def _require_client(self) -> None:
        if not self._client_id or not self._client_secret:
            raise AuthError(
                "Spotify client credentials missing. "
                "Set SPOTIFY_CLIENT_ID and SPOTIFY_CLIENT_SECRET (environment or .env.secrets)."
            )
