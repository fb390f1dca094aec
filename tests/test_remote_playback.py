"""Tests for Web API playback and token refresh."""

from __future__ import annotations

import json
import logging
import sys
from urllib.parse import parse_qs

import httpx
import pytest

from tunein.auth import Credentials, SpotifyAuth, TokenStore
from tunein.auth.store import now_millis
from tunein.errors import AuthError, AuthExpired, AuthMissing, PlaybackError
from tunein.playback import RemotePlayback, Track


class FakeSpotify:
    """Routes requests for the token endpoint and the player API."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.player_status = 204
        self.token_status = 200
        self.current: dict | None = None
        self.new_refresh_token: str | None = None
        self.token_error: Exception | None = None
        self.token_text: str | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/api/token":
            if self.token_error is not None:
                raise self.token_error
            if self.token_text is not None:
                return httpx.Response(200, text=self.token_text)
            if self.token_status != 200:
                return httpx.Response(self.token_status, json={"error": "invalid_grant"})
            body = {"access_token": "fresh-token", "expires_in": 3600}
            if self.new_refresh_token:
                body["refresh_token"] = self.new_refresh_token
            return httpx.Response(200, json=body)
        if request.url.path == "/v1/me/player/currently-playing":
            if self.current is None:
                return httpx.Response(204)
            return httpx.Response(200, json=self.current)
        return httpx.Response(self.player_status)

    def player_calls(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.startswith("/v1/")]

    def token_calls(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == "/api/token"]


@pytest.fixture
def spotify() -> FakeSpotify:
    return FakeSpotify()


@pytest.fixture
def store(tmp_path) -> TokenStore:
    return TokenStore(tmp_path / "credentials.json")


@pytest.fixture
def auth(store, spotify) -> SpotifyAuth:
    return SpotifyAuth(store, "client-id", "client-secret", transport=httpx.MockTransport(spotify))


def store_tokens(store: TokenStore, expires_in_ms: int) -> None:
    store.save(
        Credentials(
            access_token="old-token",
            refresh_token="refresh-1",
            expires_at=now_millis() + expires_in_ms,
        )
    )


class TestTokenRefresh:
    @pytest.mark.asyncio
    async def test_near_expiry_refreshes_and_persists(self, auth, store, spotify):
        store_tokens(store, expires_in_ms=60_000)  # inside the 5 minute margin

        assert await RemotePlayback(auth).play()

        assert len(spotify.token_calls()) == 1
        form = parse_qs(spotify.token_calls()[0].content.decode())
        assert form["grant_type"] == ["refresh_token"]
        assert form["refresh_token"] == ["refresh-1"]

        play = spotify.player_calls()[0]
        assert play.headers["Authorization"] == "Bearer fresh-token"

        saved = json.loads(store.path.read_text())
        assert saved["accessToken"] == "fresh-token"
        assert saved["refreshToken"] == "refresh-1"
        assert saved["expiresAt"] > now_millis() + 3_000_000

    @pytest.mark.asyncio
    async def test_valid_token_is_not_refreshed(self, auth, store, spotify):
        store_tokens(store, expires_in_ms=3_600_000)
        await RemotePlayback(auth).pause()
        assert spotify.token_calls() == []
        assert spotify.player_calls()[0].headers["Authorization"] == "Bearer old-token"

    @pytest.mark.asyncio
    async def test_rotated_refresh_token_is_kept(self, auth, store, spotify):
        store_tokens(store, expires_in_ms=0)
        spotify.new_refresh_token = "refresh-2"
        await auth.get_valid_access_token()
        assert store.load().refresh_token == "refresh-2"

    @pytest.mark.asyncio
    async def test_rejected_refresh_raises_expired(self, auth, store, spotify):
        store_tokens(store, expires_in_ms=0)
        spotify.token_status = 400
        with pytest.raises(AuthExpired):
            await auth.get_valid_access_token()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [500, 503])
    async def test_server_error_during_refresh(self, auth, store, spotify, status):
        store_tokens(store, expires_in_ms=0)
        spotify.token_status = status
        with pytest.raises(AuthError) as exc:
            await RemotePlayback(auth).play()
        assert not isinstance(exc.value, AuthExpired)
        assert store.load().access_token == "old-token"
        assert spotify.player_calls() == []

    @pytest.mark.asyncio
    async def test_network_failure_during_refresh(self, auth, store, spotify):
        store_tokens(store, expires_in_ms=60_000)
        spotify.token_error = httpx.ConnectError("offline")
        backend = RemotePlayback(auth)
        with pytest.raises(AuthError, match="offline"):
            await backend.play()
        with pytest.raises(AuthError):
            await backend.pause()

    @pytest.mark.asyncio
    async def test_garbled_token_reply(self, auth, store, spotify):
        store_tokens(store, expires_in_ms=0)
        spotify.token_text = "<html>maintenance</html>"
        with pytest.raises(AuthError, match="invalid JSON"):
            await auth.get_valid_access_token()

    @pytest.mark.asyncio
    async def test_no_credentials(self, auth):
        with pytest.raises(AuthMissing):
            await RemotePlayback(auth).play()

    def test_credentials_file_is_private(self, store):
        store_tokens(store, expires_in_ms=0)
        if sys.platform != "win32":
            assert store.path.stat().st_mode & 0o777 == 0o600


class TestPlayerCalls:
    @pytest.fixture(autouse=True)
    def logged_in(self, store):
        store_tokens(store, expires_in_ms=3_600_000)

    @pytest.mark.asyncio
    async def test_play_and_pause_endpoints(self, auth, spotify):
        backend = RemotePlayback(auth)
        assert await backend.play()
        assert await backend.pause()
        methods = [(r.method, r.url.path) for r in spotify.player_calls()]
        assert methods == [("PUT", "/v1/me/player/play"), ("PUT", "/v1/me/player/pause")]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [404, 403])
    async def test_soft_failures_warn_once(self, auth, spotify, status, caplog):
        spotify.player_status = status
        backend = RemotePlayback(auth)

        with caplog.at_level("WARNING", logger="tunein"):
            assert await backend.play() is False
            assert await backend.play() is False
            assert await backend.pause() is False

        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1

    @pytest.mark.asyncio
    async def test_other_errors_raise(self, auth, spotify):
        spotify.player_status = 500
        with pytest.raises(PlaybackError):
            await RemotePlayback(auth).play()

    @pytest.mark.asyncio
    async def test_current_track(self, auth, spotify):
        backend = RemotePlayback(auth)
        assert await backend.current_track() is None

        spotify.current = {
            "item": {"name": "Song", "artists": [{"name": "A"}, {"name": "B"}]},
        }
        assert await backend.current_track() == Track(name="Song", artist="A, B")

    def test_hook_command_calls_back_into_cli(self, auth):
        command = RemotePlayback(auth).hook_command("pause")
        assert command.endswith("-m tunein hook pause")
