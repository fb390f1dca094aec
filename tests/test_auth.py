"""Tests for the token store, code exchange and the OAuth callback app."""

from __future__ import annotations

import asyncio
import json
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from fastapi.testclient import TestClient

from tunein.auth import SCOPES, Credentials, SpotifyAuth, TokenStore, build_auth
from tunein.auth.callback import create_app
from tunein.config import Config
from tunein.errors import AuthError


def token_handler(request: httpx.Request) -> httpx.Response:
    form = parse_qs(request.content.decode())
    if form.get("code") == ["bad"]:
        return httpx.Response(400, json={"error": "invalid_grant"})
    return httpx.Response(
        200,
        json={"access_token": "acc", "refresh_token": "ref", "expires_in": 3600},
    )


@pytest.fixture
def store(tmp_path) -> TokenStore:
    return TokenStore(tmp_path / "state" / "credentials.json")


@pytest.fixture
def auth(store) -> SpotifyAuth:
    return SpotifyAuth(store, "cid", "secret", transport=httpx.MockTransport(token_handler))


class TestTokenStore:
    def test_missing_file_is_unauthenticated(self, store):
        assert not store.load().authenticated

    def test_save_uses_camel_case_keys(self, store):
        store.save(Credentials(access_token="a", refresh_token="r", expires_at=5))
        assert json.loads(store.path.read_text()) == {
            "accessToken": "a",
            "refreshToken": "r",
            "expiresAt": 5,
        }
        assert store.load().authenticated

    def test_corrupt_file_reads_as_empty(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text("{oops")
        assert store.load() == Credentials()

    def test_clear(self, store):
        assert store.clear() is False
        store.save(Credentials(access_token="a", refresh_token="r"))
        assert store.clear() is True
        assert not store.path.exists()

    def test_expiry_margin(self):
        creds = Credentials(access_token="a", refresh_token="r", expires_at=1_000_000)
        assert creds.expires_within(300, now_ms=800_000)
        assert not creds.expires_within(300, now_ms=600_000)
        assert Credentials().expires_within(300)


class TestSpotifyAuth:
    def test_authorize_url(self, auth):
        url = urlparse(auth.authorize_url(state="xyz"))
        params = parse_qs(url.query)
        assert url.netloc == "accounts.spotify.com"
        assert params["client_id"] == ["cid"]
        assert params["response_type"] == ["code"]
        assert params["redirect_uri"] == ["http://localhost:8888/callback"]
        assert params["scope"] == [" ".join(SCOPES)]
        assert params["state"] == ["xyz"]

    def test_missing_client_credentials(self, store):
        with pytest.raises(AuthError, match="SPOTIFY_CLIENT_ID"):
            SpotifyAuth(store, None, None).authorize_url()

    @pytest.mark.asyncio
    async def test_exchange_code_persists(self, auth, store):
        creds = await auth.exchange_code("good")
        assert creds.access_token == "acc"
        assert store.load().refresh_token == "ref"

    def test_build_auth_reads_secrets_from_env(self, monkeypatch):
        monkeypatch.setenv("SPOTIFY_CLIENT_ID", "env-id")
        monkeypatch.setenv("SPOTIFY_CLIENT_SECRET", "env-secret")
        config = Config()
        config.auth.redirect_port = 9999
        auth = build_auth(config)
        assert auth.redirect_uri == "http://localhost:9999/callback"
        assert "client_id=env-id" in auth.authorize_url()


class TestCallbackApp:
    @pytest.fixture
    def loop(self):
        loop = asyncio.new_event_loop()
        yield loop
        loop.close()

    def test_success(self, auth, store, loop):
        done = loop.create_future()
        client = TestClient(create_app(auth, done))
        response = client.get("/callback", params={"code": "good"})

        assert response.status_code == 200
        assert "Authentication Successful" in response.text
        assert done.done() and done.exception() is None
        assert store.load().authenticated

    def test_denied(self, auth, loop):
        done = loop.create_future()
        client = TestClient(create_app(auth, done))
        response = client.get("/callback", params={"error": "<access_denied>"})

        assert "&lt;access_denied&gt;" in response.text
        assert isinstance(done.exception(), AuthError)

    def test_missing_code(self, auth, loop):
        done = loop.create_future()
        response = TestClient(create_app(auth, done)).get("/callback")
        assert "No Authorization Code" in response.text
        assert isinstance(done.exception(), AuthError)

    def test_failed_exchange(self, auth, store, loop):
        done = loop.create_future()
        response = TestClient(create_app(auth, done)).get("/callback", params={"code": "bad"})
        assert "Authentication Failed" in response.text
        assert isinstance(done.exception(), AuthError)
        assert not store.load().authenticated
