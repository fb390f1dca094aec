"""Spotify Web API playback control."""

from __future__ import annotations

import shlex
import sys

import httpx

from tunein.auth.oauth import SpotifyAuth
from tunein.errors import PlaybackError
from tunein.logging import get_logger
from tunein.playback.protocol import Action, Track

log = get_logger("playback.remote")

API_BASE = "https://api.spotify.com/v1"

_SOFT_WARNINGS = {
    404: "No active Spotify device found. Please open Spotify on any device.",
    403: "Cannot play - Spotify Premium required.",
}


class RemotePlayback:
    """Playback through the Web API using the stored OAuth tokens.

    "No active device" (404) and "premium required" (403) are soft failures:
    warned once per process during play, ignored during pause.
    """

    mode = "remote"

    def __init__(self, auth: SpotifyAuth) -> None:
        self._auth = auth
        self._warned: set[int] = set()

    async def probe(self) -> bool:
        return self._auth.store.load().authenticated

    async def play(self) -> bool:
        response = await self._request("PUT", "/me/player/play", json={})
        if response.status_code in _SOFT_WARNINGS:
            if response.status_code not in self._warned:
                self._warned.add(response.status_code)
                log.warning(_SOFT_WARNINGS[response.status_code])
            return False
        self._raise_for_status(response, "play")
        return True

    async def pause(self) -> bool:
        response = await self._request("PUT", "/me/player/pause", json={})
        if response.status_code in _SOFT_WARNINGS:
            # Nothing to pause, or already reported during play
            return False
        self._raise_for_status(response, "pause")
        return True

    async def current_track(self) -> Track | None:
        response = await self._request("GET", "/me/player/currently-playing")
        if response.status_code == 204 or response.status_code in _SOFT_WARNINGS:
            return None
        self._raise_for_status(response, "currently-playing")
        item = (response.json() or {}).get("item") or {}
        name = item.get("name")
        if not name:
            return None
        artists = ", ".join(a.get("name", "") for a in item.get("artists", []) if a.get("name"))
        return Track(name=name, artist=artists)

    def hook_command(self, action: Action) -> str:
        return shlex.join([sys.executable, "-m", "tunein", "hook", action])

    async def _request(self, method: str, path: str, **kwargs: object) -> httpx.Response:
        token = await self._auth.get_valid_access_token()
        async with self._auth.client() as client:
            try:
                return await client.request(
                    method,
                    f"{API_BASE}{path}",
                    headers={"Authorization": f"Bearer {token}"},
                    **kwargs,  # type: ignore[arg-type]
                )
            except httpx.HTTPError as e:
                raise PlaybackError(f"Spotify API request failed: {e}") from e

    @staticmethod
    def _raise_for_status(response: httpx.Response, what: str) -> None:
        if response.is_success:
            return
        raise PlaybackError(f"Spotify {what} failed: HTTP {response.status_code}")
