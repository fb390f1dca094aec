"""Playback backends and one-time backend selection."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

from tunein.logging import get_logger
from tunein.playback.native import NativePlayback
from tunein.playback.protocol import PlaybackBackend, Track
from tunein.playback.remote import RemotePlayback

if TYPE_CHECKING:
    from tunein.auth.oauth import SpotifyAuth
    from tunein.config.schema import Config

log = get_logger("playback")


async def select_backend(
    config: Config,
    auth: SpotifyAuth,
    launch: bool = False,
    native: NativePlayback | None = None,
    on_launch: Callable[[], None] | None = None,
) -> tuple[PlaybackBackend, bool]:
    """Pick the backend for this process and report whether it is usable.

    ``playback.backend`` forces a variant. In ``auto`` mode the running
    desktop player wins, then stored Web API credentials, then (only when
    ``launch`` is set) an attempt to open the desktop player. The choice is
    never revisited for the lifetime of the session.
    """
    native = native or NativePlayback(launch_wait=config.playback.launch_wait)
    remote = RemotePlayback(auth)
    choice = config.playback.backend

    if choice == "remote":
        return remote, await remote.probe()

    if await native.probe():
        return native, True

    if choice == "auto" and await remote.probe():
        log.info("Desktop player not running, using Web API")
        return remote, True

    if launch:
        if on_launch is not None:
            on_launch()
        if await native.launch():
            return native, await native.probe()

    return native, False


__all__ = [
    "NativePlayback",
    "PlaybackBackend",
    "RemotePlayback",
    "Track",
    "select_backend",
]
