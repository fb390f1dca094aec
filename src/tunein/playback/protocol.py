"""Playback backend protocol."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Protocol

Action = Literal["play", "pause"]


@dataclass(frozen=True)
class Track:
    name: str
    artist: str

    def __str__(self) -> str:
        return f"{self.name} by {self.artist}"


class PlaybackBackend(Protocol):
    """Atomic play/pause against an external player.

    Implementations:
    - NativePlayback: one-shot OS commands to the local player app
    - RemotePlayback: Spotify Web API with delegated authorization

    play() and pause() are idempotent: calling play while already playing
    is a no-op, not an error.
    """

    mode: str

    async def probe(self) -> bool:
        """True if the player can be reached."""
        ...

    async def play(self) -> bool:
        """Start playback. False when the player could not act."""
        ...

    async def pause(self) -> bool:
        """Pause playback. False when the player could not act."""
        ...

    async def current_track(self) -> Track | None:
        """The loaded track, if the player can tell."""
        ...

    def hook_command(self, action: Action) -> str:
        """Shell command that performs ``action`` from an assistant hook."""
        ...
