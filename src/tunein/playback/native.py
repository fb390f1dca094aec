"""Native player control through one-shot OS commands.

macOS talks to Spotify over AppleScript, Windows goes through the media
player COM controls, and Linux uses MPRIS over D-Bus. Every call starts a
fresh process; there is no connection to keep alive.
"""

from __future__ import annotations

import asyncio
import re
import shlex
import sys

from tunein.logging import get_logger
from tunein.playback.protocol import Action, Track

log = get_logger("playback.native")

_MPRIS_DEST = "org.mpris.MediaPlayer2.spotify"
_MPRIS_PATH = "/org/mpris/MediaPlayer2"


def _dbus(method: str, *extra: str) -> list[str]:
    return ["dbus-send", "--print-reply", f"--dest={_MPRIS_DEST}", _MPRIS_PATH, method, *extra]


def _osascript(script: str) -> list[str]:
    return ["osascript", "-e", script]


def _wmp(action: str) -> list[str]:
    return ["powershell", "-command", f"(New-Object -ComObject WMPlayer.OCX.7).controls.{action}()"]


def player_command(action: Action, platform: str | None = None) -> list[str]:
    """argv that makes the local player ``play`` or ``pause``."""
    platform = platform or sys.platform
    if platform == "darwin":
        return _osascript(f'tell application "Spotify" to {action}')
    if platform == "win32":
        return _wmp(action)
    method = "Play" if action == "play" else "Pause"
    return _dbus(f"org.mpris.MediaPlayer2.Player.{method}")


def probe_command(platform: str | None = None) -> list[str]:
    platform = platform or sys.platform
    if platform == "darwin":
        return _osascript(
            'tell application "System Events" to (name of processes) contains "Spotify"'
        )
    if platform == "win32":
        return ["tasklist", "/FI", "IMAGENAME eq Spotify.exe"]
    return ["pgrep", "-x", "spotify"]


def launch_command(platform: str | None = None) -> list[str]:
    platform = platform or sys.platform
    if platform == "darwin":
        return ["open", "-a", "Spotify"]
    if platform == "win32":
        return ["cmd", "/c", "start", "spotify:"]
    return ["spotify"]


def track_command(platform: str | None = None) -> list[str] | None:
    platform = platform or sys.platform
    if platform == "darwin":
        return _osascript(
            'tell application "Spotify" to '
            "(get name of current track) & tab & (get artist of current track)"
        )
    if platform == "win32":
        return None
    return _dbus(
        "org.freedesktop.DBus.Properties.Get",
        "string:org.mpris.MediaPlayer2.Player",
        "string:Metadata",
    )


_TITLE_RE = re.compile(r'string "xesam:title"\s+variant\s+string "((?:[^"\\]|\\.)*)"')
_ARTIST_RE = re.compile(r'string "xesam:artist"\s+variant\s+array \[\s+string "((?:[^"\\]|\\.)*)"')


def parse_mpris_metadata(output: str) -> Track | None:
    """Pull title and first artist out of a dbus-send Metadata reply."""
    title = _TITLE_RE.search(output)
    if not title or not title.group(1):
        return None
    artist = _ARTIST_RE.search(output)
    return Track(name=title.group(1), artist=artist.group(1) if artist else "")


def parse_osascript_track(output: str) -> Track | None:
    name, sep, artist = output.strip().partition("\t")
    if not sep or not name:
        return None
    return Track(name=name, artist=artist)


class NativePlayback:
    """Stateless control of the locally running player."""

    mode = "native"

    def __init__(self, platform: str | None = None, launch_wait: float = 3.0) -> None:
        self._platform = platform or sys.platform
        self._launch_wait = launch_wait

    async def _run(self, argv: list[str]) -> tuple[int, str]:
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
                stdin=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            log.debug("%s unavailable: %s", argv[0], e)
            return 127, ""
        stdout, _ = await process.communicate()
        return process.returncode or 0, stdout.decode("utf-8", errors="replace")

    async def probe(self) -> bool:
        code, output = await self._run(probe_command(self._platform))
        if code != 0:
            return False
        if self._platform == "darwin":
            return output.strip() == "true"
        if self._platform == "win32":
            return "Spotify.exe" in output
        return bool(output.strip())

    async def launch(self) -> bool:
        """Open the player and give it time to come up."""
        argv = launch_command(self._platform)
        try:
            await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            log.warning("Could not open player with %s: %s", shlex.join(argv), e)
            return False
        await asyncio.sleep(self._launch_wait)
        return True

    async def play(self) -> bool:
        return await self._send("play")

    async def pause(self) -> bool:
        return await self._send("pause")

    async def _send(self, action: Action) -> bool:
        code, _ = await self._run(player_command(action, self._platform))
        if code != 0:
            log.warning("Native %s failed (exit %d)", action, code)
            return False
        log.debug("Native %s sent", action)
        return True

    async def current_track(self) -> Track | None:
        argv = track_command(self._platform)
        if argv is None:
            return None
        code, output = await self._run(argv)
        if code != 0:
            return None
        if self._platform == "darwin":
            return parse_osascript_track(output)
        return parse_mpris_metadata(output)

    def hook_command(self, action: Action) -> str:
        return shlex.join(player_command(action, self._platform))
