"""Run mode: music plays for as long as a shell command runs."""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape

from tunein.errors import TuneInError
from tunein.logging import get_logger
from tunein.playback import NativePlayback, PlaybackBackend, RemotePlayback
from tunein.terminal import CommandRunner

if TYPE_CHECKING:
    from tunein.auth import SpotifyAuth
    from tunein.config import Config

log = get_logger("run")

console = Console(stderr=True)


async def pick_run_backend(
    config: Config, auth: SpotifyAuth, native: NativePlayback | None = None
) -> PlaybackBackend | None:
    """Desktop player if it is running, else the Web API if logged in."""
    native = native or NativePlayback(launch_wait=config.playback.launch_wait)
    if config.playback.backend != "remote" and await native.probe():
        return native
    remote = RemotePlayback(auth)
    if config.playback.backend != "native" and await remote.probe():
        return remote
    return None


async def run_command(
    config: Config,
    argv: list[str],
    *,
    auth: SpotifyAuth | None = None,
    backend: PlaybackBackend | None = None,
    runner: CommandRunner | None = None,
    out: Console | None = None,
) -> int:
    """Play, run ``argv`` through the shell, pause. Returns the exit code."""
    out = out or console
    out.print(f"[dim]Starting: {escape(' '.join(argv))}[/dim]")

    if backend is None:
        from tunein.auth import build_auth

        backend = await pick_run_backend(config, auth or build_auth(config))
    if backend is None:
        out.print("[red]Spotify not running and not authenticated with Web API.[/red]")
        out.print("Two options:")
        out.print("  1. [cyan]Open Spotify Desktop[/cyan] (easier, no setup needed)")
        out.print("  2. Run [cyan]tune-in auth[/cyan] to use Web API")
        return 1

    out.print(f"[dim]Mode: {'Spotify Desktop' if backend.mode == 'native' else 'Web API'}[/dim]")

    started = False
    try:
        started = await backend.play()
    except TuneInError as e:
        out.print(f"[yellow]Could not start music: {escape(str(e))}[/yellow]")
    else:
        if started:
            out.print("[green]Music playing[/green]")
        else:
            out.print("[yellow]Could not start Spotify, make sure it's open[/yellow]")

    interrupted = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, interrupted.set)
        handler_installed = True
    except (NotImplementedError, RuntimeError):
        handler_installed = False

    try:
        result = await (runner or CommandRunner()).execute(argv, interrupted=interrupted)
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)

    log.info("%r", result)
    if result.status == "interrupted":
        out.print("[dim]Task interrupted[/dim]")
    elif result.status == "not_found":
        out.print(f"[red]Error running command: {escape(result.command)}[/red]")

    if started:
        try:
            await backend.pause()
            out.print("[dim]Music paused[/dim]")
        except TuneInError as e:
            out.print(f"[yellow]Could not pause music: {escape(str(e))}[/yellow]")

    return result.exit_code
