"""Daemon mode: one long-lived play/pause service driven over a unix socket."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console

from tunein.daemon.client import (
    is_daemon_running,
    send_daemon_command,
    stop_daemon,
)
from tunein.daemon.server import REPLY_OK, REPLY_UNKNOWN, TuneInDaemon
from tunein.daemon.state import DaemonState
from tunein.errors import DaemonAlreadyRunning

if TYPE_CHECKING:
    from tunein.auth import SpotifyAuth
    from tunein.config import Config


async def run_daemon(
    config: Config, auth: SpotifyAuth | None = None, console: Console | None = None
) -> int:
    """Pick a backend, then serve until SIGINT/SIGTERM. Returns an exit code."""
    from tunein.auth import build_auth
    from tunein.config import get_daemon_paths
    from tunein.playback import select_backend

    console = console or Console(stderr=True)
    backend, available = await select_backend(config, auth or build_auth(config))
    if not available:
        console.print("[red]Neither Spotify Desktop nor Web API available[/red]")
        return 1

    pid_path, state_path, socket_path = get_daemon_paths()
    daemon = TuneInDaemon(backend, pid_path, state_path, socket_path, console=console)
    try:
        await daemon.start()
    except DaemonAlreadyRunning as e:
        console.print(f"[red]{e}[/red]")
        return 1

    label = "Native Mode - Spotify Desktop" if backend.mode == "native" else "Web API Mode"
    console.print(f"[green]Daemon started ({label})[/green]")
    console.print("Listening for assistant events...")
    await daemon.serve_forever()
    return 0


__all__ = [
    "DaemonState",
    "REPLY_OK",
    "REPLY_UNKNOWN",
    "TuneInDaemon",
    "is_daemon_running",
    "run_daemon",
    "send_daemon_command",
    "stop_daemon",
]
