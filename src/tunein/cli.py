"""Command-line interface for tune-in."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import os
from collections.abc import Sequence
from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from tunein import __version__
from tunein.errors import AuthError, DaemonError, TuneInError
from tunein.logging import get_logger, setup_logging

if TYPE_CHECKING:
    from tunein.config import Config, LoggingConfig

log = get_logger("cli")

console = Console(stderr=True)

# Subcommands whose remaining arguments belong to the wrapped program
PASSTHROUGH_COMMANDS = ("wrap", "run")
NO_PAUSE_FLAG = "--no-pause"

_VISIBLE_COMMANDS = "{wrap,run,auth,logout,daemon,signal,status,help}"

EPILOG = """\
examples:
  tune-in wrap                  Run the assistant with music sync
  tune-in wrap --no-pause       Keep the music going until you exit
  tune-in run npm run build     Play while a command runs
  tune-in daemon                Start the background daemon for custom hooks

how it works:
  assistant working -> music plays
  assistant waiting for you -> music pauses
"""


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="tune-in",
        description="Keep your music in sync with your coding assistant",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (can be repeated)",
    )
    parser.add_argument(
        "--log-file",
        help="Write logs to this file (default: $TUNEIN_LOG)",
    )

    subparsers = parser.add_subparsers(dest="command", metavar=_VISIBLE_COMMANDS)

    wrap_parser = subparsers.add_parser(
        "wrap",
        help="Run the assistant in a pty with music sync",
        description=f"Arguments are passed to the assistant. {NO_PAUSE_FLAG} keeps music playing.",
    )
    wrap_parser.set_defaults(passthrough=[])

    run_parser = subparsers.add_parser(
        "run",
        help="Play music while a shell command runs",
    )
    run_parser.set_defaults(passthrough=[])

    subparsers.add_parser("auth", help="Authenticate with the Spotify Web API (optional)")
    subparsers.add_parser("logout", help="Remove stored credentials")

    daemon_parser = subparsers.add_parser("daemon", help="Start (or stop) the background daemon")
    daemon_parser.add_argument("action", nargs="?", help="'stop' to stop a running daemon")

    signal_parser = subparsers.add_parser("signal", help="Tell the daemon to play or pause")
    signal_parser.add_argument("action", nargs="?", help="start or stop")

    subparsers.add_parser("status", help="Show daemon status")
    subparsers.add_parser("help", help="Show this help")

    # Called by injected hooks in Web API mode; not listed in help
    hook_parser = subparsers.add_parser("hook")
    hook_parser.add_argument("action", choices=["play", "pause"])

    return parser


def split_passthrough(args: Sequence[str]) -> tuple[list[str], list[str]]:
    """Split argv before argparse sees options meant for the wrapped program.

    Everything after ``wrap`` or ``run`` is returned untouched as the tail.
    """
    args = list(args)
    i = 0
    while i < len(args):
        arg = args[i]
        if arg == "--log-file":
            i += 2
            continue
        if arg.startswith("-"):
            i += 1
            continue
        if arg in PASSTHROUGH_COMMANDS:
            return args[: i + 1], args[i + 1 :]
        break
    return args, []


def _logging_config(config: Config, parsed: argparse.Namespace) -> LoggingConfig:
    overrides = {}
    if parsed.verbose:
        overrides["verbose"] = min(1 + parsed.verbose, 4)
    if parsed.log_file:
        overrides["file"] = parsed.log_file
    return dataclasses.replace(config.logging, **overrides)


def run_cli(args: Sequence[str]) -> int:
    """Run the CLI with the given arguments."""
    parser = create_parser()
    head, tail = split_passthrough(args)
    parsed = parser.parse_args(head)
    if parsed.command in PASSTHROUGH_COMMANDS:
        parsed.passthrough = tail

    if parsed.command in (None, "help"):
        parser.print_help()
        return 0

    from tunein.config import load_config

    config = load_config(project_root=os.getcwd())
    # The assistant owns the terminal in wrap mode
    setup_logging(_logging_config(config, parsed), console=parsed.command != "wrap")

    try:
        return _dispatch(parsed, config)
    except KeyboardInterrupt:
        return 130
    except TuneInError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1


def _dispatch(parsed: argparse.Namespace, config: Config) -> int:
    command = parsed.command
    if command == "wrap":
        return cmd_wrap(config, parsed.passthrough)
    if command == "run":
        return cmd_run(config, parsed.passthrough)
    if command == "auth":
        return asyncio.run(cmd_auth(config))
    if command == "logout":
        return cmd_logout()
    if command == "daemon":
        return cmd_daemon(config, parsed.action)
    if command == "signal":
        return cmd_signal(parsed.action)
    if command == "status":
        return cmd_status()
    if command == "hook":
        return asyncio.run(cmd_hook(config, parsed.action))
    console.print(f"[red]Unknown command: {escape(command)}[/red]")
    return 1


def cmd_wrap(config: Config, args: list[str]) -> int:
    from tunein.wrapper import AssistantWrapper

    no_pause = NO_PAUSE_FLAG in args or config.wrap.no_pause
    assistant_args = [a for a in args if a != NO_PAUSE_FLAG]
    return asyncio.run(AssistantWrapper(config).run(assistant_args, no_pause=no_pause))


def cmd_run(config: Config, args: list[str]) -> int:
    from tunein.runner import run_command

    if not args:
        console.print(f"[red]Usage: tune-in run <command> {escape('[args...]')}[/red]")
        return 1
    return asyncio.run(run_command(config, args))


async def cmd_auth(config: Config) -> int:
    from tunein.auth import build_auth
    from tunein.auth.callback import run_auth_flow

    auth = build_auth(config)
    try:
        await run_auth_flow(
            auth,
            port=config.auth.redirect_port,
            timeout=config.auth.timeout,
            announce=lambda url: console.print(
                f"Opening browser for Spotify login. If it does not open, visit:\n{url}"
            ),
        )
    except AuthError as e:
        console.print(f"[red]Authentication failed: {escape(str(e))}[/red]")
        return 1

    console.print("[green]Successfully authenticated with Spotify![/green]")
    console.print("You can now run commands with: [cyan]tune-in run <command>[/cyan]")
    return 0


def cmd_logout() -> int:
    from tunein.auth import TokenStore
    from tunein.config import get_credentials_path

    TokenStore(get_credentials_path()).clear()
    console.print("[green]Logged out successfully[/green]")
    return 0


def cmd_daemon(config: Config, action: str | None) -> int:
    from tunein.daemon import run_daemon, stop_daemon

    if action is None:
        return asyncio.run(run_daemon(config, console=console))
    if action != "stop":
        console.print(f"[red]Usage: tune-in daemon {escape('[stop]')}[/red]")
        return 1

    result = stop_daemon()
    if result == "stopped":
        console.print("[green]Daemon stopped[/green]")
    elif result == "stale":
        console.print("Daemon not running (removing stale PID file)")
    else:
        console.print("Daemon is not running")
    return 0


def cmd_signal(action: str | None) -> int:
    from tunein.daemon import send_daemon_command

    if action is None:
        console.print("[red]Usage: tune-in signal <start|stop>[/red]")
        return 1
    if action not in ("start", "stop"):
        console.print('[red]Signal must be "start" or "stop"[/red]')
        return 1
    try:
        asyncio.run(send_daemon_command(action))
    except DaemonError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        return 1
    return 0


def cmd_status() -> int:
    from tunein.daemon import DaemonState, send_daemon_command

    try:
        reply = asyncio.run(send_daemon_command("status"))
    except DaemonError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        return 1

    try:
        state = DaemonState.model_validate_json(reply)
    except ValidationError:
        console.print(f"[red]Unexpected reply from daemon: {escape(reply)}[/red]")
        return 1

    mode = "Native (Spotify Desktop)" if state.mode == "native" else "Web API"
    updated = datetime.fromtimestamp(state.last_update / 1000).strftime("%Y-%m-%d %H:%M:%S")
    console.print("[bold]Daemon Status:[/bold]")
    console.print(f"  Playing: {'[green]Yes[/green]' if state.playing else '[dim]No[/dim]'}")
    console.print(f"  Mode: [cyan]{mode}[/cyan]")
    console.print(f"  Last update: {updated}")
    return 0


async def cmd_hook(config: Config, action: str) -> int:
    """Play or pause through the Web API on behalf of an assistant hook."""
    from tunein.auth import build_auth
    from tunein.playback import RemotePlayback

    backend = RemotePlayback(build_auth(config))
    try:
        ok = await (backend.play() if action == "play" else backend.pause())
    except TuneInError as e:
        log.warning("Hook %s failed: %s", action, e)
        return 1
    return 0 if ok else 1
