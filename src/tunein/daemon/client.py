"""Talking to a running daemon from another process."""

from __future__ import annotations

import asyncio
import os
import signal
from pathlib import Path
from typing import Literal

from tunein.config import get_daemon_paths
from tunein.daemon.state import read_pid, running_pid
from tunein.errors import DaemonUnreachable
from tunein.logging import get_logger

log = get_logger("daemon")

DaemonCommand = Literal["start", "stop", "status"]
StopResult = Literal["stopped", "not_running", "stale"]


async def send_daemon_command(
    command: str, socket_path: Path | None = None, timeout: float = 5.0
) -> str:
    """Send one command line and return the daemon's reply, stripped.

    Raises:
        DaemonUnreachable: Nothing is listening on the socket.
    """
    if socket_path is None:
        socket_path = get_daemon_paths()[2]
    try:
        reader, writer = await asyncio.wait_for(
            asyncio.open_unix_connection(str(socket_path)), timeout
        )
    except (OSError, asyncio.TimeoutError) as e:
        log.debug("Cannot reach daemon at %s: %s", socket_path, e)
        raise DaemonUnreachable() from e

    try:
        writer.write(f"{command}\n".encode())
        await writer.drain()
        reply = await asyncio.wait_for(reader.read(), timeout)
    except (OSError, asyncio.TimeoutError) as e:
        raise DaemonUnreachable() from e
    finally:
        writer.close()
    return reply.decode("utf-8", errors="replace").strip()


def is_daemon_running(pid_path: Path | None = None) -> bool:
    if pid_path is None:
        pid_path = get_daemon_paths()[0]
    return running_pid(pid_path) is not None


def stop_daemon(pid_path: Path | None = None) -> StopResult:
    """SIGTERM the daemon named in the pid file."""
    if pid_path is None:
        pid_path = get_daemon_paths()[0]
    pid = read_pid(pid_path)
    if pid is None:
        return "not_running"
    try:
        os.kill(pid, signal.SIGTERM)
    except ProcessLookupError:
        pid_path.unlink(missing_ok=True)
        return "stale"
    return "stopped"
