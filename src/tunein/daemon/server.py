"""Background daemon that plays and pauses on request over a unix socket.

Externally configured hooks call ``tune-in signal start|stop``, which
connects to the socket and sends one line. The daemon holds the only
playback backend, so every hook goes through the same idempotent state.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import signal
from pathlib import Path

from rich.console import Console

from tunein.daemon.state import DaemonState, running_pid
from tunein.errors import DaemonAlreadyRunning
from tunein.logging import get_logger
from tunein.playback import PlaybackBackend

log = get_logger("daemon")

SAVE_INTERVAL = 5.0

REPLY_OK = "OK"
REPLY_UNKNOWN = "ERR unknown command"


class TuneInDaemon:
    """Singleton play/pause service for one host.

    Lifecycle: ``start()`` claims the pid file and opens the socket,
    ``serve_forever()`` blocks until ``request_stop()`` (or SIGINT/SIGTERM),
    then ``shutdown()`` pauses the music and removes every runtime file.
    """

    def __init__(
        self,
        backend: PlaybackBackend,
        pid_path: Path,
        state_path: Path,
        socket_path: Path,
        save_interval: float = SAVE_INTERVAL,
        console: Console | None = None,
    ) -> None:
        self._backend = backend
        self._pid_path = pid_path
        self._state_path = state_path
        self._socket_path = socket_path
        self._save_interval = save_interval
        self._console = console or Console(stderr=True)

        mode = "remote" if backend.mode == "remote" else "native"
        self.state = DaemonState(mode=mode)

        self._server: asyncio.AbstractServer | None = None
        self._save_task: asyncio.Task[None] | None = None
        self._stop = asyncio.Event()
        self._lock = asyncio.Lock()
        self._shut_down = False

    @property
    def socket_path(self) -> Path:
        return self._socket_path

    async def start(self) -> None:
        """Claim the pid file and start listening.

        Raises:
            DaemonAlreadyRunning: A live process owns the pid file.
        """
        existing = running_pid(self._pid_path)
        if existing is not None:
            raise DaemonAlreadyRunning(existing)

        self._pid_path.parent.mkdir(parents=True, exist_ok=True)
        self._pid_path.write_text(str(os.getpid()), encoding="utf-8")

        with contextlib.suppress(FileNotFoundError):
            self._socket_path.unlink()
        self._server = await asyncio.start_unix_server(
            self._handle_client, path=str(self._socket_path)
        )
        self._save_task = asyncio.create_task(self._save_loop())
        log.info("Daemon listening on %s (pid %d)", self._socket_path, os.getpid())

    async def serve_forever(self, install_signals: bool = True) -> None:
        """Run until asked to stop, then shut down."""
        loop = asyncio.get_running_loop()
        if install_signals:
            for signum in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(signum, self.request_stop)
        try:
            await self._stop.wait()
        finally:
            if install_signals:
                for signum in (signal.SIGINT, signal.SIGTERM):
                    loop.remove_signal_handler(signum)
            await self.shutdown()

    def request_stop(self) -> None:
        self._stop.set()

    async def handle_command(self, command: str) -> str:
        """Apply one socket command and return the reply line."""
        command = command.strip()
        if command == "start":
            await self.handle_start()
            return REPLY_OK
        if command == "stop":
            await self.handle_stop()
            return REPLY_OK
        if command == "status":
            return self.state.to_json()
        log.warning("Unknown daemon command: %r", command)
        return REPLY_UNKNOWN

    async def handle_start(self) -> None:
        async with self._lock:
            if self.state.playing:
                return
            try:
                ok = await self._backend.play()
            except Exception as e:
                log.error("Failed to start music: %s", e)
                return
            if ok:
                self.state.touch(True)
                log.info("Music started")

    async def handle_stop(self) -> None:
        async with self._lock:
            if not self.state.playing:
                return
            try:
                await self._backend.pause()
            except Exception as e:
                log.error("Failed to pause music: %s", e)
                return
            self.state.touch(False)
            log.info("Music paused")

    def save_state(self) -> None:
        try:
            self._state_path.write_text(self.state.to_json(indent=2), encoding="utf-8")
        except OSError as e:
            log.warning("Could not save daemon state: %s", e)

    async def shutdown(self) -> None:
        if self._shut_down:
            return
        self._shut_down = True
        self._console.print("[dim]Shutting down daemon...[/dim]")

        if self._save_task is not None:
            self._save_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._save_task

        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()

        await self.handle_stop()

        for path in (self._pid_path, self._socket_path, self._state_path):
            with contextlib.suppress(FileNotFoundError):
                path.unlink()
        log.info("Daemon stopped")

    async def _handle_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        try:
            line = await reader.readline()
            reply = await self.handle_command(line.decode("utf-8", errors="replace"))
            writer.write(f"{reply}\n".encode())
            await writer.drain()
        except (ConnectionError, asyncio.IncompleteReadError) as e:
            log.debug("Client went away: %s", e)
        finally:
            writer.close()
            with contextlib.suppress(ConnectionError):
                await writer.wait_closed()

    async def _save_loop(self) -> None:
        while True:
            await asyncio.sleep(self._save_interval)
            self.save_state()
