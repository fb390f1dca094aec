"""Wrap mode: run the assistant in a pty and keep the music in step with it.

Startup order matters. Signal handlers go in before anything touches the
player. The child is spawned before the hooks are injected because the
guarded hook commands need the child's pid. Every exit path, including an
interrupt halfway through startup, goes through a single cleanup that runs
exactly once.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import signal
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.markup import escape

from tunein.activity import ActivityEngine
from tunein.errors import ConfigIOError, SpawnFailed, SpawnNotFound
from tunein.hooks import HookInjector, HookSnapshot, SessionFile
from tunein.logging import get_logger
from tunein.playback import PlaybackBackend, select_backend
from tunein.terminal import (
    ChildSession,
    PtySession,
    get_terminal_size,
    install_signal_handlers,
    raw_terminal,
    write_all,
)
from tunein.terminal.console import InstallSignals

if TYPE_CHECKING:
    from tunein.auth import SpotifyAuth
    from tunein.config import Config

log = get_logger("wrapper")

EXIT_INTERRUPTED = 130
STDIN_READ_SIZE = 4096

SpawnFn = Callable[..., Awaitable[ChildSession]]


class AssistantWrapper:
    """One wrapped assistant session.

    Every collaborator with a side effect outside the process (the player,
    the child, the settings file, signal delivery) can be swapped, so the
    whole lifecycle can be driven without a real terminal.
    """

    def __init__(
        self,
        config: Config,
        *,
        auth: SpotifyAuth | None = None,
        backend: PlaybackBackend | None = None,
        available: bool | None = None,
        spawn: SpawnFn = PtySession.spawn,
        install_signals: InstallSignals = install_signal_handlers,
        session_file: SessionFile | None = None,
        settings_path: Path | None = None,
        lock_path: Path | None = None,
        stdin_fd: int | None = None,
        stdout_fd: int | None = None,
        console: Console | None = None,
    ) -> None:
        from tunein.config import (
            get_assistant_settings_path,
            get_session_id_path,
            get_settings_lock_path,
        )

        self._config = config
        self._auth = auth
        self._backend = backend
        self._available = available
        self._spawn = spawn
        self._install_signals = install_signals
        self._session_file = session_file or SessionFile(get_session_id_path())
        configured = config.assistant.settings_path
        self._settings_path = settings_path or (
            Path(configured).expanduser() if configured else get_assistant_settings_path()
        )
        self._lock_path = lock_path or get_settings_lock_path()
        self._stdin_fd = sys.stdin.fileno() if stdin_fd is None else stdin_fd
        self._stdout_fd = sys.stdout.fileno() if stdout_fd is None else stdout_fd
        self._console = console or Console(stderr=True)

        self._session: ChildSession | None = None
        self._engine: ActivityEngine | None = None
        self._injector: HookInjector | None = None
        self._snapshot: HookSnapshot | None = None
        self._terminal = contextlib.ExitStack()
        self._tasks: set[asyncio.Task[Any]] = set()
        self._done: asyncio.Future[int] | None = None
        self._cleaned_up = False
        self._cleanup_count = 0

    @property
    def cleanup_count(self) -> int:
        """How many times cleanup actually ran (0 or 1)."""
        return self._cleanup_count

    @property
    def engine(self) -> ActivityEngine | None:
        return self._engine

    @property
    def session(self) -> ChildSession | None:
        return self._session

    async def run(self, args: list[str], no_pause: bool = False) -> int:
        """Run the assistant with ``args`` until it exits or is interrupted.

        Returns the process exit code: the child's own code, 130 on
        interrupt, or 1 when startup fails. Signal handlers are in place
        before the first playback command, so an interrupt at any point
        still ends in cleanup and a final pause.
        """
        loop = asyncio.get_running_loop()
        self._done = loop.create_future()
        uninstall = self._install_signals(loop, self._on_interrupt, self._on_resize)
        self._terminal.callback(uninstall)

        startup = loop.create_task(self._start(args, no_pause))
        try:
            await asyncio.wait({startup, self._done}, return_when=asyncio.FIRST_COMPLETED)
            if startup.done():
                failed = startup.result()
                if failed is not None:
                    return failed
            else:
                log.info("Interrupted during startup")
                await self._abort_startup(startup)
            return await self._done
        finally:
            await self._abort_startup(startup)
            await self._cleanup()

    async def _abort_startup(self, startup: asyncio.Task[int | None]) -> None:
        if startup.done():
            return
        startup.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await startup
        if self._session is not None:
            self._session.kill(signal.SIGINT)

    async def _start(self, args: list[str], no_pause: bool) -> int | None:
        """Bring the session up. Returns an exit code if startup failed."""
        await self._prepare_backend()
        self._print_banner(no_pause)

        activity = self._config.activity
        self._engine = ActivityEngine(
            lambda: self._dispatch("play"),
            lambda: self._dispatch("pause"),
            no_pause=no_pause,
            threshold=activity.play_threshold,
            idle_timeout=activity.idle_timeout_ms / 1000,
        )
        self._engine.start()
        await self._show_track()

        command = self._config.assistant.command
        try:
            self._session = await self._spawn(
                command,
                args,
                size=get_terminal_size(self._stdout_fd),
                cwd=os.getcwd(),
                on_output=self._on_output,
                on_exit=self._on_exit,
            )
        except SpawnNotFound as e:
            self._console.print(f"[red]Error: {escape(str(e))}.[/red]")
            self._console.print(f"[dim]{escape(self._config.assistant.install_hint)}[/dim]")
            return 1
        except SpawnFailed as e:
            self._console.print(f"[red]Error: {escape(str(e))}[/red]")
            return 1

        try:
            self._session_file.write(self._session.pid)
            self._injector = self._make_injector(no_pause)
            self._snapshot = self._injector.install(self._session.pid)
        except (ConfigIOError, OSError) as e:
            self._console.print(f"[red]Error: could not install hooks: {escape(str(e))}[/red]")
            self._session.kill()
            return 1

        self._attach_terminal(asyncio.get_running_loop())
        return None

    async def _prepare_backend(self) -> None:
        if self._backend is None:
            from tunein.auth import build_auth

            auth = self._auth or build_auth(self._config)
            self._backend, self._available = await select_backend(
                self._config,
                auth,
                launch=True,
                on_launch=lambda: self._console.print(
                    "[yellow]Spotify not running, attempting to open...[/yellow]"
                ),
            )
        elif self._available is None:
            self._available = await self._backend.probe()

        if not self._available:
            self._console.print("[yellow]Could not reach Spotify, music control disabled[/yellow]")
        else:
            log.info("Using %s playback", self._backend.mode)

    def _print_banner(self, no_pause: bool) -> None:
        if no_pause:
            self._console.print("[green]Continuous vibe mode enabled![/green]")
            self._console.print("[dim]   Music plays non-stop until you exit[/dim]")
        else:
            self._console.print("[green]Vibe-coding mode enabled![/green]")
            self._console.print("[dim]   Music plays while the assistant is working[/dim]")
            self._console.print("[dim]   Music pauses when it needs your input[/dim]")

    async def _show_track(self) -> None:
        if not self._available or self._backend is None:
            return
        # Let the launch play land before asking what is loaded
        await self._drain_playback()
        try:
            track = await self._backend.current_track()
        except Exception as e:
            log.warning("Could not read current track: %s", e)
            return
        if track is None:
            self._console.print(
                "[yellow]Spotify is open but no track is loaded, open a playlist first[/yellow]"
            )
            return
        self._console.print(
            f"[green]Now playing: [bold]{escape(track.name)}[/bold][/green]"
            f"[dim] by {escape(track.artist)}[/dim]"
        )

    def _make_injector(self, no_pause: bool) -> HookInjector:
        assert self._backend is not None
        return HookInjector(
            settings_path=self._settings_path,
            session_file=self._session_file.path,
            lock_path=self._lock_path,
            play_command=self._backend.hook_command("play"),
            pause_command=self._backend.hook_command("pause"),
            no_pause=no_pause,
        )

    def _attach_terminal(self, loop: asyncio.AbstractEventLoop) -> None:
        self._terminal.enter_context(raw_terminal(self._stdin_fd))

        loop.add_reader(self._stdin_fd, self._on_stdin)
        self._terminal.callback(self._remove_stdin_reader, loop)

    def _remove_stdin_reader(self, loop: asyncio.AbstractEventLoop) -> None:
        with contextlib.suppress(ValueError, OSError):
            loop.remove_reader(self._stdin_fd)

    def _on_stdin(self) -> None:
        try:
            data = os.read(self._stdin_fd, STDIN_READ_SIZE)
        except BlockingIOError:
            return
        except OSError as e:
            log.debug("stdin read failed: %s", e)
            data = b""
        if not data:
            self._remove_stdin_reader(asyncio.get_running_loop())
            return
        self.feed_input(data)

    def feed_input(self, data: bytes) -> None:
        """Forward user input to the child, then let the engine see it."""
        if self._session is not None:
            self._session.write(data)
        if self._engine is not None:
            self._engine.feed(data)

    def _on_output(self, data: bytes) -> None:
        write_all(self._stdout_fd, data)

    def _on_exit(self, code: int | None) -> None:
        self._finish(code if code is not None else 0)

    def _on_interrupt(self, signum: int) -> None:
        log.info("Interrupted by %s", signal.Signals(signum).name)
        if self._engine is not None:
            self._engine.close()
        if self._session is not None:
            self._session.kill(signal.SIGINT)
        self._finish(EXIT_INTERRUPTED)

    def _on_resize(self) -> None:
        if self._session is None:
            return
        size = get_terminal_size(self._stdout_fd)
        self._session.resize(size.cols, size.rows)

    def _finish(self, code: int) -> None:
        if self._done is not None and not self._done.done():
            self._done.set_result(code)

    def _dispatch(self, action: str) -> None:
        """Send a play/pause to the backend without blocking input handling."""
        if not self._available or self._backend is None:
            return
        call = self._backend.play if action == "play" else self._backend.pause
        task = asyncio.get_running_loop().create_task(call())
        self._tasks.add(task)
        task.add_done_callback(self._playback_done)

    def _playback_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.warning("Playback command failed: %s", exc)

    async def _drain_playback(self) -> None:
        # wait() leaves the tasks running if the caller is cancelled
        if self._tasks:
            await asyncio.wait(set(self._tasks))

    async def _cleanup(self) -> None:
        if self._cleaned_up:
            return
        self._cleaned_up = True
        self._cleanup_count += 1

        if self._engine is not None:
            self._engine.close()
        self._session_file.clear()
        if self._injector is not None and self._snapshot is not None:
            try:
                self._injector.restore(self._snapshot)
            except ConfigIOError as e:
                log.error("Failed to restore hooks: %s", e)
        self._terminal.close()

        await self._drain_playback()
        if self._available and self._backend is not None:
            try:
                await self._backend.pause()
            except Exception as e:
                log.warning("Final pause failed: %s", e)
