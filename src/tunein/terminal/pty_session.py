"""Child process attached to a pseudo-terminal.

The child sees a real interactive terminal (so full-screen UIs work) while
the parent owns the master side and relays bytes both ways without looking
at them.
"""

from __future__ import annotations

import asyncio
import fcntl
import os
import shutil
import signal
import struct
import termios

from tunein.errors import SpawnFailed, SpawnNotFound
from tunein.logging import get_logger
from tunein.terminal.console import TerminalSize
from tunein.terminal.protocol import ExitCallback, OutputCallback

log = get_logger("pty")

READ_SIZE = 65536


def _set_winsize(fd: int, size: TerminalSize) -> None:
    fcntl.ioctl(fd, termios.TIOCSWINSZ, struct.pack("HHHH", size.rows, size.cols, 0, 0))


def _claim_controlling_tty() -> None:
    # Runs in the child after setsid() and the stdio dup2s.
    try:
        fcntl.ioctl(0, termios.TIOCSCTTY, 0)
    except OSError:
        pass


class PtySession:
    """A spawned process running inside a pty.

    Use ``await PtySession.spawn(...)``. Output is delivered to
    ``on_output`` as soon as it is read. ``on_exit`` fires exactly once
    after the child is reaped and its remaining output is drained.
    """

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        master_fd: int,
        command: str,
        on_output: OutputCallback | None = None,
        on_exit: ExitCallback | None = None,
    ) -> None:
        self._process = process
        self._master_fd: int | None = master_fd
        self._command = command
        self._on_output = on_output
        self._on_exit = on_exit
        self._exit_code: int | None = None
        self._pending = bytearray()
        self._loop = asyncio.get_running_loop()
        self._reading = True
        self._loop.add_reader(master_fd, self._on_readable)
        self._exit_task = self._loop.create_task(self._watch())

    @classmethod
    async def spawn(
        cls,
        command: str,
        args: list[str] | None = None,
        *,
        env: dict[str, str] | None = None,
        size: TerminalSize | None = None,
        cwd: str | None = None,
        on_output: OutputCallback | None = None,
        on_exit: ExitCallback | None = None,
    ) -> PtySession:
        """Start ``command`` in a new pty.

        Raises:
            SpawnNotFound: The executable is not on the child's PATH.
            SpawnFailed: Any other OS-level spawn error.
        """
        process_env = dict(os.environ if env is None else env)
        process_env.setdefault("TERM", "xterm-256color")

        executable = shutil.which(command, path=process_env.get("PATH"))
        if executable is None:
            raise SpawnNotFound(command)

        master_fd, slave_fd = os.openpty()
        try:
            _set_winsize(master_fd, size or TerminalSize())
            process = await asyncio.create_subprocess_exec(
                executable,
                *(args or []),
                stdin=slave_fd,
                stdout=slave_fd,
                stderr=slave_fd,
                cwd=cwd,
                env=process_env,
                start_new_session=True,
                preexec_fn=_claim_controlling_tty,
            )
        except FileNotFoundError:
            os.close(master_fd)
            raise SpawnNotFound(command) from None
        except OSError as e:
            os.close(master_fd)
            raise SpawnFailed(command, e.strerror or str(e)) from e
        finally:
            os.close(slave_fd)

        os.set_blocking(master_fd, False)
        log.info("Spawned %s (pid %d)", command, process.pid)
        return cls(process, master_fd, command, on_output=on_output, on_exit=on_exit)

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def command(self) -> str:
        return self._command

    @property
    def exit_code(self) -> int | None:
        return self._exit_code

    @property
    def running(self) -> bool:
        return self._process.returncode is None

    def write(self, data: bytes) -> None:
        """Inject bytes into the child's input."""
        if self._master_fd is None:
            log.debug("write after exit dropped (%d bytes)", len(data))
            return
        if self._pending:
            self._pending.extend(data)
            return
        try:
            written = os.write(self._master_fd, data)
        except BlockingIOError:
            written = 0
        except OSError as e:
            log.debug("write to pty failed: %s", e)
            return
        if written < len(data):
            self._pending.extend(data[written:])
            self._loop.add_writer(self._master_fd, self._flush_pending)

    def resize(self, cols: int, rows: int) -> None:
        if self._master_fd is None:
            return
        try:
            _set_winsize(self._master_fd, TerminalSize(cols=cols, rows=rows))
        except OSError as e:
            log.debug("resize failed: %s", e)

    def kill(self, sig: int = signal.SIGTERM) -> None:
        if self._process.returncode is not None:
            return
        try:
            self._process.send_signal(sig)
        except ProcessLookupError:
            pass

    async def wait(self) -> int | None:
        await asyncio.shield(self._exit_task)
        return self._exit_code

    def _on_readable(self) -> None:
        if self._master_fd is None:
            return
        try:
            data = os.read(self._master_fd, READ_SIZE)
        except BlockingIOError:
            return
        except OSError:
            # EIO: every slave descriptor is closed
            self._stop_reading()
            return
        if not data:
            self._stop_reading()
            return
        self._emit(data)

    def _flush_pending(self) -> None:
        if self._master_fd is None:
            return
        try:
            written = os.write(self._master_fd, self._pending)
        except BlockingIOError:
            return
        except OSError as e:
            log.debug("write to pty failed: %s", e)
            written = len(self._pending)
        del self._pending[:written]
        if not self._pending:
            self._loop.remove_writer(self._master_fd)

    def _emit(self, data: bytes) -> None:
        if self._on_output is None:
            return
        try:
            self._on_output(data)
        except Exception:
            log.exception("Output handler failed")

    def _drain(self) -> None:
        while self._master_fd is not None:
            try:
                data = os.read(self._master_fd, READ_SIZE)
            except OSError:
                return
            if not data:
                return
            self._emit(data)

    def _stop_reading(self) -> None:
        if self._reading and self._master_fd is not None:
            self._loop.remove_reader(self._master_fd)
            self._reading = False

    def _close_master(self) -> None:
        if self._master_fd is None:
            return
        self._stop_reading()
        if self._pending:
            self._loop.remove_writer(self._master_fd)
            self._pending.clear()
        os.close(self._master_fd)
        self._master_fd = None

    async def _watch(self) -> None:
        returncode = await self._process.wait()
        self._drain()
        self._close_master()
        self._exit_code = returncode if returncode >= 0 else None
        log.info("%s exited (code=%s)", self._command, self._exit_code)
        if self._on_exit is not None:
            try:
                self._on_exit(self._exit_code)
            except Exception:
                log.exception("Exit handler failed")
