"""Helpers for the controlling terminal: size, raw mode, signal delivery."""

from __future__ import annotations

import asyncio
import contextlib
import os
import select
import signal
import termios
import tty
from collections.abc import Callable, Iterator
from dataclasses import dataclass

from tunein.logging import get_logger

log = get_logger("terminal")

DEFAULT_COLS = 80
DEFAULT_ROWS = 24


@dataclass(frozen=True)
class TerminalSize:
    cols: int = DEFAULT_COLS
    rows: int = DEFAULT_ROWS


def get_terminal_size(fd: int) -> TerminalSize:
    """Size of the terminal on ``fd``, falling back to 80x24."""
    try:
        size = os.get_terminal_size(fd)
    except OSError:
        return TerminalSize()
    return TerminalSize(cols=size.columns or DEFAULT_COLS, rows=size.lines or DEFAULT_ROWS)


@contextlib.contextmanager
def raw_terminal(fd: int) -> Iterator[bool]:
    """Put ``fd`` in raw mode for the duration of the block.

    Yields True if the mode was changed, False when ``fd`` is not a TTY.
    The previous attributes are restored on exit.
    """
    if not os.isatty(fd):
        yield False
        return

    saved = termios.tcgetattr(fd)
    tty.setraw(fd)
    log.debug("terminal fd %d in raw mode", fd)
    try:
        yield True
    finally:
        try:
            termios.tcsetattr(fd, termios.TCSADRAIN, saved)
        except termios.error as e:
            log.warning("Could not restore terminal mode: %s", e)


def write_all(fd: int, data: bytes) -> None:
    """Write every byte of ``data`` to ``fd``, waiting if it is non-blocking."""
    view = memoryview(data)
    while view:
        try:
            written = os.write(fd, view)
        except BlockingIOError:
            select.select([], [fd], [])
            continue
        view = view[written:]


InstallSignals = Callable[
    [asyncio.AbstractEventLoop, Callable[[int], None], Callable[[], None]],
    Callable[[], None],
]


def install_signal_handlers(
    loop: asyncio.AbstractEventLoop,
    on_interrupt: Callable[[int], None],
    on_resize: Callable[[], None],
) -> Callable[[], None]:
    """Route OS signals into the session's callbacks.

    SIGINT and SIGTERM call ``on_interrupt(signum)``; SIGWINCH calls
    ``on_resize()``. Returns a function that removes the handlers.
    """
    installed: list[int] = []

    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, on_interrupt, signum)
        installed.append(signum)

    loop.add_signal_handler(signal.SIGWINCH, on_resize)
    installed.append(signal.SIGWINCH)

    def uninstall() -> None:
        for signum in installed:
            loop.remove_signal_handler(signum)

    return uninstall
