"""Terminal plumbing: the pty-attached child and the plain command runner."""

from tunein.terminal.console import (
    TerminalSize,
    get_terminal_size,
    install_signal_handlers,
    raw_terminal,
    write_all,
)
from tunein.terminal.protocol import ChildSession
from tunein.terminal.pty_session import PtySession
from tunein.terminal.result import RunResult
from tunein.terminal.runner import CommandRunner

__all__ = [
    "ChildSession",
    "CommandRunner",
    "PtySession",
    "RunResult",
    "TerminalSize",
    "get_terminal_size",
    "install_signal_handlers",
    "raw_terminal",
    "write_all",
]
