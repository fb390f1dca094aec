"""Protocol for a running child attached to a terminal."""

from __future__ import annotations

import signal
from collections.abc import Callable
from typing import Protocol

OutputCallback = Callable[[bytes], None]
ExitCallback = Callable[["int | None"], None]


class ChildSession(Protocol):
    """A spawned interactive process.

    Implementations:
    - PtySession: child attached to a pseudo-terminal
    """

    @property
    def pid(self) -> int: ...

    @property
    def exit_code(self) -> int | None: ...

    def write(self, data: bytes) -> None:
        """Send bytes to the child as if typed."""
        ...

    def resize(self, cols: int, rows: int) -> None:
        """Propagate a terminal size change."""
        ...

    def kill(self, sig: int = signal.SIGTERM) -> None:
        """Signal the child."""
        ...

    async def wait(self) -> int | None:
        """Wait for exit; None means killed by a signal."""
        ...
