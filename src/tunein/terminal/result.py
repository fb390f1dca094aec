"""Result of a `tune-in run` command."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class RunResult:
    """Result of a command run with music.

    Attributes:
        command: The command line that was executed.
        exit_code: Process exit code, or 128+N when killed by signal N.
        status: "ok", "error", "interrupted" or "not_found".
        signal: Signal name if the process died from a signal.
        duration_ms: Wall-clock duration in milliseconds.
    """

    command: str
    exit_code: int
    status: str
    signal: str | None
    duration_ms: float

    @property
    def success(self) -> bool:
        """True if command completed with exit code 0."""
        return self.exit_code == 0

    def __repr__(self) -> str:
        if self.success:
            return f"<RunResult ok, {self.duration_ms:.0f}ms>"
        return f"<RunResult {self.status}, exit={self.exit_code}>"
