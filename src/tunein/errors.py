"""Exception types raised across tune-in.

Startup failures (spawn, settings I/O) are fatal. Anything raised by a
playback backend during a wrapped session is caught and logged by the
caller so music problems never take the assistant down with them.
"""

from __future__ import annotations


class TuneInError(Exception):
    """Base class for all tune-in errors."""


class SpawnError(TuneInError):
    """The wrapped process could not be started."""

    def __init__(self, command: str, message: str) -> None:
        super().__init__(message)
        self.command = command


class SpawnNotFound(SpawnError):
    """The target executable is not on PATH."""

    def __init__(self, command: str) -> None:
        super().__init__(command, f"{command} command not found")


class SpawnFailed(SpawnError):
    """Any spawn failure other than a missing executable."""

    def __init__(self, command: str, reason: str) -> None:
        super().__init__(command, f"failed to start {command}: {reason}")
        self.reason = reason


class PlaybackError(TuneInError):
    """A playback command failed."""


class ConfigIOError(TuneInError):
    """Reading or writing the assistant's settings file failed."""


class AuthError(TuneInError):
    """Delegated authorization problem."""


class AuthMissing(AuthError):
    """No stored credentials."""

    def __init__(self) -> None:
        super().__init__("Not authenticated. Please run: tune-in auth")


class AuthExpired(AuthError):
    """The refresh token was rejected."""

    def __init__(self, detail: str = "") -> None:
        message = "Spotify session expired. Please run: tune-in auth"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class DaemonError(TuneInError):
    """Daemon mode failure."""


class DaemonUnreachable(DaemonError):
    """Nothing is listening on the daemon socket."""

    def __init__(self) -> None:
        super().__init__("Daemon not running. Start it with: tune-in daemon")


class DaemonAlreadyRunning(DaemonError):
    """Another daemon owns the pid file."""

    def __init__(self, pid: int) -> None:
        super().__init__(f"Daemon already running with PID: {pid}")
        self.pid = pid
