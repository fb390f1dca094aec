"""The file that scopes injected hooks to one wrapped session."""

from __future__ import annotations

import shlex
from pathlib import Path

from tunein.logging import get_logger

log = get_logger("hooks")


class SessionFile:
    """Holds the decimal pid of the child this session spawned.

    Guarded hook commands compare it with their own $PPID at fire time.
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def write(self, pid: int) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(str(pid), encoding="utf-8")

    def read(self) -> int | None:
        try:
            return int(self._path.read_text(encoding="utf-8").strip())
        except (OSError, ValueError):
            return None

    def clear(self) -> None:
        try:
            self._path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            log.warning("Could not remove %s: %s", self._path, e)


def guard_command(command: str, session_file: Path) -> str:
    """Prefix ``command`` so it only runs for the session recorded in ``session_file``.

    The assistant runs hook commands through a shell, so $PPID there is the
    assistant's pid. Another assistant instance on the same host has a
    different pid and its hooks fall through silently.
    """
    quoted = shlex.quote(str(session_file))
    return f'[ "$(cat {quoted} 2>/dev/null)" = "$PPID" ] && {command}'
