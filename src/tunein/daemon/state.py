"""Daemon state and its pid file."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from tunein.auth.store import now_millis
from tunein.logging import get_logger

log = get_logger("daemon")


class DaemonState(BaseModel):
    """What the daemon last told the player, as reported by ``status``."""

    model_config = ConfigDict(populate_by_name=True)

    playing: bool = False
    mode: Literal["native", "remote"] = "native"
    last_update: int = Field(default_factory=now_millis, alias="lastUpdate")

    def touch(self, playing: bool) -> None:
        self.playing = playing
        self.last_update = now_millis()

    def to_json(self, indent: int | None = None) -> str:
        return self.model_dump_json(by_alias=True, indent=indent)


def read_pid(path: Path) -> int | None:
    try:
        return int(path.read_text(encoding="utf-8").strip())
    except (OSError, ValueError):
        return None


def pid_alive(pid: int) -> bool:
    """True if a process with ``pid`` exists (signal 0 probe)."""
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, owned by someone else
        return True
    return True


def running_pid(path: Path) -> int | None:
    """The live daemon's pid, or None. A stale pid file is removed."""
    pid = read_pid(path)
    if pid is None:
        return None
    if pid_alive(pid):
        return pid
    log.info("Removing stale pid file %s (pid %d)", path, pid)
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    return None
