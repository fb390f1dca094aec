"""Temporary hook injection into the assistant's settings file.

install() and restore() are an acquire/release pair around a shared file.
The snapshot is the file's exact bytes, so restoring puts back whatever was
there before, byte for byte. A concurrent writer during the session is not
detected; its changes are lost on restore.
"""

from __future__ import annotations

import contextlib
import json
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from filelock import FileLock, Timeout
from pydantic import ValidationError

from tunein.errors import ConfigIOError
from tunein.hooks.schema import (
    NOTIFICATION,
    PRE_TOOL_USE,
    STOP,
    AssistantSettings,
    HookGroup,
    injected_group,
)
from tunein.hooks.session_file import guard_command
from tunein.logging import get_logger

log = get_logger("hooks")


@dataclass(frozen=True)
class HookSnapshot:
    """Pre-injection state of the settings file.

    ``content`` is None when the file did not exist.
    """

    path: Path
    content: bytes | None


def parse_settings(raw: bytes | None, path: Path | None = None) -> AssistantSettings:
    """Parse settings bytes, treating missing or malformed input as empty."""
    if not raw or not raw.strip():
        return AssistantSettings()
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        log.warning("Ignoring malformed settings %s: %s", path, e)
        return AssistantSettings()
    if not isinstance(data, dict):
        log.warning("Ignoring settings %s: top level is not an object", path)
        return AssistantSettings()
    try:
        return AssistantSettings.model_validate(data)
    except ValidationError as e:
        log.warning("Ignoring settings %s with unexpected hooks layout: %s", path, e)
        return AssistantSettings()


class HookInjector:
    """Adds guarded play/pause hooks for one session and takes them away again."""

    def __init__(
        self,
        settings_path: Path,
        session_file: Path,
        lock_path: Path,
        play_command: str,
        pause_command: str,
        no_pause: bool = False,
        lock_timeout: float = 10.0,
    ) -> None:
        self._settings_path = settings_path
        self._session_file = session_file
        self._lock_path = lock_path
        self._play_command = play_command
        self._pause_command = pause_command
        self._no_pause = no_pause
        self._lock_timeout = lock_timeout

    @property
    def settings_path(self) -> Path:
        return self._settings_path

    def _lock(self) -> FileLock:
        self._lock_path.parent.mkdir(parents=True, exist_ok=True)
        return FileLock(self._lock_path, timeout=self._lock_timeout)

    def _read(self) -> bytes | None:
        try:
            return self._settings_path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise ConfigIOError(f"Cannot read {self._settings_path}: {e}") from e

    def build(self, original: AssistantSettings, session_id: int) -> AssistantSettings:
        """Return a copy of ``original`` with this session's groups appended."""
        updated = original.model_copy(deep=True)
        play = guard_command(self._play_command, self._session_file)
        updated.add_group(PRE_TOOL_USE, injected_group(play))
        if not self._no_pause:
            pause = guard_command(self._pause_command, self._session_file)
            updated.add_group(STOP, injected_group(pause))
            updated.add_group(NOTIFICATION, injected_group(pause))
        log.debug("Built hooks for session %d", session_id)
        return updated

    def install(self, session_id: int) -> HookSnapshot:
        """Inject hooks and return the snapshot needed to undo it.

        Raises:
            ConfigIOError: The settings file could not be read or written.
        """
        try:
            with self._lock():
                raw = self._read()
                snapshot = HookSnapshot(self._settings_path, raw)
                updated = self.build(parse_settings(raw, self._settings_path), session_id)
                self._write(json.dumps(updated.dump(), indent=2).encode("utf-8"))
        except Timeout as e:
            raise ConfigIOError(f"Timed out locking {self._lock_path}") from e

        log.info("Injected hooks into %s", self._settings_path)
        return snapshot

    def restore(self, snapshot: HookSnapshot) -> None:
        """Put the settings file back exactly as captured. Safe to repeat.

        Raises:
            ConfigIOError: The file could not be written or removed.
        """
        try:
            with self._lock():
                if snapshot.content is None:
                    try:
                        snapshot.path.unlink()
                    except FileNotFoundError:
                        pass
                    except OSError as e:
                        raise ConfigIOError(f"Cannot remove {snapshot.path}: {e}") from e
                else:
                    self._write(snapshot.content, snapshot.path)
        except Timeout as e:
            raise ConfigIOError(f"Timed out locking {self._lock_path}") from e

        log.info("Restored %s", snapshot.path)

    def find_injected(self) -> list[tuple[str, HookGroup]]:
        """Wrapper-owned groups currently present in the settings file."""
        return parse_settings(self._read(), self._settings_path).injected_groups()

    @contextlib.contextmanager
    def injected(self, session_id: int) -> Iterator[HookSnapshot]:
        """Hold the injection for the duration of the block.

        Install failures propagate. Restore failures on the way out are
        logged only, since the caller is shutting down.
        """
        snapshot = self.install(session_id)
        try:
            yield snapshot
        finally:
            try:
                self.restore(snapshot)
            except ConfigIOError as e:
                log.error("Failed to restore hooks: %s", e)

    def _write(self, content: bytes, path: Path | None = None) -> None:
        path = path or self._settings_path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        except OSError as e:
            raise ConfigIOError(f"Cannot write {path}: {e}") from e
