"""Tests for hook injection into the assistant's settings file."""

from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path

import pytest

from tunein.errors import ConfigIOError
from tunein.hooks import (
    MARKER_ALIAS,
    NOTIFICATION,
    PRE_TOOL_USE,
    STOP,
    AssistantSettings,
    HookInjector,
    SessionFile,
    guard_command,
    parse_settings,
)

USER_SETTINGS = {
    "model": "opus",
    "permissions": {"allow": ["Bash(ls:*)"]},
    "hooks": {
        "PreToolUse": [
            {
                "matcher": "Bash",
                "hooks": [{"type": "command", "command": "echo mine", "timeout": 5}],
            }
        ],
        "SessionStart": [{"hooks": [{"type": "command", "command": "date"}]}],
    },
}


@pytest.fixture
def settings_path(tmp_path: Path) -> Path:
    return tmp_path / "claude" / "settings.json"


@pytest.fixture
def session_file(tmp_path: Path) -> SessionFile:
    return SessionFile(tmp_path / "tune-in-claude.pid")


def make_injector(settings_path: Path, session_file: SessionFile, **kwargs) -> HookInjector:
    return HookInjector(
        settings_path=settings_path,
        session_file=session_file.path,
        lock_path=session_file.path.parent / "settings.lock",
        play_command="player play",
        pause_command="player pause",
        **kwargs,
    )


class TestInstall:
    def test_adds_marked_groups_for_all_events(self, settings_path, session_file):
        injector = make_injector(settings_path, session_file)
        injector.install(1234)

        data = json.loads(settings_path.read_text())
        hooks = data["hooks"]
        for event in (PRE_TOOL_USE, STOP, NOTIFICATION):
            groups = [g for g in hooks[event] if g.get(MARKER_ALIAS)]
            assert len(groups) == 1
            assert groups[0]["hooks"][0]["type"] == "command"

        play = hooks[PRE_TOOL_USE][-1]["hooks"][0]["command"]
        pause = hooks[STOP][-1]["hooks"][0]["command"]
        assert play.endswith("&& player play")
        assert pause.endswith("&& player pause")
        assert str(session_file.path) in play

    def test_preserves_user_content(self, settings_path, session_file):
        settings_path.parent.mkdir(parents=True)
        settings_path.write_text(json.dumps(USER_SETTINGS))

        make_injector(settings_path, session_file).install(1)
        data = json.loads(settings_path.read_text())

        assert data["model"] == "opus"
        assert data["permissions"] == {"allow": ["Bash(ls:*)"]}
        assert data["hooks"]["SessionStart"] == USER_SETTINGS["hooks"]["SessionStart"]
        user_group = data["hooks"][PRE_TOOL_USE][0]
        assert user_group == USER_SETTINGS["hooks"]["PreToolUse"][0]
        assert MARKER_ALIAS not in user_group

    def test_no_pause_installs_only_play(self, settings_path, session_file):
        make_injector(settings_path, session_file, no_pause=True).install(1)
        hooks = json.loads(settings_path.read_text())["hooks"]
        assert PRE_TOOL_USE in hooks
        assert STOP not in hooks
        assert NOTIFICATION not in hooks

    @pytest.mark.parametrize("content", [b"{not json", b"[1, 2]", b'{"hooks": "nope"}', b""])
    def test_malformed_settings_treated_as_empty(self, settings_path, session_file, content):
        settings_path.parent.mkdir(parents=True)
        settings_path.write_bytes(content)

        injector = make_injector(settings_path, session_file)
        injector.install(1)
        assert len(injector.find_injected()) == 3

    def test_unreadable_settings_raise_config_io_error(self, tmp_path, session_file):
        # A directory where the file should be
        settings_path = tmp_path / "settings.json"
        settings_path.mkdir()
        injector = make_injector(settings_path, session_file)
        with pytest.raises(ConfigIOError):
            injector.install(1)


class TestRestore:
    @pytest.mark.parametrize(
        "original",
        [
            json.dumps(USER_SETTINGS, indent=4).encode(),
            b'{"hooks":{}}',
            b"{}\n",
            b"",
            b"{broken",
        ],
    )
    def test_restore_is_byte_equal(self, settings_path, session_file, original):
        settings_path.parent.mkdir(parents=True)
        settings_path.write_bytes(original)

        injector = make_injector(settings_path, session_file)
        snapshot = injector.install(99)
        assert settings_path.read_bytes() != original

        injector.restore(snapshot)
        assert settings_path.read_bytes() == original

    def test_restore_removes_file_that_did_not_exist(self, settings_path, session_file):
        injector = make_injector(settings_path, session_file)
        snapshot = injector.install(1)
        assert snapshot.content is None
        assert settings_path.exists()

        injector.restore(snapshot)
        assert not settings_path.exists()

    def test_restore_is_idempotent(self, settings_path, session_file):
        settings_path.parent.mkdir(parents=True)
        settings_path.write_bytes(b'{"a": 1}')
        injector = make_injector(settings_path, session_file)
        snapshot = injector.install(1)

        injector.restore(snapshot)
        injector.restore(snapshot)
        assert settings_path.read_bytes() == b'{"a": 1}'

    def test_context_manager_restores_on_error(self, settings_path, session_file):
        settings_path.parent.mkdir(parents=True)
        settings_path.write_bytes(b"{}")
        injector = make_injector(settings_path, session_file)

        with pytest.raises(RuntimeError):
            with injector.injected(1):
                assert injector.find_injected()
                raise RuntimeError("boom")

        assert settings_path.read_bytes() == b"{}"
        assert injector.find_injected() == []


class TestSchema:
    def test_round_trip_keeps_unknown_fields(self):
        settings = parse_settings(json.dumps(USER_SETTINGS).encode())
        assert settings.dump() == USER_SETTINGS

    def test_injected_groups_only_returns_marked(self):
        settings = AssistantSettings.model_validate(USER_SETTINGS)
        assert settings.injected_groups() == []


class TestSessionFile:
    def test_write_read_clear(self, session_file):
        assert session_file.read() is None
        session_file.write(4321)
        assert session_file.path.read_text() == "4321"
        assert session_file.read() == 4321
        session_file.clear()
        assert session_file.read() is None
        session_file.clear()


@pytest.mark.skipif(sys.platform == "win32", reason="guard uses POSIX sh")
class TestGuardCommand:
    """The guard only lets a hook through when $PPID matches the session file."""

    def _fire(self, tmp_path: Path) -> bool:
        marker = tmp_path / "fired"
        guarded = guard_command(f"touch {marker}", tmp_path / "session.pid")
        # sh's $PPID is this test process
        subprocess.run(["sh", "-c", guarded], check=False)
        return marker.exists()

    def test_matching_session_fires(self, tmp_path):
        SessionFile(tmp_path / "session.pid").write(os.getpid())
        assert self._fire(tmp_path)

    def test_other_session_does_not_fire(self, tmp_path):
        SessionFile(tmp_path / "session.pid").write(os.getpid() + 100000)
        assert not self._fire(tmp_path)

    def test_missing_session_file_does_not_fire(self, tmp_path):
        assert not self._fire(tmp_path)

    def test_path_with_spaces_is_quoted(self, tmp_path):
        odd = tmp_path / "dir with 'quote"
        odd.mkdir()
        SessionFile(odd / "session.pid").write(os.getpid())
        marker = tmp_path / "fired"
        guarded = guard_command(f"touch {marker}", odd / "session.pid")
        subprocess.run(["sh", "-c", guarded], check=False)
        assert marker.exists()
