"""Tests for daemon mode: state, singleton check and the socket protocol."""

from __future__ import annotations

import asyncio
import io
import json
import os
import sys
import tempfile
from pathlib import Path

import pytest
from rich.console import Console

from tunein.daemon import (
    REPLY_OK,
    REPLY_UNKNOWN,
    DaemonState,
    TuneInDaemon,
    is_daemon_running,
    send_daemon_command,
    stop_daemon,
)
from tunein.daemon.state import pid_alive, running_pid
from tunein.errors import DaemonAlreadyRunning, DaemonUnreachable

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="unix sockets")


class FakeBackend:
    mode = "native"

    def __init__(self, fail: bool = False) -> None:
        self.calls: list[str] = []
        self.fail = fail

    async def probe(self) -> bool:
        return True

    async def play(self) -> bool:
        self.calls.append("play")
        if self.fail:
            raise RuntimeError("player crashed")
        return True

    async def pause(self) -> bool:
        self.calls.append("pause")
        return True

    async def current_track(self):
        return None

    def hook_command(self, action: str) -> str:
        return f"true {action}"


@pytest.fixture
def runtime_dir():
    # Short path: unix socket paths are limited to ~100 bytes
    with tempfile.TemporaryDirectory(prefix="ti") as d:
        yield Path(d)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def daemon(backend, runtime_dir) -> TuneInDaemon:
    return TuneInDaemon(
        backend,
        pid_path=runtime_dir / "daemon.pid",
        state_path=runtime_dir / "daemon.state",
        socket_path=runtime_dir / "daemon.sock",
        save_interval=0.05,
        console=Console(file=io.StringIO()),
    )


class TestDaemonState:
    def test_json_uses_camel_case(self):
        state = DaemonState(playing=True, mode="remote", last_update=42)
        assert json.loads(state.to_json()) == {"playing": True, "mode": "remote", "lastUpdate": 42}

    def test_touch_updates_timestamp(self):
        state = DaemonState(last_update=0)
        state.touch(True)
        assert state.playing
        assert state.last_update > 0


class TestPidFile:
    def test_own_pid_is_alive(self):
        assert pid_alive(os.getpid())

    def test_stale_pid_file_is_removed(self, runtime_dir):
        pid_file = runtime_dir / "daemon.pid"
        pid_file.write_text("999999999")
        assert running_pid(pid_file) is None
        assert not pid_file.exists()

    def test_is_daemon_running(self, runtime_dir):
        pid_file = runtime_dir / "daemon.pid"
        assert not is_daemon_running(pid_file)
        pid_file.write_text(str(os.getpid()))
        assert is_daemon_running(pid_file)

    def test_stop_daemon_results(self, runtime_dir):
        pid_file = runtime_dir / "daemon.pid"
        assert stop_daemon(pid_file) == "not_running"
        pid_file.write_text("999999999")
        assert stop_daemon(pid_file) == "stale"
        assert not pid_file.exists()


class TestCommands:
    @pytest.mark.asyncio
    async def test_start_and_stop_are_idempotent(self, daemon, backend):
        assert await daemon.handle_command("start") == REPLY_OK
        assert await daemon.handle_command("start\n") == REPLY_OK
        assert daemon.state.playing
        assert await daemon.handle_command("stop") == REPLY_OK
        assert await daemon.handle_command("stop") == REPLY_OK
        assert backend.calls == ["play", "pause"]

    @pytest.mark.asyncio
    async def test_status_reply(self, daemon):
        reply = json.loads(await daemon.handle_command("status"))
        assert reply["playing"] is False
        assert reply["mode"] == "native"
        assert "lastUpdate" in reply

    @pytest.mark.asyncio
    async def test_unknown_command(self, daemon):
        assert await daemon.handle_command("dance") == REPLY_UNKNOWN

    @pytest.mark.asyncio
    async def test_backend_failure_keeps_state(self, runtime_dir):
        daemon = TuneInDaemon(
            FakeBackend(fail=True),
            runtime_dir / "p",
            runtime_dir / "s",
            runtime_dir / "k",
        )
        assert await daemon.handle_command("start") == REPLY_OK
        assert not daemon.state.playing


class TestSocket:
    @pytest.mark.asyncio
    async def test_round_trip_and_shutdown(self, daemon, backend, runtime_dir):
        await daemon.start()
        sock = runtime_dir / "daemon.sock"
        assert (runtime_dir / "daemon.pid").read_text() == str(os.getpid())

        assert await send_daemon_command("start", sock) == REPLY_OK
        status = json.loads(await send_daemon_command("status", sock))
        assert status["playing"] is True

        await asyncio.sleep(0.15)
        saved = json.loads((runtime_dir / "daemon.state").read_text())
        assert saved["playing"] is True

        await daemon.shutdown()
        assert backend.calls == ["play", "pause"]
        for name in ("daemon.pid", "daemon.sock", "daemon.state"):
            assert not (runtime_dir / name).exists()

    @pytest.mark.asyncio
    async def test_second_instance_refused(self, daemon, runtime_dir, backend):
        await daemon.start()
        other = TuneInDaemon(
            backend,
            runtime_dir / "daemon.pid",
            runtime_dir / "daemon.state",
            runtime_dir / "other.sock",
        )
        try:
            with pytest.raises(DaemonAlreadyRunning):
                await other.start()
        finally:
            await daemon.shutdown()

    @pytest.mark.asyncio
    async def test_serve_forever_stops_on_request(self, daemon):
        await daemon.start()
        task = asyncio.create_task(daemon.serve_forever(install_signals=False))
        await asyncio.sleep(0.01)
        daemon.request_stop()
        await asyncio.wait_for(task, 5)
        assert not daemon.socket_path.exists()

    @pytest.mark.asyncio
    async def test_unreachable(self, runtime_dir):
        with pytest.raises(DaemonUnreachable, match="tune-in daemon"):
            await send_daemon_command("status", runtime_dir / "nothing.sock")
