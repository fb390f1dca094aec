"""Run a shell command with the user's own stdio (no pty)."""

from __future__ import annotations

import asyncio
import os
import signal
import time

from tunein.logging import get_logger
from tunein.terminal.result import RunResult

log = get_logger("runner")


class CommandRunner:
    """Execute a command line through the shell, inheriting stdio.

    Used by `tune-in run`: output goes straight to the user's terminal, and
    the caller only needs to know when and how the command ended.
    """

    def __init__(self, default_cwd: str | None = None) -> None:
        self._default_cwd = default_cwd

    async def execute(
        self,
        argv: list[str],
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        interrupted: asyncio.Event | None = None,
    ) -> RunResult:
        """Run ``argv`` joined as a shell command line.

        Args:
            argv: Command and arguments; joined with spaces like a shell would
                see them typed, so ``run "make && make test"`` works.
            cwd: Working directory. Uses default_cwd if None.
            env: Additional environment variables.
            interrupted: When set before the command ends, the runner stops
                waiting and reports an interrupted result (exit 130). The
                child shares the terminal's process group and receives the
                same Ctrl+C on its own.

        Returns:
            RunResult describing how the command ended.
        """
        start_time = time.perf_counter()
        full_command = " ".join(argv)

        process_env = os.environ.copy()
        if env:
            process_env.update(env)

        try:
            process = await asyncio.create_subprocess_shell(
                full_command,
                cwd=cwd or self._default_cwd,
                env=process_env,
            )
        except FileNotFoundError:
            return RunResult(
                command=full_command,
                exit_code=127,
                status="not_found",
                signal=None,
                duration_ms=(time.perf_counter() - start_time) * 1000,
            )
        except OSError as e:
            log.error("Could not start %r: %s", full_command, e)
            return RunResult(
                command=full_command,
                exit_code=1,
                status="error",
                signal=None,
                duration_ms=(time.perf_counter() - start_time) * 1000,
            )

        wait_task = asyncio.ensure_future(process.wait())
        waiters: set[asyncio.Future[object]] = {wait_task}
        interrupt_task = None
        if interrupted is not None:
            interrupt_task = asyncio.ensure_future(interrupted.wait())
            waiters.add(interrupt_task)

        await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        duration_ms = (time.perf_counter() - start_time) * 1000

        if interrupt_task is not None and not wait_task.done():
            wait_task.cancel()
            return RunResult(
                command=full_command,
                exit_code=130,
                status="interrupted",
                signal="SIGINT",
                duration_ms=duration_ms,
            )
        if interrupt_task is not None:
            interrupt_task.cancel()

        returncode = wait_task.result()
        if returncode < 0:
            signame = signal.Signals(-returncode).name
            return RunResult(
                command=full_command,
                exit_code=128 - returncode,
                status="error",
                signal=signame,
                duration_ms=duration_ms,
            )

        return RunResult(
            command=full_command,
            exit_code=returncode,
            status="ok" if returncode == 0 else "error",
            signal=None,
            duration_ms=duration_ms,
        )
