"""Activity signal engine.

Infers whether the wrapped assistant is working from what the user types.
The assistant's internal state is not observable here; the only inputs are
raw keystroke bytes and the launch of the session.

Rules:
- A carriage return or line feed is a submission. It marks the first
  interaction, resets the typing counter, cancels the idle timer and plays
  right away (the assistant is about to start working).
- Before the first submission, typing is ignored. Setup prompts and
  onboarding screens should not start the music.
- After that, printable characters are counted. Crossing the play threshold
  plays once for the burst, and every qualifying keystroke at or above the
  threshold re-arms a single idle timer. When the timer fires the counter
  resets and playback pauses.
- In no-pause mode the engine never pauses and the typing and submission
  plays are skipped because the music is already running continuously. The
  launch play still happens.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from tunein.logging import TRACE, get_logger

log = get_logger("activity")

PLAY_THRESHOLD = 3
IDLE_TIMEOUT = 6.0

_SUBMIT_BYTES = (0x0D, 0x0A)
_PRINTABLE_MIN = 0x20
_PRINTABLE_MAX = 0x7E


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """The part of an event loop the engine needs."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


@dataclass
class ActivityState:
    """Last intent emitted by the engine."""

    playing: bool = False
    updated_at: float | None = None


def count_printable(data: bytes) -> int:
    """Count bytes in the conservative printable ASCII range."""
    return sum(1 for b in data if _PRINTABLE_MIN <= b <= _PRINTABLE_MAX)


def is_submission(data: bytes) -> bool:
    return any(b in data for b in _SUBMIT_BYTES)


class ActivityEngine:
    """Turns keystrokes into play/pause intents.

    The callbacks are plain synchronous functions; the caller decides how to
    reach the player. Both intents are idempotent at the backend, so the
    engine does not suppress a play while it believes it is already playing.
    """

    def __init__(
        self,
        on_play: Callable[[], None],
        on_pause: Callable[[], None],
        *,
        no_pause: bool = False,
        threshold: int = PLAY_THRESHOLD,
        idle_timeout: float = IDLE_TIMEOUT,
        loop: Scheduler | None = None,
    ) -> None:
        self._on_play = on_play
        self._on_pause = on_pause
        self._no_pause = no_pause
        self._threshold = threshold
        self._idle_timeout = idle_timeout
        self._loop = loop
        self._count = 0
        self._first_interaction = False
        self._timer: TimerHandle | None = None
        self._state = ActivityState()

    @property
    def count(self) -> int:
        """Printable characters typed in the current burst."""
        return self._count

    @property
    def first_interaction(self) -> bool:
        return self._first_interaction

    @property
    def no_pause(self) -> bool:
        return self._no_pause

    @property
    def state(self) -> ActivityState:
        return self._state

    @property
    def timer_pending(self) -> bool:
        return self._timer is not None

    def start(self) -> None:
        """Emit the launch play."""
        self._emit_play("launch")

    def feed(self, data: bytes) -> None:
        """Account for one chunk of raw input bytes."""
        if not data:
            return

        if is_submission(data):
            self._first_interaction = True
            self._count = 0
            self._cancel_timer()
            if not self._no_pause:
                self._emit_play("submit")
            return

        if not self._first_interaction:
            return

        printable = count_printable(data)
        if printable == 0:
            return

        previous = self._count
        self._count += printable
        log.log(TRACE, "typed %d printable, burst=%d", printable, self._count)

        if previous < self._threshold <= self._count and not self._no_pause:
            self._emit_play("typing")

        if self._count >= self._threshold:
            self._schedule_idle()

    def close(self) -> None:
        """Cancel the pending idle timer; no further intents fire."""
        self._cancel_timer()

    def _schedule_idle(self) -> None:
        self._cancel_timer()
        if self._no_pause:
            return
        loop = self._loop or asyncio.get_running_loop()
        self._timer = loop.call_later(self._idle_timeout, self._on_idle)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_idle(self) -> None:
        self._timer = None
        self._count = 0
        self._emit_pause("idle")

    def _emit_play(self, reason: str) -> None:
        log.debug("play (%s)", reason)
        self._set_state(True)
        self._on_play()

    def _emit_pause(self, reason: str) -> None:
        if self._no_pause:
            return
        log.debug("pause (%s)", reason)
        self._set_state(False)
        self._on_pause()

    def _set_state(self, playing: bool) -> None:
        self._state.playing = playing
        self._state.updated_at = time.monotonic()
