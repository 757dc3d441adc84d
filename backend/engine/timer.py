"""
Countdown Timer — drift-free round clock.

Remaining time is always derived from the start instant:
    remaining = duration - (now - t0), clamped to 0
so a late or skipped tick never compounds into drift.

The timer polls on a fixed interval in its own asyncio task and reports through
two synchronous callbacks: on_tick(remaining_ms) on every poll, and on_expire()
exactly once. cancel() stops polling without expiring and is safe in any state.
tick() is public so callers (and tests) can force an evaluation.
"""
import asyncio
import logging
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)

Clock = Callable[[], float]  # seconds, monotonic


class CountdownTimer:
    def __init__(
        self,
        on_expire: Callable[[], None],
        on_tick: Optional[Callable[[int], None]] = None,
        tick_interval_ms: int = 100,
        clock: Clock = time.monotonic,
    ):
        self._on_expire = on_expire
        self._on_tick = on_tick
        self._tick_interval_s = tick_interval_ms / 1000
        self._clock = clock

        self._t0: float = 0.0
        self._duration_ms: int = 0
        self._remaining_ms: int = 0
        self._armed = False
        self._expired = False
        self._task: Optional[asyncio.Task] = None

    @property
    def remaining_ms(self) -> int:
        return self._remaining_ms

    @property
    def running(self) -> bool:
        return self._armed

    @property
    def expired(self) -> bool:
        return self._expired

    def start(self, duration_ms: int) -> None:
        """Arm for `duration_ms` from now. Restarting cancels any previous countdown."""
        if duration_ms <= 0:
            raise ValueError("duration_ms must be positive")
        self.cancel()
        self._t0 = self._clock()
        self._duration_ms = duration_ms
        self._remaining_ms = duration_ms
        self._armed = True
        self._expired = False
        self._task = asyncio.create_task(self._poll())

    def tick(self) -> int:
        """Recompute remaining time from t0; fire expiry once when it reaches zero."""
        if not self._armed:
            return self._remaining_ms

        elapsed_ms = round((self._clock() - self._t0) * 1000)
        remaining = max(0, self._duration_ms - elapsed_ms)
        # Never report more time than last tick (clock adjustments, rounding)
        remaining = min(remaining, self._remaining_ms)
        self._remaining_ms = remaining

        if remaining > 0:
            if self._on_tick:
                self._on_tick(remaining)
            return remaining

        # Disarm before callbacks so re-entrant ticks see a stopped timer
        self._armed = False
        self._expired = True
        if self._on_tick:
            self._on_tick(0)
        self._on_expire()
        return 0

    def cancel(self) -> None:
        """Stop polling without expiring. No-op when idle, cancelled or expired."""
        self._armed = False
        task, self._task = self._task, None
        if task and not task.done():
            try:
                current = asyncio.current_task()
            except RuntimeError:
                current = None
            if task is not current:
                task.cancel()

    async def _poll(self) -> None:
        while self._armed:
            await asyncio.sleep(self._tick_interval_s)
            if not self._armed:
                return
            self.tick()
