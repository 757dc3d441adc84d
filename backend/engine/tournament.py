"""
Hourly tournament — window evaluation, polling and the join protocol.

evaluate_window() is a pure function of (window, now); it is recomputed on every
read rather than cached, so eligibility can never lag the wall clock.

Polling replaces the window wholesale every few seconds. A failed poll keeps the
last-known window. join() allows one request in flight; a background refresh may
overwrite the window meanwhile without affecting the join's own outcome handling.
"""
import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from models.game import (
    JoinEligibility, JoinOutcome, JoinResult, TournamentStatus, TournamentWindow, WindowState,
    _utcnow,
)
from services.backend_client import BackendClient, BackendError
from services.event_bus import EventBus
from services.profile_store import ProfileStore
from utils.hud import minutes_until
from utils.payload import as_count

logger = logging.getLogger(__name__)

STATUS_LABELS: Dict[TournamentStatus, str] = {
    TournamentStatus.PLANNED: "Starting soon",
    TournamentStatus.ACTIVE: "Live now",
    TournamentStatus.FINISHED: "Finished",
}

NO_TOURNAMENT_MESSAGE = "No active tournament right now. Check back at the start of the next hour."
FINISHED_MESSAGE = "The tournament is over. Wait for the next hour."
JOIN_CLOSED_MESSAGE = "The join window is closed. Catch the next tournament."
JOIN_OPEN_MESSAGE = "You can still join! About {minutes} min left."

JOINED_MESSAGE = "You joined the tournament. Good luck!"
ALREADY_JOINED_MESSAGE = "You are already in this tournament."
UNEXPECTED_JOIN_MESSAGE = "Request completed, but the server response was not understood."


def evaluate_window(window: Optional[TournamentWindow], now: datetime) -> JoinEligibility:
    if window is None:
        return JoinEligibility(state=WindowState.NONE, joinable=False, message=NO_TOURNAMENT_MESSAGE)
    # Wall clock wins over a stale status field
    if window.status == TournamentStatus.FINISHED or now > window.ends_at:
        return JoinEligibility(state=WindowState.FINISHED, joinable=False, message=FINISHED_MESSAGE)
    if now > window.join_deadline:
        return JoinEligibility(state=WindowState.CLOSED, joinable=False, message=JOIN_CLOSED_MESSAGE)
    minutes = minutes_until((window.join_deadline - now).total_seconds() * 1000)
    return JoinEligibility(
        state=WindowState.OPEN,
        joinable=True,
        message=JOIN_OPEN_MESSAGE.format(minutes=minutes),
        minutes_left=minutes,
    )


def interpret_join_response(data: Dict[str, Any]) -> JoinResult:
    coins = as_count(data.get("coins"))
    if data.get("joined") is True:
        return JoinResult(outcome=JoinOutcome.JOINED, message=JOINED_MESSAGE, coins=coins)
    if data.get("joined") is False and data.get("reason") == "ALREADY_JOINED":
        return JoinResult(outcome=JoinOutcome.ALREADY_JOINED, message=ALREADY_JOINED_MESSAGE, coins=coins)
    return JoinResult(outcome=JoinOutcome.UNEXPECTED, message=UNEXPECTED_JOIN_MESSAGE, coins=coins)


class TournamentJoinError(Exception):
    """Join refused locally: one already in flight, or the window is not joinable."""


class TournamentWatcher:
    def __init__(
        self,
        backend: BackendClient,
        profile: ProfileStore,
        events: Optional[EventBus] = None,
        now: Callable[[], datetime] = _utcnow,
    ):
        self.backend = backend
        self.profile = profile
        self.events = events
        self._now = now

        self.window: Optional[TournamentWindow] = None
        self.loaded = False
        self.error = ""
        self.join_message: Optional[str] = None

        self._joining = False
        self._alive = True
        self._poll_task: Optional[asyncio.Task] = None

    @property
    def joining(self) -> bool:
        return self._joining

    def eligibility(self, now: Optional[datetime] = None) -> JoinEligibility:
        return evaluate_window(self.window, now or self._now())

    def snapshot(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        window = self.window
        return {
            "window": window.model_dump(by_alias=True, mode="json") if window else None,
            "statusLabel": STATUS_LABELS.get(window.status) if window else None,
            "eligibility": self.eligibility(now).model_dump(by_alias=True, mode="json"),
            "joining": self._joining,
            "joinMessage": self.join_message,
            "error": self.error,
            "loaded": self.loaded,
        }

    # ── Polling ───────────────────────────────────────────────────────────────

    async def refresh(self, quiet: bool = False) -> Optional[TournamentWindow]:
        """Fetch the current tournament and replace the window wholesale.
        Any failure keeps the last-known window; `quiet` also leaves `error` alone."""
        try:
            data = await self.backend.get_current_tournament()
        except BackendError as exc:
            logger.warning("[tournament] refresh failed: %s", exc.message)
            if not quiet and self._alive:
                self.error = exc.message
            return self.window
        if not self._alive:
            return self.window

        if data is None:
            window = None
        else:
            try:
                window = TournamentWindow.model_validate(data)
            except ValidationError as exc:
                logger.warning("[tournament] ignoring malformed window: %s", exc)
                return self.window

        self.window = window
        self.loaded = True
        if not quiet:
            self.error = ""
        if self.events:
            self.events.emit("tournament_update", self.snapshot())
        return window

    def start_polling(self, interval_s: float) -> None:
        if self._poll_task and not self._poll_task.done():
            return
        self._poll_task = asyncio.create_task(self._poll(interval_s))

    async def _poll(self, interval_s: float) -> None:
        while self._alive:
            await self.refresh()
            await asyncio.sleep(interval_s)

    # ── Join ──────────────────────────────────────────────────────────────────

    async def join(self) -> JoinResult:
        if not self._alive:
            raise TournamentJoinError("Tournament watcher is closed")
        if self._joining:
            raise TournamentJoinError("A join request is already in flight")
        eligibility = self.eligibility()
        if not eligibility.joinable:
            raise TournamentJoinError(eligibility.message)

        self._joining = True
        self.join_message = None
        self.error = ""
        try:
            data = await self.backend.join_tournament()
        except BackendError as exc:
            if self._alive:
                self.error = exc.message
            raise
        finally:
            self._joining = False

        result = interpret_join_response(data)
        logger.info("[tournament] join → %s (coins=%s)", result.outcome.value, result.coins)
        if not self._alive:
            return result

        self.join_message = result.message
        if result.outcome in (JoinOutcome.JOINED, JoinOutcome.ALREADY_JOINED):
            if result.coins is not None:
                self.profile.apply_delta(coins=result.coins)
            if self.events:
                self.events.emit("tournament_joined", result.model_dump(by_alias=True, mode="json"))
            # Standings changed; non-critical if this fails
            await self.refresh(quiet=True)
        return result

    # ── Teardown ──────────────────────────────────────────────────────────────

    async def close(self) -> None:
        self._alive = False
        if self._poll_task and not self._poll_task.done():
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
        self._poll_task = None
