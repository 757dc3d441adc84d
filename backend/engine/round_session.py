"""
Round Session — the idle → running → finished → idle lifecycle of one player's round.

Transitions:
  idle     → running   start_round(): backend issues the session id and duration
  running  → finished  CountdownTimer expiry only (no manual early end)
  finished → idle      reset(), or implicitly by the next start_round()

While running, catch() scores the current target and spawns the next one.
Catches outside `running` are silently ignored so a late click cannot race expiry.
Entering `finished` schedules FinishReconciler exactly once per session id.

Teardown: close() cancels the timer and marks the manager dead; every await
re-checks liveness before applying its result.
"""
import asyncio
import logging
import random
import time
from typing import Any, Dict, Optional, Sequence

from engine.reconciliation import FinishReconciler
from engine.spawn import MONSTERS, spawn
from engine.timer import Clock, CountdownTimer
from models.game import (
    MonsterDef, MonsterKind, ReconciliationResult, RoundSession, RoundStatus, SpawnTarget,
    _utcnow,
)
from services.backend_client import BackendClient, BackendError
from services.event_bus import EventBus
from services.profile_store import ProfileStore
from utils.hud import progress, seconds_left
from utils.payload import as_count

logger = logging.getLogger(__name__)


class RoundStateError(Exception):
    """Lifecycle request not allowed in the current state."""


class RoundManager:
    def __init__(
        self,
        backend: BackendClient,
        profile: ProfileStore,
        events: Optional[EventBus] = None,
        catalog: Sequence[MonsterDef] = MONSTERS,
        bonus_kind: MonsterKind = MonsterKind.EPIC,
        default_duration_ms: int = 60_000,
        tick_interval_ms: int = 100,
        clock: Clock = time.monotonic,
        rng: Optional[random.Random] = None,
    ):
        self.backend = backend
        self.events = events
        self.catalog = catalog
        self.bonus_kind = bonus_kind
        self.default_duration_ms = default_duration_ms
        self.reconciler = FinishReconciler(backend, profile, events)

        self.session = RoundSession(
            total_duration_ms=default_duration_ms, remaining_ms=default_duration_ms
        )
        self.target: Optional[SpawnTarget] = None
        self.best_score: Optional[int] = None
        self.error = ""

        self._rng = rng
        self._timer = CountdownTimer(
            on_expire=self._on_expire,
            on_tick=self._on_tick,
            tick_interval_ms=tick_interval_ms,
            clock=clock,
        )
        self._starting = False
        self._alive = True
        self._last_second: Optional[int] = None
        self._finish_task: Optional[asyncio.Task] = None

    # ── State queries ─────────────────────────────────────────────────────────

    @property
    def timer(self) -> CountdownTimer:
        return self._timer

    @property
    def status(self) -> RoundStatus:
        return self.session.status

    @property
    def reconciling(self) -> bool:
        return self.session.reconciling or (
            self._finish_task is not None and not self._finish_task.done()
        )

    @property
    def loading(self) -> bool:
        return self._starting or self.session.reconciling

    @property
    def finish_task(self) -> Optional[asyncio.Task]:
        return self._finish_task

    def snapshot(self) -> Dict[str, Any]:
        s = self.session
        return {
            "sessionId": s.session_id,
            "tournamentId": s.tournament_id,
            "status": s.status.value,
            "score": s.score,
            "clicks": s.click_count,
            "bonusHits": s.rare_hit_count,
            "totalMs": s.total_duration_ms,
            "remainingMs": s.remaining_ms,
            "secondsLeft": seconds_left(s.remaining_ms),
            "progress": progress(s.remaining_ms, s.total_duration_ms),
            "bestScore": self.best_score,
            "target": self.target.model_dump(by_alias=True, mode="json") if self.target else None,
            "error": self.error,
            "loading": self.loading,
        }

    # ── idle → running ────────────────────────────────────────────────────────

    async def start_round(self, tournament_id: Any = None) -> RoundSession:
        if not self._alive:
            raise RoundStateError("Round manager is closed")
        if self._starting:
            raise RoundStateError("A round is already starting")
        if self.session.status == RoundStatus.RUNNING:
            raise RoundStateError("A round is already running")
        if self.reconciling:
            raise RoundStateError("The previous round is still being submitted")
        if self.session.status == RoundStatus.FINISHED:
            self.reset()

        self._starting = True
        self.error = ""
        try:
            data = await self.backend.start_game(tournament_id)
            game_id = data.get("gameId")
            if game_id is None:
                raise BackendError("Could not start the game: no game id in response")
        except BackendError as exc:
            self.error = exc.message
            self._emit("round_error", {"stage": "start", "message": exc.message})
            raise
        finally:
            self._starting = False

        if not self._alive:
            raise RoundStateError("Round manager is closed")

        duration = as_count(data.get("roundDurationMs"), minimum=1) or self.default_duration_ms

        self.session = RoundSession(
            session_id=game_id,
            tournament_id=tournament_id,
            total_duration_ms=duration,
            remaining_ms=duration,
            status=RoundStatus.RUNNING,
            started_at=_utcnow(),
        )
        self.target = spawn(self.catalog, self._rng)
        self._last_second = seconds_left(duration)
        self._timer.start(duration)
        logger.info("[round:%s] started (%d ms, tournament=%s)", game_id, duration, tournament_id)
        self._emit("round_started", self.snapshot())
        return self.session

    # ── running ───────────────────────────────────────────────────────────────

    def catch(self) -> bool:
        """Score the current target. Returns False (and changes nothing) unless running."""
        if self.session.status != RoundStatus.RUNNING or self.target is None:
            return False
        caught = self.target
        self.session.score += caught.score_value
        self.session.click_count += 1
        if caught.kind == self.bonus_kind:
            self.session.rare_hit_count += 1
        self.target = spawn(self.catalog, self._rng)
        self._emit("round_caught", {
            "amount": caught.score_value,
            "kind": caught.kind.value,
            "at": caught.position.model_dump(),
            "score": self.session.score,
            "target": self.target.model_dump(by_alias=True, mode="json"),
        })
        return True

    def _on_tick(self, remaining_ms: int) -> None:
        if not self._alive or self.session.status != RoundStatus.RUNNING:
            return
        self.session.remaining_ms = remaining_ms
        second = seconds_left(remaining_ms)
        if second != self._last_second:
            self._last_second = second
            self._emit("round_tick", {"remainingMs": remaining_ms, "secondsLeft": second})

    # ── running → finished ────────────────────────────────────────────────────

    def _on_expire(self) -> None:
        if not self._alive or self.session.status != RoundStatus.RUNNING:
            return
        self.session.status = RoundStatus.FINISHED
        self.session.remaining_ms = 0
        logger.info("[round:%s] time up — score %d", self.session.session_id, self.session.score)
        self._emit("round_finished", self.snapshot())
        self._finish_task = asyncio.create_task(self.finish())

    async def finish(self) -> Optional[ReconciliationResult]:
        """Reconcile the finished round. Safe to call any number of times:
        only the first call per session id reaches the backend."""
        session = self.session
        if session.status != RoundStatus.FINISHED:
            return None
        result = await self.reconciler.submit(session)
        if result is None:
            return None
        if not self._alive or session is not self.session:
            logger.info("[round:%s] reconciled after teardown — result dropped", session.session_id)
            return result

        if not result.accepted:
            self.error = result.message or ""
            self._emit("round_error", {"stage": "finish", "message": self.error})
            return result

        if self.best_score is None or session.score > self.best_score:
            self.best_score = session.score
        self.reconciler.apply(result)
        self._emit("round_reconciled", {
            "sessionId": session.session_id,
            "score": session.score,
            "bestScore": self.best_score,
            "result": result.model_dump(by_alias=True),
        })
        return result

    # ── finished → idle ───────────────────────────────────────────────────────

    def reset(self) -> None:
        if self.session.status == RoundStatus.RUNNING:
            raise RoundStateError("Cannot reset a running round")
        if self.reconciling:
            raise RoundStateError("The round is still being submitted")
        self._timer.cancel()
        if self.session.status == RoundStatus.FINISHED and self.session.finish_submitted_for is None:
            logger.warning("[round:%s] abandoned without submission", self.session.session_id)
        self.session = RoundSession(
            total_duration_ms=self.session.total_duration_ms,
            remaining_ms=self.session.total_duration_ms,
        )
        self.target = None
        self.error = ""
        self._emit("round_reset", self.snapshot())

    # ── Teardown ──────────────────────────────────────────────────────────────

    async def close(self, grace_s: float = 2.0) -> None:
        self._alive = False
        self._timer.cancel()
        task = self._finish_task
        if task and not task.done():
            done, _ = await asyncio.wait({task}, timeout=grace_s)
            if not done:
                task.cancel()

    def _emit(self, event_type: str, data: Dict[str, Any]) -> None:
        if self.events and self._alive:
            self.events.emit(event_type, data)
