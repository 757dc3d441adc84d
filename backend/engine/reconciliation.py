"""
Finish Reconciliation — submit a round outcome once, accept the server's rewards.

The client-tracked score is only an input: stars, level and xp in the response are
authoritative and overwrite the Profile unconditionally. The local HUD score is
left untouched.

Send-once: RoundSession.finish_submitted_for is set to the session id BEFORE the
request goes out, so any second call for the same session (duplicate expiry,
re-entrant handler) returns None without touching the network. A failed submission
leaves the latch set and is never retried.
"""
import logging
from typing import Any, Dict, Optional

from models.game import ReconciliationResult, RoundSession
from services.backend_client import BackendClient, BackendError
from services.event_bus import EventBus
from services.profile_store import ProfileStore
from utils.payload import as_count

logger = logging.getLogger(__name__)

FINISH_FALLBACK_ERROR = "Could not finish the game"


def parse_finish_response(data: Dict[str, Any]) -> ReconciliationResult:
    total_stars = as_count(data.get("totalStars"))
    level = as_count(data.get("level"), minimum=1)
    xp = as_count(data.get("xp"))
    # level and xp only make sense together
    if level is None or xp is None:
        level = xp = None
    return ReconciliationResult(
        accepted=True,
        total_stars=total_stars,
        level=level,
        xp=xp,
        referral_reward=as_count(data.get("referralReward")) or 0,
    )


class FinishReconciler:
    def __init__(
        self,
        backend: BackendClient,
        profile: ProfileStore,
        events: Optional[EventBus] = None,
    ):
        self.backend = backend
        self.profile = profile
        self.events = events
        self.submissions = 0

    async def submit(self, session: RoundSession) -> Optional[ReconciliationResult]:
        """Send the round outcome. Returns None when the latch is already set for this
        session (or there is no session id); otherwise an accepted or rejected result."""
        if session.session_id is None:
            return None
        if session.finish_submitted_for == session.session_id:
            logger.info("[round:%s] finish already submitted — ignoring", session.session_id)
            return None

        session.finish_submitted_for = session.session_id
        session.reconciling = True
        self.submissions += 1
        logger.info(
            "[round:%s] submitting score=%d clicks=%d bonus=%d",
            session.session_id, session.score, session.click_count, session.rare_hit_count,
        )
        try:
            data = await self.backend.finish_game(
                game_id=session.session_id,
                score=session.score,
                clicks=session.click_count,
                epic_count=session.rare_hit_count,
            )
        except BackendError as exc:
            logger.warning("[round:%s] finish failed: %s", session.session_id, exc.message)
            return ReconciliationResult(accepted=False, message=exc.message or FINISH_FALLBACK_ERROR)
        finally:
            session.reconciling = False

        return parse_finish_response(data)

    def apply(self, result: ReconciliationResult) -> Dict[str, Any]:
        """Fold an accepted result into the Profile store. Rejected results change nothing."""
        if not result.accepted:
            return {}
        changed = self.profile.apply_delta(
            stars=result.total_stars,
            level=result.level,
            xp=result.xp,
        )
        if result.referral_reward > 0 and self.events:
            self.events.emit("referral_reward", {"amount": result.referral_reward})
        return changed
