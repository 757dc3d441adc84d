"""
Local HTTP surface for the UI shell.

Routes:
  POST /api/round/start                — start a round (optionally for a tournament)
  POST /api/round/catch                — catch the current target (no-op unless running)
  GET  /api/round                      — HUD snapshot
  POST /api/round/reset                — back to idle after a finished round
  GET  /api/profile                    — profile snapshot
  POST /api/profile/refresh            — re-fetch /users/me
  GET  /api/tournament                 — window + eligibility (re-evaluated per request)
  POST /api/tournament/refresh         — force a tournament poll
  POST /api/tournament/join            — join the current tournament
  GET  /api/leaderboard                — global top scores
  GET  /api/quests                     — daily quests
  POST /api/quests/{quest_id}/claim    — claim a quest reward
  GET  /api/shop                       — upgrade catalog
  POST /api/shop/{item_id}/buy         — buy an upgrade level
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError

from engine.round_session import RoundStateError
from engine.tournament import TournamentJoinError
from models.game import ShopItemId, StartRoundRequest
from services.backend_client import BackendError
from services.progression import fetch_leaderboard
from services.runtime import PlayerRuntime, get_runtime

logger = logging.getLogger(__name__)

router = APIRouter(tags=["round"])


def _upstream_error(exc: BackendError) -> HTTPException:
    """Client errors from the backend pass through; everything else is a bad gateway."""
    status = exc.status_code if exc.status_code and 400 <= exc.status_code < 500 else 502
    return HTTPException(status_code=status, detail=exc.message)


def _malformed(what: str, exc: ValidationError) -> HTTPException:
    logger.warning("Malformed %s from backend: %s", what, exc)
    return HTTPException(status_code=502, detail=f"Malformed {what} from backend")


# ── Round ─────────────────────────────────────────────────────────────────────

@router.post("/round/start")
async def start_round(
    body: Optional[StartRoundRequest] = None,
    rt: PlayerRuntime = Depends(get_runtime),
):
    tournament_id = body.tournament_id if body else None
    try:
        await rt.round.start_round(tournament_id=tournament_id)
    except RoundStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except BackendError as exc:
        raise _upstream_error(exc)
    return rt.round.snapshot()


@router.post("/round/catch")
async def catch(rt: PlayerRuntime = Depends(get_runtime)):
    caught = rt.round.catch()
    return {"caught": caught, "round": rt.round.snapshot()}


@router.get("/round")
async def get_round(rt: PlayerRuntime = Depends(get_runtime)):
    return rt.round.snapshot()


@router.post("/round/reset")
async def reset_round(rt: PlayerRuntime = Depends(get_runtime)):
    try:
        rt.round.reset()
    except RoundStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return rt.round.snapshot()


# ── Profile ───────────────────────────────────────────────────────────────────

@router.get("/profile")
async def get_profile(rt: PlayerRuntime = Depends(get_runtime)):
    return rt.profile.profile.model_dump(by_alias=True)


@router.post("/profile/refresh")
async def refresh_profile(rt: PlayerRuntime = Depends(get_runtime)):
    try:
        data = await rt.backend.get_me()
    except BackendError as exc:
        raise _upstream_error(exc)
    try:
        profile = rt.profile.hydrate(data)
    except ValidationError as exc:
        raise _malformed("profile", exc)
    return profile.model_dump(by_alias=True)


# ── Tournament ────────────────────────────────────────────────────────────────

@router.get("/tournament")
async def get_tournament(rt: PlayerRuntime = Depends(get_runtime)):
    return rt.tournament.snapshot()


@router.post("/tournament/refresh")
async def refresh_tournament(rt: PlayerRuntime = Depends(get_runtime)):
    await rt.tournament.refresh()
    return rt.tournament.snapshot()


@router.post("/tournament/join")
async def join_tournament(rt: PlayerRuntime = Depends(get_runtime)):
    try:
        result = await rt.tournament.join()
    except TournamentJoinError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except BackendError as exc:
        raise _upstream_error(exc)
    return result.model_dump(by_alias=True, mode="json")


# ── Side panels ───────────────────────────────────────────────────────────────

@router.get("/leaderboard")
async def get_leaderboard(rt: PlayerRuntime = Depends(get_runtime)):
    try:
        entries = await fetch_leaderboard(rt.backend)
    except BackendError as exc:
        raise _upstream_error(exc)
    return [
        {
            "place": index + 1,
            "id": entry.id,
            "name": entry.display_name,
            "score": entry.score,
        }
        for index, entry in enumerate(entries)
    ]


@router.get("/quests")
async def get_quests(rt: PlayerRuntime = Depends(get_runtime)):
    try:
        quests = await rt.quests.load()
    except BackendError as exc:
        raise _upstream_error(exc)
    except ValidationError as exc:
        raise _malformed("quests", exc)
    return {"quests": [q.model_dump(by_alias=True) for q in quests]}


@router.post("/quests/{quest_id}/claim")
async def claim_quest(quest_id: str, rt: PlayerRuntime = Depends(get_runtime)):
    try:
        quest = await rt.quests.claim(quest_id)
    except BackendError as exc:
        raise _upstream_error(exc)
    return {
        "quest": quest.model_dump(by_alias=True) if quest else None,
        "stars": rt.profile.profile.stars,
    }


@router.get("/shop")
async def get_shop(rt: PlayerRuntime = Depends(get_runtime)):
    try:
        status = await rt.shop.load()
    except BackendError as exc:
        raise _upstream_error(exc)
    except ValidationError as exc:
        raise _malformed("shop status", exc)
    return status.model_dump(by_alias=True, mode="json")


@router.post("/shop/{item_id}/buy")
async def buy_item(item_id: ShopItemId, rt: PlayerRuntime = Depends(get_runtime)):
    try:
        purchase = await rt.shop.buy(item_id)
    except BackendError as exc:
        raise _upstream_error(exc)
    except ValidationError as exc:
        raise _malformed("shop status", exc)
    return {
        "itemId": item_id.value,
        **purchase,
        "shop": rt.shop.status.model_dump(by_alias=True, mode="json"),
    }
