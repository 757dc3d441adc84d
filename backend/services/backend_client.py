"""
Authoritative game backend client.

Endpoints consumed (JSON over HTTPS, bearer-token authenticated):
  POST /game/start                 — new round id + server-side duration
  POST /game/finish                — submit a round outcome, receive reward totals
  GET  /game/leaderboard           — global top scores (no auth)
  GET  /game/daily-quests          — today's quests
  POST /game/daily-quests/claim    — claim a completed quest
  GET  /tournament/current         — current hourly tournament or null
  POST /tournament/join            — join the current tournament
  GET  /users/me                   — player profile
  GET  /shop/status                — upgrade catalog
  POST /shop/buy                   — buy an upgrade level

Every method returns the decoded JSON body. Empty or malformed bodies decode to {}.
Non-2xx responses raise BackendError carrying the server's `message`;
transport failures raise BackendUnavailableError.
"""
import logging
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)


class BackendError(Exception):
    """Non-2xx application error from the backend."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class BackendUnavailableError(BackendError):
    """The request never produced an HTTP response (DNS, connect, timeout...)."""


def _decode_body(res: httpx.Response) -> Any:
    try:
        return res.json()
    except ValueError:
        # empty body or not JSON
        return {}


def _error_message(data: Any, fallback: str) -> str:
    if isinstance(data, dict):
        return data.get("message") or data.get("error") or fallback
    return fallback


class BackendClient:
    """Thin async wrapper around httpx.AsyncClient bound to one player's token."""

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        fallback_error: str,
        json: Optional[Dict[str, Any]] = None,
        auth: bool = True,
    ) -> Any:
        headers: Dict[str, str] = {}
        if auth and self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        try:
            res = await self._client.request(method, path, json=json, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("[backend] %s %s failed: %s", method, path, exc)
            raise BackendUnavailableError(f"{fallback_error}: {exc}") from exc

        data = _decode_body(res)
        if res.is_error:
            message = _error_message(data, fallback_error)
            logger.warning("[backend] %s %s → %d: %s", method, path, res.status_code, message)
            raise BackendError(message, status_code=res.status_code)
        return data

    # ── Round lifecycle ───────────────────────────────────────────────────────

    async def start_game(self, tournament_id: Any = None) -> Dict[str, Any]:
        body = {"tournamentId": tournament_id} if tournament_id is not None else None
        data = await self._request("POST", "/game/start", "Could not start the game", json=body)
        return data if isinstance(data, dict) else {}

    async def finish_game(
        self, game_id: Any, score: int, clicks: int, epic_count: int
    ) -> Dict[str, Any]:
        data = await self._request(
            "POST",
            "/game/finish",
            "Could not finish the game",
            json={"gameId": game_id, "score": score, "clicks": clicks, "epicCount": epic_count},
        )
        return data if isinstance(data, dict) else {}

    # ── Tournament ────────────────────────────────────────────────────────────

    async def get_current_tournament(self) -> Optional[Dict[str, Any]]:
        data = await self._request("GET", "/tournament/current", "Could not load the tournament")
        return data or None

    async def join_tournament(self) -> Dict[str, Any]:
        data = await self._request("POST", "/tournament/join", "Could not join the tournament")
        return data if isinstance(data, dict) else {}

    # ── Profile & side panels ─────────────────────────────────────────────────

    async def get_me(self) -> Dict[str, Any]:
        data = await self._request("GET", "/users/me", "Could not load the profile")
        return data if isinstance(data, dict) else {}

    async def get_leaderboard(self) -> list:
        data = await self._request(
            "GET", "/game/leaderboard", "Could not load the leaderboard", auth=False
        )
        return data if isinstance(data, list) else []

    async def get_daily_quests(self) -> Dict[str, Any]:
        data = await self._request("GET", "/game/daily-quests", "Could not load quests")
        return data if isinstance(data, dict) else {}

    async def claim_quest(self, quest_id: str) -> Dict[str, Any]:
        data = await self._request(
            "POST", "/game/daily-quests/claim", "Could not claim the reward",
            json={"questId": quest_id},
        )
        return data if isinstance(data, dict) else {}

    async def get_shop_status(self) -> Dict[str, Any]:
        data = await self._request("GET", "/shop/status", "Could not load the shop")
        return data if isinstance(data, dict) else {}

    async def buy_item(self, item_id: str) -> Dict[str, Any]:
        data = await self._request(
            "POST", "/shop/buy", "Could not buy the upgrade", json={"itemId": item_id}
        )
        return data if isinstance(data, dict) else {}

