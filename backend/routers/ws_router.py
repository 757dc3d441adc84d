"""
WebSocket Hub — pushes engine state changes to the UI shell.

URL: /ws

Connection flow:
  1. Accept connection, subscribe to the runtime EventBus
  2. Send a private "connected" message with round, profile and tournament snapshots
  3. Pump loop: forward every bus event as {type, data}
  4. Receive loop: "ping" → "pong"; anything else is ignored
  5. On disconnect: unsubscribe
  6. On server shutdown: every tracked socket is closed (1001 going away)

Server → client event types:
  round_started, round_tick, round_caught, round_finished, round_reconciled,
  round_error, round_reset, profile_changed, referral_reward,
  tournament_update, tournament_joined
"""
import asyncio
import json
import logging
from typing import Dict, Set

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from models.game import WSMessage
from services.runtime import PlayerRuntime, get_runtime

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])


# ── Connection Manager ─────────────────────────────────────────────────────────

class ConnectionManager:
    """
    Tracks active UI sockets.
    Safe for asyncio single-threaded event loop (no extra locking needed).
    """

    def __init__(self):
        self._sockets: Set[WebSocket] = set()

    async def connect(self, ws: WebSocket) -> None:
        await ws.accept()
        self._sockets.add(ws)
        logger.debug(f"UI connected ({self.count()} total)")

    def disconnect(self, ws: WebSocket) -> None:
        self._sockets.discard(ws)

    def count(self) -> int:
        return len(self._sockets)

    async def close_all(self, code: int = 1001) -> None:
        """Close every tracked socket (server shutdown)."""
        for ws in list(self._sockets):
            try:
                await ws.close(code=code)
            except Exception as exc:
                logger.debug(f"closing UI socket failed: {exc}")
            self.disconnect(ws)

    async def send_to(self, ws: WebSocket, message: Dict) -> bool:
        """Send a private message. Returns False (and drops the socket) on failure."""
        try:
            await ws.send_json(message)
            return True
        except Exception as exc:
            logger.warning(f"send to UI socket failed: {exc}")
            self.disconnect(ws)
            return False


manager = ConnectionManager()


async def _pump(ws: WebSocket, queue: asyncio.Queue) -> None:
    while True:
        message = await queue.get()
        if not await manager.send_to(ws, message):
            return


@router.websocket("/ws")
async def websocket_endpoint(ws: WebSocket, rt: PlayerRuntime = Depends(get_runtime)):
    await manager.connect(ws)
    queue = rt.events.subscribe()
    pump = asyncio.create_task(_pump(ws, queue))

    await manager.send_to(ws, {
        "type": "connected",
        "data": {
            "round": rt.round.snapshot(),
            "profile": rt.profile.profile.model_dump(by_alias=True),
            "tournament": rt.tournament.snapshot(),
        },
    })

    try:
        while True:
            raw = await ws.receive_text()
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                continue
            if isinstance(data, dict) and data.get("type") == "ping":
                await manager.send_to(ws, WSMessage(type="pong").model_dump())
    except WebSocketDisconnect:
        logger.debug("UI socket disconnected")
    finally:
        pump.cancel()
        rt.events.unsubscribe(queue)
        manager.disconnect(ws)
