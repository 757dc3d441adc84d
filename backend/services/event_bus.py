"""
In-process fan-out of state-change events to the UI.

Producers (round manager, profile store, tournament watcher) call emit() synchronously;
each subscriber owns an asyncio.Queue drained by its WebSocket connection.
asyncio is single-threaded so the subscriber set needs no lock.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional, Set

from models.game import WSMessage

logger = logging.getLogger(__name__)

_QUEUE_LIMIT = 256


class EventBus:
    def __init__(self):
        self._subscribers: Set[asyncio.Queue] = set()
        self.history: List[Dict[str, Any]] = []  # last few events, for late subscribers and tests
        self._history_limit = 50

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=_QUEUE_LIMIT)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)

    def emit(self, event_type: str, data: Optional[Dict[str, Any]] = None) -> None:
        message = WSMessage(type=event_type, data=data or {}).model_dump()
        self.history.append(message)
        if len(self.history) > self._history_limit:
            del self.history[0]
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(message)
            except asyncio.QueueFull:
                # A stalled socket only loses its own events
                logger.warning("[events] subscriber queue full, dropping %s", event_type)

    def of_type(self, event_type: str) -> List[Dict[str, Any]]:
        return [m for m in self.history if m["type"] == event_type]
