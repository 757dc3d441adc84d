"""Shared fixtures: a scripted fake backend behind httpx.MockTransport, a manual
monotonic clock, and engine objects wired to both."""
import asyncio
import json
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest

from engine.round_session import RoundManager
from models.game import MonsterKind, Position, SpawnTarget
from services.backend_client import BackendClient
from services.event_bus import EventBus
from services.profile_store import ProfileStore

HOUR_MS = 3_600_000  # tick interval long enough that the poll loop never fires on its own
NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


class FakeBackend:
    """Scripted stand-in for the authoritative backend.

    Routes map (method, path) to a list of responders; each request consumes the
    next responder, and the last one repeats. A responder is either a
    (status, body) tuple or a callable taking the httpx.Request.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], List[Any]] = {}
        self.requests: List[httpx.Request] = []

    def on(self, method: str, path: str, *responders: Any) -> "FakeBackend":
        self.routes[(method, path)] = list(responders)
        return self

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def bodies(self, method: str, path: str) -> List[Any]:
        return [json.loads(r.content) if r.content else None for r in self.calls(method, path)]

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        responders = self.routes.get((request.method, request.url.path))
        if not responders:
            return httpx.Response(404, json={"message": "not found"})
        responder = responders.pop(0) if len(responders) > 1 else responders[0]
        if callable(responder):
            result = responder(request)
            if asyncio.iscoroutine(result):
                result = await result
            if isinstance(result, httpx.Response):
                return result
            responder = result
        status, body = responder
        if isinstance(body, (bytes, str)):
            return httpx.Response(status, content=body)
        return httpx.Response(status, json=body)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


def gated(status: int, body: Any) -> Tuple[asyncio.Event, Callable]:
    """A responder that blocks until the returned event is set."""
    gate = asyncio.Event()

    async def responder(request):
        await gate.wait()
        return status, body

    return gate, responder


class FakeClock:
    """Monotonic clock advanced by hand, in whole milliseconds."""

    def __init__(self):
        self.ms = 0

    def __call__(self) -> float:
        return self.ms / 1000

    def advance(self, ms: int) -> None:
        self.ms += ms


def make_target(kind: MonsterKind, score: int) -> SpawnTarget:
    return SpawnTarget(
        kind=kind, emoji="?", score_value=score, selection_weight=1,
        position=Position(x=50, y=50),
    )


def window_payload(
    now: datetime = NOW,
    status: str = "ACTIVE",
    starts_in_ms: int = -600_000,
    deadline_in_ms: int = 300_000,
    ends_in_ms: int = 1_800_000,
    participants: Optional[list] = None,
) -> Dict[str, Any]:
    def at(ms: int) -> str:
        return (now + timedelta(milliseconds=ms)).isoformat().replace("+00:00", "Z")

    return {
        "tournamentId": 7,
        "startsAt": at(starts_in_ms),
        "endsAt": at(ends_in_ms),
        "joinDeadline": at(deadline_in_ms),
        "prizePool": 120,
        "entryFee": 1,
        "status": status,
        "participants": participants if participants is not None else [],
    }


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
async def backend(fake_backend):
    client = BackendClient(
        base_url="https://backend.test", token="tok-123", transport=fake_backend.transport()
    )
    yield client
    await client.aclose()


@pytest.fixture
def events() -> EventBus:
    return EventBus()


@pytest.fixture
def profile(events) -> ProfileStore:
    return ProfileStore(events)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def manager(backend, profile, events, clock):
    mgr = RoundManager(
        backend, profile, events,
        tick_interval_ms=HOUR_MS,
        clock=clock,
    )
    yield mgr
    await mgr.close(grace_s=0)
