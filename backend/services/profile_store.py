"""
Profile store — the single owner of the player's account state.

Everything that learns an authoritative account value (finish reconciliation,
tournament join, quest claims, shop purchases, /users/me polling) writes it through
apply_delta(). Readers get copies; nobody mutates the Profile in place.
"""
import asyncio
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from models.game import Profile
from services.backend_client import BackendClient, BackendError
from services.event_bus import EventBus

logger = logging.getLogger(__name__)

# Fields that server responses are allowed to overwrite
DELTA_FIELDS = (
    "stars",
    "coins",
    "level",
    "xp",
    "multiplier_level",
    "extra_time_level",
    "epic_boost_level",
)


class ProfileStore:
    def __init__(self, events: Optional[EventBus] = None):
        self._profile = Profile()
        self._events = events
        self.loaded = False
        self._poll_task: Optional[asyncio.Task] = None
        self._alive = True

    @property
    def profile(self) -> Profile:
        return self._profile.model_copy()

    def apply_delta(self, **fields: Any) -> Dict[str, Any]:
        """Overwrite the given account fields with server-provided values.
        None values are skipped. Returns {field: new_value} for fields that changed."""
        changed: Dict[str, Any] = {}
        for name, value in fields.items():
            if name not in DELTA_FIELDS:
                raise ValueError(f"Unknown profile field: {name}")
            if value is None:
                continue
            if getattr(self._profile, name) != value:
                changed[name] = value
        if changed:
            self._profile = self._profile.model_copy(update=changed)
            logger.info("[profile] updated %s", changed)
            if self._events:
                self._events.emit("profile_changed", {
                    "changed": {to_camel(name): value for name, value in changed.items()},
                    "profile": self._profile.model_dump(by_alias=True),
                })
        return changed

    def hydrate(self, data: Dict[str, Any]) -> Profile:
        """Replace the whole profile with a /users/me payload."""
        profile = Profile.model_validate(data)
        self._profile = profile
        self.loaded = True
        if self._events:
            self._events.emit("profile_changed", {
                "changed": {},
                "profile": profile.model_dump(by_alias=True),
            })
        return profile.model_copy()

    async def refresh(self, backend: BackendClient) -> Optional[Profile]:
        """Re-fetch /users/me. A failure keeps the last-known profile."""
        try:
            data = await backend.get_me()
        except BackendError as exc:
            logger.warning("[profile] refresh failed: %s", exc.message)
            return None
        if not self._alive:
            return None
        try:
            return self.hydrate(data)
        except ValidationError as exc:
            logger.warning("[profile] ignoring malformed /users/me payload: %s", exc)
            return None

    # ── Background polling ────────────────────────────────────────────────────

    def start_polling(self, backend: BackendClient, interval_s: float) -> None:
        if self._poll_task and not self._poll_task.done():
            return
        self._poll_task = asyncio.create_task(self._poll(backend, interval_s))

    async def _poll(self, backend: BackendClient, interval_s: float) -> None:
        while self._alive:
            await self.refresh(backend)
            await asyncio.sleep(interval_s)

    async def close(self) -> None:
        self._alive = False
        if self._poll_task and not self._poll_task.done():
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
        self._poll_task = None
