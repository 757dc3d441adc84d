"""
Per-process player runtime: one backend client, one profile store, one round,
one tournament watcher, all sharing a single EventBus.
"""
import logging
from typing import Optional

from config import Settings, settings as default_settings
from engine.round_session import RoundManager
from engine.tournament import TournamentWatcher
from models.game import MonsterKind
from services.backend_client import BackendClient
from services.event_bus import EventBus
from services.profile_store import ProfileStore
from services.progression import QuestBook, Shop

logger = logging.getLogger(__name__)


class PlayerRuntime:
    def __init__(self, backend: BackendClient, settings: Settings = default_settings, **round_options):
        self.settings = settings
        self.backend = backend
        self.events = EventBus()
        self.profile = ProfileStore(self.events)
        self.round = RoundManager(
            backend,
            self.profile,
            self.events,
            bonus_kind=MonsterKind(settings.bonus_kind),
            default_duration_ms=settings.default_round_duration_ms,
            tick_interval_ms=settings.timer_tick_ms,
            **round_options,
        )
        self.tournament = TournamentWatcher(backend, self.profile, self.events)
        self.quests = QuestBook(backend, self.profile)
        self.shop = Shop(backend, self.profile)

    def start_background(self) -> None:
        self.profile.start_polling(self.backend, self.settings.profile_poll_interval_s)
        self.tournament.start_polling(self.settings.tournament_poll_interval_s)
        logger.info(
            "Background polling started (profile every %ss, tournament every %ss)",
            self.settings.profile_poll_interval_s,
            self.settings.tournament_poll_interval_s,
        )

    async def close(self) -> None:
        await self.round.close()
        await self.tournament.close()
        await self.profile.close()
        await self.backend.aclose()


_runtime: Optional["PlayerRuntime"] = None


def get_runtime() -> "PlayerRuntime":
    """Lazy singleton. Use as a FastAPI dependency: Depends(get_runtime)"""
    global _runtime
    if _runtime is None:
        _runtime = PlayerRuntime(
            BackendClient(
                base_url=default_settings.api_base_url,
                token=default_settings.api_token,
                timeout=default_settings.request_timeout_s,
            )
        )
    return _runtime


async def shutdown_runtime() -> None:
    global _runtime
    if _runtime is not None:
        await _runtime.close()
        _runtime = None
