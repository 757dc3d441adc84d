"""
Side panels that read or spend account currency: leaderboard, daily quests, shop.

None of these own state the engine depends on. Whenever a response carries an
authoritative balance (stars, upgrade levels) it is written to the ProfileStore.
"""
import logging
from typing import Dict, List, Optional

from pydantic import ValidationError

from models.game import LeaderboardEntry, Quest, ShopItemId, ShopStatus
from services.backend_client import BackendClient
from services.profile_store import ProfileStore
from utils.payload import as_count

logger = logging.getLogger(__name__)


async def fetch_leaderboard(backend: BackendClient) -> List[LeaderboardEntry]:
    rows = await backend.get_leaderboard()
    entries: List[LeaderboardEntry] = []
    for row in rows:
        try:
            entries.append(LeaderboardEntry.model_validate(row))
        except ValidationError:
            logger.warning("[leaderboard] skipping malformed row: %r", row)
    return entries


class QuestBook:
    """Today's quests, kept so a claim can flip the local flags without a reload."""

    def __init__(self, backend: BackendClient, profile: ProfileStore):
        self.backend = backend
        self.profile = profile
        self.quests: List[Quest] = []

    async def load(self) -> List[Quest]:
        data = await self.backend.get_daily_quests()
        self.quests = [Quest.model_validate(q) for q in data.get("quests") or []]
        self.profile.apply_delta(stars=as_count(data.get("stars")))
        return self.quests

    def get(self, quest_id: str) -> Optional[Quest]:
        return next((q for q in self.quests if q.id == quest_id), None)

    async def claim(self, quest_id: str) -> Optional[Quest]:
        data = await self.backend.claim_quest(quest_id)
        self.quests = [
            q.model_copy(update={"claimed": True, "claimable": False}) if q.id == quest_id else q
            for q in self.quests
        ]
        self.profile.apply_delta(stars=as_count(data.get("stars")))
        logger.info("[quests] claimed %s", quest_id)
        return self.get(quest_id)


# Upgrade item → profile field carrying its level
_UPGRADE_FIELDS: Dict[ShopItemId, str] = {
    ShopItemId.MULTIPLIER: "multiplier_level",
    ShopItemId.EXTRA_TIME: "extra_time_level",
    ShopItemId.EPIC_BOOST: "epic_boost_level",
}

_UPGRADE_RESPONSE_KEYS: Dict[str, str] = {
    "multiplier_level": "multiplierLevel",
    "extra_time_level": "extraTimeLevel",
    "epic_boost_level": "epicBoostLevel",
}


class Shop:
    def __init__(self, backend: BackendClient, profile: ProfileStore):
        self.backend = backend
        self.profile = profile
        self.status = ShopStatus()

    async def load(self) -> ShopStatus:
        data = await self.backend.get_shop_status()
        self.status = ShopStatus.model_validate(data)
        self.profile.apply_delta(stars=as_count(data.get("stars")))
        return self.status

    async def buy(self, item_id: ShopItemId) -> Dict[str, int]:
        """Buy one level of an upgrade. Returns the new upgrade level (if reported)
        alongside the remaining stars, then reloads the catalog."""
        data = await self.backend.buy_item(item_id.value)
        levels = {
            field: as_count(data.get(key))
            for field, key in _UPGRADE_RESPONSE_KEYS.items()
        }
        self.profile.apply_delta(stars=as_count(data.get("stars")), **levels)
        logger.info("[shop] bought %s", item_id.value)

        purchase: Dict[str, int] = {}
        stars = as_count(data.get("stars"))
        if stars is not None:
            purchase["stars"] = stars
        new_level = levels.get(_UPGRADE_FIELDS[item_id])
        if new_level is not None:
            purchase["newLevel"] = new_level
        await self.load()
        return purchase
