"""Tests for the leaderboard, daily quests and shop panels."""
from models.game import ShopItemId
from services.progression import QuestBook, Shop, fetch_leaderboard

QUESTS = {
    "stars": 30,
    "quests": [
        {"id": "play3", "title": "Play 3 rounds", "target": 3, "current": 3, "reward": 10,
         "rewardLabel": "+10", "completed": True, "claimed": False, "claimable": True},
        {"id": "epic1", "title": "Catch an epic", "target": 1, "current": 0, "reward": 5,
         "rewardLabel": "+5", "completed": False, "claimed": False, "claimable": False},
    ],
}

SHOP = {
    "stars": 100,
    "items": [
        {"id": "extra_time", "title": "Extra time", "level": 1, "maxLevel": 5, "price": 50, "canBuy": True},
        {"id": "multiplier", "title": "Multiplier", "level": 0, "maxLevel": 3, "price": 80, "canBuy": True},
    ],
}


async def test_leaderboard_skips_bad_rows(backend, fake_backend):
    fake_backend.on("GET", "/game/leaderboard", (200, [
        {"id": 1, "score": 50, "user": {"username": None, "firstName": "Ann"}},
        {"score": 10},
        {"id": 3, "score": 5},
    ]))
    entries = await fetch_leaderboard(backend)
    assert [e.id for e in entries] == [1, 3]
    assert entries[0].display_name == "Ann"
    assert entries[1].display_name == "Player"


async def test_quest_claim_flips_flags_and_updates_stars(backend, fake_backend, profile):
    fake_backend.on("GET", "/game/daily-quests", (200, QUESTS))
    fake_backend.on("POST", "/game/daily-quests/claim", (200, {"stars": 40}))
    book = QuestBook(backend, profile)

    await book.load()
    assert profile.profile.stars == 30

    quest = await book.claim("play3")
    assert quest.claimed and not quest.claimable
    assert profile.profile.stars == 40
    assert fake_backend.bodies("POST", "/game/daily-quests/claim") == [{"questId": "play3"}]
    assert not book.get("epic1").claimed


async def test_claim_without_stars_leaves_profile(backend, fake_backend, profile):
    fake_backend.on("GET", "/game/daily-quests", (200, QUESTS))
    fake_backend.on("POST", "/game/daily-quests/claim", (200, {}))
    book = QuestBook(backend, profile)
    await book.load()
    await book.claim("play3")
    assert profile.profile.stars == 30


async def test_buy_updates_stars_and_level_then_reloads(backend, fake_backend, profile):
    fake_backend.on("GET", "/shop/status", (200, SHOP), (200, {**SHOP, "stars": 50}))
    fake_backend.on("POST", "/shop/buy", (200, {"stars": 50, "extraTimeLevel": 2}))
    shop = Shop(backend, profile)
    await shop.load()

    purchase = await shop.buy(ShopItemId.EXTRA_TIME)
    assert purchase == {"stars": 50, "newLevel": 2}
    assert profile.profile.extra_time_level == 2
    assert profile.profile.stars == 50
    assert fake_backend.bodies("POST", "/shop/buy") == [{"itemId": "extra_time"}]
    assert len(fake_backend.calls("GET", "/shop/status")) == 2
