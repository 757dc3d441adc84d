from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List, Dict, Any, Union
from enum import Enum
from datetime import datetime, timezone


def _utcnow() -> datetime:
    """Timezone-aware UTC datetime (replaces deprecated datetime.utcnow)."""
    return datetime.now(timezone.utc)


class WireModel(BaseModel):
    """Base for anything exchanged with the backend or the UI: camelCase on the wire,
    snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MonsterKind(str, Enum):
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class RoundStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    FINISHED = "finished"


class TournamentStatus(str, Enum):
    PLANNED = "PLANNED"
    ACTIVE = "ACTIVE"
    FINISHED = "FINISHED"


class WindowState(str, Enum):
    NONE = "none"          # no tournament descriptor at all
    FINISHED = "finished"  # status FINISHED or past endsAt
    CLOSED = "closed"      # past joinDeadline, still running
    OPEN = "open"


class JoinOutcome(str, Enum):
    JOINED = "joined"
    ALREADY_JOINED = "already_joined"
    UNEXPECTED = "unexpected"


# Opaque identifiers: the backend currently issues integers but nothing here relies on it.
OpaqueId = Union[int, str]


# ── Spawn catalog ─────────────────────────────────────────────────────────────

class MonsterDef(WireModel):
    kind: MonsterKind
    emoji: str
    score_value: int = Field(gt=0)
    selection_weight: int = Field(gt=0)


class Position(WireModel):
    x: float = Field(ge=15, le=85)   # percent of viewport width
    y: float = Field(ge=20, le=80)   # percent of viewport height


class SpawnTarget(WireModel):
    """A displayed monster. Superseded after each catch, never mutated."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    kind: MonsterKind
    emoji: str
    score_value: int = Field(gt=0)
    selection_weight: int = Field(gt=0)
    position: Position


# ── Round lifecycle ───────────────────────────────────────────────────────────

class RoundSession(WireModel):
    session_id: Optional[OpaqueId] = None
    tournament_id: Optional[OpaqueId] = None
    total_duration_ms: int = Field(default=60_000, gt=0)
    remaining_ms: int = Field(default=60_000, ge=0)
    status: RoundStatus = RoundStatus.IDLE
    score: int = Field(default=0, ge=0)
    click_count: int = Field(default=0, ge=0)
    rare_hit_count: int = Field(default=0, ge=0)
    # One-shot latch: session id whose finish was submitted. Set before the request goes out.
    finish_submitted_for: Optional[OpaqueId] = None
    reconciling: bool = False
    started_at: Optional[datetime] = None


class ReconciliationResult(WireModel):
    accepted: bool
    total_stars: Optional[int] = Field(default=None, ge=0)
    level: Optional[int] = Field(default=None, ge=1)
    xp: Optional[int] = Field(default=None, ge=0)
    referral_reward: int = Field(default=0, ge=0)
    message: Optional[str] = None  # server-provided (or fallback) text when not accepted


# ── Tournament ────────────────────────────────────────────────────────────────

class TournamentParticipant(WireModel):
    user_id: OpaqueId
    display_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("displayName", "username", "display_name"),
        serialization_alias="displayName",
    )
    score: int = 0


class TournamentWindow(WireModel):
    tournament_id: OpaqueId
    starts_at: datetime
    ends_at: datetime
    join_deadline: datetime
    entry_fee: int = Field(default=0, ge=0)
    prize_pool: int = Field(default=0, ge=0)
    status: TournamentStatus = TournamentStatus.PLANNED
    participants: List[TournamentParticipant] = []

    @field_validator("starts_at", "ends_at", "join_deadline")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="after")
    def _check_window_order(self) -> "TournamentWindow":
        if not (self.starts_at <= self.join_deadline <= self.ends_at):
            raise ValueError("tournament window must satisfy startsAt <= joinDeadline <= endsAt")
        return self


class JoinEligibility(WireModel):
    state: WindowState
    joinable: bool
    message: str
    minutes_left: Optional[int] = None


class JoinResult(WireModel):
    outcome: JoinOutcome
    message: str
    coins: Optional[int] = None


# ── Profile (owned by ProfileStore) ───────────────────────────────────────────

class Profile(WireModel):
    id: Optional[OpaqueId] = None
    username: Optional[str] = None
    first_name: Optional[str] = None
    stars: int = 0
    coins: int = 0
    level: int = 1
    xp: int = 0
    multiplier_level: int = 0
    extra_time_level: int = 0
    epic_boost_level: int = 0


# ── Side panels ───────────────────────────────────────────────────────────────

class LeaderboardUser(WireModel):
    username: Optional[str] = None
    first_name: Optional[str] = None


class LeaderboardEntry(WireModel):
    id: OpaqueId
    score: int = 0
    user: Optional[LeaderboardUser] = None

    @property
    def display_name(self) -> str:
        if self.user:
            return self.user.username or self.user.first_name or "Player"
        return "Player"


class Quest(WireModel):
    id: str
    title: str = ""
    target: int = 0
    current: int = 0
    reward: int = 0
    reward_label: str = ""
    completed: bool = False
    claimed: bool = False
    claimable: bool = False


class ShopItemId(str, Enum):
    MULTIPLIER = "multiplier"
    EXTRA_TIME = "extra_time"
    EPIC_BOOST = "epic_boost"


class ShopItem(WireModel):
    id: ShopItemId
    title: str = ""
    level: int = 0
    max_level: int = 0
    price: int = 0
    can_buy: bool = False


class ShopStatus(WireModel):
    stars: int = 0
    items: List[ShopItem] = []


# ── WebSocket message shapes ──────────────────────────────────────────────────

class WSMessage(BaseModel):
    type: str
    data: Dict[str, Any] = {}


# ── HTTP request/response models ──────────────────────────────────────────────

class StartRoundRequest(WireModel):
    tournament_id: Optional[OpaqueId] = None
