"""Weighted monster spawning."""
import random
from typing import List, Optional, Sequence

from models.game import MonsterDef, MonsterKind, Position, SpawnTarget

# Monster roster: ~60% common, 25% rare, 10% epic, 5% legendary.
MONSTERS: List[MonsterDef] = [
    MonsterDef(kind=MonsterKind.COMMON, emoji="👾", score_value=1, selection_weight=60),
    MonsterDef(kind=MonsterKind.RARE, emoji="🧟‍♂️", score_value=3, selection_weight=25),
    MonsterDef(kind=MonsterKind.EPIC, emoji="🐉", score_value=5, selection_weight=10),
    MonsterDef(kind=MonsterKind.LEGENDARY, emoji="👑", score_value=10, selection_weight=5),
]

# Percent-of-viewport bounds that keep the sprite fully on screen
X_RANGE = (15.0, 85.0)
Y_RANGE = (20.0, 80.0)


def pick_target(
    catalog: Sequence[MonsterDef] = MONSTERS, rng: Optional[random.Random] = None
) -> MonsterDef:
    """Draw one entry with probability proportional to its selection_weight.
    Always returns a catalog member; falls back to the first entry if rounding
    leaves the draw unmatched."""
    if not catalog:
        raise ValueError("catalog must not be empty")
    rng = rng or random
    total_weight = sum(m.selection_weight for m in catalog)
    draw = rng.random() * total_weight
    acc = 0
    for monster in catalog:
        acc += monster.selection_weight
        if draw <= acc:
            return monster
    return catalog[0]


def pick_position(rng: Optional[random.Random] = None) -> Position:
    rng = rng or random
    x = X_RANGE[0] + rng.random() * (X_RANGE[1] - X_RANGE[0])
    y = Y_RANGE[0] + rng.random() * (Y_RANGE[1] - Y_RANGE[0])
    return Position(x=x, y=y)


def spawn(
    catalog: Sequence[MonsterDef] = MONSTERS, rng: Optional[random.Random] = None
) -> SpawnTarget:
    """A fresh on-screen target: weighted kind plus an independent uniform position."""
    monster = pick_target(catalog, rng)
    return SpawnTarget(
        kind=monster.kind,
        emoji=monster.emoji,
        score_value=monster.score_value,
        selection_weight=monster.selection_weight,
        position=pick_position(rng),
    )
