import math


def seconds_left(remaining_ms: int) -> int:
    """Whole seconds shown on the HUD: rounds up so '1s' is visible until expiry."""
    return max(0, math.ceil(remaining_ms / 1000))


def progress(remaining_ms: int, total_ms: int) -> float:
    """Timer bar fill in [0, 1]."""
    if total_ms <= 0:
        return 0.0
    return max(0.0, min(1.0, remaining_ms / total_ms))


def minutes_until(delta_ms: float) -> int:
    """Ceil of a millisecond span in minutes, floored at zero."""
    return max(0, math.ceil(delta_ms / 60_000))
