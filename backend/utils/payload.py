import math
from typing import Any, Optional


def as_count(value: Any, minimum: int = 0) -> Optional[int]:
    """Read a JSON number as a non-negative int. Bools, strings, nulls, NaN/Infinity
    and values below `minimum` read as absent (None)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    value = int(value)
    return value if value >= minimum else None
