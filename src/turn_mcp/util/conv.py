from __future__ import annotations

import math
from typing import Any


def coerce_float(value: Any, *, default: float, minimum: float = 0.0) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        return float(default)
    if math.isnan(v) or math.isinf(v):
        return float(default)
    return max(float(minimum), v)


def coerce_int(value: Any, *, default: int, minimum: int = 0) -> int:
    if isinstance(value, bool):
        return int(default)
    try:
        v = int(value)
    except (TypeError, ValueError):
        return int(default)
    return max(int(minimum), v)


def preview(text: str, limit: int = 50) -> str:
    """Single-line prefix of `text` for log lines."""
    s = " ".join(str(text or "").split())
    if len(s) <= limit:
        return s
    return s[:limit] + "..."
