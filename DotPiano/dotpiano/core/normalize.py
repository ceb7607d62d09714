from __future__ import annotations

import math
from typing import Any


def clamp_int(value: Any, minimum: int, maximum: int, *, default: int) -> int:
    try:
        parsed = int(value)
    except Exception:
        parsed = int(default)
    return max(int(minimum), min(int(maximum), parsed))


def clamp_float(value: Any, minimum: float, maximum: float, *, default: float) -> float:
    try:
        parsed = float(value)
    except Exception:
        parsed = float(default)
    if not math.isfinite(parsed):
        parsed = float(default)
    return max(float(minimum), min(float(maximum), parsed))


def parse_finite_float(value: Any) -> float | None:
    try:
        parsed = float(value)
    except Exception:
        return None
    if not math.isfinite(parsed):
        return None
    return parsed


def snap_to_step(value: float, minimum: float, maximum: float, step: float) -> float:
    clamped = max(float(minimum), min(float(maximum), float(value)))
    return round(clamped / float(step)) * float(step)
