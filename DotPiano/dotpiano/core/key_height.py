from __future__ import annotations

import math
from dataclasses import dataclass

from dotpiano.core.config import COMPACT_KEY_MIN_HEIGHT, KEY_HEIGHT_STEP, TIER_SLOT_COUNT
from dotpiano.core.normalize import snap_to_step

ROWS_PER_TIER = 2


@dataclass(frozen=True, slots=True)
class ViewportMetrics:
    height: float
    space_y: float = 12.0
    floating_top: float = 12.0
    floating_size: float = 44.0
    key_gap: float = 2.0


def base_key_height(metrics: ViewportMetrics, tier_count: int = TIER_SLOT_COUNT) -> float:
    return max(1.0, ((metrics.height / 2.0) - metrics.space_y) / max(1, tier_count))


def key_height_bounds(metrics: ViewportMetrics, tier_count: int = TIER_SLOT_COUNT) -> tuple[int, int]:
    minimum = COMPACT_KEY_MIN_HEIGHT
    area_height = max(
        0.0,
        metrics.height - (2 * metrics.space_y) - metrics.floating_top - metrics.floating_size,
    )
    fixed_height = tier_count * (2 * metrics.key_gap)
    max_by_layout = (area_height - fixed_height) / (tier_count * ROWS_PER_TIER)
    return minimum, max(minimum, int(math.floor(max_by_layout)))


def clamp_key_height(value: float | None, metrics: ViewportMetrics, tier_count: int = TIER_SLOT_COUNT) -> int:
    minimum, maximum = key_height_bounds(metrics, tier_count)
    current = float(value) if value else float(minimum)
    return int(snap_to_step(current, minimum, maximum, KEY_HEIGHT_STEP))


def key_height_scale(key_height_px: float, metrics: ViewportMetrics, tier_count: int = TIER_SLOT_COUNT) -> float:
    if not key_height_px or key_height_px <= 0:
        return 1.0
    return float(key_height_px) / base_key_height(metrics, tier_count)
