from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Mapping, TypeVar

from dotpiano.core.config import (
    DEFAULT_DESKTOP_RANGE,
    DEFAULT_TIER_OVERLAP,
    TIER_SLOT_COUNT,
    DesktopRangeChoice,
    DeviceClass,
    TierOverlap,
)
from dotpiano.core.key_arena import KeyHandle, KeyVisualArena
from dotpiano.core.layout import TierLayout, build_tier
from dotpiano.core.tiers import clamp_octave_shift, compute_tiers, device_class_for_width
from dotpiano.services.note_lifecycle import NoteArbitrator
from dotpiano.services.pointer_gestures import PointerGestureTracker

logger = logging.getLogger(__name__)

Defer = Callable[[Callable[[], None]], None]
WidthProvider = Callable[[], float]


@dataclass(frozen=True, slots=True)
class TierView:
    slot: int
    layout: TierLayout | None
    white_handles: tuple[KeyHandle, ...] = ()
    black_handles: tuple[KeyHandle, ...] = ()

    @property
    def hidden(self) -> bool:
        return self.layout is None


LayoutListener = Callable[[DeviceClass, list[TierView]], None]
SlotT = TypeVar("SlotT")


def require_tier_slots(bindings: Mapping[int, SlotT | None], slot_count: int = TIER_SLOT_COUNT) -> list[SlotT]:
    """Return the view bound to each tier slot, in slot order.

    Raises ``ValueError`` naming every slot that has no view.
    """
    missing = [slot for slot in range(slot_count) if bindings.get(slot) is None]
    if missing:
        raise ValueError(f"Missing keyboard tier views for slots: {missing}")
    return [bindings[slot] for slot in range(slot_count)]


def _run_now(callback: Callable[[], None]) -> None:
    callback()


class ViewportAdapter:

    def __init__(
        self,
        arbitrator: NoteArbitrator,
        tracker: PointerGestureTracker,
        arena: KeyVisualArena,
        *,
        defer: Defer | None = None,
        overlap: TierOverlap = DEFAULT_TIER_OVERLAP,
        slot_count: int = TIER_SLOT_COUNT,
        on_layout: LayoutListener | None = None,
    ) -> None:
        self._arbitrator = arbitrator
        self._tracker = tracker
        self._arena = arena
        self._defer = defer or _run_now
        self._overlap: TierOverlap = overlap
        self._slot_count = max(1, int(slot_count))
        self._on_layout = on_layout
        self.device_class: DeviceClass | None = None
        self.desktop_range: DesktopRangeChoice = DEFAULT_DESKTOP_RANGE
        self.octave_shift = 0
        self.tier_views: list[TierView] = []
        self.rebuild_count = 0

    def set_layout_listener(self, listener: LayoutListener | None) -> None:
        self._on_layout = listener

    def apply_layout(self, width: float, force: bool = False) -> bool:
        device_class = device_class_for_width(width)
        if not force and device_class == self.device_class:
            return False
        self.device_class = device_class

        self._arbitrator.all_off()
        self._tracker.reset()
        self._arena.clear()

        ranges = compute_tiers(
            device_class,
            alt_range_chosen=self.desktop_range == "c3c5",
            octave_shift=self.octave_shift,
            overlap=self._overlap,
        )
        views: list[TierView] = []
        for slot in range(self._slot_count):
            note_range = ranges[slot] if slot < len(ranges) else None
            if note_range is None or note_range.is_empty:
                views.append(TierView(slot=slot, layout=None))
                continue
            layout = build_tier(note_range)
            views.append(
                TierView(
                    slot=slot,
                    layout=layout,
                    white_handles=self._arena.register_many(layout.white_keys, slot),
                    black_handles=self._arena.register_many(layout.black_keys, slot),
                )
            )
        self.tier_views = views
        self.rebuild_count += 1
        logger.debug(
            "Layout rebuilt: %s, ranges=%s",
            device_class,
            [(view.layout.note_range.start, view.layout.note_range.end) for view in views if view.layout],
        )
        if self._on_layout is not None:
            self._on_layout(device_class, views)
        return True

    def queue_refresh(self, width_provider: WidthProvider, force: bool = False) -> None:
        def second_pass() -> None:
            self.apply_layout(width_provider())

        def first_pass() -> None:
            self.apply_layout(width_provider(), force=force)
            self._defer(second_pass)

        self._defer(first_pass)

    def set_octave_shift(self, shift: int, width_provider: WidthProvider) -> bool:
        target = clamp_octave_shift(shift)
        if target == self.octave_shift:
            return False
        self.octave_shift = target
        self.queue_refresh(width_provider, force=True)
        return True

    def set_desktop_range(self, choice: DesktopRangeChoice, width_provider: WidthProvider) -> bool:
        target: DesktopRangeChoice = "c3c5" if choice == "c3c5" else "c4c6"
        if target == self.desktop_range:
            return False
        self.desktop_range = target
        self.queue_refresh(width_provider, force=True)
        return True
