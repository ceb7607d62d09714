from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from dotpiano.core.config import (
    COMPACT_RANGES,
    COMPACT_VIEWPORT_MAX_WIDTH,
    DEFAULT_TIER_OVERLAP,
    DESKTOP_ALT_RANGES,
    DESKTOP_RANGES,
    MIDI_NOTE_MAX,
    MIDI_NOTE_MIN,
    OCTAVE_SHIFT_MAX,
    OCTAVE_SHIFT_MIN,
    DeviceClass,
    TierOverlap,
)
from dotpiano.core.normalize import clamp_int


@dataclass(frozen=True, slots=True)
class NoteRange:
    start: int
    end: int

    @property
    def is_empty(self) -> bool:
        return self.start > self.end

    def contains(self, note: int) -> bool:
        return self.start <= int(note) <= self.end

    def overlaps(self, other: "NoteRange") -> bool:
        if self.is_empty or other.is_empty:
            return False
        return self.start <= other.end and other.start <= self.end

    def notes(self) -> range:
        return range(self.start, self.end + 1)


def clamp_note(value: int) -> int:
    return max(MIDI_NOTE_MIN, min(MIDI_NOTE_MAX, int(value)))


def clamp_octave_shift(value: Any) -> int:
    return clamp_int(value, OCTAVE_SHIFT_MIN, OCTAVE_SHIFT_MAX, default=0)


def device_class_for_width(width: float) -> DeviceClass:
    return "compact" if float(width) <= COMPACT_VIEWPORT_MAX_WIDTH else "desktop"


def shift_range(start: int, end: int, semitones: int) -> NoteRange:
    return NoteRange(start=clamp_note(start + semitones), end=clamp_note(end + semitones))


def trim_overlaps(ranges: Sequence[NoteRange]) -> list[NoteRange]:
    trimmed: list[NoteRange] = []
    for candidate in ranges:
        start, end = candidate.start, candidate.end
        for earlier in trimmed:
            current = NoteRange(start, end)
            if not current.overlaps(earlier):
                continue
            if start < earlier.start:
                end = min(end, earlier.start - 1)
            else:
                start = max(start, earlier.end + 1)
        trimmed.append(NoteRange(start, end))
    return trimmed


def compute_tiers(
    device_class: DeviceClass,
    alt_range_chosen: bool = False,
    octave_shift: int = 0,
    overlap: TierOverlap = DEFAULT_TIER_OVERLAP,
) -> list[NoteRange]:
    if device_class == "compact":
        return [NoteRange(start, end) for start, end in COMPACT_RANGES]

    base_ranges = DESKTOP_ALT_RANGES if alt_range_chosen else DESKTOP_RANGES
    offset = clamp_octave_shift(octave_shift) * 12
    ranges = [shift_range(start, end, offset) for start, end in base_ranges]
    if overlap == "trim":
        return trim_overlaps(ranges)
    return ranges
