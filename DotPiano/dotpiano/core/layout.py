"""Key geometry for one keyboard tier.

White keys sit on a uniform grid of two units each. Black keys sit on their
own row whose columns are weighted 3 units (C#, D#, F#, A#) or 2 units (G#) so
that every black key lands over the gap between its neighbouring white keys.
A trailing spacer column pads the black row to the width of the white row.
"""

from __future__ import annotations

from dataclasses import dataclass

from dotpiano.core.music_logic import (
    black_key_weight,
    is_white_key,
    is_wide_black_key,
    note_label,
    pitch_class,
)
from dotpiano.core.tiers import NoteRange


@dataclass(frozen=True, slots=True)
class KeySpec:
    note: int
    label: str
    black: bool
    wide: bool = False
    edge_c: bool = False
    show_label: bool = False


@dataclass(frozen=True, slots=True)
class TierLayout:
    note_range: NoteRange
    white_keys: tuple[KeySpec, ...]
    black_keys: tuple[KeySpec, ...]
    black_weights: tuple[int, ...]
    spacer_weight: int

    @property
    def white_columns(self) -> int:
        return len(self.white_keys)

    @property
    def grid_units(self) -> int:
        return self.white_columns * 2

    @property
    def black_columns(self) -> tuple[int, ...]:
        if self.spacer_weight > 0:
            return self.black_weights + (self.spacer_weight,)
        return self.black_weights

    @property
    def white_notes(self) -> list[int]:
        return [key.note for key in self.white_keys]

    @property
    def black_notes(self) -> list[int]:
        return [key.note for key in self.black_keys]

    def black_key_spans(self) -> list[tuple[int, int]]:
        """Return ``(start_unit, width_units)`` for each black key column."""
        spans: list[tuple[int, int]] = []
        cursor = 0
        for weight in self.black_weights:
            spans.append((cursor, weight))
            cursor += weight
        return spans


def white_notes_in(note_range: NoteRange) -> list[int]:
    if note_range.is_empty:
        return []
    return [note for note in note_range.notes() if is_white_key(note)]


def black_notes_between(white_notes: list[int], note_range: NoteRange) -> list[int]:
    black_notes: list[int] = []
    for current, following in zip(white_notes, white_notes[1:]):
        candidate = current + 1
        if candidate < following and note_range.contains(candidate):
            black_notes.append(candidate)
    return black_notes


def build_tier(note_range: NoteRange) -> TierLayout:
    white_notes = white_notes_in(note_range)
    black_notes = black_notes_between(white_notes, note_range)

    white_keys = tuple(
        KeySpec(
            note=note,
            label=note_label(note),
            black=False,
            edge_c=pitch_class(note) == 0 and note == note_range.end,
            show_label=pitch_class(note) == 0,
        )
        for note in white_notes
    )
    black_keys = tuple(
        KeySpec(
            note=note,
            label=note_label(note),
            black=True,
            wide=is_wide_black_key(note),
        )
        for note in black_notes
    )
    black_weights = tuple(black_key_weight(note) for note in black_notes)
    spacer = (len(white_keys) * 2) - sum(black_weights)
    return TierLayout(
        note_range=note_range,
        white_keys=white_keys,
        black_keys=black_keys,
        black_weights=black_weights,
        spacer_weight=max(0, spacer),
    )
