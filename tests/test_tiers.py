from __future__ import annotations

import pytest

from dotpiano.core.tiers import (
    NoteRange,
    clamp_octave_shift,
    compute_tiers,
    device_class_for_width,
    shift_range,
)


def _pairs(ranges: list[NoteRange]) -> list[tuple[int, int]]:
    return [(item.start, item.end) for item in ranges]


def test_device_class_boundary() -> None:
    assert device_class_for_width(599) == "compact"
    assert device_class_for_width(320.5) == "compact"
    assert device_class_for_width(600) == "desktop"


def test_compact_tiers_ignore_range_and_shift() -> None:
    expected = [(96, 108), (84, 96), (72, 84), (60, 72), (48, 60)]

    assert _pairs(compute_tiers("compact")) == expected
    assert _pairs(compute_tiers("compact", alt_range_chosen=True, octave_shift=1)) == expected


def test_desktop_tiers() -> None:
    assert _pairs(compute_tiers("desktop")) == [(72, 96), (60, 84)]
    assert _pairs(compute_tiers("desktop", alt_range_chosen=True)) == [(72, 96), (48, 72)]


def test_octave_shift_moves_every_desktop_tier() -> None:
    assert _pairs(compute_tiers("desktop", octave_shift=1)) == [(84, 108), (72, 96)]
    assert _pairs(compute_tiers("desktop", octave_shift=-1)) == [(60, 84), (48, 72)]


def test_octave_shift_is_clamped() -> None:
    assert clamp_octave_shift(5) == 1
    assert clamp_octave_shift(-3) == -1
    assert clamp_octave_shift("x") == 0
    assert _pairs(compute_tiers("desktop", octave_shift=4)) == [(84, 108), (72, 96)]


def test_shift_range_clamps_each_end_to_midi() -> None:
    assert shift_range(120, 127, 12) == NoteRange(127, 127)
    assert shift_range(0, 12, -12) == NoteRange(0, 0)


@pytest.mark.parametrize("shift", [-1, 0, 1])
@pytest.mark.parametrize("alt", [False, True])
@pytest.mark.parametrize("overlap", ["shared", "trim"])
def test_desktop_ranges_are_never_inverted(shift: int, alt: bool, overlap: str) -> None:
    for note_range in compute_tiers("desktop", alt_range_chosen=alt, octave_shift=shift, overlap=overlap):
        assert note_range.start <= note_range.end


def test_trim_overlap_gives_each_note_one_tier() -> None:
    ranges = compute_tiers("desktop", overlap="trim")

    assert _pairs(ranges) == [(72, 96), (60, 71)]
    assert not ranges[0].overlaps(ranges[1])


def test_shared_overlap_keeps_notes_in_both_tiers() -> None:
    upper, lower = compute_tiers("desktop")

    assert upper.overlaps(lower)
    assert upper.contains(80) and lower.contains(80)
