from __future__ import annotations

NOTE_NAMES = ("C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B")
WHITE_PITCH_CLASSES = frozenset({0, 2, 4, 5, 7, 9, 11})
WIDE_BLACK_PITCH_CLASSES = frozenset({1, 3, 6, 10})
NARROW_BLACK_PITCH_CLASS = 8


def pitch_class(note: int) -> int:
    return ((int(note) % 12) + 12) % 12


def is_white_key(note: int) -> bool:
    return pitch_class(note) in WHITE_PITCH_CLASSES


def is_wide_black_key(note: int) -> bool:
    return pitch_class(note) in WIDE_BLACK_PITCH_CLASSES


def note_octave(note: int) -> int:
    return (int(note) // 12) - 1


def note_label(note: int) -> str:
    return f"{NOTE_NAMES[pitch_class(note)]}{note_octave(note)}"


def black_key_weight(note: int) -> int:
    return 2 if pitch_class(note) == NARROW_BLACK_PITCH_CLASS else 3
