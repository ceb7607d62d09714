from __future__ import annotations

from typing import Literal

APP_NAME = "DotPiano"
APP_VERSION = "1.0.0"

DeviceClass = Literal["compact", "desktop"]
DesktopRangeChoice = Literal["c4c6", "c3c5"]
TierOverlap = Literal["shared", "trim"]

MIDI_NOTE_MIN = 0
MIDI_NOTE_MAX = 127

COMPACT_VIEWPORT_MAX_WIDTH = 599
TIER_SLOT_COUNT = 5

DESKTOP_RANGES: tuple[tuple[int, int], ...] = (
    (72, 96),
    (60, 84),
)
DESKTOP_ALT_RANGES: tuple[tuple[int, int], ...] = (
    (72, 96),
    (48, 72),
)
COMPACT_RANGES: tuple[tuple[int, int], ...] = (
    (96, 108),
    (84, 96),
    (72, 84),
    (60, 72),
    (48, 60),
)
DEFAULT_DESKTOP_RANGE: DesktopRangeChoice = "c4c6"
DESKTOP_RANGE_LABELS: dict[DesktopRangeChoice, str] = {
    "c4c6": "C4 - C7",
    "c3c5": "C3 - C7",
}
DEFAULT_TIER_OVERLAP: TierOverlap = "shared"

OCTAVE_SHIFT_MIN = -1
OCTAVE_SHIFT_MAX = 1

POINTER_VELOCITY = 0.9
DEFAULT_NOTE_VELOCITY = 0.85
DEFAULT_MASTER_VOLUME = 1.0

MIDI_SOURCE = "midi"
SOUND_CHECK_SOURCE = "test"
POINTER_SOURCE_PREFIX = "ptr:"

SOUND_CHECK_NOTES: tuple[int, ...] = (60, 64, 67, 72, 76, 79)
SOUND_CHECK_STEP_MS = 220
SOUND_CHECK_HOLD_MS = 180
SOUND_CHECK_VELOCITY = 0.9

INSTRUMENT_PROGRAMS: dict[str, tuple[int, int]] = {
    "piano": (0, 0),
    "electric_piano": (0, 4),
    "organ": (0, 16),
    "strings": (0, 48),
    "square_lead": (0, 80),
    "pad": (0, 88),
}
INSTRUMENT_LABELS: dict[str, str] = {
    "piano": "Grand Piano",
    "electric_piano": "Electric Piano",
    "organ": "Organ",
    "strings": "Strings",
    "square_lead": "Square Lead",
    "pad": "Warm Pad",
}
DEFAULT_INSTRUMENT_TYPE = "piano"

KEY_HEIGHT_STEP = 1
COMPACT_KEY_MIN_HEIGHT = 30
LEGACY_KEY_HEIGHT_SCALE_MAX = 10.0

ACTIVITY_LOG_MAX_LINES = 300
ACTIVITY_LOGGER_NAME = "dotpiano.activity"
