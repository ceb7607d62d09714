from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from dotpiano.core.key_arena import KeyHandle


@dataclass(frozen=True, slots=True)
class PointerDown:
    pointer_id: int
    handle: KeyHandle | None


@dataclass(frozen=True, slots=True)
class PointerMove:
    pointer_id: int
    x: float
    y: float


@dataclass(frozen=True, slots=True)
class PointerUp:
    pointer_id: int


@dataclass(frozen=True, slots=True)
class PointerCancel:
    pointer_id: int


@dataclass(frozen=True, slots=True)
class MidiNoteOn:
    note: int
    velocity: float


@dataclass(frozen=True, slots=True)
class MidiNoteOff:
    note: int


@dataclass(frozen=True, slots=True)
class MidiPanic:
    pass


@dataclass(frozen=True, slots=True)
class PanicRequested:
    pass


@dataclass(frozen=True, slots=True)
class SoundCheckNoteOn:
    note: int
    velocity: float


@dataclass(frozen=True, slots=True)
class SoundCheckNoteOff:
    note: int


@dataclass(frozen=True, slots=True)
class ViewportChanged:
    width: float
    force: bool = False


@dataclass(frozen=True, slots=True)
class VisibilityChanged:
    hidden: bool


InputEvent = Union[
    PointerDown,
    PointerMove,
    PointerUp,
    PointerCancel,
    MidiNoteOn,
    MidiNoteOff,
    MidiPanic,
    PanicRequested,
    SoundCheckNoteOn,
    SoundCheckNoteOff,
    ViewportChanged,
    VisibilityChanged,
]
