from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Literal

EdgeKind = Literal["on", "off"]


@dataclass(frozen=True, slots=True)
class NoteEdge:
    kind: EdgeKind
    note: int
    source: str | None
    velocity: float | None = None


class NoteArbitrator:
    """Reference-counted note activation shared by every input source.

    A note sounds while at least one source holds it. Sound is started on the
    first hold and stopped when the last hold is released, so overlapping
    sources never retrigger or cut each other off.
    """

    def __init__(
        self,
        *,
        start_sound: Callable[[int, float], None],
        stop_sound: Callable[[int], None],
        silence_all: Callable[[], None],
        set_sounding: Callable[[int, bool], None],
        clear_sounding: Callable[[], None],
        on_edge: Callable[[NoteEdge], None] | None = None,
    ) -> None:
        self.note_sources: dict[int, set[str]] = {}
        self._start_sound = start_sound
        self._stop_sound = stop_sound
        self._silence_all = silence_all
        self._set_sounding = set_sounding
        self._clear_sounding = clear_sounding
        self._on_edge = on_edge

    def note_on(self, note: int, source: str, velocity: float) -> bool:
        sources = self.note_sources.setdefault(int(note), set())
        first_source = len(sources) == 0
        sources.add(source)
        if not first_source:
            return False
        self._start_sound(int(note), velocity)
        self._set_sounding(int(note), True)
        self._emit(NoteEdge("on", int(note), source, velocity))
        return True

    def note_off(self, note: int, source: str) -> bool:
        sources = self.note_sources.get(int(note))
        if not sources or source not in sources:
            return False
        sources.discard(source)
        if sources:
            return False
        self.note_sources.pop(int(note), None)
        self._stop_sound(int(note))
        self._set_sounding(int(note), False)
        self._emit(NoteEdge("off", int(note), source))
        return True

    def all_off(self) -> list[int]:
        notes = sorted(self.note_sources.keys())
        self.note_sources.clear()
        for note in notes:
            self._emit(NoteEdge("off", note, None))
        self._silence_all()
        self._clear_sounding()
        return notes

    def is_sounding(self, note: int) -> bool:
        return bool(self.note_sources.get(int(note)))

    def held_notes(self) -> list[int]:
        return sorted(self.note_sources.keys())

    def sources_for(self, note: int) -> frozenset[str]:
        return frozenset(self.note_sources.get(int(note), ()))

    def _emit(self, edge: NoteEdge) -> None:
        if self._on_edge is not None:
            self._on_edge(edge)
