from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable

from dotpiano.core.layout import KeySpec


@dataclass(frozen=True, slots=True)
class KeyHandle:
    generation: int
    index: int


@dataclass(slots=True)
class KeyVisual:
    handle: KeyHandle
    spec: KeySpec
    slot: int
    sounding: bool = False

    @property
    def note(self) -> int:
        return self.spec.note


SoundingListener = Callable[[tuple[KeyHandle, ...], bool], None]


class KeyVisualArena:

    def __init__(self, on_sounding_changed: SoundingListener | None = None) -> None:
        self._generation = 0
        self._visuals: list[KeyVisual] = []
        self._handles_by_note: dict[int, list[KeyHandle]] = {}
        self._on_sounding_changed = on_sounding_changed

    def register(self, spec: KeySpec, slot: int) -> KeyHandle:
        handle = KeyHandle(generation=self._generation, index=len(self._visuals))
        self._visuals.append(KeyVisual(handle=handle, spec=spec, slot=int(slot)))
        self._handles_by_note.setdefault(spec.note, []).append(handle)
        return handle

    def register_many(self, specs: Iterable[KeySpec], slot: int) -> tuple[KeyHandle, ...]:
        return tuple(self.register(spec, slot) for spec in specs)

    def clear(self) -> None:
        self._visuals.clear()
        self._handles_by_note.clear()
        self._generation += 1

    def visual(self, handle: KeyHandle | None) -> KeyVisual | None:
        if handle is None or handle.generation != self._generation:
            return None
        if handle.index < 0 or handle.index >= len(self._visuals):
            return None
        return self._visuals[handle.index]

    def note_for(self, handle: KeyHandle | None) -> int | None:
        visual = self.visual(handle)
        return visual.note if visual is not None else None

    def handles_for(self, note: int) -> tuple[KeyHandle, ...]:
        return tuple(self._handles_by_note.get(int(note), ()))

    def is_sounding(self, handle: KeyHandle) -> bool:
        visual = self.visual(handle)
        return bool(visual is not None and visual.sounding)

    def set_sounding(self, note: int, sounding: bool) -> None:
        handles = self.handles_for(note)
        if not handles:
            return
        target = bool(sounding)
        for handle in handles:
            self._visuals[handle.index].sounding = target
        if self._on_sounding_changed is not None:
            self._on_sounding_changed(handles, target)

    def clear_sounding(self) -> None:
        changed = tuple(visual.handle for visual in self._visuals if visual.sounding)
        for visual in self._visuals:
            visual.sounding = False
        if changed and self._on_sounding_changed is not None:
            self._on_sounding_changed(changed, False)

    def __len__(self) -> int:
        return len(self._visuals)
