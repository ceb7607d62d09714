from __future__ import annotations

from typing import Callable

from dotpiano.core.config import POINTER_SOURCE_PREFIX, POINTER_VELOCITY
from dotpiano.core.key_arena import KeyHandle, KeyVisualArena
from dotpiano.services.note_lifecycle import NoteArbitrator

HitTest = Callable[[float, float], KeyHandle | None]


def pointer_source(pointer_id: int) -> str:
    return f"{POINTER_SOURCE_PREFIX}{pointer_id}"


class PointerGestureTracker:
    """Turns pointer gestures into note holds, one note per pointer at a time.

    Sliding a held pointer across keys releases the previous key and presses
    the new one, which gives a glide without lifting the pointer.
    """

    def __init__(
        self,
        arbitrator: NoteArbitrator,
        arena: KeyVisualArena,
        *,
        is_unlocked: Callable[[], bool],
        hit_test: HitTest | None = None,
        velocity: float = POINTER_VELOCITY,
    ) -> None:
        self._arbitrator = arbitrator
        self._arena = arena
        self._is_unlocked = is_unlocked
        self._hit_test = hit_test
        self._velocity = float(velocity)
        self.pointer_notes: dict[int, int | None] = {}

    def set_hit_test(self, hit_test: HitTest | None) -> None:
        self._hit_test = hit_test

    def bound_note(self, pointer_id: int) -> int | None:
        return self.pointer_notes.get(pointer_id)

    def is_tracking(self, pointer_id: int) -> bool:
        return pointer_id in self.pointer_notes

    def gesture_start(self, pointer_id: int, handle: KeyHandle | None) -> bool:
        if not self._is_unlocked():
            return False
        note = self._arena.note_for(handle)
        if note is None:
            return False
        self._release(pointer_id)
        self.pointer_notes[pointer_id] = note
        self._arbitrator.note_on(note, pointer_source(pointer_id), self._velocity)
        return True

    def gesture_move(self, pointer_id: int, x: float, y: float) -> bool:
        if not self._is_unlocked():
            return False
        if pointer_id not in self.pointer_notes:
            return False
        current = self.pointer_notes[pointer_id]
        handle = self._hit_test(x, y) if self._hit_test is not None else None
        new_note = self._arena.note_for(handle)
        if new_note == current:
            return False
        source = pointer_source(pointer_id)
        if current is not None:
            self._arbitrator.note_off(current, source)
        if new_note is not None:
            self._arbitrator.note_on(new_note, source, self._velocity)
        self.pointer_notes[pointer_id] = new_note
        return True

    def gesture_end(self, pointer_id: int) -> bool:
        if pointer_id not in self.pointer_notes:
            return False
        self._release(pointer_id)
        return True

    def gesture_cancel(self, pointer_id: int) -> bool:
        return self.gesture_end(pointer_id)

    def reset(self) -> None:
        self.pointer_notes.clear()

    def _release(self, pointer_id: int) -> None:
        note = self.pointer_notes.pop(pointer_id, None)
        if note is not None:
            self._arbitrator.note_off(note, pointer_source(pointer_id))
