from __future__ import annotations

from typing import Callable, Sequence

from dotpiano.core.config import SOUND_CHECK_HOLD_MS, SOUND_CHECK_NOTES, SOUND_CHECK_STEP_MS

Schedule = Callable[[int, Callable[[], None]], None]


def sound_check_steps(
    notes: Sequence[int] = SOUND_CHECK_NOTES,
    step_ms: int = SOUND_CHECK_STEP_MS,
    hold_ms: int = SOUND_CHECK_HOLD_MS,
) -> list[tuple[int, str, int]]:
    """Return ``(delay_ms, "on" | "off", note)`` triples sorted by delay."""
    steps: list[tuple[int, str, int]] = []
    for index, note in enumerate(notes):
        steps.append((index * step_ms, "on", int(note)))
        steps.append((index * step_ms + hold_ms, "off", int(note)))
    steps.sort(key=lambda step: step[0])
    return steps


class SoundCheckService:

    def __init__(self, schedule: Schedule) -> None:
        self._schedule = schedule

    def run(
        self,
        *,
        note_on: Callable[[int], None],
        note_off: Callable[[int], None],
        notes: Sequence[int] = SOUND_CHECK_NOTES,
    ) -> int:
        steps = sound_check_steps(notes)
        for delay, kind, note in steps:
            action = note_on if kind == "on" else note_off
            self._schedule(delay, lambda action=action, note=note: action(note))
        return len(steps)
