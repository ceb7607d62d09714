from __future__ import annotations

import pytest

from dotpiano.core.key_arena import KeyVisualArena
from dotpiano.services.note_lifecycle import NoteArbitrator, NoteEdge


class RecordingAudio:
    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.ready_calls = 0
        self.fail_ready = False

    def ensure_audio_ready(self) -> None:
        self.ready_calls += 1
        if self.fail_ready:
            raise RuntimeError("no audio device")

    def start_note(self, midi_note: int, velocity: float) -> None:
        self.calls.append(("start", midi_note, velocity))

    def stop_note(self, midi_note: int) -> None:
        self.calls.append(("stop", midi_note))

    def all_notes_off(self) -> None:
        self.calls.append(("all_off",))

    def set_instrument_type(self, name: str) -> None:
        self.calls.append(("instrument", name))

    def set_master_volume(self, volume: float) -> None:
        self.calls.append(("volume", volume))

    def shutdown(self) -> None:
        self.calls.append(("shutdown",))

    def note_calls(self) -> list[tuple]:
        return [call for call in self.calls if call[0] in {"start", "stop", "all_off"}]


class ArbitratorHarness:
    def __init__(self, arena: KeyVisualArena | None = None) -> None:
        self.audio = RecordingAudio()
        self.arena = arena or KeyVisualArena()
        self.edges: list[NoteEdge] = []
        self.arbitrator = NoteArbitrator(
            start_sound=self.audio.start_note,
            stop_sound=self.audio.stop_note,
            silence_all=self.audio.all_notes_off,
            set_sounding=self.arena.set_sounding,
            clear_sounding=self.arena.clear_sounding,
            on_edge=self.edges.append,
        )


@pytest.fixture
def audio() -> RecordingAudio:
    return RecordingAudio()


@pytest.fixture
def harness() -> ArbitratorHarness:
    return ArbitratorHarness()
