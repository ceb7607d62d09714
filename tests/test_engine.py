from __future__ import annotations

import logging
import re

import pytest

from dotpiano.core.activity_log import ActivityLogHandler, activity_logger
from dotpiano.core.events import (
    MidiNoteOff,
    MidiNoteOn,
    MidiPanic,
    PanicRequested,
    PointerCancel,
    PointerDown,
    PointerMove,
    PointerUp,
    ViewportChanged,
    VisibilityChanged,
)
from dotpiano.core.key_height import ViewportMetrics
from dotpiano.core.settings_store import (
    DESKTOP_RANGE_STORAGE_KEY,
    KEY_HEIGHT_STORAGE_KEY,
    TONE_STORAGE_KEY,
    VOLUME_STORAGE_KEY,
    MemoryStore,
)
from dotpiano.engine import PianoEngine


class Scheduler:
    def __init__(self) -> None:
        self.steps: list[tuple[int, object]] = []

    def __call__(self, delay_ms: int, callback) -> None:
        self.steps.append((delay_ms, callback))

    def run_all(self) -> None:
        for _, callback in sorted(self.steps, key=lambda step: step[0]):
            callback()


@pytest.fixture
def activity():
    handler = ActivityLogHandler()
    activity_logger.addHandler(handler)
    yield handler
    activity_logger.removeHandler(handler)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def scheduler() -> Scheduler:
    return Scheduler()


@pytest.fixture
def engine(audio, store, scheduler) -> PianoEngine:
    piano = PianoEngine(audio, store=store, schedule=scheduler, metrics=ViewportMetrics(height=800))
    piano.dispatch(ViewportChanged(width=1024))
    return piano


def _handle(engine: PianoEngine, note: int, slot: int = 0):
    for handle in engine.arena.handles_for(note):
        if engine.arena.visual(handle).slot == slot:
            return handle
    raise AssertionError(f"no visual for {note} in slot {slot}")


def test_viewport_event_builds_desktop_tiers(engine) -> None:
    assert engine.viewport.device_class == "desktop"
    visible = [view for view in engine.viewport.tier_views if not view.hidden]
    assert [(v.layout.note_range.start, v.layout.note_range.end) for v in visible] == [(72, 96), (60, 84)]


def test_pointer_input_waits_for_unlock(engine, audio) -> None:
    engine.dispatch(PointerDown(1, _handle(engine, 60, slot=1)))
    assert audio.note_calls() == []
    assert audio.ready_calls == 0

    assert engine.unlock() is True
    assert engine.unlock() is False
    assert audio.ready_calls == 1

    engine.dispatch(PointerDown(1, _handle(engine, 60, slot=1)))
    assert audio.note_calls() == [("start", 60, 0.9)]


def test_unlock_survives_audio_failure(engine, audio, caplog) -> None:
    audio.fail_ready = True
    with caplog.at_level(logging.WARNING, logger="dotpiano.engine"):
        assert engine.unlock() is True

    assert engine.is_unlocked
    assert "no audio device" in caplog.text


def test_midi_and_pointer_share_one_note(engine, audio) -> None:
    engine.unlock()
    engine.dispatch(MidiNoteOn(60, 0.8))
    engine.dispatch(PointerDown(1, _handle(engine, 60, slot=1)))
    engine.dispatch(MidiNoteOff(60))
    assert engine.arbitrator.is_sounding(60)
    engine.dispatch(PointerUp(1))

    assert audio.note_calls() == [("start", 60, 0.8), ("stop", 60)]


def test_pointer_glide_uses_hit_test(engine, audio) -> None:
    engine.unlock()
    target = _handle(engine, 62, slot=1)
    engine.set_hit_test(lambda x, y: target if x > 100 else None)

    engine.dispatch(PointerDown(3, _handle(engine, 60, slot=1)))
    engine.dispatch(PointerMove(3, 150, 10))
    engine.dispatch(PointerCancel(3))

    assert audio.note_calls() == [("start", 60, 0.9), ("stop", 60), ("start", 62, 0.9), ("stop", 62)]


def test_panic_releases_everything(engine, audio, activity) -> None:
    engine.dispatch(MidiNoteOn(60, 0.8))
    engine.dispatch(MidiNoteOn(67, 0.8))

    engine.dispatch(PanicRequested())

    assert engine.held_notes_text() == "-"
    assert audio.note_calls()[-1] == ("all_off",)
    assert re.fullmatch(r"\d\d:\d\d:\d\d PANIC all notes off", activity.lines[-1])

    engine.dispatch(MidiNoteOn(60, 0.5))
    engine.dispatch(MidiPanic())
    assert engine.arbitrator.held_notes() == []


def test_visibility_loss_clears_pointers(engine, audio) -> None:
    engine.unlock()
    engine.dispatch(PointerDown(1, _handle(engine, 64, slot=1)))

    engine.dispatch(VisibilityChanged(hidden=False))
    assert engine.arbitrator.is_sounding(64)

    engine.dispatch(VisibilityChanged(hidden=True))
    assert engine.tracker.pointer_notes == {}
    assert engine.arbitrator.held_notes() == []
    engine.dispatch(PointerUp(1))
    assert audio.note_calls()[-1] == ("all_off",)


def test_flip_to_compact_releases_held_notes(engine, audio) -> None:
    engine.unlock()
    old_handle = _handle(engine, 64, slot=1)
    engine.dispatch(MidiNoteOn(60, 0.8))
    engine.dispatch(PointerDown(1, old_handle))
    edges: list[tuple[str, int]] = []
    engine.arbitrator._on_edge = lambda edge: edges.append((edge.kind, edge.note))

    engine.dispatch(ViewportChanged(width=480))

    assert edges == [("off", 60), ("off", 64)]
    assert engine.viewport.device_class == "compact"
    assert engine.arena.note_for(old_handle) is None
    assert engine.tracker.pointer_notes == {}
    engine.dispatch(PointerUp(1))
    assert engine.arbitrator.held_notes() == []


def test_resize_within_desktop_keeps_layout(engine) -> None:
    count = engine.viewport.rebuild_count
    engine.dispatch(ViewportChanged(width=1300))

    assert engine.viewport.rebuild_count == count


def test_sound_check_schedules_arpeggio(engine, audio, scheduler) -> None:
    assert engine.start_sound_check() == 12
    assert audio.ready_calls == 1
    assert [delay for delay, _ in scheduler.steps] == sorted(
        [i * 220 for i in range(6)] + [i * 220 + 180 for i in range(6)]
    )

    scheduler.run_all()

    starts = [call for call in audio.note_calls() if call[0] == "start"]
    assert starts == [("start", note, 0.9) for note in (60, 64, 67, 72, 76, 79)]
    assert engine.arbitrator.held_notes() == []


def test_sound_check_does_not_cut_midi_hold(engine, audio, scheduler) -> None:
    engine.dispatch(MidiNoteOn(64, 0.7))
    engine.start_sound_check()
    scheduler.run_all()

    assert engine.arbitrator.sources_for(64) == frozenset({"midi"})


def test_held_notes_text_and_listener(engine) -> None:
    seen: list[str] = []
    engine.set_held_notes_listener(seen.append)

    engine.dispatch(MidiNoteOn(64, 0.8))
    engine.dispatch(MidiNoteOn(60, 0.8))

    assert engine.held_notes_text() == "C4 E4"
    assert seen == ["E4", "C4 E4"]


def test_activity_lines(engine, activity) -> None:
    engine.unlock()
    engine.dispatch(MidiNoteOn(60, 0.8))
    engine.dispatch(MidiNoteOff(60))
    engine.dispatch(PointerDown(5, _handle(engine, 62, slot=1)))

    lines = [line[9:] for line in activity.lines]
    assert lines == [
        "NOTE ON C4 vel=0.80 src=midi",
        "NOTE OFF C4 src=midi",
        "NOTE ON D4 vel=0.90 src=ptr",
    ]


def test_audio_failures_do_not_break_state(engine, audio, caplog) -> None:
    def broken(*_args) -> None:
        raise RuntimeError("synth gone")

    audio.start_note = broken
    with caplog.at_level(logging.WARNING, logger="dotpiano.engine"):
        engine.dispatch(MidiNoteOn(60, 0.8))

    assert engine.arbitrator.is_sounding(60)
    assert "synth gone" in caplog.text


def test_unknown_event_is_rejected(engine) -> None:
    with pytest.raises(TypeError):
        engine.dispatch(object())


def test_volume_and_mute(engine, audio, store) -> None:
    assert engine.set_volume(0.4) == 0.4
    assert store.items[VOLUME_STORAGE_KEY] == "0.4"

    assert engine.toggle_mute() == 0.0
    assert engine.is_muted
    assert engine.toggle_mute() == 0.4
    assert ("volume", 0.4) in audio.calls
    assert engine.set_volume(7) == 1.0


def test_mute_restores_full_volume_when_none_remembered(audio) -> None:
    piano = PianoEngine(audio, store=MemoryStore({VOLUME_STORAGE_KEY: "0"}))

    assert piano.volume == 0.0
    assert piano.toggle_mute() == 1.0


def test_instrument_type(engine, audio, store) -> None:
    assert engine.set_instrument_type("organ") is True
    assert store.items[TONE_STORAGE_KEY] == "organ"
    assert ("instrument", "organ") in audio.calls

    assert engine.set_instrument_type("theremin") is False
    assert engine.instrument_type == "organ"


def test_desktop_range_and_octave_shift(engine, store) -> None:
    assert engine.set_desktop_range("c3c5") is True
    assert store.items[DESKTOP_RANGE_STORAGE_KEY] == "c3c5"
    assert engine.set_octave_shift(-1) is True

    visible = [view for view in engine.viewport.tier_views if not view.hidden]
    assert [(v.layout.note_range.start, v.layout.note_range.end) for v in visible] == [(60, 84), (36, 60)]


def test_settings_are_loaded_from_store(audio) -> None:
    store = MemoryStore(
        {
            TONE_STORAGE_KEY: "strings",
            VOLUME_STORAGE_KEY: "0.25",
            DESKTOP_RANGE_STORAGE_KEY: "c3c5",
            KEY_HEIGHT_STORAGE_KEY: "0.5",
        }
    )
    metrics = ViewportMetrics(height=800)
    piano = PianoEngine(audio, store=store, metrics=metrics)

    assert piano.instrument_type == "strings"
    assert piano.volume == 0.25
    assert piano.viewport.desktop_range == "c3c5"
    assert piano.key_height_px == 39

    piano.apply_stored_sound_settings()
    assert ("instrument", "strings") in audio.calls
    assert ("volume", 0.25) in audio.calls
    assert store.items[KEY_HEIGHT_STORAGE_KEY] == "39"


def test_key_height_is_clamped_and_persisted(engine, store) -> None:
    assert engine.set_key_height(10) == 30
    assert store.items[KEY_HEIGHT_STORAGE_KEY] == "30"
    assert engine.set_key_height(5000) == 70
    assert store.items[KEY_HEIGHT_STORAGE_KEY] == "70"
    assert engine.key_height_scale() == pytest.approx(70 / 77.6)


def test_shutdown_releases_and_closes(engine, audio) -> None:
    engine.dispatch(MidiNoteOn(60, 0.8))
    engine.shutdown()

    assert audio.calls[-2:] == [("all_off",), ("shutdown",)]
