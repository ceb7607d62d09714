from __future__ import annotations

import logging
from typing import Callable

from dotpiano.core.activity_log import activity_logger, format_note_event, format_panic
from dotpiano.core.audio_engine import AudioEngineProtocol
from dotpiano.core.config import (
    DEFAULT_TIER_OVERLAP,
    INSTRUMENT_PROGRAMS,
    MIDI_SOURCE,
    DEFAULT_NOTE_VELOCITY,
    SOUND_CHECK_SOURCE,
    SOUND_CHECK_VELOCITY,
    DesktopRangeChoice,
    TierOverlap,
)
from dotpiano.core.events import (
    InputEvent,
    MidiNoteOff,
    MidiNoteOn,
    MidiPanic,
    PanicRequested,
    PointerCancel,
    PointerDown,
    PointerMove,
    PointerUp,
    SoundCheckNoteOff,
    SoundCheckNoteOn,
    ViewportChanged,
    VisibilityChanged,
)
from dotpiano.core.key_arena import KeyHandle, KeyVisualArena
from dotpiano.core.key_height import ViewportMetrics, base_key_height, clamp_key_height, key_height_scale
from dotpiano.core.music_logic import note_label
from dotpiano.core.normalize import clamp_float
from dotpiano.core.settings_store import (
    KeyValueStore,
    MemoryStore,
    PianoSettings,
    load_piano_settings,
    save_desktop_range,
    save_instrument_type,
    save_key_height,
    save_volume,
)
from dotpiano.services.note_lifecycle import NoteArbitrator, NoteEdge
from dotpiano.services.pointer_gestures import HitTest, PointerGestureTracker
from dotpiano.services.sound_check import Schedule, SoundCheckService
from dotpiano.services.viewport import Defer, LayoutListener, ViewportAdapter

logger = logging.getLogger(__name__)

SoundingListener = Callable[[tuple[KeyHandle, ...], bool], None]
HeldNotesListener = Callable[[str], None]


def _schedule_now(_delay_ms: int, callback: Callable[[], None]) -> None:
    callback()


class PianoEngine:
    """Owns the keyboard state and processes input events in arrival order.

    Every input source (pointer, MIDI, sound check, viewport and visibility
    changes) reaches the arbitrator through :meth:`dispatch`, which runs each
    event to completion before returning.
    """

    def __init__(
        self,
        audio: AudioEngineProtocol,
        *,
        store: KeyValueStore | None = None,
        metrics: ViewportMetrics | None = None,
        defer: Defer | None = None,
        schedule: Schedule | None = None,
        overlap: TierOverlap = DEFAULT_TIER_OVERLAP,
        unlocked: bool = False,
    ) -> None:
        self.audio = audio
        self._store: KeyValueStore = store if store is not None else MemoryStore()
        self._metrics = metrics or ViewportMetrics(height=800.0)
        self._unlocked = bool(unlocked)
        self._viewport_width = 0.0
        self._on_sounding: SoundingListener | None = None
        self._on_held_notes: HeldNotesListener | None = None

        self.arena = KeyVisualArena(on_sounding_changed=self._notify_sounding)
        self.arbitrator = NoteArbitrator(
            start_sound=self._audio_start_safe,
            stop_sound=self._audio_stop_safe,
            silence_all=self._audio_all_off_safe,
            set_sounding=self.arena.set_sounding,
            clear_sounding=self.arena.clear_sounding,
            on_edge=self._on_edge,
        )
        self.tracker = PointerGestureTracker(
            self.arbitrator,
            self.arena,
            is_unlocked=lambda: self._unlocked,
        )
        self.viewport = ViewportAdapter(
            self.arbitrator,
            self.tracker,
            self.arena,
            defer=defer,
            overlap=overlap,
        )
        self.sound_check = SoundCheckService(schedule or _schedule_now)

        self.settings: PianoSettings = load_piano_settings(self._store, base_key_height(self._metrics))
        self.instrument_type = self.settings.instrument_type
        self.volume = self.settings.volume
        self._last_non_zero_volume = self.volume if self.volume > 0 else 1.0
        self.key_height_px = clamp_key_height(self.settings.key_height_px, self._metrics)
        self.viewport.desktop_range = self.settings.desktop_range

        self._handlers: dict[type, Callable[[object], None]] = {
            PointerDown: self._on_pointer_down,
            PointerMove: self._on_pointer_move,
            PointerUp: self._on_pointer_up,
            PointerCancel: self._on_pointer_cancel,
            MidiNoteOn: self._on_midi_note_on,
            MidiNoteOff: self._on_midi_note_off,
            MidiPanic: self._on_panic,
            PanicRequested: self._on_panic,
            SoundCheckNoteOn: self._on_sound_check_note_on,
            SoundCheckNoteOff: self._on_sound_check_note_off,
            ViewportChanged: self._on_viewport_changed,
            VisibilityChanged: self._on_visibility_changed,
        }

    def set_layout_listener(self, listener: LayoutListener | None) -> None:
        self.viewport.set_layout_listener(listener)

    def set_sounding_listener(self, listener: SoundingListener | None) -> None:
        self._on_sounding = listener

    def set_held_notes_listener(self, listener: HeldNotesListener | None) -> None:
        self._on_held_notes = listener

    def set_hit_test(self, hit_test: HitTest | None) -> None:
        self.tracker.set_hit_test(hit_test)

    def apply_stored_sound_settings(self) -> None:
        self._safe_audio_call(lambda: self.audio.set_instrument_type(self.instrument_type))
        self._safe_audio_call(lambda: self.audio.set_master_volume(self.volume))
        save_instrument_type(self._store, self.instrument_type)
        save_desktop_range(self._store, self.viewport.desktop_range)
        save_key_height(self._store, self.key_height_px)

    @property
    def is_unlocked(self) -> bool:
        return self._unlocked

    def ensure_audio_ready(self) -> bool:
        try:
            self.audio.ensure_audio_ready()
        except Exception as exc:
            logger.warning("Audio output could not be started: %s", exc)
            return False
        return True

    def unlock(self) -> bool:
        if self._unlocked:
            return False
        self.ensure_audio_ready()
        self._unlocked = True
        return True

    def dispatch(self, event: InputEvent) -> None:
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"Unsupported input event: {event!r}")
        handler(event)

    def _on_pointer_down(self, event: PointerDown) -> None:
        self.tracker.gesture_start(event.pointer_id, event.handle)

    def _on_pointer_move(self, event: PointerMove) -> None:
        self.tracker.gesture_move(event.pointer_id, event.x, event.y)

    def _on_pointer_up(self, event: PointerUp) -> None:
        self.tracker.gesture_end(event.pointer_id)

    def _on_pointer_cancel(self, event: PointerCancel) -> None:
        self.tracker.gesture_cancel(event.pointer_id)

    def _on_midi_note_on(self, event: MidiNoteOn) -> None:
        velocity = clamp_float(event.velocity, 0.0, 1.0, default=DEFAULT_NOTE_VELOCITY)
        self.arbitrator.note_on(event.note, MIDI_SOURCE, velocity)

    def _on_midi_note_off(self, event: MidiNoteOff) -> None:
        self.arbitrator.note_off(event.note, MIDI_SOURCE)

    def _on_sound_check_note_on(self, event: SoundCheckNoteOn) -> None:
        self.arbitrator.note_on(event.note, SOUND_CHECK_SOURCE, event.velocity)

    def _on_sound_check_note_off(self, event: SoundCheckNoteOff) -> None:
        self.arbitrator.note_off(event.note, SOUND_CHECK_SOURCE)

    def _on_panic(self, _event: object) -> None:
        self.panic()

    def _on_viewport_changed(self, event: ViewportChanged) -> None:
        self._viewport_width = float(event.width)
        self.viewport.queue_refresh(self.viewport_width, force=event.force)

    def _on_visibility_changed(self, event: VisibilityChanged) -> None:
        if not event.hidden:
            return
        self.tracker.reset()
        self.panic()

    def viewport_width(self) -> float:
        return self._viewport_width

    def panic(self) -> list[int]:
        released = self.arbitrator.all_off()
        activity_logger.info(format_panic())
        self._notify_held_notes()
        return released

    def held_notes_text(self) -> str:
        notes = self.arbitrator.held_notes()
        return " ".join(note_label(note) for note in notes) if notes else "-"

    def start_sound_check(self) -> int:
        self.ensure_audio_ready()
        return self.sound_check.run(
            note_on=lambda note: self.dispatch(SoundCheckNoteOn(note, SOUND_CHECK_VELOCITY)),
            note_off=lambda note: self.dispatch(SoundCheckNoteOff(note)),
        )

    def set_instrument_type(self, name: str) -> bool:
        key = str(name or "").strip()
        if key not in INSTRUMENT_PROGRAMS:
            return False
        self.instrument_type = key
        self._safe_audio_call(lambda: self.audio.set_instrument_type(key))
        save_instrument_type(self._store, key)
        return True

    def set_volume(self, value: float, persist: bool = True) -> float:
        clamped = clamp_float(value, 0.0, 1.0, default=self.volume)
        self.volume = clamped
        if clamped > 0:
            self._last_non_zero_volume = clamped
        self._safe_audio_call(lambda: self.audio.set_master_volume(clamped))
        if persist:
            save_volume(self._store, clamped)
        return clamped

    def toggle_mute(self) -> float:
        if self.volume > 0:
            return self.set_volume(0.0)
        return self.set_volume(self._last_non_zero_volume if self._last_non_zero_volume > 0 else 1.0)

    @property
    def is_muted(self) -> bool:
        return self.volume <= 0

    def set_octave_shift(self, shift: int) -> bool:
        return self.viewport.set_octave_shift(shift, self.viewport_width)

    def set_desktop_range(self, choice: DesktopRangeChoice) -> bool:
        changed = self.viewport.set_desktop_range(choice, self.viewport_width)
        save_desktop_range(self._store, self.viewport.desktop_range)
        return changed

    def set_metrics(self, metrics: ViewportMetrics) -> int:
        self._metrics = metrics
        return self.set_key_height(self.key_height_px)

    def set_key_height(self, value: float | None) -> int:
        snapped = clamp_key_height(value, self._metrics)
        changed = snapped != self.key_height_px
        self.key_height_px = snapped
        if changed or value != snapped:
            save_key_height(self._store, snapped)
        return snapped

    def key_height_scale(self) -> float:
        return key_height_scale(self.key_height_px, self._metrics)

    def _on_edge(self, edge: NoteEdge) -> None:
        if edge.source is not None:
            kind = "NOTE ON" if edge.kind == "on" else "NOTE OFF"
            activity_logger.info(format_note_event(kind, edge.note, edge.source, edge.velocity))
        self._notify_held_notes()

    def _notify_held_notes(self) -> None:
        if self._on_held_notes is not None:
            self._on_held_notes(self.held_notes_text())

    def _notify_sounding(self, handles: tuple[KeyHandle, ...], sounding: bool) -> None:
        if self._on_sounding is not None:
            self._on_sounding(handles, sounding)

    def _audio_start_safe(self, note: int, velocity: float) -> None:
        self._safe_audio_call(lambda: self.audio.start_note(note, velocity))

    def _audio_stop_safe(self, note: int) -> None:
        self._safe_audio_call(lambda: self.audio.stop_note(note))

    def _audio_all_off_safe(self) -> None:
        self._safe_audio_call(self.audio.all_notes_off)

    @staticmethod
    def _safe_call_logged(action: Callable[[], None], what: str) -> None:
        try:
            action()
        except Exception as exc:
            logger.warning("%s failed: %s", what, exc)

    def _safe_audio_call(self, action: Callable[[], None]) -> None:
        self._safe_call_logged(action, "Audio call")

    def shutdown(self) -> None:
        self._safe_call_logged(self.arbitrator.all_off, "Releasing notes")
        self._safe_call_logged(self.audio.shutdown, "Audio shutdown")
