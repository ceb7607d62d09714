from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from PySide6.QtCore import QObject, Qt, QTimer, Signal
from PySide6.QtWidgets import QApplication

from dotpiano.core.activity_log import ActivityLogHandler, activity_logger
from dotpiano.core.audio_engine import AudioEngineProtocol, FluidSynthAudioEngine, SilentAudioEngine
from dotpiano.core.config import APP_NAME, DEFAULT_TIER_OVERLAP, DeviceClass, TierOverlap
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
from dotpiano.core.key_arena import KeyHandle
from dotpiano.core.key_height import ViewportMetrics, key_height_bounds
from dotpiano.core.midi_input import MidiInputManager
from dotpiano.core.runtime_paths import find_default_soundfont
from dotpiano.core.settings_store import KeyValueStore, JsonFileStore
from dotpiano.core.theme import DEFAULT_THEME
from dotpiano.engine import PianoEngine
from dotpiano.services.midi_routing import MidiRoutingService
from dotpiano.services.viewport import TierView
from dotpiano.ui.main_window import MainWindow

logger = logging.getLogger(__name__)

AudioFactory = Callable[[], AudioEngineProtocol]
MidiManagerFactory = Callable[..., MidiInputManager]


class PianoAppController(QObject):
    _midiNoteOnReady = Signal(int, float)
    _midiNoteOffReady = Signal(int)
    _midiPanicReady = Signal()
    _midiStatusReady = Signal(str)

    def __init__(
        self,
        app: QApplication,
        audio_factory: AudioFactory | None = None,
        midi_manager_factory: MidiManagerFactory | None = None,
        store: KeyValueStore | None = None,
        soundfont_path: Path | None = None,
        overlap: TierOverlap = DEFAULT_TIER_OVERLAP,
        show_start_overlay: bool = True,
    ) -> None:
        super().__init__()
        self._app = app
        self._soundfont_path = soundfont_path
        self._audio_factory = audio_factory or self._default_audio_factory
        self._midi_manager_factory = midi_manager_factory or MidiInputManager
        self._is_shutdown = False

        self.audio_engine: AudioEngineProtocol = SilentAudioEngine()
        self.audio_available = False
        self._init_audio_engine()

        self.window = MainWindow(DEFAULT_THEME, show_start_overlay=show_start_overlay)
        self.engine = PianoEngine(
            self.audio_engine,
            store=store if store is not None else JsonFileStore(),
            metrics=ViewportMetrics(height=float(self.window.height())),
            defer=lambda callback: QTimer.singleShot(0, callback),
            schedule=lambda delay_ms, callback: QTimer.singleShot(int(delay_ms), callback),
            overlap=overlap,
            unlocked=not show_start_overlay,
        )
        if not show_start_overlay:
            self.engine.ensure_audio_ready()

        self._activity_handler = ActivityLogHandler(listener=self.window.append_activity)
        activity_logger.addHandler(self._activity_handler)

        self._midiNoteOnReady.connect(self._on_midi_note_on)
        self._midiNoteOffReady.connect(self._on_midi_note_off)
        self._midiPanicReady.connect(self._on_midi_panic)
        self._midiStatusReady.connect(self.window.set_midi_status)
        self._midi_manager = self._midi_manager_factory(
            self._queue_midi_note_on,
            self._queue_midi_note_off,
            self._queue_midi_panic,
            status_sink=self._queue_midi_status,
        )
        self._midi_routing = MidiRoutingService(self._midi_manager)

        self.engine.set_layout_listener(self._on_layout)
        self.engine.set_sounding_listener(self._on_sounding_changed)
        self.engine.set_held_notes_listener(self.window.set_held_notes)
        self.engine.set_hit_test(self.window.handle_at_global)

        self._connect_signals()
        self._apply_ui_state_to_window()
        self.engine.apply_stored_sound_settings()
        self._app.aboutToQuit.connect(self.shutdown)

    def _default_audio_factory(self) -> AudioEngineProtocol:
        soundfont = self._soundfont_path or find_default_soundfont(APP_NAME)
        return FluidSynthAudioEngine(soundfont)

    def _init_audio_engine(self) -> None:
        try:
            self.audio_engine = self._audio_factory()
            self.audio_available = not isinstance(self.audio_engine, SilentAudioEngine)
        except Exception as exc:
            logger.warning("Audio engine unavailable, continuing without sound: %s", exc)
            self.audio_engine = SilentAudioEngine()
            self.audio_available = False

    def _connect_signals(self) -> None:
        window = self.window
        window.pointerPressed.connect(self._on_pointer_pressed)
        window.pointerMoved.connect(self._on_pointer_moved)
        window.pointerReleased.connect(lambda pointer_id: self.engine.dispatch(PointerUp(pointer_id)))
        window.pointerCanceled.connect(lambda pointer_id: self.engine.dispatch(PointerCancel(pointer_id)))
        window.viewportResized.connect(self._on_viewport_resized)
        window.visibilityLost.connect(self._on_visibility_lost)
        window.startRequested.connect(self._on_start_requested)
        window.instrumentChanged.connect(self.engine.set_instrument_type)
        window.volumeChanged.connect(self.engine.set_volume)
        window.muteToggled.connect(self._on_mute_toggled)
        window.desktopRangeChanged.connect(self.engine.set_desktop_range)
        window.octaveShiftChanged.connect(self.engine.set_octave_shift)
        window.keyHeightChanged.connect(self._on_key_height_changed)
        window.allNotesOffRequested.connect(lambda: self.engine.dispatch(PanicRequested()))
        window.soundCheckRequested.connect(self.engine.start_sound_check)
        window.midiEnableRequested.connect(self._on_midi_enable_requested)
        window.midiInputDeviceChanged.connect(self._midi_routing.apply_input_filter)
        window.midiChannelChanged.connect(self._midi_routing.apply_channel_filter)
        self._app.applicationStateChanged.connect(self._on_application_state_changed)

    def _apply_ui_state_to_window(self) -> None:
        self.window.set_instrument_type(self.engine.instrument_type)
        self.window.set_volume(self.engine.volume)
        self.window.set_desktop_range(self.engine.viewport.desktop_range)
        self.window.set_octave_shift(self.engine.viewport.octave_shift)
        self.window.set_held_notes(self.engine.held_notes_text())
        self.window.set_activity_lines(list(self._activity_handler.lines))
        self._sync_key_height_control()

    def _queue_midi_note_on(self, note: int, velocity: float) -> None:
        self._midiNoteOnReady.emit(int(note), float(velocity))

    def _queue_midi_note_off(self, note: int) -> None:
        self._midiNoteOffReady.emit(int(note))

    def _queue_midi_panic(self) -> None:
        self._midiPanicReady.emit()

    def _queue_midi_status(self, text: str) -> None:
        self._midiStatusReady.emit(str(text))

    def _on_midi_note_on(self, note: int, velocity: float) -> None:
        self.engine.dispatch(MidiNoteOn(note, velocity))

    def _on_midi_note_off(self, note: int) -> None:
        self.engine.dispatch(MidiNoteOff(note))

    def _on_midi_panic(self) -> None:
        self.engine.dispatch(MidiPanic())

    def _on_midi_enable_requested(self) -> None:
        self.engine.ensure_audio_ready()
        self._midi_routing.enable(
            set_devices=self.window.set_midi_devices,
            show_warning=self.window.show_warning,
        )
        self.window.set_midi_enabled(True)

    def _on_pointer_pressed(self, pointer_id: int, handle: object) -> None:
        self.engine.dispatch(PointerDown(pointer_id, handle if isinstance(handle, KeyHandle) else None))

    def _on_pointer_moved(self, pointer_id: int, x: float, y: float) -> None:
        self.engine.dispatch(PointerMove(pointer_id, x, y))

    def _on_start_requested(self) -> None:
        self.engine.unlock()
        self.window.hide_start_overlay()

    def _on_mute_toggled(self) -> None:
        self.window.set_volume(self.engine.toggle_mute())

    def _on_viewport_resized(self, width: int, height: int) -> None:
        self.engine.set_metrics(ViewportMetrics(height=float(height)))
        self._sync_key_height_control()
        self.engine.dispatch(ViewportChanged(width=float(width)))

    def _on_key_height_changed(self, value: int) -> None:
        self.engine.set_key_height(value)
        self._sync_key_height_control()

    def _sync_key_height_control(self) -> None:
        minimum, maximum = key_height_bounds(ViewportMetrics(height=float(self.window.height())))
        self.window.set_key_height(
            self.engine.key_height_px,
            minimum,
            maximum,
            compact=self.engine.viewport.device_class == "compact",
        )

    def _on_visibility_lost(self) -> None:
        if self._is_shutdown:
            return
        self.engine.dispatch(VisibilityChanged(hidden=True))

    def _on_application_state_changed(self, state) -> None:
        if state != Qt.ApplicationState.ApplicationActive:
            self._on_visibility_lost()

    def _on_layout(self, device_class: DeviceClass, views: list[TierView]) -> None:
        self.window.apply_tier_views(device_class, views, self.engine.key_height_px)
        self._sync_key_height_control()

    def _on_sounding_changed(self, handles: tuple[KeyHandle, ...], sounding: bool) -> None:
        by_slot: dict[int, list[KeyHandle]] = {}
        for handle in handles:
            visual = self.engine.arena.visual(handle)
            if visual is not None:
                by_slot.setdefault(visual.slot, []).append(handle)
        for slot, slot_handles in by_slot.items():
            self.window.set_sounding(slot, tuple(slot_handles), sounding)

    @staticmethod
    def _safe_call(action: Callable[[], None]) -> None:
        try:
            action()
        except Exception as exc:
            logger.debug("Shutdown step failed: %s", exc)

    def shutdown(self) -> None:
        if self._is_shutdown:
            return
        self._is_shutdown = True
        self._safe_call(self._midi_manager.close)
        self._safe_call(self.engine.shutdown)
        self._safe_call(lambda: activity_logger.removeHandler(self._activity_handler))

    def run(self) -> None:
        self.window.show()
