from __future__ import annotations

from PySide6.QtCore import QEvent, QPointF, Qt, Signal
from PySide6.QtWidgets import (
    QButtonGroup,
    QComboBox,
    QFrame,
    QGridLayout,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QMessageBox,
    QPlainTextEdit,
    QPushButton,
    QSlider,
    QVBoxLayout,
    QWidget,
)

from dotpiano.core.config import (
    ACTIVITY_LOG_MAX_LINES,
    APP_NAME,
    DESKTOP_RANGE_LABELS,
    INSTRUMENT_LABELS,
    OCTAVE_SHIFT_MAX,
    OCTAVE_SHIFT_MIN,
    TIER_SLOT_COUNT,
    DeviceClass,
)
from dotpiano.core.key_arena import KeyHandle
from dotpiano.core.midi_input import ALL_CHANNELS, ALL_INPUTS
from dotpiano.core.theme import ThemePalette
from dotpiano.services.viewport import TierView, require_tier_slots
from dotpiano.ui.piano_widget import TierKeyboardWidget


# QButtonGroup reserves -1 for automatic ids.
def octave_button_id(shift: int) -> int:
    return int(shift) - OCTAVE_SHIFT_MIN


def octave_shift_for_id(button_id: int) -> int:
    return int(button_id) + OCTAVE_SHIFT_MIN


class MainWindow(QMainWindow):
    instrumentChanged = Signal(str)
    volumeChanged = Signal(float)
    muteToggled = Signal()
    desktopRangeChanged = Signal(str)
    octaveShiftChanged = Signal(int)
    keyHeightChanged = Signal(int)
    allNotesOffRequested = Signal()
    soundCheckRequested = Signal()
    midiEnableRequested = Signal()
    midiInputDeviceChanged = Signal(str)
    midiChannelChanged = Signal(str)
    startRequested = Signal()
    viewportResized = Signal(int, int)
    visibilityLost = Signal()
    pointerPressed = Signal(int, object)
    pointerMoved = Signal(int, float, float)
    pointerReleased = Signal(int)
    pointerCanceled = Signal(int)

    def __init__(self, theme: ThemePalette, *, show_start_overlay: bool = True) -> None:
        super().__init__()
        self.theme = theme
        self.setWindowTitle(APP_NAME)
        self.tier_widgets: dict[int, TierKeyboardWidget] = {}
        self._build_ui()
        self._tiers = require_tier_slots(self.tier_widgets, TIER_SLOT_COUNT)
        for tier in self._tiers:
            tier.pointerPressed.connect(self.pointerPressed.emit)
            tier.pointerMoved.connect(self.pointerMoved.emit)
            tier.pointerReleased.connect(self.pointerReleased.emit)
            tier.pointerCanceled.connect(self.pointerCanceled.emit)
        self._apply_style()
        self.start_overlay.setVisible(bool(show_start_overlay))
        self.resize(1100, 760)

    def _build_ui(self) -> None:
        root = QWidget(self)
        self.setCentralWidget(root)

        outer = QVBoxLayout(root)
        outer.setContentsMargins(12, 12, 12, 12)
        outer.setSpacing(10)

        self.keyboard_panel = QFrame(root)
        self.keyboard_panel.setObjectName("keyboardPanel")
        keyboard_layout = QVBoxLayout(self.keyboard_panel)
        keyboard_layout.setContentsMargins(6, 6, 6, 6)
        keyboard_layout.setSpacing(4)
        for slot in range(TIER_SLOT_COUNT):
            tier = TierKeyboardWidget(slot, self.theme, self.keyboard_panel)
            tier.setVisible(False)
            keyboard_layout.addWidget(tier)
            self.tier_widgets[slot] = tier
        keyboard_layout.addStretch(0)
        outer.addWidget(self.keyboard_panel, 1)

        self._build_controls(root, outer)
        self._build_readouts(root, outer)
        self._build_start_overlay(root)

    def _build_controls(self, parent: QWidget, outer: QVBoxLayout) -> None:
        card = QFrame(parent)
        card.setObjectName("controlsCard")
        grid = QGridLayout(card)
        grid.setContentsMargins(8, 6, 8, 6)
        grid.setHorizontalSpacing(8)
        grid.setVerticalSpacing(8)

        self.instrument_combo = QComboBox(card)
        for instrument_type, label in INSTRUMENT_LABELS.items():
            self.instrument_combo.addItem(label, instrument_type)
        self.instrument_combo.currentIndexChanged.connect(self._on_instrument_index_changed)

        self.volume_slider = QSlider(Qt.Horizontal, card)
        self.volume_slider.setRange(0, 100)
        self.volume_slider.valueChanged.connect(self._on_volume_value_changed)
        self.volume_value = QLabel("100%", card)
        self.mute_button = QPushButton("Mute", card)
        self.mute_button.setObjectName("actionButton")
        self.mute_button.clicked.connect(self.muteToggled.emit)

        self.range_combo = QComboBox(card)
        for choice, label in DESKTOP_RANGE_LABELS.items():
            self.range_combo.addItem(label, choice)
        self.range_combo.currentIndexChanged.connect(self._on_range_index_changed)

        self.octave_group = QButtonGroup(card)
        self.octave_group.setExclusive(True)
        octave_row = QWidget(card)
        octave_layout = QHBoxLayout(octave_row)
        octave_layout.setContentsMargins(0, 0, 0, 0)
        octave_layout.setSpacing(4)
        for shift in range(OCTAVE_SHIFT_MIN, OCTAVE_SHIFT_MAX + 1):
            button = QPushButton(f"{shift:+d}" if shift else "0", octave_row)
            button.setObjectName("octaveButton")
            button.setCheckable(True)
            button.setChecked(shift == 0)
            self.octave_group.addButton(button, octave_button_id(shift))
            octave_layout.addWidget(button)
        self.octave_group.idClicked.connect(
            lambda button_id: self.octaveShiftChanged.emit(octave_shift_for_id(button_id))
        )

        self.key_height_slider = QSlider(Qt.Horizontal, card)
        self.key_height_slider.setRange(30, 120)
        self.key_height_slider.valueChanged.connect(self._on_key_height_value_changed)
        self.key_height_value = QLabel("", card)

        self.all_notes_off_button = QPushButton("All Notes OFF", card)
        self.all_notes_off_button.setObjectName("actionButton")
        self.all_notes_off_button.clicked.connect(self.allNotesOffRequested.emit)
        self.sound_check_button = QPushButton("Sound Check", card)
        self.sound_check_button.setObjectName("actionButton")
        self.sound_check_button.clicked.connect(self.soundCheckRequested.emit)

        self.midi_enable_button = QPushButton("Enable MIDI", card)
        self.midi_enable_button.setObjectName("actionButton")
        self.midi_enable_button.clicked.connect(self.midiEnableRequested.emit)
        self.midi_input_combo = QComboBox(card)
        self.midi_input_combo.addItem("All inputs", ALL_INPUTS)
        self.midi_input_combo.setEnabled(False)
        self.midi_input_combo.currentIndexChanged.connect(self._on_midi_input_index_changed)
        self.midi_channel_combo = QComboBox(card)
        self.midi_channel_combo.addItem("All channels", ALL_CHANNELS)
        for channel in range(1, 17):
            self.midi_channel_combo.addItem(f"Channel {channel}", str(channel))
        self.midi_channel_combo.setEnabled(False)
        self.midi_channel_combo.currentIndexChanged.connect(self._on_midi_channel_index_changed)
        self.midi_status_label = QLabel("MIDI: off", card)
        self.midi_status_label.setObjectName("statusLabel")

        grid.addWidget(QLabel("Instrument", card), 0, 0)
        grid.addWidget(self.instrument_combo, 0, 1)
        grid.addWidget(QLabel("Volume", card), 0, 2)
        grid.addWidget(self.volume_slider, 0, 3)
        grid.addWidget(self.volume_value, 0, 4)
        grid.addWidget(self.mute_button, 0, 5)
        grid.addWidget(QLabel("Range", card), 1, 0)
        grid.addWidget(self.range_combo, 1, 1)
        grid.addWidget(QLabel("Octave", card), 1, 2)
        grid.addWidget(octave_row, 1, 3)
        grid.addWidget(self.all_notes_off_button, 1, 4)
        grid.addWidget(self.sound_check_button, 1, 5)
        grid.addWidget(QLabel("Key height", card), 2, 0)
        grid.addWidget(self.key_height_slider, 2, 1, 1, 3)
        grid.addWidget(self.key_height_value, 2, 4)
        grid.addWidget(self.midi_enable_button, 3, 0)
        grid.addWidget(self.midi_input_combo, 3, 1)
        grid.addWidget(self.midi_channel_combo, 3, 2, 1, 2)
        grid.addWidget(self.midi_status_label, 3, 4, 1, 2)
        outer.addWidget(card)

    def _build_readouts(self, parent: QWidget, outer: QVBoxLayout) -> None:
        self.held_notes_label = QLabel("Held: -", parent)
        self.held_notes_label.setObjectName("heldNotesLabel")
        outer.addWidget(self.held_notes_label)

        self.activity_view = QPlainTextEdit(parent)
        self.activity_view.setObjectName("activityLog")
        self.activity_view.setReadOnly(True)
        self.activity_view.setMaximumBlockCount(ACTIVITY_LOG_MAX_LINES)
        self.activity_view.setFixedHeight(120)
        outer.addWidget(self.activity_view)

    def _build_start_overlay(self, parent: QWidget) -> None:
        self.start_overlay = QFrame(parent)
        self.start_overlay.setObjectName("startOverlay")
        layout = QVBoxLayout(self.start_overlay)
        layout.addStretch(1)
        self.start_button = QPushButton("Tap to start", self.start_overlay)
        self.start_button.setObjectName("startButton")
        self.start_button.clicked.connect(self.startRequested.emit)
        layout.addWidget(self.start_button, 0, Qt.AlignHCenter)
        layout.addStretch(1)
        self.start_overlay.raise_()

    def _apply_style(self) -> None:
        t = self.theme
        self.setStyleSheet(
            f"""
            QMainWindow, QWidget {{ background: {t.app_bg}; color: {t.text_primary}; }}
            QFrame#keyboardPanel, QFrame#controlsCard {{
                background: {t.panel_bg};
                border: 1px solid {t.border};
                border-radius: 6px;
            }}
            QLabel {{ background: transparent; color: {t.text_secondary}; }}
            QLabel#heldNotesLabel {{ color: {t.text_primary}; font-weight: 600; }}
            QPushButton#actionButton, QPushButton#octaveButton {{
                background: {t.panel_bg};
                border: 1px solid {t.border};
                border-radius: 4px;
                padding: 4px 10px;
            }}
            QPushButton#octaveButton:checked, QPushButton#actionButton:hover {{ border-color: {t.accent}; }}
            QPushButton#startButton {{
                background: {t.accent};
                color: {t.text_primary};
                border-radius: 6px;
                padding: 14px 28px;
                font-size: 18px;
            }}
            QPushButton#startButton:hover {{ background: {t.accent_hover}; }}
            QFrame#startOverlay {{ background: rgba(10, 10, 11, 210); }}
            QPlainTextEdit#activityLog {{
                background: {t.panel_bg};
                border: 1px solid {t.border};
                font-family: Consolas, monospace;
            }}
            """
        )

    def handle_at_global(self, x: float, y: float) -> KeyHandle | None:
        point = QPointF(x, y)
        for tier in self._tiers:
            if not tier.isVisible():
                continue
            local = tier.mapFromGlobal(point)
            if tier.rect().contains(local.toPoint()):
                return tier.handle_at(local)
        return None

    def apply_tier_views(self, device_class: DeviceClass, views: list[TierView], key_height: int | None) -> None:
        for view in views:
            tier = self._tiers[view.slot]
            tier.set_view(view)
            tier.set_row_height(key_height if device_class == "compact" else None)
        compact = device_class == "compact"
        self.range_combo.setEnabled(not compact)
        for button in self.octave_group.buttons():
            button.setEnabled(not compact)
        self.key_height_slider.setEnabled(compact)

    def set_sounding(self, slot: int, handles: tuple[KeyHandle, ...], sounding: bool) -> None:
        self._tiers[slot].set_sounding(handles, sounding)

    def set_key_height(self, value: int, minimum: int, maximum: int, compact: bool) -> None:
        self.key_height_slider.blockSignals(True)
        self.key_height_slider.setRange(minimum, maximum)
        self.key_height_slider.setValue(value)
        self.key_height_slider.blockSignals(False)
        self.key_height_value.setText(f"{value}px")
        if compact:
            for tier in self._tiers:
                tier.set_row_height(value)

    def set_instrument_type(self, instrument_type: str) -> None:
        index = self.instrument_combo.findData(instrument_type)
        if index >= 0:
            self.instrument_combo.blockSignals(True)
            self.instrument_combo.setCurrentIndex(index)
            self.instrument_combo.blockSignals(False)

    def set_volume(self, volume: float) -> None:
        percent = int(round(max(0.0, min(1.0, float(volume))) * 100))
        self.volume_slider.blockSignals(True)
        self.volume_slider.setValue(percent)
        self.volume_slider.blockSignals(False)
        self.volume_value.setText(f"{percent}%")
        self.mute_button.setText("Unmute" if percent == 0 else "Mute")

    def set_desktop_range(self, choice: str) -> None:
        index = self.range_combo.findData(choice)
        if index >= 0:
            self.range_combo.blockSignals(True)
            self.range_combo.setCurrentIndex(index)
            self.range_combo.blockSignals(False)

    def set_octave_shift(self, shift: int) -> None:
        button = self.octave_group.button(octave_button_id(shift))
        if button is not None:
            button.setChecked(True)

    def set_midi_enabled(self, enabled: bool) -> None:
        self.midi_enable_button.setEnabled(not enabled)
        self.midi_input_combo.setEnabled(enabled)
        self.midi_channel_combo.setEnabled(enabled)

    def set_midi_devices(self, devices: list[str], current: str) -> None:
        self.midi_input_combo.blockSignals(True)
        self.midi_input_combo.clear()
        self.midi_input_combo.addItem("All inputs", ALL_INPUTS)
        for device in devices:
            self.midi_input_combo.addItem(device, device)
        index = self.midi_input_combo.findData(current)
        self.midi_input_combo.setCurrentIndex(index if index >= 0 else 0)
        self.midi_input_combo.blockSignals(False)

    def set_midi_status(self, text: str) -> None:
        self.midi_status_label.setText(f"MIDI: {text}")

    def set_held_notes(self, text: str) -> None:
        self.held_notes_label.setText(f"Held: {text}")

    def set_activity_lines(self, lines: list[str]) -> None:
        self.activity_view.setPlainText("\n".join(lines))

    def append_activity(self, line: str) -> None:
        self.activity_view.appendPlainText(line)

    def hide_start_overlay(self) -> None:
        self.start_overlay.hide()

    def show_warning(self, title: str, text: str) -> None:
        QMessageBox.warning(self, title, text)

    def _position_start_overlay(self) -> None:
        self.start_overlay.setGeometry(self.centralWidget().rect())

    def resizeEvent(self, event) -> None:
        super().resizeEvent(event)
        self._position_start_overlay()
        self.viewportResized.emit(self.width(), self.height())

    def showEvent(self, event) -> None:
        super().showEvent(event)
        self._position_start_overlay()
        self.viewportResized.emit(self.width(), self.height())

    def hideEvent(self, event) -> None:
        super().hideEvent(event)
        self.visibilityLost.emit()

    def changeEvent(self, event) -> None:
        super().changeEvent(event)
        if event.type() == QEvent.Type.ActivationChange and not self.isActiveWindow():
            self.visibilityLost.emit()
        elif event.type() == QEvent.Type.WindowStateChange and self.isMinimized():
            self.visibilityLost.emit()

    def _on_instrument_index_changed(self, index: int) -> None:
        if index < 0:
            return
        instrument_type = self.instrument_combo.itemData(index, role=Qt.UserRole)
        if isinstance(instrument_type, str):
            self.instrumentChanged.emit(instrument_type)

    def _on_volume_value_changed(self, value: int) -> None:
        self.volume_value.setText(f"{value}%")
        self.mute_button.setText("Unmute" if value == 0 else "Mute")
        self.volumeChanged.emit(max(0.0, min(1.0, value / 100.0)))

    def _on_range_index_changed(self, index: int) -> None:
        if index < 0:
            return
        choice = self.range_combo.itemData(index, role=Qt.UserRole)
        if isinstance(choice, str):
            self.desktopRangeChanged.emit(choice)

    def _on_key_height_value_changed(self, value: int) -> None:
        self.key_height_value.setText(f"{value}px")
        self.keyHeightChanged.emit(int(value))

    def _on_midi_input_index_changed(self, index: int) -> None:
        if index < 0:
            return
        device = self.midi_input_combo.itemData(index, role=Qt.UserRole)
        if isinstance(device, str):
            self.midiInputDeviceChanged.emit(device)

    def _on_midi_channel_index_changed(self, index: int) -> None:
        if index < 0:
            return
        channel = self.midi_channel_combo.itemData(index, role=Qt.UserRole)
        if isinstance(channel, str):
            self.midiChannelChanged.emit(channel)
