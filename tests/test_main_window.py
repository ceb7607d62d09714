from __future__ import annotations

import os

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from PySide6.QtWidgets import QApplication

from dotpiano.core.theme import DEFAULT_THEME
from dotpiano.ui.main_window import MainWindow, octave_button_id, octave_shift_for_id


@pytest.fixture(scope="module")
def qapp() -> QApplication:
    return QApplication.instance() or QApplication([])


@pytest.fixture
def window(qapp) -> MainWindow:
    win = MainWindow(DEFAULT_THEME, show_start_overlay=False)
    yield win
    win.deleteLater()


def test_octave_button_ids_avoid_automatic_id() -> None:
    assert [octave_button_id(shift) for shift in (-1, 0, 1)] == [0, 1, 2]
    assert [octave_shift_for_id(button_id) for button_id in (0, 1, 2)] == [-1, 0, 1]


def test_octave_buttons_emit_and_sync_shift(window) -> None:
    emitted: list[int] = []
    window.octaveShiftChanged.connect(emitted.append)

    window.octave_group.button(octave_button_id(-1)).click()
    window.octave_group.button(octave_button_id(1)).click()

    assert emitted == [-1, 1]

    window.set_octave_shift(-1)
    assert window.octave_group.checkedId() == octave_button_id(-1)
    window.set_octave_shift(0)
    assert window.octave_group.checkedId() == octave_button_id(0)
