from __future__ import annotations

import pytest

from dotpiano.core.key_arena import KeyHandle
from dotpiano.core.layout import KeySpec
from dotpiano.services.pointer_gestures import PointerGestureTracker, pointer_source


class Board:
    """Maps x positions to keys: each note occupies ten units of x."""

    def __init__(self, harness, notes: list[int]) -> None:
        self.harness = harness
        self.handles = {
            note: harness.arena.register(KeySpec(note=note, label=str(note), black=False), slot=0)
            for note in notes
        }
        self.notes = notes
        self.unlocked = True
        self.tracker = PointerGestureTracker(
            harness.arbitrator,
            harness.arena,
            is_unlocked=lambda: self.unlocked,
            hit_test=self.hit_test,
        )

    def hit_test(self, x: float, y: float) -> KeyHandle | None:
        index = int(x // 10)
        if y < 0 or index < 0 or index >= len(self.notes):
            return None
        return self.handles[self.notes[index]]

    def x_of(self, note: int) -> float:
        return self.notes.index(note) * 10 + 5


@pytest.fixture
def board(harness) -> Board:
    return Board(harness, [60, 62, 64, 65])


def test_press_glide_release(board) -> None:
    tracker = board.tracker

    assert tracker.gesture_start(1, board.handles[60])
    assert tracker.gesture_move(1, board.x_of(62), 5)
    assert tracker.gesture_end(1)

    assert board.harness.audio.note_calls() == [
        ("start", 60, 0.9),
        ("stop", 60),
        ("start", 62, 0.9),
        ("stop", 62),
    ]
    assert not tracker.is_tracking(1)


def test_gesture_never_holds_two_notes(board) -> None:
    tracker = board.tracker
    arb = board.harness.arbitrator
    tracker.gesture_start(7, board.handles[60])

    for note in [62, 64, 65, 64, 60]:
        tracker.gesture_move(7, board.x_of(note), 1)
        held = [n for n in arb.held_notes() if pointer_source(7) in arb.sources_for(n)]
        assert held == [note]


def test_moving_within_a_key_is_a_no_op(board) -> None:
    board.tracker.gesture_start(1, board.handles[64])

    assert board.tracker.gesture_move(1, board.x_of(64) + 2, 3) is False
    assert board.harness.audio.note_calls() == [("start", 64, 0.9)]


def test_gliding_off_keys_keeps_the_gesture(board) -> None:
    tracker = board.tracker
    tracker.gesture_start(2, board.handles[65])

    tracker.gesture_move(2, 500, 5)
    assert tracker.is_tracking(2)
    assert tracker.bound_note(2) is None
    assert board.harness.arbitrator.held_notes() == []

    tracker.gesture_move(2, board.x_of(62), 5)
    assert tracker.bound_note(2) == 62


def test_untracked_pointer_moves_are_ignored(board) -> None:
    assert board.tracker.gesture_move(9, board.x_of(60), 5) is False
    assert board.harness.audio.note_calls() == []


def test_input_is_ignored_until_unlocked(board) -> None:
    board.unlocked = False

    assert board.tracker.gesture_start(1, board.handles[60]) is False
    assert board.harness.audio.note_calls() == []


def test_cancel_behaves_like_release(board) -> None:
    board.tracker.gesture_start(4, board.handles[60])

    assert board.tracker.gesture_cancel(4) is True
    assert board.harness.audio.note_calls() == [("start", 60, 0.9), ("stop", 60)]
    assert board.tracker.gesture_cancel(4) is False


def test_pointer_shares_note_with_other_sources(board) -> None:
    arb = board.harness.arbitrator
    arb.note_on(60, "midi", 0.5)
    board.tracker.gesture_start(1, board.handles[60])
    board.tracker.gesture_end(1)

    assert arb.is_sounding(60)
    assert board.harness.audio.note_calls() == [("start", 60, 0.5)]


def test_stale_handle_is_ignored(board) -> None:
    stale = board.handles[60]
    board.harness.arena.clear()

    assert board.tracker.gesture_start(1, stale) is False
    assert board.harness.arena.note_for(stale) is None


def test_reset_forgets_pointers_without_releasing(board) -> None:
    board.tracker.gesture_start(1, board.handles[60])
    board.harness.audio.calls.clear()

    board.tracker.reset()

    assert board.tracker.pointer_notes == {}
    assert board.harness.audio.note_calls() == []
    assert board.tracker.gesture_end(1) is False
