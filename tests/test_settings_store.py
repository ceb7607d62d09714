from __future__ import annotations

import json
import math

import pytest

from dotpiano.core.settings_store import (
    DESKTOP_RANGE_STORAGE_KEY,
    KEY_HEIGHT_STORAGE_KEY,
    TONE_STORAGE_KEY,
    VOLUME_STORAGE_KEY,
    JsonFileStore,
    MemoryStore,
    PianoSettings,
    load_piano_settings,
    save_desktop_range,
    save_instrument_type,
    save_key_height,
    save_volume,
    stored_key_height_to_px,
)


class BrokenStore:
    def get_item(self, key: str) -> str | None:
        raise OSError("storage disabled")

    def set_item(self, key: str, value: str) -> None:
        raise OSError("storage disabled")


def test_defaults_when_store_is_empty() -> None:
    settings = load_piano_settings(MemoryStore(), base_key_height=80)

    assert settings == PianoSettings()


def test_invalid_values_fall_back_to_defaults() -> None:
    store = MemoryStore(
        {
            TONE_STORAGE_KEY: "kazoo",
            VOLUME_STORAGE_KEY: "loud",
            KEY_HEIGHT_STORAGE_KEY: "-3",
            DESKTOP_RANGE_STORAGE_KEY: "c1c9",
        }
    )

    assert load_piano_settings(store, base_key_height=80) == PianoSettings()


def test_volume_is_clamped() -> None:
    store = MemoryStore({VOLUME_STORAGE_KEY: "3.5"})

    assert load_piano_settings(store, 80).volume == 1.0


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("1", 80),
        ("0.5", 40),
        ("10", 800),
        ("10.5", 10),
        ("64", 64),
        ("0", None),
        ("nan", None),
        ("inf", None),
        (None, None),
    ],
)
def test_stored_key_height_to_px(raw, expected) -> None:
    assert stored_key_height_to_px(raw, 80) == expected


def test_round_trip_through_memory_store() -> None:
    store = MemoryStore()
    settings = PianoSettings(instrument_type="pad", volume=0.3, key_height_px=44, desktop_range="c3c5")

    save_instrument_type(store, settings.instrument_type)
    save_volume(store, settings.volume)
    save_key_height(store, settings.key_height_px)
    save_desktop_range(store, settings.desktop_range)

    assert store.items == {
        TONE_STORAGE_KEY: "pad",
        VOLUME_STORAGE_KEY: "0.3",
        KEY_HEIGHT_STORAGE_KEY: "44",
        DESKTOP_RANGE_STORAGE_KEY: "c3c5",
    }
    assert load_piano_settings(store, 80) == settings


def test_failing_store_is_best_effort() -> None:
    store = BrokenStore()

    assert load_piano_settings(store, 80) == PianoSettings()
    assert save_volume(store, 0.5) is False
    assert save_key_height(store, 50) is False


def test_save_key_height_rejects_bad_values() -> None:
    store = MemoryStore()

    assert save_key_height(store, math.nan) is False
    assert save_key_height(store, 0) is False
    assert store.items == {}


def test_json_file_store(tmp_path) -> None:
    path = tmp_path / "nested" / "settings.json"
    store = JsonFileStore(path)

    assert store.get_item(TONE_STORAGE_KEY) is None
    store.set_item(TONE_STORAGE_KEY, "organ")

    assert json.loads(path.read_text(encoding="utf-8")) == {TONE_STORAGE_KEY: "organ"}
    assert JsonFileStore(path).get_item(TONE_STORAGE_KEY) == "organ"


def test_corrupt_json_file_reads_as_defaults(tmp_path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")

    store = JsonFileStore(path)
    assert load_piano_settings(store, 80) == PianoSettings()

    assert save_volume(store, 0.4) is True
    assert json.loads(path.read_text(encoding="utf-8")) == {VOLUME_STORAGE_KEY: "0.4"}
