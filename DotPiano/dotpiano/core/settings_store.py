from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from dotpiano.core.config import (
    APP_NAME,
    DEFAULT_DESKTOP_RANGE,
    DEFAULT_INSTRUMENT_TYPE,
    DEFAULT_MASTER_VOLUME,
    INSTRUMENT_PROGRAMS,
    LEGACY_KEY_HEIGHT_SCALE_MAX,
    DesktopRangeChoice,
)
from dotpiano.core.normalize import clamp_float, parse_finite_float
from dotpiano.core.runtime_paths import app_local_data_dir

logger = logging.getLogger(__name__)

SETTINGS_FILE_NAME = "DotPiano_settings.json"

TONE_STORAGE_KEY = "piano:tone"
VOLUME_STORAGE_KEY = "piano:volume"
KEY_HEIGHT_STORAGE_KEY = "piano:key-height-scale"
DESKTOP_RANGE_STORAGE_KEY = "piano:desktop-range"


class KeyValueStore(Protocol):

    def get_item(self, key: str) -> str | None:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...


class MemoryStore:

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = str(value)


class JsonFileStore:
    """String key-value pairs kept in a single JSON object on disk."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path if path is not None else app_local_data_dir(APP_NAME) / SETTINGS_FILE_NAME
        self._cache: dict[str, str] | None = None

    def _read(self) -> dict[str, str]:
        if self._cache is not None:
            return self._cache
        payload: Any = {}
        try:
            if self.path.exists():
                payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.debug("Ignoring unreadable settings file %s: %s", self.path, exc)
            payload = {}
        if not isinstance(payload, dict):
            payload = {}
        self._cache = {str(key): str(value) for key, value in payload.items() if value is not None}
        return self._cache

    def get_item(self, key: str) -> str | None:
        return self._read().get(key)

    def set_item(self, key: str, value: str) -> None:
        items = dict(self._read())
        items[key] = str(value)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(items, indent=2, sort_keys=True), encoding="utf-8")
        self._cache = items


@dataclass(frozen=True, slots=True)
class PianoSettings:
    instrument_type: str = DEFAULT_INSTRUMENT_TYPE
    volume: float = DEFAULT_MASTER_VOLUME
    key_height_px: int | None = None
    desktop_range: DesktopRangeChoice = DEFAULT_DESKTOP_RANGE


def read_item(store: KeyValueStore, key: str) -> str | None:
    try:
        return store.get_item(key)
    except Exception as exc:
        logger.debug("Reading %s failed: %s", key, exc)
        return None


def write_item(store: KeyValueStore, key: str, value: str) -> bool:
    try:
        store.set_item(key, value)
    except Exception as exc:
        logger.debug("Writing %s failed: %s", key, exc)
        return False
    return True


def _clamp_instrument_type(value: Any) -> str:
    if isinstance(value, str) and value in INSTRUMENT_PROGRAMS:
        return value
    return DEFAULT_INSTRUMENT_TYPE


def _clamp_volume(value: Any) -> float:
    return clamp_float(value, 0.0, 1.0, default=DEFAULT_MASTER_VOLUME)


def _clamp_desktop_range(value: Any) -> DesktopRangeChoice:
    return value if value in {"c4c6", "c3c5"} else DEFAULT_DESKTOP_RANGE


def stored_key_height_to_px(value: Any, base_key_height: float) -> int | None:
    stored = parse_finite_float(value)
    if stored is None or stored <= 0:
        return None
    px_value = stored * float(base_key_height) if stored <= LEGACY_KEY_HEIGHT_SCALE_MAX else stored
    return int(round(px_value))


def load_piano_settings(store: KeyValueStore, base_key_height: float) -> PianoSettings:
    tone_raw = read_item(store, TONE_STORAGE_KEY)
    volume_raw = read_item(store, VOLUME_STORAGE_KEY)
    key_height_raw = read_item(store, KEY_HEIGHT_STORAGE_KEY)
    range_raw = read_item(store, DESKTOP_RANGE_STORAGE_KEY)

    volume = DEFAULT_MASTER_VOLUME
    if volume_raw is not None and parse_finite_float(volume_raw) is not None:
        volume = _clamp_volume(volume_raw)

    return PianoSettings(
        instrument_type=_clamp_instrument_type(tone_raw),
        volume=volume,
        key_height_px=stored_key_height_to_px(key_height_raw, base_key_height),
        desktop_range=_clamp_desktop_range(range_raw),
    )


def save_instrument_type(store: KeyValueStore, instrument_type: str) -> bool:
    return write_item(store, TONE_STORAGE_KEY, _clamp_instrument_type(instrument_type))


def save_volume(store: KeyValueStore, volume: float) -> bool:
    return write_item(store, VOLUME_STORAGE_KEY, repr(_clamp_volume(volume)))


def save_key_height(store: KeyValueStore, key_height_px: float) -> bool:
    value = parse_finite_float(key_height_px)
    if value is None or value <= 0:
        return False
    return write_item(store, KEY_HEIGHT_STORAGE_KEY, str(int(round(value))))


def save_desktop_range(store: KeyValueStore, choice: str) -> bool:
    return write_item(store, DESKTOP_RANGE_STORAGE_KEY, _clamp_desktop_range(choice))
