from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Protocol

from dotpiano.core.config import DEFAULT_INSTRUMENT_TYPE, INSTRUMENT_PROGRAMS
from dotpiano.core.fluidsynth_loader import (
    candidate_dll_dirs,
    configure_dll_search_paths,
    ensure_fluidsynth_loaded,
)
from dotpiano.core.normalize import clamp_float, clamp_int

logger = logging.getLogger(__name__)

AUDIO_SAMPLE_RATE = 44100
AUDIO_POLYPHONY = 128
WINDOWS_OUTPUT_DRIVERS: tuple[str, ...] = ("dsound", "winmme", "wasapi")


class AudioEngineProtocol(Protocol):

    def ensure_audio_ready(self) -> None:
        ...

    def start_note(self, midi_note: int, velocity: float) -> None:
        ...

    def stop_note(self, midi_note: int) -> None:
        ...

    def all_notes_off(self) -> None:
        ...

    def set_instrument_type(self, name: str) -> None:
        ...

    def set_master_volume(self, volume: float) -> None:
        ...

    def shutdown(self) -> None:
        ...


class SilentAudioEngine:

    def ensure_audio_ready(self) -> None:
        return

    def start_note(self, midi_note: int, velocity: float) -> None:
        return

    def stop_note(self, midi_note: int) -> None:
        return

    def all_notes_off(self) -> None:
        return

    def set_instrument_type(self, name: str) -> None:
        return

    def set_master_volume(self, volume: float) -> None:
        return

    def shutdown(self) -> None:
        return


def velocity_to_midi(velocity: float) -> int:
    level = clamp_float(velocity, 0.0, 1.0, default=0.85)
    return max(1, min(127, int(round(level * 127))))


class FluidSynthAudioEngine:
    """SoundFont playback through pyfluidsynth.

    The synth and its output driver are created on the first
    ``ensure_audio_ready`` call, so nothing is opened until the user unlocks
    the keyboard.
    """

    def __init__(
        self,
        soundfont_path: str | Path | None,
        sample_rate: int = AUDIO_SAMPLE_RATE,
        polyphony: int = AUDIO_POLYPHONY,
    ) -> None:
        self.sample_rate = int(sample_rate)
        self.polyphony = max(16, int(polyphony))
        self.master_volume = 1.0
        self._soundfont_path = Path(soundfont_path) if soundfont_path else None
        self._instrument_type = DEFAULT_INSTRUMENT_TYPE
        self._synth = None
        self._sfid: int | None = None
        self._output_driver = ""
        self._active_notes: set[int] = set()

    @property
    def is_ready(self) -> bool:
        return self._synth is not None

    def ensure_audio_ready(self) -> None:
        if self._synth is not None:
            return
        configure_dll_search_paths()
        module, error = ensure_fluidsynth_loaded()
        if module is None:
            expected_dirs = ", ".join(str(path) for path in candidate_dll_dirs())
            raise RuntimeError(
                "pyfluidsynth is required for SoundFont playback. "
                f"Could not import fluidsynth (error: {error}). "
                f"Checked DLL dirs: {expected_dirs}"
            )
        if not hasattr(module, "Synth"):
            module_path = getattr(module, "__file__", "<unknown>")
            raise RuntimeError(f"Incompatible fluidsynth module without Synth API: {module_path}")

        synth = module.Synth(samplerate=float(self.sample_rate))
        if hasattr(synth, "setting"):
            try:
                synth.setting("synth.polyphony", int(self.polyphony))
            except Exception as exc:
                logger.debug("Could not set synth polyphony: %s", exc)
        self._synth = synth
        try:
            self._output_driver = self._start_synth()
            self._set_gain(self.master_volume)
            if self._soundfont_path is not None:
                self._load_soundfont(self._soundfont_path)
            else:
                logger.warning("No SoundFont configured; notes will be silent.")
        except Exception:
            self._synth = None
            self._sfid = None
            try:
                synth.delete()
            except Exception as exc:
                logger.debug("Synth delete after failed start failed: %s", exc)
            raise
        logger.info("Audio ready (driver=%s)", self._output_driver or "default")

    def _start_driver_attempts(self) -> list[dict[str, str]]:
        attempts: list[dict[str, str]] = []
        if sys.platform == "win32":
            attempts.extend({"driver": driver} for driver in WINDOWS_OUTPUT_DRIVERS)
        attempts.append({})
        return attempts

    def _start_synth(self) -> str:
        last_error: Exception | None = None
        for kwargs in self._start_driver_attempts():
            try:
                try:
                    self._synth.start(**kwargs)
                except TypeError:
                    self._synth.start()
                return str(kwargs.get("driver", "")).strip().lower()
            except Exception as exc:
                last_error = exc
        raise RuntimeError(f"Failed to start FluidSynth driver: {last_error}") from last_error

    def _load_soundfont(self, soundfont_path: Path) -> None:
        if not soundfont_path.exists():
            raise FileNotFoundError(f"SoundFont not found: {soundfont_path}")
        try:
            self._sfid = int(self._synth.sfload(str(soundfont_path), reset_presets=False))
        except TypeError:
            self._sfid = int(self._synth.sfload(str(soundfont_path)))
        self._select_program()

    def _select_program(self) -> None:
        if self._synth is None or self._sfid is None:
            return
        bank, preset = INSTRUMENT_PROGRAMS.get(self._instrument_type, INSTRUMENT_PROGRAMS[DEFAULT_INSTRUMENT_TYPE])
        try:
            self._synth.program_select(0, self._sfid, bank, preset)
        except Exception as exc:
            logger.warning("SoundFont has no program %d:%d for %s: %s", bank, preset, self._instrument_type, exc)

    def _set_gain(self, gain: float) -> None:
        if self._synth is None:
            return
        if hasattr(self._synth, "set_gain"):
            self._synth.set_gain(gain)
            return
        if hasattr(self._synth, "setting"):
            try:
                self._synth.setting("synth.gain", float(gain))
            except Exception as exc:
                logger.debug("Could not set synth gain: %s", exc)

    def set_instrument_type(self, name: str) -> None:
        key = str(name or "").strip()
        if key not in INSTRUMENT_PROGRAMS:
            return
        self._instrument_type = key
        self._select_program()

    def set_master_volume(self, volume: float) -> None:
        self.master_volume = clamp_float(volume, 0.0, 1.0, default=1.0)
        self._set_gain(self.master_volume)

    def start_note(self, midi_note: int, velocity: float) -> None:
        if self._synth is None or self._sfid is None:
            return
        note = clamp_int(midi_note, 0, 127, default=60)
        if note in self._active_notes:
            self._synth.noteoff(0, note)
        self._synth.noteon(0, note, velocity_to_midi(velocity))
        self._active_notes.add(note)

    def stop_note(self, midi_note: int) -> None:
        note = clamp_int(midi_note, 0, 127, default=60)
        self._active_notes.discard(note)
        if self._synth is None or self._sfid is None:
            return
        self._synth.noteoff(0, note)

    def all_notes_off(self) -> None:
        if self._synth is None:
            self._active_notes.clear()
            return
        for note in list(self._active_notes):
            self._synth.noteoff(0, note)
        self._active_notes.clear()
        if self._sfid is not None:
            self._synth.cc(0, 123, 0)

    def shutdown(self) -> None:
        if self._synth is None:
            return
        try:
            self.all_notes_off()
        except Exception as exc:
            logger.debug("all_notes_off failed during shutdown: %s", exc)
        try:
            if self._sfid is not None:
                self._synth.sfunload(self._sfid)
        except Exception as exc:
            logger.debug("sfunload failed during shutdown: %s", exc)
        self._sfid = None
        try:
            self._synth.delete()
        except Exception as exc:
            logger.debug("Synth delete failed: %s", exc)
        self._synth = None
