from __future__ import annotations

from typing import Callable

from dotpiano.core.midi_input import ALL_INPUTS, MidiInputManager


class MidiRoutingService:
    def __init__(self, midi_manager: MidiInputManager) -> None:
        self._midi_manager = midi_manager
        self._backend_issue_shown = False
        self._enabled = False

    @property
    def enabled(self) -> bool:
        return self._enabled

    def maybe_warn_backend_issue(self, show_warning: Callable[[str, str], None]) -> None:
        if self._backend_issue_shown:
            return
        detail = str(self._midi_manager.backend_error() or "").strip()
        if not detail:
            return
        self._backend_issue_shown = True
        show_warning(
            "MIDI Input",
            "MIDI input backend is unavailable.\n\n"
            f"{detail}\n\n"
            "Install mido and python-rtmidi and restart DotPiano.",
        )

    def refresh_inputs(
        self,
        *,
        set_devices: Callable[[list[str], str], None],
    ) -> list[str]:
        devices = self._midi_manager.list_input_devices()
        current = self._midi_manager.input_filter
        set_devices(devices, current if current in devices else ALL_INPUTS)
        return devices

    def enable(
        self,
        *,
        set_devices: Callable[[list[str], str], None],
        show_warning: Callable[[str, str], None],
    ) -> list[str]:
        self._enabled = True
        opened = self._midi_manager.open_inputs()
        self.maybe_warn_backend_issue(show_warning)
        self.refresh_inputs(set_devices=set_devices)
        return opened

    def apply_input_filter(self, device: str) -> str:
        chosen = str(device or "").strip() or ALL_INPUTS
        self._midi_manager.set_input_filter(chosen)
        return chosen

    def apply_channel_filter(self, channel: str) -> int | None:
        self._midi_manager.set_channel_filter(channel)
        return self._midi_manager.channel_filter
