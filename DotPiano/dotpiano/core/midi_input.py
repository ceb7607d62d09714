from __future__ import annotations

import importlib
import logging
import threading
from typing import Any, Callable

from dotpiano.core.normalize import clamp_int

logger = logging.getLogger(__name__)

NoteOnCallback = Callable[[int, float], None]
NoteOffCallback = Callable[[int], None]
PanicCallback = Callable[[], None]
StatusSink = Callable[[str], None]

ALL_INPUTS = "all"
ALL_CHANNELS = "all"
PANIC_CONTROLS = frozenset({120, 123})


def parse_channel_filter(value: Any) -> int | None:
    if value is None:
        return None
    text = str(value).strip().lower()
    if not text or text == ALL_CHANNELS:
        return None
    try:
        channel = int(text)
    except ValueError:
        return None
    return clamp_int(channel, 1, 16, default=1)


class MidiInputManager:

    def __init__(
        self,
        on_note_on: NoteOnCallback,
        on_note_off: NoteOffCallback,
        on_panic: PanicCallback,
        status_sink: StatusSink | None = None,
        mido_module: Any | None = None,
    ) -> None:
        self._on_note_on = on_note_on
        self._on_note_off = on_note_off
        self._on_panic = on_panic
        self._status_sink = status_sink
        self._ports: dict[str, Any] = {}
        self._pollers: dict[str, tuple[threading.Thread, threading.Event]] = {}
        self._lock = threading.Lock()
        self._input_filter = ALL_INPUTS
        self._channel: int | None = None
        self._backend_error = ""
        self._started = False
        self._mido_module = mido_module
        if self._mido_module is None:
            self._load_mido_module()

    def _load_mido_module(self) -> None:
        try:
            module = importlib.import_module("mido")
        except Exception as exc:
            self._backend_error = f"Could not import mido: {type(exc).__name__}: {exc}"
            return
        try:
            list(module.get_input_names())
        except Exception as exc:
            self._backend_error = self._format_backend_error(exc)
            return
        self._mido_module = module
        self._backend_error = ""

    @staticmethod
    def _format_backend_error(exc: Exception) -> str:
        missing_module = str(getattr(exc, "name", "")).strip().lower()
        if isinstance(exc, ModuleNotFoundError) and missing_module == "rtmidi":
            return "Could not load module 'rtmidi'. Install 'python-rtmidi' for this Python environment."
        return f"{type(exc).__name__}: {exc}"

    def _report(self, text: str) -> None:
        logger.info("MIDI: %s", text)
        if self._status_sink is None:
            return
        try:
            self._status_sink(text)
        except Exception as exc:
            logger.debug("MIDI status sink failed: %s", exc)

    def backend_error(self) -> str:
        return self._backend_error

    def list_input_devices(self) -> list[str]:
        if self._mido_module is None:
            return []
        try:
            names = list(self._mido_module.get_input_names())
        except Exception as exc:
            self._backend_error = self._format_backend_error(exc)
            return []
        self._backend_error = ""
        return [str(name) for name in names if str(name).strip()]

    @property
    def input_filter(self) -> str:
        return self._input_filter

    @property
    def channel_filter(self) -> int | None:
        return self._channel

    def open_inputs(self) -> list[str]:
        """Open every port selected by the input filter and return their names."""
        with self._lock:
            self._close_locked()
            self._started = True
            if self._mido_module is None:
                detail = self._backend_error or "backend not available"
                self._report(f"unavailable ({detail})")
                return []
            available = self.list_input_devices()
            if self._input_filter == ALL_INPUTS:
                targets = available
            else:
                targets = [name for name in available if name == self._input_filter]
            for name in targets:
                try:
                    self._ports[name] = self._open_port(name)
                except Exception as exc:
                    self._backend_error = self._format_backend_error(exc)
                    logger.warning("Could not open MIDI input %r: %s", name, self._backend_error)
            opened = list(self._ports.keys())
        if opened:
            self._report(f"connected: {', '.join(opened)}")
        elif available:
            self._report("no matching input")
        else:
            self._report("no inputs found")
        return opened

    def set_input_filter(self, name: str) -> None:
        text = str(name or "").strip()
        self._input_filter = text or ALL_INPUTS
        if self._started:
            self.open_inputs()

    def set_channel_filter(self, value: Any) -> None:
        self._channel = parse_channel_filter(value)

    def close(self) -> None:
        with self._lock:
            self._started = False
            self._close_locked()

    def _close_locked(self) -> None:
        for thread, stop in self._pollers.values():
            stop.set()
            if thread.is_alive() and thread is not threading.current_thread():
                thread.join(timeout=0.2)
        self._pollers.clear()
        ports = list(self._ports.values())
        self._ports.clear()
        for port in ports:
            try:
                port.close()
            except Exception as exc:
                logger.debug("Closing MIDI port failed: %s", exc)

    def _open_port(self, name: str):
        try:
            return self._mido_module.open_input(name, callback=self.handle_message)
        except TypeError:
            port = self._mido_module.open_input(name)
            self._start_polling_locked(name, port)
            return port

    def _start_polling_locked(self, name: str, port) -> None:
        stop = threading.Event()
        thread = threading.Thread(target=self._poll_loop, args=(port, stop), daemon=True)
        self._pollers[name] = (thread, stop)
        thread.start()

    def _poll_loop(self, port, stop: threading.Event) -> None:
        while not stop.is_set():
            try:
                messages = list(port.iter_pending())
            except Exception:
                return
            for message in messages:
                self.handle_message(message)
            stop.wait(0.01)

    def handle_message(self, message) -> None:
        msg_type = str(getattr(message, "type", "")).lower()
        if self._channel is not None:
            channel = getattr(message, "channel", None)
            if channel is not None and int(channel) + 1 != self._channel:
                return
        if msg_type == "control_change":
            if int(getattr(message, "control", -1)) in PANIC_CONTROLS:
                self._on_panic()
            return
        if msg_type not in {"note_on", "note_off"}:
            return
        note = int(getattr(message, "note", -1))
        if note < 0 or note > 127:
            return
        velocity = int(getattr(message, "velocity", 0))
        if msg_type == "note_on" and velocity > 0:
            self._on_note_on(note, velocity / 127.0)
        else:
            self._on_note_off(note)
