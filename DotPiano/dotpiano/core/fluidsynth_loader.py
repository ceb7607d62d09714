from __future__ import annotations

import ctypes.util
import importlib
import logging
import os
import sys
from pathlib import Path

from dotpiano.core.runtime_paths import executable_dir, project_root

logger = logging.getLogger(__name__)

_LIBRARY_ALIASES = frozenset(
    {
        "fluidsynth",
        "libfluidsynth",
        "libfluidsynth-1",
        "libfluidsynth-2",
        "libfluidsynth-3",
    }
)
_WINDOWS_DLL_NAMES = (
    "libfluidsynth-3.dll",
    "libfluidsynth-2.dll",
    "libfluidsynth-1.dll",
    "libfluidsynth.dll",
    "fluidsynth.dll",
)

_loaded_module: object | None = None
_dll_dir_handles: dict[str, object] = {}


def candidate_dll_dirs() -> list[Path]:
    candidates: list[Path] = []
    if getattr(sys, "frozen", False):
        exe_dir = executable_dir()
        candidates.extend([exe_dir / "fluidsynth", exe_dir])
    candidates.append(project_root() / "third_party" / "fluidsynth" / "bin")
    seen: set[str] = set()
    unique: list[Path] = []
    for path in candidates:
        key = os.path.normcase(str(path))
        if key not in seen:
            seen.add(key)
            unique.append(path)
    return unique


def _bundled_dll() -> Path | None:
    if sys.platform != "win32":
        return None
    for directory in candidate_dll_dirs():
        for name in _WINDOWS_DLL_NAMES:
            candidate = directory / name
            if candidate.exists():
                return candidate
    return None


def configure_dll_search_paths() -> list[Path]:
    if sys.platform != "win32":
        return []
    added: list[Path] = []
    for path in candidate_dll_dirs():
        if not path.exists():
            continue
        key = os.path.normcase(str(path.resolve()))
        if key not in _dll_dir_handles and hasattr(os, "add_dll_directory"):
            try:
                _dll_dir_handles[key] = os.add_dll_directory(str(path))
            except OSError as exc:
                logger.debug("Could not add DLL directory %s: %s", path, exc)
        current_path = os.environ.get("PATH", "")
        if str(path) not in current_path.split(os.pathsep):
            os.environ["PATH"] = f"{path}{os.pathsep}{current_path}" if current_path else str(path)
        added.append(path)
    return added


def ensure_fluidsynth_loaded() -> tuple[object | None, Exception | None]:
    global _loaded_module
    if _loaded_module is not None:
        return _loaded_module, None

    bundled = _bundled_dll()
    original_find_library = ctypes.util.find_library

    def find_library(name: str) -> str | None:
        if bundled is not None and str(name).lower() in _LIBRARY_ALIASES:
            return str(bundled)
        return original_find_library(name)

    try:
        ctypes.util.find_library = find_library
        module = importlib.import_module("fluidsynth")
    except Exception as exc:
        logger.warning("FluidSynth is unavailable: %s: %s", type(exc).__name__, exc)
        return None, exc
    finally:
        ctypes.util.find_library = original_find_library

    _loaded_module = module
    return module, None
