from __future__ import annotations

import os
import sys
from pathlib import Path

SOUNDFONTS_DIR_NAME = "soundfonts"
SOUNDFONT_EXTENSIONS = (".sf2", ".sf3")
SYSTEM_SOUNDFONT_PATHS: tuple[str, ...] = (
    "/usr/share/soundfonts/default.sf2",
    "/usr/share/soundfonts/FluidR3_GM.sf2",
    "/usr/share/sounds/sf2/FluidR3_GM.sf2",
    "/usr/share/sounds/sf2/default-GM.sf2",
    "/usr/local/share/soundfonts/default.sf2",
)


def project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def executable_dir() -> Path:
    return Path(sys.executable).resolve().parent


def frozen_bundle_dir() -> Path | None:
    if not getattr(sys, "frozen", False):
        return None
    meipass = getattr(sys, "_MEIPASS", "")
    if not meipass:
        return None
    return Path(meipass)


def resource_root() -> Path:
    bundle = frozen_bundle_dir()
    if bundle is not None:
        return bundle
    return project_root()


def app_local_data_dir(app_name: str) -> Path:
    name = str(app_name or "").strip()
    local_app_data = os.environ.get("LOCALAPPDATA")
    if local_app_data:
        return Path(local_app_data) / name
    xdg_data_home = os.environ.get("XDG_DATA_HOME")
    if xdg_data_home:
        return Path(xdg_data_home) / name
    return Path.home() / ".local" / "share" / name


def _fonts_in(directory: Path) -> list[Path]:
    try:
        if not directory.is_dir():
            return []
        return sorted(
            path for path in directory.iterdir() if path.is_file() and path.suffix.lower() in SOUNDFONT_EXTENSIONS
        )
    except Exception:
        return []


def soundfont_candidates(app_name: str) -> list[Path]:
    candidates: list[Path] = []
    candidates.extend(_fonts_in(resource_root() / SOUNDFONTS_DIR_NAME))
    candidates.extend(_fonts_in(app_local_data_dir(app_name) / SOUNDFONTS_DIR_NAME))
    candidates.extend(Path(path) for path in SYSTEM_SOUNDFONT_PATHS)
    return candidates


def find_default_soundfont(app_name: str) -> Path | None:
    for candidate in soundfont_candidates(app_name):
        try:
            if candidate.is_file():
                return candidate
        except Exception:
            continue
    return None
