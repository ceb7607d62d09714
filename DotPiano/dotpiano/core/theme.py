from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ThemePalette:
    app_bg: str
    panel_bg: str
    border: str
    text_primary: str
    text_secondary: str
    accent: str
    accent_hover: str
    white_key: str
    white_key_sounding: str
    black_key: str
    black_key_sounding: str
    edge_c_key: str
    label_on_white: str
    label_on_black: str


DEFAULT_THEME = ThemePalette(
    app_bg="#0A0A0B",
    panel_bg="#141416",
    border="#2A2A2D",
    text_primary="#F4F4F5",
    text_secondary="#B7B7BC",
    accent="#D20F39",
    accent_hover="#F03A5F",
    white_key="#F5F5F5",
    white_key_sounding="#FFD7DF",
    black_key="#111113",
    black_key_sounding="#A10E2D",
    edge_c_key="#E4E4E8",
    label_on_white="#111827",
    label_on_black="#F6F6F6",
)
