from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from ..constraint import STANDARD_CONTENT_WIDTH_DXA
from .colors import THEME_COLORS
from .fonts import FONT_SUBSTITUTIONS, FontSubstitution
from .ooxml import PartKind, ThemeFonts


@dataclass(frozen=True, slots=True)
class PartContext:
    """Everything a phase may consult while rewriting one package part."""

    kind: PartKind
    name: str = ""
    theme_fonts: ThemeFonts = field(default_factory=ThemeFonts)
    fonts: Mapping[str, FontSubstitution] = field(default_factory=lambda: FONT_SUBSTITUTIONS)
    colors: Mapping[str, str] = field(default_factory=lambda: THEME_COLORS)
    content_width_dxa: int = STANDARD_CONTENT_WIDTH_DXA
