from __future__ import annotations

from collections import Counter
from collections.abc import Mapping

FONTS_NORMALIZED = "fonts_normalized"
FONT_SIZES_ADJUSTED = "font_sizes_adjusted"
THEME_FONTS_RESOLVED = "theme_fonts_resolved"
COLORS_CONVERTED = "colors_converted"
TABLES_OPTIMIZED = "tables_optimized"
BORDERS_NORMALIZED = "borders_normalized"
SPACING_NORMALIZED = "spacing_normalized"
INDENTS_ROUNDED = "indents_rounded"
PAGINATION_FIXED = "pagination_fixed"
SECTIONS_NORMALIZED = "sections_normalized"
EFFECTS_REMOVED = "effects_removed"
IMAGES_NORMALIZED = "images_normalized"
FONT_STYLES_FIXED = "font_styles_fixed"
NUMBERING_SIMPLIFIED = "numbering_simplified"
SETTINGS_NORMALIZED = "settings_normalized"
STYLES_FLATTENED = "styles_flattened"
STYLES_SIMPLIFIED = "styles_simplified"

CATEGORIES: tuple[str, ...] = (
    FONTS_NORMALIZED,
    FONT_SIZES_ADJUSTED,
    THEME_FONTS_RESOLVED,
    COLORS_CONVERTED,
    TABLES_OPTIMIZED,
    BORDERS_NORMALIZED,
    SPACING_NORMALIZED,
    INDENTS_ROUNDED,
    PAGINATION_FIXED,
    SECTIONS_NORMALIZED,
    EFFECTS_REMOVED,
    IMAGES_NORMALIZED,
    FONT_STYLES_FIXED,
    NUMBERING_SIMPLIFIED,
    SETTINGS_NORMALIZED,
    STYLES_FLATTENED,
    STYLES_SIMPLIFIED,
)


class FixCounters:
    """Fix category -> count, accumulated over one preprocessing run."""

    def __init__(self, initial: Mapping[str, int] | None = None) -> None:
        self._counts: Counter[str] = Counter()
        if initial:
            self.merge(initial)

    def add(self, category: str, amount: int = 1) -> None:
        if amount:
            self._counts[category] += amount

    def merge(self, other: "FixCounters | Mapping[str, int]") -> None:
        items = other.as_dict().items() if isinstance(other, FixCounters) else other.items()
        for category, amount in items:
            self.add(category, amount)

    def __getitem__(self, category: str) -> int:
        return self._counts.get(category, 0)

    @property
    def total(self) -> int:
        return sum(self._counts.values())

    def as_dict(self) -> dict[str, int]:
        payload = {category: self[category] for category in CATEGORIES}
        for category, amount in self._counts.items():
            payload.setdefault(category, amount)
        return payload

    def __repr__(self) -> str:
        active = {k: v for k, v in self._counts.items() if v}
        return f"FixCounters({active})"
