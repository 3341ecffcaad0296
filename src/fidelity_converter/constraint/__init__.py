from __future__ import annotations

from pathlib import Path

DEFAULT_CONFIG_PATH = Path("config.toml")
ENV_PREFIX = "FC_"

# 6.5in of text on a Letter page with 1in margins, in twentieths of a point.
STANDARD_CONTENT_WIDTH_DXA = 9360

__all__ = ["DEFAULT_CONFIG_PATH", "ENV_PREFIX", "STANDARD_CONTENT_WIDTH_DXA"]
