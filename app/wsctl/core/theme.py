"""Console palette for wsctl.

Colors come from ThemeColors defaults, overridden by the ``[colors]`` table
of ``~/.config/wsctl/theme.toml`` when that file exists and is valid.
"""

import logging
import re
import sys
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from rich.theme import Theme

logger = logging.getLogger(__name__)

_HEX_DIGITS = re.compile(r"[0-9a-fA-F]+")

# Styles rendered in bold on top of their color.
_BOLD_STYLES = frozenset({"error", "project"})


def _check_color(field: str, value: object) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{field}: color must be a string")
    color = value.strip()
    if not color.startswith("#"):
        raise ValueError(f"{field}: color must start with '#'")
    digits = color[1:]
    if len(digits) not in (3, 6):
        raise ValueError(f"{field}: color must be #RGB or #RRGGBB format")
    if not _HEX_DIGITS.fullmatch(digits):
        raise ValueError(f"{field}: invalid hex color '{color}'")
    return color


class ThemeColors(BaseModel):
    """Palette used by the CLI. Every value is a #RGB or #RRGGBB color."""

    model_config = ConfigDict(extra="forbid")

    text: str = "#ffffff"
    muted: str = "#b2bec3"
    header: str = "#69B9A1"
    border: str = "#29526d"

    success: str = "#03b971"
    warning: str = "#f5b332"
    error: str = "#f53263"
    info: str = "#0ec1c8"

    # Project operations
    created: str = "#c1ff62"
    deleted: str = "#f53263"
    updated: str = "#0e8ac8"
    unchanged: str = "#636e72"

    project: str = "#69B9A1"
    revision: str = "#226666"

    @field_validator("*", mode="before")
    @classmethod
    def validate_hex_color(cls, v: object, info: Any) -> str:
        return _check_color(info.field_name, v)


def get_user_theme_path() -> Path:
    """Return ~/.config/wsctl/theme.toml."""
    return Path.home() / ".config" / "wsctl" / "theme.toml"


def _load_toml_colors(path: Path) -> dict[str, str] | None:
    """Read the ``[colors]`` table of a theme file.

    Non-string values are dropped. Returns None when the file is missing,
    unreadable or not valid TOML, or when ``colors`` is not a table.
    """
    try:
        data = tomllib.loads(path.read_text())
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError) as e:
        logger.warning("Ignoring theme file %s: %s", path, e)
        print(f"Warning: Ignoring theme file {path}: {e}", file=sys.stderr)
        return None

    table = data.get("colors", {})
    if not isinstance(table, dict):
        logger.warning("Theme file %s: 'colors' is not a table", path)
        return None
    return {str(k): v for k, v in table.items() if isinstance(v, str)}


def load_theme(path: Path | None = None) -> ThemeColors:
    """Build the palette from the defaults and a theme file.

    Args:
        path: Theme file to read instead of the user theme.

    Returns:
        ThemeColors with the file's overrides applied, or the defaults if
        the file is absent or invalid.
    """
    theme_path = path or get_user_theme_path()
    overrides = _load_toml_colors(theme_path)
    if not overrides:
        return ThemeColors()

    try:
        colors = ThemeColors(**overrides)
    except ValidationError as e:
        logger.warning("Invalid colors in %s, using defaults: %s", theme_path, e)
        print(f"Warning: Invalid theme configuration: {e}", file=sys.stderr)
        return ThemeColors()
    logger.debug("Applied %d color override(s) from %s", len(overrides), theme_path)
    return colors


def get_rich_theme(colors: ThemeColors | None = None) -> Theme:
    """Map a palette to Rich style names.

    Every field becomes a style of the same name; ``bold_header`` is
    added for table titles.
    """
    palette = colors if colors is not None else load_theme()
    styles = {
        name: f"bold {value}" if name in _BOLD_STYLES else value
        for name, value in palette.model_dump().items()
    }
    styles["bold_header"] = f"bold {palette.header}"
    return Theme(styles)


_cached_theme: Theme | None = None


def get_theme() -> Theme:
    """Return the process-wide Rich theme, loading it on first use."""
    global _cached_theme
    if _cached_theme is None:
        _cached_theme = get_rich_theme()
    return _cached_theme
