"""Unit tests for theme module.

Tests for theme loading, validation, and Rich theme generation.
"""

# pyright: reportPrivateUsage=false

from pathlib import Path
from unittest.mock import patch

import pytest
import wsctl.core.theme as theme_module
from rich.theme import Theme
from wsctl.core.theme import (
    ThemeColors,
    _load_toml_colors,
    get_rich_theme,
    get_theme,
    get_user_theme_path,
    load_theme,
)


class TestThemeColors:
    """Tests for ThemeColors Pydantic model."""

    def test_default_values(self) -> None:
        """ThemeColors has sensible defaults."""
        colors = ThemeColors()
        assert colors.text == "#ffffff"
        assert colors.created == "#c1ff62"
        assert colors.error == "#f53263"

    def test_short_hex_accepted(self) -> None:
        """#RGB colors are valid."""
        assert ThemeColors(muted="#abc").muted == "#abc"

    @pytest.mark.parametrize(
        ("value", "message"),
        [
            ("ffffff", "must start with '#'"),
            ("#ff", "must be #RGB or #RRGGBB"),
            ("#gggggg", "invalid hex color"),
        ],
    )
    def test_invalid_colors(self, value: str, message: str) -> None:
        """Malformed colors are rejected with a clear message."""
        with pytest.raises(ValueError, match=message):
            ThemeColors(text=value)

    def test_extra_fields_forbidden(self) -> None:
        """ThemeColors rejects unknown fields."""
        with pytest.raises(ValueError):
            ThemeColors(unknown_field="#ffffff")  # type: ignore[call-arg]


class TestLoadTheme:
    """Tests for theme file loading."""

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        """Without a user theme the defaults are used."""
        assert _load_toml_colors(tmp_path / "nope.toml") is None
        assert load_theme(tmp_path / "nope.toml") == ThemeColors()

    def test_partial_override(self, tmp_path: Path) -> None:
        """A user theme overrides only the colors it names."""
        user_theme = tmp_path / "theme.toml"
        user_theme.write_text('[colors]\nsuccess = "#00ff00"\n')

        with patch("wsctl.core.theme.get_user_theme_path", return_value=user_theme):
            colors = load_theme()

        assert colors.success == "#00ff00"
        assert colors.header == ThemeColors().header

    @pytest.mark.parametrize(
        "content", ["invalid toml [[[", '[colors]\ntext = "red"\n', 'colors = "red"\n']
    )
    def test_invalid_user_theme_falls_back(self, tmp_path: Path, content: str) -> None:
        """A broken user theme falls back to the defaults."""
        user_theme = tmp_path / "theme.toml"
        user_theme.write_text(content)

        assert load_theme(user_theme) == ThemeColors()

    def test_user_theme_path(self) -> None:
        """The user theme lives under ~/.config/wsctl/."""
        path = get_user_theme_path()

        assert path.parts[-2:] == ("wsctl", "theme.toml")


class TestGetRichTheme:
    """Tests for Rich theme generation."""

    def test_includes_operation_styles(self) -> None:
        """Every style used by the CLI is defined."""
        theme = get_rich_theme(ThemeColors())

        for style in ("created", "deleted", "updated", "unchanged", "warning", "bold_header"):
            assert style in theme.styles

    def test_cached(self) -> None:
        """get_theme returns the same instance on subsequent calls."""
        theme_module._cached_theme = None

        first = get_theme()

        assert isinstance(first, Theme)
        assert get_theme() is first
