"""Built-in terminal colour themes."""

from __future__ import annotations

from .models import ThemeConfig

DEFAULT_THEME_NAME = "Classic"

THEMES: dict[str, ThemeConfig] = {
    "Classic": ThemeConfig(
        name="Classic",
        ok="green",
        warning="yellow",
        critical="red",
        title="bold cyan",
        border="blue",
        text_secondary="grey62",
        bar_empty="grey30",
    ),
    "Ocean": ThemeConfig(
        name="Ocean",
        ok="#59F3FF",
        warning="#FFB347",
        critical="#FF5C7A",
        title="bold #86FFD0",
        border="#123240",
        text_secondary="#B9DFE8",
        bar_empty="#173F52",
    ),
    "Mono": ThemeConfig(
        name="Mono",
        ok="white",
        warning="bold white",
        critical="reverse bold white",
        title="bold",
        border="white",
        text_secondary="dim",
        bar_empty="dim",
    ),
}


def list_themes() -> list[str]:
    return sorted(THEMES.keys())


def get_theme(name: str | None) -> ThemeConfig:
    if not name:
        return THEMES[DEFAULT_THEME_NAME]
    return THEMES.get(name, THEMES[DEFAULT_THEME_NAME])
