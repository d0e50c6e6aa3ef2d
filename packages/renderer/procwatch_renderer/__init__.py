"""Renderer package for the procwatch terminal dashboard."""

from .dashboard import DashboardRenderer, format_bytes, format_rate, usage_style
from .models import ThemeConfig
from .themes import DEFAULT_THEME_NAME, get_theme, list_themes

__all__ = [
    "DEFAULT_THEME_NAME",
    "DashboardRenderer",
    "ThemeConfig",
    "format_bytes",
    "format_rate",
    "get_theme",
    "list_themes",
    "usage_style",
]
