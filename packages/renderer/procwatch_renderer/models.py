"""Typed renderer models."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ThemeConfig:
    name: str
    ok: str
    warning: str
    critical: str
    title: str
    border: str
    text_secondary: str
    bar_empty: str
