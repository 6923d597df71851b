#!/usr/bin/env python

"""
Centralized theme system for q.

Provides a configurable color palette used by every console the tool creates.
Colors are loaded from config.yaml under the 'theme' key, with sensible defaults.
"""

from rich.console import Console
from rich.theme import Theme as RichTheme

DEFAULT_THEME = {
    "accent": "#0066cc",
    "accent_alt": "#00cc66",
    "fg": "white",
    "muted": "#555555",
    "error": "#ff5555",
    "warning": "#e5c07b",
    "success": "#00cc66",
}


def get_theme(config: dict | None) -> dict:
    """Resolve theme colors from config, falling back to defaults."""
    theme = dict(DEFAULT_THEME)
    theme.update((config or {}).get("theme") or {})
    return theme


def build_rich_theme(theme: dict) -> RichTheme:
    """Create a Rich Theme from the resolved theme dict.

    Styles are defined *without* bold so callers can compose freely:
    ``[bold accent]Title[/bold accent]`` or ``[accent]normal text[/accent]``.
    """
    return RichTheme({name: theme[name] for name in DEFAULT_THEME})


def create_console(config: dict | None = None, **kwargs) -> Console:
    """Create a Rich Console with the application theme applied.

    Pass ``stderr=True`` for status lines that must not mix with the
    response written to stdout.
    """
    return Console(theme=build_rich_theme(get_theme(config)), **kwargs)
