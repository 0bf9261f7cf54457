"""
core/theme.py
Semantic styles for dashctl output, so handlers never hardcode colors.

Honors:
  - NO_COLOR=1 → every style becomes "none"
  - DASHCTL_THEME=minimal → only success/error are colored

Usage:
    from core.theme import theme
    console.print(f"{theme.check()} Installed {plugin_id} successfully")
    console.print(theme.paint("error", "Error") + ": " + escape(message))
"""

from __future__ import annotations

import os

CHECK_MARK = "✔"
CROSS_MARK = "✗"

_STYLES = ("success", "warning", "error", "muted")


class Theme:
    """Semantic style names resolved once from the environment."""

    def __init__(self):
        self.name = "none" if os.environ.get("NO_COLOR") else \
            os.environ.get("DASHCTL_THEME", "default")

        if self.name == "none":
            for attr in _STYLES:
                setattr(self, attr, "none")
        elif self.name == "minimal":
            self.success = "green"
            self.warning = "none"
            self.error = "red"
            self.muted = "none"
        else:
            self.success = "green"
            self.warning = "yellow"
            self.error = "bold red"
            self.muted = "dim"

    def paint(self, style: str, text: str) -> str:
        """Wrap *text* in rich markup for a semantic style name."""
        value = getattr(self, style)
        return f"[{value}]{text}[/]"

    def check(self) -> str:
        return self.paint("success", CHECK_MARK)

    def cross(self) -> str:
        return self.paint("error", CROSS_MARK)


theme = Theme()
