"""Terminal color handling and detection.

Provides 256-color ANSI codes for statusline output with automatic
detection of color support.
"""

from __future__ import annotations

import os
import platform
import sys


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    # Usage status (muted palette)
    GREEN = "\033[38;5;114m"
    YELLOW = "\033[38;5;179m"
    RED = "\033[38;5;167m"
    # Plan tiers
    ORANGE = "\033[38;5;214m"
    BLUE = "\033[38;5;39m"
    GRAY = "\033[38;5;245m"
    WHITE = "\033[38;5;255m"


_DEFAULTS = {attr: value for attr, value in vars(Colors).items() if not attr.startswith("_")}


def supports_color() -> bool:
    """Check if the terminal supports color output.

    Returns:
        True if colors should be displayed, False otherwise.
    """
    # Any non-empty value disables color
    if os.environ.get("RELAY_WATCH_NO_COLOR") or os.environ.get("NO_COLOR"):
        return False
    if not hasattr(sys.stdout, "isatty") or not sys.stdout.isatty():
        return False
    if platform.system() == "Windows":
        return bool(os.environ.get("TERM") or os.environ.get("WT_SESSION"))
    return True


def init_colors(enabled: bool | None = None) -> None:
    """Initialize colors based on terminal support.

    Args:
        enabled: Force colors on or off. None detects terminal support.
    """
    if enabled is None:
        enabled = supports_color()
    for attr, value in _DEFAULTS.items():
        setattr(Colors, attr, value if enabled else "")


# Auto-initialize on import
init_colors()

__all__ = ["Colors", "supports_color", "init_colors"]
