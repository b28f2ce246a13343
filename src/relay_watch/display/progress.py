"""Progress bar rendering and usage color coding."""

from __future__ import annotations

from relay_watch.display.colors import Colors

BAR_WIDTH = 10
FILLED_CELL = "▓"
EMPTY_CELL = "░"

PREMIUM_PLANS = ("PLUS", "PRO", "MAX")


def make_progress_bar(percentage: float, width: int = BAR_WIDTH, color: str | None = None) -> str:
    """Create a statusline progress bar.

    Args:
        percentage: Usage percentage; values outside 0-100 are clamped.
        width: Number of cells.
        color: Color code for the bar. Defaults to the status color.

    Returns:
        Colored string like "▓▓▓░░░░░░░".
    """
    percentage = min(max(percentage, 0.0), 100.0)
    if color is None:
        color = get_status_color(percentage)
    # Half-cells round up
    filled = min(int(width * percentage / 100 + 0.5), width)
    return f"{color}{FILLED_CELL * filled}{EMPTY_CELL * (width - filled)}{Colors.RESET}"


def get_status_color(percentage: float) -> str:
    """Get the color code for a usage percentage.

    Args:
        percentage: Usage percentage (0-100).

    Returns:
        Green up to 50%, yellow up to 80%, red above.
    """
    if percentage <= 50:
        return Colors.GREEN
    elif percentage <= 80:
        return Colors.YELLOW
    return Colors.RED


def get_plan_color(plan_name: str) -> str:
    """Get the color code for a subscription plan tier."""
    name = plan_name.upper()
    if name in PREMIUM_PLANS:
        return Colors.ORANGE
    if name == "PAYGO":
        return Colors.BLUE
    if name == "FREE":
        return Colors.GRAY
    return Colors.WHITE


__all__ = ["BAR_WIDTH", "make_progress_bar", "get_status_color", "get_plan_color"]
