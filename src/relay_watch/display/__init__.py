"""Display components for statusline output.

Modules:
    colors: Terminal color handling and detection
    progress: Progress bar rendering and color coding
    statusline: Usage and subscription segment formatting
"""

from relay_watch.display.colors import Colors, init_colors, supports_color
from relay_watch.display.progress import get_plan_color, get_status_color, make_progress_bar
from relay_watch.display.statusline import (
    format_statusline,
    format_subscription_segment,
    format_usage_segment,
)

__all__ = [
    "Colors",
    "supports_color",
    "init_colors",
    "make_progress_bar",
    "get_status_color",
    "get_plan_color",
    "format_usage_segment",
    "format_subscription_segment",
    "format_statusline",
]
