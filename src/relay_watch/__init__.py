"""Relay Watch - statusline usage monitor for Claude Code relay services.

This package reports credit usage and subscription plans for 88code and
packy relays, with a tiered-freshness cache so a statusline refresh stays
fast and keeps working offline.
"""

from relay_watch._version import __version__
from relay_watch.cli import create_parser, handle_config_command, print_version

__all__ = [
    "__version__",
    "create_parser",
    "print_version",
    "handle_config_command",
]
