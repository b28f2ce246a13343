"""Command-line interface for relay-watch.

This module provides the main entry point and argument parsing for the
relay-watch CLI tool.
"""

import argparse
import json
import logging
import os
import platform
import sys

from relay_watch._version import __version__
from relay_watch.display.colors import Colors, init_colors
from relay_watch.errors import (
    ConfigError,
    CredentialMissingError,
    ExitCode,
    format_error_for_user,
    get_exit_code,
)

logger = logging.getLogger(__name__)

MIN_TIMEOUT = 1
MAX_TIMEOUT = 60


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser.

    Returns:
        Configured ArgumentParser instance.
    """
    parser = argparse.ArgumentParser(
        prog="relay-watch",
        description="Show Claude Code relay usage and subscriptions (88code, packy)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  relay-watch                   Show the usage segment
  relay-watch --subscriptions   Show active subscription plans
  relay-watch --statusline      Usage and subscriptions on one line
  relay-watch --json            Output both reports as JSON
  relay-watch --refresh         Ignore cached data and fetch now
  relay-watch --config          Show current configuration
  relay-watch --config set api_key KEY
  relay-watch --config set usage_url https://www.packyapi.com/api/usage/token/

Claude Code statusline (~/.claude/settings.json):
  "statusLine": {"type": "command", "command": "relay-watch --statusline"}

Credentials:
  Without a configured api_key, ANTHROPIC_AUTH_TOKEN and ANTHROPIC_BASE_URL
  are read from ~/.claude/settings.json.
""",
    )

    parser.add_argument(
        "--subscriptions", "-s", action="store_true", help="Show subscription plans"
    )
    parser.add_argument(
        "--statusline",
        action="store_true",
        help="Print usage and subscriptions on one line (for Claude Code statusline)",
    )
    parser.add_argument(
        "--json", "-j", action="store_true", help="Output reports as JSON instead of text"
    )
    parser.add_argument(
        "--refresh", "-r", action="store_true", help="Bypass cached data and fetch now"
    )
    parser.add_argument(
        "--config",
        "-c",
        nargs="*",
        metavar="COMMAND",
        help="Configuration commands: show (default), reset, set KEY VALUE",
    )
    parser.add_argument(
        "--timeout",
        type=int,
        metavar="SECONDS",
        help=f"Request timeout in seconds ({MIN_TIMEOUT}-{MAX_TIMEOUT}, default from config)",
    )
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log cache and request details to stderr",
    )
    parser.add_argument(
        "--version",
        "-V",
        action="store_true",
        help="Show version and system information",
    )
    return parser


def print_version() -> None:
    """Print version and system information."""
    print(
        f"relay-watch {__version__} "
        f"(Python {sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}, "
        f"{platform.system()} {platform.machine()})"
    )


def setup_logging(verbose: bool = False) -> None:
    """Attach a stderr handler to the package logger.

    Args:
        verbose: Log at DEBUG instead of WARNING. RELAY_WATCH_DEBUG has
            the same effect.
    """
    package_logger = logging.getLogger("relay_watch")
    if not package_logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        package_logger.addHandler(handler)
    debug = verbose or bool(os.environ.get("RELAY_WATCH_DEBUG"))
    package_logger.setLevel(logging.DEBUG if debug else logging.WARNING)


def show_config(config: dict) -> None:
    """Display current configuration with the API key masked."""
    from relay_watch.api.cache import CACHE_DIR
    from relay_watch.config.credentials import (
        get_api_key_from_claude_settings,
        get_claude_settings_path,
        load_credentials,
    )
    from relay_watch.config.security import check_file_permissions, mask_api_key
    from relay_watch.config.settings import CONFIG_FILE

    credentials = load_credentials(config)

    print()
    print(f"{Colors.BOLD}Current Configuration{Colors.RESET}")
    print()

    if config.get("api_key"):
        source = "config"
    elif get_api_key_from_claude_settings():
        source = str(get_claude_settings_path())
    else:
        source = None

    if credentials is None:
        print(f"  API Key:          {Colors.DIM}Not configured{Colors.RESET}")
    else:
        print(
            f"  API Key:          {Colors.GREEN}{mask_api_key(credentials.api_key)}{Colors.RESET}"
            f" ({source})"
        )
        relay = credentials.service_name
        color = Colors.GREEN if credentials.provider is not None else Colors.YELLOW
        print(f"  Relay:            {color}{relay}{Colors.RESET}")
        print(f"  Usage URL:        {credentials.usage_url}")
        print(f"  Subscription URL: {credentials.subscription_url}")

    print()
    for key, label in (("usage_enabled", "Usage segment"), ("subscription_enabled", "Subscriptions")):
        enabled = config.get(key, True)
        color = Colors.GREEN if enabled else Colors.YELLOW
        print(f"  {label + ':':<18}{color}{'On' if enabled else 'Off'}{Colors.RESET}")
    print(f"  Timeout:          {config.get('timeout')}s")

    print()
    print(f"  Config File:      {CONFIG_FILE}")
    print(f"  Cache Dir:        {CACHE_DIR}")
    if CONFIG_FILE.exists():
        secure, message = check_file_permissions(CONFIG_FILE)
        if not secure:
            print(f"  {Colors.YELLOW}Warning: {message}{Colors.RESET}")
    print()


def handle_config_command(config_args: list, config: dict) -> int:
    """Handle configuration subcommands.

    Args:
        config_args: List of config command arguments.
        config: Currently loaded configuration.

    Returns:
        Exit code.
    """
    from relay_watch.config.settings import DEFAULT_CONFIG, reset_config, set_config_value

    # Just --config with no args is "show"
    if len(config_args) == 0 or config_args[0] == "show":
        show_config(config)
        return ExitCode.SUCCESS

    if config_args[0] == "reset":
        reset_config()
        print(f"{Colors.GREEN}Configuration reset to defaults.{Colors.RESET}")
        return ExitCode.SUCCESS

    if config_args[0] == "set":
        if len(config_args) != 3:
            print(f"{Colors.RED}Error: 'set' requires KEY and VALUE arguments{Colors.RESET}")
            print("Usage: relay-watch --config set KEY VALUE")
            print(f"\nValid keys: {', '.join(sorted(DEFAULT_CONFIG.keys()))}")
            return ExitCode.INVALID_ARGUMENT
        key, raw_value = config_args[1], config_args[2]
        try:
            saved = set_config_value(key, raw_value)
        except ConfigError as e:
            print(f"{Colors.RED}{format_error_for_user(e, verbose=True)}{Colors.RESET}")
            return e.code
        shown = saved[key]
        if key == "api_key":
            from relay_watch.config.security import mask_api_key

            shown = mask_api_key(shown)
        print(f"{Colors.GREEN}Set {key} = {shown}{Colors.RESET}")
        return ExitCode.SUCCESS

    print(f"{Colors.RED}Error: Unknown config command '{config_args[0]}'{Colors.RESET}")
    print("Available commands: show, reset, set KEY VALUE")
    return ExitCode.INVALID_ARGUMENT


def report_exit_code(*reports) -> int:
    """Exit code for the first report that could not be produced."""
    from relay_watch.usage.reconcile import UsageStatus

    for report in reports:
        if report is None:
            continue
        if report.status is UsageStatus.NOT_CONFIGURED:
            return ExitCode.AUTH_MISSING
        if report.status is UsageStatus.UNAVAILABLE and report.error is not None:
            return get_exit_code(report.error)
    return ExitCode.SUCCESS


def _print_report_errors(reports: list, verbose: bool) -> None:
    from relay_watch.usage.reconcile import UsageStatus

    for report in reports:
        if report is None:
            continue
        if report.status is UsageStatus.NOT_CONFIGURED:
            error = CredentialMissingError("No relay API key configured")
            print(format_error_for_user(error, verbose=True), file=sys.stderr)
            return
        if report.error is not None:
            print(format_error_for_user(report.error, verbose=verbose), file=sys.stderr)
            return


def main() -> None:
    """Main entry point for relay-watch CLI.

    Parses arguments, reconciles usage and subscriptions through the cache
    and prints the requested view.
    """
    from relay_watch.config.credentials import load_credentials
    from relay_watch.config.settings import load_config
    from relay_watch.display.statusline import (
        format_statusline,
        format_subscription_segment,
        format_usage_segment,
    )
    from relay_watch.usage.reconcile import UsageReconciler

    parser = create_parser()
    args = parser.parse_args()

    if args.no_color:
        init_colors(False)

    setup_logging(args.verbose)

    if args.version:
        print_version()
        return

    # Statusline output must stay a single line; skip config warnings there
    config = load_config(silent=args.statusline)

    if args.config is not None:
        sys.exit(handle_config_command(args.config, config))

    timeout = args.timeout if args.timeout is not None else config.get("timeout")
    if not isinstance(timeout, int) or not MIN_TIMEOUT <= timeout <= MAX_TIMEOUT:
        print(
            f"Error: timeout must be between {MIN_TIMEOUT} and {MAX_TIMEOUT} seconds",
            file=sys.stderr,
        )
        sys.exit(ExitCode.INVALID_ARGUMENT)

    reconciler = UsageReconciler(
        lambda: load_credentials(config),
        timeout=timeout,
        force_refresh=args.refresh,
    )

    if args.statusline or (args.json and not args.subscriptions):
        want_usage = config.get("usage_enabled", True)
        want_subscriptions = config.get("subscription_enabled", True)
    elif args.subscriptions:
        want_usage, want_subscriptions = False, True
    else:
        want_usage, want_subscriptions = True, False

    usage = reconciler.get_effective_usage() if want_usage else None
    subscriptions = reconciler.get_effective_subscriptions() if want_subscriptions else None
    logger.debug(
        "usage=%s subscriptions=%s",
        usage.status.value if usage else None,
        subscriptions.status.value if subscriptions else None,
    )

    if args.json:
        output = {
            "usage": usage.to_dict() if usage else None,
            "subscriptions": subscriptions.to_dict() if subscriptions else None,
        }
        print(json.dumps(output, indent=2, ensure_ascii=False))
    elif args.statusline:
        # A statusline command always prints a placeholder and succeeds
        print(format_statusline(usage, subscriptions))
        return
    elif args.subscriptions:
        text = format_subscription_segment(subscriptions)
        if text is not None:
            print(text)
    else:
        print(format_usage_segment(usage))

    exit_code = report_exit_code(usage, subscriptions)
    if exit_code != ExitCode.SUCCESS:
        _print_report_errors([usage, subscriptions], args.verbose)
        sys.exit(exit_code)


__all__ = [
    "create_parser",
    "main",
    "print_version",
    "setup_logging",
    "show_config",
    "handle_config_command",
    "report_exit_code",
]
