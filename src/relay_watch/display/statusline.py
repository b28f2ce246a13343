"""Statusline segment formatting.

Turns reconciliation reports into single-line segments suitable for a
Claude Code statusline command. Formatting only: every decision about
which figure to show is made in relay_watch.usage.reconcile.
"""

from __future__ import annotations

from relay_watch.display.colors import Colors
from relay_watch.display.progress import get_plan_color, make_progress_bar
from relay_watch.usage.models import TOKENS_PER_CREDIT
from relay_watch.usage.reconcile import SubscriptionsReport, UsageReport, UsageStatus

SEPARATOR = " | "

NOT_CONFIGURED_TEXT = "not configured"
UNSUPPORTED_TEXT = "usage not supported by this relay"
LOADING_TEXT = "loading..."
NO_SUBSCRIPTION_TEXT = "no subscription"

EXHAUSTED_HINTS = {
    UsageStatus.OTHER_PLANS_AVAILABLE: "other plans available",
    UsageStatus.NO_RESETS_REMAINING: "no resets left",
    UsageStatus.EXHAUSTED: "recharge or reset credits",
}


def _amounts(report: UsageReport) -> str:
    snapshot = report.snapshot
    used = snapshot.used_tokens / TOKENS_PER_CREDIT
    return f"${used:.2f}/${snapshot.credit_limit:.0f}"


def _paygo_text(report: UsageReport) -> str:
    plan = report.paygo
    label = f"{Colors.BLUE}PAYGO{Colors.RESET}"
    # Bar only once the subscription plan is exhausted and the PAYGO total is known
    if report.snapshot is not None and report.snapshot.is_exhausted() and plan.credit_limit > 0:
        used = plan.credit_limit - plan.current_credits
        bar = make_progress_bar(used / plan.credit_limit * 100, color=Colors.BLUE)
        return f"{label} ${used:.2f}/${plan.credit_limit:.0f} {bar}"
    return f"{label} ${plan.current_credits:.2f}"


def format_usage_segment(report: UsageReport) -> str:
    """Format a usage report as one statusline segment.

    Args:
        report: Result of UsageReconciler.get_effective_usage().

    Returns:
        Text like "$4.65/$20 ▓▓░░░░░░░░" or "PAYGO $12.50".
    """
    status = report.status
    if status is UsageStatus.NOT_CONFIGURED:
        return NOT_CONFIGURED_TEXT
    if status is UsageStatus.UNSUPPORTED:
        return UNSUPPORTED_TEXT
    if status is UsageStatus.UNAVAILABLE:
        return LOADING_TEXT
    if status is UsageStatus.PAYGO:
        return _paygo_text(report)

    if status is UsageStatus.OK:
        snapshot = report.snapshot
        if snapshot.credit_limit > 0:
            used = snapshot.used_tokens / TOKENS_PER_CREDIT
            percentage = used / snapshot.credit_limit * 100
        else:
            percentage = 0.0
        return f"{_amounts(report)} {make_progress_bar(percentage)}"

    if status is UsageStatus.MANUAL_RESET_AVAILABLE:
        hint = f"{report.reset_times} resets left, reset manually"
    else:
        hint = EXHAUSTED_HINTS[status]
    return f"{Colors.RED}{_amounts(report)} exhausted{Colors.RESET} · {Colors.DIM}{hint}{Colors.RESET}"


def format_subscription_segment(report: SubscriptionsReport) -> str | None:
    """Format a subscriptions report as one statusline segment.

    Returns:
        Text like "PLUS ¥198/月 53d | FREE ¥0/月 12d", or None when the
        relay has no subscription endpoint or the list could not be loaded.
    """
    if report.status in (UsageStatus.UNSUPPORTED, UsageStatus.UNAVAILABLE):
        return None
    if report.status is UsageStatus.NOT_CONFIGURED or not report.plans:
        return NO_SUBSCRIPTION_TEXT

    parts = []
    for plan in report.plans:
        color = get_plan_color(plan.plan_name)
        price = plan.plan_price_label.replace("付", "")
        parts.append(f"{color}{plan.plan_name} {price} {plan.remaining_days}d{Colors.RESET}")
    return SEPARATOR.join(parts)


def format_statusline(
    usage: UsageReport | None, subscriptions: SubscriptionsReport | None
) -> str:
    """Join the usage and subscription segments that have something to show."""
    segments = []
    if usage is not None:
        segments.append(format_usage_segment(usage))
    if subscriptions is not None:
        text = format_subscription_segment(subscriptions)
        if text is not None:
            segments.append(text)
    return SEPARATOR.join(segments)


__all__ = [
    "SEPARATOR",
    "format_usage_segment",
    "format_subscription_segment",
    "format_statusline",
]
