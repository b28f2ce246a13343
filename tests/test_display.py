"""
Tests for statusline formatting.

Tests cover:
- make_progress_bar() - cell count and clamping
- get_status_color() / get_plan_color() - color thresholds
- format_usage_segment() - one line per report status
- format_subscription_segment() / format_statusline()
"""

import pytest

from relay_watch.display.colors import Colors, init_colors
from relay_watch.display.progress import get_plan_color, get_status_color, make_progress_bar
from relay_watch.display.statusline import (
    format_statusline,
    format_subscription_segment,
    format_usage_segment,
)
from relay_watch.usage.models import SubscriptionPlan, parse_usage
from relay_watch.usage.ordering import sort_for_display
from relay_watch.usage.reconcile import SubscriptionsReport, UsageReport, UsageStatus


@pytest.fixture(autouse=True)
def plain_colors():
    """Render without escape codes; restore detection afterwards."""
    init_colors(False)
    yield
    init_colors()


@pytest.fixture
def exhausted_snapshot(code88_usage_exhausted):
    return parse_usage(code88_usage_exhausted)


def make_paygo(current, limit):
    return SubscriptionPlan(
        plan_name="PAYGO",
        cost=50,
        billing_cycle_description="年付",
        status="活跃中",
        remaining_days=365,
        reset_times=0,
        is_active=True,
        current_credits=current,
        credit_limit=limit,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Test progress bar and colors
# ═══════════════════════════════════════════════════════════════════════════════


class TestProgressBar:
    """Tests for make_progress_bar()."""

    @pytest.mark.parametrize(
        "percentage,expected",
        [
            (0, "░░░░░░░░░░"),
            (25, "▓▓▓░░░░░░░"),
            (50, "▓▓▓▓▓░░░░░"),
            (100, "▓▓▓▓▓▓▓▓▓▓"),
            (150, "▓▓▓▓▓▓▓▓▓▓"),
            (-5, "░░░░░░░░░░"),
        ],
    )
    def test_cells(self, percentage, expected):
        """Test filled cells, rounding half up and clamping."""
        assert make_progress_bar(percentage) == expected


class TestColors:
    """Tests for color thresholds with colors enabled."""

    @pytest.fixture(autouse=True)
    def enable_colors(self):
        init_colors(True)
        yield
        init_colors(False)

    def test_status_thresholds(self):
        """Test green to 50%, yellow to 80%, red above."""
        assert get_status_color(50) == Colors.GREEN
        assert get_status_color(50.1) == Colors.YELLOW
        assert get_status_color(80) == Colors.YELLOW
        assert get_status_color(80.1) == Colors.RED
        assert Colors.GREEN == "\033[38;5;114m"

    def test_plan_colors(self):
        """Test plan tier colors."""
        assert get_plan_color("plus") == Colors.ORANGE
        assert get_plan_color("MAX") == Colors.ORANGE
        assert get_plan_color("PAYGO") == Colors.BLUE
        assert get_plan_color("FREE") == Colors.GRAY
        assert get_plan_color("TEAM") == Colors.WHITE

    def test_bar_wrapped_in_color(self):
        """Test that the bar carries the status color and a reset."""
        bar = make_progress_bar(90)

        assert bar.startswith(Colors.RED)
        assert bar.endswith(Colors.RESET)

    def test_disable(self):
        """Test that disabling clears every code."""
        init_colors(False)

        assert Colors.RED == ""
        assert Colors.RESET == ""


# ═══════════════════════════════════════════════════════════════════════════════
# Test format_usage_segment()
# ═══════════════════════════════════════════════════════════════════════════════


class TestUsageSegment:
    """Tests for the usage segment per status."""

    def test_ok(self, normal_snapshot):
        """Test the normal dollars-and-bar line."""
        report = UsageReport(UsageStatus.OK, service="88code", snapshot=normal_snapshot)

        assert format_usage_segment(report) == "$4.65/$20 ▓▓░░░░░░░░"

    def test_ok_packy(self, packy_usage_normal):
        """Test the same line for a packy snapshot."""
        report = UsageReport(
            UsageStatus.OK, service="packy", snapshot=parse_usage(packy_usage_normal)
        )

        assert format_usage_segment(report) == "$5.00/$20 ▓▓▓░░░░░░░"

    def test_paygo_balance(self, code88_usage_only_free):
        """Test PAYGO before exhaustion shows the remaining balance."""
        report = UsageReport(
            UsageStatus.PAYGO,
            snapshot=parse_usage(code88_usage_only_free),
            paygo=make_paygo(8, 20),
        )

        assert format_usage_segment(report) == "PAYGO $8.00"

    def test_paygo_after_exhaustion(self, exhausted_snapshot):
        """Test PAYGO after exhaustion shows spend against the PAYGO total."""
        report = UsageReport(
            UsageStatus.PAYGO, snapshot=exhausted_snapshot, paygo=make_paygo(12.5, 50)
        )

        assert format_usage_segment(report) == "PAYGO $37.50/$50 ▓▓▓▓▓▓▓▓░░"

    def test_paygo_without_limit(self, exhausted_snapshot):
        """Test PAYGO with unknown total falls back to the balance."""
        report = UsageReport(
            UsageStatus.PAYGO, snapshot=exhausted_snapshot, paygo=make_paygo(12.5, 0)
        )

        assert format_usage_segment(report) == "PAYGO $12.50"

    @pytest.mark.parametrize(
        "status,reset_times,hint",
        [
            (UsageStatus.OTHER_PLANS_AVAILABLE, 0, "other plans available"),
            (UsageStatus.MANUAL_RESET_AVAILABLE, 2, "2 resets left, reset manually"),
            (UsageStatus.NO_RESETS_REMAINING, 0, "no resets left"),
            (UsageStatus.EXHAUSTED, 0, "recharge or reset credits"),
        ],
    )
    def test_exhausted(self, exhausted_snapshot, status, reset_times, hint):
        """Test each exhaustion hint."""
        report = UsageReport(status, snapshot=exhausted_snapshot, reset_times=reset_times)

        assert format_usage_segment(report) == f"$20.00/$20 exhausted · {hint}"

    def test_placeholders(self):
        """Test the placeholder lines."""
        assert format_usage_segment(UsageReport(UsageStatus.NOT_CONFIGURED)) == "not configured"
        assert format_usage_segment(UsageReport(UsageStatus.UNAVAILABLE)) == "loading..."
        assert "not supported" in format_usage_segment(UsageReport(UsageStatus.UNSUPPORTED))


# ═══════════════════════════════════════════════════════════════════════════════
# Test format_subscription_segment() / format_statusline()
# ═══════════════════════════════════════════════════════════════════════════════


class TestSubscriptionSegment:
    """Tests for the subscription segment."""

    def test_plans(self, mixed_plans):
        """Test the compact plan list with the 付 suffix dropped."""
        report = SubscriptionsReport(UsageStatus.OK, plans=sort_for_display(mixed_plans))

        assert format_subscription_segment(report) == (
            "FREE ¥0/月 12d | PLUS ¥198/月 53d | PAYGO ¥50/年 365d"
        )

    def test_no_plans(self):
        """Test the placeholder when nothing is active."""
        assert format_subscription_segment(SubscriptionsReport(UsageStatus.OK)) == "no subscription"
        assert (
            format_subscription_segment(SubscriptionsReport(UsageStatus.NOT_CONFIGURED))
            == "no subscription"
        )

    def test_hidden(self):
        """Test that unsupported relays and failed loads show nothing."""
        assert format_subscription_segment(SubscriptionsReport(UsageStatus.UNSUPPORTED)) is None
        assert format_subscription_segment(SubscriptionsReport(UsageStatus.UNAVAILABLE)) is None

    def test_statusline_joins_segments(self, normal_snapshot, mixed_plans):
        """Test that both segments are joined on one line."""
        usage = UsageReport(UsageStatus.OK, snapshot=normal_snapshot)
        subscriptions = SubscriptionsReport(UsageStatus.OK, plans=sort_for_display(mixed_plans)[:1])

        assert format_statusline(usage, subscriptions) == "$4.65/$20 ▓▓░░░░░░░░ | FREE ¥0/月 12d"

    def test_statusline_skips_hidden_segment(self, normal_snapshot):
        """Test that a hidden subscription segment leaves only usage."""
        usage = UsageReport(UsageStatus.OK, snapshot=normal_snapshot)

        assert format_statusline(usage, SubscriptionsReport(UsageStatus.UNSUPPORTED)) == (
            "$4.65/$20 ▓▓░░░░░░░░"
        )
        assert format_statusline(None, None) == ""
