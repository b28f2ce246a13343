"""
Tests for usage and subscription models.

Tests cover:
- parse_usage() - structural resolution of 88code and packy payloads
- Code88Usage.calculate() / PackyUsage.calculate() - derived fields
- Code88Usage.from_subscriptions() - fallback reconstruction
- SubscriptionPlan parsing, price labels and credit limit backfill
- Cache serialization of snapshots and plans
"""

import pytest

from relay_watch.config.credentials import Provider
from relay_watch.errors import ShapeMismatchError
from relay_watch.usage.models import (
    Code88Usage,
    PackyUsage,
    SubscriptionEntity,
    SubscriptionPlan,
    format_plan_price,
    parse_subscriptions,
    parse_usage,
    plans_from_dicts,
    snapshot_from_dict,
    unwrap_envelope,
)


def make_plan(name, current=0.0, limit=0.0, plan_id=0, active=True, status="活跃中", days=30, resets=0):
    return SubscriptionPlan(
        plan_name=name,
        cost=0.0,
        billing_cycle_description="月付",
        status=status,
        remaining_days=days,
        reset_times=resets,
        is_active=active,
        current_credits=current,
        credit_limit=limit,
        id=plan_id,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Test parse_usage()
# ═══════════════════════════════════════════════════════════════════════════════


class TestParseUsage:
    """Tests for structural payload resolution."""

    def test_code88_envelope(self, code88_usage_normal):
        """Test that a wrapped 88code payload resolves to Code88Usage."""
        snapshot = parse_usage(code88_usage_normal)

        assert isinstance(snapshot, Code88Usage)
        assert snapshot.provider is Provider.CODE88
        assert snapshot.total_tokens == 1843200
        assert len(snapshot.subscription_entities) == 2

    def test_code88_without_envelope(self, code88_usage_overdrawn):
        """Test that an unwrapped 88code payload is accepted."""
        snapshot = parse_usage(code88_usage_overdrawn)

        assert isinstance(snapshot, Code88Usage)

    def test_packy_envelope(self, packy_usage_normal):
        """Test that the packy {code, data, message} envelope is unwrapped."""
        snapshot = parse_usage(packy_usage_normal)

        assert isinstance(snapshot, PackyUsage)
        assert snapshot.name == "default"
        assert snapshot.object == "token_usage"

    def test_unknown_shape_raises(self):
        """Test that a payload matching neither schema is rejected."""
        with pytest.raises(ShapeMismatchError) as exc_info:
            parse_usage({"balance": 12, "currency": "USD"})

        assert "no known relay schema" in exc_info.value.message

    def test_explicit_provider_only_tries_that_schema(self, packy_usage_normal):
        """Test that a provider hint does not fall back to the other schema."""
        with pytest.raises(ShapeMismatchError):
            parse_usage(packy_usage_normal, Provider.CODE88)

    def test_packy_rejects_non_integer_quota(self, packy_usage_normal):
        """Test that packy quota fields must be integers."""
        packy_usage_normal["data"]["total_used"] = "2500000"

        with pytest.raises(ShapeMismatchError):
            parse_usage(packy_usage_normal, Provider.PACKY)

    def test_code88_null_fields_read_as_zero(self):
        """Test that null 88code numbers and lists are tolerated."""
        snapshot = parse_usage(
            {"creditLimit": None, "currentCredits": None, "subscriptionEntityList": None}
        )

        assert snapshot.credit_limit == 0
        assert snapshot.subscription_entities == ()
        assert not snapshot.is_valid()

    @pytest.mark.parametrize("field", ["creditLimit", "currentCredits", "totalTokens"])
    def test_code88_non_finite_number_raises(self, code88_usage_overdrawn, field):
        """Test that NaN or Infinity in an 88code field is a schema mismatch."""
        code88_usage_overdrawn[field] = float("inf")

        with pytest.raises(ShapeMismatchError):
            parse_usage(code88_usage_overdrawn, Provider.CODE88)

    def test_unwrap_leaves_bare_payload(self, code88_usage_overdrawn):
        """Test that a payload without an envelope is returned unchanged."""
        assert unwrap_envelope(code88_usage_overdrawn) is code88_usage_overdrawn


# ═══════════════════════════════════════════════════════════════════════════════
# Test Code88Usage
# ═══════════════════════════════════════════════════════════════════════════════


class TestCode88Usage:
    """Tests for 88code derived fields and predicates."""

    def test_normal_usage(self, normal_snapshot):
        """Test figures for a partly used PLUS plan."""
        assert normal_snapshot.credit_limit == 20
        assert normal_snapshot.current_credits == pytest.approx(15.35)
        assert normal_snapshot.used_tokens == 465
        assert normal_snapshot.remaining_tokens == 1535
        assert normal_snapshot.percentage_used == pytest.approx(23.25)
        assert not normal_snapshot.is_exhausted()
        assert not normal_snapshot.has_only_free()

    def test_selected_plan_overrides_top_level(self):
        """Test that the billed plan's numbers replace the top-level values."""
        snapshot = Code88Usage(
            credit_limit=100,
            current_credits=100,
            subscription_entities=(
                SubscriptionEntity("FREE", 5, 1, True),
                SubscriptionEntity("PRO", 50, 30, True),
            ),
        ).calculate()

        assert snapshot.credit_limit == 50
        assert snapshot.current_credits == 30
        assert snapshot.used_tokens == 2000

    def test_inactive_and_unused_entities_skipped(self):
        """Test that inactive plans and untouched plans are not selected."""
        snapshot = Code88Usage(
            credit_limit=10,
            current_credits=4,
            subscription_entities=(
                SubscriptionEntity("MAX", 100, 20, False),
                SubscriptionEntity("PLUS", 20, 20, True),
            ),
        ).calculate()

        assert snapshot.credit_limit == 10
        assert snapshot.current_credits == 4

    def test_overdrawn_plan(self, code88_usage_overdrawn):
        """Test that overage clamps percentage and remaining tokens."""
        snapshot = parse_usage(code88_usage_overdrawn)

        assert snapshot.percentage_used == 100.0
        assert snapshot.remaining_tokens == 0
        assert snapshot.used_tokens == 2150
        assert snapshot.is_exhausted()

    def test_zero_limit_percentage(self, code88_usage_empty):
        """Test that a zero limit gives 0% rather than dividing by zero."""
        snapshot = parse_usage(code88_usage_empty)

        assert snapshot.percentage_used == 0.0
        assert not snapshot.is_valid()
        assert snapshot.is_exhausted()

    def test_only_free(self, code88_usage_only_free):
        """Test that a FREE-only account falls back to top-level figures."""
        snapshot = parse_usage(code88_usage_only_free)

        assert snapshot.has_only_free()
        assert snapshot.credit_limit == 5
        assert snapshot.used_tokens == 200
        assert snapshot.percentage_used == pytest.approx(40.0)
        assert not snapshot.is_exhausted()

    def test_paygo_entity_counts_as_free_for_only_free(self):
        """Test that PAYGO does not count as a subscription plan."""
        snapshot = Code88Usage(
            credit_limit=5,
            current_credits=5,
            subscription_entities=(
                SubscriptionEntity("FREE", 5, 5, True),
                SubscriptionEntity("PAYGO", 50, 10, True),
            ),
        )

        assert snapshot.has_only_free()

    def test_calculate_is_idempotent(self, normal_snapshot):
        """Test that recalculating a calculated snapshot changes nothing."""
        assert normal_snapshot.calculate() == normal_snapshot

    def test_calculate_returns_new_snapshot(self):
        """Test that calculate() leaves the parsed snapshot untouched."""
        raw = Code88Usage(credit_limit=20, current_credits=5)
        calculated = raw.calculate()

        assert raw.used_tokens == 0
        assert calculated.used_tokens == 1500


# ═══════════════════════════════════════════════════════════════════════════════
# Test PackyUsage
# ═══════════════════════════════════════════════════════════════════════════════


class TestPackyUsage:
    """Tests for packy unit conversion and predicates."""

    def test_conversion(self, packy_usage_normal):
        """Test that quota units convert at 500000 per dollar."""
        snapshot = parse_usage(packy_usage_normal)

        assert snapshot.used_tokens == 500
        assert snapshot.remaining_tokens == 1500
        assert snapshot.credit_limit == pytest.approx(20.0)
        assert snapshot.current_credits == pytest.approx(15.0)
        assert snapshot.percentage_used == pytest.approx(25.0)
        assert snapshot.is_valid()
        assert not snapshot.is_exhausted()
        assert not snapshot.has_only_free()

    def test_exhausted(self, packy_usage_exhausted):
        """Test that zero available quota is exhausted."""
        assert parse_usage(packy_usage_exhausted).is_exhausted()

    def test_unlimited_is_never_exhausted(self, packy_usage_unlimited):
        """Test that unlimited quotas are not exhausted at zero available."""
        snapshot = parse_usage(packy_usage_unlimited)

        assert snapshot.remaining_tokens == 0
        assert snapshot.percentage_used == 0.0
        assert not snapshot.is_exhausted()

    def test_percentage_not_capped(self):
        """Test that packy overage reports above 100%."""
        snapshot = PackyUsage(
            total_used=6_000_000,
            total_available=0,
            total_granted=5_000_000,
            unlimited_quota=False,
        ).calculate()

        assert snapshot.percentage_used == pytest.approx(120.0)

    def test_negative_balance_overage(self):
        """Test that a negative balance clamps remaining tokens but keeps the overage."""
        snapshot = PackyUsage(
            total_used=1_200_000,
            total_available=-200_000,
            total_granted=1_000_000,
            unlimited_quota=False,
        ).calculate()

        assert snapshot.percentage_used == pytest.approx(120.0)
        assert snapshot.remaining_tokens == 0
        assert snapshot.used_tokens == 240
        assert snapshot.current_credits == pytest.approx(-0.4)
        assert snapshot.credit_limit == pytest.approx(2.0)
        assert snapshot.is_exhausted()


# ═══════════════════════════════════════════════════════════════════════════════
# Test Code88Usage.from_subscriptions()
# ═══════════════════════════════════════════════════════════════════════════════


class TestFromSubscriptions:
    """Tests for rebuilding usage from the subscription list."""

    def test_selects_paid_plan(self, mixed_plans):
        """Test that the consumed paid plan supplies the figures."""
        snapshot = Code88Usage.from_subscriptions(mixed_plans)

        assert snapshot.credit_limit == 20
        assert snapshot.current_credits == pytest.approx(15.35)
        assert snapshot.used_tokens == 465
        assert [e.name for e in snapshot.subscription_entities] == ["PLUS", "PAYGO", "FREE"]
        assert snapshot.is_valid()

    def test_falls_through_to_paygo(self):
        """Test that PAYGO is billed once no paid plan is consumed."""
        plans = [
            make_plan("FREE", current=5, limit=5, plan_id=1),
            make_plan("PAYGO", current=12.5, limit=50, plan_id=2),
        ]

        snapshot = Code88Usage.from_subscriptions(plans)

        assert snapshot.credit_limit == 50
        assert snapshot.current_credits == 12.5

    def test_ignores_inactive_status(self):
        """Test that plans outside the active statuses are dropped."""
        plans = [
            make_plan("PLUS", current=5, limit=20, status="已过期"),
            make_plan("PRO", current=10, limit=50, active=False),
        ]

        snapshot = Code88Usage.from_subscriptions(plans)

        assert snapshot.credit_limit == 0
        assert snapshot.subscription_entities == ()
        assert snapshot.is_exhausted()

    def test_accepts_english_status(self):
        """Test that "active" counts the same as the localized status."""
        snapshot = Code88Usage.from_subscriptions(
            [make_plan("PLUS", current=5, limit=20, status="active")]
        )

        assert snapshot.credit_limit == 20

    def test_same_priority_prefers_earlier_purchase(self):
        """Test that two consumed paid plans resolve to the lower id."""
        plans = [
            make_plan("PLUS", current=10, limit=20, plan_id=5),
            make_plan("PRO", current=30, limit=50, plan_id=3),
        ]

        snapshot = Code88Usage.from_subscriptions(plans)

        assert snapshot.credit_limit == 50
        assert snapshot.current_credits == 30
        assert [e.name for e in snapshot.subscription_entities] == ["PRO", "PLUS"]


# ═══════════════════════════════════════════════════════════════════════════════
# Test SubscriptionPlan
# ═══════════════════════════════════════════════════════════════════════════════


class TestSubscriptionPlan:
    """Tests for subscription plan parsing."""

    def test_parse_mixed(self, mixed_plans):
        """Test fields of a parsed plan."""
        plus = mixed_plans[0]

        assert plus.plan_name == "PLUS"
        assert plus.id == 101
        assert plus.remaining_days == 53
        assert plus.reset_times == 2
        assert plus.expires_at == "2026-12-11 00:00:00"
        assert plus.plan_price_label == "¥198/月付"

    def test_credit_limit_backfilled_from_plan_detail(self, mixed_plans):
        """Test that a null top-level creditLimit uses subscriptionPlan.creditLimit."""
        free = mixed_plans[1]

        assert free.credit_limit == 5
        assert free.is_free

    def test_top_level_credit_limit_wins(self):
        """Test that a present top-level limit is not overwritten."""
        plan = SubscriptionPlan(
            plan_name="PRO",
            cost=398,
            billing_cycle_description="月付",
            status="活跃中",
            remaining_days=10,
            reset_times=1,
            is_active=True,
            credit_limit=40,
            plan_detail_credit_limit=50,
        )

        assert plan.credit_limit == 40

    def test_paygo_case_insensitive(self):
        """Test that plan type checks ignore case."""
        assert make_plan("paygo").is_paygo
        assert make_plan("Free").is_free

    def test_missing_field_raises(self, subscriptions_mixed):
        """Test that an entry without a required field is rejected."""
        del subscriptions_mixed["data"][0]["remainingDays"]

        with pytest.raises(ShapeMismatchError):
            parse_subscriptions(subscriptions_mixed)

    def test_non_list_payload_raises(self):
        """Test that a non-list subscription payload is rejected."""
        with pytest.raises(ShapeMismatchError):
            parse_subscriptions({"code": 0, "ok": True, "msg": "", "data": {"plans": []}})

    @pytest.mark.parametrize("bad_id", ["abc", {"id": 1}, [101], True, float("nan")])
    def test_mistyped_id_raises(self, subscriptions_mixed, bad_id):
        """Test that a non-numeric plan id is a schema mismatch."""
        subscriptions_mixed["data"][0]["id"] = bad_id

        with pytest.raises(ShapeMismatchError):
            parse_subscriptions(subscriptions_mixed)

    def test_missing_id_reads_as_zero(self, subscriptions_mixed):
        """Test that an absent id sorts as the earliest purchase."""
        del subscriptions_mixed["data"][0]["id"]

        assert parse_subscriptions(subscriptions_mixed)[0].id == 0

    @pytest.mark.parametrize("field", ["remainingDays", "resetTimes", "cost", "currentCredits"])
    @pytest.mark.parametrize("value", [float("nan"), float("inf")])
    def test_non_finite_number_raises(self, subscriptions_mixed, field, value):
        """Test that NaN and Infinity are rejected instead of crashing int()."""
        subscriptions_mixed["data"][0][field] = value

        with pytest.raises(ShapeMismatchError):
            parse_subscriptions(subscriptions_mixed)

    def test_format_plan_price(self):
        """Test price labels for whole and fractional costs."""
        assert format_plan_price(198.0, "月付") == "¥198/月付"
        assert format_plan_price(12.5, "月") == "¥12.5/月"


# ═══════════════════════════════════════════════════════════════════════════════
# Test Serialization
# ═══════════════════════════════════════════════════════════════════════════════


class TestSerialization:
    """Tests for the cached form of snapshots and plans."""

    def test_code88_snapshot_roundtrip(self, normal_snapshot):
        """Test that a cached 88code snapshot rebuilds equal."""
        assert snapshot_from_dict(normal_snapshot.to_dict()) == normal_snapshot

    def test_packy_snapshot_roundtrip(self, packy_usage_normal):
        """Test that a cached packy snapshot rebuilds equal."""
        snapshot = parse_usage(packy_usage_normal)

        assert snapshot_from_dict(snapshot.to_dict()) == snapshot

    def test_unknown_provider_raises(self, normal_snapshot):
        """Test that a record with an unknown provider tag is rejected."""
        data = normal_snapshot.to_dict()
        data["provider"] = "other"

        with pytest.raises(ShapeMismatchError):
            snapshot_from_dict(data)

    def test_plans_roundtrip(self, mixed_plans):
        """Test that cached plans rebuild equal, price label included."""
        rebuilt = plans_from_dicts([plan.to_dict() for plan in mixed_plans])

        assert rebuilt == mixed_plans
        assert rebuilt[0].plan_price_label == "¥198/月付"

    def test_malformed_plans_raise(self):
        """Test that a cached plan missing fields is rejected."""
        with pytest.raises(ShapeMismatchError):
            plans_from_dicts([{"plan_name": "PLUS"}])
