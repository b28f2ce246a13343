"""Subscription ordering.

Two total orders over a user's plans:

- billing order: which plan the relay charges first (paid plans, then
  PAYGO, then FREE; earlier purchases first within a group)
- display order: live plans only, FREE first, then soonest to expire
"""

from __future__ import annotations

from typing import Iterable

from relay_watch.usage.models import FREE_PLAN, PAYGO_PLAN, SubscriptionPlan

PRIORITY_PAID = 1
PRIORITY_PAYGO = 2
PRIORITY_FREE = 3


def billing_priority(plan: SubscriptionPlan) -> int:
    """Billing priority of a plan; lower is charged first."""
    name = plan.plan_name.upper()
    if name == FREE_PLAN:
        return PRIORITY_FREE
    if name == PAYGO_PLAN:
        return PRIORITY_PAYGO
    return PRIORITY_PAID


def sort_by_billing_priority(plans: Iterable[SubscriptionPlan]) -> list[SubscriptionPlan]:
    """Sort plans by (billing priority, id); lower id means earlier purchase."""
    return sorted(plans, key=lambda plan: (billing_priority(plan), plan.id))


def select_billing_plan(ordered: list[SubscriptionPlan]) -> SubscriptionPlan | None:
    """Pick the plan currently being charged from a billing-ordered list.

    The first non-FREE plan with consumption (credits below limit) wins;
    failing that, the first non-FREE plan that still has a balance.
    """
    candidates = [plan for plan in ordered if not plan.is_free]
    for plan in candidates:
        if plan.current_credits < plan.credit_limit:
            return plan
    for plan in candidates:
        if plan.current_credits > 0:
            return plan
    return None


def sort_for_display(plans: Iterable[SubscriptionPlan]) -> list[SubscriptionPlan]:
    """Drop inactive and expired plans; FREE first, then by remaining days.

    Ties are broken by id and name so the order does not depend on the
    order the relay returned the plans in.
    """
    live = [plan for plan in plans if plan.is_active and plan.remaining_days > 0]
    return sorted(
        live,
        key=lambda plan: (not plan.is_free, plan.remaining_days, plan.id, plan.plan_name),
    )


__all__ = [
    "PRIORITY_PAID",
    "PRIORITY_PAYGO",
    "PRIORITY_FREE",
    "billing_priority",
    "sort_by_billing_priority",
    "select_billing_plan",
    "sort_for_display",
]
