"""Usage normalization and subscription ordering.

Modules:
    models: Provider snapshots and subscription plans
    ordering: Billing and display orderings of plans
    reconcile: Effective usage across both endpoints (import directly)
"""

from relay_watch.usage.models import (
    Code88Usage,
    PackyUsage,
    SubscriptionEntity,
    SubscriptionPlan,
    UsageSnapshot,
    parse_subscriptions,
    parse_usage,
)
from relay_watch.usage.ordering import (
    billing_priority,
    select_billing_plan,
    sort_by_billing_priority,
    sort_for_display,
)

__all__ = [
    "SubscriptionEntity",
    "Code88Usage",
    "PackyUsage",
    "UsageSnapshot",
    "SubscriptionPlan",
    "parse_usage",
    "parse_subscriptions",
    "billing_priority",
    "sort_by_billing_priority",
    "select_billing_plan",
    "sort_for_display",
]
