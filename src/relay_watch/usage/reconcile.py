"""Reconciliation of relay usage into one displayable figure.

The usage endpoint is the primary source. When 88code returns an invalid
snapshot (no limit and no plans) the figure is rebuilt from the
subscription list instead, and when the billed plan is exhausted the
subscription list decides what to tell the user: a PAYGO balance, other
plans, a manual reset, or nothing left.

Both endpoints are read through the tiered cache: fresh records are used
as-is, stale-but-usable records are used and revalidated in the
background, and anything older is fetched synchronously, falling back to
the old record when the fetch fails.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from relay_watch.api import cache
from relay_watch.api.cache import CacheKind, FreshnessTier
from relay_watch.api.client import DEFAULT_TIMEOUT, fetch_subscriptions, fetch_usage
from relay_watch.api.refresh import schedule_refresh
from relay_watch.config.credentials import Credentials, Provider
from relay_watch.errors import CacheIOError, RelayWatchError
from relay_watch.usage.models import Code88Usage, SubscriptionPlan, UsageSnapshot
from relay_watch.usage.ordering import sort_for_display

logger = logging.getLogger(__name__)

CredentialsSource = Callable[[], Optional[Credentials]]


class UsageStatus(str, Enum):
    NOT_CONFIGURED = "not_configured"
    UNSUPPORTED = "unsupported"
    UNAVAILABLE = "unavailable"
    OK = "ok"
    PAYGO = "paygo"
    OTHER_PLANS_AVAILABLE = "other_plans_available"
    MANUAL_RESET_AVAILABLE = "manual_reset_available"
    NO_RESETS_REMAINING = "no_resets_remaining"
    EXHAUSTED = "exhausted"


EXHAUSTED_STATUSES = frozenset(
    {
        UsageStatus.OTHER_PLANS_AVAILABLE,
        UsageStatus.MANUAL_RESET_AVAILABLE,
        UsageStatus.NO_RESETS_REMAINING,
        UsageStatus.EXHAUSTED,
    }
)


@dataclass
class UsageReport:
    """Outcome of one usage reconciliation pass."""

    status: UsageStatus
    service: str = "relay"
    snapshot: UsageSnapshot | None = None
    paygo: SubscriptionPlan | None = None
    reset_times: int = 0
    stale: bool = False
    error: RelayWatchError | None = field(default=None, compare=False)

    @property
    def is_exhausted(self) -> bool:
        return self.status in EXHAUSTED_STATUSES

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "service": self.service,
            "snapshot": self.snapshot.to_dict() if self.snapshot else None,
            "paygo": self.paygo.to_dict() if self.paygo else None,
            "reset_times": self.reset_times,
            "stale": self.stale,
            "error": self.error.message if self.error else None,
        }


@dataclass
class SubscriptionsReport:
    """Subscription plans in display order."""

    status: UsageStatus
    plans: list[SubscriptionPlan] = field(default_factory=list)
    stale: bool = False
    error: RelayWatchError | None = field(default=None, compare=False)

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "plans": [dict(plan.to_dict(), plan_price_label=plan.plan_price_label) for plan in self.plans],
            "stale": self.stale,
            "error": self.error.message if self.error else None,
        }


def find_paygo_plan(plans: list[SubscriptionPlan]) -> SubscriptionPlan | None:
    """First active PAYGO plan that still has a balance."""
    for plan in plans:
        if plan.is_active and plan.is_paygo and plan.current_credits > 0:
            return plan
    return None


class UsageReconciler:
    """Produces usage and subscription reports for one set of credentials.

    Args:
        credentials_source: Zero-argument callable returning Credentials,
            or None when no key is configured.
        timeout: Request timeout in seconds for synchronous fetches.
        force_refresh: Ignore fresh and stale cache records and fetch.
        background_refresh: Revalidate stale records on a background thread.
    """

    def __init__(
        self,
        credentials_source: CredentialsSource,
        timeout: int = DEFAULT_TIMEOUT,
        force_refresh: bool = False,
        background_refresh: bool = True,
    ):
        self.credentials_source = credentials_source
        self.timeout = timeout
        self.force_refresh = force_refresh
        self.background_refresh = background_refresh

    def _read_through(
        self,
        kind: CacheKind,
        credentials: Credentials,
        read_cached: Callable[[], Any],
        fetch: Callable[[Credentials, int], Any],
        save: Callable[[Any], Any],
    ) -> tuple[Any, bool]:
        """Return (value, stale) for one kind, honouring the cache tiers.

        Raises:
            RelayWatchError: If the synchronous fetch fails and nothing is cached.
        """
        cached = read_cached()
        if cached is not None and not self.force_refresh:
            value, tier = cached
            if tier is FreshnessTier.FRESH:
                return value, False
            if tier is FreshnessTier.STALE_BUT_USABLE:
                if self.background_refresh:
                    schedule_refresh(kind, credentials, self.timeout)
                return value, True

        try:
            value = fetch(credentials, self.timeout)
        except RelayWatchError as e:
            if cached is None:
                raise
            logger.debug("Fetching %s failed, serving cached record: %s", kind.value, e.message)
            return cached[0], True

        try:
            save(value)
        except CacheIOError as e:
            logger.warning("%s (%s)", e.message, e.details)
        return value, False

    def _usage(self, credentials: Credentials) -> tuple[UsageSnapshot, bool]:
        return self._read_through(
            CacheKind.USAGE,
            credentials,
            cache.get_cached_usage,
            fetch_usage,
            cache.save_cached_usage,
        )

    def _subscriptions(self, credentials: Credentials) -> tuple[list[SubscriptionPlan], bool]:
        return self._read_through(
            CacheKind.SUBSCRIPTIONS,
            credentials,
            cache.get_cached_subscriptions,
            fetch_subscriptions,
            cache.save_cached_subscriptions,
        )

    def _subscriptions_or_none(
        self, credentials: Credentials
    ) -> tuple[list[SubscriptionPlan] | None, bool]:
        try:
            return self._subscriptions(credentials)
        except RelayWatchError as e:
            logger.debug("Subscription list unavailable: %s", e.message)
            return None, False

    def get_effective_usage(self) -> UsageReport:
        """Reconcile usage for the configured credentials."""
        credentials = self.credentials_source()
        if credentials is None:
            return UsageReport(UsageStatus.NOT_CONFIGURED)

        service = credentials.service_name
        provider = credentials.provider
        if provider is None:
            return UsageReport(UsageStatus.UNSUPPORTED, service=service)

        try:
            snapshot, stale = self._usage(credentials)
        except RelayWatchError as e:
            return UsageReport(UsageStatus.UNAVAILABLE, service=service, error=e)

        plans: list[SubscriptionPlan] | None = None
        if not snapshot.is_valid():
            plans, plans_stale = self._subscriptions_or_none(credentials)
            if plans is None:
                return UsageReport(UsageStatus.UNAVAILABLE, service=service, stale=stale)
            snapshot = Code88Usage.from_subscriptions(plans)
            stale = stale or plans_stale
            logger.debug(
                "Usage endpoint returned no plan data; rebuilt from %d subscriptions", len(plans)
            )

        if provider is Provider.CODE88 and (snapshot.is_exhausted() or snapshot.has_only_free()):
            if plans is None:
                plans, plans_stale = self._subscriptions_or_none(credentials)
                stale = stale or plans_stale
            paygo = find_paygo_plan(plans or [])
            if paygo is not None:
                logger.debug("Reporting PAYGO balance %.2f", paygo.current_credits)
                return UsageReport(
                    UsageStatus.PAYGO, service=service, snapshot=snapshot, paygo=paygo, stale=stale
                )

        if not snapshot.is_exhausted():
            return UsageReport(UsageStatus.OK, service=service, snapshot=snapshot, stale=stale)

        return self._exhausted_report(service, snapshot, plans, stale)

    def _exhausted_report(
        self,
        service: str,
        snapshot: UsageSnapshot,
        plans: list[SubscriptionPlan] | None,
        stale: bool,
    ) -> UsageReport:
        active = [plan for plan in plans or [] if plan.is_active]
        if len(active) > 1:
            status = UsageStatus.OTHER_PLANS_AVAILABLE
            reset_times = 0
        elif len(active) == 1:
            reset_times = active[0].reset_times
            if reset_times > 0:
                status = UsageStatus.MANUAL_RESET_AVAILABLE
            else:
                status = UsageStatus.NO_RESETS_REMAINING
        else:
            status = UsageStatus.EXHAUSTED
            reset_times = 0
        return UsageReport(
            status, service=service, snapshot=snapshot, reset_times=reset_times, stale=stale
        )

    def get_effective_subscriptions(self) -> SubscriptionsReport:
        """Subscription plans in display order.

        Only 88code exposes a subscription endpoint.
        """
        credentials = self.credentials_source()
        if credentials is None:
            return SubscriptionsReport(UsageStatus.NOT_CONFIGURED)
        if credentials.provider is not Provider.CODE88:
            return SubscriptionsReport(UsageStatus.UNSUPPORTED)

        try:
            plans, stale = self._subscriptions(credentials)
        except RelayWatchError as e:
            return SubscriptionsReport(UsageStatus.UNAVAILABLE, error=e)
        return SubscriptionsReport(UsageStatus.OK, plans=sort_for_display(plans), stale=stale)


def get_effective_usage(credentials: Credentials | None, **kwargs: Any) -> UsageReport:
    """Reconcile usage for fixed credentials. See UsageReconciler."""
    return UsageReconciler(lambda: credentials, **kwargs).get_effective_usage()


def get_effective_subscriptions(credentials: Credentials | None, **kwargs: Any) -> SubscriptionsReport:
    """Display-ordered subscriptions for fixed credentials. See UsageReconciler."""
    return UsageReconciler(lambda: credentials, **kwargs).get_effective_subscriptions()


__all__ = [
    "UsageStatus",
    "UsageReport",
    "SubscriptionsReport",
    "CredentialsSource",
    "UsageReconciler",
    "find_paygo_plan",
    "get_effective_usage",
    "get_effective_subscriptions",
]
