"""Usage and subscription models for the supported relay schemas.

The two relays answer the usage endpoint with incompatible shapes:

- 88code: ``creditLimit``, ``currentCredits`` and ``subscriptionEntityList``
  (dollar amounts, one entry per purchased plan).
- packy: ``total_used``, ``total_available``, ``total_granted`` and
  ``unlimited_quota`` (integer quota units), wrapped in ``{code, data, message}``.

``parse_usage()`` resolves a decoded payload to one of the two snapshot types
by structural parsing. Snapshots are immutable; ``calculate()`` returns a new
snapshot with the derived token and percentage fields filled in.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field, replace
from typing import Any, ClassVar, Union

from relay_watch.config.credentials import Provider
from relay_watch.errors import ShapeMismatchError

# packy quota units per US dollar
PACKY_CONVERSION_FACTOR = 500_000

# Display granularity: one "token" is a hundredth of a credit
TOKENS_PER_CREDIT = 100

FREE_PLAN = "FREE"
PAYGO_PLAN = "PAYGO"
ACTIVE_STATUSES = frozenset({"active", "活跃中"})

_CODE88_KEYS = ("creditLimit", "currentCredits", "subscriptionEntityList")
_PACKY_INT_KEYS = ("total_used", "total_available", "total_granted")


def _is_number(value: Any) -> bool:
    """True for finite JSON numbers; booleans, NaN and Infinity are rejected."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return isinstance(value, int) or math.isfinite(value)


def _number_or_zero(raw: dict, key: str) -> float:
    """Read a numeric field, treating null/missing as 0."""
    value = raw.get(key)
    if value is None:
        return 0.0
    if not _is_number(value):
        raise ShapeMismatchError(f"Field '{key}' is not a number: {value!r}")
    return float(value)


def _to_tokens(credits: float) -> int:
    """Scale a non-negative credit amount to integer display tokens."""
    return int(round(max(credits, 0.0) * TOKENS_PER_CREDIT))


def unwrap_envelope(payload: Any) -> Any:
    """Strip a relay response envelope, if present.

    88code wraps responses in ``{code, ok, msg, data}``; packy uses
    ``{code, data, message}``. A dict carrying ``data`` plus one of the
    envelope status keys is unwrapped; anything else is returned unchanged.
    """
    if (
        isinstance(payload, dict)
        and "data" in payload
        and any(key in payload for key in ("code", "ok", "msg", "message"))
        and not any(key in payload for key in _CODE88_KEYS + _PACKY_INT_KEYS)
    ):
        return payload["data"]
    return payload


@dataclass(frozen=True)
class SubscriptionEntity:
    """One plan bundled into an 88code usage response."""

    name: str
    credit_limit: float
    current_credits: float
    is_active: bool

    @classmethod
    def from_payload(cls, raw: Any) -> "SubscriptionEntity":
        if not isinstance(raw, dict):
            raise ShapeMismatchError("Subscription entity is not an object")
        name = raw.get("subscriptionName")
        if not isinstance(name, str):
            raise ShapeMismatchError("Subscription entity has no subscriptionName")
        return cls(
            name=name,
            credit_limit=_number_or_zero(raw, "creditLimit"),
            current_credits=_number_or_zero(raw, "currentCredits"),
            is_active=bool(raw.get("isActive", False)),
        )


@dataclass(frozen=True)
class Code88Usage:
    """88code usage snapshot (dollar credits)."""

    provider: ClassVar[Provider] = Provider.CODE88

    credit_limit: float = 0.0
    current_credits: float = 0.0
    total_tokens: int = 0
    subscription_entities: tuple[SubscriptionEntity, ...] = ()

    used_tokens: int = 0
    remaining_tokens: int = 0
    percentage_used: float = 0.0

    @classmethod
    def from_payload(cls, raw: Any) -> "Code88Usage":
        """Parse a raw 88code usage object.

        Load-bearing fields: at least one of ``creditLimit``,
        ``currentCredits`` or ``subscriptionEntityList`` must be present.
        Nulls are read as 0 / empty list.

        Raises:
            ShapeMismatchError: If the object is not an 88code usage payload.
        """
        if not isinstance(raw, dict) or not any(key in raw for key in _CODE88_KEYS):
            raise ShapeMismatchError("Payload is not an 88code usage object")

        entities_raw = raw.get("subscriptionEntityList")
        if entities_raw is None:
            entities_raw = []
        if not isinstance(entities_raw, list):
            raise ShapeMismatchError("subscriptionEntityList is not a list")

        total_tokens = raw.get("totalTokens") or 0
        if not _is_number(total_tokens):
            raise ShapeMismatchError("totalTokens is not a number")

        return cls(
            credit_limit=_number_or_zero(raw, "creditLimit"),
            current_credits=_number_or_zero(raw, "currentCredits"),
            total_tokens=int(total_tokens),
            subscription_entities=tuple(
                SubscriptionEntity.from_payload(entry) for entry in entities_raw
            ),
        )

    def current_entity(self) -> SubscriptionEntity | None:
        """Return the plan currently being billed, if any.

        FREE plans cannot be used from Claude Code, so they are skipped;
        the first active plan with consumption (credits below limit) wins.
        """
        for entity in self.subscription_entities:
            if not entity.is_active or entity.name.upper() == FREE_PLAN:
                continue
            if entity.current_credits < entity.credit_limit:
                return entity
        return None

    def calculate(self) -> "Code88Usage":
        """Return a snapshot with derived fields computed.

        The selected plan's (credit_limit, current_credits) replace the
        top-level values so that consumers see the billed plan's numbers.
        """
        entity = self.current_entity()
        if entity is not None:
            credit_limit, current_credits = entity.credit_limit, entity.current_credits
        else:
            credit_limit, current_credits = self.credit_limit, self.current_credits

        used_credits = credit_limit - current_credits
        if credit_limit > 0:
            percentage_used = min(max(used_credits / credit_limit * 100, 0.0), 100.0)
        else:
            percentage_used = 0.0

        return replace(
            self,
            credit_limit=credit_limit,
            current_credits=current_credits,
            used_tokens=_to_tokens(used_credits),
            remaining_tokens=0 if current_credits < 0 else _to_tokens(current_credits),
            percentage_used=percentage_used,
        )

    def is_valid(self) -> bool:
        """False when the relay returned no limit and no plans at all."""
        return self.credit_limit > 0 or len(self.subscription_entities) > 0

    def is_exhausted(self) -> bool:
        return self.current_credits <= 0

    def has_only_free(self) -> bool:
        """True when no active plan other than FREE or PAYGO exists.

        The usage endpoint does not report PAYGO balances, so in that case
        the figures it returns belong to FREE, which Claude Code cannot use.
        """
        return not any(
            entity.is_active and entity.name.upper() not in (FREE_PLAN, PAYGO_PLAN)
            for entity in self.subscription_entities
        )

    @classmethod
    def from_subscriptions(cls, plans: list["SubscriptionPlan"]) -> "Code88Usage":
        """Reconstruct a usage snapshot from the subscription list.

        Used when the usage endpoint returns an invalid snapshot.
        """
        # Imported here: ordering depends on SubscriptionPlan from this module
        from relay_watch.usage.ordering import select_billing_plan, sort_by_billing_priority

        active = sort_by_billing_priority(
            [plan for plan in plans if plan.is_active and plan.status in ACTIVE_STATUSES]
        )
        selected = select_billing_plan(active)
        if selected is not None:
            credit_limit, current_credits = selected.credit_limit, selected.current_credits
        else:
            credit_limit, current_credits = 0.0, 0.0

        entities = tuple(
            SubscriptionEntity(
                name=plan.plan_name,
                credit_limit=plan.credit_limit,
                current_credits=plan.current_credits,
                is_active=plan.is_active,
            )
            for plan in active
        )
        snapshot = cls(
            credit_limit=credit_limit,
            current_credits=current_credits,
            subscription_entities=entities,
        )
        return snapshot.calculate()

    def to_dict(self) -> dict:
        data = asdict(self)
        data["provider"] = self.provider.value
        data["subscription_entities"] = [asdict(e) for e in self.subscription_entities]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Code88Usage":
        return cls(
            credit_limit=float(data["credit_limit"]),
            current_credits=float(data["current_credits"]),
            total_tokens=int(data["total_tokens"]),
            subscription_entities=tuple(
                SubscriptionEntity(
                    name=e["name"],
                    credit_limit=float(e["credit_limit"]),
                    current_credits=float(e["current_credits"]),
                    is_active=bool(e["is_active"]),
                )
                for e in data["subscription_entities"]
            ),
            used_tokens=int(data["used_tokens"]),
            remaining_tokens=int(data["remaining_tokens"]),
            percentage_used=float(data["percentage_used"]),
        )


@dataclass(frozen=True)
class PackyUsage:
    """packy usage snapshot (integer quota units, converted to dollars)."""

    provider: ClassVar[Provider] = Provider.PACKY

    total_used: int
    total_available: int
    total_granted: int
    unlimited_quota: bool
    expires_at: int = 0
    name: str = ""
    object: str = ""

    used_tokens: int = 0
    remaining_tokens: int = 0
    percentage_used: float = 0.0
    credit_limit: float = 0.0
    current_credits: float = 0.0

    @classmethod
    def from_payload(cls, raw: Any) -> "PackyUsage":
        """Parse a raw packy usage object (already unwrapped from its envelope).

        Load-bearing fields: integer ``total_used``, ``total_available``,
        ``total_granted`` and boolean ``unlimited_quota``.

        Raises:
            ShapeMismatchError: If the object is not a packy usage payload.
        """
        if not isinstance(raw, dict):
            raise ShapeMismatchError("Payload is not a packy usage object")
        for key in _PACKY_INT_KEYS:
            value = raw.get(key)
            if not isinstance(value, int) or isinstance(value, bool):
                raise ShapeMismatchError(f"packy field '{key}' missing or not an integer")
        if not isinstance(raw.get("unlimited_quota"), bool):
            raise ShapeMismatchError("packy field 'unlimited_quota' missing or not a boolean")

        expires_at = raw.get("expires_at") or 0
        return cls(
            total_used=raw["total_used"],
            total_available=raw["total_available"],
            total_granted=raw["total_granted"],
            unlimited_quota=raw["unlimited_quota"],
            expires_at=int(expires_at) if _is_number(expires_at) else 0,
            name=str(raw.get("name") or ""),
            object=str(raw.get("object") or ""),
        )

    def calculate(self) -> "PackyUsage":
        """Return a snapshot with derived fields computed.

        The percentage is deliberately not capped at 100: overage shows
        up as a value above 100 and a negative current_credits.
        """
        used = self.total_used / PACKY_CONVERSION_FACTOR
        remaining = self.total_available / PACKY_CONVERSION_FACTOR
        total = self.total_granted / PACKY_CONVERSION_FACTOR

        if self.total_granted > 0:
            percentage_used = max(self.total_used / self.total_granted * 100, 0.0)
        else:
            percentage_used = 0.0

        return replace(
            self,
            used_tokens=_to_tokens(used),
            remaining_tokens=_to_tokens(remaining),
            percentage_used=percentage_used,
            credit_limit=max(total, 0.0),
            current_credits=remaining,
        )

    def is_valid(self) -> bool:
        return True

    def is_exhausted(self) -> bool:
        return not self.unlimited_quota and self.remaining_tokens == 0

    def has_only_free(self) -> bool:
        return False

    def to_dict(self) -> dict:
        data = asdict(self)
        data["provider"] = self.provider.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "PackyUsage":
        return cls(
            total_used=int(data["total_used"]),
            total_available=int(data["total_available"]),
            total_granted=int(data["total_granted"]),
            unlimited_quota=bool(data["unlimited_quota"]),
            expires_at=int(data["expires_at"]),
            name=str(data["name"]),
            object=str(data["object"]),
            used_tokens=int(data["used_tokens"]),
            remaining_tokens=int(data["remaining_tokens"]),
            percentage_used=float(data["percentage_used"]),
            credit_limit=float(data["credit_limit"]),
            current_credits=float(data["current_credits"]),
        )


UsageSnapshot = Union[Code88Usage, PackyUsage]

_SNAPSHOT_TYPES: dict[str, type] = {
    Provider.CODE88.value: Code88Usage,
    Provider.PACKY.value: PackyUsage,
}


def parse_usage(payload: Any, provider: Provider | None = None) -> UsageSnapshot:
    """Resolve a decoded usage payload to a calculated snapshot.

    With an explicit provider only that schema is attempted. Otherwise the
    88code shape is tried first, then the packy shape.

    Raises:
        ShapeMismatchError: If the payload matches neither schema.
    """
    raw = unwrap_envelope(payload)

    if provider is Provider.CODE88:
        return Code88Usage.from_payload(raw).calculate()
    if provider is Provider.PACKY:
        return PackyUsage.from_payload(raw).calculate()

    errors = []
    for parser in (Code88Usage.from_payload, PackyUsage.from_payload):
        try:
            return parser(raw).calculate()
        except ShapeMismatchError as e:
            errors.append(e.message)
    raise ShapeMismatchError(
        "Usage payload matches no known relay schema",
        details="; ".join(errors),
    )


def snapshot_from_dict(data: Any) -> UsageSnapshot:
    """Rebuild a snapshot from its cached form.

    Raises:
        ShapeMismatchError: If the record is not a serialized snapshot.
    """
    if not isinstance(data, dict):
        raise ShapeMismatchError("Cached usage record is not an object")
    snapshot_type = _SNAPSHOT_TYPES.get(data.get("provider"))
    if snapshot_type is None:
        raise ShapeMismatchError(f"Unknown cached provider: {data.get('provider')!r}")
    try:
        return snapshot_type.from_dict(data)
    except (KeyError, TypeError, ValueError, OverflowError) as e:
        raise ShapeMismatchError(f"Cached usage record is malformed: {e}") from e


@dataclass
class SubscriptionPlan:
    """One purchased plan from the subscription endpoint."""

    plan_name: str
    cost: float
    billing_cycle_description: str
    status: str
    remaining_days: int
    reset_times: int
    is_active: bool
    current_credits: float = 0.0
    credit_limit: float = 0.0
    id: int = 0
    expires_at: str | None = None
    plan_detail_credit_limit: float = 0.0
    plan_price_label: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        self.plan_price_label = format_plan_price(self.cost, self.billing_cycle_description)
        # Top-level creditLimit may be absent; the nested plan detail carries it
        if self.credit_limit == 0 and self.plan_detail_credit_limit > 0:
            self.credit_limit = self.plan_detail_credit_limit

    @classmethod
    def from_payload(cls, raw: Any) -> "SubscriptionPlan":
        """Parse one entry of the subscription endpoint.

        Raises:
            ShapeMismatchError: If required fields are missing or mistyped.
        """
        if not isinstance(raw, dict):
            raise ShapeMismatchError("Subscription entry is not an object")
        try:
            plan_name = raw["subscriptionPlanName"]
            status = raw["subscriptionStatus"]
            billing_cycle = raw["billingCycleDesc"]
            is_active = raw["isActive"]
            remaining_days = raw["remainingDays"]
            reset_times = raw["resetTimes"]
            cost = raw["cost"]
        except KeyError as e:
            raise ShapeMismatchError(f"Subscription entry missing field {e}") from e

        if not isinstance(plan_name, str) or not isinstance(status, str):
            raise ShapeMismatchError("Subscription name/status must be strings")
        if not isinstance(billing_cycle, str) or not isinstance(is_active, bool):
            raise ShapeMismatchError("Subscription billing cycle/isActive mistyped")
        for name, value in (("remainingDays", remaining_days), ("resetTimes", reset_times), ("cost", cost)):
            if not _is_number(value):
                raise ShapeMismatchError(f"Subscription field '{name}' is not a number")

        detail = raw.get("subscriptionPlan") or {}
        if not isinstance(detail, dict):
            detail = {}
        end_date = raw.get("endDate")
        plan_id = raw.get("id")
        if plan_id is None:
            plan_id = 0
        elif not _is_number(plan_id):
            raise ShapeMismatchError(f"Subscription id is not a number: {plan_id!r}")

        return cls(
            plan_name=plan_name,
            cost=float(cost),
            billing_cycle_description=billing_cycle,
            status=status,
            remaining_days=int(remaining_days),
            reset_times=int(reset_times),
            is_active=is_active,
            current_credits=_number_or_zero(raw, "currentCredits"),
            credit_limit=_number_or_zero(raw, "creditLimit"),
            id=int(plan_id),
            expires_at=end_date if isinstance(end_date, str) else None,
            plan_detail_credit_limit=_number_or_zero(detail, "creditLimit"),
        )

    @property
    def is_free(self) -> bool:
        return self.plan_name.upper() == FREE_PLAN

    @property
    def is_paygo(self) -> bool:
        return self.plan_name.upper() == PAYGO_PLAN

    def to_dict(self) -> dict:
        data = asdict(self)
        del data["plan_price_label"]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "SubscriptionPlan":
        return cls(
            plan_name=str(data["plan_name"]),
            cost=float(data["cost"]),
            billing_cycle_description=str(data["billing_cycle_description"]),
            status=str(data["status"]),
            remaining_days=int(data["remaining_days"]),
            reset_times=int(data["reset_times"]),
            is_active=bool(data["is_active"]),
            current_credits=float(data["current_credits"]),
            credit_limit=float(data["credit_limit"]),
            id=int(data["id"]),
            expires_at=data.get("expires_at"),
            plan_detail_credit_limit=float(data.get("plan_detail_credit_limit", 0.0)),
        )


def format_plan_price(cost: float, billing_cycle_description: str) -> str:
    """Format a plan price label, e.g. ``¥198/月``."""
    if math.isfinite(cost) and cost == int(cost):
        amount = str(int(cost))
    else:
        amount = f"{cost:g}"
    return f"¥{amount}/{billing_cycle_description}"


def parse_subscriptions(payload: Any) -> list[SubscriptionPlan]:
    """Parse the subscription endpoint response into plans.

    Raises:
        ShapeMismatchError: If the payload is not a list of plan objects.
    """
    raw = unwrap_envelope(payload)
    if not isinstance(raw, list):
        raise ShapeMismatchError("Subscription payload is not a list")
    return [SubscriptionPlan.from_payload(entry) for entry in raw]


def plans_from_dicts(data: Any) -> list[SubscriptionPlan]:
    """Rebuild plans from their cached form.

    Raises:
        ShapeMismatchError: If the record is not a list of serialized plans.
    """
    if not isinstance(data, list):
        raise ShapeMismatchError("Cached subscription record is not a list")
    try:
        return [SubscriptionPlan.from_dict(entry) for entry in data]
    except (KeyError, TypeError, ValueError, OverflowError) as e:
        raise ShapeMismatchError(f"Cached subscription record is malformed: {e}") from e


__all__ = [
    "PACKY_CONVERSION_FACTOR",
    "TOKENS_PER_CREDIT",
    "FREE_PLAN",
    "PAYGO_PLAN",
    "ACTIVE_STATUSES",
    "SubscriptionEntity",
    "Code88Usage",
    "PackyUsage",
    "UsageSnapshot",
    "SubscriptionPlan",
    "unwrap_envelope",
    "parse_usage",
    "snapshot_from_dict",
    "format_plan_price",
    "parse_subscriptions",
    "plans_from_dicts",
]
