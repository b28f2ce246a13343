"""Response caching with tiered freshness.

Each data kind is persisted as one JSON record ``{kind, stored_at, payload}``.
Reads report a freshness tier instead of a plain hit/miss so callers can
serve stale data while a background refresh runs.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from relay_watch.errors import CacheCorruptError, CacheIOError, ShapeMismatchError
from relay_watch.usage.models import (
    SubscriptionPlan,
    UsageSnapshot,
    plans_from_dicts,
    snapshot_from_dict,
)

logger = logging.getLogger(__name__)

# Cache directory (override with RELAY_WATCH_CACHE_DIR)
CACHE_DIR = Path.home() / ".claude" / "relay_watch" / "cache"

if os.environ.get("RELAY_WATCH_CACHE_DIR"):
    CACHE_DIR = Path(os.environ["RELAY_WATCH_CACHE_DIR"]).expanduser()

# Past this age a record is too old to show, whatever its kind
HARD_TTL = 3600  # seconds


class CacheKind(str, Enum):
    """Kinds of cached data, each with its own soft TTL."""

    USAGE = "usage"
    SUBSCRIPTIONS = "subscriptions"

    @property
    def soft_ttl(self) -> int:
        return SOFT_TTLS[self]


SOFT_TTLS = {
    CacheKind.USAGE: 60,
    CacheKind.SUBSCRIPTIONS: 1800,
}


class FreshnessTier(Enum):
    FRESH = "fresh"
    STALE_BUT_USABLE = "stale_but_usable"
    MUST_REFRESH = "must_refresh"


def get_freshness(kind: CacheKind, age: float) -> FreshnessTier:
    """Classify a record age against the kind's soft TTL and the hard TTL."""
    if age < kind.soft_ttl:
        return FreshnessTier.FRESH
    if age < HARD_TTL:
        return FreshnessTier.STALE_BUT_USABLE
    return FreshnessTier.MUST_REFRESH


@dataclass(frozen=True)
class CacheEntry:
    """A persisted payload and the wall-clock second it was stored."""

    payload: Any
    stored_at: float

    def age(self, now: float | None = None) -> float:
        current = time.time() if now is None else now
        # A record from the future (clock change) counts as brand new
        return max(current - self.stored_at, 0.0)

    def tier(self, kind: CacheKind, now: float | None = None) -> FreshnessTier:
        return get_freshness(kind, self.age(now))


def get_cache_path(kind: CacheKind) -> Path:
    """Get the record path for a cache kind."""
    return CACHE_DIR / f"{kind.value}.json"


def store(kind: CacheKind, payload: Any, now: float | None = None) -> CacheEntry:
    """Persist a payload for a kind, replacing any previous record.

    The record is written to a temporary file and renamed into place, so
    a concurrent reader sees either the old record or the new one.

    Args:
        kind: Cache kind.
        payload: JSON-serializable payload.
        now: Optional timestamp override (seconds since epoch).

    Returns:
        The stored entry.

    Raises:
        CacheIOError: If the record cannot be written.
    """
    entry = CacheEntry(payload=payload, stored_at=time.time() if now is None else now)
    path = get_cache_path(kind)
    record = {"kind": kind.value, "stored_at": entry.stored_at, "payload": payload}

    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{kind.value}.", suffix=".tmp")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(record, f, ensure_ascii=False)
        os.replace(tmp_name, path)
    except (OSError, TypeError, ValueError) as e:
        if tmp_name is not None:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
        raise CacheIOError(f"Cannot write {kind.value} cache at {path}", details=str(e)) from e
    return entry


def _parse_record(kind: CacheKind, path: Path) -> CacheEntry:
    try:
        with open(path, encoding="utf-8") as f:
            record = json.load(f)
    except (OSError, ValueError) as e:
        raise CacheCorruptError(f"Unreadable {kind.value} cache", details=str(e)) from e

    if (
        not isinstance(record, dict)
        or record.get("kind") != kind.value
        or "payload" not in record
        or not isinstance(record.get("stored_at"), (int, float))
        or isinstance(record.get("stored_at"), bool)
    ):
        raise CacheCorruptError(f"Mis-shaped {kind.value} cache record", details=str(path))
    return CacheEntry(payload=record["payload"], stored_at=float(record["stored_at"]))


def read_entry(kind: CacheKind) -> CacheEntry | None:
    """Read the raw record for a kind.

    Returns:
        The entry, or None if it is missing, unparsable or mis-shaped.
    """
    path = get_cache_path(kind)
    if not path.exists():
        return None
    try:
        return _parse_record(kind, path)
    except CacheCorruptError as e:
        logger.debug("Ignoring cache record: %s (%s)", e.message, e.details)
        return None


def load(kind: CacheKind, now: float | None = None) -> tuple[Any, FreshnessTier] | None:
    """Load the payload for a kind together with its freshness tier.

    Returns:
        (payload, tier), or None if no usable record exists.
    """
    entry = read_entry(kind)
    if entry is None:
        return None
    return entry.payload, entry.tier(kind, now)


def get_cached_usage(now: float | None = None) -> tuple[UsageSnapshot, FreshnessTier] | None:
    """Load the cached usage snapshot and its tier."""
    cached = load(CacheKind.USAGE, now)
    if cached is None:
        return None
    payload, tier = cached
    try:
        return snapshot_from_dict(payload), tier
    except ShapeMismatchError as e:
        logger.debug("Ignoring corrupt usage cache: %s", e.message)
        return None


def save_cached_usage(snapshot: UsageSnapshot, now: float | None = None) -> CacheEntry:
    """Persist a usage snapshot. Raises CacheIOError on failure."""
    return store(CacheKind.USAGE, snapshot.to_dict(), now)


def get_cached_subscriptions(
    now: float | None = None,
) -> tuple[list[SubscriptionPlan], FreshnessTier] | None:
    """Load the cached subscription list and its tier."""
    cached = load(CacheKind.SUBSCRIPTIONS, now)
    if cached is None:
        return None
    payload, tier = cached
    try:
        return plans_from_dicts(payload), tier
    except ShapeMismatchError as e:
        logger.debug("Ignoring corrupt subscription cache: %s", e.message)
        return None


def save_cached_subscriptions(plans: list[SubscriptionPlan], now: float | None = None) -> CacheEntry:
    """Persist a subscription list. Raises CacheIOError on failure."""
    return store(CacheKind.SUBSCRIPTIONS, [plan.to_dict() for plan in plans], now)


__all__ = [
    "CACHE_DIR",
    "HARD_TTL",
    "SOFT_TTLS",
    "CacheKind",
    "FreshnessTier",
    "CacheEntry",
    "get_freshness",
    "get_cache_path",
    "store",
    "read_entry",
    "load",
    "get_cached_usage",
    "save_cached_usage",
    "get_cached_subscriptions",
    "save_cached_subscriptions",
]
