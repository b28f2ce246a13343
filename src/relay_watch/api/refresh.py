"""Background revalidation of cache entries.

A refresh runs on a detached daemon thread: it waits a short debounce so
it does not race a synchronous fetch already in flight, fetches, and on
success overwrites the cache record. Failures leave the old record in
place; the caller was already served the stale value.
"""

from __future__ import annotations

import logging
import threading
import time

from relay_watch.api import cache
from relay_watch.api.cache import CacheKind
from relay_watch.api.client import DEFAULT_TIMEOUT, fetch_subscriptions, fetch_usage
from relay_watch.config.credentials import Credentials
from relay_watch.errors import RelayWatchError

logger = logging.getLogger(__name__)

REFRESH_DELAY = 1.0  # seconds


def refresh_now(kind: CacheKind, credentials: Credentials, timeout: int = DEFAULT_TIMEOUT) -> None:
    """Fetch one kind of data and store it.

    Raises:
        RelayWatchError: On fetch failure or cache write failure.
    """
    if kind is CacheKind.USAGE:
        cache.save_cached_usage(fetch_usage(credentials, timeout))
    else:
        cache.save_cached_subscriptions(fetch_subscriptions(credentials, timeout))


def _run_refresh(kind: CacheKind, credentials: Credentials, timeout: int, delay: float) -> None:
    if delay > 0:
        time.sleep(delay)
    try:
        refresh_now(kind, credentials, timeout)
    except RelayWatchError as e:
        logger.debug("Background %s refresh failed: %s", kind.value, e.message)
        return
    except Exception:
        # Nothing waits on this thread; the old record stays in place
        logger.debug("Background %s refresh crashed", kind.value, exc_info=True)
        return
    logger.debug("Background %s refresh stored", kind.value)


def schedule_refresh(
    kind: CacheKind,
    credentials: Credentials,
    timeout: int = DEFAULT_TIMEOUT,
    delay: float = REFRESH_DELAY,
) -> threading.Thread:
    """Start a detached refresh of one cache kind.

    Nothing waits on the returned thread; it is returned so tests can
    join it. Process exit abandons an unfinished refresh.
    """
    thread = threading.Thread(
        target=_run_refresh,
        args=(kind, credentials, timeout, delay),
        name=f"relay-watch-refresh-{kind.value}",
        daemon=True,
    )
    thread.start()
    return thread


__all__ = ["REFRESH_DELAY", "refresh_now", "schedule_refresh"]
