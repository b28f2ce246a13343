"""API client for relay usage and subscription endpoints.

Provides functions for fetching raw payloads and turning them into
normalized usage snapshots and subscription plans.
"""

from __future__ import annotations

import http.client
import json
import logging
import socket
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from relay_watch._version import __version__
from relay_watch.config.credentials import Credentials, Provider
from relay_watch.config.security import mask_api_key
from relay_watch.errors import (
    ShapeMismatchError,
    categorize_http_error,
    categorize_network_error,
)
from relay_watch.usage.models import (
    SubscriptionPlan,
    UsageSnapshot,
    parse_subscriptions,
    parse_usage,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10  # seconds
USER_AGENT = f"relay-watch/{__version__}"


def _request(url: str, api_key: str, method: str, timeout: int) -> Any:
    """Perform one request and decode its JSON body.

    Raises:
        RelayWatchError: Transport failure, non-2xx status or undecodable body.
    """
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Accept": "application/json",
        "User-Agent": USER_AGENT,
    }
    data = None
    if method == "POST":
        headers["Content-Type"] = "application/json"
        data = b""

    req = Request(url, data=data, headers=headers, method=method)
    logger.debug("%s %s (key %s)", method, url, mask_api_key(api_key))

    try:
        with urlopen(req, timeout=timeout) as response:
            body = response.read()
    except HTTPError as e:
        raise categorize_http_error(e.code, str(e.reason or "")) from e
    except URLError as e:
        raise categorize_network_error(str(e.reason)) from e
    except (socket.timeout, TimeoutError) as e:
        raise categorize_network_error("timed out") from e
    except (OSError, http.client.HTTPException) as e:
        # Connection dropped while reading the response
        raise categorize_network_error(str(e) or type(e).__name__) from e

    try:
        return json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        preview = body[:200].decode("utf-8", errors="replace")
        raise ShapeMismatchError(
            f"Relay returned a non-JSON response from {url}",
            details=preview,
        ) from e


def fetch_usage_payload(credentials: Credentials, timeout: int = DEFAULT_TIMEOUT) -> Any:
    """Fetch the raw usage payload.

    packy exposes usage via GET; 88code expects an empty POST.
    """
    method = "GET" if credentials.provider is Provider.PACKY else "POST"
    return _request(credentials.usage_url, credentials.api_key, method, timeout)


def fetch_subscriptions_payload(credentials: Credentials, timeout: int = DEFAULT_TIMEOUT) -> Any:
    """Fetch the raw subscription list payload."""
    return _request(credentials.subscription_url, credentials.api_key, "POST", timeout)


def fetch_usage(credentials: Credentials, timeout: int = DEFAULT_TIMEOUT) -> UsageSnapshot:
    """Fetch and normalize current usage.

    Args:
        credentials: Relay credentials; the usage URL selects the schema.
        timeout: Request timeout in seconds.

    Returns:
        Calculated usage snapshot.

    Raises:
        RelayWatchError: On transport, status or shape failures.
    """
    payload = fetch_usage_payload(credentials, timeout)
    return parse_usage(payload, credentials.provider)


def fetch_subscriptions(
    credentials: Credentials, timeout: int = DEFAULT_TIMEOUT
) -> list[SubscriptionPlan]:
    """Fetch and parse the subscription list.

    Raises:
        RelayWatchError: On transport, status or shape failures.
    """
    payload = fetch_subscriptions_payload(credentials, timeout)
    return parse_subscriptions(payload)


__all__ = [
    "DEFAULT_TIMEOUT",
    "USER_AGENT",
    "fetch_usage_payload",
    "fetch_subscriptions_payload",
    "fetch_usage",
    "fetch_subscriptions",
]
