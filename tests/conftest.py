"""
Pytest fixtures for relay-watch tests.

Test imports use the src/relay_watch/ package via --import-mode=importlib (see pyproject.toml).
Every test gets its own cache directory and config file under tmp_path.
"""

import copy
import json
from pathlib import Path
from unittest.mock import patch

import pytest

import relay_watch.api.cache as cache_module
import relay_watch.config.settings as settings_module
from relay_watch.config.credentials import Credentials, PACKY_USAGE_URL
from relay_watch.usage.models import parse_subscriptions, parse_usage


# ═══════════════════════════════════════════════════════════════════════════════
# Path Constants
# ═══════════════════════════════════════════════════════════════════════════════

PROJECT_ROOT = Path(__file__).parent.parent
SRC_DIR = PROJECT_ROOT / "src"

# Load fixtures data
FIXTURES_DIR = Path(__file__).parent / "fixtures"
with open(FIXTURES_DIR / "api_responses.json", encoding="utf-8") as f:
    FIXTURES = json.load(f)


def fixture_payload(name: str):
    """Deep copy of a raw API response fixture."""
    return copy.deepcopy(FIXTURES[name])


# ═══════════════════════════════════════════════════════════════════════════════
# Isolation
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture(autouse=True)
def isolated_paths(tmp_path):
    """Point the cache directory and config file at tmp_path."""
    cache_dir = tmp_path / "cache"
    config_file = tmp_path / "config.json"
    with patch.object(cache_module, "CACHE_DIR", cache_dir):
        with patch.object(settings_module, "CONFIG_FILE", config_file):
            yield {"cache_dir": cache_dir, "config_file": config_file}


# ═══════════════════════════════════════════════════════════════════════════════
# Raw API Response Fixtures
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def code88_usage_normal():
    """88code usage: PLUS plan with $4.65 of $20 spent, plus an unused FREE plan."""
    return fixture_payload("code88_usage_normal")


@pytest.fixture
def code88_usage_exhausted():
    """88code usage: single PLUS plan with no credits left."""
    return fixture_payload("code88_usage_exhausted")


@pytest.fixture
def code88_usage_only_free():
    """88code usage: only a FREE plan (3 of 5 credits left)."""
    return fixture_payload("code88_usage_only_free")


@pytest.fixture
def code88_usage_empty():
    """88code usage with no limit and no plans (invalid snapshot)."""
    return fixture_payload("code88_usage_empty")


@pytest.fixture
def code88_usage_overdrawn():
    """Unwrapped 88code usage where the plan went $1.50 over."""
    return fixture_payload("code88_usage_overdrawn")


@pytest.fixture
def packy_usage_normal():
    """packy usage: $5 of $20 used."""
    return fixture_payload("packy_usage_normal")


@pytest.fixture
def packy_usage_exhausted():
    """packy usage with nothing available."""
    return fixture_payload("packy_usage_exhausted")


@pytest.fixture
def packy_usage_unlimited():
    """packy usage on an unlimited quota."""
    return fixture_payload("packy_usage_unlimited")


@pytest.fixture
def subscriptions_mixed():
    """PLUS, FREE, PAYGO (with balance) and an expired PRO plan."""
    return fixture_payload("subscriptions_mixed")


@pytest.fixture
def subscriptions_single_plan():
    """A single exhausted PLUS plan with two resets left."""
    return fixture_payload("subscriptions_single_plan")


# ═══════════════════════════════════════════════════════════════════════════════
# Parsed Model Fixtures
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def mixed_plans(subscriptions_mixed):
    """Parsed subscriptions_mixed plans, in API order."""
    return parse_subscriptions(subscriptions_mixed)


@pytest.fixture
def normal_snapshot(code88_usage_normal):
    """Calculated 88code snapshot for code88_usage_normal."""
    return parse_usage(code88_usage_normal)


# ═══════════════════════════════════════════════════════════════════════════════
# Credentials Fixtures
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def code88_credentials():
    """Credentials for the default 88code endpoints."""
    return Credentials(api_key="88_test_key_abcdef123456")


@pytest.fixture
def packy_credentials():
    """Credentials for packy."""
    return Credentials(api_key="sk-packy-test-0123456789", usage_url=PACKY_USAGE_URL)


@pytest.fixture
def unsupported_credentials():
    """Credentials for a relay whose usage schema is unknown."""
    return Credentials(
        api_key="sk-other-relay-0123456789",
        usage_url="https://relay.example.com/api/usage/token/",
    )


@pytest.fixture
def claude_settings_file(tmp_path):
    """Write a Claude Code settings.json and return its path.

    Call with the env mapping to store.
    """

    def _write(env: dict) -> Path:
        path = tmp_path / "claude" / "settings.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps({"env": env}), encoding="utf-8")
        return path

    return _write
