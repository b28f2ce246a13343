"""Configuration management for relay-watch.

Provides functions for loading, saving, validating, and editing the
JSON configuration file.
"""

import json
import sys
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple, Union

from relay_watch.config.security import secure_file
from relay_watch.errors import ConfigError

# File paths
CONFIG_FILE = Path.home() / ".claude" / "relay_watch" / "config.json"

DEFAULT_USAGE_URL = "https://www.88code.ai/api/usage"
DEFAULT_SUBSCRIPTION_URL = "https://www.88code.ai/api/subscription"

# Default configuration values
DEFAULT_CONFIG = {
    "api_key": None,  # falls back to ANTHROPIC_AUTH_TOKEN in ~/.claude/settings.json
    "usage_url": None,  # derived from ANTHROPIC_BASE_URL when unset
    "subscription_url": DEFAULT_SUBSCRIPTION_URL,
    "usage_enabled": True,
    "subscription_enabled": True,
    "timeout": 10,
}

# Config schema for validation
# Format: key -> (expected_types, required, validator_func or None)
# validator_func takes value and returns (is_valid, error_message)
ValidatorFunc = Callable[[Union[str, int, float, bool, None]], Tuple[bool, str]]


def _optional_url(v):
    if v is None or (isinstance(v, str) and v.startswith("http")):
        return True, ""
    return False, "must be a valid HTTP/HTTPS URL or null"


CONFIG_SCHEMA: dict[str, tuple[tuple, bool, Optional[ValidatorFunc]]] = {
    "api_key": (
        (str, type(None)),
        False,
        lambda v: (True, "")
        if v is None or (isinstance(v, str) and len(v) > 0)
        else (False, "must be a non-empty string or null"),
    ),
    "usage_url": ((str, type(None)), False, _optional_url),
    "subscription_url": (
        (str,),
        False,
        lambda v: (True, "") if v.startswith("http") else (False, "must be a valid HTTP/HTTPS URL"),
    ),
    "usage_enabled": ((bool,), False, None),
    "subscription_enabled": ((bool,), False, None),
    "timeout": (
        (int,),
        False,
        lambda v: (True, "") if 0 < v <= 60 else (False, "must be between 1 and 60"),
    ),
}


def validate_config(config: dict) -> List[str]:
    """Validate configuration against schema.

    Args:
        config: Configuration dictionary to validate.

    Returns:
        List of validation error messages. Empty list if valid.
    """
    errors = []

    for key in config:
        if key not in CONFIG_SCHEMA:
            errors.append(f"Unknown config key: '{key}'")

    for key, (expected_types, required, validator) in CONFIG_SCHEMA.items():
        if required and key not in config:
            errors.append(f"Missing required key: '{key}'")
            continue

        if key not in config:
            continue

        value = config[key]

        # bool is an int subclass; keep "timeout": true out
        if isinstance(value, bool) and bool not in expected_types:
            type_names = " or ".join(t.__name__ for t in expected_types)
            errors.append(f"'{key}' has invalid type: expected {type_names}, got bool")
            continue

        if not isinstance(value, expected_types):
            type_names = " or ".join(t.__name__ for t in expected_types)
            errors.append(
                f"'{key}' has invalid type: expected {type_names}, got {type(value).__name__}"
            )
            continue

        if validator and value is not None:
            is_valid, error_msg = validator(value)
            if not is_valid:
                errors.append(f"'{key}' {error_msg}")

    return errors


def load_config(
    validate: bool = True,
    config_file: Optional[Path] = None,
    silent: bool = False,
) -> dict:
    """Load configuration from file.

    Args:
        validate: Whether to validate config and warn on errors. Default True.
        config_file: Optional path to config file. Defaults to CONFIG_FILE.
        silent: If True, suppress warning output. Default False.

    Returns:
        Configuration dictionary merged with defaults.
    """
    if config_file is None:
        config_file = CONFIG_FILE

    if not config_file.exists():
        return DEFAULT_CONFIG.copy()

    try:
        with open(config_file, encoding="utf-8") as f:
            config = json.load(f)
    except (OSError, json.JSONDecodeError):
        return DEFAULT_CONFIG.copy()

    if not isinstance(config, dict):
        return DEFAULT_CONFIG.copy()

    if validate and not silent:
        errors = validate_config(config)
        if errors:
            print("Warning: Config validation errors:", file=sys.stderr)
            for error in errors:
                print(f"  - {error}", file=sys.stderr)

    return {**DEFAULT_CONFIG, **config}


def save_config(config: dict, config_file: Optional[Path] = None) -> None:
    """Save configuration to file.

    Args:
        config: Configuration dictionary to save.
        config_file: Optional path to config file. Defaults to CONFIG_FILE.
    """
    if config_file is None:
        config_file = CONFIG_FILE

    config_file.parent.mkdir(parents=True, exist_ok=True)
    with open(config_file, "w", encoding="utf-8") as f:
        json.dump(config, f, indent=2, ensure_ascii=False)

    # May contain the relay API key
    secure_file(config_file)


def reset_config(config_file: Optional[Path] = None) -> None:
    """Reset configuration to default values.

    Args:
        config_file: Optional path to config file. Defaults to CONFIG_FILE.
    """
    save_config(DEFAULT_CONFIG.copy(), config_file=config_file)


def parse_config_value(raw: str) -> Any:
    """Coerce a CLI string into a config value.

    "true"/"false" become booleans, "null"/"none" becomes None and
    digit strings become ints. Anything else stays a string.
    """
    lowered = raw.strip().lower()
    if lowered in ("true", "yes", "on"):
        return True
    if lowered in ("false", "no", "off"):
        return False
    if lowered in ("null", "none", ""):
        return None
    if lowered.lstrip("-").isdigit():
        return int(lowered)
    return raw.strip()


def set_config_value(key: str, raw_value: str, config_file: Optional[Path] = None) -> dict:
    """Set a single configuration key from a CLI string and save.

    Args:
        key: Configuration key.
        raw_value: Value as typed on the command line.
        config_file: Optional path to config file. Defaults to CONFIG_FILE.

    Returns:
        The saved configuration.

    Raises:
        ConfigError: If the key is unknown or the value fails validation.
    """
    if key not in CONFIG_SCHEMA:
        raise ConfigError(
            f"Unknown config key: '{key}'",
            suggestion=f"Valid keys: {', '.join(sorted(DEFAULT_CONFIG))}",
        )

    config = load_config(validate=False, config_file=config_file, silent=True)
    config[key] = parse_config_value(raw_value)

    errors = validate_config({key: config[key]})
    if errors:
        raise ConfigError(errors[0])

    save_config(config, config_file=config_file)
    return config


__all__ = [
    "CONFIG_FILE",
    "DEFAULT_CONFIG",
    "DEFAULT_USAGE_URL",
    "DEFAULT_SUBSCRIPTION_URL",
    "CONFIG_SCHEMA",
    "validate_config",
    "load_config",
    "save_config",
    "reset_config",
    "parse_config_value",
    "set_config_value",
]
