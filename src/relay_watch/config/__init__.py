"""Configuration management.

Modules:
    settings: Config loading, saving, validation and editing
    credentials: Relay API key and endpoint resolution
    security: Key masking and file permissions
"""

from relay_watch.config.credentials import (
    Credentials,
    Provider,
    detect_provider,
    get_api_key_from_claude_settings,
    get_claude_settings_path,
    get_usage_url_from_claude_settings,
    load_credentials,
)
from relay_watch.config.security import mask_api_key
from relay_watch.config.settings import (
    CONFIG_FILE,
    CONFIG_SCHEMA,
    DEFAULT_CONFIG,
    DEFAULT_SUBSCRIPTION_URL,
    DEFAULT_USAGE_URL,
    load_config,
    reset_config,
    save_config,
    set_config_value,
    validate_config,
)

__all__ = [
    # Settings
    "CONFIG_FILE",
    "DEFAULT_CONFIG",
    "DEFAULT_USAGE_URL",
    "DEFAULT_SUBSCRIPTION_URL",
    "CONFIG_SCHEMA",
    "validate_config",
    "load_config",
    "save_config",
    "reset_config",
    "set_config_value",
    # Credentials
    "Provider",
    "Credentials",
    "detect_provider",
    "get_claude_settings_path",
    "get_api_key_from_claude_settings",
    "get_usage_url_from_claude_settings",
    "load_credentials",
    # Security
    "mask_api_key",
]
