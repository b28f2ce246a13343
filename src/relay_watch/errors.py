"""Categorized error handling with actionable messages.

Provides structured error types with exit codes and recovery suggestions
for the statusline, the CLI and scripting integration.
"""

from __future__ import annotations

from enum import IntEnum
from typing import ClassVar


class ExitCode(IntEnum):
    """Exit codes for scripting integration.

    Standard categories:
    - 0: Success
    - 1-9: Usage/config errors (user can fix)
    - 10-19: Authentication errors
    - 20-29: Network errors
    - 30-39: API errors
    - 40-49: System errors
    - 50-59: Data errors
    """

    SUCCESS = 0

    # Usage/config errors (1-9)
    USAGE_ERROR = 1
    CONFIG_ERROR = 2
    INVALID_ARGUMENT = 4

    # Authentication errors (10-19)
    AUTH_EXPIRED = 10
    AUTH_MISSING = 12
    AUTH_PERMISSION = 13

    # Network errors (20-29)
    NETWORK_OFFLINE = 20
    NETWORK_TIMEOUT = 21
    NETWORK_DNS = 22

    # API errors (30-39)
    API_ERROR = 30
    API_RATE_LIMIT = 31
    API_SERVER_ERROR = 32
    API_MAINTENANCE = 33

    # System errors (40-49)
    CACHE_IO = 41
    SYSTEM_ERROR = 49

    # Data errors (50-59)
    DATA_CORRUPT = 50
    DATA_INVALID = 51


class RelayWatchError(Exception):
    """Base exception for relay-watch with structured error info.

    Attributes:
        message: Human-readable error message.
        code: Exit code for scripting.
        suggestion: Actionable recovery suggestion.
        details: Optional additional context.
    """

    code: ClassVar[ExitCode] = ExitCode.USAGE_ERROR
    suggestion: ClassVar[str] = ""

    def __init__(
        self,
        message: str,
        suggestion: str | None = None,
        details: str | None = None,
    ):
        self.message = message
        self._suggestion = suggestion
        self.details = details
        super().__init__(message)

    def get_suggestion(self) -> str:
        """Get the recovery suggestion."""
        return self._suggestion or self.suggestion

    def format_full(self) -> str:
        """Format the complete error message with suggestion."""
        parts = [f"Error: {self.message}"]
        if self.details:
            parts.append(f"Details: {self.details}")
        suggestion = self.get_suggestion()
        if suggestion:
            parts.append(f"Suggestion: {suggestion}")
        return "\n".join(parts)


# Authentication Errors


class CredentialMissingError(RelayWatchError):
    """No relay API key configured."""

    code = ExitCode.AUTH_MISSING
    suggestion = (
        "Set ANTHROPIC_AUTH_TOKEN and ANTHROPIC_BASE_URL in ~/.claude/settings.json, "
        "or run 'relay-watch --config set api_key KEY'."
    )


class AuthenticationExpiredError(RelayWatchError):
    """API key was rejected by the relay."""

    code = ExitCode.AUTH_EXPIRED
    suggestion = "Check that your relay API key is still valid."


class PermissionDeniedError(RelayWatchError):
    """API access denied for this key."""

    code = ExitCode.AUTH_PERMISSION
    suggestion = "Ensure the key belongs to an account with an active plan."


# Network Errors


class TransportError(RelayWatchError):
    """Relay could not be reached."""

    code = ExitCode.NETWORK_OFFLINE
    suggestion = "Check your internet connection and try again."


class NetworkOfflineError(TransportError):
    """Connection refused or no route to host."""


class NetworkTimeoutError(TransportError):
    """Request timed out."""

    code = ExitCode.NETWORK_TIMEOUT
    suggestion = "The request timed out. Try again, or increase timeout with --timeout."


class NetworkDNSError(TransportError):
    """DNS resolution failed."""

    code = ExitCode.NETWORK_DNS
    suggestion = "DNS lookup failed. Check your network configuration."


# API Errors


class UnsuccessfulStatusError(RelayWatchError):
    """Relay answered with a non-2xx status."""

    code = ExitCode.API_ERROR
    suggestion = "Try again later. If the problem persists, check the relay's status page."

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        suggestion: str | None = None,
        details: str | None = None,
    ):
        super().__init__(message, suggestion=suggestion, details=details)
        self.status_code = status_code


class RateLimitError(UnsuccessfulStatusError):
    """API rate limit exceeded."""

    code = ExitCode.API_RATE_LIMIT
    suggestion = "You've hit the relay's rate limit. Wait a few minutes before trying again."


class ServerError(UnsuccessfulStatusError):
    """Relay server error (5xx)."""

    code = ExitCode.API_SERVER_ERROR
    suggestion = "The relay is experiencing issues. Try again later."


class MaintenanceError(UnsuccessfulStatusError):
    """Relay is under maintenance."""

    code = ExitCode.API_MAINTENANCE
    suggestion = "The relay is currently under maintenance. Try again in a few minutes."


# Data Errors


class ShapeMismatchError(RelayWatchError):
    """Payload does not match any known provider schema."""

    code = ExitCode.DATA_INVALID
    suggestion = "The relay returned an unexpected response. Check that usage_url is correct."


class CacheCorruptError(RelayWatchError):
    """Persisted cache record cannot be parsed."""

    code = ExitCode.DATA_CORRUPT
    suggestion = "The cache file appears corrupted. It will be rewritten on the next fetch."


class CacheIOError(RelayWatchError):
    """Cache path cannot be written."""

    code = ExitCode.CACHE_IO
    suggestion = "Check permissions on the cache directory (RELAY_WATCH_CACHE_DIR)."


# Config Errors


class ConfigError(RelayWatchError):
    """Configuration file error."""

    code = ExitCode.CONFIG_ERROR
    suggestion = "Run 'relay-watch --config reset' to reset configuration to defaults."


def categorize_http_error(status_code: int, reason: str = "") -> RelayWatchError:
    """Convert HTTP status code to appropriate error type.

    Args:
        status_code: HTTP status code.
        reason: Optional reason phrase.

    Returns:
        Appropriate RelayWatchError subclass instance.
    """
    message = f"API error: {status_code}"
    if reason:
        message += f" {reason}"

    if status_code == 401:
        return AuthenticationExpiredError("Authentication failed. The relay rejected the API key.")
    elif status_code == 403:
        return PermissionDeniedError("Access denied by the relay.")
    elif status_code == 429:
        return RateLimitError("Rate limit exceeded. Too many requests.", status_code=status_code)
    elif status_code == 503:
        return MaintenanceError("Service temporarily unavailable.", status_code=status_code)
    elif status_code >= 500:
        return ServerError(f"Server error: {status_code} {reason}".rstrip(), status_code=status_code)
    else:
        return UnsuccessfulStatusError(message, status_code=status_code)


def categorize_network_error(error_reason: str) -> TransportError:
    """Convert network error reason to appropriate error type.

    Args:
        error_reason: Error reason string from URLError.

    Returns:
        Appropriate TransportError subclass instance.
    """
    reason_lower = error_reason.lower()

    if "timed out" in reason_lower or "timeout" in reason_lower:
        return NetworkTimeoutError(f"Connection timed out: {error_reason}")
    elif "name or service not known" in reason_lower or "getaddrinfo" in reason_lower:
        return NetworkDNSError(f"DNS resolution failed: {error_reason}")
    elif "connection refused" in reason_lower or "no route" in reason_lower:
        return NetworkOfflineError(f"Connection failed: {error_reason}")
    else:
        return NetworkOfflineError(f"Network error: {error_reason}")


def format_error_for_user(error: Exception, verbose: bool = False) -> str:
    """Format any exception for user display.

    Args:
        error: Exception to format.
        verbose: If True, include details and suggestions.

    Returns:
        Formatted error message string.
    """
    if isinstance(error, RelayWatchError):
        if verbose:
            return error.format_full()
        return f"Error: {error.message}"
    else:
        return f"Error: {error}"


def get_exit_code(error: Exception) -> int:
    """Get the exit code for an exception.

    Args:
        error: Exception to get code for.

    Returns:
        Integer exit code.
    """
    if isinstance(error, RelayWatchError):
        return error.code
    elif isinstance(error, PermissionError):
        return ExitCode.CACHE_IO
    elif isinstance(error, ValueError):
        return ExitCode.INVALID_ARGUMENT
    else:
        return ExitCode.SYSTEM_ERROR


__all__ = [
    # Exit codes
    "ExitCode",
    # Base error
    "RelayWatchError",
    # Authentication errors
    "CredentialMissingError",
    "AuthenticationExpiredError",
    "PermissionDeniedError",
    # Network errors
    "TransportError",
    "NetworkOfflineError",
    "NetworkTimeoutError",
    "NetworkDNSError",
    # API errors
    "UnsuccessfulStatusError",
    "RateLimitError",
    "ServerError",
    "MaintenanceError",
    # Data errors
    "ShapeMismatchError",
    "CacheCorruptError",
    "CacheIOError",
    # Config errors
    "ConfigError",
    # Utilities
    "categorize_http_error",
    "categorize_network_error",
    "format_error_for_user",
    "get_exit_code",
]
