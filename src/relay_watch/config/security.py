"""Security utilities for API key display and file protection."""

from __future__ import annotations

import os
import stat
from pathlib import Path


def mask_api_key(api_key: str | None, prefix_len: int = 6, suffix_len: int = 4) -> str:
    """Mask an API key for safe logging/display.

    Args:
        api_key: Key to mask.
        prefix_len: Number of prefix characters to show.
        suffix_len: Number of suffix characters to show.

    Returns:
        Masked key string (e.g., "sk-abc...wxyz").
    """
    if not api_key:
        return "<not configured>"

    if len(api_key) <= prefix_len + suffix_len:
        return "*" * len(api_key)

    return f"{api_key[:prefix_len]}...{api_key[-suffix_len:]}"


def check_file_permissions(path: Path) -> tuple[bool, str | None]:
    """Check if file has secure permissions (0600 or stricter).

    Args:
        path: Path to the file.

    Returns:
        Tuple of (is_secure, warning_message).
    """
    if not path.exists():
        return True, None

    try:
        mode = path.stat().st_mode
        if mode & (stat.S_IRWXG | stat.S_IRWXO):
            current_perms = oct(mode)[-3:]
            return False, f"File {path} has insecure permissions ({current_perms}), should be 600"
        return True, None
    except OSError as e:
        return False, f"Cannot check permissions for {path}: {e}"


def secure_file(path: Path) -> None:
    """Restrict a file to owner read/write (0600)."""
    os.chmod(path, 0o600)


__all__ = [
    "mask_api_key",
    "check_file_permissions",
    "secure_file",
]
