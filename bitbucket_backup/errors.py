"""
Run-aborting errors.

Anything raised from here stops the whole batch before (or without)
completing it. Per-repository problems never raise; they become
failure outcomes instead.
"""

from __future__ import annotations


class BackupError(Exception):
    """Base class for fatal backup errors."""


class ConfigError(BackupError):
    """Missing or malformed settings, or an unusable backup root."""


class DiscoveryError(BackupError):
    """The repository listing could not be obtained, or was empty."""


def redact(text: str, *secrets: str | None) -> str:
    """Replace every occurrence of the given secrets with ***."""
    for secret in secrets:
        if secret:
            text = text.replace(secret, "***")
    return text
