"""
Webhook error types.

All errors inherit from TzWebhookError. Parse and serialization errors are
recovered by the decision engine (fail-open); ConfigError is fatal at startup.
"""

from __future__ import annotations


class TzWebhookError(Exception):
    """Base exception for all webhook failures."""


class DescriptorParseError(TzWebhookError):
    """Raised when the admitted object does not decode into a pod."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"could not decode pod: {reason}")


class PatchSerializationError(TzWebhookError):
    """Raised when the computed patch operations cannot be encoded as JSON."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"could not encode patch: {reason}")


class ConfigError(TzWebhookError):
    """Raised for invalid startup configuration (bad paths, missing timezone file)."""
