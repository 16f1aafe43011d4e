"""
Reliability Module — Retry with exponential backoff.
"""

from .retry import DEFAULT_POLICY, RetryPolicy, retry_call, retrying

__all__ = [
    "RetryPolicy",
    "DEFAULT_POLICY",
    "retry_call",
    "retrying",
]
