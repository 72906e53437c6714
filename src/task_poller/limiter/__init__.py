"""
Admission gates used by the task poller.

This package contains the limiter contract and the two gate flavors used
for manager-level and per-poller admission control.
"""

from .base import ConcurrencyLimiter
from .concurrent import ConcurrentLimiter, RateLimitedLimiter

__all__ = ["ConcurrencyLimiter", "ConcurrentLimiter", "RateLimitedLimiter"]
