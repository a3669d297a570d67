"""
Balance Monitor - Resilience

Retry with exponential backoff for the billing API.
"""

from .retry import RetryConfig, exponential_backoff, with_retry

__all__ = ["RetryConfig", "exponential_backoff", "with_retry"]
