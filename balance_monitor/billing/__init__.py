"""
Balance Monitor - Billing

Async clients for the billing APIs whose balance is being monitored.
"""

from .base import BillingClient, BillingSnapshot, provider_label
from .factory import create_billing_client
from .packycode import PackyCodeClient
from .yescode import YesCodeClient

__all__ = [
    "BillingClient",
    "BillingSnapshot",
    "PackyCodeClient",
    "YesCodeClient",
    "create_billing_client",
    "provider_label",
]
