"""
YesCode billing client.

The profile endpoint splits the account into a subscription balance
(refilled daily up to ``subscription_plan.daily_balance``) and a
pay-as-you-go balance. Daily spend is not reported directly.
"""

from typing import Any

import httpx

from ..errors import ConfigurationError
from ..resilience import RetryConfig
from .base import BillingClient, BillingSnapshot


class YesCodeClient(BillingClient):
    """Client for ``GET /api/v1/auth/profile``."""

    endpoint = "/api/v1/auth/profile"

    def __init__(
        self,
        api_key: str | None,
        base_url: str = "https://co.yes.vg",
        timeout: float = 15.0,
        retry_config: RetryConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not api_key:
            raise ConfigurationError("YESCODE_API_KEY environment variable is not set")
        self._api_key = api_key
        super().__init__(base_url, timeout=timeout, retry_config=retry_config, transport=transport)

    @property
    def name(self) -> str:
        return "yescode"

    def _auth_headers(self) -> dict[str, str]:
        return {"X-API-Key": self._api_key}

    def _parse(self, payload: dict[str, Any]) -> BillingSnapshot:
        plan = payload.get("subscription_plan") or {}
        subscription = float(payload["subscription_balance"])
        daily_budget = float(plan["daily_balance"])

        return BillingSnapshot(
            provider=self.name,
            user_id=str(payload["id"]) if payload.get("id") is not None else None,
            balance=subscription,
            pay_as_you_go_balance=payload.get("pay_as_you_go_balance") or 0,
            daily_spent=max(0.0, daily_budget - subscription),
            monthly_spent=payload.get("current_month_spend") or 0,
            daily_budget=daily_budget,
            monthly_budget=plan.get("monthly_spend_limit") or 0,
            plan_type=plan.get("name") or plan.get("plan_type"),
            plan_expires_at=payload.get("subscription_expiry"),
        )
