"""
PackyCode billing client.

The user-info endpoint reports money as decimal strings
("12.3400") and authenticates with the dashboard JWT.
"""

from typing import Any

import httpx

from ..errors import ConfigurationError
from ..resilience import RetryConfig
from .base import BillingClient, BillingSnapshot


class PackyCodeClient(BillingClient):
    """Client for ``GET /api/backend/users/info``."""

    endpoint = "/api/backend/users/info"

    def __init__(
        self,
        jwt_token: str | None,
        base_url: str = "https://www.packycode.com",
        timeout: float = 15.0,
        retry_config: RetryConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not jwt_token:
            raise ConfigurationError("PACKYCODE_JWT_TOKEN environment variable is not set")
        self._jwt_token = jwt_token
        super().__init__(base_url, timeout=timeout, retry_config=retry_config, transport=transport)

    @property
    def name(self) -> str:
        return "packycode"

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._jwt_token}"}

    def _parse(self, payload: dict[str, Any]) -> BillingSnapshot:
        return BillingSnapshot(
            provider=self.name,
            user_id=str(payload["user_id"]) if payload.get("user_id") is not None else None,
            balance=payload["balance_usd"],
            total_spent=payload.get("total_spent_usd") or 0,
            daily_spent=payload["daily_spent_usd"],
            monthly_spent=payload.get("monthly_spent_usd") or 0,
            daily_budget=payload["daily_budget_usd"],
            monthly_budget=payload.get("monthly_budget_usd") or 0,
            total_quota=payload.get("total_quota"),
            used_quota=payload.get("used_quota"),
            remaining_quota=payload.get("remaining_quota"),
            plan_type=payload.get("plan_type"),
            plan_expires_at=payload.get("plan_expires_at"),
        )
