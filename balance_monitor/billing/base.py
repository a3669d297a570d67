"""
Billing Client Interface

Defines the normalised snapshot model and the abstract client every billing
API adapter implements. Concrete clients only describe their endpoint, auth
headers and payload mapping; transport, error mapping and retries live here.
"""

import logging
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Any

import httpx
from pydantic import BaseModel, Field, field_validator

from ..errors import BillingAPIError, BillingResponseError, BillingTimeoutError
from ..resilience import RetryConfig, with_retry

logger = logging.getLogger(__name__)

# Response bodies are truncated in error details
_MAX_ERROR_BODY = 500

PROVIDER_LABELS = {
    "packycode": "PackyCode",
    "yescode": "YesCode",
}


def provider_label(provider: str) -> str:
    """Human-facing provider name for notification titles."""
    return PROVIDER_LABELS.get(provider, provider.title())


class BillingSnapshot(BaseModel):
    """Account state at one poll, normalised across providers."""

    provider: str = Field(..., description="Billing API the snapshot came from")
    user_id: str | None = Field(default=None, description="Account identifier")
    balance: float = Field(..., description="Subscription (daily) balance in USD")
    pay_as_you_go_balance: float = Field(default=0.0, description="Secondary balance in USD")
    total_spent: float = Field(default=0.0, ge=0.0, description="Lifetime spend in USD")
    daily_spent: float = Field(default=0.0, ge=0.0, description="Spend since local midnight")
    monthly_spent: float = Field(default=0.0, ge=0.0, description="Spend this month")
    daily_budget: float = Field(..., ge=0.0, description="Daily quota in USD")
    monthly_budget: float = Field(default=0.0, ge=0.0, description="Monthly spend limit in USD")
    total_quota: int | None = None
    used_quota: int | None = None
    remaining_quota: int | None = None
    plan_type: str | None = None
    plan_expires_at: datetime | None = None

    @field_validator("plan_expires_at", mode="before")
    @classmethod
    def blank_expiry_is_none(cls, v: Any) -> Any:
        if v in ("", None):
            return None
        return v

    @field_validator("plan_expires_at")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        """Naive timestamps from the API are UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @property
    def usage_percentage(self) -> float:
        if self.daily_budget <= 0:
            return 0.0
        return self.daily_spent / self.daily_budget * 100


class BillingClient(ABC):
    """
    Abstract base class for billing API clients.

    Subclasses provide ``name``, ``endpoint``, ``_auth_headers()`` and
    ``_parse()``; ``fetch_snapshot()`` handles the rest.
    """

    endpoint: str = ""

    def __init__(
        self,
        base_url: str,
        timeout: float = 15.0,
        retry_config: RetryConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url: Provider origin, without trailing slash
            timeout: Request timeout in seconds
            retry_config: Backoff policy for transient failures
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_config = retry_config or RetryConfig()
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the provider name (e.g., 'packycode')."""
        pass

    @abstractmethod
    def _auth_headers(self) -> dict[str, str]:
        pass

    @abstractmethod
    def _parse(self, payload: dict[str, Any]) -> BillingSnapshot:
        """
        Map a provider payload to a snapshot.

        May raise KeyError/TypeError/ValueError on malformed payloads; the
        caller converts those to BillingResponseError.
        """
        pass

    async def fetch_snapshot(self) -> BillingSnapshot:
        """
        Fetch the current account state.

        Raises:
            BillingTimeoutError: The API did not answer in time
            BillingAPIError: Transport failure or HTTP status >= 400
            BillingResponseError: The payload could not be mapped
        """
        return await with_retry(self._fetch_once, config=self.retry_config)  # type: ignore[no-any-return]

    async def _fetch_once(self) -> BillingSnapshot:
        logger.debug(f"Calling {self.name} billing API", extra={"provider": self.name, "endpoint": self.endpoint})

        try:
            response = await self._client.get(self.endpoint, headers=self._auth_headers())
        except httpx.TimeoutException as e:
            raise BillingTimeoutError(self.name, self.timeout) from e
        except httpx.HTTPError as e:
            raise BillingAPIError(
                f"Failed to reach {self.name} billing API: {e}",
                details={"provider": self.name, "error": str(e)},
            ) from e

        if response.status_code >= 400:
            body = response.text[:_MAX_ERROR_BODY]
            logger.error(
                f"{self.name} billing API error response: {response.status_code}",
                extra={"provider": self.name, "status": response.status_code, "body": body},
            )
            raise BillingAPIError(
                f"HTTP error! status: {response.status_code}, body: {body}",
                details={"provider": self.name, "status": response.status_code, "body": body},
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise BillingResponseError(
                f"{self.name} billing API returned invalid JSON",
                details={"provider": self.name, "error": str(e)},
            ) from e

        if not isinstance(payload, dict):
            raise BillingResponseError(
                f"{self.name} billing API returned {type(payload).__name__}, expected object",
                details={"provider": self.name},
            )

        try:
            snapshot = self._parse(payload)
        except (KeyError, TypeError, ValueError) as e:
            raise BillingResponseError(
                f"Unexpected {self.name} billing payload: {e}",
                details={"provider": self.name, "error": str(e)},
            ) from e

        logger.debug(
            f"{self.name} snapshot: balance={snapshot.balance} budget={snapshot.daily_budget}",
            extra={"provider": self.name},
        )
        return snapshot

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
