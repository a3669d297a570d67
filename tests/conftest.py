"""
Balance Monitor - Test Configuration and Shared Fixtures

Provides a per-test SQLite database, httpx MockTransport-backed billing and
Bark clients, and builders for forecaster input.
"""

import json
import os
from collections.abc import AsyncGenerator, Callable, Generator
from datetime import UTC, date, datetime, timedelta
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo

import httpx
import pytest
import pytest_asyncio

from balance_monitor.billing import PackyCodeClient
from balance_monitor.config import (
    BillingConfig,
    MonitorConfig,
    NotificationConfig,
    SchedulerConfig,
    StorageConfig,
    reset_config,
)
from balance_monitor.forecasting import Observation
from balance_monitor.notifications import BarkNotifier
from balance_monitor.observability import get_observability
from balance_monitor.resilience import RetryConfig
from balance_monitor.storage import MonitorDatabase, UsageRepository

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "DEBUG"

SHANGHAI = ZoneInfo("Asia/Shanghai")
BARK_URL = "https://api.day.app/test-key"

# 2026-10-19 12:00 in Asia/Shanghai
NOW = datetime(2026, 10, 19, 4, 0, tzinfo=UTC)
TODAY = date(2026, 10, 19)

FAST_RETRY = RetryConfig(max_retries=1, base_delay=0.01, max_delay=0.01, jitter=False)


def packycode_payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "user_id": "user-1",
        "balance_usd": "20.0000",
        "daily_spent_usd": "5.0000",
        "daily_budget_usd": "25.0000",
        "total_spent_usd": "120.5000",
        "monthly_spent_usd": "60.0000",
        "monthly_budget_usd": "500.0000",
        "plan_type": "pro",
        "plan_expires_at": "2026-11-18T04:00:00Z",
    }
    payload.update(overrides)
    return payload


@pytest.fixture(autouse=True)
def clean_globals() -> Generator[None, None, None]:
    """Fresh counters and config cache for every test."""
    get_observability().clear_metrics()
    reset_config()
    yield
    reset_config()


@pytest.fixture
def now() -> datetime:
    """Fixed poll time: 2026-10-19 12:00 local."""
    return NOW


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def config(tmp_path: Path) -> MonitorConfig:
    return MonitorConfig(
        environment="test",
        timezone="Asia/Shanghai",
        billing=BillingConfig(provider="packycode", jwt_token="test-jwt"),
        notifications=NotificationConfig(enabled=True, bark_url=BARK_URL),
        storage=StorageConfig(db_path=str(tmp_path / "monitor.db")),
        scheduler=SchedulerConfig(enabled=False),
    )


@pytest_asyncio.fixture
async def database(config: MonitorConfig) -> AsyncGenerator[MonitorDatabase, None]:
    db = MonitorDatabase(config.storage.db_path)
    await db.initialize()
    yield db
    await db.close()


@pytest.fixture
def repository(database: MonitorDatabase) -> UsageRepository:
    return UsageRepository(database)


class BillingAPI:
    """Scripted billing endpoint: queued responses first, then ``payload``."""

    def __init__(self) -> None:
        self.payload = packycode_payload()
        self.responses: list[httpx.Response | Exception] = []
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.responses:
            response = self.responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response
        return httpx.Response(200, json=self.payload)


class BarkInbox:
    """Captures Bark pushes; ``status`` controls the reply."""

    def __init__(self) -> None:
        self.messages: list[dict[str, Any]] = []
        self.status = 200

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.status >= 400:
            return httpx.Response(self.status, text="bark unavailable")
        self.messages.append(json.loads(request.content))
        return httpx.Response(200, json={"code": 200, "message": "success"})

    @property
    def titles(self) -> list[str]:
        return [message["title"] for message in self.messages]


@pytest.fixture
def billing_api() -> BillingAPI:
    return BillingAPI()


@pytest.fixture
def bark_inbox() -> BarkInbox:
    return BarkInbox()


@pytest_asyncio.fixture
async def billing_client(billing_api: BillingAPI) -> AsyncGenerator[PackyCodeClient, None]:
    client = PackyCodeClient(
        "test-jwt",
        base_url="https://billing.test",
        retry_config=FAST_RETRY,
        transport=httpx.MockTransport(billing_api.handler),
    )
    yield client
    await client.close()


@pytest_asyncio.fixture
async def notifier(bark_inbox: BarkInbox) -> AsyncGenerator[BarkNotifier, None]:
    bark = BarkNotifier(BARK_URL, transport=httpx.MockTransport(bark_inbox.handler))
    yield bark
    await bark.close()


@pytest.fixture
def make_observations() -> Callable[..., list[Observation]]:
    """
    Build one day's observations.

    ``make_observations([20, 16, 12], start="08:00", every_minutes=60)``
    """

    def build(
        balances: list[float],
        start: str = "10:00",
        every_minutes: int = 5,
        pay_as_you_go: list[float] | None = None,
        day: date = TODAY,
        tz: ZoneInfo = SHANGHAI,
    ) -> list[Observation]:
        hour, minute = (int(part) for part in start.split(":"))
        first = datetime(day.year, day.month, day.day, hour, minute, tzinfo=tz)
        secondary = pay_as_you_go or [0.0] * len(balances)

        observations = []
        for i, (balance, payg) in enumerate(zip(balances, secondary, strict=True)):
            moment = first + timedelta(minutes=every_minutes * i)
            observations.append(
                Observation(
                    timestamp=moment,
                    hour_of_day=moment.hour + moment.minute / 60,
                    balance=balance,
                    pay_as_you_go_balance=payg,
                )
            )
        return observations

    return build
