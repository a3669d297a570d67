"""
Balance Monitor - Configuration Schemas

Defines typed configuration models using Pydantic for validation and type safety.
All configuration must be defined here and validated at startup.

- Billing provider selection and credentials
- Usage alert thresholds
- Bark push notification target
- SQLite storage location
- Scheduler cadence (all wall-clock times in the configured timezone)
"""

from enum import Enum
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Environment(str, Enum):
    """Runtime environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


class LogLevel(str, Enum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class BillingProvider(str, Enum):
    """Supported billing APIs."""

    PACKYCODE = "packycode"
    YESCODE = "yescode"


DEFAULT_BASE_URLS = {
    BillingProvider.PACKYCODE.value: "https://www.packycode.com",
    BillingProvider.YESCODE.value: "https://co.yes.vg",
}


class BillingConfig(BaseModel):
    """Billing API client configuration."""

    provider: BillingProvider = Field(
        default=BillingProvider.PACKYCODE.value,
        validate_default=True,
        description="Billing API to poll",
    )
    jwt_token: str | None = Field(default=None, description="PackyCode JWT (Bearer auth)")
    api_key: str | None = Field(default=None, description="YesCode API key (X-API-Key header)")
    base_url: str | None = Field(default=None, description="Override the provider's default base URL")
    timeout: float = Field(default=15.0, ge=1.0, description="Request timeout in seconds")
    max_retries: int = Field(default=2, ge=0, description="Retry attempts for transient failures")

    model_config = ConfigDict(use_enum_values=True)

    @property
    def resolved_base_url(self) -> str:
        return (self.base_url or DEFAULT_BASE_URLS[BillingProvider(self.provider).value]).rstrip("/")


class AlertConfig(BaseModel):
    """Daily usage alert configuration."""

    thresholds: list[float] = Field(
        default_factory=lambda: [0.5, 0.8, 0.95],
        description="Usage fractions of the daily budget that trigger a notification",
    )
    default_daily_budget: float = Field(
        default=25.0,
        ge=0.0,
        description="Budget used for a fresh day when no usage record exists yet",
    )

    @field_validator("thresholds")
    @classmethod
    def validate_thresholds(cls, v: list[float]) -> list[float]:
        """Ensure thresholds are valid percentages."""
        for threshold in v:
            if not 0.0 <= threshold <= 1.0:
                raise ValueError(f"Threshold {threshold} must be between 0.0 and 1.0")
        return sorted(set(v))


class NotificationConfig(BaseModel):
    """Bark push notification configuration."""

    enabled: bool = Field(default=True, description="Send push notifications")
    bark_url: str | None = Field(default=None, description="Bark endpoint (https://api.day.app/<key>)")
    group: str = Field(default="balance-monitor", description="Bark notification group")
    sound: str = Field(default="alarm", description="Bark notification sound")
    timeout: float = Field(default=10.0, ge=1.0, description="Request timeout in seconds")


class StorageConfig(BaseModel):
    """Snapshot database configuration."""

    db_path: str = Field(default="./data/balance_monitor.db", description="SQLite database path")


class SchedulerConfig(BaseModel):
    """Background job configuration."""

    enabled: bool = Field(default=True, description="Start the job scheduler with the server")
    collect_interval_minutes: int = Field(default=5, ge=1, le=60, description="Usage poll interval")
    daily_reset_time: str = Field(default="00:05", description="Local HH:MM of the daily reset")
    notification_check_time: str = Field(default="12:00", description="Local HH:MM of the expiry check")
    poll_interval_seconds: float = Field(default=1.0, gt=0, description="How often pending jobs are checked")

    @field_validator("daily_reset_time", "notification_check_time")
    @classmethod
    def validate_clock_time(cls, v: str) -> str:
        """Accept zero-padded 24h HH:MM."""
        parts = v.split(":")
        if len(parts) != 2 or not all(p.isdigit() and len(p) == 2 for p in parts):
            raise ValueError(f"Time {v!r} must be HH:MM")
        hour, minute = int(parts[0]), int(parts[1])
        if hour > 23 or minute > 59:
            raise ValueError(f"Time {v!r} is out of range")
        return v


class ForecastConfig(BaseModel):
    """Forecast and dashboard history configuration."""

    history_days: int = Field(default=30, ge=1, le=365, description="Days of daily stats shown on the dashboard")


class SecurityConfig(BaseModel):
    """Security configuration."""

    api_secret: str | None = Field(
        default=None,
        description="Shared secret required by state-changing tools (unset = no check)",
    )


class MonitorConfig(BaseModel):
    """Root configuration for Balance Monitor."""

    environment: Environment = Field(
        default=Environment.DEVELOPMENT.value, validate_default=True, description="Runtime environment"
    )
    log_level: LogLevel = Field(default=LogLevel.INFO.value, validate_default=True, description="Logging level")
    timezone: str = Field(default="Asia/Shanghai", description="IANA zone for days, schedules and labels")

    billing: BillingConfig = Field(default_factory=BillingConfig)
    alerts: AlertConfig = Field(default_factory=AlertConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    forecast: ForecastConfig = Field(default_factory=ForecastConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig, validate_default=True)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone {v!r}") from e
        return v

    @field_validator("security")
    @classmethod
    def validate_security(cls, v: SecurityConfig, info: Any) -> SecurityConfig:
        """Enforce security requirements in production."""
        environment = info.data.get("environment")
        if environment == Environment.PRODUCTION.value and not v.api_secret:
            raise ValueError("API_SECRET must be configured in production")
        return v

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    model_config = ConfigDict(use_enum_values=True, validate_assignment=True)
