"""
Tests for configuration schemas and the environment loader.
"""

import pytest
from pydantic import ValidationError

from balance_monitor.config import (
    AlertConfig,
    BillingConfig,
    ForecastConfig,
    MonitorConfig,
    SchedulerConfig,
    get_config,
    load_config,
)
from balance_monitor.errors import ConfigurationError

MANAGED_VARS = (
    "ENVIRONMENT",
    "LOG_LEVEL",
    "TIMEZONE",
    "BILLING_PROVIDER",
    "PACKYCODE_JWT_TOKEN",
    "YESCODE_API_KEY",
    "BILLING_BASE_URL",
    "BILLING_TIMEOUT",
    "BILLING_MAX_RETRIES",
    "USAGE_ALERT_THRESHOLDS",
    "DEFAULT_DAILY_BUDGET",
    "BARK_URL",
    "NOTIFICATIONS_ENABLED",
    "MONITOR_DB_PATH",
    "SCHEDULER_ENABLED",
    "COLLECT_INTERVAL_MINUTES",
    "DAILY_RESET_TIME",
    "NOTIFICATION_CHECK_TIME",
    "HISTORY_DAYS",
    "API_SECRET",
)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in MANAGED_VARS:
        monkeypatch.delenv(name, raising=False)
    return str(tmp_path / "missing.env")


class TestSchemas:
    def test_defaults(self):
        config = MonitorConfig()

        assert config.timezone == "Asia/Shanghai"
        assert config.billing.provider == "packycode"
        assert config.billing.resolved_base_url == "https://www.packycode.com"
        assert config.alerts.thresholds == [0.5, 0.8, 0.95]
        assert config.scheduler.collect_interval_minutes == 5
        assert config.forecast.history_days == 30
        assert str(config.tz) == "Asia/Shanghai"

    def test_thresholds_sorted_and_deduplicated(self):
        assert AlertConfig(thresholds=[0.9, 0.5, 0.9]).thresholds == [0.5, 0.9]

    def test_threshold_out_of_range(self):
        with pytest.raises(ValidationError):
            AlertConfig(thresholds=[1.5])

    @pytest.mark.parametrize("value", ["7:00", "24:00", "12:60", "noon"])
    def test_invalid_clock_time(self, value):
        with pytest.raises(ValidationError):
            SchedulerConfig(daily_reset_time=value)

    def test_history_days_range(self):
        with pytest.raises(ValidationError):
            ForecastConfig(history_days=0)

    def test_enum_defaults_are_plain_values(self):
        config = MonitorConfig()

        assert type(config.billing.provider) is str
        assert f"{config.environment}/{config.log_level}" == "development/INFO"
        assert BillingConfig(jwt_token="jwt").resolved_base_url == "https://www.packycode.com"

    def test_unknown_timezone(self):
        with pytest.raises(ValidationError):
            MonitorConfig(timezone="Mars/Olympus")

    def test_production_requires_secret(self):
        with pytest.raises(ValidationError):
            MonitorConfig(environment="production")

        config = MonitorConfig(environment="production", security={"api_secret": "s3cret"})
        assert config.security.api_secret == "s3cret"

    def test_base_url_override(self):
        config = BillingConfig(provider="yescode", base_url="https://mirror.test/")

        assert config.resolved_base_url == "https://mirror.test"


class TestLoader:
    def test_load_from_environment(self, monkeypatch, clean_env):
        monkeypatch.setenv("PACKYCODE_JWT_TOKEN", "jwt-value")
        monkeypatch.setenv("USAGE_ALERT_THRESHOLDS", "0.9, 0.6")
        monkeypatch.setenv("BARK_URL", "https://api.day.app/key")
        monkeypatch.setenv("TIMEZONE", "Europe/Berlin")
        monkeypatch.setenv("DAILY_RESET_TIME", "00:10")

        config = load_config(env_file=clean_env, reload=True)

        assert config.billing.provider == "packycode"
        assert config.billing.jwt_token == "jwt-value"
        assert config.alerts.thresholds == [0.6, 0.9]
        assert config.notifications.enabled is True
        assert config.timezone == "Europe/Berlin"
        assert config.scheduler.daily_reset_time == "00:10"

    def test_notifications_need_bark_url(self, clean_env):
        config = load_config(env_file=clean_env, reload=True)

        assert config.notifications.enabled is False
        assert config.notifications.bark_url is None

    def test_detects_yescode(self, monkeypatch, clean_env):
        monkeypatch.setenv("YESCODE_API_KEY", "yk")

        config = load_config(env_file=clean_env, reload=True)

        assert config.billing.provider == "yescode"
        assert config.billing.resolved_base_url == "https://co.yes.vg"

    def test_explicit_provider_wins(self, monkeypatch, clean_env):
        monkeypatch.setenv("YESCODE_API_KEY", "yk")
        monkeypatch.setenv("BILLING_PROVIDER", "PackyCode")

        config = load_config(env_file=clean_env, reload=True)

        assert config.billing.provider == "packycode"

    def test_malformed_number(self, monkeypatch, clean_env):
        monkeypatch.setenv("BILLING_TIMEOUT", "fast")

        with pytest.raises(ConfigurationError):
            load_config(env_file=clean_env, reload=True)

    def test_invalid_value(self, monkeypatch, clean_env):
        monkeypatch.setenv("ENVIRONMENT", "production")

        with pytest.raises(ConfigurationError) as exc_info:
            load_config(env_file=clean_env, reload=True)

        assert "validation_errors" in exc_info.value.details

    def test_env_file(self, monkeypatch, clean_env, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("DEFAULT_DAILY_BUDGET=40\nHISTORY_DAYS=7\n")
        monkeypatch.setenv("HISTORY_DAYS", "30")
        monkeypatch.setenv("DEFAULT_DAILY_BUDGET", "1")

        config = load_config(env_file=str(env_file), reload=True)

        assert config.alerts.default_daily_budget == 40.0
        assert config.forecast.history_days == 7

    def test_singleton(self, clean_env):
        first = load_config(env_file=clean_env, reload=True)

        assert load_config() is first
        assert get_config() is first
