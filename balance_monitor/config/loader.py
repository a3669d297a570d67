"""
Balance Monitor - Configuration Loader

Loads and validates configuration from environment variables and .env files.
Provides a singleton configuration instance for the runtime.
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

from ..errors import ConfigurationError
from .schemas import MonitorConfig

logger = logging.getLogger(__name__)

_config_instance: MonitorConfig | None = None


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _detect_provider() -> str:
    """Pick the billing provider from whichever credential is present."""
    explicit = os.getenv("BILLING_PROVIDER")
    if explicit:
        return explicit.lower()
    if os.getenv("YESCODE_API_KEY") and not os.getenv("PACKYCODE_JWT_TOKEN"):
        return "yescode"
    return "packycode"


def load_config(
    env_file: str | None = None,
    reload: bool = False,
) -> MonitorConfig:
    """
    Load configuration from environment variables and .env file.

    Args:
        env_file: Path to .env file (default: .env in working directory)
        reload: Force reload even if config already loaded

    Returns:
        Validated MonitorConfig instance

    Raises:
        ConfigurationError: If configuration is invalid
    """
    global _config_instance

    if _config_instance is not None and not reload:
        return _config_instance

    if env_file:
        env_path = Path(env_file)
    else:
        env_path = Path.cwd() / ".env"

    if env_path.exists():
        logger.info(f"Loading environment from {env_path}")
        try:
            load_dotenv(env_path, override=True)
        except Exception as e:
            logger.error(
                f"Failed to load .env file from {env_path}: {e}",
                extra={"path": str(env_path), "error": str(e)},
                exc_info=True,
            )
            raise ConfigurationError(
                f"Failed to load environment file: {e}",
                details={"path": str(env_path), "error": str(e)},
            ) from e
    else:
        logger.debug("No .env file found, using environment variables only")

    bark_url = os.getenv("BARK_URL")

    try:
        config_dict = {
            "environment": os.getenv("ENVIRONMENT", "development"),
            "log_level": os.getenv("LOG_LEVEL", "INFO"),
            "timezone": os.getenv("TIMEZONE", "Asia/Shanghai"),
            "billing": {
                "provider": _detect_provider(),
                "jwt_token": os.getenv("PACKYCODE_JWT_TOKEN"),
                "api_key": os.getenv("YESCODE_API_KEY"),
                "base_url": os.getenv("BILLING_BASE_URL"),
                "timeout": float(os.getenv("BILLING_TIMEOUT", "15.0")),
                "max_retries": int(os.getenv("BILLING_MAX_RETRIES", "2")),
            },
            "alerts": {
                "thresholds": [
                    float(x.strip()) for x in os.getenv("USAGE_ALERT_THRESHOLDS", "0.5,0.8,0.95").split(",") if x.strip()
                ],
                "default_daily_budget": float(os.getenv("DEFAULT_DAILY_BUDGET", "25.0")),
            },
            "notifications": {
                # Auto-enable when a Bark endpoint is configured
                "enabled": _env_bool("NOTIFICATIONS_ENABLED", "true") and bool(bark_url),
                "bark_url": bark_url,
                "group": os.getenv("BARK_GROUP", "balance-monitor"),
                "sound": os.getenv("BARK_SOUND", "alarm"),
                "timeout": float(os.getenv("BARK_TIMEOUT", "10.0")),
            },
            "storage": {
                "db_path": os.getenv("MONITOR_DB_PATH", "./data/balance_monitor.db"),
            },
            "scheduler": {
                "enabled": _env_bool("SCHEDULER_ENABLED", "true"),
                "collect_interval_minutes": int(os.getenv("COLLECT_INTERVAL_MINUTES", "5")),
                "daily_reset_time": os.getenv("DAILY_RESET_TIME", "00:05"),
                "notification_check_time": os.getenv("NOTIFICATION_CHECK_TIME", "12:00"),
                "poll_interval_seconds": float(os.getenv("SCHEDULER_POLL_SECONDS", "1.0")),
            },
            "forecast": {
                "history_days": int(os.getenv("HISTORY_DAYS", "30")),
            },
            "security": {
                "api_secret": os.getenv("API_SECRET"),
            },
        }
    except ValueError as e:
        logger.error(f"Malformed numeric environment variable: {e}", exc_info=True)
        raise ConfigurationError(
            f"Malformed numeric environment variable: {e}",
            details={"error": str(e)},
        ) from e

    try:
        _config_instance = MonitorConfig(**config_dict)  # type: ignore[arg-type]
        logger.info(
            f"Configuration loaded successfully (environment: {_config_instance.environment})",
            extra={
                "environment": _config_instance.environment,
                "billing_provider": _config_instance.billing.provider,
                "timezone": _config_instance.timezone,
            },
        )
        return _config_instance
    except ValidationError as e:
        logger.error(
            f"Configuration validation failed: {e}",
            extra={"validation_errors": e.errors(), "config_dict_keys": list(config_dict.keys())},
            exc_info=True,
        )
        raise ConfigurationError(
            "Configuration validation failed. Check your environment variables and configuration.",
            details={"validation_errors": e.errors()},
        ) from e


def get_config() -> MonitorConfig:
    """
    Get the current configuration instance.

    Returns:
        Current MonitorConfig instance (loaded on first access)
    """
    if _config_instance is None:
        return load_config()

    return _config_instance


def reload_config(env_file: str | None = None) -> MonitorConfig:
    """
    Force reload configuration.

    Args:
        env_file: Optional path to .env file

    Returns:
        Reloaded MonitorConfig instance
    """
    return load_config(env_file=env_file, reload=True)


def reset_config() -> None:
    """Drop the cached instance (used by tests)."""
    global _config_instance
    _config_instance = None
