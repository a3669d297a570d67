"""
Balance Monitor - Configuration Module

Provides typed configuration loading and validation.
"""

from .loader import get_config, load_config, reload_config, reset_config
from .schemas import (
    AlertConfig,
    BillingConfig,
    BillingProvider,
    Environment,
    ForecastConfig,
    LogLevel,
    MonitorConfig,
    NotificationConfig,
    SchedulerConfig,
    SecurityConfig,
    StorageConfig,
)

__all__ = [
    # Loader functions
    "load_config",
    "get_config",
    "reload_config",
    "reset_config",
    # Main config
    "MonitorConfig",
    # Enums
    "Environment",
    "LogLevel",
    "BillingProvider",
    # Config sections
    "BillingConfig",
    "AlertConfig",
    "NotificationConfig",
    "StorageConfig",
    "SchedulerConfig",
    "ForecastConfig",
    "SecurityConfig",
]
