"""
Balance Monitor - Observability Module

Single observability adapter for the entire runtime.
All counters, spans and structured events go through this module.

Usage:
    from balance_monitor.observability import get_observability

    obs = get_observability()
    obs.increment("collect.success")

    with obs.trace("daily_reset"):
        # traced code here
        pass
"""

from .monitoring import (
    JSONFormatter,
    ObservabilityAdapter,
    configure_logging,
    get_observability,
    initialize_observability,
)

__all__ = [
    "ObservabilityAdapter",
    "JSONFormatter",
    "configure_logging",
    "get_observability",
    "initialize_observability",
]
