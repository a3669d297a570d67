"""
Balance Monitor - Usage Monitoring Platform

Balance collection, threshold alerts, daily summaries and short-horizon
balance forecasting for metered API subscriptions.
"""

__version__ = "1.0.0"

from .server import mcp

__all__ = ["mcp"]
