"""
Balance Monitor - Runtime

Wires configuration into the long-lived components (database, billing
client, notifier, jobs, scheduler) and owns their lifecycle. The MCP server
holds one runtime for the life of the process.
"""

import asyncio
import contextlib
import logging
from typing import Any

from .billing import BillingClient, create_billing_client, provider_label
from .config.schemas import BillingProvider, MonitorConfig
from .errors import ConfigurationError
from .monitoring import DailyResetJob, DashboardService, ExpiryNotifier, UsageCollector
from .notifications import BarkNotifier
from .scheduling import DAILY_RESET, DATA_COLLECTION, NOTIFICATION_CHECK, MonitorScheduler
from .storage import MonitorDatabase, UsageRepository

logger = logging.getLogger(__name__)


class MonitorRuntime:
    """Container for every component the tools and jobs share."""

    def __init__(
        self,
        config: MonitorConfig,
        *,
        client: BillingClient | None = None,
        notifier: BarkNotifier | None = None,
        database: MonitorDatabase | None = None,
    ):
        """
        Build the component graph.

        A billing client that cannot be created (missing credential) leaves
        collection disabled instead of failing the whole runtime.
        """
        self.config = config
        self.database = database or MonitorDatabase(config.storage.db_path)
        self.repository = UsageRepository(self.database)

        if client is None:
            try:
                client = create_billing_client(config.billing)
            except ConfigurationError as e:
                logger.warning(f"Usage collection disabled: {e.message}")
        self.client = client

        if notifier is None and config.notifications.enabled and config.notifications.bark_url:
            notifier = BarkNotifier(
                config.notifications.bark_url,
                group=config.notifications.group,
                sound=config.notifications.sound,
                timeout=config.notifications.timeout,
            )
        self.notifier = notifier

        self.label = provider_label(BillingProvider(config.billing.provider).value)
        self.collector = (
            UsageCollector(self.client, self.repository, self.notifier, config) if self.client is not None else None
        )
        self.daily_reset = DailyResetJob(self.repository, self.notifier, config, label=self.label)
        self.expiry = ExpiryNotifier(self.repository, self.notifier, config, label=self.label)
        self.dashboard = DashboardService(self.repository, config)

        jobs: dict[str, Any] = {
            DAILY_RESET: self.daily_reset.run,
            NOTIFICATION_CHECK: self.expiry.check,
        }
        if self.collector is not None:
            jobs[DATA_COLLECTION] = self.collector.collect
        self.scheduler = MonitorScheduler(config, jobs)

        self._loop_task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        """Initialize storage and, when enabled, start the job loop."""
        await self.database.initialize()

        if self.config.scheduler.enabled:
            self.start_scheduler()
        else:
            logger.info("Scheduler disabled via configuration")

    def start_scheduler(self) -> None:
        self.scheduler.start()
        self._ensure_loop()

    def restart_scheduler(self) -> None:
        self.scheduler.restart()
        self._ensure_loop()

    def _ensure_loop(self) -> None:
        if self._loop_task is None or self._loop_task.done():
            self._loop_task = asyncio.get_running_loop().create_task(
                self.scheduler.run_forever(), name="scheduler-loop"
            )

    async def close(self) -> None:
        """Stop jobs and release connections."""
        if self._loop_task is not None:
            self._loop_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._loop_task
            self._loop_task = None

        await self.scheduler.shutdown()

        if self.client is not None:
            await self.client.close()
        if self.notifier is not None:
            await self.notifier.close()
        await self.database.close()
        logger.info("Runtime closed")


# Global runtime instance (singleton)
_runtime: MonitorRuntime | None = None


def get_runtime() -> MonitorRuntime | None:
    return _runtime


async def initialize_runtime(config: MonitorConfig, **components: Any) -> MonitorRuntime:
    """Create and start the global runtime (idempotent)."""
    global _runtime

    if _runtime is None:
        runtime = MonitorRuntime(config, **components)
        await runtime.start()
        _runtime = runtime

    return _runtime


async def close_runtime() -> None:
    global _runtime

    if _runtime is not None:
        await _runtime.close()
        _runtime = None
