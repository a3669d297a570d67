"""
Balance Monitor - Job Scheduler

Runs the monitor's recurring jobs on a ``schedule.Scheduler``:

- data_collection:    every N minutes, aligned to the clock (:00, :05, ...)
- daily_reset:        once a day (default 00:05 local)
- notification_check: once a day (default 12:00 local)

Jobs are coroutines; ``run_pending()`` spawns each due job as an asyncio
task so a slow billing call never delays the others. A failing job is
logged and counted; the loop keeps going.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

import schedule

from ..config.schemas import MonitorConfig
from ..observability import get_observability

logger = logging.getLogger(__name__)

JobFn = Callable[[], Awaitable[Any]]

DATA_COLLECTION = "data_collection"
DAILY_RESET = "daily_reset"
NOTIFICATION_CHECK = "notification_check"


class MonitorScheduler:
    """Owns the recurring jobs and their run state."""

    def __init__(self, config: MonitorConfig, jobs: dict[str, JobFn]):
        """
        Args:
            config: Monitor configuration (scheduler section and timezone)
            jobs: Coroutine functions keyed by job name
        """
        self.config = config
        self._job_fns = dict(jobs)
        self._scheduler = schedule.Scheduler()
        self._entries: dict[str, list[schedule.Job]] = {}
        self._descriptions: dict[str, str] = {}
        self._last_runs: dict[str, dict[str, Any]] = {}
        self._tasks: set[asyncio.Task[Any]] = set()
        self._initialized = False
        self._running = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def running(self) -> bool:
        return self._running

    def initialize(self) -> None:
        """Register all jobs (idempotent). Jobs do not fire until start()."""
        if self._initialized:
            return

        sched_config = self.config.scheduler
        tz = self.config.timezone

        if DATA_COLLECTION in self._job_fns:
            self._register_interval(DATA_COLLECTION, sched_config.collect_interval_minutes)
        if DAILY_RESET in self._job_fns:
            self._register_daily(DAILY_RESET, sched_config.daily_reset_time, tz)
        if NOTIFICATION_CHECK in self._job_fns:
            self._register_daily(NOTIFICATION_CHECK, sched_config.notification_check_time, tz)

        self._initialized = True
        logger.info(f"Scheduler initialized with {len(self._entries)} jobs", extra={"jobs": list(self._entries)})

    def _register_interval(self, name: str, minutes: int) -> None:
        if 60 % minutes == 0:
            # Clock-aligned like */N cron: one hourly entry per slot
            entries = [
                self._scheduler.every().hour.at(f":{minute:02d}").do(self._spawn, name)
                for minute in range(0, 60, minutes)
            ]
            self._descriptions[name] = f"every {minutes} minutes (clock-aligned)"
        else:
            entries = [self._scheduler.every(minutes).minutes.do(self._spawn, name)]
            self._descriptions[name] = f"every {minutes} minutes"
        for entry in entries:
            entry.tag(name)
        self._entries[name] = entries

    def _register_daily(self, name: str, at: str, tz: str) -> None:
        entry = self._scheduler.every().day.at(at, tz).do(self._spawn, name)
        entry.tag(name)
        self._entries[name] = [entry]
        self._descriptions[name] = f"daily at {at} ({tz})"

    def start(self) -> None:
        if not self._initialized:
            self.initialize()
        self._running = True
        for name in self._entries:
            logger.info(f"Started scheduled job: {name}")
        logger.info(f"Started {len(self._entries)} scheduled jobs")

    def stop(self) -> None:
        self._running = False
        logger.info(f"Stopped {len(self._entries)} scheduled jobs")

    def restart(self) -> None:
        """Rebuild every job from the current configuration and start."""
        self.stop()
        self._scheduler.clear()
        self._entries.clear()
        self._descriptions.clear()
        self._initialized = False
        self.start()

    def status(self) -> dict[str, dict[str, Any]]:
        """Per-job state: running flag, schedule description, next run and last outcome."""
        result: dict[str, dict[str, Any]] = {}
        for name, entries in self._entries.items():
            next_runs = [entry.next_run for entry in entries if entry.next_run is not None]
            result[name] = {
                "running": self._running,
                "schedule": self._descriptions[name],
                "next_run": min(next_runs).isoformat() if next_runs and self._running else None,
                "last_run": self._last_runs.get(name),
            }
        return result

    def run_pending(self) -> None:
        """Fire due jobs; must be called from inside the event loop."""
        if not self._running:
            return
        self._scheduler.run_pending()

    async def run_forever(self, poll_interval: float | None = None) -> None:
        """Poll for due jobs until cancelled."""
        interval = poll_interval or self.config.scheduler.poll_interval_seconds
        logger.info(f"Scheduler loop started (poll every {interval}s)")
        try:
            while True:
                self.run_pending()
                await asyncio.sleep(interval)
        finally:
            logger.info("Scheduler loop stopped")

    async def run_job(self, name: str) -> Any:
        """
        Run one job now, outside its schedule.

        Failures are logged and recorded in status(); the exception is not
        propagated.
        """
        fn = self._job_fns.get(name)
        if fn is None:
            raise KeyError(f"Unknown job: {name}")

        obs = get_observability()
        obs.set_job(name)
        obs.generate_trace_id()
        started = datetime.now(UTC)
        logger.info(f"Running scheduled job: {name}")

        try:
            result = await fn()
        except Exception as e:
            obs.increment("scheduler.job_failure", tags={"job": name})
            logger.error(f"Scheduled job {name} failed: {e}", exc_info=True)
            self._last_runs[name] = {"started_at": started.isoformat(), "success": False, "error": str(e)}
            return None
        finally:
            obs.set_job(None)

        obs.increment("scheduler.job_success", tags={"job": name})
        self._last_runs[name] = {"started_at": started.isoformat(), "success": True}
        logger.info(f"Scheduled job {name} completed")
        return result

    def _spawn(self, name: str) -> None:
        task = asyncio.get_running_loop().create_task(self.run_job(name), name=f"job:{name}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def shutdown(self) -> None:
        """Stop firing jobs and wait for in-flight runs."""
        self.stop()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._scheduler.clear()
