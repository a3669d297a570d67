"""
Balance Monitor - Snapshot Database

One SQLite file holds usage records, daily aggregates and system logs.
The scheduler's jobs and the MCP tools share it, so connections wait on a
busy lock instead of failing immediately.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from .db_models import Base

logger = logging.getLogger(__name__)

# Seconds a connection waits for a competing writer
BUSY_TIMEOUT = 30


def sqlite_url(path: Path) -> str:
    return f"sqlite+aiosqlite:///{path}"


class MonitorDatabase:
    """Engine, session factory and schema bootstrap for the snapshot store."""

    def __init__(self, db_path: str = "./data/balance_monitor.db"):
        self.db_path = Path(db_path).resolve()
        self.engine = create_async_engine(
            sqlite_url(self.db_path),
            connect_args={"timeout": BUSY_TIMEOUT},
        )
        # Committed records keep their loaded attributes
        self.session_factory = async_sessionmaker(self.engine, expire_on_commit=False)
        self._ready = False
        self._lock = asyncio.Lock()

    @property
    def initialized(self) -> bool:
        return self._ready

    async def initialize(self) -> None:
        """Create the parent directory and missing tables (idempotent)."""
        async with self._lock:
            if self._ready:
                return
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            self._ready = True
        logger.info(f"Snapshot database ready at {self.db_path}", extra={"tables": sorted(Base.metadata.tables)})

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Short-lived session; uncommitted work is rolled back on error.

        Usage:
            async with db.get_session() as session:
                session.add(record)
                await session.commit()
        """
        if not self._ready:
            await self.initialize()

        async with self.session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    async def close(self) -> None:
        await self.engine.dispose()
        self._ready = False
        logger.debug(f"Snapshot database closed: {self.db_path}")
