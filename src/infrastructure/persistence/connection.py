"""
infrastructure.persistence.connection - Async SQLite connection manager.

Each unit of work opens its own short-lived aiosqlite connection. Snapshot
re-queries run as loop tasks alongside writes, so several connections can
be open on one file at once; a busy timeout lets them wait for the write
lock instead of failing.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

logger = logging.getLogger(__name__)

IN_MEMORY = ":memory:"


class AsyncSQLiteConnection:
    """Opens aiosqlite connections on one database file."""

    def __init__(self, db_path: str, busy_timeout: float = 5.0):
        self._db_path = db_path
        self._busy_timeout = busy_timeout

    @property
    def db_path(self) -> str:
        return self._db_path

    async def _open(self) -> aiosqlite.Connection:
        if self._db_path != IN_MEMORY:
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = await aiosqlite.connect(self._db_path, timeout=self._busy_timeout)
        conn.row_factory = aiosqlite.Row
        return conn

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[aiosqlite.Connection]:
        """Connection for writes: committed on success, rolled back on error."""
        conn = await self._open()
        try:
            yield conn
            await conn.commit()
        except Exception:
            await conn.rollback()
            logger.warning("Transaction on %s rolled back", self._db_path, exc_info=True)
            raise
        finally:
            await conn.close()

    @asynccontextmanager
    async def read(self) -> AsyncIterator[aiosqlite.Connection]:
        """Connection for queries only; nothing is committed."""
        conn = await self._open()
        try:
            yield conn
        finally:
            await conn.close()
