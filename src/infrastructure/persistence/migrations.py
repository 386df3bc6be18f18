"""
infrastructure.persistence.migrations - Database schema creation.

Two tables: `documents` backs the collection gateway (one row per
document, JSON body), `accounts` backs the local auth provider. Called
once at startup by the factory.
"""

from __future__ import annotations

import logging

from infrastructure.persistence.connection import AsyncSQLiteConnection

logger = logging.getLogger(__name__)

_TABLES = [
    """CREATE TABLE IF NOT EXISTS documents (
        path TEXT NOT NULL,
        doc_id TEXT NOT NULL,
        body TEXT NOT NULL,
        created_at TEXT,
        updated_at TEXT,
        PRIMARY KEY (path, doc_id)
    )""",
    """CREATE TABLE IF NOT EXISTS accounts (
        uid TEXT PRIMARY KEY,
        email TEXT UNIQUE NOT NULL,
        password_hash TEXT,
        display_name TEXT,
        provider TEXT NOT NULL DEFAULT 'password',
        email_verified INTEGER NOT NULL DEFAULT 0,
        failed_attempts INTEGER NOT NULL DEFAULT 0,
        created_at TEXT,
        updated_at TEXT
    )""",
    """CREATE INDEX IF NOT EXISTS idx_documents_path_created
        ON documents(path, created_at)""",
]


async def run_migrations(connection: AsyncSQLiteConnection) -> None:
    """Create all tables if they don't exist.

    Safe to call multiple times (uses IF NOT EXISTS).
    """
    async with connection.acquire() as conn:
        for ddl in _TABLES:
            await conn.execute(ddl)
    logger.info("All tables created (or already exist).")
