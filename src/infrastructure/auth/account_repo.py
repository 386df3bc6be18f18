"""
infrastructure.auth.account_repo - SQLite account records for local sign-in.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from infrastructure.persistence.connection import AsyncSQLiteConnection

logger = logging.getLogger(__name__)


@dataclass
class Account:
    """Credentials row. password_hash is None for federated-only accounts."""
    uid: str
    email: str
    password_hash: Optional[str] = None
    display_name: str = ""
    provider: str = "password"
    email_verified: bool = False
    failed_attempts: int = 0


class SQLiteAccountRepository:
    """Async SQLite storage for Account rows, keyed by uid, unique by email."""

    def __init__(self, connection: AsyncSQLiteConnection):
        self._conn = connection

    async def save(self, account: Account) -> None:
        now = datetime.now().isoformat()
        async with self._conn.acquire() as conn:
            await conn.execute(
                """INSERT INTO accounts
                   (uid, email, password_hash, display_name, provider,
                    email_verified, failed_attempts, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (account.uid, account.email.lower(), account.password_hash,
                 account.display_name, account.provider,
                 int(account.email_verified), account.failed_attempts, now, now),
            )

    async def get_by_email(self, email: str) -> Optional[Account]:
        async with self._conn.read() as conn:
            rows = await conn.execute_fetchall(
                "SELECT * FROM accounts WHERE email = ?", (email.lower(),),
            )
            return self._row_to_account(rows[0]) if rows else None

    async def get_by_uid(self, uid: str) -> Optional[Account]:
        async with self._conn.read() as conn:
            rows = await conn.execute_fetchall(
                "SELECT * FROM accounts WHERE uid = ?", (uid,),
            )
            return self._row_to_account(rows[0]) if rows else None

    async def record_failure(self, uid: str) -> int:
        async with self._conn.acquire() as conn:
            await conn.execute(
                """UPDATE accounts SET failed_attempts = failed_attempts + 1,
                   updated_at = ? WHERE uid = ?""",
                (datetime.now().isoformat(), uid),
            )
            rows = await conn.execute_fetchall(
                "SELECT failed_attempts FROM accounts WHERE uid = ?", (uid,),
            )
        return rows[0][0] if rows else 0

    async def reset_failures(self, uid: str) -> None:
        await self._set(uid, "failed_attempts", 0)

    async def set_password_hash(self, uid: str, password_hash: str) -> None:
        await self._set(uid, "password_hash", password_hash)

    async def mark_verified(self, uid: str) -> None:
        await self._set(uid, "email_verified", 1)

    async def _set(self, uid: str, column: str, value: object) -> None:
        allowed = {"failed_attempts", "password_hash", "email_verified"}
        if column not in allowed:
            raise ValueError(f"Invalid column '{column}'. Allowed: {allowed}")
        async with self._conn.acquire() as conn:
            await conn.execute(
                f"UPDATE accounts SET {column} = ?, updated_at = ? WHERE uid = ?",
                (value, datetime.now().isoformat(), uid),
            )

    @staticmethod
    def _row_to_account(row) -> Account:
        return Account(
            uid=row["uid"],
            email=row["email"],
            password_hash=row["password_hash"],
            display_name=row["display_name"] or "",
            provider=row["provider"] or "password",
            email_verified=bool(row["email_verified"]),
            failed_attempts=row["failed_attempts"] or 0,
        )
