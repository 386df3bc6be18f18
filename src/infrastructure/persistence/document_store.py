"""
infrastructure.persistence.document_store - SQLite collection gateway.

Implements the CollectionGateway port on a single `documents` table. Every
committed write re-queries the affected collection and pushes the full
listing to that path's subscribers. Deliveries for one path are
serialised by a lock so subscribers see snapshots in commit order.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from domain.exceptions import DocumentNotFoundError, RepositoryError
from domain.models import CollectionPath, RawDocument
from domain.ports import SnapshotListener
from infrastructure.persistence.connection import AsyncSQLiteConnection

logger = logging.getLogger(__name__)


class _Registration:
    """Listener handle returned by subscribe()."""

    def __init__(self, store: SQLiteDocumentStore, path: str, listener: SnapshotListener):
        self._store = store
        self.path = path
        self.listener = listener
        self.active = True

    def remove(self) -> None:
        if self.active:
            self.active = False
            self._store._detach(self)


class SQLiteDocumentStore:
    """Async SQLite implementation of CollectionGateway."""

    def __init__(self, connection: AsyncSQLiteConnection):
        self._conn = connection
        self._registrations: dict[str, list[_Registration]] = defaultdict(list)
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._deliveries: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, path: CollectionPath, listener: SnapshotListener) -> _Registration:
        registration = _Registration(self, path.value, listener)
        self._registrations[path.value].append(registration)
        self._schedule(path.value, [registration])
        return registration

    def _detach(self, registration: _Registration) -> None:
        listeners = self._registrations.get(registration.path, [])
        if registration in listeners:
            listeners.remove(registration)

    def _notify(self, path: str) -> None:
        registrations = [r for r in self._registrations.get(path, []) if r.active]
        if registrations:
            self._schedule(path, registrations)

    def _schedule(self, path: str, registrations: list[_Registration]) -> None:
        task = asyncio.get_running_loop().create_task(self._deliver(path, registrations))
        self._deliveries.add(task)
        task.add_done_callback(self._deliveries.discard)

    async def _deliver(self, path: str, registrations: list[_Registration]) -> None:
        async with self._locks[path]:
            docs: Optional[list[RawDocument]] = None
            error: Optional[BaseException] = None
            try:
                docs = await self.list_documents(CollectionPath(path))
            except RepositoryError as exc:
                logger.warning("Snapshot query failed for %s: %s", path, exc)
                error = exc
            for registration in registrations:
                # remove() may have run while the query was in flight.
                if registration.active:
                    registration.listener(docs, error)

    async def drain(self) -> None:
        """Wait until all scheduled snapshot deliveries have run."""
        while self._deliveries:
            await asyncio.gather(*list(self._deliveries), return_exceptions=True)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_documents(self, path: CollectionPath) -> list[RawDocument]:
        try:
            async with self._conn.read() as conn:
                rows = await conn.execute_fetchall(
                    """SELECT doc_id, body FROM documents
                       WHERE path = ? ORDER BY created_at, rowid""",
                    (path.value,),
                )
        except sqlite3.Error as exc:
            raise RepositoryError(f"Listing {path} failed: {exc}") from exc
        return [self._row_to_document(row) for row in rows]

    async def get_document(self, path: CollectionPath, doc_id: str) -> Optional[RawDocument]:
        try:
            async with self._conn.read() as conn:
                rows = await conn.execute_fetchall(
                    "SELECT doc_id, body FROM documents WHERE path = ? AND doc_id = ?",
                    (path.value, doc_id),
                )
        except sqlite3.Error as exc:
            raise RepositoryError(f"Reading {path}/{doc_id} failed: {exc}") from exc
        return self._row_to_document(rows[0]) if rows else None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(self, path: CollectionPath, data: dict[str, Any]) -> str:
        doc_id = uuid4().hex
        now = _now()
        await self._write(
            path,
            """INSERT INTO documents (path, doc_id, body, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?)""",
            (path.value, doc_id, json.dumps(data), now, now),
        )
        logger.debug("Created %s/%s", path, doc_id)
        return doc_id

    async def set_document(self, path: CollectionPath, doc_id: str, data: dict[str, Any]) -> None:
        now = _now()
        await self._write(
            path,
            """INSERT INTO documents (path, doc_id, body, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?)
               ON CONFLICT(path, doc_id)
               DO UPDATE SET body = excluded.body, updated_at = excluded.updated_at""",
            (path.value, doc_id, json.dumps(data), now, now),
        )

    async def update_fields(self, path: CollectionPath, doc_id: str, fields: dict[str, Any]) -> None:
        try:
            async with self._conn.acquire() as conn:
                rows = await conn.execute_fetchall(
                    "SELECT body FROM documents WHERE path = ? AND doc_id = ?",
                    (path.value, doc_id),
                )
                if not rows:
                    raise DocumentNotFoundError(f"No document {path}/{doc_id}")
                body = _load_body(rows[0]["body"], doc_id)
                body.update(fields)
                await conn.execute(
                    "UPDATE documents SET body = ?, updated_at = ? WHERE path = ? AND doc_id = ?",
                    (json.dumps(body), _now(), path.value, doc_id),
                )
        except sqlite3.Error as exc:
            raise RepositoryError(f"Updating {path}/{doc_id} failed: {exc}") from exc
        self._notify(path.value)

    async def delete(self, path: CollectionPath, doc_id: str) -> None:
        """Delete a document. A missing document is silently accepted."""
        deleted = await self._write(
            path,
            "DELETE FROM documents WHERE path = ? AND doc_id = ?",
            (path.value, doc_id),
        )
        if not deleted:
            logger.debug("Delete of missing document %s/%s ignored", path, doc_id)

    async def _write(self, path: CollectionPath, sql: str, params: tuple) -> int:
        try:
            async with self._conn.acquire() as conn:
                cursor = await conn.execute(sql, params)
                changed = cursor.rowcount
        except sqlite3.Error as exc:
            raise RepositoryError(f"Write to {path} failed: {exc}") from exc
        if changed:
            self._notify(path.value)
        return changed

    @staticmethod
    def _row_to_document(row) -> RawDocument:
        return RawDocument(id=row["doc_id"], data=_load_body(row["body"], row["doc_id"]))


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _load_body(raw: str, doc_id: str) -> dict[str, Any]:
    try:
        body = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Document %s has a corrupt body", doc_id)
        return {}
    return body if isinstance(body, dict) else {}
