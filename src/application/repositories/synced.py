"""
application.repositories.synced - Optimistic local collection over a live feed.

A SyncedRepository owns the in-memory list of one user's documents in one
collection. Mutations apply locally first and write through the gateway
as background tasks; the gateway's snapshot stream is the authority and
reconciles whatever the optimistic writes got wrong.

Everything here runs on a single asyncio loop: mutation methods are plain
(synchronous) methods, snapshot listeners are called on the loop, and write
completions arrive through task done-callbacks. No locks are needed as
long as callers stay on that loop.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Generic, Optional, Sequence, TypeVar

from domain.exceptions import MissingIdentifierError, NotSubscribedError, RecordDecodeError
from domain.models import (
    ChangeReason,
    CollectionChange,
    CollectionPath,
    RawDocument,
    SyncPolicy,
)
from domain.ports import CollectionGateway, ListenerRegistration

logger = logging.getLogger(__name__)

T = TypeVar("T")

ChangeListener = Callable[[CollectionChange], None]

# Snapshots an acknowledged write may be missing from before it is dropped.
# Snapshots queried before the commit can arrive after the acknowledgement.
STALE_SNAPSHOT_LIMIT = 3


@dataclass
class _PendingWrite:
    """An optimistic mutation not yet seen in a snapshot."""
    token: int
    description: str
    apply: Callable[[list], list]
    reflected: Callable[[list], bool]
    acked: bool = False
    stale_snapshots: int = 0


class SyncedRepository(Generic[T]):
    """Base for the order and menu repositories.

    Subclasses set `collection_name` and implement `_decode`. Items must
    expose an `id` attribute (None until persisted).
    """

    collection_name: str = ""

    def __init__(
        self,
        gateway: CollectionGateway,
        policy: SyncPolicy = SyncPolicy.REPLACE,
    ):
        self._gateway = gateway
        self._policy = policy
        self._items: list[T] = []
        self._user_id: Optional[str] = None
        self._path: Optional[CollectionPath] = None
        self._registration: Optional[ListenerRegistration] = None
        # Bumped on every (un)subscribe so late snapshots can be recognised.
        self._generation = 0
        self._listeners: list[ChangeListener] = []
        self._pending: dict[int, _PendingWrite] = {}
        self._tokens = itertools.count(1)
        self._tasks: set[asyncio.Task] = set()
        self.decode_failures = 0
        self.last_decode_failures = 0

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def items(self) -> tuple[T, ...]:
        return tuple(self._items)

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    @property
    def is_subscribed(self) -> bool:
        return self._registration is not None

    @property
    def policy(self) -> SyncPolicy:
        return self._policy

    @property
    def pending_writes(self) -> int:
        return len(self._pending)

    def get(self, item_id: str) -> Optional[T]:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    def add_listener(self, listener: ChangeListener) -> Callable[[], None]:
        """Register for CollectionChange events. Returns a remover."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    # ------------------------------------------------------------------
    # Subscription lifecycle
    # ------------------------------------------------------------------

    def subscribe(self, user_id: str) -> None:
        """Open the live feed for `user_id`, replacing any prior one."""
        self._cancel_registration()
        self._user_id = user_id
        self._path = CollectionPath.for_user(user_id, self.collection_name)
        self._generation += 1
        generation = self._generation
        logger.info("Subscribing to %s", self._path)
        self._registration = self._gateway.subscribe(
            self._path,
            lambda docs, error: self._on_snapshot(generation, docs, error),
        )

    def unsubscribe(self) -> None:
        """Cancel the live feed. The local collection is left as is."""
        if self._registration is not None:
            logger.info("Unsubscribing from %s", self._path)
        self._cancel_registration()

    def refresh(self) -> None:
        """Re-open the feed for the current user to force a fresh snapshot."""
        if self._user_id is None:
            raise NotSubscribedError(
                f"No user is subscribed to {self.collection_name}."
            )
        self.subscribe(self._user_id)

    def clear(self) -> None:
        """Drop local state and forget the user (session teardown)."""
        self._cancel_registration()
        self._items = []
        self._pending.clear()
        self._user_id = None
        self._path = None
        self._notify(ChangeReason.CLEARED)

    async def wait_for_writes(self) -> None:
        """Wait until every in-flight gateway write has completed."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _cancel_registration(self) -> None:
        if self._registration is not None:
            self._registration.remove()
            self._registration = None
        self._generation += 1

    # ------------------------------------------------------------------
    # Snapshot handling
    # ------------------------------------------------------------------

    def _decode(self, doc: RawDocument) -> T:
        raise NotImplementedError

    def _sort(self, items: list[T]) -> list[T]:
        return items

    def _on_snapshot(
        self,
        generation: int,
        docs: Optional[Sequence[RawDocument]],
        error: Optional[BaseException],
    ) -> None:
        if generation != self._generation:
            logger.debug("Ignoring snapshot for a cancelled %s feed", self.collection_name)
            return
        if error is not None or docs is None:
            logger.warning("Snapshot error on %s: %s", self._path, error)
            return

        decoded: list[T] = []
        failures = 0
        for doc in docs:
            try:
                decoded.append(self._decode(doc))
            except RecordDecodeError as exc:
                failures += 1
                logger.warning(
                    "Dropping undecodable %s record %s: %s",
                    self.collection_name, doc.id, exc,
                )
        self.decode_failures += failures
        self.last_decode_failures = failures

        items = self._sort(decoded)
        if self._policy is SyncPolicy.PRESERVE_PENDING and self._pending:
            items = self._sort(self._reapply_pending(items))

        logger.debug(
            "Real-time update: %d %s synced (%d dropped)",
            len(items), self.collection_name, failures,
        )
        self._items = items
        self._notify(ChangeReason.SNAPSHOT, failures)

    def _reapply_pending(self, items: list[T]) -> list[T]:
        for token in list(self._pending):
            pending = self._pending[token]
            if pending.acked:
                if pending.reflected(items):
                    del self._pending[token]
                    continue
                pending.stale_snapshots += 1
                if pending.stale_snapshots > STALE_SNAPSHOT_LIMIT:
                    logger.info(
                        "Giving up on %s: %d snapshots never reflected it",
                        pending.description, STALE_SNAPSHOT_LIMIT,
                    )
                    del self._pending[token]
                    continue
            items = pending.apply(items)
        return items

    # ------------------------------------------------------------------
    # Optimistic mutations
    # ------------------------------------------------------------------

    def _require_path(self) -> CollectionPath:
        if self._path is None:
            raise NotSubscribedError(
                f"Cannot modify {self.collection_name}: no signed-in user."
            )
        # Writes are scheduled as tasks; fail before touching local state.
        asyncio.get_running_loop()
        return self._path

    @staticmethod
    def _require_id(item: Any) -> str:
        if item.id is None:
            raise MissingIdentifierError(
                f"{type(item).__name__} has no identifier; add it first."
            )
        return item.id

    def add(self, item: T) -> asyncio.Task:
        """Append `item` locally and create it remotely.

        Returns the background write task; its result is the new id.
        """
        if item.id is not None:
            raise ValueError("add() takes an unpersisted item (id must be None)")
        path = self._require_path()
        body = item.to_document()

        def _created(items: list[T]) -> bool:
            return any(
                existing.id is not None and replace(existing, id=None) == item
                for existing in items
            )

        def _readd(items: list[T]) -> list[T]:
            return items if _created(items) else items + [item]

        self._apply_local(lambda items: items + [item], f"add {self.collection_name}")
        return self._submit(
            f"create in {path}", self._gateway.create(path, body), _readd, _created,
        )

    def update(self, item: T) -> asyncio.Task:
        """Replace the local entry with the same id and overwrite remotely."""
        item_id = self._require_id(item)
        path = self._require_path()

        def _replace(items: list[T]) -> list[T]:
            return [item if existing.id == item_id else existing for existing in items]

        self._apply_local(_replace, f"update {item_id}")
        return self._submit(
            f"overwrite {path}/{item_id}",
            self._gateway.set_document(path, item_id, item.to_document()),
            _replace,
            lambda items: item in items,
        )

    def delete(self, item_id: str) -> asyncio.Task:
        """Remove locally (no-op if absent) and always delete remotely."""
        path = self._require_path()

        def _remove(items: list[T]) -> list[T]:
            return [existing for existing in items if existing.id != item_id]

        self._apply_local(_remove, f"delete {item_id}")
        return self._submit(
            f"delete {path}/{item_id}",
            self._gateway.delete(path, item_id),
            _remove,
            lambda items: all(existing.id != item_id for existing in items),
        )

    def _update_fields(
        self, item_id: str, fields: dict[str, Any], local_fields: dict[str, Any],
    ) -> asyncio.Task:
        path = self._require_path()

        def _patch(items: list[T]) -> list[T]:
            return [
                replace(existing, **local_fields) if existing.id == item_id else existing
                for existing in items
            ]

        def _patched(items: list[T]) -> bool:
            return all(
                existing.id != item_id
                or all(getattr(existing, key) == value for key, value in local_fields.items())
                for existing in items
            )

        self._apply_local(_patch, f"patch {item_id}")
        return self._submit(
            f"update fields on {path}/{item_id}",
            self._gateway.update_fields(path, item_id, fields),
            _patch,
            _patched,
        )

    def _apply_local(self, change: Callable[[list[T]], list[T]], description: str) -> None:
        before = self._items
        self._items = change(list(self._items))
        logger.debug("Optimistic %s (%d -> %d items)", description, len(before), len(self._items))
        self._notify(ChangeReason.LOCAL)

    def _submit(
        self,
        description: str,
        write: Awaitable[Any],
        reapply: Callable[[list], list],
        reflected: Callable[[list], bool],
    ) -> asyncio.Task:
        pending: Optional[_PendingWrite] = None
        if self._policy is SyncPolicy.PRESERVE_PENDING:
            pending = _PendingWrite(next(self._tokens), description, reapply, reflected)
            self._pending[pending.token] = pending

        task = asyncio.get_running_loop().create_task(write)
        self._tasks.add(task)
        task.add_done_callback(
            lambda done: self._on_write_done(description, pending, done)
        )
        return task

    def _on_write_done(
        self,
        description: str,
        pending: Optional[_PendingWrite],
        task: asyncio.Task,
    ) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            if pending is not None:
                self._pending.pop(pending.token, None)
            return
        exc = task.exception()
        if exc is None:
            if pending is not None:
                pending.acked = True
            logger.debug("Write acknowledged: %s", description)
            return

        logger.warning("Write failed (%s): %s; resynchronising", description, exc, exc_info=exc)
        if pending is not None:
            self._pending.pop(pending.token, None)
        if self._user_id is not None and self._registration is not None:
            self.subscribe(self._user_id)

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def _notify(self, reason: ChangeReason, decode_failures: int = 0) -> None:
        change = CollectionChange(
            items=tuple(self._items), reason=reason, decode_failures=decode_failures,
        )
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                logger.exception("%s listener raised", self.collection_name)
