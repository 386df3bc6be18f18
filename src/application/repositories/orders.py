"""
application.repositories.orders - The signed-in user's order collection.

Snapshots are sorted by pickup date, then pickup time. Both fields are
fixed-width canonical strings, so plain string comparison orders them.
"""

from __future__ import annotations

import asyncio
import logging

from domain.entities import Order
from domain.exceptions import InvalidStatusError
from domain.models import OrderStatus, RawDocument
from application.repositories.synced import SyncedRepository

logger = logging.getLogger(__name__)


class OrderRepository(SyncedRepository[Order]):
    """Optimistic order collection reconciled against the store's feed."""

    collection_name = "orders"

    def _decode(self, doc: RawDocument) -> Order:
        return Order.from_document(doc.id, doc.data)

    def _sort(self, items: list[Order]) -> list[Order]:
        return sorted(items, key=lambda order: order.sort_key)

    def update_status(self, order_id: str, status: str | OrderStatus) -> asyncio.Task:
        """Flip an order between pending and completed.

        The local copy is patched if present; the remote partial update is
        sent either way.
        """
        try:
            new_status = OrderStatus(status).value
        except ValueError as exc:
            raise InvalidStatusError(
                f"Unknown order status {status!r}; expected pending or completed."
            ) from exc

        logger.debug("Updating status to %s for %s", new_status, order_id)
        return self._update_fields(
            order_id, {"status": new_status}, {"status": new_status},
        )
