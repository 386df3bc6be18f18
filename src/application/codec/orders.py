"""
application.codec.orders - Order collection <-> tab-separated text.

Position-based, nine columns, no version marker. Export always writes tabs;
import accepts tab or comma rows and rejects rows with fewer than eight
fields. Parsing never raises for a bad row: the row is counted instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from domain.entities import Order
from domain.models import OrderStatus
from application.codec.delimiters import iter_data_lines, split_fields
from application.codec.formats import (
    canonical_date_or_raw,
    canonical_time_or_raw,
    display_date_or_raw,
    display_time_or_raw,
    format_currency,
    parse_currency,
    parse_quantity,
)

logger = logging.getLogger(__name__)

ORDER_COLUMNS = (
    "Date", "Time", "Order", "Quantity", "Cost", "Name", "Status", "Notes", "Source",
)
ORDER_HEADER = "\t".join(ORDER_COLUMNS)
MIN_ORDER_FIELDS = 8


@dataclass
class OrderParseResult:
    orders: list[Order] = field(default_factory=list)
    errors: int = 0
    rejected_lines: list[int] = field(default_factory=list)


def format_order_row(order: Order) -> str:
    return "\t".join([
        display_date_or_raw(order.pickup_date),
        display_time_or_raw(order.pickup_time),
        order.item_name,
        str(order.quantity),
        format_currency(order.total),
        order.customer_name,
        order.status.capitalize(),
        order.notes,
        order.source,
    ])


def export_orders(orders: Iterable[Order]) -> str:
    """Header plus one row per order, earliest pickup date first."""
    rows = sorted(orders, key=lambda order: order.pickup_date)
    logger.info("Exporting %d orders", len(rows))
    return "".join(line + "\n" for line in [ORDER_HEADER, *map(format_order_row, rows)])


def parse_order_fields(fields: list[str]) -> Order:
    """Map one split row to a new, unpersisted order.

    Raises ValueError when the row is too short to be an order or its
    status is neither pending nor completed. A blank status is pending.
    """
    if len(fields) < MIN_ORDER_FIELDS:
        raise ValueError(
            f"expected {len(ORDER_COLUMNS)} fields, got {len(fields)}"
        )

    def _at(index: int, default: str) -> str:
        return fields[index] if len(fields) > index else default

    try:
        status = OrderStatus(fields[6].lower() or OrderStatus.PENDING.value).value
    except ValueError as exc:
        raise ValueError(f"unknown status {fields[6]!r}") from exc

    return Order.create(
        pickup_date=canonical_date_or_raw(fields[0]),
        pickup_time=canonical_time_or_raw(_at(1, "")),
        item_name=_at(2, "Unknown"),
        quantity=parse_quantity(_at(3, "1")),
        total=parse_currency(_at(4, "0")),
        customer_name=_at(5, "Unknown"),
        status=status,
        notes=_at(7, ""),
        source=_at(8, ""),
    )


def parse_orders(text: str) -> OrderParseResult:
    """Parse every data line of `text`; the first line is the header."""
    result = OrderParseResult()
    for number, line in iter_data_lines(text):
        try:
            result.orders.append(parse_order_fields(split_fields(line)))
        except ValueError as exc:
            logger.warning("Skipping invalid order row %d: %s", number, exc)
            result.errors += 1
            result.rejected_lines.append(number)
    return result
