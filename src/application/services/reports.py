"""
application.services.reports - Sales report, bake summary, dashboard filters.

Pure aggregations over the repositories' current collections. Item names
are the join key between orders and the menu; an order whose item is not
on the menu still counts, classified by name alone.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import date
from typing import Iterable, Optional

from domain.catalog import CategoryClassifier, default_classifier, resolve_category
from domain.entities import MenuItem, Order
from domain.models import ItemCount, MenuCategory, OrderStatus, OrderView, SalesReport
from application.repositories.menu import MenuRepository
from application.repositories.orders import OrderRepository

logger = logging.getLogger(__name__)


def _ranked(counts: dict[str, int]) -> tuple[ItemCount, ...]:
    ordered = sorted(counts.items(), key=lambda pair: (-pair[1], pair[0]))
    return tuple(ItemCount(name, quantity) for name, quantity in ordered)


def build_sales_report(
    orders: Iterable[Order],
    menu: Iterable[MenuItem],
    classifier: CategoryClassifier = default_classifier,
) -> SalesReport:
    """Revenue is completed totals; pipeline is pending totals."""
    orders = list(orders)
    by_name: dict[str, MenuItem] = {}
    for item in menu:
        by_name.setdefault(item.name, item)

    revenue = sum(o.total for o in orders if o.status == OrderStatus.COMPLETED.value)
    pipeline = sum(o.total for o in orders if o.status == OrderStatus.PENDING.value)
    average = (revenue + pipeline) / len(orders) if orders else 0.0

    quantities: Counter[str] = Counter()
    for order in orders:
        quantities[order.item_name] += order.quantity

    grouped: dict[MenuCategory, dict[str, int]] = {category: {} for category in MenuCategory}
    for name, quantity in quantities.items():
        category = resolve_category(name, by_name.get(name), classifier)
        grouped[category][name] = quantity

    sources = Counter(order.source for order in orders)

    return SalesReport(
        revenue=revenue,
        pipeline=pipeline,
        total_orders=len(orders),
        average_order_value=average,
        cakes=_ranked(grouped[MenuCategory.CAKE]),
        desserts=_ranked(grouped[MenuCategory.DESSERT]),
        other=_ranked(grouped[MenuCategory.OTHER]),
        sources=_ranked(dict(sources)),
    )


def build_daily_summary(orders: Iterable[Order], pickup_date: str) -> list[ItemCount]:
    """Total quantity per item to bake for one pickup date, by item name."""
    totals: Counter[str] = Counter()
    for order in orders:
        if order.pickup_date == pickup_date:
            totals[order.item_name] += order.quantity
    return [ItemCount(name, totals[name]) for name in sorted(totals)]


def filter_orders(
    orders: Iterable[Order], view: OrderView, today: Optional[date] = None,
) -> list[Order]:
    ordered = sorted(orders, key=lambda order: order.sort_key)
    if view is OrderView.TODAY:
        today_str = (today or date.today()).strftime("%Y-%m-%d")
        return [o for o in ordered if o.pickup_date == today_str and o.is_pending]
    if view is OrderView.PENDING:
        return [o for o in ordered if o.is_pending]
    if view is OrderView.COMPLETED:
        return [o for o in ordered if o.status == OrderStatus.COMPLETED.value]
    return ordered


class ReportService:
    """Report views over the live repositories."""

    def __init__(self, orders: OrderRepository, menu: MenuRepository):
        self._orders = orders
        self._menu = menu

    def sales_report(self) -> SalesReport:
        report = build_sales_report(self._orders.items, self._menu.items, self._menu.classifier)
        logger.debug("Sales report over %d orders", report.total_orders)
        return report

    def daily_summary(self, pickup_date: date) -> list[ItemCount]:
        return build_daily_summary(self._orders.items, pickup_date.strftime("%Y-%m-%d"))

    def orders_for(self, view: OrderView, today: Optional[date] = None) -> list[Order]:
        return filter_orders(self._orders.items, view, today)
