"""
application.codec.menu - Menu catalog <-> tab-separated text.

Two columns, name and base price. Category is not part of the format, so
imported items never carry one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from domain.entities import MenuItem
from application.codec.delimiters import iter_data_lines, split_fields
from application.codec.formats import format_currency, parse_currency

logger = logging.getLogger(__name__)

MENU_COLUMNS = ("Item Name", "Base Price")
MENU_HEADER = "\t".join(MENU_COLUMNS)
MIN_MENU_FIELDS = 2


@dataclass
class MenuParseResult:
    items: list[MenuItem] = field(default_factory=list)
    errors: int = 0
    rejected_lines: list[int] = field(default_factory=list)


def export_menu(items: Iterable[MenuItem]) -> str:
    rows = sorted(items, key=lambda item: item.name)
    logger.info("Exporting %d menu items", len(rows))
    lines = [MENU_HEADER] + [
        f"{item.name}\t{format_currency(item.base_price)}" for item in rows
    ]
    return "".join(line + "\n" for line in lines)


def parse_menu_fields(fields: list[str]) -> MenuItem:
    if len(fields) < MIN_MENU_FIELDS:
        raise ValueError(f"expected 2 fields, got {len(fields)}")
    return MenuItem(name=fields[0], base_price=parse_currency(fields[1]))


def parse_menu(text: str) -> MenuParseResult:
    result = MenuParseResult()
    for number, line in iter_data_lines(text):
        try:
            result.items.append(parse_menu_fields(split_fields(line)))
        except ValueError as exc:
            logger.warning("Skipping invalid menu row %d: %s", number, exc)
            result.errors += 1
            result.rejected_lines.append(number)
    return result
