"""
Tab-separated order and menu text: display formats, lenient parsing,
per-row error counting.
"""
from datetime import date

import pytest

from domain.entities import MenuItem, Order
from application.codec.delimiters import detect_delimiter, iter_data_lines, split_fields
from application.codec.formats import (
    canonical_date_or_raw,
    canonical_time_or_raw,
    display_date_or_raw,
    display_time_or_raw,
    format_currency,
    format_display_date,
    parse_currency,
    parse_quantity,
)
from application.codec.menu import MENU_HEADER, export_menu, parse_menu
from application.codec.orders import ORDER_HEADER, export_orders, parse_orders

ALICE = Order(
    id="a", item_name="Chocolate Cake", customer_name="Alice", quantity=1, total=45.0,
    notes="", source="Instagram", timestamp="2026-01-01T00:00:00Z",
    pickup_date="2026-01-16", pickup_time="14:00", status="pending",
)
CHARLIE = Order(
    id="c", item_name="Cupcakes", customer_name="Charlie", quantity=12, total=36.0,
    notes="", source="FB Page", timestamp="2026-01-01T00:00:00Z",
    pickup_date="2026-01-15", pickup_time="16:00", status="completed",
)


# ---------------------------------------------------------------------------
# Formats
# ---------------------------------------------------------------------------

def test_display_date_and_time():
    assert format_display_date(date(2026, 1, 16)) == "Friday, January 16, 2026"
    assert display_date_or_raw("2026-01-16") == "Friday, January 16, 2026"
    assert display_time_or_raw("14:00") == "2:00 PM"
    assert display_time_or_raw("00:05") == "12:05 AM"
    assert display_time_or_raw("12:30") == "12:30 PM"


def test_unparsable_values_pass_through():
    assert display_date_or_raw("next friday") == "next friday"
    assert display_time_or_raw("noon") == "noon"
    assert canonical_date_or_raw("Funday, January 16, 2026") == "Funday, January 16, 2026"
    assert canonical_time_or_raw("25:00") == "25:00"


def test_canonical_from_either_format():
    assert canonical_date_or_raw("Friday, January 16, 2026") == "2026-01-16"
    assert canonical_date_or_raw("2026-01-16") == "2026-01-16"
    assert canonical_time_or_raw("2:00 PM") == "14:00"
    assert canonical_time_or_raw("12:15 am") == "00:15"
    assert canonical_time_or_raw("9:05") == "09:05"


@pytest.mark.parametrize("text,expected", [
    ("$12.50", 12.50),
    ("12.5", 12.5),
    ("abc", 0.0),
    ("", 0.0),
    ("nan", 0.0),
    ("1_000", 0.0),
    ("-3.5", -3.5),
    ("1e3", 0.0),
])
def test_parse_currency(text, expected):
    assert parse_currency(text) == pytest.approx(expected)


def test_parse_quantity_defaults_to_one():
    assert parse_quantity("12") == 12
    assert parse_quantity("a dozen") == 1
    assert parse_quantity("1_000") == 1
    assert parse_quantity("３") == 1
    assert format_currency(36) == "$36.00"


# ---------------------------------------------------------------------------
# Delimiters
# ---------------------------------------------------------------------------

def test_delimiter_chosen_per_line():
    assert detect_delimiter("a\tb,c") == "\t"
    assert detect_delimiter("a,b") == ","
    assert split_fields("Puto, $5.00") == ["Puto", "$5.00"]


def test_iter_data_lines_skips_header_and_blanks_but_keeps_tabs():
    text = "header\r\n\r\nrow one\t\t\r\n   \nrow two\n"
    assert list(iter_data_lines(text)) == [(2, "row one\t\t"), (4, "row two")]


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------

def test_export_orders_earliest_pickup_first_with_display_formats():
    text = export_orders([ALICE, CHARLIE])
    lines = text.split("\n")

    assert lines[0] == ORDER_HEADER
    assert lines[1].split("\t")[5] == "Charlie"
    alice = lines[2].split("\t")
    assert alice[:7] == [
        "Friday, January 16, 2026", "2:00 PM", "Chocolate Cake", "1", "$45.00", "Alice", "Pending",
    ]
    assert alice[8] == "Instagram"
    assert text.endswith("\n")


def test_export_with_no_orders_is_header_only():
    assert export_orders([]) == ORDER_HEADER + "\n"


def test_import_single_display_format_row():
    text = (
        "Date\tTime\tOrder\tQuantity\tCost\tName\tStatus\tNotes\tSource\n"
        "Friday, January 16, 2026\t2:00 PM\tChocolate Cake\t1\t$45.00\tAlice\tPending\t\tInstagram"
    )
    result = parse_orders(text)

    assert result.errors == 0
    [order] = result.orders
    assert order.id is None
    assert (order.pickup_date, order.pickup_time, order.status) == ("2026-01-16", "14:00", "pending")
    assert order.total == pytest.approx(45.0)
    assert order.source == "Instagram"
    assert order.timestamp


def test_seven_fields_is_an_error_eight_is_accepted():
    text = ORDER_HEADER + "\n" + "\n".join([
        "2026-01-16\t14:00\tPuto\t3\t$15\tBea\tPending",
        "2026-01-16\t14:00\tPuto\t3\t$15\tBea\tPending\tno sugar",
    ])
    result = parse_orders(text)

    assert result.errors == 1
    assert result.rejected_lines == [1]
    [order] = result.orders
    assert order.notes == "no sugar"
    assert order.source == ""


def test_comma_rows_and_lenient_values():
    text = "Date,Time,Order\n2026-01-16,3:30 pm,Crinkles,x,abc,Dan,,,Walk-in\n"
    [order] = parse_orders(text).orders

    assert order.pickup_time == "15:30"
    assert order.quantity == 1
    assert order.total == 0.0
    assert order.status == "pending"
    assert order.source == "Walk-in"


def test_unparsable_dates_are_kept_raw():
    text = ORDER_HEADER + "\nsometime\tlater\tPuto\t1\t$5\tEd\tCompleted\t\t"
    [order] = parse_orders(text).orders

    assert order.pickup_date == "sometime"
    assert order.pickup_time == "later"
    assert order.status == "completed"


def test_orders_round_trip_through_text():
    for original in (ALICE, CHARLIE):
        [parsed] = parse_orders(export_orders([original])).orders
        assert parsed.item_name == original.item_name
        assert parsed.customer_name == original.customer_name
        assert parsed.quantity == original.quantity
        assert round(parsed.total, 2) == round(original.total, 2)
        assert parsed.pickup_date == original.pickup_date
        assert parsed.pickup_time == original.pickup_time
        assert parsed.status == original.status
        assert parsed.notes == original.notes
        assert parsed.source == original.source


# ---------------------------------------------------------------------------
# Menu
# ---------------------------------------------------------------------------

def test_export_menu_sorted_by_name():
    text = export_menu([MenuItem(name="Puto", base_price=5), MenuItem(name="Crinkles", base_price=12.5)])
    assert text == f"{MENU_HEADER}\nCrinkles\t$12.50\nPuto\t$5.00\n"


def test_parse_menu_counts_short_rows():
    result = parse_menu("Item Name\tBase Price\nPuto\t$5.00\nLonely\nCrinkles, 12.5\n")

    assert result.errors == 1
    assert [(m.name, m.base_price, m.category) for m in result.items] == [
        ("Puto", 5.0, None), ("Crinkles", 12.5, None),
    ]


def test_unknown_status_rejects_the_row():
    text = ORDER_HEADER + "\n" + "\n".join([
        "2026-01-16\t14:00\tPuto\t3\t$15\tBea\tCancelled\t\t",
        "2026-01-16\t14:00\tPuto\t3\t$15\tBea\t\t\t",
        "2026-01-16\t14:00\tPuto\t3\t$15\tBea\tCOMPLETED\t\t",
    ])
    result = parse_orders(text)

    assert result.errors == 1
    assert result.rejected_lines == [1]
    assert [o.status for o in result.orders] == ["pending", "completed"]
