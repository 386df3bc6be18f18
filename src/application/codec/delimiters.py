"""
application.codec.delimiters - Line splitting for tab/comma text.

The delimiter is chosen per line: tab when the line holds any tab, comma
otherwise. This tolerates files stitched together from different
spreadsheet exports, at the price of mis-splitting a comma inside a
tab-less line. Swap `split_fields` to change that without touching the
row mappers.
"""

from __future__ import annotations

from typing import Iterator

TAB = "\t"
COMMA = ","


def detect_delimiter(line: str) -> str:
    return TAB if TAB in line else COMMA


def split_fields(line: str) -> list[str]:
    return [part.strip() for part in line.split(detect_delimiter(line))]


def iter_data_lines(text: str) -> Iterator[tuple[int, str]]:
    """Yield (line_number, line) for every non-blank line after the header.

    Only line terminators and spaces are trimmed from the ends; tabs stay,
    so a row whose trailing columns are empty keeps its field count.
    """
    for number, line in enumerate(text.split("\n")):
        if number == 0:
            continue
        line = line.strip("\r\n ")
        if not line.strip():
            continue
        yield number, line
