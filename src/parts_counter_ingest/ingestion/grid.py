"""Worksheet grid extraction.

Reads the first worksheet of an .xlsx workbook into a rectangular list of
rows, each cell rendered as the text the sheet displays for it (its value
passed through the cell's number format). Row 1 of the sheet is
``grid[0]``. Every row is padded to the sheet's used width so callers can
index positional columns without length checks.

Only the parts of Excel's format language that matter for counter logs are
rendered: date/time codes, fixed decimals, thousands grouping, percent and
quoted literals. Colours, conditions and fill characters are ignored.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Any, Union
from zipfile import BadZipFile

from openpyxl import load_workbook
from openpyxl.styles.numbers import FORMAT_GENERAL, is_date_format
from openpyxl.utils.exceptions import InvalidFileException

from parts_counter_ingest.errors import GridReadError
from parts_counter_ingest.ingestion.routing import MONTH_NAMES

logger = logging.getLogger(__name__)

Grid = list[list[str]]

# Number format the counters give their timestamp cells
COUNTER_DATETIME_FORMAT = "ddmmyyyy hh:mm:ss"
# Used for date values whose cell carries no date format
FALLBACK_DATETIME_FORMAT = "yyyy-mm-dd h:mm:ss"
# Excel's day zero, for time-only values
EXCEL_EPOCH = date(1899, 12, 30)

DAY_NAMES = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)

_DATE_TOKEN = re.compile(
    r'"[^"]*"|\\.|\[[^\]]*\]|am/pm|a/p|y+|m+|d+|h+|s+|\.0+|.',
    re.IGNORECASE,
)
_NUMBER_TOKEN = re.compile(
    r'"([^"]*)"|\\(.)|\[[^\]]*\]|[_*].|([0#?.,]*[0#?][0#?.,]*)|(.)'
)


def cell_text(value: Any, number_format: str = FORMAT_GENERAL) -> str:
    """Render a cell value the way the sheet displays it under ``number_format``."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (datetime, date, time)):
        return format_datetime(_as_datetime(value), number_format)
    if isinstance(value, (int, float)):
        return format_number(value, number_format)
    return str(value)


def _as_datetime(value: Union[datetime, date, time]) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time())
    return datetime.combine(EXCEL_EPOCH, value)


def _date_code(token: str) -> str:
    first = token[:1].lower()
    return first if first in "ymdhs" else ""


def _is_minute(codes: list[str], index: int) -> bool:
    """An ``m``/``mm`` right after hours or right before seconds means minutes."""
    before = [c for c in codes[:index] if c]
    after = [c for c in codes[index + 1 :] if c]
    return bool(before and before[-1] == "h") or bool(after and after[0] == "s")


def format_datetime(value: datetime, number_format: str) -> str:
    """Render ``value`` with an Excel date/time format such as ``dd/mm/yyyy``."""
    if not is_date_format(number_format):
        number_format = FALLBACK_DATETIME_FORMAT
    tokens = _DATE_TOKEN.findall(number_format.split(";")[0])
    codes = [_date_code(t) for t in tokens]
    twelve_hour = any(t.lower() in ("am/pm", "a/p") for t in tokens)

    parts = []
    for index, token in enumerate(tokens):
        key = token.lower()
        code = codes[index]
        if token.startswith('"'):
            parts.append(token[1:-1])
        elif token.startswith("\\"):
            parts.append(token[1:])
        elif token.startswith("["):
            continue
        elif key == "am/pm":
            parts.append("PM" if value.hour >= 12 else "AM")
        elif key == "a/p":
            parts.append("P" if value.hour >= 12 else "A")
        elif code == "y":
            year = value.year if len(key) > 2 else value.year % 100
            parts.append(f"{year:0{4 if len(key) > 2 else 2}d}")
        elif code == "m" and len(key) <= 2 and _is_minute(codes, index):
            parts.append(f"{value.minute:0{len(key)}d}")
        elif code == "m":
            name = MONTH_NAMES[value.month - 1]
            if len(key) <= 2:
                parts.append(f"{value.month:0{len(key)}d}")
            elif len(key) == 3:
                parts.append(name[:3])
            elif len(key) == 4:
                parts.append(name)
            else:
                parts.append(name[0])
        elif code == "d":
            name = DAY_NAMES[value.weekday()]
            if len(key) <= 2:
                parts.append(f"{value.day:0{len(key)}d}")
            elif len(key) == 3:
                parts.append(name[:3])
            else:
                parts.append(name)
        elif code == "h":
            hour = (value.hour % 12 or 12) if twelve_hour else value.hour
            parts.append(f"{hour:0{min(len(key), 2)}d}")
        elif code == "s":
            parts.append(f"{value.second:0{min(len(key), 2)}d}")
        elif key.startswith(".0"):
            parts.append("." + f"{value.microsecond:06d}"[: len(key) - 1])
        else:
            parts.append(token)
    return "".join(parts)


def _general_number(value: Union[int, float]) -> str:
    if isinstance(value, int):
        return str(value)
    if value.is_integer() and abs(value) < 1e15:
        return str(int(value))
    return f"{value:.15g}"


def format_number(value: Union[int, float], number_format: str) -> str:
    """Render ``value`` with an Excel number format such as ``#,##0.00``.

    Rounds half away from zero, as Excel does: 12.5 under ``0`` shows ``13``.
    """
    sections = number_format.split(";")
    section = sections[0]
    if value < 0 and len(sections) > 1:
        section, value = sections[1], -value
    if "general" in section.lower():
        return _general_number(value)

    prefix: list[str] = []
    suffix: list[str] = []
    pattern = None
    for match in _NUMBER_TOKEN.finditer(section):
        quoted, escaped, placeholder, literal = match.groups()
        if placeholder is not None:
            if pattern is None:
                pattern = placeholder
            continue
        if quoted is not None:
            text = quoted
        elif escaped is not None:
            text = escaped
        else:
            text = literal or ""
        (suffix if pattern is not None else prefix).append(text)

    if pattern is None:
        return _general_number(value)

    number = Decimal(str(value))
    if "%" in "".join(prefix + suffix):
        number *= 100
    # trailing commas scale by thousands
    digits = pattern.rstrip(",")
    number = number.scaleb(-3 * (len(pattern) - len(digits)))

    int_part, _, frac_part = digits.partition(".")
    decimals = sum(frac_part.count(ch) for ch in "0#?")
    number = number.quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP)
    layout = f",.{decimals}f" if "," in int_part else f".{decimals}f"
    return "".join(prefix) + format(number, layout) + "".join(suffix)


def read_first_sheet(path: Path) -> Grid:
    """Load the first worksheet as a grid of display strings.

    Raises:
        GridReadError: if the file is not a readable workbook, has no
            worksheet, or the first worksheet is empty.
    """
    try:
        wb = load_workbook(filename=str(path), data_only=True)
    except (InvalidFileException, BadZipFile, OSError, KeyError) as e:
        raise GridReadError(f"Cannot open workbook {path.name}: {e}") from e

    try:
        if not wb.worksheets:
            raise GridReadError(f"No worksheet found in file {path.name}")
        ws = wb.worksheets[0]

        max_row, max_col = ws.max_row, ws.max_column
        # openpyxl reports a 1x1 sheet with a single empty cell when nothing was written
        if max_row == 1 and max_col == 1 and ws.cell(row=1, column=1).value is None:
            raise GridReadError(f"Worksheet '{ws.title}' in {path.name} is empty")

        grid = [
            [cell_text(cell.value, cell.number_format) for cell in row]
            for row in ws.iter_rows(
                min_row=1,
                max_row=max_row,
                min_col=1,
                max_col=max_col,
                values_only=False,
            )
        ]
    finally:
        wb.close()

    logger.debug(
        "Read %d rows x %d columns from %s (sheet '%s')",
        len(grid),
        max_col,
        path.name,
        ws.title,
    )
    return grid


def row_or_blank(grid: Grid, index: int) -> list[str]:
    """Return ``grid[index]``, or a blank row of the grid's width if absent."""
    if index < len(grid):
        return grid[index]
    width = len(grid[0]) if grid else 0
    return [""] * width
