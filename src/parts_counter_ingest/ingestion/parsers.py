"""Row parsers for the parts-counter production log.

Each parser takes one worksheet row (already rendered as text) and returns an
immutable record. Positional layout:

Summary (row 2)::

    0 datetime | 1 item code | 2 batch no | 3 sublot no | 4 blocks count |
    5 actual count | 6 NG mark | 7 unacc | 8 reason | 9 high-unacc reason

Breakdown (rows 4..N)::

    0 datetime | 1 item code | 2 batch no | 3 sublot no | 4 pallet no |
    5 actual count | 6 op number

Count columns are parsed leniently: anything that is not a plain integer is
stored as 0 instead of rejecting the row.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from parts_counter_ingest.errors import FormatError, ValidationError

DATETIME_FORMAT = "%d%m%Y %H:%M:%S"
_DATETIME_SHAPE = re.compile(r"[0-9]{8} [0-9]{2}:[0-9]{2}:[0-9]{2}")
_INTEGER_TEXT = re.compile(r"\s*[+-]?[0-9]+\s*")

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1

SUMMARY_COLUMNS = 8
SUMMARY_REQUIRED = 7
BREAKDOWN_COLUMNS = 7
BREAKDOWN_REQUIRED = 6


@dataclass(frozen=True)
class Summary:
    """Aggregate counts for one production run (one file)."""

    log_datetime: datetime
    order_no: str
    item_code: str
    batch_no: str
    sublot_no: str
    blocks_count: int
    actual_count: int
    ng_mark: int
    unacc: int
    reason: str
    high_unacc_reason: str
    machine_id: int


@dataclass(frozen=True)
class Breakdown:
    """Count for a single pallet/operation within a run."""

    log_datetime: datetime
    order_no: str
    item_code: str
    batch_no: str
    sublot_no: str
    pallet_no: int
    actual_count: int
    op_number: str
    machine_id: int
    summary_id: int = 0


def parse_log_datetime(text: str) -> datetime:
    """Parse ``ddMMyyyy HH:mm:ss`` exactly; no padding, no other layouts."""
    if not _DATETIME_SHAPE.fullmatch(text):
        raise FormatError(f"Datetime {text!r} does not match ddMMyyyy HH:mm:ss")
    try:
        return datetime.strptime(text, DATETIME_FORMAT)
    except ValueError as e:
        raise FormatError(f"Datetime {text!r} is not a valid date: {e}") from e


def lenient_int(text: str) -> int:
    """Parse a signed 32-bit integer, returning 0 for anything else."""
    if not _INTEGER_TEXT.fullmatch(text):
        return 0
    value = int(text)
    if value < INT32_MIN or value > INT32_MAX:
        return 0
    return value


def _check_required(cells: Sequence[str], present: int, required: int) -> None:
    if len(cells) < present:
        raise ValidationError(
            f"Row has {len(cells)} columns, expected at least {present}."
        )
    for i in range(required):
        if not cells[i] or not cells[i].strip():
            raise ValidationError(f"Column index {i} cannot be empty.")


def _optional(cells: Sequence[str], index: int) -> str:
    return cells[index] if len(cells) > index else ""


def parse_summary(cells: Sequence[str], machine_id: int) -> Summary:
    """Build a Summary from the summary row.

    Raises:
        ValidationError: if a required column is missing or blank.
        FormatError: if the datetime column is not ``ddMMyyyy HH:mm:ss``.
    """
    _check_required(cells, SUMMARY_COLUMNS, SUMMARY_REQUIRED)

    return Summary(
        log_datetime=parse_log_datetime(cells[0]),
        order_no="",
        item_code=cells[1],
        batch_no=cells[2],
        sublot_no=cells[3],
        blocks_count=lenient_int(cells[4]),
        actual_count=lenient_int(cells[5]),
        ng_mark=lenient_int(cells[6]),
        unacc=lenient_int(cells[7]),
        reason=_optional(cells, 8),
        high_unacc_reason=_optional(cells, 9),
        machine_id=machine_id,
    )


def parse_breakdown(cells: Sequence[str], machine_id: int) -> Breakdown:
    """Build a Breakdown from one pallet row.

    The op number column must exist but may be blank.
    """
    _check_required(cells, BREAKDOWN_COLUMNS, BREAKDOWN_REQUIRED)

    return Breakdown(
        log_datetime=parse_log_datetime(cells[0]),
        order_no="",
        item_code=cells[1],
        batch_no=cells[2],
        sublot_no=cells[3],
        pallet_no=lenient_int(cells[4]),
        actual_count=lenient_int(cells[5]),
        op_number=cells[6],
        machine_id=machine_id,
    )
