"""Unit tests for the summary/breakdown row parsers."""

from __future__ import annotations

from dataclasses import FrozenInstanceError
from datetime import datetime

import pytest

from parts_counter_ingest.errors import FormatError, ValidationError
from parts_counter_ingest.ingestion.parsers import (
    Breakdown,
    Summary,
    lenient_int,
    parse_breakdown,
    parse_log_datetime,
    parse_summary,
)

SUMMARY_CELLS = [
    "19102025 08:15:00",
    "ITEM-A1",
    "B001",
    "S01",
    "4",
    "120",
    "2",
    "1",
    "Jam at feeder",
    "Worn die",
]
BREAKDOWN_CELLS = ["19102025 08:20:00", "ITEM-A1", "B001", "S01", "3", "60", "OP10"]


class TestParseSummary:
    """Tests for parse_summary."""

    def test_parse_valid_row(self) -> None:
        """A complete row maps column by column."""
        summary = parse_summary(SUMMARY_CELLS, machine_id=12)

        assert isinstance(summary, Summary)
        assert summary.log_datetime == datetime(2025, 10, 19, 8, 15, 0)
        assert summary.item_code == "ITEM-A1"
        assert summary.batch_no == "B001"
        assert summary.sublot_no == "S01"
        assert summary.blocks_count == 4
        assert summary.actual_count == 120
        assert summary.ng_mark == 2
        assert summary.unacc == 1
        assert summary.reason == "Jam at feeder"
        assert summary.high_unacc_reason == "Worn die"
        assert summary.machine_id == 12

    def test_order_no_always_empty(self) -> None:
        summary = parse_summary(SUMMARY_CELLS, machine_id=1)

        assert summary.order_no == ""

    def test_reasons_default_to_empty(self) -> None:
        """Columns 8 and 9 are optional."""
        summary = parse_summary(SUMMARY_CELLS[:8], machine_id=1)

        assert summary.reason == ""
        assert summary.high_unacc_reason == ""

    @pytest.mark.parametrize("index", range(7))
    def test_blank_required_column_fails(self, index: int) -> None:
        """Any blank cell among columns 0-6 rejects the row."""
        cells = list(SUMMARY_CELLS)
        cells[index] = "   "

        with pytest.raises(ValidationError, match=f"Column index {index}"):
            parse_summary(cells, machine_id=1)

    def test_blank_unacc_is_zero(self) -> None:
        """Column 7 must exist but a blank value is read as 0."""
        cells = list(SUMMARY_CELLS)
        cells[7] = ""

        assert parse_summary(cells, machine_id=1).unacc == 0

    def test_short_row_fails(self) -> None:
        with pytest.raises(ValidationError, match="expected at least 8"):
            parse_summary(SUMMARY_CELLS[:7], machine_id=1)

    def test_non_numeric_counts_become_zero(self) -> None:
        """Count columns never reject the row."""
        cells = list(SUMMARY_CELLS)
        cells[4] = "four"
        cells[5] = "12.5"

        summary = parse_summary(cells, machine_id=1)

        assert summary.blocks_count == 0
        assert summary.actual_count == 0
        assert summary.ng_mark == 2

    def test_bad_datetime_raises_format_error(self) -> None:
        cells = list(SUMMARY_CELLS)
        cells[0] = "2025-10-19 08:15:00"

        with pytest.raises(FormatError):
            parse_summary(cells, machine_id=1)


class TestParseBreakdown:
    """Tests for parse_breakdown."""

    def test_parse_valid_row(self) -> None:
        breakdown = parse_breakdown(BREAKDOWN_CELLS, machine_id=7)

        assert isinstance(breakdown, Breakdown)
        assert breakdown.log_datetime == datetime(2025, 10, 19, 8, 20, 0)
        assert breakdown.pallet_no == 3
        assert breakdown.actual_count == 60
        assert breakdown.op_number == "OP10"
        assert breakdown.machine_id == 7
        assert breakdown.order_no == ""

    def test_summary_id_unset(self) -> None:
        """summary_id stays 0 until the summary is stored."""
        assert parse_breakdown(BREAKDOWN_CELLS, machine_id=7).summary_id == 0

    @pytest.mark.parametrize("index", range(6))
    def test_blank_required_column_fails(self, index: int) -> None:
        cells = list(BREAKDOWN_CELLS)
        cells[index] = ""

        with pytest.raises(ValidationError):
            parse_breakdown(cells, machine_id=7)

    def test_blank_op_number_allowed(self) -> None:
        cells = list(BREAKDOWN_CELLS)
        cells[6] = ""

        assert parse_breakdown(cells, machine_id=7).op_number == ""

    def test_missing_op_number_column_fails(self) -> None:
        with pytest.raises(ValidationError):
            parse_breakdown(BREAKDOWN_CELLS[:6], machine_id=7)

    def test_padded_row_parses(self) -> None:
        """Rows padded to the sheet width carry trailing empty cells."""
        breakdown = parse_breakdown(BREAKDOWN_CELLS + ["", "", ""], machine_id=7)

        assert breakdown.op_number == "OP10"


class TestParseLogDatetime:
    def test_exact_layout(self) -> None:
        assert parse_log_datetime("01022024 23:59:58") == datetime(
            2024, 2, 1, 23, 59, 58
        )

    @pytest.mark.parametrize(
        "text",
        [
            "1022024 23:59:58",  # single-digit day
            " 01022024 23:59:58",  # leading space
            "01022024 23:59:58 ",  # trailing space
            "01022024T23:59:58",
            "01/02/2024 23:59:58",
            "01022024",
        ],
    )
    def test_rejects_other_layouts(self, text: str) -> None:
        with pytest.raises(FormatError, match="ddMMyyyy"):
            parse_log_datetime(text)

    def test_rejects_impossible_date(self) -> None:
        """Right shape, but February 31st doesn't exist."""
        with pytest.raises(FormatError, match="not a valid date"):
            parse_log_datetime("31022024 10:00:00")


class TestLenientInt:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("42", 42),
            ("007", 7),
            (" 15 ", 15),
            ("+3", 3),
            ("-8", -8),
            ("2147483647", 2147483647),
            ("-2147483648", -2147483648),
        ],
    )
    def test_plain_integers(self, text: str, expected: int) -> None:
        assert lenient_int(text) == expected

    @pytest.mark.parametrize(
        "text", ["", "abc", "1.5", "1,000", "1_000", "2147483648", "-2147483649"]
    )
    def test_everything_else_is_zero(self, text: str) -> None:
        assert lenient_int(text) == 0


class TestRecords:
    def test_summary_is_frozen(self) -> None:
        summary = parse_summary(SUMMARY_CELLS, machine_id=1)

        with pytest.raises(FrozenInstanceError):
            summary.unacc = 5  # type: ignore
