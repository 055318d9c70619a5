"""Shared pytest fixtures for all test modules."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Generator, Optional, Sequence

import pytest
from openpyxl import Workbook

from parts_counter_ingest.config import Settings
from parts_counter_ingest.db.repository import ProductionLogRepository
from parts_counter_ingest.ingestion.parsers import Breakdown, Summary
from parts_counter_ingest.ingestion.routing import FileRouter

FIXED_NOW = datetime(2025, 10, 19, 14, 30, 5, 123456)

HEADER_ROW = [
    "Datetime",
    "Item Code",
    "Batch No",
    "Sublot No",
    "Blocks",
    "Actual",
    "NG Mark",
    "Unacc",
    "Reason",
    "High Unacc Reason",
]
SUMMARY_ROW = ["19102025 08:15:00", "ITEM-A1", "B001", "S01", 4, 120, 2, 1, "", ""]
BREAKDOWN_ROWS = [
    ["19102025 08:20:00", "ITEM-A1", "B001", "S01", 1, 60, "OP10"],
    ["19102025 08:45:30", "ITEM-A1", "B001", "S01", 2, 60, "OP20"],
]


# ── Folder / Settings Fixtures ──


@pytest.fixture
def folders(tmp_path: Path) -> dict[str, Path]:
    """Source, error and archive folders under a temp root."""
    paths = {
        "source": tmp_path / "incoming",
        "error": tmp_path / "error",
        "archive": tmp_path / "archive",
    }
    for path in paths.values():
        path.mkdir()
    return paths


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "db" / "parts_counter.db"


@pytest.fixture
def settings(folders: dict[str, Path], db_path: Path) -> Settings:
    return Settings(
        connection_string=str(db_path),
        source_dir=folders["source"],
        error_dir=folders["error"],
        archive_dir=folders["archive"],
    )


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


@pytest.fixture
def router(settings: Settings, fixed_clock: Callable[[], datetime]) -> FileRouter:
    return FileRouter(settings, clock=fixed_clock)


@pytest.fixture
def config_file(tmp_path: Path, folders: dict[str, Path], db_path: Path) -> Path:
    """A valid appsettings.json pointing at the temp folders."""
    path = tmp_path / "appsettings.json"
    path.write_text(
        json.dumps(
            {
                "ConnectionStrings": {"DefaultConnection": str(db_path)},
                "FileSettings": {
                    "LogsSourcePath": str(folders["source"]),
                    "ErrorLogsPath": str(folders["error"]),
                    "ArchiveLogsPath": str(folders["archive"]),
                },
            }
        ),
        encoding="utf-8",
    )
    return path


# ── Repository Fixtures ──


@pytest.fixture
def repository(db_path: Path) -> Generator[ProductionLogRepository, None, None]:
    """Provide a connected repository on a temp database file."""
    repo = ProductionLogRepository(db_path)
    repo.connect()
    yield repo
    repo.close()


# ── Record Fixtures ──


@pytest.fixture
def sample_summary() -> Summary:
    return Summary(
        log_datetime=datetime(2025, 10, 19, 8, 15, 0),
        order_no="",
        item_code="ITEM-A1",
        batch_no="B001",
        sublot_no="S01",
        blocks_count=4,
        actual_count=120,
        ng_mark=2,
        unacc=1,
        reason="",
        high_unacc_reason="",
        machine_id=12,
    )


@pytest.fixture
def sample_breakdowns() -> list[Breakdown]:
    return [
        Breakdown(
            log_datetime=datetime(2025, 10, 19, 8, 20, 0),
            order_no="",
            item_code="ITEM-A1",
            batch_no="B001",
            sublot_no="S01",
            pallet_no=pallet,
            actual_count=60,
            op_number=f"OP{pallet}0",
            machine_id=12,
        )
        for pallet in (1, 2)
    ]


# ── Workbook Fixtures ──


WorkbookWriter = Callable[..., Path]


@pytest.fixture
def write_workbook() -> WorkbookWriter:
    """Factory writing rows (None = empty cell) to the first sheet of an .xlsx."""

    def _write(
        path: Path,
        rows: Sequence[Optional[Sequence[Any]]],
    ) -> Path:
        wb = Workbook()
        ws = wb.active
        ws.title = "Log"
        for row_idx, row in enumerate(rows, start=1):
            for col_idx, value in enumerate(row or [], start=1):
                if value is not None:
                    ws.cell(row=row_idx, column=col_idx, value=value)
        wb.save(path)
        return path

    return _write


@pytest.fixture
def valid_rows() -> list[Optional[list[Any]]]:
    """Header, summary, blank separator, two pallet rows."""
    return [HEADER_ROW, SUMMARY_ROW, None, *BREAKDOWN_ROWS]


@pytest.fixture
def valid_workbook(
    folders: dict[str, Path],
    write_workbook: WorkbookWriter,
    valid_rows: list[Optional[list[Any]]],
) -> Path:
    """A well-formed workbook for counter 12 in the source folder."""
    return write_workbook(folders["source"] / "run_12.xlsx", valid_rows)
