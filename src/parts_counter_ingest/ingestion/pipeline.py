"""Ingestion pipeline: workbook => parse => store in SQLite => archive.
Each step is modularized for testability and maintainability.
The batch orchestrator (run_ingestion) runs process_file once per workbook.

Assumes:
- Files are handled strictly one at a time. A bad file is moved to the error
folder and never stops the batch.
- The source folder is listed once at batch start; files dropped mid-run wait
for the next run.
- Re-running on the same file stores it again. There is no de-duplication.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from parts_counter_ingest.config import Settings
from parts_counter_ingest.db.repository import ProductionLogRepository
from parts_counter_ingest.errors import FileSystemError, IngestionError
from parts_counter_ingest.ingestion.grid import Grid, read_first_sheet, row_or_blank
from parts_counter_ingest.ingestion.machine_id import resolve_machine_id
from parts_counter_ingest.ingestion.parsers import (
    Breakdown,
    Summary,
    parse_breakdown,
    parse_summary,
)
from parts_counter_ingest.ingestion.routing import FileRouter, Outcome

logger = logging.getLogger(__name__)

# 0-based grid rows: sheet row 2 is the summary, rows 4..N are pallets
SUMMARY_ROW = 1
FIRST_BREAKDOWN_ROW = 3


@dataclass
class FileResult:
    """What happened to one source file."""

    source: Path
    outcome: Outcome
    destination: Optional[Path] = None
    summary_id: Optional[int] = None
    breakdown_rows: int = 0
    error: Optional[str] = None


@dataclass
class BatchReport:
    """Summary of one ingestion run."""

    files_found: int = 0
    results: list[FileResult] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.outcome is Outcome.SUCCESS)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.outcome is Outcome.ERROR)


# Discover


def list_source_files(settings: Settings) -> list[Path]:
    """Workbooks waiting in the source folder, sorted by name."""
    return sorted(
        p for p in settings.source_dir.glob(settings.file_pattern) if p.is_file()
    )


# Parse


def parse_grid(grid: Grid, machine_id: int) -> tuple[Summary, list[Breakdown]]:
    """Parse the summary row and every pallet row of a worksheet grid.

    Raises on the first invalid row; nothing is returned for a partially
    valid sheet.
    """
    summary = parse_summary(row_or_blank(grid, SUMMARY_ROW), machine_id)
    breakdowns = [
        parse_breakdown(row, machine_id) for row in grid[FIRST_BREAKDOWN_ROW:]
    ]
    logger.debug(
        "Parsed summary + %d breakdown rows for counter %d",
        len(breakdowns),
        machine_id,
    )
    return summary, breakdowns


# Store


def store_file_data(
    repo: ProductionLogRepository,
    summary: Summary,
    breakdowns: list[Breakdown],
) -> tuple[int, int]:
    """Save the summary, then its breakdowns under the generated id.

    Returns:
        (summary_id, breakdown rows written)
    """
    summary_id = repo.save_summary(summary)
    written = repo.save_breakdowns(breakdowns, summary_id)
    return summary_id, written


# Route


def _route_safely(router: FileRouter, result: FileResult) -> None:
    """Move the file; a failed move is logged and the file stays put."""
    try:
        result.destination = router.route(result.source, result.outcome)
    except FileSystemError as e:
        logger.error(str(e))


# Orchestrator


def process_file(path: Path, settings: Settings, router: FileRouter) -> FileResult:
    """Ingest one workbook and route it to the archive or error folder.

    Any failure before the data is stored sends the file to the error folder.
    """
    result = FileResult(source=path, outcome=Outcome.ERROR)
    try:
        machine_id = resolve_machine_id(path.name)
        grid = read_first_sheet(path)
        summary, breakdowns = parse_grid(grid, machine_id)

        with ProductionLogRepository(settings.connection_string) as repo:
            result.summary_id, result.breakdown_rows = store_file_data(
                repo, summary, breakdowns
            )
        result.outcome = Outcome.SUCCESS
    except IngestionError as e:
        result.error = str(e)
        logger.error("Error processing file %s: %s", path, e)
    except Exception as e:
        result.error = f"{type(e).__name__}: {e}"
        logger.exception("Unexpected error processing file %s", path)

    _route_safely(router, result)

    if result.outcome is Outcome.SUCCESS:
        logger.info(
            "Success: %s (summary %d, %d breakdown rows)",
            path.name,
            result.summary_id,
            result.breakdown_rows,
        )
    elif result.destination is not None:
        logger.warning("Failed: %s moved to error folder", path.name)
    else:
        logger.warning("Failed: %s left in the source folder", path.name)
    return result


def run_ingestion(
    settings: Settings, router: Optional[FileRouter] = None
) -> BatchReport:
    """Run one batch over every workbook in the source folder.

    This is the main entry point.

    Args:
        settings: service configuration
        router: optional router override (tests inject a fixed clock)

    Returns:
        Batch report with one result per file.

    Raises:
        ConfigurationError: if a configured folder is missing. No file is
            touched in that case.
    """
    settings.check_directories()
    router = router or FileRouter(settings)

    files = list_source_files(settings)
    report = BatchReport(files_found=len(files))
    if not files:
        logger.warning(
            "No %s files found in: %s", settings.file_pattern, settings.source_dir
        )
        return report

    logger.info("=" * 60)
    logger.info("Collecting data from %d files", len(files))
    logger.info("=" * 60)

    for path in files:
        report.results.append(process_file(path, settings, router))

    logger.info("=" * 60)
    logger.info(
        "Collecting data complete: %d succeeded, %d failed",
        report.succeeded,
        report.failed,
    )
    logger.info("=" * 60)

    return report
