"""SQLite repository for parts-counter summaries and pallet breakdowns.

- One summary row per ingested file; breakdown rows reference it by summary_id.
- Every insert is committed on its own. A failure part-way through a file's
  breakdowns leaves the earlier rows in place; there is no rollback.
- Repository pattern: all SQL is encapsulated here; swap to MySQL or another
  DB by changing this module only.
- One connection per repository instance. The pipeline opens a fresh
  repository for each file and closes it when the file's writes are done.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Any, Optional, Sequence, Union

from parts_counter_ingest.errors import StoreError
from parts_counter_ingest.ingestion.parsers import Breakdown, Summary

logger = logging.getLogger(__name__)

MEMORY_DATABASE = ":memory:"
STORED_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"

# The summary writer has always received a single space for a blank order number
EMPTY_SUMMARY_ORDER_NO = " "

_INSERT_SUMMARY = """
    INSERT INTO parts_counter_summary (
        log_datetime, log_order_no, log_item_code, log_batch_no, log_sublot_no,
        log_blocks_count, log_actual_count, log_ng_mark, log_unacc,
        log_reason, log_high_unacc_reason, log_part_counter_no
    ) VALUES (
        :p_log_datetime, :p_log_order_no, :p_log_item_code, :p_log_batch_no,
        :p_log_sublot_no, :p_log_blocks_count, :p_log_actual_count, :p_log_ng_mark,
        :p_log_unacc, :p_log_reason, :p_log_high_unacc_reason, :p_log_part_counter_no
    )
"""

_INSERT_BREAKDOWN = """
    INSERT INTO parts_counter_breakdown (
        log_datetime, log_order_no, log_item_code, log_batch_no, log_sublot_no,
        log_pallet_no, log_actual_count, log_op_number, log_parts_counter_no,
        summary_id
    ) VALUES (
        :p_log_datetime, :p_log_order_no, :p_log_item_code, :p_log_batch_no,
        :p_log_sublot_no, :p_log_pallet_no, :p_log_actual_count, :p_log_op_number,
        :p_log_parts_counter_no, :p_summaryID
    )
"""


def summary_params(summary: Summary) -> dict[str, Any]:
    """Named parameters for the summary insert."""
    return {
        "p_log_datetime": summary.log_datetime.strftime(STORED_DATETIME_FORMAT),
        "p_log_order_no": summary.order_no or EMPTY_SUMMARY_ORDER_NO,
        "p_log_item_code": summary.item_code,
        "p_log_batch_no": summary.batch_no,
        "p_log_sublot_no": summary.sublot_no,
        "p_log_blocks_count": summary.blocks_count,
        "p_log_actual_count": summary.actual_count,
        "p_log_ng_mark": summary.ng_mark,
        "p_log_unacc": summary.unacc,
        "p_log_reason": summary.reason,
        "p_log_high_unacc_reason": summary.high_unacc_reason,
        "p_log_part_counter_no": summary.machine_id,
    }


def breakdown_params(breakdown: Breakdown, summary_id: int) -> dict[str, Any]:
    """Named parameters for one breakdown insert."""
    return {
        "p_log_datetime": breakdown.log_datetime.strftime(STORED_DATETIME_FORMAT),
        "p_log_order_no": breakdown.order_no,
        "p_log_item_code": breakdown.item_code,
        "p_log_batch_no": breakdown.batch_no,
        "p_log_sublot_no": breakdown.sublot_no,
        "p_log_pallet_no": breakdown.pallet_no,
        "p_log_actual_count": breakdown.actual_count,
        "p_log_op_number": breakdown.op_number,
        "p_log_parts_counter_no": breakdown.machine_id,
        "p_summaryID": summary_id,
    }


class ProductionLogRepository:
    """Repository for storing parts-counter production logs in SQLite."""

    def __init__(self, database: Union[str, Path]):
        self._database = str(database)
        self._conn: Optional[sqlite3.Connection] = None

    # Connection management
    def connect(self):
        """Open (or create) the database and ensure schema exists."""
        if self._database != MEMORY_DATABASE:
            Path(self._database).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self._database)
        try:
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._create_tables()
        except sqlite3.Error:
            self._conn.close()
            self._conn = None
            raise
        logger.debug("Connected to database: %s", self._database)

    def close(self):
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
            logger.debug("Database connection closed.")

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Repository not connected. Call connect() first.")
        return self._conn

    def __enter__(self) -> ProductionLogRepository:
        self.connect()
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # ── Schema ──

    def _create_tables(self) -> None:
        self.conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS parts_counter_summary (
                id                     INTEGER PRIMARY KEY AUTOINCREMENT,
                log_datetime           TEXT    NOT NULL,
                log_order_no           TEXT    NOT NULL,
                log_item_code          TEXT    NOT NULL,
                log_batch_no           TEXT    NOT NULL,
                log_sublot_no          TEXT    NOT NULL,
                log_blocks_count       INTEGER NOT NULL,
                log_actual_count       INTEGER NOT NULL,
                log_ng_mark            INTEGER NOT NULL,
                log_unacc              INTEGER NOT NULL,
                log_reason             TEXT    NOT NULL DEFAULT '',
                log_high_unacc_reason  TEXT    NOT NULL DEFAULT '',
                log_part_counter_no    INTEGER NOT NULL,
                created_at             TEXT    NOT NULL DEFAULT CURRENT_TIMESTAMP
            );

            CREATE TABLE IF NOT EXISTS parts_counter_breakdown (
                id                     INTEGER PRIMARY KEY AUTOINCREMENT,
                log_datetime           TEXT    NOT NULL,
                log_order_no           TEXT    NOT NULL,
                log_item_code          TEXT    NOT NULL,
                log_batch_no           TEXT    NOT NULL,
                log_sublot_no          TEXT    NOT NULL,
                log_pallet_no          INTEGER NOT NULL,
                log_actual_count       INTEGER NOT NULL,
                log_op_number          TEXT    NOT NULL,
                log_parts_counter_no   INTEGER NOT NULL,
                summary_id             INTEGER NOT NULL
                    REFERENCES parts_counter_summary(id),
                created_at             TEXT    NOT NULL DEFAULT CURRENT_TIMESTAMP
            );

            CREATE INDEX IF NOT EXISTS idx_breakdown_summary
                ON parts_counter_breakdown(summary_id);
            """
        )
        self.conn.commit()

    # Write operations

    def save_summary(self, summary: Summary) -> int:
        """Insert one summary row and return its generated id.

        Raises:
            StoreError: if the insert fails.
        """
        try:
            cursor = self.conn.execute(_INSERT_SUMMARY, summary_params(summary))
            self.conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to save summary: {e}") from e

        summary_id = int(cursor.lastrowid)
        logger.debug(
            "Saved summary %d for counter %d", summary_id, summary.machine_id
        )
        return summary_id

    def save_breakdowns(self, breakdowns: Sequence[Breakdown], summary_id: int) -> int:
        """Insert breakdown rows one by one, all pointing at ``summary_id``.

        Each row is committed individually, so a failure on row N keeps
        rows 1..N-1.

        Returns:
            Number of rows inserted.

        Raises:
            StoreError: on the first failing insert.
        """
        saved = 0
        for breakdown in breakdowns:
            try:
                self.conn.execute(
                    _INSERT_BREAKDOWN, breakdown_params(breakdown, summary_id)
                )
                self.conn.commit()
            except sqlite3.Error as e:
                raise StoreError(
                    f"Failed to save breakdown {saved + 1} of {len(breakdowns)} "
                    f"for summary {summary_id}: {e}"
                ) from e
            saved += 1

        logger.debug("Saved %d breakdown rows for summary %d", saved, summary_id)
        return saved

    # Read operations

    def get_summary(self, summary_id: int) -> Optional[sqlite3.Row]:
        """Retrieve a summary row by id."""
        return self.conn.execute(
            "SELECT * FROM parts_counter_summary WHERE id = ?", (summary_id,)
        ).fetchone()

    def get_breakdowns(self, summary_id: int) -> list[sqlite3.Row]:
        """Retrieve breakdown rows for a summary, in insertion order."""
        return self.conn.execute(
            "SELECT * FROM parts_counter_breakdown WHERE summary_id = ? ORDER BY id",
            (summary_id,),
        ).fetchall()

    def count_summaries(self) -> int:
        row = self.conn.execute("SELECT COUNT(*) FROM parts_counter_summary").fetchone()
        return int(row[0])

    def count_breakdowns(self) -> int:
        row = self.conn.execute(
            "SELECT COUNT(*) FROM parts_counter_breakdown"
        ).fetchone()
        return int(row[0])
