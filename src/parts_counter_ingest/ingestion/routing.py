"""Moves processed workbooks into dated archive/error folders.

Layout: ``<root>/<year>/<month>/<file>``. Month folders use fixed English
names (``October``) so the layout doesn't change with the host locale; set
``numeric_month_folders`` to get ``10`` instead.

Existing files are never overwritten. A name clash gets a millisecond
timestamp suffix (``run_12_20251019143005123.xlsx``), and a counter on top of
that if the timestamped name is also taken.
"""

from __future__ import annotations

import enum
import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Callable

from parts_counter_ingest.config import Settings
from parts_counter_ingest.errors import FileSystemError

logger = logging.getLogger(__name__)

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


class Outcome(enum.Enum):
    SUCCESS = "archive"
    ERROR = "error"


def destination_folder(root: Path, now: datetime, numeric_month: bool = False) -> Path:
    """Return ``root/<year>/<month>`` for the given moment."""
    month = f"{now.month:02d}" if numeric_month else MONTH_NAMES[now.month - 1]
    return root / str(now.year) / month


def collision_timestamp(now: datetime) -> str:
    """yyyyMMddHHmmssfff"""
    return now.strftime("%Y%m%d%H%M%S") + f"{now.microsecond // 1000:03d}"


def unique_destination(folder: Path, file_name: str, now: datetime) -> Path:
    """Pick a path in ``folder`` that doesn't exist yet."""
    candidate = folder / file_name
    if not candidate.exists():
        return candidate

    stem, suffix = Path(file_name).stem, Path(file_name).suffix
    base = f"{stem}_{collision_timestamp(now)}"
    candidate = folder / f"{base}{suffix}"
    counter = 1
    while candidate.exists():
        candidate = folder / f"{base}_{counter}{suffix}"
        counter += 1
    return candidate


class FileRouter:
    """Routes files to the archive (success) or error (failure) root."""

    def __init__(
        self,
        settings: Settings,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._roots = {
            Outcome.SUCCESS: settings.archive_dir,
            Outcome.ERROR: settings.error_dir,
        }
        self._numeric_month = settings.numeric_month_folders
        self._clock = clock

    def route(self, path: Path, outcome: Outcome) -> Path:
        """Move ``path`` into the dated folder for ``outcome``.

        Returns:
            The file's final location.

        Raises:
            FileSystemError: if the folder can't be created or the move fails.
        """
        now = self._clock()
        folder = destination_folder(self._roots[outcome], now, self._numeric_month)
        try:
            folder.mkdir(parents=True, exist_ok=True)
            target = unique_destination(folder, path.name, now)
            final = Path(shutil.move(str(path), str(target)))
        except OSError as e:
            raise FileSystemError(
                f"Failed to move file '{path}' to {outcome.value} folder: {e}"
            ) from e

        if final.name != path.name:
            logger.info("Destination had %s already, saved as %s", path.name, final.name)
        logger.info("Moved file '%s' to %s folder.", path.name, outcome.value)
        return final
