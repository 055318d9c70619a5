"""Machine id lookup from source file names (``run_12.xlsx`` -> 12)."""

from __future__ import annotations

import re
import string
from pathlib import PurePath

from parts_counter_ingest.errors import ResolverError

WORKBOOK_EXTENSION = ".xlsx"
MAX_MACHINE_ID = 2**31 - 1


def resolve_machine_id(file_name: str) -> int:
    """Return the digits between the first underscore and the extension.

    Non-digit characters in that span are dropped, so ``line_a12.xlsx``
    resolves to 12. Only ASCII 0-9 count as digits.

    Raises:
        ResolverError: if there is no underscore before the extension, no
            digits in between, or the number overflows a 32-bit int.
    """
    name = PurePath(file_name).name
    underscore = name.find("_")
    extensions = [
        m.start()
        for m in re.finditer(re.escape(WORKBOOK_EXTENSION), name, re.IGNORECASE)
    ]
    dot = extensions[-1] if extensions else -1

    if underscore != -1 and dot != -1 and underscore < dot:
        span = name[underscore + 1 : dot]
        digits = "".join(ch for ch in span if ch in string.digits)
        if digits:
            value = int(digits)
            if value > MAX_MACHINE_ID:
                raise ResolverError(
                    f"PartsCounterNo {digits} in file name {name} is out of range"
                )
            return value

    raise ResolverError(f"PartsCounterNo is missing or invalid in file name: {name}")
