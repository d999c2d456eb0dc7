"""
Bulk device import from comma-separated text.

The first line is a header naming at least ``id``, ``name`` and ``location``
(any case, any order, extra columns ignored). Fields are split on bare
commas; quoting is not supported, so a value cannot contain a comma.

A bad header rejects the whole file. A bad row only skips that row.
"""
import logging
from typing import List, Tuple

from errors import ValidationError
from schemas import DeviceIn, SkippedRow

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("id", "name", "location")


def parse_header(line: str) -> Tuple[int, dict]:
    header = [h.strip().lower() for h in line.split(",")]
    if not all(col in header for col in REQUIRED_COLUMNS):
        raise ValidationError("CSV file must contain columns for: id, name, and location")
    return len(header), {col: header.index(col) for col in REQUIRED_COLUMNS}


def parse_devices_csv(text: str) -> Tuple[List[Tuple[int, DeviceIn]], List[SkippedRow]]:
    """Return ``(line number, draft)`` pairs for accepted rows and the skipped rows."""
    lines = text.splitlines()
    if not lines:
        raise ValidationError("CSV file must contain columns for: id, name, and location")
    width, index = parse_header(lines[0])

    drafts: List[Tuple[int, DeviceIn]] = []
    skipped: List[SkippedRow] = []
    for lineno, line in enumerate(lines[1:], start=2):
        if not line.strip():
            continue
        values = line.split(",")
        if len(values) < width:
            skipped.append(SkippedRow(line=lineno, reason=f"expected {width} fields, got {len(values)}"))
            continue
        fields = {col: values[i].strip() for col, i in index.items()}
        missing = [col for col in REQUIRED_COLUMNS if not fields[col]]
        if missing:
            skipped.append(SkippedRow(line=lineno, reason=f"missing {', '.join(missing)}"))
            continue
        drafts.append((lineno, DeviceIn(status="Offline", **fields)))

    for row in skipped:
        logger.warning(f"Skipping CSV line {row.line}: {row.reason}")
    return drafts, skipped
