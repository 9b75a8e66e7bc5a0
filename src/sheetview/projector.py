"""Projection of check-in sheet rows into help-needed records.

Column positions are not fixed: the form owners rename and reorder
questions, so each field is located by keyword in the header row. The
keyword table below is the single place to adjust when a question is
reworded.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

import structlog

from sheetview.dates import parse_timestamp
from sheetview.models.sos import SOSRecord

log = structlog.get_logger()

# field -> substrings, any of which identifies the header cell
COLUMN_KEYWORDS: dict[str, tuple[str, ...]] = {
    "timestamp": ("時間戳記",),
    "location": ("邊座", "樓層", "單位"),
    "status": ("現時情況",),
    "details": ("住戶情況",),
    "source": ("消息來源",),
}

REQUIRED_FIELDS: tuple[str, ...] = ("timestamp", "location", "status")

# Residents reported safe no longer need help.
SAFE_MARKER = "平安"


def resolve_columns(header: Sequence[str]) -> dict[str, int]:
    """Map each field in COLUMN_KEYWORDS to the first matching header index.

    Fields with no matching header cell are absent from the result.
    """
    columns: dict[str, int] = {}
    for field_name, keywords in COLUMN_KEYWORDS.items():
        for index, cell in enumerate(header):
            text = str(cell)
            if any(keyword in text for keyword in keywords):
                columns[field_name] = index
                break
    return columns


def _cell(row: Sequence[str], index: int | None) -> str:
    if index is None or index >= len(row):
        return ""
    value = row[index]
    return "" if value is None else str(value)


def project_rows(rows: Sequence[Sequence[str]]) -> list[SOSRecord]:
    """Turn a raw sheet (header row first) into records, newest first.

    Rows whose status contains the safe marker are dropped. Returns an empty
    list when the sheet has no data rows or a required column is missing.
    """
    if len(rows) < 2:
        return []

    header, data_rows = rows[0], rows[1:]
    columns = resolve_columns(header)

    missing = [name for name in REQUIRED_FIELDS if name not in columns]
    if missing:
        log.warning("projection_missing_columns", missing=missing, header=list(header))
        return []

    records: list[SOSRecord] = []
    for row in data_rows:
        status = _cell(row, columns["status"])
        if SAFE_MARKER in status:
            continue

        timestamp = _cell(row, columns["timestamp"])
        records.append(
            SOSRecord(
                timestamp=timestamp,
                timestamp_instant=parse_timestamp(timestamp),
                location=_cell(row, columns["location"]),
                status=status,
                details=_cell(row, columns.get("details")),
                source=_cell(row, columns.get("source")),
            )
        )

    # sorted() is stable with reverse=True, so equal instants keep sheet order
    return sorted(records, key=lambda record: record.timestamp_instant, reverse=True)


def filter_records(
    records: Iterable[SOSRecord],
    *,
    status: str | None = None,
    query: str | None = None,
) -> list[SOSRecord]:
    """Keep records with exactly ``status`` and a location containing ``query``."""
    needle = query.strip().lower() if query else ""
    return [
        record
        for record in records
        if (not status or record.status == status)
        and (not needle or needle in record.location.lower())
    ]


def distinct_statuses(records: Iterable[SOSRecord]) -> list[str]:
    """Non-empty statuses in first-seen order."""
    seen: dict[str, None] = {}
    for record in records:
        if record.status:
            seen.setdefault(record.status, None)
    return list(seen)
