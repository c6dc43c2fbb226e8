from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Sequence
from urllib.parse import urlparse

from adveronix_dashboard.models import (
    MetricRecord,
    MissingColumnError,
    NoDataError,
    Ok,
    ParseReport,
    RowOutcome,
    Skipped,
)


SPREADSHEET_EPOCH = date(1899, 12, 30)
SERIAL_MIN = 40000
SERIAL_MAX = 60000

_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_US_DATE_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_STRIP_CHARS_RE = re.compile(r"[$,%\s]")


def parse_number_strict(raw: object) -> float | None:
    """Parse a currency/percent formatted cell; ``None`` when it is not a number."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
        return value if math.isfinite(value) else None

    cleaned = _STRIP_CHARS_RE.sub("", str(raw))
    if not cleaned:
        return None
    try:
        value = float(cleaned)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def parse_number(raw: object) -> float:
    value = parse_number_strict(raw)
    return 0.0 if value is None else value


def _from_serial(serial: float) -> date | None:
    if SERIAL_MIN < serial < SERIAL_MAX:
        return SPREADSHEET_EPOCH + timedelta(days=int(serial))
    return None


def parse_date(raw: object) -> date | None:
    """Resolve ``M/D/YYYY``, ``YYYY-MM-DD`` or a spreadsheet serial day count."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if isinstance(raw, (int, float)):
        if not math.isfinite(raw):
            return None
        return _from_serial(float(raw))

    text = str(raw).strip()
    if not text:
        return None

    match = _ISO_DATE_RE.match(text)
    if match:
        year, month, day = (int(part) for part in match.groups())
    else:
        match = _US_DATE_RE.match(text)
        if match:
            month, day, year = (int(part) for part in match.groups())
        else:
            try:
                return _from_serial(float(text))
            except ValueError:
                return None

    try:
        return date(year, month, day)
    except ValueError:
        return None


def simplify_url(raw: str) -> str:
    """Reduce a landing page URL to its path without trailing slashes."""
    value = raw.strip()
    parsed = urlparse(value)
    path = parsed.path if parsed.scheme and parsed.netloc else value
    trimmed = path.rstrip("/")
    return trimmed or "/"


def _normalize_header(value: object) -> str:
    return re.sub(r"\s+", " ", str(value or "")).strip().lower()


@dataclass(frozen=True)
class ColumnSpec:
    field: str
    headers: tuple[str, ...]
    required: bool = True


@dataclass(frozen=True)
class SheetLayout:
    range_name: str
    date_column: ColumnSpec
    metric_columns: tuple[ColumnSpec, ...]
    key_column: ColumnSpec | None = None

    @property
    def columns(self) -> tuple[ColumnSpec, ...]:
        specs = [self.date_column, *self.metric_columns]
        if self.key_column is not None:
            specs.append(self.key_column)
        return tuple(specs)


class ColumnMap:
    """Header-name lookup resolved once per fetched range."""

    def __init__(self, indices: dict[str, int | None]) -> None:
        self.indices = indices

    @classmethod
    def from_header(
        cls,
        header_row: Sequence[object],
        specs: Sequence[ColumnSpec],
        range_name: str = "",
    ) -> "ColumnMap":
        positions: dict[str, int] = {}
        for idx, cell in enumerate(header_row):
            name = _normalize_header(cell)
            if name and name not in positions:
                positions[name] = idx

        indices: dict[str, int | None] = {}
        missing: list[str] = []
        for spec in specs:
            found = None
            for alias in spec.headers:
                found = positions.get(_normalize_header(alias))
                if found is not None:
                    break
            if found is None and spec.required:
                missing.append(spec.headers[0])
            indices[spec.field] = found

        if missing:
            where = f" in range '{range_name}'" if range_name else ""
            raise MissingColumnError(
                f"Missing expected header(s){where}: {', '.join(missing)}."
            )
        return cls(indices)

    def cell(self, row: Sequence[object], field: str) -> object:
        idx = self.indices.get(field)
        if idx is None or idx >= len(row):
            return None
        return row[idx]

    def text(self, row: Sequence[object], field: str) -> str:
        value = self.cell(row, field)
        return "" if value is None else str(value).strip()


def parse_row(
    row: Sequence[object],
    row_number: int,
    columns: ColumnMap,
    layout: SheetLayout,
    source_key: str,
) -> tuple[RowOutcome, int]:
    """Return the row outcome and how many metric cells were coerced to zero."""
    date_field = layout.date_column.field
    raw_date = columns.cell(row, date_field)
    if raw_date is None or not str(raw_date).strip():
        return Skipped(row_number, f"missing {date_field}"), 0

    day = parse_date(raw_date)
    if day is None:
        return Skipped(row_number, f"unrecognized {date_field} {str(raw_date).strip()!r}"), 0

    key = ""
    if layout.key_column is not None:
        key = columns.text(row, layout.key_column.field)
        if not key:
            return Skipped(row_number, f"missing {layout.key_column.field}"), 0

    coerced = 0
    metrics: dict[str, float] = {}
    for spec in layout.metric_columns:
        if columns.indices.get(spec.field) is None:
            continue
        raw = columns.cell(row, spec.field)
        value = parse_number_strict(raw)
        if value is None:
            if raw is not None and str(raw).strip():
                coerced += 1
            value = 0.0
        metrics[spec.field] = value

    record = MetricRecord(date=day, source_key=source_key, metrics=metrics, key=key)
    return Ok(record), coerced


def parse_rows(
    rows: Sequence[Sequence[object]] | None,
    layout: SheetLayout,
    source_key: str,
) -> ParseReport:
    if not rows or len(rows) < 2:
        raise NoDataError(f"No data found in range '{layout.range_name}'.")

    columns = ColumnMap.from_header(rows[0], layout.columns, layout.range_name)
    report = ParseReport(source_key=source_key)
    # Sheet row numbers are 1-based and row 1 is the header.
    for offset, row in enumerate(rows[1:], start=2):
        if not isinstance(row, (list, tuple)) or not any(str(cell).strip() for cell in row):
            continue
        outcome, coerced = parse_row(row, offset, columns, layout, source_key)
        report.coerced_cells += coerced
        report.add(outcome)
    return report
