from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Union


MONDAY = "monday"
SUNDAY = "sunday"
WEEK = "week"
MONTH = "month"

STATUS_OK = "ok"
STATUS_SOURCE_EMPTY = "source_empty"
STATUS_NO_OVERLAP = "no_overlap"


class NoDataError(RuntimeError):
    """Raised when a sheet range has no rows beyond the header."""


class MissingColumnError(RuntimeError):
    """Raised when an expected header is absent from a sheet range."""


@dataclass(frozen=True)
class DateWindow:
    name: str
    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1


@dataclass
class MetricRecord:
    date: date
    source_key: str
    metrics: dict[str, float] = field(default_factory=dict)
    key: str = ""


@dataclass(frozen=True)
class Skipped:
    row_number: int
    reason: str


@dataclass(frozen=True)
class Ok:
    record: MetricRecord


RowOutcome = Union[Ok, Skipped]


@dataclass
class ParseReport:
    source_key: str
    records: list[MetricRecord] = field(default_factory=list)
    skipped: list[Skipped] = field(default_factory=list)
    # Non-empty metric cells that were not numbers and counted as zero.
    coerced_cells: int = 0

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    def add(self, outcome: RowOutcome) -> None:
        if isinstance(outcome, Ok):
            self.records.append(outcome.record)
        else:
            self.skipped.append(outcome)


@dataclass(frozen=True)
class BucketConfig:
    granularity: str = WEEK
    week_begins_on: str = MONDAY

    def __post_init__(self) -> None:
        if self.granularity not in {WEEK, MONTH}:
            raise ValueError(f"Unsupported granularity: {self.granularity}")
        if self.week_begins_on not in {MONDAY, SUNDAY}:
            raise ValueError(f"Unsupported week boundary: {self.week_begins_on}")


@dataclass
class Bucket:
    # Week buckets are keyed by their start date, month buckets by "YYYY-MM".
    start: Union[date, str]
    metrics: dict[str, float] = field(default_factory=dict)
    rows: int = 0
    complete: bool = False

    def get(self, metric: str) -> float:
        return self.metrics.get(metric, 0.0)


@dataclass
class ReconciledWeek:
    start: date
    end: date
    per_source: dict[str, Bucket]
    totals: dict[str, float] = field(default_factory=dict)
    rates: dict[str, float] = field(default_factory=dict)


@dataclass
class ReconcileResult:
    weeks: list[ReconciledWeek] = field(default_factory=list)
    status: str = STATUS_OK
    empty_sources: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK


@dataclass
class Finding:
    severity: str
    title: str
    details: str
    recommendation: str
