from __future__ import annotations

import math
from datetime import date
from typing import Any, Iterable, Mapping

from adveronix_dashboard.models import (
    MONDAY,
    STATUS_NO_OVERLAP,
    STATUS_OK,
    STATUS_SOURCE_EMPTY,
    Bucket,
    DateWindow,
    ReconciledWeek,
    ReconcileResult,
)
from adveronix_dashboard.time_windows import (
    is_complete,
    month_key,
    week_end,
    yoy_week_start,
)


def safe_rate(numerator: float, denominator: float, scale: float = 100.0) -> float:
    if not denominator or not math.isfinite(denominator) or not math.isfinite(numerator):
        return 0.0
    return numerator / denominator * scale


def pct_change(current: float, baseline: float) -> float:
    if baseline <= 0:
        return 0.0
    return safe_rate(current - baseline, baseline)


def derive_rates(totals: Mapping[str, float]) -> dict[str, float]:
    clicks = totals.get("clicks", 0.0)
    rates = {
        "ctr": safe_rate(clicks, totals.get("impressions", 0.0)),
        "conv_rate": safe_rate(totals.get("conversions", 0.0), clicks),
    }
    if "spend" in totals:
        rates["avg_cpc"] = safe_rate(totals["spend"], clicks, scale=1.0)
        rates["cpa"] = safe_rate(totals["spend"], totals.get("conversions", 0.0), scale=1.0)
    return rates


def sum_metrics(buckets: Iterable[Bucket]) -> dict[str, float]:
    totals: dict[str, float] = {}
    for bucket in buckets:
        for name, value in bucket.metrics.items():
            totals[name] = totals.get(name, 0.0) + value
    return totals


def reconcile(
    sources: Mapping[str, Mapping[date, Bucket]],
    reference: date,
    limit: int | None = None,
    required_metrics: Iterable[str] = (),
) -> ReconcileResult:
    """AND-join week buckets across sources, keeping complete weeks only.

    A source bucket lacking any of ``required_metrics`` counts as absent for
    that week. Weeks are returned most recent first and truncated to ``limit``
    when given.
    """
    empty_sources = [name for name, buckets in sources.items() if not buckets]
    if not sources or empty_sources:
        return ReconcileResult(status=STATUS_SOURCE_EMPTY, empty_sources=empty_sources)

    required = tuple(required_metrics)
    key_sets = [
        {
            start
            for start, bucket in buckets.items()
            if all(name in bucket.metrics for name in required)
        }
        for buckets in sources.values()
    ]
    common = set.intersection(*key_sets)

    weeks: list[ReconciledWeek] = []
    for start in sorted(common, reverse=True):
        if not is_complete(start, reference):
            continue
        per_source = {name: buckets[start] for name, buckets in sources.items()}
        totals = sum_metrics(per_source.values())
        weeks.append(
            ReconciledWeek(
                start=start,
                end=week_end(start),
                per_source=per_source,
                totals=totals,
                rates=derive_rates(totals),
            )
        )

    if not weeks:
        return ReconcileResult(status=STATUS_NO_OVERLAP)
    if limit is not None:
        weeks = weeks[: max(0, limit)]
    return ReconcileResult(weeks=weeks, status=STATUS_OK)


def monthly_rollup(weeks: Iterable[ReconciledWeek], reference: date) -> list[dict[str, Any]]:
    """Group reconciled weeks by the month of their start date, newest first."""
    months: dict[str, dict[str, dict[str, float]]] = {}
    for week in weeks:
        per_source = months.setdefault(month_key(week.start), {})
        for name, bucket in week.per_source.items():
            sums = per_source.setdefault(name, {})
            for metric, value in bucket.metrics.items():
                sums[metric] = sums.get(metric, 0.0) + value

    current = month_key(reference)
    rollup: list[dict[str, Any]] = []
    for key in sorted(months, reverse=True):
        per_source = months[key]
        totals: dict[str, float] = {}
        for sums in per_source.values():
            for metric, value in sums.items():
                totals[metric] = totals.get(metric, 0.0) + value
        rollup.append(
            {
                "month_key": key,
                "is_mtd": key == current,
                "per_source": per_source,
                "totals": totals,
                "rates": derive_rates(totals),
            }
        )
    return rollup


def year_over_year(
    buckets: Mapping[date, Bucket],
    target_start: date,
    metrics: Iterable[str],
    week_begins_on: str = MONDAY,
) -> dict[str, Any]:
    prior_start = yoy_week_start(target_start, week_begins_on)
    current_bucket = buckets.get(target_start)
    prior_bucket = buckets.get(prior_start)

    current: dict[str, float] = {}
    prior: dict[str, float] = {}
    delta: dict[str, float] = {}
    delta_pct: dict[str, float] = {}
    for metric in metrics:
        current[metric] = current_bucket.get(metric) if current_bucket else 0.0
        prior[metric] = prior_bucket.get(metric) if prior_bucket else 0.0
        delta[metric] = current[metric] - prior[metric]
        delta_pct[metric] = pct_change(current[metric], prior[metric])

    return {
        "week_start": target_start,
        "prior_week_start": prior_start,
        "prior_found": prior_bucket is not None,
        "current": current,
        "prior": prior,
        "delta": delta,
        "delta_pct": delta_pct,
    }


def window_totals(buckets: Mapping[date, Bucket], window: DateWindow) -> dict[str, float]:
    return sum_metrics(
        bucket for start, bucket in buckets.items() if window.start <= start <= window.end
    )


def window_comparison(
    current: Mapping[str, float],
    previous: Mapping[str, float],
) -> dict[str, float]:
    names = sorted(set(current) | set(previous))
    return {
        name: pct_change(current.get(name, 0.0), previous.get(name, 0.0)) for name in names
    }
