from __future__ import annotations

from datetime import date
from typing import Iterable, Union

from adveronix_dashboard.models import MONTH, Bucket, BucketConfig, MetricRecord
from adveronix_dashboard.time_windows import (
    is_complete,
    is_month_complete,
    month_key,
    week_start,
)


BucketKey = Union[date, str]


def bucket_key(day: date, config: BucketConfig) -> BucketKey:
    if config.granularity == MONTH:
        return month_key(day)
    return week_start(day, config.week_begins_on)


def bucket_is_complete(key: BucketKey, reference: date) -> bool:
    if isinstance(key, str):
        return is_month_complete(key, reference)
    return is_complete(key, reference)


def accumulate(bucket: Bucket, record: MetricRecord) -> Bucket:
    """Add the record's metrics to the running sums; absent metrics add nothing."""
    for name, value in record.metrics.items():
        bucket.metrics[name] = bucket.metrics.get(name, 0.0) + value
    bucket.rows += 1
    return bucket


def bucket_records(
    records: Iterable[MetricRecord],
    config: BucketConfig,
    reference: date,
) -> dict[BucketKey, Bucket]:
    buckets: dict[BucketKey, Bucket] = {}
    for record in records:
        key = bucket_key(record.date, config)
        bucket = buckets.get(key)
        if bucket is None:
            bucket = Bucket(start=key, complete=bucket_is_complete(key, reference))
            buckets[key] = bucket
        accumulate(bucket, record)
    return buckets


def bucket_records_by_key(
    records: Iterable[MetricRecord],
    config: BucketConfig,
    reference: date,
) -> dict[BucketKey, dict[str, Bucket]]:
    """Bucket per period and then per record key (landing page, age group, ...)."""
    grouped: dict[BucketKey, dict[str, Bucket]] = {}
    for record in records:
        key = bucket_key(record.date, config)
        per_key = grouped.setdefault(key, {})
        bucket = per_key.get(record.key)
        if bucket is None:
            bucket = Bucket(start=key, complete=bucket_is_complete(key, reference))
            per_key[record.key] = bucket
        accumulate(bucket, record)
    return grouped


def rollup_by_month(buckets: dict[BucketKey, Bucket], reference: date) -> dict[str, Bucket]:
    """Sum complete week buckets into the month their week starts in.

    The current month is kept with ``complete=False`` so callers can label it
    month-to-date.
    """
    months: dict[str, Bucket] = {}
    for key, bucket in buckets.items():
        if isinstance(key, str) or not bucket.complete:
            continue
        month = month_key(key)
        target = months.get(month)
        if target is None:
            target = Bucket(start=month, complete=is_month_complete(month, reference))
            months[month] = target
        for name, value in bucket.metrics.items():
            target.metrics[name] = target.metrics.get(name, 0.0) + value
        target.rows += bucket.rows
    return months


def ordered(buckets: dict[BucketKey, Bucket]) -> list[Bucket]:
    """Most recent first."""
    return [buckets[key] for key in sorted(buckets, reverse=True)]


def last_complete(buckets: dict[BucketKey, Bucket], count: int) -> list[Bucket]:
    """Most recent ``count`` complete buckets; in-progress periods are left out."""
    return [bucket for bucket in ordered(buckets) if bucket.complete][: max(0, count)]


def last_complete_keys(keys: Iterable[BucketKey], reference: date, count: int) -> list[BucketKey]:
    complete = [key for key in keys if bucket_is_complete(key, reference)]
    return sorted(complete, reverse=True)[: max(0, count)]
