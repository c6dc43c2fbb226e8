from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Callable, Mapping, Sequence

from adveronix_dashboard.bucketing import (
    bucket_is_complete,
    bucket_records,
    bucket_records_by_key,
    last_complete,
    last_complete_keys,
    ordered,
    rollup_by_month,
)
from adveronix_dashboard.config import AgentConfig
from adveronix_dashboard.layouts import (
    AGE_ANALYSIS_DEVICE,
    BING_ACCOUNT_WEEKLY,
    GA4_TRAFFIC_WEEKLY_ACCOUNT,
    GADS_ACCOUNT_WEEKLY,
    GADS_LANDING_PAGES_MONTHLY,
    GADS_LANDING_PAGES_WEEKLY,
    GSC_ACCOUNT_DAILY,
)
from adveronix_dashboard.models import (
    MONDAY,
    MONTH,
    SUNDAY,
    WEEK,
    Bucket,
    BucketConfig,
    NoDataError,
    ParseReport,
)
from adveronix_dashboard.parsing import SheetLayout, parse_rows, simplify_url
from adveronix_dashboard.reconcile import (
    derive_rates,
    monthly_rollup,
    pct_change,
    reconcile,
    safe_rate,
    window_comparison,
    window_totals,
    year_over_year,
)
from adveronix_dashboard.time_windows import (
    compute_windows,
    format_date_range,
    format_month,
    period_label,
    week_end,
    week_start,
    yoy_week_start,
)


Ranges = Mapping[str, Sequence[Sequence[object]]]

AGE_ORDER = ("18-24", "25-34", "35-44", "45-54", "55-64", ">64")
AGE_AVERAGED_METRICS = ("ctr", "avg_cpc", "avg_cpm")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse(ranges: Ranges, layout: SheetLayout, source_key: str) -> ParseReport:
    return parse_rows(ranges.get(layout.range_name), layout, source_key)


def _parse_or_empty(ranges: Ranges, layout: SheetLayout, source_key: str) -> ParseReport:
    """Empty ranges become empty sources so the join can report which one failed."""
    try:
        return _parse(ranges, layout, source_key)
    except NoDataError:
        return ParseReport(source_key=source_key)


def _quality(*reports: ParseReport) -> dict[str, Any]:
    return {
        "skipped_rows": {report.source_key: report.skipped_count for report in reports},
        "coerced_cells": {report.source_key: report.coerced_cells for report in reports},
    }


def combined_weekly(ranges: Ranges, reference: date, config: AgentConfig) -> dict[str, Any]:
    """GSC + Google Ads + Bing Ads joined on Sunday-start weeks."""
    week_config = BucketConfig(granularity=WEEK, week_begins_on=SUNDAY)
    parsed = {
        "gsc": _parse_or_empty(ranges, GSC_ACCOUNT_DAILY, "gsc"),
        "gads": _parse_or_empty(ranges, GADS_ACCOUNT_WEEKLY, "gads"),
        "bing": _parse_or_empty(ranges, BING_ACCOUNT_WEEKLY, "bing"),
    }
    sources = {
        name: bucket_records(report.records, week_config, reference)
        for name, report in parsed.items()
    }
    result = reconcile(sources, reference, required_metrics=("impressions", "clicks"))

    weekly: list[dict[str, Any]] = []
    for week in result.weeks[: config.combined_weeks_limit]:
        gsc, gads, bing = week.per_source["gsc"], week.per_source["gads"], week.per_source["bing"]
        weekly.append(
            {
                "week": format_date_range(week.start, week.end),
                "week_start": week.start.isoformat(),
                "week_end": week.end.isoformat(),
                "gsc_impressions": gsc.get("impressions"),
                "gsc_clicks": gsc.get("clicks"),
                "gads_impressions": gads.get("impressions"),
                "gads_clicks": gads.get("clicks"),
                "gads_conversions": round(gads.get("conversions")),
                "bing_impressions": bing.get("impressions"),
                "bing_clicks": bing.get("clicks"),
                "bing_conversions": round(bing.get("conversions")),
                "total_impressions": week.totals.get("impressions", 0.0),
                "total_clicks": week.totals.get("clicks", 0.0),
                "total_conversions": round(week.totals.get("conversions", 0.0)),
                "ctr": week.rates["ctr"],
                "conv_rate": week.rates["conv_rate"],
            }
        )

    monthly: list[dict[str, Any]] = []
    for month in monthly_rollup(result.weeks, reference):
        label = format_month(month["month_key"])
        row: dict[str, Any] = {
            "month": f"{label} (MTD)" if month["is_mtd"] else label,
            "month_key": month["month_key"],
            "is_mtd": month["is_mtd"],
        }
        for source, sums in month["per_source"].items():
            for metric, value in sums.items():
                row[f"{source}_{metric}"] = value
        row["total_impressions"] = month["totals"].get("impressions", 0.0)
        row["total_clicks"] = month["totals"].get("clicks", 0.0)
        row["total_conversions"] = round(month["totals"].get("conversions", 0.0))
        row["conv_rate"] = month["rates"]["conv_rate"]
        monthly.append(row)

    return {
        "status": result.status,
        "empty_sources": result.empty_sources,
        "weeklyData": weekly,
        "monthlyData": monthly,
        **_quality(*parsed.values()),
        "last_updated": _now_iso(),
    }


def _present(buckets: Mapping[Any, Any], names: Sequence[str]) -> tuple[str, ...]:
    """Metric names that at least one bucket carries."""
    return tuple(name for name in names if any(name in bucket.metrics for bucket in buckets.values()))


def _roas(totals: Mapping[str, float], per_conversion_value: float) -> float:
    """Return on ad spend from the value column when exported, else a flat value per conversion."""
    spend = totals.get("spend", 0.0)
    if "conv_value" in totals:
        return safe_rate(totals["conv_value"], spend, scale=1.0)
    return safe_rate(totals.get("conversions", 0.0) * per_conversion_value, spend, scale=1.0)


def _paid_metrics(metrics: Mapping[str, float], per_conversion_value: float) -> dict[str, Any]:
    # Cost fields stay None when the sheet has no spend column so validation can flag it.
    totals = dict(metrics)
    has_spend = "spend" in totals
    rates = derive_rates(totals)
    return {
        "spend": round(totals["spend"]) if has_spend else None,
        "impressions": totals.get("impressions", 0.0),
        "clicks": totals.get("clicks", 0.0),
        "ctr": rates["ctr"],
        "avg_cpc": rates["avg_cpc"] if has_spend else None,
        "conversions": round(totals.get("conversions", 0.0)),
        "conv_rate": rates["conv_rate"],
        "cpa": round(rates["cpa"]) if has_spend else None,
        "roas": _roas(totals, per_conversion_value) if has_spend else None,
    }


def _paid_week_row(start: date, metrics: Mapping[str, float], per_conversion_value: float) -> dict[str, Any]:
    end = week_end(start)
    return {
        "week": format_date_range(start, end),
        "week_start": start.isoformat(),
        "week_end": end.isoformat(),
        **_paid_metrics(metrics, per_conversion_value),
    }


def _paid_month_row(bucket: Bucket, per_conversion_value: float) -> dict[str, Any]:
    label = format_month(bucket.start)
    return {
        "month": label if bucket.complete else f"{label} (MTD)",
        "month_key": bucket.start,
        "is_mtd": not bucket.complete,
        **_paid_metrics(bucket.metrics, per_conversion_value),
    }


def google_ads_weekly(ranges: Ranges, reference: date, config: AgentConfig) -> dict[str, Any]:
    """Monday-start Google Ads weeks with a 52-week aligned comparison for the last four."""
    report = _parse(ranges, GADS_ACCOUNT_WEEKLY, "gads")
    buckets = bucket_records(report.records, BucketConfig(WEEK, MONDAY), reference)
    value = config.gads_conversion_value
    recent = last_complete(buckets, config.google_ads_weeks_limit)
    weekly = [_paid_week_row(bucket.start, bucket.metrics, value) for bucket in recent]

    metrics = _present(buckets, ("impressions", "clicks", "conversions", "spend", "conv_value"))
    yoy_weeks: list[dict[str, Any]] = []
    for bucket in recent[:4]:
        comparison = year_over_year(buckets, bucket.start, metrics)
        if not comparison["prior_found"]:
            break
        yoy_weeks.append(_paid_week_row(comparison["prior_week_start"], comparison["prior"], value))

    return {
        "data": weekly,
        "yoyData": yoy_weeks if len(yoy_weeks) == 4 else None,
        **_quality(report),
        "last_updated": _now_iso(),
    }


def _paid_monthly(
    ranges: Ranges,
    layout: SheetLayout,
    source_key: str,
    week_begins_on: str,
    per_conversion_value: float,
    reference: date,
    config: AgentConfig,
) -> dict[str, Any]:
    report = _parse(ranges, layout, source_key)
    weeks = bucket_records(report.records, BucketConfig(WEEK, week_begins_on), reference)
    months = ordered(rollup_by_month(weeks, reference))[: config.paid_months_limit]
    return {
        "data": [_paid_month_row(month, per_conversion_value) for month in months],
        **_quality(report),
        "last_updated": _now_iso(),
    }


def google_ads_monthly(ranges: Ranges, reference: date, config: AgentConfig) -> dict[str, Any]:
    """Complete Google Ads weeks rolled up by the month they start in."""
    return _paid_monthly(
        ranges, GADS_ACCOUNT_WEEKLY, "gads", MONDAY, config.gads_conversion_value, reference, config
    )


def bing_ads_weekly(ranges: Ranges, reference: date, config: AgentConfig) -> dict[str, Any]:
    report = _parse(ranges, BING_ACCOUNT_WEEKLY, "bing")
    buckets = bucket_records(report.records, BucketConfig(WEEK, SUNDAY), reference)
    return {
        "data": [
            _paid_week_row(bucket.start, bucket.metrics, config.bing_conversion_value)
            for bucket in last_complete(buckets, config.bing_weeks_limit)
        ],
        **_quality(report),
        "last_updated": _now_iso(),
    }


def bing_ads_monthly(ranges: Ranges, reference: date, config: AgentConfig) -> dict[str, Any]:
    return _paid_monthly(
        ranges, BING_ACCOUNT_WEEKLY, "bing", SUNDAY, config.bing_conversion_value, reference, config
    )


def _organic_stats(users: float, purchases: float) -> dict[str, float]:
    return {
        "users": users,
        "purchases": purchases,
        "conversion_rate": safe_rate(purchases, users),
    }


def _organic_week(buckets: Mapping[date, Any], start: date, label: str, complete: bool) -> dict[str, Any]:
    comparison = year_over_year(buckets, start, ("users", "purchases"))
    current = _organic_stats(comparison["current"]["users"], comparison["current"]["purchases"])
    prior = _organic_stats(comparison["prior"]["users"], comparison["prior"]["purchases"])
    prior_start = comparison["prior_week_start"]
    return {
        "week_key": start.isoformat(),
        "label": label,
        "date_range": format_date_range(start, week_end(start)),
        "complete": complete,
        **current,
        "yoy": {
            "week_key": prior_start.isoformat(),
            "date_range": format_date_range(prior_start, week_end(prior_start)),
            **prior,
            "users_change": comparison["delta"]["users"],
            "users_change_pct": comparison["delta_pct"]["users"],
            "purchases_change": comparison["delta"]["purchases"],
            "purchases_change_pct": comparison["delta_pct"]["purchases"],
            "conv_rate_change": current["conversion_rate"] - prior["conversion_rate"],
            "conv_rate_change_pct": pct_change(current["conversion_rate"], prior["conversion_rate"]),
        },
    }


def organic_yoy(ranges: Ranges, reference: date, config: AgentConfig) -> dict[str, Any]:
    """GA4 account traffic per Monday week against the week 52 weeks earlier."""
    report = _parse(ranges, GA4_TRAFFIC_WEEKLY_ACCOUNT, "ga4")
    buckets = bucket_records(report.records, BucketConfig(WEEK, MONDAY), reference)

    weeks = [
        _organic_week(buckets, bucket.start, period_label(idx), True)
        for idx, bucket in enumerate(last_complete(buckets, config.organic_yoy_weeks))
    ]

    current_start = week_start(reference, MONDAY)
    in_progress = None
    if current_start in buckets:
        in_progress = _organic_week(buckets, current_start, period_label(0, include_current=True), False)

    return {
        "weeks": weeks,
        "in_progress": in_progress,
        **_quality(report),
        "last_updated": _now_iso(),
    }


def _gsc_week(buckets: Mapping[date, Any], start: date) -> dict[str, Any]:
    bucket = buckets.get(start)
    impressions = bucket.get("impressions") if bucket else 0.0
    clicks = bucket.get("clicks") if bucket else 0.0
    end = week_end(start)
    return {
        "week": format_date_range(start, end),
        "week_start": start.isoformat(),
        "week_end": end.isoformat(),
        "year": start.year,
        "impressions": impressions,
        "clicks": clicks,
        "ctr": round(safe_rate(clicks, impressions), 2),
    }


def _with_ctr(totals: Mapping[str, float]) -> dict[str, float]:
    impressions = totals.get("impressions", 0.0)
    clicks = totals.get("clicks", 0.0)
    return {"impressions": impressions, "clicks": clicks, "ctr": safe_rate(clicks, impressions)}


def gsc_weekly(ranges: Ranges, reference: date, config: AgentConfig) -> dict[str, Any]:
    """Search Console Sunday weeks: last four complete weeks, WoW and 4-week YoY."""
    report = _parse(ranges, GSC_ACCOUNT_DAILY, "gsc")
    buckets = bucket_records(report.records, BucketConfig(WEEK, SUNDAY), reference)
    windows = compute_windows(reference, SUNDAY)

    current_starts = [bucket.start for bucket in last_complete(buckets, 4)]
    current_weeks = [_gsc_week(buckets, start) for start in current_starts]
    last_year_weeks = [
        _gsc_week(buckets, yoy_week_start(start, SUNDAY))
        for start in current_starts
        if yoy_week_start(start, SUNDAY) in buckets
    ]

    this_week = _with_ctr(window_totals(buckets, windows["current_week"]))
    last_week = _with_ctr(window_totals(buckets, windows["previous_week"]))
    wow = None
    if this_week["impressions"] > 0 and last_week["impressions"] > 0:
        changes = window_comparison(this_week, last_week)
        wow = {
            "current": this_week,
            "previous": last_week,
            "impressionsChange": changes["impressions"],
            "clicksChange": changes["clicks"],
            "ctrChange": changes["ctr"],
        }

    current_4w = _with_ctr(window_totals(buckets, windows["current_28d"]))
    last_year_4w = _with_ctr(window_totals(buckets, windows["yoy_28d"]))
    yoy = None
    if current_4w["impressions"] > 0 and last_year_4w["impressions"] > 0:
        changes = window_comparison(current_4w, last_year_4w)
        yoy = {
            "current": current_4w,
            "lastYear": last_year_4w,
            "impressionsChange": changes["impressions"],
            "clicksChange": changes["clicks"],
            "ctrChange": changes["ctr"],
        }

    return {
        "current4Weeks": current_weeks,
        "lastYear4Weeks": last_year_weeks,
        "wowComparison": wow,
        "yoyComparison": yoy,
        **_quality(report),
        "last_updated": _now_iso(),
    }


def _landing_pages(
    ranges: Ranges,
    layout: SheetLayout,
    granularity: str,
    reference: date,
    config: AgentConfig,
) -> dict[str, Any]:
    report = _parse(ranges, layout, "gads_landing_pages")
    for record in report.records:
        record.key = simplify_url(record.key)

    grouped = bucket_records_by_key(report.records, BucketConfig(granularity, MONDAY), reference)
    periods = last_complete_keys(grouped.keys(), reference, config.landing_pages_periods)

    page_clicks: dict[str, float] = {}
    for key in periods:
        for page, bucket in grouped[key].items():
            page_clicks[page] = page_clicks.get(page, 0.0) + bucket.get("clicks")
    top_pages = sorted(page_clicks, key=lambda page: (-page_clicks[page], page))[: config.landing_pages_top_n]

    unit = "Month" if granularity == MONTH else "Week"
    series_name = "months" if granularity == MONTH else "weeks"
    pages: list[dict[str, Any]] = []
    for page in top_pages:
        series: list[dict[str, Any]] = []
        for idx, key in enumerate(periods):
            bucket = grouped[key].get(page)
            clicks = bucket.get("clicks") if bucket else 0.0
            conversions = bucket.get("conversions") if bucket else 0.0
            entry: dict[str, Any] = {"label": period_label(idx, unit)}
            if granularity == MONTH:
                entry["month"] = format_month(key)
            else:
                entry["date_range"] = format_date_range(key, week_end(key))
            entry.update(
                {
                    "clicks": clicks,
                    "conversions": conversions,
                    "conversion_rate": safe_rate(conversions, clicks),
                }
            )
            series.append(entry)
        pages.append({"landing_page": page, series_name: series})

    return {
        "landing_pages": pages,
        **_quality(report),
        "last_updated": _now_iso(),
    }


def gads_landing_pages_weekly(ranges: Ranges, reference: date, config: AgentConfig) -> dict[str, Any]:
    return _landing_pages(ranges, GADS_LANDING_PAGES_WEEKLY, WEEK, reference, config)


def gads_landing_pages_monthly(ranges: Ranges, reference: date, config: AgentConfig) -> dict[str, Any]:
    return _landing_pages(ranges, GADS_LANDING_PAGES_MONTHLY, MONTH, reference, config)


def _age_sort_key(age: str) -> tuple[int, str]:
    if age in AGE_ORDER:
        return AGE_ORDER.index(age), age
    return len(AGE_ORDER), age


def age_analysis(ranges: Ranges, reference: date, config: AgentConfig) -> dict[str, Any]:
    """Monthly Google Ads metrics per age group, summed across device rows.

    Ratio columns (CTR, CPC, CPM) are averaged over the device rows instead.
    """
    report = _parse(ranges, AGE_ANALYSIS_DEVICE, "age_analysis")
    grouped = bucket_records_by_key(report.records, BucketConfig(MONTH), reference)
    month_keys = sorted(grouped)
    ages = sorted(
        {age for per_age in grouped.values() for age in per_age if age.lower() != "unknown"},
        key=_age_sort_key,
    )

    def series(metric: str) -> list[dict[str, Any]]:
        out = []
        for age in ages:
            data = []
            for key in month_keys:
                bucket = grouped[key].get(age)
                if bucket is None:
                    data.append(0.0)
                elif metric in AGE_AVERAGED_METRICS:
                    data.append(safe_rate(bucket.get(metric), bucket.rows, scale=1.0))
                else:
                    data.append(bucket.get(metric))
            out.append({"age": age, "data": data})
        return out

    chart_data: dict[str, Any] = {
        "months": [format_month(key) for key in month_keys],
        "monthKeys": month_keys,
        "monthComplete": [bucket_is_complete(key, reference) for key in month_keys],
        "ageGroups": ages,
    }
    for metric in ("clicks", "impressions", "ctr", "avg_cpc", "spend", "conversions"):
        chart_data["cost" if metric == "spend" else metric] = series(metric)

    return {
        "chartData": chart_data,
        **_quality(report),
        "last_updated": _now_iso(),
    }


@dataclass(frozen=True)
class ReportSpec:
    name: str
    layouts: tuple[SheetLayout, ...]
    build: Callable[[Ranges, date, AgentConfig], dict[str, Any]]

    @property
    def ranges(self) -> tuple[str, ...]:
        return tuple(layout.range_name for layout in self.layouts)


REPORTS: dict[str, ReportSpec] = {
    spec.name: spec
    for spec in (
        ReportSpec(
            "combined-weekly",
            (GSC_ACCOUNT_DAILY, GADS_ACCOUNT_WEEKLY, BING_ACCOUNT_WEEKLY),
            combined_weekly,
        ),
        ReportSpec("google-ads-weekly", (GADS_ACCOUNT_WEEKLY,), google_ads_weekly),
        ReportSpec("organic-yoy", (GA4_TRAFFIC_WEEKLY_ACCOUNT,), organic_yoy),
        ReportSpec("gsc-weekly", (GSC_ACCOUNT_DAILY,), gsc_weekly),
        ReportSpec("gads-landing-pages-weekly", (GADS_LANDING_PAGES_WEEKLY,), gads_landing_pages_weekly),
        ReportSpec("gads-landing-pages-monthly", (GADS_LANDING_PAGES_MONTHLY,), gads_landing_pages_monthly),
        ReportSpec("age-analysis", (AGE_ANALYSIS_DEVICE,), age_analysis),
        ReportSpec("google-ads-monthly", (GADS_ACCOUNT_WEEKLY,), google_ads_monthly),
        ReportSpec("bing-ads-weekly", (BING_ACCOUNT_WEEKLY,), bing_ads_weekly),
        ReportSpec("bing-ads-monthly", (BING_ACCOUNT_WEEKLY,), bing_ads_monthly),
    )
}


def build_report(
    name: str,
    ranges: Ranges,
    reference: date,
    config: AgentConfig,
) -> dict[str, Any]:
    spec = REPORTS.get(name)
    if spec is None:
        raise ValueError(f"Unknown report: {name}. Available: {', '.join(sorted(REPORTS))}.")
    return spec.build(ranges, reference, config)
