from __future__ import annotations

from typing import Any, Mapping

from adveronix_dashboard.config import AgentConfig
from adveronix_dashboard.models import STATUS_OK, STATUS_SOURCE_EMPTY, Finding


# Report name -> key holding its list of periods.
PERIOD_KEYS = {
    "combined-weekly": "weeklyData",
    "google-ads-weekly": "data",
    "google-ads-monthly": "data",
    "bing-ads-weekly": "data",
    "bing-ads-monthly": "data",
    "organic-yoy": "weeks",
    "gsc-weekly": "current4Weeks",
    "gads-landing-pages-weekly": "landing_pages",
    "gads-landing-pages-monthly": "landing_pages",
}
# Paid search reports -> (platform label, fields the latest period must carry).
CRITICAL_FIELDS = {
    "google-ads-weekly": ("Google Ads", ("impressions", "clicks", "spend", "conversions")),
    "google-ads-monthly": ("Google Ads", ("impressions", "clicks", "spend", "conversions")),
    "bing-ads-weekly": ("Bing Ads", ("impressions", "clicks", "spend", "conversions")),
    "bing-ads-monthly": ("Bing Ads", ("impressions", "clicks", "spend", "conversions")),
}


def _row_quality_findings(report: Mapping[str, Any]) -> list[Finding]:
    findings: list[Finding] = []
    skipped = {source: count for source, count in (report.get("skipped_rows") or {}).items() if count}
    if skipped:
        summary = ", ".join(f"{source}: {count}" for source, count in sorted(skipped.items()))
        findings.append(
            Finding(
                severity="medium",
                title="Malformed rows skipped",
                details=f"Rows dropped from aggregation ({summary}).",
                recommendation="Check the export for unparseable dates or blank key cells.",
            )
        )
    coerced = {source: count for source, count in (report.get("coerced_cells") or {}).items() if count}
    if coerced:
        summary = ", ".join(f"{source}: {count}" for source, count in sorted(coerced.items()))
        findings.append(
            Finding(
                severity="low",
                title="Non-numeric metric cells counted as zero",
                details=f"Cells coerced to 0 ({summary}).",
                recommendation="Verify number formatting in the source sheet.",
            )
        )
    return findings


def _missing_field_findings(name: str, report: Mapping[str, Any]) -> list[Finding]:
    label, fields = CRITICAL_FIELDS[name]
    periods = report.get("data") or []
    if not periods:
        return []
    latest = periods[0]
    missing = [field for field in fields if latest.get(field) is None]
    if not missing:
        return []
    period = latest.get("week_start") or latest.get("month_key")
    return [
        Finding(
            severity="high",
            title=f"Missing critical {label} fields",
            details=f"Period {period} has no value for: {', '.join(missing)}.",
            recommendation="Confirm the Adveronix export still includes these columns.",
        )
    ]


def _google_ads_findings(report: Mapping[str, Any], config: AgentConfig) -> list[Finding]:
    weeks = report.get("data") or []
    if not weeks:
        return []
    latest = weeks[0]
    findings: list[Finding] = []

    impressions = float(latest.get("impressions") or 0.0)
    if not config.gads_min_weekly_impressions <= impressions <= config.gads_max_weekly_impressions:
        findings.append(
            Finding(
                severity="high",
                title="Google Ads weekly impressions out of range",
                details=(
                    f"Week {latest.get('week_start')}: {impressions:,.0f} impressions, expected "
                    f"{config.gads_min_weekly_impressions:,.0f}-{config.gads_max_weekly_impressions:,.0f}."
                ),
                recommendation="Check weekly bucketing sums every daily device row.",
            )
        )

    ctr = float(latest.get("ctr") or 0.0)
    if not config.gads_min_ctr_pct <= ctr <= config.gads_max_ctr_pct:
        findings.append(
            Finding(
                severity="medium",
                title="Google Ads CTR out of range",
                details=(
                    f"Week {latest.get('week_start')}: CTR {ctr:.2f}%, expected "
                    f"{config.gads_min_ctr_pct:.1f}-{config.gads_max_ctr_pct:.1f}%."
                ),
                recommendation="Compare clicks and impressions columns against the ads platform UI.",
            )
        )
    return findings


def _combined_findings(report: Mapping[str, Any]) -> list[Finding]:
    status = report.get("status", STATUS_OK)
    if status == STATUS_OK:
        return []
    if status == STATUS_SOURCE_EMPTY:
        empty = ", ".join(report.get("empty_sources") or []) or "unknown"
        return [
            Finding(
                severity="high",
                title="Combined view missing a source",
                details=f"No rows for: {empty}. Every week is dropped from the combined view.",
                recommendation="Check the upstream export for the empty source.",
            )
        ]
    return [
        Finding(
            severity="medium",
            title="No overlapping complete weeks",
            details="All sources have data but no complete week is present in every source.",
            recommendation="Check that the exports cover the same date range.",
        )
    ]


def validate_report(name: str, report: Mapping[str, Any], config: AgentConfig) -> list[Finding]:
    findings = _row_quality_findings(report)

    if name == "combined-weekly":
        findings.extend(_combined_findings(report))
    if name in CRITICAL_FIELDS:
        findings.extend(_missing_field_findings(name, report))
    if name == "google-ads-weekly":
        findings.extend(_google_ads_findings(report, config))

    period_key = PERIOD_KEYS.get(name)
    if period_key and not report.get(period_key) and report.get("status", STATUS_OK) == STATUS_OK:
        findings.append(
            Finding(
                severity="high",
                title="No complete periods",
                details=f"Report '{name}' produced no rows.",
                recommendation="Confirm the sheet has rows dated before the current period.",
            )
        )
    return findings
