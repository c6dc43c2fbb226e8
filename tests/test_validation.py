from __future__ import annotations

from dataclasses import replace

from adveronix_dashboard.config import AgentConfig
from adveronix_dashboard.validation import validate_report


def _config() -> AgentConfig:
    return replace(
        AgentConfig.from_env(),
        gads_min_weekly_impressions=15000.0,
        gads_max_weekly_impressions=30000.0,
        gads_min_ctr_pct=2.0,
        gads_max_ctr_pct=10.0,
    )


def _gads_week(**overrides) -> dict:
    week = {
        "week_start": "2026-02-09",
        "impressions": 20000.0,
        "clicks": 600.0,
        "spend": 300,
        "conversions": 10,
        "ctr": 3.0,
    }
    week.update(overrides)
    return week


def _titles(findings) -> list[str]:
    return [finding.title for finding in findings]


def test_healthy_google_ads_report_has_no_findings() -> None:
    report = {"data": [_gads_week()], "skipped_rows": {"gads": 0}, "coerced_cells": {"gads": 0}}
    assert validate_report("google-ads-weekly", report, _config()) == []


def test_google_ads_ranges_and_missing_fields() -> None:
    report = {"data": [_gads_week(impressions=5000.0, ctr=12.0, spend=None)]}
    findings = validate_report("google-ads-weekly", report, _config())

    assert _titles(findings) == [
        "Missing critical Google Ads fields",
        "Google Ads weekly impressions out of range",
        "Google Ads CTR out of range",
    ]
    assert "spend" in findings[0].details
    assert findings[1].severity == "high"
    assert findings[2].severity == "medium"


def test_row_quality_findings() -> None:
    report = {
        "weeks": [{"week_key": "2026-02-09"}],
        "skipped_rows": {"ga4": 3},
        "coerced_cells": {"ga4": 1},
    }
    findings = validate_report("organic-yoy", report, _config())

    assert _titles(findings) == [
        "Malformed rows skipped",
        "Non-numeric metric cells counted as zero",
    ]
    assert "ga4: 3" in findings[0].details


def test_combined_status_findings() -> None:
    empty = validate_report(
        "combined-weekly",
        {"status": "source_empty", "empty_sources": ["bing"], "weeklyData": []},
        _config(),
    )
    assert _titles(empty) == ["Combined view missing a source"]
    assert "bing" in empty[0].details

    no_overlap = validate_report(
        "combined-weekly",
        {"status": "no_overlap", "empty_sources": [], "weeklyData": []},
        _config(),
    )
    assert _titles(no_overlap) == ["No overlapping complete weeks"]


def test_empty_period_list_is_flagged() -> None:
    findings = validate_report("gsc-weekly", {"current4Weeks": []}, _config())
    assert _titles(findings) == ["No complete periods"]
