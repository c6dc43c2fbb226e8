from __future__ import annotations

from dataclasses import replace
from datetime import date

import pytest

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
from adveronix_dashboard.models import MissingColumnError, NoDataError
from adveronix_dashboard.reports import REPORTS, build_report
from adveronix_dashboard.validation import validate_report


def _config(**overrides) -> AgentConfig:
    return replace(AgentConfig.from_env(), **overrides)


def _combined_ranges() -> dict[str, list[list[object]]]:
    return {
        GSC_ACCOUNT_DAILY.range_name: [
            ["Date", "Impressions", "Clicks"],
            ["2026-02-01", "100", "10"],
            ["2026-02-03", "100", "10"],
            ["2026-02-09", "200", "20"],
            ["2026-02-16", "50", "5"],
            ["garbage", "1", "1"],
        ],
        GADS_ACCOUNT_WEEKLY.range_name: [
            ["Day", "Device", "Impressions", "Clicks", "Conversions", "Cost"],
            ["2/2/2026", "Mobile", "1,000", "50", "2.4", "$100.00"],
            ["2/10/2026", "Mobile", "1,000", "50", "1.6", "$100.00"],
            ["2/16/2026", "Mobile", "1,000", "50", "1", "$100.00"],
        ],
        BING_ACCOUNT_WEEKLY.range_name: [
            ["Week", "Impressions", "Clicks", "Conversions"],
            ["2026-02-01", "500", "20", "1"],
            ["2026-02-08", "500", "20", "1"],
        ],
    }


def test_registry_lists_every_report() -> None:
    assert set(REPORTS) == {
        "combined-weekly",
        "google-ads-weekly",
        "organic-yoy",
        "gsc-weekly",
        "gads-landing-pages-weekly",
        "gads-landing-pages-monthly",
        "age-analysis",
        "google-ads-monthly",
        "bing-ads-weekly",
        "bing-ads-monthly",
    }
    assert REPORTS["combined-weekly"].ranges == (
        GSC_ACCOUNT_DAILY.range_name,
        GADS_ACCOUNT_WEEKLY.range_name,
        BING_ACCOUNT_WEEKLY.range_name,
    )


def test_unknown_report_name_raises() -> None:
    with pytest.raises(ValueError):
        build_report("nope", {}, date(2026, 2, 18), _config())


def test_combined_weekly_joins_complete_sunday_weeks() -> None:
    report = build_report("combined-weekly", _combined_ranges(), date(2026, 2, 18), _config())

    assert report["status"] == "ok"
    assert [week["week_start"] for week in report["weeklyData"]] == ["2026-02-08", "2026-02-01"]

    latest = report["weeklyData"][0]
    assert latest["week"] == "Feb 8 - Feb 14"
    assert latest["gsc_impressions"] == 200.0
    assert latest["gads_clicks"] == 50.0
    assert latest["gads_conversions"] == 2
    assert latest["bing_impressions"] == 500.0
    assert latest["total_impressions"] == 1700.0
    assert latest["total_clicks"] == 90.0
    assert latest["total_conversions"] == 3
    assert latest["ctr"] == pytest.approx(90 / 1700 * 100)

    assert report["skipped_rows"] == {"gsc": 1, "gads": 0, "bing": 0}
    assert [month["month"] for month in report["monthlyData"]] == ["Feb 2026 (MTD)"]
    assert report["monthlyData"][0]["gsc_impressions"] == 400.0


def test_combined_weekly_respects_week_limit() -> None:
    report = build_report(
        "combined-weekly",
        _combined_ranges(),
        date(2026, 2, 18),
        _config(combined_weeks_limit=1),
    )
    assert len(report["weeklyData"]) == 1
    assert report["monthlyData"][0]["total_clicks"] == 180.0


def test_combined_weekly_reports_empty_source() -> None:
    ranges = _combined_ranges()
    ranges[BING_ACCOUNT_WEEKLY.range_name] = [["Week", "Impressions", "Clicks", "Conversions"]]
    report = build_report("combined-weekly", ranges, date(2026, 2, 18), _config())

    assert report["status"] == "source_empty"
    assert report["empty_sources"] == ["bing"]
    assert report["weeklyData"] == []


def test_combined_weekly_missing_header_fails() -> None:
    ranges = _combined_ranges()
    ranges[GADS_ACCOUNT_WEEKLY.range_name] = [["Day", "Impressions", "Clicks"], ["2/2/2026", "1", "1"]]
    with pytest.raises(MissingColumnError):
        build_report("combined-weekly", ranges, date(2026, 2, 18), _config())


def _gads_ranges() -> dict[str, list[list[object]]]:
    starts = [
        "2027-02-08", "2027-02-01", "2027-01-25", "2027-01-18",
        "2026-02-09", "2026-02-02", "2026-01-26", "2026-01-19",
        "2027-02-15",
    ]
    rows: list[list[object]] = [["Day", "Impressions", "Clicks", "Conversions", "Cost"]]
    rows.extend([start, "20000", "600", "10", "300"] for start in starts)
    return {GADS_ACCOUNT_WEEKLY.range_name: rows}


def test_google_ads_weekly_with_year_over_year() -> None:
    report = build_report("google-ads-weekly", _gads_ranges(), date(2027, 2, 17), _config())

    assert len(report["data"]) == 8
    latest = report["data"][0]
    assert latest["week_start"] == "2027-02-08"
    assert latest["spend"] == 300
    assert latest["ctr"] == pytest.approx(3.0)
    assert latest["avg_cpc"] == pytest.approx(0.5)
    assert latest["cpa"] == 30
    assert latest["roas"] == pytest.approx(10 * 500 / 300)

    assert report["yoyData"] is not None
    assert [week["week_start"] for week in report["yoyData"]] == [
        "2026-02-09",
        "2026-02-02",
        "2026-01-26",
        "2026-01-19",
    ]


def test_google_ads_weekly_yoy_needs_four_weeks() -> None:
    report = build_report(
        "google-ads-weekly",
        _gads_ranges(),
        date(2027, 2, 17),
        _config(google_ads_weeks_limit=2),
    )
    assert len(report["data"]) == 2
    assert report["yoyData"] is None


def test_google_ads_weekly_without_rows_raises() -> None:
    ranges = {GADS_ACCOUNT_WEEKLY.range_name: [["Day", "Impressions", "Clicks", "Conversions"]]}
    with pytest.raises(NoDataError):
        build_report("google-ads-weekly", ranges, date(2027, 2, 17), _config())


def test_google_ads_weekly_without_cost_column_is_flagged() -> None:
    rows = [row[:4] for row in _gads_ranges()[GADS_ACCOUNT_WEEKLY.range_name]]
    ranges = {GADS_ACCOUNT_WEEKLY.range_name: rows}
    report = build_report("google-ads-weekly", ranges, date(2027, 2, 17), _config())

    latest = report["data"][0]
    assert latest["impressions"] == 20000.0
    assert latest["spend"] is None
    assert latest["avg_cpc"] is None
    assert latest["cpa"] is None
    assert latest["roas"] is None

    findings = validate_report("google-ads-weekly", report, _config())
    missing = [finding for finding in findings if finding.title == "Missing critical Google Ads fields"]
    assert len(missing) == 1
    assert "spend" in missing[0].details


def test_google_ads_roas_prefers_conversion_value_column() -> None:
    ranges = {
        GADS_ACCOUNT_WEEKLY.range_name: [
            ["Day", "Impressions", "Clicks", "Conversions", "Cost", "Conv. value"],
            ["2027-02-08", "20000", "600", "10", "300", "1,200"],
        ]
    }
    report = build_report("google-ads-weekly", ranges, date(2027, 2, 17), _config())
    assert report["data"][0]["roas"] == pytest.approx(4.0)


def test_google_ads_monthly_rolls_up_complete_weeks() -> None:
    report = build_report("google-ads-monthly", _gads_ranges(), date(2027, 2, 17), _config())
    months = report["data"]

    assert [month["month_key"] for month in months] == ["2027-02", "2027-01", "2026-02", "2026-01"]
    assert months[0]["month"] == "Feb 2027 (MTD)"
    assert months[0]["is_mtd"] is True
    assert months[0]["impressions"] == 40000.0
    assert months[1]["month"] == "Jan 2027"
    assert months[1]["is_mtd"] is False
    assert months[1]["spend"] == 600
    assert months[1]["cpa"] == 30
    assert months[1]["roas"] == pytest.approx(20 * 500 / 600)

    limited = build_report(
        "google-ads-monthly",
        _gads_ranges(),
        date(2027, 2, 17),
        _config(paid_months_limit=2),
    )
    assert [month["month_key"] for month in limited["data"]] == ["2027-02", "2027-01"]


def test_organic_yoy_compares_aligned_weeks() -> None:
    ranges = {
        GA4_TRAFFIC_WEEKLY_ACCOUNT.range_name: [
            ["Date", "New users", "Ecommerce purchases"],
            ["2027-02-08", "200", "4"],
            ["2026-02-09", "100", "1"],
            ["2027-02-15", "50", "1"],
        ]
    }
    report = build_report("organic-yoy", ranges, date(2027, 2, 17), _config())

    assert len(report["weeks"]) == 2
    latest = report["weeks"][0]
    assert latest["label"] == "Last Week"
    assert latest["week_key"] == "2027-02-08"
    assert latest["conversion_rate"] == pytest.approx(2.0)
    assert latest["yoy"]["week_key"] == "2026-02-09"
    assert latest["yoy"]["users_change_pct"] == pytest.approx(100.0)
    assert latest["yoy"]["purchases_change_pct"] == pytest.approx(300.0)
    assert latest["yoy"]["conv_rate_change"] == pytest.approx(1.0)

    assert report["in_progress"]["week_key"] == "2027-02-15"
    assert report["in_progress"]["label"] == "This Week"
    assert report["in_progress"]["complete"] is False


def test_gsc_weekly_builds_week_over_week() -> None:
    ranges = {GSC_ACCOUNT_DAILY.range_name: _combined_ranges()[GSC_ACCOUNT_DAILY.range_name]}
    report = build_report("gsc-weekly", ranges, date(2026, 2, 18), _config())

    assert [week["week_start"] for week in report["current4Weeks"]] == ["2026-02-08", "2026-02-01"]
    assert report["current4Weeks"][0]["ctr"] == 10.0
    assert report["lastYear4Weeks"] == []
    assert report["wowComparison"]["impressionsChange"] == 0.0
    assert report["wowComparison"]["current"]["clicks"] == 20.0
    assert report["yoyComparison"] is None


def test_landing_pages_weekly_top_pages() -> None:
    ranges = {
        GADS_LANDING_PAGES_WEEKLY.range_name: [
            ["Week", "Campaign", "Landing page", "Clicks", "Conversions"],
            ["2026-02-09", "Brand", "https://example.com/a/", "10", "1"],
            ["2026-02-09", "Brand", "/b", "30", "3"],
            ["2026-02-02", "Generic", "https://example.com/a", "15", "0"],
            ["2026-02-16", "Generic", "/c", "100", "5"],
        ]
    }
    report = build_report("gads-landing-pages-weekly", ranges, date(2026, 2, 18), _config())
    pages = report["landing_pages"]

    assert [page["landing_page"] for page in pages] == ["/b", "/a"]
    a_weeks = pages[1]["weeks"]
    assert a_weeks[0] == {
        "label": "Last Week",
        "date_range": "Feb 9 - Feb 15",
        "clicks": 10.0,
        "conversions": 1.0,
        "conversion_rate": pytest.approx(10.0),
    }
    assert a_weeks[1]["label"] == "2 Weeks Ago"
    assert a_weeks[1]["clicks"] == 15.0
    assert pages[0]["weeks"][1]["clicks"] == 0.0

    top_one = build_report(
        "gads-landing-pages-weekly",
        ranges,
        date(2026, 2, 18),
        _config(landing_pages_top_n=1),
    )
    assert [page["landing_page"] for page in top_one["landing_pages"]] == ["/b"]


def test_landing_pages_monthly_uses_complete_months() -> None:
    ranges = {
        GADS_LANDING_PAGES_MONTHLY.range_name: [
            ["Month", "Landing page", "Clicks", "Conversions"],
            ["2026-01-01", "/a", "40", "2"],
            ["2025-12-01", "/a", "20", "1"],
            ["2026-02-01", "/a", "500", "9"],
        ]
    }
    report = build_report("gads-landing-pages-monthly", ranges, date(2026, 2, 18), _config())
    months = report["landing_pages"][0]["months"]

    assert [entry["month"] for entry in months] == ["Jan 2026", "Dec 2025"]
    assert months[0]["label"] == "Last Month"
    assert months[0]["clicks"] == 40.0


def test_age_analysis_chart_data() -> None:
    ranges = {
        AGE_ANALYSIS_DEVICE.range_name: [
            ["Month", "Device", "Age", "Clicks", "Impressions", "CTR", "Avg. CPC", "Cost", "Avg. CPM", "Conversions"],
            ["2026-01-01", "Mobile", "25-34", "10", "100", "10%", "$1.00", "$10", "$5", "1"],
            ["2026-01-01", "Desktop", "25-34", "20", "100", "20%", "$2.00", "$40", "$5", "2"],
            ["2026-01-01", "Mobile", "18-24", "5", "50", "10%", "$1.50", "$7.50", "$4", "0"],
            ["2026-02-01", "Mobile", "25-34", "4", "40", "10%", "$1.00", "$4", "$5", "0"],
            ["2026-01-01", "Mobile", "Unknown", "1", "1", "100%", "$1.00", "$1", "$1", "0"],
        ]
    }
    report = build_report("age-analysis", ranges, date(2026, 2, 18), _config())
    chart = report["chartData"]

    assert chart["ageGroups"] == ["18-24", "25-34"]
    assert chart["months"] == ["Jan 2026", "Feb 2026"]
    assert chart["monthKeys"] == ["2026-01", "2026-02"]
    assert chart["monthComplete"] == [True, False]
    assert chart["clicks"][1] == {"age": "25-34", "data": [30.0, 4.0]}
    assert chart["clicks"][0]["data"] == [5.0, 0.0]
    assert chart["ctr"][1]["data"] == [15.0, 10.0]
    assert chart["avg_cpc"][1]["data"] == [1.5, 1.0]
    assert chart["cost"][1]["data"] == [50.0, 4.0]


def _bing_ranges() -> dict[str, list[list[object]]]:
    rows: list[list[object]] = [["Week", "Impressions", "Clicks", "Conversions", "Spend"]]
    rows.extend(
        [start, "1,000", "40", "2", "$80.00"]
        for start in ("2026-01-25", "2026-02-01", "2026-02-08", "2026-02-15")
    )
    return {BING_ACCOUNT_WEEKLY.range_name: rows}


def test_bing_ads_weekly_last_complete_sunday_weeks() -> None:
    report = build_report("bing-ads-weekly", _bing_ranges(), date(2026, 2, 18), _config())
    weeks = report["data"]

    assert [week["week_start"] for week in weeks] == ["2026-02-08", "2026-02-01", "2026-01-25"]
    latest = weeks[0]
    assert latest["week"] == "Feb 8 - Feb 14"
    assert latest["ctr"] == pytest.approx(4.0)
    assert latest["avg_cpc"] == pytest.approx(2.0)
    assert latest["cpa"] == 40
    assert latest["roas"] == pytest.approx(2 * 100 / 80)
    assert report["skipped_rows"] == {"bing": 0}

    limited = build_report(
        "bing-ads-weekly", _bing_ranges(), date(2026, 2, 18), _config(bing_weeks_limit=2)
    )
    assert len(limited["data"]) == 2


def test_bing_ads_weekly_without_spend_is_flagged() -> None:
    rows = [row[:4] for row in _bing_ranges()[BING_ACCOUNT_WEEKLY.range_name]]
    report = build_report(
        "bing-ads-weekly", {BING_ACCOUNT_WEEKLY.range_name: rows}, date(2026, 2, 18), _config()
    )
    assert report["data"][0]["spend"] is None

    findings = validate_report("bing-ads-weekly", report, _config())
    assert [finding.title for finding in findings] == ["Missing critical Bing Ads fields"]
    assert "2026-02-08" in findings[0].details


def test_bing_ads_monthly_marks_current_month() -> None:
    report = build_report("bing-ads-monthly", _bing_ranges(), date(2026, 2, 18), _config())
    months = report["data"]

    assert [month["month"] for month in months] == ["Feb 2026 (MTD)", "Jan 2026"]
    assert months[0]["clicks"] == 80.0
    assert months[0]["spend"] == 160
    assert months[1]["is_mtd"] is False
    assert months[1]["impressions"] == 1000.0
    assert validate_report("bing-ads-monthly", report, _config()) == []
