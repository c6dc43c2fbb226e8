from __future__ import annotations

import json
from pathlib import Path

import pytest

from adveronix_dashboard.layouts import GADS_ACCOUNT_WEEKLY, GSC_ACCOUNT_DAILY
from adveronix_dashboard.main import _parse_args, _required_ranges, main


GSC_ROWS = [
    ["Date", "Impressions", "Clicks"],
    ["2026-02-01", "100", "10"],
    ["2026-02-09", "200", "20"],
    ["2026-02-16", "50", "5"],
]


def _write_ranges(tmp_path: Path, ranges: dict) -> str:
    path = tmp_path / "ranges.json"
    path.write_text(json.dumps(ranges), encoding="utf-8")
    return str(path)


def _argv(tmp_path: Path, ranges_file: str, *reports: str) -> list[str]:
    argv = [
        "--run-date",
        "2026-02-18",
        "--ranges-file",
        ranges_file,
        "--output-dir",
        str(tmp_path / "out"),
        "--no-alerts",
    ]
    for name in reports:
        argv.extend(["--report", name])
    return argv


def test_required_ranges_are_deduplicated() -> None:
    ranges = _required_ranges(["combined-weekly", "gsc-weekly", "google-ads-weekly"])
    assert len(ranges) == 3
    assert ranges[0] == GSC_ACCOUNT_DAILY.range_name


def test_parse_args_leaves_toggles_unset_by_default() -> None:
    args = _parse_args([])
    assert args.validation_enabled is None
    assert args.alerts_enabled is None
    assert args.report == []


def test_main_writes_report_and_run_log(tmp_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.chdir(tmp_path)
    ranges_file = _write_ranges(tmp_path, {GSC_ACCOUNT_DAILY.range_name: GSC_ROWS})

    main(_argv(tmp_path, ranges_file, "gsc-weekly"))

    report = json.loads((tmp_path / "out" / "gsc-weekly.json").read_text(encoding="utf-8"))
    assert [week["week_start"] for week in report["current4Weeks"]] == ["2026-02-08", "2026-02-01"]

    run_log = json.loads((tmp_path / "out" / "run_log.json").read_text(encoding="utf-8"))
    assert run_log["run_date"] == "2026-02-18"
    assert run_log["reports"][0]["report"] == "gsc-weekly"
    assert run_log["failures"] == []
    assert "Report generated" in capsys.readouterr().out


def test_main_exits_with_no_data_code(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    header_only = [["Day", "Impressions", "Clicks", "Conversions"]]
    ranges_file = _write_ranges(tmp_path, {GADS_ACCOUNT_WEEKLY.range_name: header_only})

    with pytest.raises(SystemExit) as exc_info:
        main(_argv(tmp_path, ranges_file, "google-ads-weekly"))
    assert exc_info.value.code == 2


def test_main_keeps_going_after_a_failed_report(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    ranges_file = _write_ranges(
        tmp_path,
        {
            GSC_ACCOUNT_DAILY.range_name: GSC_ROWS,
            GADS_ACCOUNT_WEEKLY.range_name: [["Day", "Clicks"], ["2026-02-02", "1"]],
        },
    )

    main(_argv(tmp_path, ranges_file, "google-ads-weekly", "gsc-weekly"))

    run_log = json.loads((tmp_path / "out" / "run_log.json").read_text(encoding="utf-8"))
    assert [item["report"] for item in run_log["failures"]] == ["google-ads-weekly"]
    assert "Missing expected header" in run_log["failures"][0]["error"]
    assert (tmp_path / "out" / "gsc-weekly.json").exists()


def test_main_requires_sheets_config_without_ranges_file(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("ADVERONIX_SHEET_ID", raising=False)
    with pytest.raises(SystemExit) as exc_info:
        main(["--report", "gsc-weekly", "--output-dir", str(tmp_path / "out")])
    assert "Google Sheets is not configured" in str(exc_info.value.code)
