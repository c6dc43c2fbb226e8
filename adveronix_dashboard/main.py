from __future__ import annotations

import argparse
import json
import time
from dataclasses import asdict, replace
from datetime import date
from pathlib import Path
from typing import Any

from dotenv import find_dotenv, load_dotenv

from adveronix_dashboard.clients.alert_client import AlertClient
from adveronix_dashboard.clients.sheets_client import SheetsClient
from adveronix_dashboard.config import AgentConfig
from adveronix_dashboard.models import Finding, MissingColumnError, NoDataError
from adveronix_dashboard.reports import REPORTS, Ranges, build_report
from adveronix_dashboard.validation import validate_report


EXIT_NO_DATA = 2


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Adveronix dashboard rollups")
    parser.add_argument(
        "--run-date",
        dest="run_date",
        help="Reference date in YYYY-MM-DD format (default: today)",
    )
    parser.add_argument(
        "--report",
        action="append",
        choices=sorted(REPORTS.keys()),
        default=[],
        help="Report to build (can be repeated; default: REPORTS from environment).",
    )
    parser.add_argument(
        "--ranges-file",
        dest="ranges_file",
        help="JSON file mapping range names to rows; skips the Sheets API.",
    )
    parser.add_argument(
        "--output-dir",
        dest="output_dir",
        help="Directory for report JSON files (default: OUTPUT_DIR).",
    )
    parser.add_argument(
        "--no-validation",
        dest="validation_enabled",
        action="store_false",
        help="Skip data validation checks for this run.",
    )
    parser.add_argument(
        "--no-alerts",
        dest="alerts_enabled",
        action="store_false",
        help="Do not post validation findings to the alert webhook.",
    )
    parser.set_defaults(validation_enabled=None, alerts_enabled=None)
    return parser.parse_args(argv)


def _parse_run_date(raw: str | None) -> date:
    if not raw:
        return date.today()
    return date.fromisoformat(raw)


def _apply_runtime_toggles(config: AgentConfig, args: argparse.Namespace) -> AgentConfig:
    updated = config
    if args.report:
        updated = replace(updated, reports=tuple(args.report))
    if args.output_dir:
        updated = replace(updated, output_dir=args.output_dir)
    if args.validation_enabled is not None:
        updated = replace(updated, validation_enabled=bool(args.validation_enabled))
    if args.alerts_enabled is not None:
        updated = replace(updated, alerts_enabled=bool(args.alerts_enabled))
    return updated


def _required_ranges(report_names: list[str]) -> list[str]:
    ranges: list[str] = []
    for name in report_names:
        for range_name in REPORTS[name].ranges:
            if range_name not in ranges:
                ranges.append(range_name)
    return ranges


def _load_ranges_file(path_value: str) -> dict[str, list[list[object]]]:
    path = Path(path_value)
    if not path.exists():
        raise SystemExit(f"Ranges file not found: {path_value}")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise SystemExit(f"Invalid JSON in ranges file: {path_value}") from exc
    if not isinstance(payload, dict):
        raise SystemExit("Ranges file must contain an object keyed by range name.")
    return {str(key): value for key, value in payload.items() if isinstance(value, list)}


def _fetch_ranges(config: AgentConfig, range_names: list[str]) -> dict[str, list[list[object]]]:
    client = SheetsClient(
        spreadsheet_id=config.sheet_id,
        credentials_b64=config.sheets_credentials_b64,
        credentials_path=config.sheets_credentials_path,
        token_path=config.sheets_token_path,
        http_timeout_sec=config.sheets_http_timeout_sec,
        api_retries=config.sheets_api_retries,
    )
    return client.read_ranges(range_names)


def _run_report(
    name: str,
    ranges: Ranges,
    run_date: date,
    config: AgentConfig,
    output_dir: Path,
) -> dict[str, Any]:
    started = time.perf_counter()
    report = build_report(name, ranges, run_date, config)
    findings: list[Finding] = []
    if config.validation_enabled:
        findings = validate_report(name, report, config)

    output_path = output_dir / f"{name}.json"
    output_path.write_text(json.dumps(report, ensure_ascii=False, indent=2), encoding="utf-8")
    return {
        "report": name,
        "path": str(output_path),
        "status": str(report.get("status", "ok")),
        "skipped_rows": report.get("skipped_rows", {}),
        "coerced_cells": report.get("coerced_cells", {}),
        "findings": [asdict(finding) for finding in findings],
        "runtime_sec": round(time.perf_counter() - started, 3),
    }


def main(argv: list[str] | None = None) -> None:
    try:
        load_dotenv(find_dotenv(usecwd=True), override=False)
    except OSError:
        pass

    args = _parse_args(argv)
    run_date = _parse_run_date(args.run_date)
    config = _apply_runtime_toggles(AgentConfig.from_env(), args)

    unknown = [name for name in config.reports if name not in REPORTS]
    if unknown:
        raise SystemExit(
            f"Unknown report(s): {', '.join(unknown)}. Available: {', '.join(sorted(REPORTS))}."
        )
    report_names = list(config.reports)

    range_names = _required_ranges(report_names)
    if args.ranges_file:
        ranges = _load_ranges_file(args.ranges_file)
    else:
        if not config.sheets_enabled:
            raise SystemExit(
                "Google Sheets is not configured. Provide ADVERONIX_SHEET_ID and either "
                "GOOGLE_SHEETS_CREDENTIALS or GOOGLE_SHEETS_CREDENTIALS_PATH."
            )
        print(f"Fetching {len(range_names)} sheet range(s) for: {', '.join(report_names)}")
        try:
            ranges = _fetch_ranges(config, range_names)
        except RuntimeError as exc:
            raise SystemExit(f"Sheets fetch failed: {exc}") from exc

    output_dir = Path(config.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    results: list[dict[str, Any]] = []
    failures: list[tuple[str, str]] = []
    no_data: list[str] = []
    for name in report_names:
        try:
            result = _run_report(name, ranges, run_date, config, output_dir)
        except NoDataError as exc:
            no_data.append(name)
            failures.append((name, f"no data ({exc})"))
            print(f"Report skipped: {name} | {exc}")
            continue
        except (MissingColumnError, RuntimeError, ValueError) as exc:
            failures.append((name, str(exc)))
            print(f"Report failed: {name} | {exc}")
            continue
        results.append(result)
        skipped_total = sum(result["skipped_rows"].values())
        print(
            f"Report generated: {result['path']} | status={result['status']} | "
            f"skipped_rows={skipped_total} | findings={len(result['findings'])}"
        )

    all_findings = [
        Finding(**{**finding, "title": f"{result['report']}: {finding['title']}"})
        for result in results
        for finding in result["findings"]
    ]
    if config.alerts_enabled and all_findings:
        alert_client = AlertClient(config.alert_webhook_url, timeout_sec=config.alert_timeout_sec)
        if not alert_client.configured:
            print("Alerts enabled but ALERT_WEBHOOK_URL is not set; skipping alert.")
        else:
            try:
                alert_client.send(f"Data quality check {run_date.isoformat()}", all_findings)
                print(f"Alert sent: {len(all_findings)} finding(s).")
            except RuntimeError as exc:
                print(f"Alert failed: {exc}")

    run_log_path = output_dir / "run_log.json"
    run_log_path.write_text(
        json.dumps(
            {
                "run_date": run_date.isoformat(),
                "timestamp": time.time(),
                "reports": results,
                "failures": [{"report": name, "error": message} for name, message in failures],
            },
            ensure_ascii=False,
            indent=2,
        ),
        encoding="utf-8",
    )
    print(f"Run log written: {run_log_path}")

    if failures:
        print("Run finished with report-level failures:")
        for name, message in failures:
            print(f"- {name}: {message}")
    if not results:
        if failures and len(no_data) == len(failures):
            raise SystemExit(EXIT_NO_DATA)
        raise SystemExit("Run failed: no report was generated. Check the errors above.")


if __name__ == "__main__":
    main()
