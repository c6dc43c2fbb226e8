from __future__ import annotations

import os
from dataclasses import dataclass


DEFAULT_REPORTS = (
    "combined-weekly,google-ads-weekly,organic-yoy,gsc-weekly,"
    "gads-landing-pages-weekly,gads-landing-pages-monthly,age-analysis,"
    "google-ads-monthly,bing-ads-weekly,bing-ads-monthly"
)


def _env(name: str, default: str = "") -> str:
    raw = os.environ.get(name)
    if raw is None:
        return default.strip()
    value = raw.strip()
    placeholder = f"{name}="
    unquoted = value.strip("'\"").strip()
    if unquoted.lower() == placeholder.lower():
        return default.strip()
    return value if value else default.strip()


def _env_float(name: str, default: float) -> float:
    raw = _env(name)
    return float(raw) if raw else default


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    return int(raw) if raw else default


def _env_bool(name: str, default: bool) -> bool:
    raw = _env(name)
    if not raw:
        return default
    return raw.lower() in {"1", "true", "yes", "on"}


def _env_csv(name: str, default: str = "") -> tuple[str, ...]:
    raw = _env(name, default)
    values = [part.strip() for part in raw.split(",") if part.strip()]
    return tuple(values)


@dataclass(frozen=True)
class AgentConfig:
    sheet_id: str
    sheets_credentials_b64: str
    sheets_credentials_path: str
    sheets_token_path: str
    sheets_http_timeout_sec: int
    sheets_api_retries: int

    output_dir: str
    reports: tuple[str, ...]
    combined_weeks_limit: int
    google_ads_weeks_limit: int
    organic_yoy_weeks: int
    landing_pages_periods: int
    landing_pages_top_n: int
    bing_weeks_limit: int
    paid_months_limit: int
    gads_conversion_value: float
    bing_conversion_value: float

    validation_enabled: bool
    gads_min_weekly_impressions: float
    gads_max_weekly_impressions: float
    gads_min_ctr_pct: float
    gads_max_ctr_pct: float

    alerts_enabled: bool
    alert_webhook_url: str
    alert_timeout_sec: int

    @property
    def sheets_enabled(self) -> bool:
        return bool(self.sheet_id and (self.sheets_credentials_b64 or self.sheets_credentials_path))

    @classmethod
    def from_env(cls) -> "AgentConfig":
        return cls(
            sheet_id=_env("ADVERONIX_SHEET_ID"),
            sheets_credentials_b64=_env("GOOGLE_SHEETS_CREDENTIALS"),
            sheets_credentials_path=_env("GOOGLE_SHEETS_CREDENTIALS_PATH"),
            sheets_token_path=_env("GOOGLE_SHEETS_TOKEN_PATH", ".google_sheets_token.json"),
            sheets_http_timeout_sec=max(5, _env_int("SHEETS_HTTP_TIMEOUT_SEC", 30)),
            sheets_api_retries=max(0, _env_int("SHEETS_API_RETRIES", 3)),
            output_dir=_env("OUTPUT_DIR", "dashboard_output"),
            reports=tuple(
                name.lower() for name in _env_csv("REPORTS", DEFAULT_REPORTS)
            ),
            combined_weeks_limit=max(1, _env_int("COMBINED_WEEKS_LIMIT", 6)),
            google_ads_weeks_limit=max(1, _env_int("GOOGLE_ADS_WEEKS_LIMIT", 8)),
            organic_yoy_weeks=max(1, _env_int("ORGANIC_YOY_WEEKS", 5)),
            landing_pages_periods=max(1, _env_int("LANDING_PAGES_PERIODS", 5)),
            landing_pages_top_n=max(1, _env_int("LANDING_PAGES_TOP_N", 10)),
            bing_weeks_limit=max(1, _env_int("BING_ADS_WEEKS_LIMIT", 6)),
            paid_months_limit=max(1, _env_int("PAID_MONTHS_LIMIT", 12)),
            gads_conversion_value=_env_float("GADS_CONVERSION_VALUE", 500.0),
            bing_conversion_value=_env_float("BING_CONVERSION_VALUE", 100.0),
            validation_enabled=_env_bool("VALIDATION_ENABLED", True),
            gads_min_weekly_impressions=_env_float("GADS_MIN_WEEKLY_IMPRESSIONS", 15000.0),
            gads_max_weekly_impressions=_env_float("GADS_MAX_WEEKLY_IMPRESSIONS", 30000.0),
            gads_min_ctr_pct=_env_float("GADS_MIN_CTR_PCT", 2.0),
            gads_max_ctr_pct=_env_float("GADS_MAX_CTR_PCT", 10.0),
            alerts_enabled=_env_bool("ALERTS_ENABLED", False),
            alert_webhook_url=_env("ALERT_WEBHOOK_URL"),
            alert_timeout_sec=max(1, _env_int("ALERT_TIMEOUT_SEC", 15)),
        )
