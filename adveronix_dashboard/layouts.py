from __future__ import annotations

from adveronix_dashboard.parsing import ColumnSpec, SheetLayout


# Header aliases for the Adveronix export tabs. Matching is case-insensitive.
_CLICKS = ColumnSpec("clicks", ("Clicks", "Url Clicks"))
_IMPRESSIONS = ColumnSpec("impressions", ("Impressions", "Impr."))
_CONVERSIONS = ColumnSpec("conversions", ("Conversions", "Conv."))
_SPEND = ColumnSpec("spend", ("Cost", "Spend"))

GSC_ACCOUNT_DAILY = SheetLayout(
    range_name="GSC: Account Daily!A:D",
    date_column=ColumnSpec("date", ("Date", "Day")),
    metric_columns=(_IMPRESSIONS, _CLICKS),
)

GADS_ACCOUNT_WEEKLY = SheetLayout(
    range_name="GADS: Account: Weekly (Devices)!A:L",
    date_column=ColumnSpec("date", ("Day", "Date", "Week", "Week start", "week_start")),
    metric_columns=(
        _IMPRESSIONS,
        _CLICKS,
        _CONVERSIONS,
        ColumnSpec("spend", ("Cost", "Spend"), required=False),
        ColumnSpec("conv_value", ("Conv. value", "Conversion value", "All conv. value"), required=False),
    ),
)

BING_ACCOUNT_WEEKLY = SheetLayout(
    range_name="BING: Account Summary Weekly!A:J",
    date_column=ColumnSpec("date", ("Week", "Week start", "week_start", "Time period", "Date")),
    metric_columns=(
        _IMPRESSIONS,
        _CLICKS,
        _CONVERSIONS,
        ColumnSpec("spend", ("Spend", "Cost"), required=False),
    ),
)

GA4_TRAFFIC_WEEKLY_ACCOUNT = SheetLayout(
    range_name="GA4: Traffic Weekly Account!A:E",
    date_column=ColumnSpec("date", ("Date", "Week")),
    metric_columns=(
        ColumnSpec("users", ("New users",)),
        ColumnSpec("purchases", ("Ecommerce purchases", "Purchases")),
    ),
)

GADS_LANDING_PAGES_WEEKLY = SheetLayout(
    range_name="GADS: Landing Page: Weekly (With Campaigns)!A:M",
    date_column=ColumnSpec("week", ("Week", "Date")),
    metric_columns=(
        _CLICKS,
        _CONVERSIONS,
        ColumnSpec("impressions", ("Impressions", "Impr."), required=False),
    ),
    key_column=ColumnSpec("landing_page", ("Landing page", "Final URL")),
)

GADS_LANDING_PAGES_MONTHLY = SheetLayout(
    range_name="GADS: Landing Page: Monthly (With Campaigns)!A:M",
    date_column=ColumnSpec("month", ("Month", "Date")),
    metric_columns=(
        _CLICKS,
        _CONVERSIONS,
        ColumnSpec("impressions", ("Impressions", "Impr."), required=False),
    ),
    key_column=ColumnSpec("landing_page", ("Landing page", "Final URL")),
)

AGE_ANALYSIS_DEVICE = SheetLayout(
    range_name="Age Analysis_Device!A:J",
    date_column=ColumnSpec("month", ("Month", "Date")),
    metric_columns=(
        _CLICKS,
        _IMPRESSIONS,
        ColumnSpec("ctr", ("CTR",)),
        ColumnSpec("avg_cpc", ("Avg. CPC", "Avg CPC")),
        _SPEND,
        ColumnSpec("avg_cpm", ("Avg. CPM", "Avg CPM")),
        _CONVERSIONS,
    ),
    key_column=ColumnSpec("age", ("Age", "Age range")),
)
