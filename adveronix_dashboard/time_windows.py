from __future__ import annotations

from datetime import date, timedelta

from adveronix_dashboard.models import MONDAY, SUNDAY, DateWindow


YOY_OFFSET = timedelta(weeks=52)


def _days_since_week_start(day: date, week_begins_on: str) -> int:
    # date.weekday() is Monday=0 ... Sunday=6; shift to Sunday=0 ... Saturday=6.
    day_of_week = (day.weekday() + 1) % 7
    if week_begins_on == SUNDAY:
        return day_of_week
    if week_begins_on == MONDAY:
        return (day_of_week + 6) % 7
    raise ValueError(f"Unsupported week boundary: {week_begins_on}")


def week_start(day: date, week_begins_on: str = MONDAY) -> date:
    return day - timedelta(days=_days_since_week_start(day, week_begins_on))


def week_end(start: date) -> date:
    return start + timedelta(days=6)


def month_key(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def is_complete(bucket_start: date, reference: date) -> bool:
    """A week is complete once its last day is strictly before ``reference``."""
    return week_end(bucket_start) < reference


def is_month_complete(key: str, reference: date) -> bool:
    return key < month_key(reference)


def yoy_week_start(start: date, week_begins_on: str = MONDAY) -> date:
    """Week 52 weeks earlier; weekday aligned, calendar drift accepted."""
    return week_start(start - YOY_OFFSET, week_begins_on)


def format_date_range(start: date, end: date) -> str:
    return f"{start.strftime('%b')} {start.day} - {end.strftime('%b')} {end.day}"


def format_month(key: str) -> str:
    year_text, month_text = key.split("-", 1)
    return date(int(year_text), int(month_text), 1).strftime("%b %Y")


def period_label(index: int, unit: str = "Week", include_current: bool = False) -> str:
    """Relative label for the ``index``-th most recent period (0-based)."""
    offset = index if include_current else index + 1
    if offset == 0:
        return f"This {unit}"
    if offset == 1:
        return f"Last {unit}"
    return f"{offset} {unit}s Ago"


def compute_windows(
    run_date: date | None = None,
    week_begins_on: str = MONDAY,
) -> dict[str, DateWindow]:
    """Build the week-over-week windows and the 4-week YoY pair.

    Current window is the last fully completed week before ``run_date``.
    Previous window is the preceding week.
    The YoY 4-week window is shifted by 52 weeks (364 days) to keep weekday alignment.
    """
    run_date = run_date or date.today()

    current_start = week_start(run_date, week_begins_on) - timedelta(days=7)
    current_end = week_end(current_start)

    previous_end = current_start - timedelta(days=1)
    previous_start = previous_end - timedelta(days=6)

    # Four complete weeks ending on current_end.
    context_28d_current_end = current_end
    context_28d_current_start = context_28d_current_end - timedelta(days=27)
    context_28d_yoy_start = context_28d_current_start - YOY_OFFSET
    context_28d_yoy_end = context_28d_current_end - YOY_OFFSET

    return {
        "current_week": DateWindow("Current week", current_start, current_end),
        "previous_week": DateWindow("Previous week", previous_start, previous_end),
        "current_28d": DateWindow(
            "Last 4 weeks",
            context_28d_current_start,
            context_28d_current_end,
        ),
        "yoy_28d": DateWindow(
            "YoY 4 weeks (52 weeks ago)",
            context_28d_yoy_start,
            context_28d_yoy_end,
        ),
    }
