"""Time range presets and date formatting helpers."""

import calendar
from datetime import date, datetime, timedelta
from typing import List, Optional

from photowrap.models import TimeRange

def get_time_range_options(now: Optional[datetime] = None) -> List[TimeRange]:
    now = now or datetime.now()
    this_year = datetime(now.year, 1, 1)
    last_year = datetime(now.year - 1, 1, 1)

    return [
        TimeRange(start=this_year, end=now, label="This year"),
        TimeRange(start=last_year, end=this_year, label="Last year"),
        TimeRange(start=now - timedelta(days=30), end=now, label="Last 30 days"),
    ]

def format_date(day: date) -> str:
    """``date(2025, 3, 7)`` -> ``"March 7, 2025"``."""
    return f"{calendar.month_name[day.month]} {day.day}, {day.year}"

def format_month(year: int, month: int) -> str:
    return f"{calendar.month_name[month]} {year}"

def time_of_day_label(hour: int) -> str:
    if 5 <= hour < 12:
        return "morning"
    if 12 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 21:
        return "evening"
    return "night"
