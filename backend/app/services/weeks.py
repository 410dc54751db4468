"""
Week boundaries.

Every place that buckets entries into weeks or keys a week lock goes through
``week_start`` so the two can never disagree. Weeks start on Monday (ISO),
independent of locale; Sunday belongs to the week that started six days
earlier.
"""

from datetime import date, datetime, timedelta


def week_start(d: date | datetime) -> date:
    if isinstance(d, datetime):
        d = d.date()
    return d - timedelta(days=d.isoweekday() - 1)


def week_end(d: date | datetime) -> date:
    return week_start(d) + timedelta(days=6)


def week_range(d: date | datetime) -> tuple[date, date]:
    start = week_start(d)
    return start, start + timedelta(days=6)


def week_days(d: date | datetime) -> list[date]:
    start = week_start(d)
    return [start + timedelta(days=i) for i in range(7)]
