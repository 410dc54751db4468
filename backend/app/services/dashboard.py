"""
Landing page figures.

Employees see their own hours; supervisors and admins see the whole company.
Project budget use is always company-wide.
"""

import calendar
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Query, joinedload

from app.models.catalog import Project
from app.models.timesheet import TimeEntry, WeekLock, STATUS_DRAFT, LOCK_SUBMITTED
from app.models.user import User
from app.services.reports import budget_used_percent
from app.services.tenant import TenantScope
from app.services.week_locks import pending_count
from app.services.weeks import week_days, week_range, week_start

PENDING_APPROVALS_SHOWN = 10
RECENT_ENTRIES_SHOWN = 5


def _sum_hours(q: Query) -> Decimal:
    value = q.with_entities(func.coalesce(func.sum(TimeEntry.hours), 0)).scalar()
    return Decimal(str(value or 0))


def _month_range(day: date) -> tuple[date, date]:
    last = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last)


def _hours_by_project(scope: TenantScope, date_from: Optional[date] = None, date_to: Optional[date] = None) -> dict:
    q = (
        scope.entries()
        .filter(TimeEntry.project_id.isnot(None))
        .with_entities(TimeEntry.project_id, func.sum(TimeEntry.hours))
    )
    if date_from:
        q = q.filter(TimeEntry.date >= date_from)
    if date_to:
        q = q.filter(TimeEntry.date <= date_to)
    return {pid: Decimal(str(hours or 0)) for pid, hours in q.group_by(TimeEntry.project_id).all()}


def _project_stats(scope: TenantScope, month_start: date, month_end: date) -> list[dict]:
    projects = scope.projects().options(joinedload(Project.customer)).filter(Project.active.is_(True)).all()
    totals = _hours_by_project(scope)
    monthly = _hours_by_project(scope, month_start, month_end)

    result = []
    for p in projects:
        total = totals.get(p.id, Decimal("0"))
        result.append({
            "id": p.id,
            "code": p.code,
            "name": p.name,
            "customer_name": p.customer.name if p.customer else None,
            "budget_hours": p.budget_hours,
            "total_hours": total,
            "monthly_hours": monthly.get(p.id, Decimal("0")),
            "budget_used_percent": budget_used_percent(total, p.budget_hours),
        })
    result.sort(key=lambda r: (-(r["budget_used_percent"] or 0), r["code"]))
    return result


def _pending_approvals(scope: TenantScope) -> list[dict]:
    rows = (
        scope.locks()
        .join(User, WeekLock.user_id == User.user_id)
        .filter(WeekLock.status == LOCK_SUBMITTED)
        .with_entities(WeekLock.id, WeekLock.user_id, User.name, WeekLock.week_start_date, WeekLock.submitted_at)
        .order_by(WeekLock.submitted_at.asc())
        .limit(PENDING_APPROVALS_SHOWN)
        .all()
    )
    return [
        {"id": lid, "user_id": uid, "user_name": name, "week_start_date": start, "submitted_at": submitted}
        for lid, uid, name, start, submitted in rows
    ]


def unsubmitted_weeks(scope: TenantScope, user: User, today: date) -> list[date]:
    """Past weeks, back to the start of last month, that still hold draft entries."""
    since = (today.replace(day=1) - timedelta(days=1)).replace(day=1)
    current = week_start(today)
    days = (
        scope.entries()
        .filter(
            TimeEntry.user_id == user.user_id,
            TimeEntry.status == STATUS_DRAFT,
            TimeEntry.date >= since,
            TimeEntry.date < current,
        )
        .with_entities(TimeEntry.date)
        .distinct()
        .all()
    )
    return sorted({week_start(d) for (d,) in days}, reverse=True)


def overview(scope: TenantScope, actor: User, today: Optional[date] = None) -> dict:
    today = today or date.today()
    month_start, month_end = _month_range(today)
    start, end = week_range(today)

    base = scope.entries()
    if not actor.is_reviewer:
        base = base.filter(TimeEntry.user_id == actor.user_id)

    month_q = base.filter(TimeEntry.date >= month_start, TimeEntry.date <= month_end)
    week_entries = (
        base.filter(TimeEntry.date >= start, TimeEntry.date <= end)
        .with_entities(TimeEntry.date, TimeEntry.hours)
        .all()
    )

    daily_hours = {d.isoformat(): 0.0 for d in week_days(today)}
    week_total = Decimal("0")
    for day, hours in week_entries:
        daily_hours[day.isoformat()] += float(hours)
        week_total += Decimal(str(hours))

    recent = (
        base.options(joinedload(TimeEntry.project), joinedload(TimeEntry.activity))
        .order_by(TimeEntry.created_at.desc())
        .limit(RECENT_ENTRIES_SHOWN)
        .all()
    )
    names = dict(scope.users().with_entities(User.user_id, User.name).all())

    pending = _pending_approvals(scope) if actor.is_reviewer else []
    return {
        "summary": {
            "monthly_hours": _sum_hours(month_q),
            "monthly_billable_hours": _sum_hours(month_q.filter(TimeEntry.billable.is_(True))),
            "weekly_hours": week_total,
            "pending_approval_count": pending_count(scope) if actor.is_reviewer else 0,
        },
        "projects": _project_stats(scope, month_start, month_end),
        "pending_approvals": pending,
        "my_pending_weeks": unsubmitted_weeks(scope, actor, today),
        "recent_entries": [
            {
                "id": e.id,
                "date": e.date,
                "hours": e.hours,
                "status": e.status,
                "user_name": names.get(e.user_id),
                "project_code": e.project.code if e.project else None,
                "project_name": e.project.name if e.project else None,
                "activity_name": e.activity.name,
            }
            for e in recent
        ],
        "daily_hours": daily_hours,
        "period": {
            "month_start": month_start,
            "month_end": month_end,
            "week_start": start,
            "week_end": end,
        },
    }


def quick_stats(scope: TenantScope, actor: User, today: Optional[date] = None) -> dict:
    """The signed-in user's own hours today and this week."""
    today = today or date.today()
    start, end = week_range(today)
    own = scope.entries().filter(TimeEntry.user_id == actor.user_id)
    return {
        "today_hours": _sum_hours(own.filter(TimeEntry.date == today)),
        "week_hours": _sum_hours(own.filter(TimeEntry.date >= start, TimeEntry.date <= end)),
    }
