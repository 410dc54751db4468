"""
Payroll, invoicing and project follow-up summaries.

Salary and invoice reports read APPROVED entries only; the project report
covers every status. Rendering to CSV follows the format payroll and
accounting systems import: UTF-8 with BOM, the company's delimiter, every
cell quoted, decimal comma.
"""

import csv
import io
import uuid
from collections import defaultdict
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy.orm import joinedload

from app.exceptions import ValidationError
from app.models.catalog import Project
from app.models.timesheet import TimeEntry, STATUS_APPROVED
from app.models.user import User
from app.services.tenant import TenantScope

CSV_BOM = "\ufeff"
_CENT = Decimal("0.01")


def _check_period(date_from: Optional[date], date_to: Optional[date]) -> None:
    if not date_from or not date_to:
        raise ValidationError("from and to are required", {"from": "required", "to": "required"})
    if date_from > date_to:
        raise ValidationError("from must not be after to", {"from": "range"})


def _money(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def _decimal_comma(value) -> str:
    return str(value).replace(".", ",")


def _render_csv(headers: list[str], rows: list[list], delimiter: str) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, delimiter=delimiter, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows(rows)
    return CSV_BOM + buf.getvalue()


# ── salary ──


def salary_report(
    scope: TenantScope,
    date_from: date,
    date_to: date,
    user_id: Optional[uuid.UUID] = None,
) -> dict:
    _check_period(date_from, date_to)

    q = (
        scope.entries()
        .join(User, TimeEntry.user_id == User.user_id)
        .options(joinedload(TimeEntry.activity), joinedload(TimeEntry.project))
        .filter(
            TimeEntry.status == STATUS_APPROVED,
            TimeEntry.date >= date_from,
            TimeEntry.date <= date_to,
        )
    )
    if user_id:
        q = q.filter(TimeEntry.user_id == user_id)
    entries = q.order_by(User.name.asc(), TimeEntry.date.asc()).all()

    names = dict(scope.users().with_entities(User.user_id, User.name).all())

    rows = []
    summary: dict[str, dict[str, float]] = defaultdict(lambda: defaultdict(float))
    total = Decimal("0")
    for e in entries:
        user_name = names.get(e.user_id, str(e.user_id))
        rows.append({
            "user_id": e.user_id,
            "user_name": user_name,
            "date": e.date,
            "activity_code": e.activity.code,
            "activity_name": e.activity.name,
            "hours": float(e.hours),
            "project_code": e.project.code if e.project else None,
            "note": e.note or "",
        })
        summary[user_name][e.activity.code] += float(e.hours)
        total += e.hours

    return {
        "period": {"from": date_from, "to": date_to},
        "rows": rows,
        "summary": {name: dict(codes) for name, codes in summary.items()},
        "totals": {
            "total_hours": float(total),
            "unique_users": len({e.user_id for e in entries}),
        },
    }


def salary_csv(report: dict, delimiter: str = ";") -> str:
    headers = ["Person", "Date", "Code", "Activity", "Hours", "Project", "Note"]
    rows = [
        [
            r["user_name"],
            r["date"].isoformat(),
            r["activity_code"],
            r["activity_name"],
            _decimal_comma(r["hours"]),
            r["project_code"] or "Internal",
            r["note"],
        ]
        for r in report["rows"]
    ]
    return _render_csv(headers, rows, delimiter)


# ── invoice ──


def entry_rate(entry: TimeEntry) -> Decimal:
    """Activity override, then project rate, then customer rate, else zero."""
    if entry.activity.rate_override is not None:
        return Decimal(entry.activity.rate_override)
    project = entry.project
    if project is not None:
        if project.default_rate is not None:
            return Decimal(project.default_rate)
        if project.customer is not None and project.customer.default_rate is not None:
            return Decimal(project.customer.default_rate)
    return Decimal("0")


def invoice_report(
    scope: TenantScope,
    date_from: date,
    date_to: date,
    customer_id: Optional[uuid.UUID] = None,
    project_id: Optional[uuid.UUID] = None,
) -> dict:
    _check_period(date_from, date_to)

    q = (
        scope.entries()
        .join(Project, TimeEntry.project_id == Project.id)
        .options(
            joinedload(TimeEntry.activity),
            joinedload(TimeEntry.project).joinedload(Project.customer),
        )
        .filter(
            TimeEntry.status == STATUS_APPROVED,
            TimeEntry.billable.is_(True),
            TimeEntry.project_id.isnot(None),
            TimeEntry.date >= date_from,
            TimeEntry.date <= date_to,
        )
    )
    if project_id:
        q = q.filter(TimeEntry.project_id == project_id)
    elif customer_id:
        q = q.filter(Project.customer_id == customer_id)
    entries = q.order_by(Project.code.asc(), TimeEntry.date.asc()).all()

    names = dict(scope.users().with_entities(User.user_id, User.name).all())

    rows = []
    by_project: dict[str, dict] = {}
    total_hours = Decimal("0")
    total_amount = Decimal("0")
    for e in entries:
        rate = entry_rate(e)
        amount = _money(e.hours * rate)
        project = e.project
        customer = project.customer
        rows.append({
            "customer_name": customer.name if customer else "",
            "project_id": project.id,
            "project_name": project.name,
            "project_code": project.code,
            "date": e.date,
            "activity_name": e.activity.name,
            "user_name": names.get(e.user_id, str(e.user_id)),
            "hours": e.hours,
            "rate": rate,
            "amount": amount,
            "note": e.note or "",
        })

        group = by_project.setdefault(str(project.id), {
            "project_id": project.id,
            "project_code": project.code,
            "project_name": project.name,
            "customer_name": customer.name if customer else None,
            "total_hours": Decimal("0"),
            "total_amount": Decimal("0"),
            "entry_count": 0,
        })
        group["total_hours"] += e.hours
        group["total_amount"] += amount
        group["entry_count"] += 1
        total_hours += e.hours
        total_amount += amount

    return {
        "period": {"from": date_from, "to": date_to},
        "rows": rows,
        "by_project": list(by_project.values()),
        "totals": {"total_hours": total_hours, "total_amount": _money(total_amount)},
    }


def invoice_csv(report: dict, delimiter: str = ";", vat_rate: Decimal = Decimal("25")) -> str:
    headers = [
        "Customer", "Project", "Project code", "Date", "Activity",
        "Person", "Hours", "Rate", "Amount", "Note",
    ]
    rows = [
        [
            r["customer_name"],
            r["project_name"],
            r["project_code"],
            r["date"].isoformat(),
            r["activity_name"],
            r["user_name"],
            _decimal_comma(r["hours"]),
            _decimal_comma(r["rate"]),
            _decimal_comma(r["amount"]),
            r["note"],
        ]
        for r in report["rows"]
    ]

    total_amount = report["totals"]["total_amount"]
    vat_rate = Decimal(vat_rate)
    vat = _money(total_amount * vat_rate / 100)
    rows.append(["", "", "", "", "", "SUM", _decimal_comma(report["totals"]["total_hours"]), "", _decimal_comma(total_amount), ""])
    rows.append(["", "", "", "", "", f"VAT {_decimal_comma(format(vat_rate.normalize(), 'f'))}%", "", "", _decimal_comma(vat), ""])
    rows.append(["", "", "", "", "", "TOTAL", "", "", _decimal_comma(total_amount + vat), ""])
    return _render_csv(headers, rows, delimiter)


# ── project follow-up ──


def project_report(
    scope: TenantScope,
    project_id: uuid.UUID,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> dict:
    """
    Hours booked on one project in any status, split by person and activity.

    Budget figures compare all booked hours in the period with the project's
    ``budget_hours``; they are None when the project has no budget.
    """
    if date_from and date_to and date_from > date_to:
        raise ValidationError("from must not be after to", {"from": "range"})
    project = scope.get_project_or_404(project_id)

    q = (
        scope.entries()
        .options(joinedload(TimeEntry.activity))
        .filter(TimeEntry.project_id == project.id)
    )
    if date_from:
        q = q.filter(TimeEntry.date >= date_from)
    if date_to:
        q = q.filter(TimeEntry.date <= date_to)
    entries = q.order_by(TimeEntry.date.desc(), TimeEntry.created_at.desc()).all()

    names = dict(scope.users().with_entities(User.user_id, User.name).all())

    rows = []
    by_user: dict[uuid.UUID, dict] = {}
    by_activity: dict[uuid.UUID, dict] = {}
    total = Decimal("0")
    billable = Decimal("0")
    approved = Decimal("0")
    for e in entries:
        user_name = names.get(e.user_id, str(e.user_id))
        rows.append({
            "id": e.id,
            "date": e.date,
            "user_id": e.user_id,
            "user_name": user_name,
            "activity_code": e.activity.code,
            "activity_name": e.activity.name,
            "hours": e.hours,
            "billable": e.billable,
            "status": e.status,
            "note": e.note or "",
        })
        person = by_user.setdefault(e.user_id, {"user_id": e.user_id, "user_name": user_name, "hours": Decimal("0")})
        person["hours"] += e.hours
        activity = by_activity.setdefault(e.activity_id, {
            "activity_id": e.activity_id,
            "activity_code": e.activity.code,
            "activity_name": e.activity.name,
            "hours": Decimal("0"),
        })
        activity["hours"] += e.hours

        total += e.hours
        if e.billable:
            billable += e.hours
        if e.status == STATUS_APPROVED:
            approved += e.hours

    budget = Decimal(project.budget_hours) if project.budget_hours is not None else None
    return {
        "project": {
            "id": project.id,
            "code": project.code,
            "name": project.name,
            "customer_name": project.customer.name if project.customer else None,
            "budget_hours": budget,
            "active": project.active,
        },
        "period": {"from": date_from, "to": date_to},
        "entries": rows,
        "summary": {
            "total_hours": total,
            "billable_hours": billable,
            "approved_hours": approved,
            "budget_hours": budget,
            "budget_remaining": budget - total if budget is not None else None,
            "budget_used_percent": budget_used_percent(total, budget),
            "by_user": sorted(by_user.values(), key=lambda r: r["hours"], reverse=True),
            "by_activity": sorted(by_activity.values(), key=lambda r: r["hours"], reverse=True),
        },
    }


def budget_used_percent(hours: Decimal, budget: Optional[Decimal]) -> Optional[int]:
    if not budget:
        return None
    return int((Decimal(hours) / Decimal(budget) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
