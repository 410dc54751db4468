"""
Week lock state as a closed set of variants.

A week without a ``WeekLock`` row is *unlocked*; ``resolve_lock_state`` returns
the ``Unlocked`` variant for it instead of ``None`` so callers cannot mistake a
missing row for a lookup that has not happened yet.
"""

import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Union

from app.models.timesheet import WeekLock, LOCK_SUBMITTED, LOCK_APPROVED, LOCK_REJECTED
from app.services.tenant import TenantScope
from app.services.weeks import week_start as _week_start


@dataclass(frozen=True)
class Unlocked:
    user_id: uuid.UUID
    week_start: date

    name = "UNLOCKED"
    is_locked = False


@dataclass(frozen=True)
class Submitted:
    user_id: uuid.UUID
    week_start: date
    lock_id: uuid.UUID
    submitted_at: Optional[datetime]

    name = LOCK_SUBMITTED
    is_locked = True


@dataclass(frozen=True)
class Approved:
    user_id: uuid.UUID
    week_start: date
    lock_id: uuid.UUID
    submitted_at: Optional[datetime]
    reviewed_at: Optional[datetime]
    reviewer_id: Optional[uuid.UUID]

    name = LOCK_APPROVED
    is_locked = True


@dataclass(frozen=True)
class Rejected:
    user_id: uuid.UUID
    week_start: date
    lock_id: uuid.UUID
    submitted_at: Optional[datetime]
    reviewed_at: Optional[datetime]
    reviewer_id: Optional[uuid.UUID]
    comment: str

    name = LOCK_REJECTED
    is_locked = False


LockState = Union[Unlocked, Submitted, Approved, Rejected]


def from_row(lock: WeekLock) -> LockState:
    if lock.status == LOCK_SUBMITTED:
        return Submitted(lock.user_id, lock.week_start_date, lock.id, lock.submitted_at)
    if lock.status == LOCK_APPROVED:
        return Approved(
            lock.user_id, lock.week_start_date, lock.id,
            lock.submitted_at, lock.reviewed_at, lock.reviewer_id,
        )
    if lock.status == LOCK_REJECTED:
        return Rejected(
            lock.user_id, lock.week_start_date, lock.id,
            lock.submitted_at, lock.reviewed_at, lock.reviewer_id,
            lock.comment or "",
        )
    raise ValueError(f"Unknown week lock status: {lock.status!r}")


def resolve_lock_state(scope: TenantScope, user_id: uuid.UUID, day: date) -> LockState:
    """Lock state of the week containing ``day`` for ``user_id``."""
    start = _week_start(day)
    lock = (
        scope.locks()
        .filter(WeekLock.user_id == user_id, WeekLock.week_start_date == start)
        .first()
    )
    if lock is None:
        return Unlocked(user_id, start)
    return from_row(lock)


def serialize_lock_state(state: LockState) -> dict:
    data = {"state": state.name, "week_start": state.week_start.isoformat()}
    if isinstance(state, Unlocked):
        return data
    data["id"] = str(state.lock_id)
    data["submitted_at"] = state.submitted_at.isoformat() if state.submitted_at else None
    if isinstance(state, (Approved, Rejected)):
        data["reviewed_at"] = state.reviewed_at.isoformat() if state.reviewed_at else None
        data["reviewer_id"] = str(state.reviewer_id) if state.reviewer_id else None
    if isinstance(state, Rejected):
        data["comment"] = state.comment
    return data
