"""
Weekly submission and approval.

    UNLOCKED --submit--> SUBMITTED --approve--> APPROVED
                             |
                             +--reject--> REJECTED --submit--> SUBMITTED

    unlock: any state --> UNLOCKED (lock row deleted, entries back to DRAFT)

Each transition writes the lock row, the affected entries and the audit
record in one transaction. Status preconditions on the lock row are part of
the UPDATE itself, so two reviewers acting on the same week cannot both
succeed.
"""

import uuid
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError

from app.exceptions import (
    AlreadyApprovedError, AlreadySubmittedError, EmptyWeekError, ForbiddenError,
    InvalidStateError, NotFoundError, ValidationError,
)
from app.models.timesheet import (
    TimeEntry, WeekLock,
    STATUS_DRAFT, STATUS_SUBMITTED, STATUS_APPROVED, STATUS_REJECTED,
    LOCK_SUBMITTED, LOCK_APPROVED, LOCK_REJECTED,
)
from app.models.user import User
from app.services.audit import log_action
from app.services.tenant import TenantScope
from app.services.weeks import week_range

logger = logging.getLogger(__name__)

ENTITY = "WeekLock"


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _require_reviewer(actor: User) -> None:
    if not actor.is_reviewer:
        raise ForbiddenError("Supervisor or admin access required")


def _check_self_review(scope: TenantScope, actor: User, lock: WeekLock) -> None:
    if lock.user_id == actor.user_id and not scope.settings().allow_self_review:
        raise ForbiddenError("You cannot review your own week")


def _lock_week_entries(scope: TenantScope, lock: WeekLock):
    end = lock.week_start_date + timedelta(days=6)
    return scope.week_entries(lock.user_id, lock.week_start_date, end)


# ── transitions ──


def submit_week(scope: TenantScope, actor: User, day: date) -> WeekLock:
    db = scope.db
    start, end = week_range(day)
    week_entries = scope.week_entries(actor.user_id, start, end)

    if week_entries.count() == 0:
        raise EmptyWeekError()

    existing = (
        scope.locks()
        .filter(WeekLock.user_id == actor.user_id, WeekLock.week_start_date == start)
        .first()
    )
    if existing is not None:
        if existing.status == LOCK_APPROVED:
            raise AlreadyApprovedError()
        if existing.status == LOCK_SUBMITTED:
            raise AlreadySubmittedError()

    now = _now_utc()

    if existing is not None:
        # resubmission after rejection
        updated = (
            scope.locks()
            .filter(WeekLock.id == existing.id, WeekLock.status == LOCK_REJECTED)
            .update(
                {
                    WeekLock.status: LOCK_SUBMITTED,
                    WeekLock.submitted_at: now,
                    WeekLock.comment: None,
                    WeekLock.reviewed_at: None,
                    WeekLock.reviewer_id: None,
                },
                synchronize_session=False,
            )
        )
        if not updated:
            db.rollback()
            raise AlreadySubmittedError()
        lock = existing
    else:
        lock = WeekLock(
            company_id=scope.company_id,
            user_id=actor.user_id,
            week_start_date=start,
            status=LOCK_SUBMITTED,
            submitted_at=now,
        )
        db.add(lock)
        try:
            db.flush()
        except IntegrityError:
            # another request created the lock between our read and insert
            db.rollback()
            raise AlreadySubmittedError()

    moved = (
        week_entries
        .filter(TimeEntry.status.in_([STATUS_DRAFT, STATUS_REJECTED]))
        .update(
            {
                TimeEntry.status: STATUS_SUBMITTED,
                TimeEntry.submitted_at: now,
                TimeEntry.reject_note: None,
            },
            synchronize_session=False,
        )
    )

    log_action(
        db, scope.company_id, actor.user_id, "SUBMIT", ENTITY, lock.id,
        new_value={"week_start_date": start, "entries": moved},
    )
    db.commit()
    db.refresh(lock)
    logger.info("Week %s submitted by %s (%d entries)", start, actor.user_id, moved)
    return lock


def approve_week(scope: TenantScope, actor: User, lock_id: uuid.UUID) -> WeekLock:
    db = scope.db
    _require_reviewer(actor)
    lock = scope.get_lock_or_404(lock_id)
    if lock.status != LOCK_SUBMITTED:
        raise InvalidStateError("Only submitted weeks can be approved")
    _check_self_review(scope, actor, lock)

    now = _now_utc()
    updated = (
        scope.locks()
        .filter(WeekLock.id == lock.id, WeekLock.status == LOCK_SUBMITTED)
        .update(
            {WeekLock.status: LOCK_APPROVED, WeekLock.reviewed_at: now, WeekLock.reviewer_id: actor.user_id},
            synchronize_session=False,
        )
    )
    if not updated:
        db.rollback()
        raise InvalidStateError("Only submitted weeks can be approved")

    approved = (
        _lock_week_entries(scope, lock)
        .filter(TimeEntry.status == STATUS_SUBMITTED)
        .update(
            {TimeEntry.status: STATUS_APPROVED, TimeEntry.approved_at: now, TimeEntry.approver_id: actor.user_id},
            synchronize_session=False,
        )
    )

    log_action(
        db, scope.company_id, actor.user_id, "APPROVE", ENTITY, lock.id,
        old_value={"status": LOCK_SUBMITTED},
        new_value={"status": LOCK_APPROVED, "entries": approved},
    )
    db.commit()
    db.refresh(lock)
    logger.info("Week lock %s approved by %s (%d entries)", lock.id, actor.user_id, approved)
    return lock


def reject_week(scope: TenantScope, actor: User, lock_id: uuid.UUID, comment: str) -> WeekLock:
    db = scope.db
    _require_reviewer(actor)
    comment = (comment or "").strip()
    if not comment:
        raise ValidationError("A comment is required when rejecting a week", {"comment": "required"})

    lock = scope.get_lock_or_404(lock_id)
    if lock.status != LOCK_SUBMITTED:
        raise InvalidStateError("Only submitted weeks can be rejected")
    _check_self_review(scope, actor, lock)

    now = _now_utc()
    updated = (
        scope.locks()
        .filter(WeekLock.id == lock.id, WeekLock.status == LOCK_SUBMITTED)
        .update(
            {
                WeekLock.status: LOCK_REJECTED,
                WeekLock.comment: comment,
                WeekLock.reviewed_at: now,
                WeekLock.reviewer_id: actor.user_id,
            },
            synchronize_session=False,
        )
    )
    if not updated:
        db.rollback()
        raise InvalidStateError("Only submitted weeks can be rejected")

    rejected = (
        _lock_week_entries(scope, lock)
        .filter(TimeEntry.status == STATUS_SUBMITTED)
        .update(
            {TimeEntry.status: STATUS_REJECTED, TimeEntry.reject_note: comment},
            synchronize_session=False,
        )
    )

    log_action(
        db, scope.company_id, actor.user_id, "REJECT", ENTITY, lock.id,
        old_value={"status": LOCK_SUBMITTED},
        new_value={"status": LOCK_REJECTED, "comment": comment, "entries": rejected},
    )
    db.commit()
    db.refresh(lock)
    logger.info("Week lock %s rejected by %s (%d entries)", lock.id, actor.user_id, rejected)
    return lock


def unlock_week(scope: TenantScope, actor: User, lock_id: uuid.UUID) -> dict:
    db = scope.db
    _require_reviewer(actor)
    lock = scope.get_lock_or_404(lock_id)
    previous_status = lock.status
    week_start_date = lock.week_start_date

    reverted = (
        _lock_week_entries(scope, lock)
        .update(
            {
                TimeEntry.status: STATUS_DRAFT,
                TimeEntry.submitted_at: None,
                TimeEntry.approved_at: None,
                TimeEntry.approver_id: None,
                TimeEntry.reject_note: None,
            },
            synchronize_session=False,
        )
    )

    deleted = scope.locks().filter(WeekLock.id == lock_id).delete(synchronize_session=False)
    if not deleted:
        db.rollback()
        raise NotFoundError("Week lock not found")

    log_action(
        db, scope.company_id, actor.user_id, "UNLOCK", ENTITY, lock_id,
        old_value={"status": previous_status, "week_start_date": week_start_date},
        new_value={"entries": reverted},
    )
    db.commit()
    logger.info("Week lock %s (%s) unlocked by %s (%d entries)", lock_id, previous_status, actor.user_id, reverted)
    return {"message": "Week unlocked", "week_start_date": week_start_date, "entries": reverted}


# ── reads ──


def list_locks(
    scope: TenantScope,
    actor: User,
    status: Optional[str] = None,
    user_id: Optional[uuid.UUID] = None,
) -> list[dict]:
    """Week locks with hour totals for each week."""
    q = scope.locks()
    if not actor.is_reviewer:
        q = q.filter(WeekLock.user_id == actor.user_id)
    elif user_id:
        q = q.filter(WeekLock.user_id == user_id)
    if status:
        q = q.filter(WeekLock.status == status)
    locks = q.order_by(WeekLock.status.asc(), WeekLock.week_start_date.desc()).all()

    names = dict(
        scope.users()
        .filter(User.user_id.in_(list({lock.user_id for lock in locks})))
        .with_entities(User.user_id, User.name)
        .all()
    ) if locks else {}

    result = []
    for lock in locks:
        total, billable, count = (
            _lock_week_entries(scope, lock)
            .with_entities(
                func.coalesce(func.sum(TimeEntry.hours), 0),
                func.coalesce(func.sum(case((TimeEntry.billable.is_(True), TimeEntry.hours), else_=0)), 0),
                func.count(TimeEntry.id),
            )
            .one()
        )
        result.append({
            "id": lock.id,
            "user_id": lock.user_id,
            "user_name": names.get(lock.user_id),
            "week_start_date": lock.week_start_date,
            "status": lock.status,
            "comment": lock.comment,
            "submitted_at": lock.submitted_at,
            "reviewed_at": lock.reviewed_at,
            "reviewer_id": lock.reviewer_id,
            "total_hours": float(total or 0),
            "billable_hours": float(billable or 0),
            "entry_count": count,
        })
    return result


def pending_count(scope: TenantScope) -> int:
    return scope.locks().filter(WeekLock.status == LOCK_SUBMITTED).count()
