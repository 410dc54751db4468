"""Week locks router: submission, approval, rejection and unlock."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.dependencies import get_current_user, get_tenant, require_supervisor
from app.models.user import User
from app.schemas.week_lock import WeekLockResponse, WeekLockSummary, WeekReject, WeekSubmit
from app.services import week_locks as svc
from app.services.tenant import TenantScope

router = APIRouter(prefix="/api/week-locks", tags=["Week Locks"])


@router.get("/", response_model=list[WeekLockSummary])
def list_locks(
    status: Optional[str] = Query(None),
    user_id: Optional[uuid.UUID] = Query(None),
    user: User = Depends(get_current_user),
    scope: TenantScope = Depends(get_tenant),
):
    return svc.list_locks(scope, user, status, user_id)


@router.get("/pending-count")
def pending_count(
    _user: User = Depends(require_supervisor),
    scope: TenantScope = Depends(get_tenant),
):
    return {"count": svc.pending_count(scope)}


@router.post("/submit", response_model=WeekLockResponse)
def submit_week(
    body: WeekSubmit,
    user: User = Depends(get_current_user),
    scope: TenantScope = Depends(get_tenant),
):
    return svc.submit_week(scope, user, body.week_start_date)


@router.post("/{lock_id}/approve", response_model=WeekLockResponse)
def approve_week(
    lock_id: uuid.UUID,
    user: User = Depends(require_supervisor),
    scope: TenantScope = Depends(get_tenant),
):
    return svc.approve_week(scope, user, lock_id)


@router.post("/{lock_id}/reject", response_model=WeekLockResponse)
def reject_week(
    lock_id: uuid.UUID,
    body: WeekReject,
    user: User = Depends(require_supervisor),
    scope: TenantScope = Depends(get_tenant),
):
    return svc.reject_week(scope, user, lock_id, body.comment)


@router.post("/{lock_id}/unlock")
def unlock_week(
    lock_id: uuid.UUID,
    user: User = Depends(require_supervisor),
    scope: TenantScope = Depends(get_tenant),
):
    return svc.unlock_week(scope, user, lock_id)
