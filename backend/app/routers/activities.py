import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.dependencies import get_current_user, get_tenant, require_admin
from app.exceptions import ValidationError
from app.models.catalog import Activity
from app.models.user import User
from app.schemas.catalog import ActivityCreate, ActivityUpdate, ActivityResponse
from app.services.audit import log_action
from app.services.tenant import TenantScope

router = APIRouter(prefix="/api/activities", tags=["Activities"])


def _ensure_unique_code(scope: TenantScope, code: str, exclude_id: Optional[uuid.UUID] = None) -> None:
    q = scope.activities().filter(Activity.code == code)
    if exclude_id:
        q = q.filter(Activity.id != exclude_id)
    if q.first():
        raise ValidationError(f"Activity code '{code}' already exists", {"code": "duplicate"})


@router.get("/", response_model=list[ActivityResponse])
def list_activities(
    include_inactive: bool = Query(False),
    _user: User = Depends(get_current_user),
    scope: TenantScope = Depends(get_tenant),
):
    q = scope.activities()
    if not include_inactive:
        q = q.filter(Activity.active.is_(True))
    return q.order_by(Activity.sort_order, Activity.code).all()


@router.get("/{activity_id}", response_model=ActivityResponse)
def get_activity(
    activity_id: uuid.UUID,
    _user: User = Depends(get_current_user),
    scope: TenantScope = Depends(get_tenant),
):
    return scope.get_activity_or_404(activity_id)


@router.post("/", response_model=ActivityResponse, status_code=201)
def create_activity(
    body: ActivityCreate,
    user: User = Depends(require_admin),
    scope: TenantScope = Depends(get_tenant),
):
    code = body.code.strip().upper()
    _ensure_unique_code(scope, code)

    activity = Activity(company_id=scope.company_id, **body.model_dump(exclude={"code"}), code=code)
    scope.db.add(activity)
    scope.db.flush()
    log_action(scope.db, scope.company_id, user.user_id, "CREATE", "Activity", activity.id,
               new_value={"code": code, "name": activity.name})
    scope.db.commit()
    scope.db.refresh(activity)
    return activity


@router.put("/{activity_id}", response_model=ActivityResponse)
def update_activity(
    activity_id: uuid.UUID,
    body: ActivityUpdate,
    user: User = Depends(require_admin),
    scope: TenantScope = Depends(get_tenant),
):
    activity = scope.get_activity_or_404(activity_id)
    data = body.model_dump(exclude_unset=True)
    if data.get("code") is not None:
        data["code"] = data["code"].strip().upper()
        _ensure_unique_code(scope, data["code"], exclude_id=activity.id)

    old = {key: getattr(activity, key) for key in data}
    for key, value in data.items():
        if value is None and key in ("code", "name", "category", "billable_default", "sort_order", "active"):
            continue
        setattr(activity, key, value)

    log_action(scope.db, scope.company_id, user.user_id, "UPDATE", "Activity", activity.id,
               old_value=old, new_value=data)
    scope.db.commit()
    scope.db.refresh(activity)
    return activity


@router.delete("/{activity_id}")
def deactivate_activity(
    activity_id: uuid.UUID,
    user: User = Depends(require_admin),
    scope: TenantScope = Depends(get_tenant),
):
    """Hide the activity from pickers. Existing entries keep referencing it."""
    activity = scope.get_activity_or_404(activity_id)
    activity.active = False
    log_action(scope.db, scope.company_id, user.user_id, "DELETE", "Activity", activity.id,
               old_value={"code": activity.code, "name": activity.name})
    scope.db.commit()
    return {"ok": True, "message": "Activity deactivated"}
