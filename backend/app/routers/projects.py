import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.dependencies import get_current_user, get_tenant, require_admin
from app.exceptions import ValidationError
from app.models.catalog import Project
from app.models.user import User
from app.schemas.catalog import ProjectCreate, ProjectUpdate, ProjectResponse
from app.schemas.time_entry import TimeEntryResponse
from app.services.audit import log_action
from app.services.tenant import TenantScope
from app.services.time_entries import list_entries

router = APIRouter(prefix="/api/projects", tags=["Projects"])


def _ensure_unique_code(scope: TenantScope, code: str, exclude_id: Optional[uuid.UUID] = None) -> None:
    q = scope.projects().filter(Project.code == code)
    if exclude_id:
        q = q.filter(Project.id != exclude_id)
    if q.first():
        raise ValidationError(f"Project code '{code}' already exists", {"code": "duplicate"})


@router.get("/", response_model=list[ProjectResponse])
def list_projects(
    customer_id: Optional[uuid.UUID] = Query(None),
    include_inactive: bool = Query(False),
    _user: User = Depends(get_current_user),
    scope: TenantScope = Depends(get_tenant),
):
    q = scope.projects()
    if customer_id:
        q = q.filter(Project.customer_id == customer_id)
    if not include_inactive:
        q = q.filter(Project.active.is_(True))
    return q.order_by(Project.code).all()


@router.get("/{project_id}", response_model=ProjectResponse)
def get_project(
    project_id: uuid.UUID,
    _user: User = Depends(get_current_user),
    scope: TenantScope = Depends(get_tenant),
):
    return scope.get_project_or_404(project_id)


@router.get("/{project_id}/time-entries", response_model=list[TimeEntryResponse])
def list_project_entries(
    project_id: uuid.UUID,
    from_: Optional[date] = Query(None, alias="from"),
    to: Optional[date] = Query(None),
    user: User = Depends(get_current_user),
    scope: TenantScope = Depends(get_tenant),
):
    """Entries booked on the project. Employees only see their own."""
    project = scope.get_project_or_404(project_id)
    return list_entries(scope, user, from_, to, project_id=project.id)


@router.post("/", response_model=ProjectResponse, status_code=201)
def create_project(
    body: ProjectCreate,
    user: User = Depends(require_admin),
    scope: TenantScope = Depends(get_tenant),
):
    if body.customer_id:
        scope.get_customer_or_404(body.customer_id)
    code = body.code.strip()
    _ensure_unique_code(scope, code)

    project = Project(company_id=scope.company_id, **body.model_dump(exclude={"code"}), code=code)
    scope.db.add(project)
    scope.db.flush()
    log_action(scope.db, scope.company_id, user.user_id, "CREATE", "Project", project.id,
               new_value={"code": code, "name": project.name})
    scope.db.commit()
    scope.db.refresh(project)
    return project


@router.put("/{project_id}", response_model=ProjectResponse)
def update_project(
    project_id: uuid.UUID,
    body: ProjectUpdate,
    user: User = Depends(require_admin),
    scope: TenantScope = Depends(get_tenant),
):
    project = scope.get_project_or_404(project_id)
    data = body.model_dump(exclude_unset=True)
    if data.get("customer_id"):
        scope.get_customer_or_404(data["customer_id"])
    if data.get("code") is not None:
        data["code"] = data["code"].strip()
        _ensure_unique_code(scope, data["code"], exclude_id=project.id)

    old = {key: getattr(project, key) for key in data}
    for key, value in data.items():
        if value is None and key in ("code", "name", "active"):
            continue
        setattr(project, key, value)

    log_action(scope.db, scope.company_id, user.user_id, "UPDATE", "Project", project.id,
               old_value=old, new_value=data)
    scope.db.commit()
    scope.db.refresh(project)
    return project


@router.delete("/{project_id}")
def deactivate_project(
    project_id: uuid.UUID,
    user: User = Depends(require_admin),
    scope: TenantScope = Depends(get_tenant),
):
    project = scope.get_project_or_404(project_id)
    project.active = False
    log_action(scope.db, scope.company_id, user.user_id, "DELETE", "Project", project.id,
               old_value={"code": project.code, "name": project.name})
    scope.db.commit()
    return {"ok": True, "message": "Project deactivated"}
