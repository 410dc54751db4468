import uuid
import logging

from fastapi import APIRouter, Depends

from app.dependencies import get_tenant, require_admin, require_supervisor
from app.exceptions import ValidationError
from app.models.user import User, ROLE_ADMIN
from app.schemas.users import GdprEraseResponse, UserCreate, UserResponse, UserUpdate
from app.services.audit import log_action
from app.services.auth import get_password_hash
from app.services.gdpr import erase_user
from app.services.tenant import TenantScope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.get("/", response_model=list[UserResponse])
def list_users(
    _user: User = Depends(require_supervisor),
    scope: TenantScope = Depends(get_tenant),
):
    return scope.users().order_by(User.name).all()


@router.post("/", response_model=UserResponse, status_code=201)
def create_user(
    body: UserCreate,
    actor: User = Depends(require_admin),
    scope: TenantScope = Depends(get_tenant),
):
    email = body.email.strip().lower()
    # emails are unique across companies since login is by email
    if scope.db.query(User).filter(User.email == email).first():
        raise ValidationError("A user with this email already exists", {"email": "duplicate"})

    user = User(
        company_id=scope.company_id,
        email=email,
        password_hash=get_password_hash(body.password),
        name=body.name.strip(),
        role=body.role,
        hourly_cost=body.hourly_cost,
    )
    scope.db.add(user)
    scope.db.flush()
    log_action(scope.db, scope.company_id, actor.user_id, "CREATE", "User", user.user_id,
               new_value={"email": email, "role": body.role})
    scope.db.commit()
    scope.db.refresh(user)
    logger.info("Created %s %s in company %s", body.role, user.user_id, scope.company_id)
    return user


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: uuid.UUID,
    _user: User = Depends(require_supervisor),
    scope: TenantScope = Depends(get_tenant),
):
    return scope.get_user_or_404(user_id)


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: uuid.UUID,
    body: UserUpdate,
    actor: User = Depends(require_admin),
    scope: TenantScope = Depends(get_tenant),
):
    user = scope.get_user_or_404(user_id)
    data = body.model_dump(exclude_unset=True)
    for key in ("email", "name", "role", "is_active"):
        if key in data and data[key] is None:
            raise ValidationError(f"{key} cannot be empty", {key: "required"})

    if user.user_id == actor.user_id:
        # admins cannot deactivate or demote themselves
        if data.get("is_active") is False:
            raise ValidationError("You cannot deactivate yourself", {"is_active": "self"})
        if data.get("role", ROLE_ADMIN) != ROLE_ADMIN:
            raise ValidationError("You cannot change your own role", {"role": "self"})

    if "email" in data:
        data["email"] = data["email"].strip().lower()
        taken = scope.db.query(User).filter(User.email == data["email"], User.user_id != user.user_id).first()
        if taken:
            raise ValidationError("A user with this email already exists", {"email": "duplicate"})
    if "name" in data:
        data["name"] = data["name"].strip()

    old = {key: getattr(user, key) for key in data}
    for key, value in data.items():
        setattr(user, key, value)

    log_action(scope.db, scope.company_id, actor.user_id, "UPDATE", "User", user.user_id,
               old_value=old, new_value=data)
    scope.db.commit()
    scope.db.refresh(user)
    return user


@router.delete("/{user_id}")
def deactivate_user(
    user_id: uuid.UUID,
    actor: User = Depends(require_admin),
    scope: TenantScope = Depends(get_tenant),
):
    """Soft delete: the account can no longer log in, its time entries stay."""
    if user_id == actor.user_id:
        raise ValidationError("You cannot deactivate yourself", {"user_id": "self"})
    user = scope.get_user_or_404(user_id)
    user.is_active = False
    log_action(scope.db, scope.company_id, actor.user_id, "DELETE", "User", user.user_id,
               old_value={"email": user.email, "name": user.name})
    scope.db.commit()
    logger.info("Deactivated user %s in company %s", user.user_id, scope.company_id)
    return {"ok": True, "message": "User deactivated"}


@router.delete("/{user_id}/gdpr", response_model=GdprEraseResponse)
def gdpr_erase(
    user_id: uuid.UUID,
    actor: User = Depends(require_admin),
    scope: TenantScope = Depends(get_tenant),
):
    return erase_user(scope, actor, user_id)
