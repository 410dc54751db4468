from fastapi import APIRouter, Depends

from app.dependencies import get_current_user, get_tenant, require_admin
from app.models.user import User
from app.schemas.settings import SettingsResponse, SettingsUpdate
from app.services.audit import log_action
from app.services.tenant import TenantScope

router = APIRouter(prefix="/api/settings", tags=["Settings"])


@router.get("", response_model=SettingsResponse)
def get_settings(
    _user: User = Depends(get_current_user),
    scope: TenantScope = Depends(get_tenant),
):
    settings = scope.settings()
    scope.db.commit()
    return settings


@router.put("", response_model=SettingsResponse)
def update_settings(
    body: SettingsUpdate,
    user: User = Depends(require_admin),
    scope: TenantScope = Depends(get_tenant),
):
    settings = scope.settings()
    data = {key: value for key, value in body.model_dump(exclude_unset=True).items() if value is not None}
    old = {key: getattr(settings, key) for key in data}
    for key, value in data.items():
        setattr(settings, key, value)

    log_action(scope.db, scope.company_id, user.user_id, "UPDATE", "CompanySettings", scope.company_id,
               old_value=old, new_value=data)
    scope.db.commit()
    scope.db.refresh(settings)
    return settings
