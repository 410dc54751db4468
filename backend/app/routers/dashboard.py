from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.dependencies import get_current_user, get_tenant
from app.models.user import User
from app.services import dashboard as svc
from app.services.tenant import TenantScope

router = APIRouter(prefix="/api/dashboard", tags=["Dashboard"])


@router.get("")
def overview(
    on: Optional[date] = Query(None, alias="date"),
    user: User = Depends(get_current_user),
    scope: TenantScope = Depends(get_tenant),
):
    return svc.overview(scope, user, on)


@router.get("/quick-stats")
def quick_stats(
    on: Optional[date] = Query(None, alias="date"),
    user: User = Depends(get_current_user),
    scope: TenantScope = Depends(get_tenant),
):
    return svc.quick_stats(scope, user, on)
