"""
Authentication and authorization dependencies.

Every API route except login requires ``Authorization: Bearer <token>``. The
authenticated user's company becomes the tenant scope for all data access.
"""

from fastapi import HTTPException, Header, Depends
from sqlalchemy.orm import Session
from typing import Optional

from app.database import get_db
from app.services.auth import decode_access_token
from app.services.tenant import TenantScope
from app.models.user import User, ROLE_ADMIN, REVIEWER_ROLES


def get_current_user(
    authorization: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the Bearer token to an active user."""
    if not authorization:
        raise HTTPException(status_code=401, detail="Not authenticated", headers={"WWW-Authenticate": "Bearer"})

    token = authorization.removeprefix("Bearer ").strip()
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated", headers={"WWW-Authenticate": "Bearer"})

    payload = decode_access_token(token)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    user = db.query(User).filter(User.user_id == payload["sub"]).first()
    if not user or user.is_active is False:
        raise HTTPException(status_code=401, detail="User not found or disabled")

    return user


def get_tenant(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> TenantScope:
    return TenantScope(db, user.company_id)


def require_supervisor(user: User = Depends(get_current_user)) -> User:
    """Require supervisor or admin role."""
    if user.role not in REVIEWER_ROLES:
        raise HTTPException(status_code=403, detail="Supervisor access required")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    """Require admin role."""
    if user.role != ROLE_ADMIN:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
