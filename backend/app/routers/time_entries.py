"""Time entries router."""

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from fastapi.responses import FileResponse, RedirectResponse

from app.dependencies import get_current_user, get_tenant
from app.models.user import User
from app.schemas.time_entry import (
    AttachmentResponse,
    SyncResponse,
    TimeEntryCreate,
    TimeEntryResponse,
    TimeEntryUpdate,
    WeekViewResponse,
)
from app.services import file_storage
from app.services import time_entries as svc
from app.services.tenant import TenantScope

router = APIRouter(prefix="/api/time-entries", tags=["Time Entries"])


@router.get("/", response_model=list[TimeEntryResponse])
def list_entries(
    from_: Optional[date] = Query(None, alias="from"),
    to: Optional[date] = Query(None),
    user_id: Optional[uuid.UUID] = Query(None),
    project_id: Optional[uuid.UUID] = Query(None),
    status: Optional[str] = Query(None),
    user: User = Depends(get_current_user),
    scope: TenantScope = Depends(get_tenant),
):
    return svc.list_entries(scope, user, from_, to, user_id, project_id, status)


@router.post("/", response_model=TimeEntryResponse, status_code=201)
def create_entry(
    body: TimeEntryCreate,
    user: User = Depends(get_current_user),
    scope: TenantScope = Depends(get_tenant),
):
    return svc.create_entry(scope, user, body)


@router.post("/sync", response_model=SyncResponse)
def sync_entries(
    body: list[dict],
    user: User = Depends(get_current_user),
    scope: TenantScope = Depends(get_tenant),
):
    return {"results": svc.sync_entries(scope, user, body)}


@router.get("/week/{week_start}", response_model=WeekViewResponse)
def get_week(
    week_start: date,
    user_id: Optional[uuid.UUID] = Query(None),
    user: User = Depends(get_current_user),
    scope: TenantScope = Depends(get_tenant),
):
    return svc.get_week(scope, user, week_start, user_id)


# ── Single-entry endpoints (must be AFTER all fixed paths) ──


@router.get("/{entry_id}", response_model=TimeEntryResponse)
def get_entry(
    entry_id: uuid.UUID,
    user: User = Depends(get_current_user),
    scope: TenantScope = Depends(get_tenant),
):
    return svc.get_entry(scope, user, entry_id)


@router.put("/{entry_id}", response_model=TimeEntryResponse)
def update_entry(
    entry_id: uuid.UUID,
    body: TimeEntryUpdate,
    user: User = Depends(get_current_user),
    scope: TenantScope = Depends(get_tenant),
):
    return svc.update_entry(scope, user, entry_id, body)


@router.delete("/{entry_id}")
def delete_entry(
    entry_id: uuid.UUID,
    user: User = Depends(get_current_user),
    scope: TenantScope = Depends(get_tenant),
):
    svc.delete_entry(scope, user, entry_id)
    return {"ok": True, "message": "Time entry deleted"}


@router.post("/{entry_id}/attachments", response_model=AttachmentResponse, status_code=201)
def upload_attachment(
    entry_id: uuid.UUID,
    file: UploadFile = File(...),
    user: User = Depends(get_current_user),
    scope: TenantScope = Depends(get_tenant),
):
    return svc.add_attachment(scope, user, entry_id, file)


@router.delete("/{entry_id}/attachments/{attachment_id}")
def delete_attachment(
    entry_id: uuid.UUID,
    attachment_id: uuid.UUID,
    user: User = Depends(get_current_user),
    scope: TenantScope = Depends(get_tenant),
):
    svc.remove_attachment(scope, user, entry_id, attachment_id)
    return {"ok": True, "message": "Attachment deleted"}


@router.get("/{entry_id}/attachments/{attachment_id}")
def get_attachment_url(
    entry_id: uuid.UUID,
    attachment_id: uuid.UUID,
    user: User = Depends(get_current_user),
    scope: TenantScope = Depends(get_tenant),
):
    return svc.attachment_url(scope, user, entry_id, attachment_id)


@router.get("/{entry_id}/attachments/{attachment_id}/download")
def download_attachment(
    entry_id: uuid.UUID,
    attachment_id: uuid.UUID,
    user: User = Depends(get_current_user),
    scope: TenantScope = Depends(get_tenant),
):
    attachment = svc.get_attachment(scope, user, entry_id, attachment_id)
    if file_storage.STORAGE_BACKEND == "s3":
        return RedirectResponse(file_storage.get_download_url(attachment.storage_key))
    return FileResponse(
        file_storage.local_path(attachment.storage_key),
        media_type=attachment.mime_type,
        filename=attachment.original_name,
    )
