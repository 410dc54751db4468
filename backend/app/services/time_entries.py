"""
Time entry lifecycle: create, edit, delete and offline sync of single entries.

Status is never taken from the client. Entries start as DRAFT and only move
through the week lock transitions in ``week_locks``.
"""

import uuid
import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import UploadFile
from pydantic import ValidationError as SchemaError
from sqlalchemy.exc import IntegrityError

from app.exceptions import (
    TimeTrackingError, ForbiddenError, InvalidStateError, NotFoundError,
    ValidationError, WeekLockedError,
)
from app.models.catalog import Activity
from app.models.timesheet import Attachment, TimeEntry, STATUS_DRAFT
from app.models.user import User
from app.schemas.time_entry import TimeEntryCreate, TimeEntryUpdate, TimeEntrySyncItem
from app.services.audit import log_action
from app.services import file_storage
from app.services.file_storage import save_upload, delete_file, get_download_url, purge_files
from app.services.lock_state import LockState, resolve_lock_state, serialize_lock_state
from app.services.tenant import TenantScope
from app.services.weeks import week_range, week_start

logger = logging.getLogger(__name__)

ENTITY = "TimeEntry"

_ENTRY_FIELDS = (
    "project_id", "activity_id", "date", "start_time", "end_time", "hours",
    "billable", "note", "gps_lat", "gps_lng",
)
_REQUIRED_FIELDS = ("activity_id", "date", "hours")


# ── helpers ──


def check_hours(hours) -> Decimal:
    if hours is None:
        raise ValidationError("Hours are required", {"hours": "required"})
    value = Decimal(str(hours))
    if value < 0 or value > 24:
        raise ValidationError("Hours must be between 0 and 24", {"hours": "range"})
    return value


def ensure_week_editable(scope: TenantScope, user_id: uuid.UUID, day: date) -> LockState:
    state = resolve_lock_state(scope, user_id, day)
    if state.is_locked:
        raise WeekLockedError(f"The week of {state.week_start.isoformat()} is locked for editing")
    return state


def _resolve_refs(scope: TenantScope, project_id: Optional[uuid.UUID], activity_id: uuid.UUID) -> Activity:
    if project_id is not None:
        scope.get_project_or_404(project_id)
    return scope.get_activity_or_404(activity_id)


def _snapshot(entry: TimeEntry) -> dict:
    return {
        "date": entry.date,
        "hours": entry.hours,
        "project_id": entry.project_id,
        "activity_id": entry.activity_id,
        "billable": entry.billable,
        "note": entry.note,
        "status": entry.status,
    }


def _authorize_entry_change(scope: TenantScope, actor: User, entry: TimeEntry) -> bool:
    """
    Raise unless ``actor`` may change ``entry``. Returns whether week locks
    must be enforced for the change.
    """
    if not actor.is_reviewer:
        if entry.user_id != actor.user_id:
            raise ForbiddenError()
        if entry.status != STATUS_DRAFT:
            raise InvalidStateError("Only draft time entries can be changed")
        enforce_lock = True
    else:
        enforce_lock = not scope.settings().privileged_edit_locked_weeks

    if enforce_lock:
        ensure_week_editable(scope, entry.user_id, entry.date)
    return enforce_lock


# ── reads ──


def list_entries(
    scope: TenantScope,
    actor: User,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    user_id: Optional[uuid.UUID] = None,
    project_id: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
) -> list[TimeEntry]:
    q = scope.entries()
    if not actor.is_reviewer:
        q = q.filter(TimeEntry.user_id == actor.user_id)
    elif user_id:
        q = q.filter(TimeEntry.user_id == user_id)
    if date_from:
        q = q.filter(TimeEntry.date >= date_from)
    if date_to:
        q = q.filter(TimeEntry.date <= date_to)
    if project_id:
        q = q.filter(TimeEntry.project_id == project_id)
    if status:
        q = q.filter(TimeEntry.status == status)
    return q.order_by(TimeEntry.date.desc(), TimeEntry.created_at.desc()).all()


def get_entry(scope: TenantScope, actor: User, entry_id: uuid.UUID) -> TimeEntry:
    entry = scope.get_entry_or_404(entry_id)
    if not actor.is_reviewer and entry.user_id != actor.user_id:
        raise ForbiddenError()
    return entry


def get_week(scope: TenantScope, actor: User, day: date, user_id: Optional[uuid.UUID] = None) -> dict:
    """Entries, lock state and totals for the week containing ``day``."""
    target_id = actor.user_id
    if user_id and user_id != actor.user_id and actor.is_reviewer:
        target_id = scope.get_user_or_404(user_id).user_id

    start, end = week_range(day)
    entries = (
        scope.week_entries(target_id, start, end)
        .order_by(TimeEntry.date.asc(), TimeEntry.created_at.asc())
        .all()
    )
    state = resolve_lock_state(scope, target_id, start)

    daily_totals: dict[str, float] = {}
    total = Decimal("0")
    billable = Decimal("0")
    for e in entries:
        key = e.date.isoformat()
        daily_totals[key] = daily_totals.get(key, 0.0) + float(e.hours)
        total += e.hours
        if e.billable:
            billable += e.hours

    return {
        "user_id": target_id,
        "week_start": start,
        "week_end": end,
        "entries": entries,
        "lock": serialize_lock_state(state),
        "summary": {
            "total_hours": float(total),
            "billable_hours": float(billable),
            "daily_totals": daily_totals,
        },
    }


# ── writes ──


def create_entry(scope: TenantScope, actor: User, body: TimeEntryCreate) -> TimeEntry:
    db = scope.db
    hours = check_hours(body.hours)
    ensure_week_editable(scope, actor.user_id, body.date)
    activity = _resolve_refs(scope, body.project_id, body.activity_id)

    entry = TimeEntry(
        company_id=scope.company_id,
        user_id=actor.user_id,
        project_id=body.project_id,
        activity_id=body.activity_id,
        date=body.date,
        start_time=body.start_time,
        end_time=body.end_time,
        hours=hours,
        billable=body.billable if body.billable is not None else activity.billable_default,
        note=body.note,
        gps_lat=body.gps_lat,
        gps_lng=body.gps_lng,
        status=STATUS_DRAFT,
    )
    db.add(entry)
    db.flush()

    log_action(
        db, scope.company_id, actor.user_id, "CREATE", ENTITY, entry.id,
        new_value={"date": entry.date, "hours": entry.hours, "project_id": entry.project_id},
    )
    db.commit()
    db.refresh(entry)
    return entry


def update_entry(scope: TenantScope, actor: User, entry_id: uuid.UUID, body: TimeEntryUpdate) -> TimeEntry:
    db = scope.db
    entry = scope.get_entry_or_404(entry_id)
    enforce_lock = _authorize_entry_change(scope, actor, entry)

    changes = body.model_dump(exclude_unset=True)
    for field in _REQUIRED_FIELDS:
        if field in changes and changes[field] is None:
            raise ValidationError(f"{field} cannot be empty", {field: "required"})

    if "hours" in changes:
        changes["hours"] = check_hours(changes["hours"])

    activity = None
    if "activity_id" in changes:
        activity = scope.get_activity_or_404(changes["activity_id"])
    if changes.get("project_id") is not None:
        scope.get_project_or_404(changes["project_id"])

    new_date = changes.get("date")
    if enforce_lock and new_date is not None and week_start(new_date) != week_start(entry.date):
        ensure_week_editable(scope, entry.user_id, new_date)

    if "billable" in changes and changes["billable"] is None:
        activity = activity or scope.get_activity_or_404(changes.get("activity_id", entry.activity_id))
        changes["billable"] = activity.billable_default

    old_value = {k: v for k, v in _snapshot(entry).items() if k in changes}
    for field, value in changes.items():
        setattr(entry, field, value)

    log_action(db, scope.company_id, actor.user_id, "UPDATE", ENTITY, entry.id, old_value, changes)
    db.commit()
    db.refresh(entry)
    return entry


def delete_entry(scope: TenantScope, actor: User, entry_id: uuid.UUID) -> None:
    db = scope.db
    entry = scope.get_entry_or_404(entry_id)
    _authorize_entry_change(scope, actor, entry)

    # attachment rows go in the same transaction; files are removed once it commits
    keys = [a.storage_key for a in entry.attachments]
    for attachment in list(entry.attachments):
        db.delete(attachment)

    old_value = _snapshot(entry)
    db.delete(entry)
    log_action(db, scope.company_id, actor.user_id, "DELETE", ENTITY, entry_id, old_value=old_value)
    db.commit()

    failed = purge_files(keys)
    if failed:
        logger.warning("Time entry %s deleted but %d attachment file(s) remain: %s", entry_id, len(failed), failed)


# ── offline sync ──


def _sync_one(scope: TenantScope, actor: User, item: TimeEntrySyncItem) -> dict:
    db = scope.db

    if item.id is None and item.local_id:
        already = (
            scope.entries()
            .filter(TimeEntry.user_id == actor.user_id, TimeEntry.client_ref == item.local_id)
            .first()
        )
        if already is not None:
            return {"local_id": item.local_id, "id": already.id, "synced": True, "duplicate": True}

    hours = check_hours(item.hours)
    ensure_week_editable(scope, actor.user_id, item.date)
    activity = _resolve_refs(scope, item.project_id, item.activity_id)

    values = item.model_dump(include=set(_ENTRY_FIELDS))
    values["hours"] = hours
    if values["billable"] is None:
        values["billable"] = activity.billable_default

    if item.id is not None:
        entry = scope.entries().filter(TimeEntry.id == item.id).first()
        if entry is None:
            raise NotFoundError("Time entry not found")
        if entry.user_id != actor.user_id:
            raise ForbiddenError()
        if entry.status != STATUS_DRAFT:
            raise InvalidStateError("Only draft time entries can be changed")
        old_value = _snapshot(entry)
        for field, value in values.items():
            setattr(entry, field, value)
        log_action(db, scope.company_id, actor.user_id, "UPDATE", ENTITY, entry.id, old_value, values)
    else:
        entry = TimeEntry(
            company_id=scope.company_id,
            user_id=actor.user_id,
            status=STATUS_DRAFT,
            client_ref=item.local_id,
            **values,
        )
        db.add(entry)
        db.flush()
        log_action(
            db, scope.company_id, actor.user_id, "CREATE", ENTITY, entry.id,
            new_value={"date": entry.date, "hours": entry.hours, "project_id": entry.project_id, "sync": True},
        )

    return {"local_id": item.local_id, "id": entry.id, "synced": True}


def _raw_refs(raw: dict) -> tuple[Optional[str], Optional[uuid.UUID]]:
    """local_id and id of an item that failed schema validation, when usable."""
    local_id = raw.get("local_id")
    if not isinstance(local_id, str):
        local_id = None
    try:
        entry_id = uuid.UUID(str(raw["id"])) if raw.get("id") else None
    except ValueError:
        entry_id = None
    return local_id, entry_id


def _schema_error_fields(exc: SchemaError) -> dict:
    return {".".join(str(p) for p in err["loc"]) or "item": err["type"] for err in exc.errors()}


def sync_entries(scope: TenantScope, actor: User, items: list[dict]) -> list[dict]:
    """
    Replay entries captured offline.

    Items are processed in order, each in its own transaction. A failing item,
    including one that does not parse, is reported in its result and does not
    affect the others.
    """
    db = scope.db
    results = []
    for raw in items:
        try:
            item = TimeEntrySyncItem.model_validate(raw)
        except SchemaError as exc:
            local_id, entry_id = _raw_refs(raw)
            fields = _schema_error_fields(exc)
            logger.warning("Sync item %s rejected for user %s: invalid fields %s", local_id, actor.user_id, fields)
            results.append({
                "local_id": local_id,
                "id": entry_id,
                "synced": False,
                "error": "Invalid time entry: " + ", ".join(sorted(fields)),
                "code": ValidationError.code,
            })
            continue

        try:
            result = _sync_one(scope, actor, item)
            db.commit()
        except TimeTrackingError as exc:
            db.rollback()
            logger.warning("Sync item %s rejected for user %s: %s", item.local_id, actor.user_id, exc.message)
            result = {"local_id": item.local_id, "id": item.id, "synced": False, "error": exc.message, "code": exc.code}
        except IntegrityError:
            # a concurrent replay of the same local id won the insert
            db.rollback()
            already = None
            if item.local_id:
                already = (
                    scope.entries()
                    .filter(TimeEntry.user_id == actor.user_id, TimeEntry.client_ref == item.local_id)
                    .first()
                )
            if already is None:
                raise
            result = {"local_id": item.local_id, "id": already.id, "synced": True, "duplicate": True}
        results.append(result)

    synced = sum(1 for r in results if r["synced"])
    logger.info("Sync for user %s: %d/%d entries synced", actor.user_id, synced, len(results))
    return results


# ── attachments ──


def add_attachment(scope: TenantScope, actor: User, entry_id: uuid.UUID, file: UploadFile) -> Attachment:
    db = scope.db
    entry = get_entry(scope, actor, entry_id)

    key, original_name, size, content_type = save_upload(file, subfolder=f"attachments/{scope.company_id}")
    attachment = Attachment(
        time_entry_id=entry.id,
        storage_key=key,
        original_name=original_name,
        mime_type=content_type,
        size=size,
    )
    db.add(attachment)
    db.flush()
    log_action(
        db, scope.company_id, actor.user_id, "ATTACH", ENTITY, entry.id,
        new_value={"attachment_id": attachment.id, "name": original_name, "size": size},
    )
    try:
        db.commit()
    except Exception:
        db.rollback()
        delete_file(key)
        raise
    db.refresh(attachment)
    return attachment


def remove_attachment(scope: TenantScope, actor: User, entry_id: uuid.UUID, attachment_id: uuid.UUID) -> None:
    db = scope.db
    attachment = scope.attachments().filter(Attachment.id == attachment_id).first()
    if attachment is None or attachment.time_entry_id != entry_id:
        raise NotFoundError("Attachment not found")
    if not actor.is_reviewer and attachment.time_entry.user_id != actor.user_id:
        raise ForbiddenError()

    key = attachment.storage_key
    db.delete(attachment)
    log_action(
        db, scope.company_id, actor.user_id, "DETACH", ENTITY, entry_id,
        old_value={"attachment_id": attachment_id, "name": attachment.original_name},
    )
    db.commit()
    delete_file(key)


def get_attachment(scope: TenantScope, actor: User, entry_id: uuid.UUID, attachment_id: uuid.UUID) -> Attachment:
    entry = get_entry(scope, actor, entry_id)
    attachment = scope.attachments().filter(Attachment.id == attachment_id, Attachment.time_entry_id == entry.id).first()
    if attachment is None:
        raise NotFoundError("Attachment not found")
    return attachment


def attachment_url(scope: TenantScope, actor: User, entry_id: uuid.UUID, attachment_id: uuid.UUID) -> dict:
    """
    Where the client fetches the file: a presigned bucket URL, or for local
    storage the authenticated download endpoint.
    """
    attachment = get_attachment(scope, actor, entry_id, attachment_id)
    if file_storage.STORAGE_BACKEND == "s3":
        url = get_download_url(attachment.storage_key)
    else:
        url = f"/api/time-entries/{entry_id}/attachments/{attachment_id}/download"
    return {
        "url": url,
        "original_name": attachment.original_name,
        "mime_type": attachment.mime_type,
    }
