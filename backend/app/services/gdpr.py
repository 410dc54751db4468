"""Permanent erasure of a user and everything they logged."""

import uuid
import logging

from app.exceptions import ValidationError
from app.models.audit_log import AuditLog
from app.models.timesheet import Attachment, TimeEntry, WeekLock
from app.models.user import User
from app.services.audit import log_action
from app.services.file_storage import purge_files
from app.services.tenant import TenantScope

logger = logging.getLogger(__name__)


def erase_user(scope: TenantScope, actor: User, user_id: uuid.UUID) -> dict:
    """
    Delete the user, their entries, attachments and week locks in one
    transaction. Audit records they authored are kept with the actor cleared.
    Stored attachment files are removed after the commit.
    """
    db = scope.db
    if user_id == actor.user_id:
        raise ValidationError("You cannot erase your own account", {"user_id": "self"})
    user = scope.get_user_or_404(user_id)
    snapshot = {"email": user.email, "name": user.name}

    entry_ids = [row.id for row in scope.entries().filter(TimeEntry.user_id == user_id).with_entities(TimeEntry.id)]
    keys = []
    attachments_deleted = 0
    if entry_ids:
        attachments = db.query(Attachment).filter(Attachment.time_entry_id.in_(entry_ids))
        keys = [a.storage_key for a in attachments]
        attachments_deleted = attachments.delete(synchronize_session=False)

    entries_deleted = scope.entries().filter(TimeEntry.user_id == user_id).delete(synchronize_session=False)
    locks_deleted = scope.locks().filter(WeekLock.user_id == user_id).delete(synchronize_session=False)

    # references the user holds on other people's data
    scope.entries().filter(TimeEntry.approver_id == user_id).update(
        {TimeEntry.approver_id: None}, synchronize_session=False
    )
    scope.locks().filter(WeekLock.reviewer_id == user_id).update(
        {WeekLock.reviewer_id: None}, synchronize_session=False
    )
    scope.audit().filter(AuditLog.user_id == user_id).update(
        {AuditLog.user_id: None}, synchronize_session=False
    )
    scope.users().filter(User.user_id == user_id).delete(synchronize_session=False)

    log_action(db, scope.company_id, actor.user_id, "GDPR_DELETE", "User", user_id, old_value=snapshot)
    db.commit()

    failed = purge_files(keys)
    if failed:
        logger.warning("GDPR erasure of %s left %d attachment file(s): %s", user_id, len(failed), failed)
    logger.info(
        "Erased user %s: %d entries, %d locks, %d attachments",
        user_id, entries_deleted, locks_deleted, attachments_deleted,
    )
    return {
        "message": "User and all related data permanently deleted",
        "entries": entries_deleted,
        "week_locks": locks_deleted,
        "attachments": attachments_deleted,
    }
