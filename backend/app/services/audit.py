import json
import uuid
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.orm import Session

from app.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


def _json_default(value: Any):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_jsonable(value: Any) -> Any:
    """Round-trip through json so dates, decimals and UUIDs land as plain JSON."""
    if value is None:
        return None
    return json.loads(json.dumps(value, default=_json_default))


def log_action(
    db: Session,
    company_id: uuid.UUID,
    user_id: Optional[uuid.UUID],
    action: str,
    entity_type: str,
    entity_id: Any = None,
    old_value: dict | None = None,
    new_value: dict | None = None,
    commit: bool = False,
) -> AuditLog:
    """
    Append an audit record to the current transaction.

    The record is committed together with the change it describes; pass
    ``commit=True`` only when nothing else is pending.
    """
    entry = AuditLog(
        company_id=company_id,
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        old_value=to_jsonable(old_value),
        new_value=to_jsonable(new_value),
    )
    db.add(entry)
    if commit:
        db.commit()
    logger.debug("audit %s %s %s by %s", action, entity_type, entity_id, user_id)
    return entry
