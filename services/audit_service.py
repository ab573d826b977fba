# services/audit_service.py
"""
Audit sink. Write-only; nothing in the core reads these rows back.

Records are written after the business change has committed. A failure here is
logged and swallowed so it can never undo a committed ledger mutation.
"""
import json
import logging
from datetime import date, datetime
from typing import Any, Optional

from sqlmodel import Session

from models.models import AuditLog

logger = logging.getLogger(__name__)


def _json_default(value: Any):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if hasattr(value, "value"):
        return value.value
    return str(value)


def record_audit(
    session: Session,
    action: str,
    resource: str,
    resource_id: Optional[int],
    user_id: Optional[int],
    organization_id: Optional[int],
    membership_id: Optional[int] = None,
    details: Optional[dict] = None,
) -> Optional[AuditLog]:
    """Best-effort audit write in its own commit."""
    try:
        entry = AuditLog(
            action=action,
            resource=resource,
            resource_id=resource_id,
            user_id=user_id,
            organization_id=organization_id,
            membership_id=membership_id,
            details=json.dumps(details, default=_json_default) if details is not None else None,
        )
        session.add(entry)
        session.commit()
        return entry
    except Exception:
        session.rollback()
        logger.exception("❌ Failed to write audit log %s for %s %s", action, resource, resource_id)
        return None
