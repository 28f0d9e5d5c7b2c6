import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pnl.models.audit_log import AuditLog

log = logging.getLogger(__name__)


def log_event(
    s: Session,
    username: str | None,
    action: str,
    entity_type: str,
    entity_id: int | None = None,
    details: dict | None = None,
) -> AuditLog | None:
    """Append an audit row. Failures are logged and swallowed."""
    row = AuditLog(
        username=username or "system",
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
    )
    try:
        s.add(row)
        s.commit()
    except SQLAlchemyError:
        s.rollback()
        log.exception("audit append failed: %s %s#%s", action, entity_type, entity_id)
        return None
    return row
