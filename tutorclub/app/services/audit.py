"""Append-only audit trail for administrative mutations."""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tutorclub.app.core.errors import AuditWriteError
from tutorclub.app.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


def record_audit(
    db: Session,
    action: str,
    entity: str,
    entity_id,
    actor_id: int | None,
    diff: dict | None = None,
) -> AuditLog:
    """Add an audit row to the caller's transaction.

    The row is flushed, not committed, so it lands together with the mutation
    it describes. A failed write aborts the mutation.
    """
    entry = AuditLog(
        action=action,
        entity=entity,
        entity_id=None if entity_id is None else str(entity_id),
        actor_user_id=actor_id,
        diff=diff,
    )
    try:
        db.add(entry)
        db.flush()
    except SQLAlchemyError as exc:
        logger.error("Audit write failed for %s %s/%s: %s", action, entity, entity_id, exc)
        raise AuditWriteError(f"Failed to write audit log for {action}") from exc
    return entry
