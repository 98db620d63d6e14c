import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from loguru import logger
from sqlmodel import Session

from ddsportal.db.schema import SystemAuditLog, AuditAction
from ddsportal.db import core as db_core


def _perform_audit_log(
    actor_user_id: Optional[uuid.UUID],
    entity_type: str,
    entity_id: Any,
    action: AuditAction,
    changes: Dict[str, Any],
    ip_address: Optional[str] = None
):
    """
    Background worker.
    Creates its OWN session using the global engine, so an audit failure can
    never roll back the request that triggered it.
    """
    try:
        with Session(db_core.engine) as session:
            log_entry = SystemAuditLog(
                actor_user_id=actor_user_id,
                entity_type=entity_type,
                entity_id=str(entity_id),
                action=action,
                changes=changes,
                ip_address=ip_address,
                timestamp=datetime.utcnow()
            )
            session.add(log_entry)
            session.commit()

    except Exception:
        logger.exception(f"Audit log failed for {entity_type} {entity_id}")
