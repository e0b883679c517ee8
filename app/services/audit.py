"""
Audit trail helpers.

Rows are added to the caller's session so they commit (or roll back) with
the mutation they describe.
"""
from typing import Optional

from sqlalchemy.orm import Session

from app.core.logging import audit_logger
from app.core.rbac import Principal
from app.db.models import AuditLog


def record_audit(
    db: Session,
    actor: Optional[Principal],
    action: str,
    entity_type: str,
    entity_id: str,
    details: Optional[dict] = None,
) -> AuditLog:
    entry = AuditLog(
        principal_id=actor.principal_id if actor else None,
        organization=actor.organization if actor else None,
        role=actor.role.value if actor else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
    )
    db.add(entry)
    return entry


def emit_audit(
    actor: Optional[Principal],
    action: str,
    entity_type: str,
    entity_id: str,
    details: Optional[dict] = None,
):
    """Write the structured AUDIT log line once the transaction has committed."""
    audit_logger.log(
        action=action,
        principal_id=actor.principal_id if actor else None,
        organization=actor.organization if actor else None,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
    )
