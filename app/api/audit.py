"""
Audit Log API routes.
"""
from typing import List, Optional
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from sqlalchemy import desc, distinct

from app.api.schemas import AuditLogResponse, audit_to_response
from app.db.session import get_db
from app.db.models import AuditLog
from app.core.rbac import Principal, require_admin

router = APIRouter(prefix="/api/audit", tags=["Audit"])


# ============= ROUTES =============

@router.get("/logs", response_model=List[AuditLogResponse])
async def list_audit_logs(
    action: Optional[str] = Query(None, description="Filter by action type"),
    entity_type: Optional[str] = Query(None, description="Filter by entity type"),
    entity_id: Optional[str] = Query(None, description="Filter by entity"),
    principal_id: Optional[str] = Query(None, description="Filter by principal"),
    start_date: Optional[datetime] = Query(None, description="Start date filter"),
    end_date: Optional[datetime] = Query(None, description="End date filter"),
    limit: int = Query(100, le=500),
    offset: int = Query(0),
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """List workflow audit entries, newest first (admin only)."""
    query = db.query(AuditLog)

    if action:
        query = query.filter(AuditLog.action == action)

    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)

    if entity_id:
        query = query.filter(AuditLog.entity_id == entity_id)

    if principal_id:
        query = query.filter(AuditLog.principal_id == principal_id)

    if start_date:
        query = query.filter(AuditLog.timestamp >= start_date)

    if end_date:
        query = query.filter(AuditLog.timestamp <= end_date)

    logs = query.order_by(desc(AuditLog.timestamp), desc(AuditLog.id)).offset(offset).limit(limit).all()
    return [audit_to_response(log) for log in logs]


@router.get("/actions")
async def list_action_types(
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """List all unique action types in audit log."""
    actions = db.query(distinct(AuditLog.action)).all()
    return sorted(a[0] for a in actions)
