"""Audit API Routes - Global audit log reads"""
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query

from ..deps import get_audit_window_dep, get_current_user_dep, get_correlation_id_dep
from ...domain.models import ActorContext, AuditQuery, AuditWindow
from ...domain.enums import AuditAction, EntityType
from ...domain.errors import DomainError
from ...engine.audit_writer import AuditTrail
from ...engine.outbox_relay import OutboxRelay

router = APIRouter()


@router.get("")
def query_audit(
    actor_id: Optional[str] = Query(None),
    action: Optional[AuditAction] = Query(None),
    entity_type: Optional[EntityType] = Query(None),
    entity_id: Optional[str] = Query(None),
    mission_id: Optional[str] = Query(None),
    window: AuditWindow = Depends(get_audit_window_dep),
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """
    Audit entries, newest first

    Pending outbox entries are projected first, a batch per collection.
    """
    try:
        OutboxRelay().drain_pending()
        entries = AuditTrail().query(
            AuditQuery(
                actor_id=actor_id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                mission_id=mission_id
            ),
            window
        )
        return {"items": [e.model_dump(mode="json") for e in entries], "limit": window.limit}
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
