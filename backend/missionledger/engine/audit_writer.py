"""Audit Writer - Append-only audit events"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..config.settings import settings
from ..domain.models import (
    ActorContext, AuditLogEntry, AuditQuery, AuditWindow, OutboxEntry
)
from ..domain.enums import AuditAction, EntityType, OutboxEntryKind
from ..domain.errors import ValidationError
from ..repositories.audit_repo import AuditRepository
from ..utils.idgen import generate_audit_event_id, generate_outbox_entry_id
from ..utils.logger import get_correlation_id, get_logger
from ..utils.time import utc_now

logger = get_logger(__name__)


class AuditWriter:
    """
    Write audit events (append-only)

    Audited mutations do not call ``record`` directly: they build the entry
    with one of the ``build_*`` helpers and commit it inside their own
    document's outbox via ``as_outbox_entry``, so the mutation and its audit
    entry succeed or fail together. ``record`` is for actions that mutate
    nothing else (exports).
    """

    def __init__(self):
        self.repo = AuditRepository()

    def build_event(
        self,
        actor_id: str,
        action: AuditAction,
        entity_type: EntityType,
        entity_id: str,
        mission_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> AuditLogEntry:
        """Build an entry without storing it"""
        return AuditLogEntry(
            audit_event_id=generate_audit_event_id(),
            actor_id=actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            mission_id=mission_id,
            details=details or {},
            correlation_id=get_correlation_id(),
            timestamp=utc_now(),
        )

    @staticmethod
    def as_outbox_entry(event: AuditLogEntry) -> OutboxEntry:
        """Wrap an entry so it commits with its owning document"""
        return OutboxEntry(
            entry_id=generate_outbox_entry_id(),
            kind=OutboxEntryKind.AUDIT_EVENT,
            payload=event.model_dump(exclude={"sequence"}),
            created_at=event.timestamp,
        )

    def record(
        self,
        actor_id: str,
        action: AuditAction,
        entity_type: EntityType,
        entity_id: str,
        details: Optional[Dict[str, Any]] = None,
        mission_id: Optional[str] = None
    ) -> AuditLogEntry:
        """
        Append an entry immediately

        Raises:
            StorageUnavailableError: the caller must treat its operation as failed
        """
        event = self.build_event(actor_id, action, entity_type, entity_id, mission_id, details)
        return self.repo.create_event(event)

    # =========================================================================
    # Typed builders
    # =========================================================================

    def build_publish_definition(
        self,
        actor: ActorContext,
        definition_id: str,
        name: str,
        version_number: int
    ) -> AuditLogEntry:
        return self.build_event(
            actor_id=actor.actor_id,
            action=AuditAction.CREATE,
            entity_type=EntityType.WORKFLOW_DEFINITION,
            entity_id=definition_id,
            details={"name": name, "version_number": version_number},
        )

    def build_create_mission(self, actor: ActorContext, mission_id: str, name: str) -> AuditLogEntry:
        return self.build_event(
            actor_id=actor.actor_id,
            action=AuditAction.CREATE,
            entity_type=EntityType.MISSION,
            entity_id=mission_id,
            mission_id=mission_id,
            details={"name": name},
        )

    def build_create_instance(
        self,
        actor: ActorContext,
        instance_id: str,
        mission_id: str,
        definition_id: str,
        initial_state: str
    ) -> AuditLogEntry:
        return self.build_event(
            actor_id=actor.actor_id,
            action=AuditAction.CREATE,
            entity_type=EntityType.WORKFLOW_INSTANCE,
            entity_id=instance_id,
            mission_id=mission_id,
            details={"definition_id": definition_id, "initial_state": initial_state},
        )

    def build_transition(
        self,
        actor: ActorContext,
        instance_id: str,
        mission_id: str,
        from_state: str,
        to_state: str,
        via_override: bool,
        notes: Optional[str] = None
    ) -> AuditLogEntry:
        details: Dict[str, Any] = {
            "from": from_state,
            "to": to_state,
            "role": actor.role,
            "via_override": via_override,
        }
        if notes:
            details["notes"] = notes
        return self.build_event(
            actor_id=actor.actor_id,
            action=AuditAction.TRANSITION,
            entity_type=EntityType.WORKFLOW_INSTANCE,
            entity_id=instance_id,
            mission_id=mission_id,
            details=details,
        )

    def build_append_evidence(
        self,
        actor_id: str,
        evidence_id: str,
        mission_id: str,
        title: str,
        content_hash: str,
        source_run_id: Optional[str] = None
    ) -> AuditLogEntry:
        details: Dict[str, Any] = {"title": title, "hash": content_hash}
        if source_run_id:
            details["source_run_id"] = source_run_id
        return self.build_event(
            actor_id=actor_id,
            action=AuditAction.CREATE,
            entity_type=EntityType.EVIDENCE,
            entity_id=evidence_id,
            mission_id=mission_id,
            details=details,
        )

    def build_recommendation_event(
        self,
        actor: ActorContext,
        action: AuditAction,
        recommendation_id: str,
        mission_id: Optional[str],
        details: Dict[str, Any]
    ) -> AuditLogEntry:
        return self.build_event(
            actor_id=actor.actor_id,
            action=action,
            entity_type=EntityType.RECOMMENDATION,
            entity_id=recommendation_id,
            mission_id=mission_id,
            details=details,
        )

    # =========================================================================
    # Direct records
    # =========================================================================

    def write_export(
        self,
        actor: ActorContext,
        mission_id: str,
        bundle_sha256: str,
        transition_count: int,
        evidence_count: int
    ) -> AuditLogEntry:
        """Write evidence pack export event"""
        return self.record(
            actor_id=actor.actor_id,
            action=AuditAction.EXPORT,
            entity_type=EntityType.EVIDENCE_PACK,
            entity_id=mission_id,
            mission_id=mission_id,
            details={
                "sha256": bundle_sha256,
                "transitions": transition_count,
                "evidence": evidence_count,
            },
        )

    def build_probe_run(
        self,
        actor: ActorContext,
        probe_id: str,
        run_id: str,
        status: str,
        result: Dict[str, Any]
    ) -> AuditLogEntry:
        return self.build_event(
            actor_id=actor.actor_id,
            action=AuditAction.PROBE_RUN,
            entity_type=EntityType.PROBE,
            entity_id=probe_id,
            details={"run_id": run_id, "status": status, "result": result},
        )


class AuditTrail:
    """Read side of the audit log; every read is bounded by an AuditWindow"""

    def __init__(self, repo: Optional[AuditRepository] = None):
        self.repo = repo or AuditRepository()

    @staticmethod
    def window(
        limit: Optional[int] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None
    ) -> AuditWindow:
        """Build a window with the configured default and ceiling"""
        if limit is None:
            limit = settings.audit_default_window
        if limit < 1 or limit > settings.audit_max_window:
            raise ValidationError(
                f"Audit window limit must be between 1 and {settings.audit_max_window}",
                details={"limit": limit}
            )
        if since and until and since > until:
            raise ValidationError(
                "Audit window 'since' must not be after 'until'",
                details={"since": str(since), "until": str(until)}
            )
        return AuditWindow(limit=limit, since=since, until=until)

    def query(self, audit_filter: AuditQuery, window: AuditWindow) -> List[AuditLogEntry]:
        """Newest-first entries matching the filter"""
        limit = min(window.limit, settings.audit_max_window)
        return self.repo.query_events(
            audit_filter.model_dump(),
            limit=limit,
            since=window.since,
            until=window.until,
        )

    def list_for_mission(self, mission_id: str, window: AuditWindow) -> List[AuditLogEntry]:
        return self.query(AuditQuery(mission_id=mission_id), window)
