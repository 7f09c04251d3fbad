"""Audit Repository - Data access for audit events"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pymongo.collection import Collection
from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError

from .mongo_client import get_collection, next_sequence, storage_errors
from ..domain.models import AuditLogEntry
from ..utils.logger import get_logger

logger = get_logger(__name__)


class AuditRepository:
    """Repository for audit event operations (append-only)"""

    def __init__(self):
        self._audit_events: Collection = get_collection("audit_events")

    def create_event(self, event: AuditLogEntry) -> AuditLogEntry:
        """Append an audit event, assigning its global sequence"""
        doc = event.model_dump()
        self.insert_if_absent(doc)
        event.sequence = doc["sequence"]
        return event

    def insert_if_absent(self, payload: Dict[str, Any]) -> bool:
        """
        Project an audit event; False if it was already there

        ``payload`` gets its ``sequence`` filled in place.
        """
        audit_event_id = payload["audit_event_id"]
        with storage_errors("insert_audit_event"):
            existing = self._audit_events.find_one({"_id": audit_event_id}, {"sequence": 1})
            if existing:
                payload["sequence"] = existing.get("sequence")
                return False

            payload["sequence"] = next_sequence("audit_events")
            doc = dict(payload)
            doc["_id"] = audit_event_id
            try:
                self._audit_events.insert_one(doc)
            except DuplicateKeyError:
                return False

        logger.info(
            f"Recorded audit event: {payload['action']}",
            extra={
                "audit_event_id": audit_event_id,
                "mission_id": payload.get("mission_id"),
                "actor_id": payload.get("actor_id"),
                "action": payload.get("action"),
            }
        )
        return True

    def query_events(
        self,
        filters: Dict[str, Any],
        limit: int,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None
    ) -> List[AuditLogEntry]:
        """Newest-first audit events matching ``filters`` within the window"""
        query: Dict[str, Any] = {k: v for k, v in filters.items() if v is not None}

        if since or until:
            time_range: Dict[str, Any] = {}
            if since:
                time_range["$gte"] = since
            if until:
                time_range["$lte"] = until
            query["timestamp"] = time_range

        with storage_errors("query_audit_events"):
            docs = list(
                self._audit_events.find(query).sort("sequence", DESCENDING).limit(limit)
            )

        events = []
        for doc in docs:
            doc.pop("_id", None)
            events.append(AuditLogEntry.model_validate(doc))
        return events
