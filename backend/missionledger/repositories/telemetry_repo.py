"""Telemetry Repository - Probe telemetry sink"""
from typing import List, Optional
from pymongo.collection import Collection
from pymongo import DESCENDING

from .mongo_client import get_collection, storage_errors
from ..domain.models import OutboxEntry, TelemetryEvent
from ..utils.logger import get_logger

logger = get_logger(__name__)


class TelemetryRepository:
    """Repository for telemetry events (append-only)"""

    def __init__(self):
        self._events: Collection = get_collection("telemetry_events")

    def create_event(self, event: TelemetryEvent, outbox: Optional[List[OutboxEntry]] = None) -> TelemetryEvent:
        """Insert an event together with its pending run audit entry"""
        doc = event.model_dump()
        doc["_id"] = event.telemetry_event_id
        doc["outbox"] = [entry.model_dump() for entry in outbox or []]
        with storage_errors("create_telemetry_event"):
            self._events.insert_one(doc)
        logger.info(
            f"Telemetry [{event.severity}] {event.type}: {event.message}",
            extra={"status": event.severity}
        )
        return event

    def get_recent(self, limit: int) -> List[TelemetryEvent]:
        """Most recent events first"""
        with storage_errors("recent_telemetry"):
            docs = list(self._events.find({}, {"outbox": 0}).sort("timestamp", DESCENDING).limit(limit))
        events = []
        for doc in docs:
            doc.pop("_id", None)
            events.append(TelemetryEvent.model_validate(doc))
        return events
