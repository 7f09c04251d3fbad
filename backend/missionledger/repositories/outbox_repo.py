"""Outbox Repository - Pending side effects embedded in owning documents"""
from typing import Any, Dict, List, Optional, Tuple
from pymongo.collection import Collection

from .mongo_client import get_collection, storage_errors
from ..domain.models import OutboxEntry


# Collections whose documents may carry an ``outbox`` array, with their id field
OUTBOX_OWNERS = {
    "workflow_definitions": "definition_id",
    "workflow_instances": "instance_id",
    "missions": "mission_id",
    "recommendations": "recommendation_id",
    "telemetry_events": "telemetry_event_id",
}


class OutboxRepository:
    """Reads and acknowledges outbox entries on one owner collection"""

    def __init__(self, collection_name: str):
        if collection_name not in OUTBOX_OWNERS:
            raise ValueError(f"{collection_name} does not carry an outbox")
        self.collection_name = collection_name
        self.id_field = OUTBOX_OWNERS[collection_name]
        self._collection: Collection = get_collection(collection_name)

    def get_entries(self, owner_id: str) -> List[OutboxEntry]:
        """Pending entries of one document, in commit order"""
        with storage_errors("get_outbox_entries"):
            doc = self._collection.find_one({self.id_field: owner_id}, {"outbox": 1})
        if not doc:
            return []
        return [OutboxEntry.model_validate(e) for e in doc.get("outbox") or []]

    def find_pending(
        self,
        limit: int,
        query: Optional[Dict[str, Any]] = None
    ) -> List[Tuple[str, List[OutboxEntry]]]:
        """Documents that still have entries to project, optionally narrowed by ``query``"""
        selector: Dict[str, Any] = dict(query or {})
        selector["outbox.0"] = {"$exists": True}
        with storage_errors("find_pending_outbox"):
            docs = list(
                self._collection.find(
                    selector,
                    {self.id_field: 1, "outbox": 1}
                ).limit(limit)
            )
        return [
            (doc[self.id_field], [OutboxEntry.model_validate(e) for e in doc["outbox"]])
            for doc in docs
        ]

    def count_pending(self) -> int:
        """Number of documents still holding unprojected entries"""
        with storage_errors("count_pending_outbox"):
            return self._collection.count_documents({"outbox.0": {"$exists": True}})

    def acknowledge(self, owner_id: str, entry_id: str) -> None:
        """Remove a projected entry"""
        with storage_errors("acknowledge_outbox_entry"):
            self._collection.update_one(
                {self.id_field: owner_id},
                {"$pull": {"outbox": {"entry_id": entry_id}}}
            )
