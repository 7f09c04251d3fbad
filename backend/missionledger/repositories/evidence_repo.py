"""Evidence Repository - Append-only evidence ledger storage"""
from typing import Any, Dict, List
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError
from pymongo import ASCENDING

from .mongo_client import get_collection, storage_errors
from ..domain.models import EvidenceItem
from ..utils.logger import get_logger

logger = get_logger(__name__)


class EvidenceRepository:
    """
    Repository for evidence items

    There is no update or delete here: items are written once and corrections
    are new items. Items arrive through the mission outbox, which is where
    their sequence numbers are assigned.
    """

    def __init__(self):
        self._evidence: Collection = get_collection("evidence_items")

    def insert_if_absent(self, payload: Dict[str, Any]) -> bool:
        """Project an evidence item; False if it was already there"""
        doc = dict(payload)
        doc["_id"] = payload["evidence_id"]
        with storage_errors("insert_evidence"):
            try:
                self._evidence.insert_one(doc)
            except DuplicateKeyError:
                return False
        logger.info(
            f"Appended evidence '{payload.get('title')}'",
            extra={"mission_id": payload.get("mission_id"), "evidence_id": payload["evidence_id"]}
        )
        return True

    def list_by_mission(self, mission_id: str) -> List[EvidenceItem]:
        """All items for a mission in creation order"""
        with storage_errors("list_evidence"):
            docs = list(self._evidence.find({"mission_id": mission_id}).sort("sequence", ASCENDING))
        items = []
        for doc in docs:
            doc.pop("_id", None)
            items.append(EvidenceItem.model_validate(doc))
        return items
