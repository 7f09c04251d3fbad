"""Recommendation Repository - Approval-gated recommendations"""
from typing import Any, Dict, List, Optional
from pymongo.collection import Collection
from pymongo import DESCENDING, ReturnDocument

from .mongo_client import get_collection, storage_errors
from ..domain.models import OutboxEntry, Recommendation
from ..domain.enums import RecommendationStatus
from ..domain.errors import ConcurrentModificationError, RecommendationNotFoundError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class RecommendationRepository:
    """Repository for recommendations"""

    def __init__(self):
        self._recommendations: Collection = get_collection("recommendations")

    def create_recommendation(
        self,
        recommendation: Recommendation,
        outbox: Optional[List[OutboxEntry]] = None
    ) -> Recommendation:
        doc = recommendation.model_dump()
        doc["_id"] = recommendation.recommendation_id
        doc["outbox"] = [entry.model_dump() for entry in outbox or []]
        with storage_errors("create_recommendation"):
            self._recommendations.insert_one(doc)
        logger.info(
            f"Recommendation submitted: {recommendation.title}",
            extra={"mission_id": recommendation.mission_id, "status": recommendation.status}
        )
        return recommendation

    def get_recommendation(self, recommendation_id: str) -> Optional[Recommendation]:
        with storage_errors("get_recommendation"):
            doc = self._recommendations.find_one({"recommendation_id": recommendation_id}, {"outbox": 0})
        if doc:
            doc.pop("_id", None)
            return Recommendation.model_validate(doc)
        return None

    def get_recommendation_or_raise(self, recommendation_id: str) -> Recommendation:
        recommendation = self.get_recommendation(recommendation_id)
        if not recommendation:
            raise RecommendationNotFoundError(
                f"Recommendation {recommendation_id} not found",
                details={"recommendation_id": recommendation_id}
            )
        return recommendation

    def list_recommendations(
        self,
        status: Optional[RecommendationStatus] = None,
        limit: int = 50
    ) -> List[Recommendation]:
        query: Dict[str, Any] = {}
        if status:
            query["status"] = status.value
        with storage_errors("list_recommendations"):
            docs = list(
                self._recommendations.find(query, {"outbox": 0}).sort("created_at", DESCENDING).limit(limit)
            )
        items = []
        for doc in docs:
            doc.pop("_id", None)
            items.append(Recommendation.model_validate(doc))
        return items

    def update_status(
        self,
        recommendation_id: str,
        expected_version: int,
        updates: Dict[str, Any],
        outbox: List[OutboxEntry]
    ) -> Recommendation:
        """
        Apply a review decision with optimistic concurrency

        The status change and its audit entry land in one document update.
        """
        with storage_errors("update_recommendation_status"):
            result = self._recommendations.find_one_and_update(
                {"recommendation_id": recommendation_id, "version": expected_version},
                {
                    "$set": updates,
                    "$inc": {"version": 1},
                    "$push": {"outbox": {"$each": [entry.model_dump() for entry in outbox]}},
                },
                projection={"outbox": 0},
                return_document=ReturnDocument.AFTER,
            )
            if result is None:
                exists = self._recommendations.find_one({"recommendation_id": recommendation_id}, {"_id": 1})
                if exists:
                    raise ConcurrentModificationError(
                        f"Recommendation {recommendation_id} was modified. Please refresh and try again.",
                        details={"expected_version": expected_version}
                    )
                raise RecommendationNotFoundError(
                    f"Recommendation {recommendation_id} not found",
                    details={"recommendation_id": recommendation_id}
                )

        result.pop("_id", None)
        return Recommendation.model_validate(result)
