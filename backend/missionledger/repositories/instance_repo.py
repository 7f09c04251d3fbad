"""Instance Repository - Workflow instances and their transition history"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pymongo.collection import Collection
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from .mongo_client import get_collection, storage_errors
from ..domain.models import OutboxEntry, WorkflowInstance, WorkflowTransitionRecord
from ..domain.errors import (
    AlreadyExistsError, ConcurrentModificationError, WorkflowInstanceNotFoundError
)
from ..utils.logger import get_logger

logger = get_logger(__name__)


class InstanceRepository:
    """
    Repository for workflow instances

    ``current_state`` is written only by ``compare_and_set_state``.
    """

    def __init__(self):
        self._instances: Collection = get_collection("workflow_instances")

    def create_instance(
        self,
        instance: WorkflowInstance,
        outbox: Optional[List[OutboxEntry]] = None
    ) -> WorkflowInstance:
        """Create the single instance for a mission"""
        doc = instance.model_dump()
        doc["_id"] = instance.instance_id
        doc["outbox"] = [entry.model_dump() for entry in outbox or []]

        with storage_errors("create_instance"):
            try:
                self._instances.insert_one(doc)
            except DuplicateKeyError:
                raise AlreadyExistsError(
                    f"Mission {instance.mission_id} already has a workflow instance",
                    details={"mission_id": instance.mission_id}
                )
        logger.info(
            f"Created workflow instance in state '{instance.current_state}'",
            extra={"instance_id": instance.instance_id, "mission_id": instance.mission_id}
        )
        return instance

    def get_by_mission(self, mission_id: str) -> Optional[WorkflowInstance]:
        """Get the instance driving a mission"""
        with storage_errors("get_instance_by_mission"):
            doc = self._instances.find_one({"mission_id": mission_id}, {"outbox": 0})
        if doc:
            doc.pop("_id", None)
            return WorkflowInstance.model_validate(doc)
        return None

    def get_by_mission_or_raise(self, mission_id: str) -> WorkflowInstance:
        instance = self.get_by_mission(mission_id)
        if not instance:
            raise WorkflowInstanceNotFoundError(
                f"No workflow instance for mission {mission_id}",
                details={"mission_id": mission_id}
            )
        return instance

    def compare_and_set_state(
        self,
        instance_id: str,
        expected_version: int,
        expected_state: str,
        new_state: str,
        outbox: List[OutboxEntry],
        now: datetime
    ) -> WorkflowInstance:
        """
        Move the instance to ``new_state`` if nobody else moved it first

        The state change, the version bump and the outbox entries are one
        document update, so they commit or fail together.

        Raises:
            ConcurrentModificationError: version or state no longer match
            WorkflowInstanceNotFoundError: instance does not exist
        """
        with storage_errors("compare_and_set_state"):
            result = self._instances.find_one_and_update(
                {
                    "instance_id": instance_id,
                    "version": expected_version,
                    "current_state": expected_state,
                },
                {
                    "$set": {"current_state": new_state, "updated_at": now},
                    "$inc": {"version": 1},
                    "$push": {"outbox": {"$each": [entry.model_dump() for entry in outbox]}},
                },
                projection={"outbox": 0},
                return_document=ReturnDocument.AFTER,
            )

            if result is None:
                exists = self._instances.find_one(
                    {"instance_id": instance_id},
                    {"current_state": 1, "version": 1}
                )
                if exists:
                    raise ConcurrentModificationError(
                        "Workflow instance was modified by another request. Re-read and retry.",
                        details={
                            "instance_id": instance_id,
                            "expected_version": expected_version,
                            "expected_state": expected_state,
                            "actual_version": exists.get("version"),
                            "actual_state": exists.get("current_state"),
                        }
                    )
                raise WorkflowInstanceNotFoundError(
                    f"Workflow instance {instance_id} not found",
                    details={"instance_id": instance_id}
                )

        result.pop("_id", None)
        return WorkflowInstance.model_validate(result)


class TransitionRepository:
    """Append-only transition history, projected from instance outboxes"""

    def __init__(self):
        self._transitions: Collection = get_collection("workflow_transitions")

    def insert_if_absent(self, payload: Dict[str, Any]) -> bool:
        """Project one transition record; False if it was already there"""
        doc = dict(payload)
        doc["_id"] = payload["transition_id"]
        with storage_errors("insert_transition"):
            try:
                self._transitions.insert_one(doc)
            except DuplicateKeyError:
                return False
        return True

    def list_by_instance(self, instance_id: str) -> List[WorkflowTransitionRecord]:
        """Transition history in commit order"""
        with storage_errors("list_transitions"):
            docs = list(
                self._transitions.find({"instance_id": instance_id}).sort("sequence", ASCENDING)
            )
        records = []
        for doc in docs:
            doc.pop("_id", None)
            records.append(WorkflowTransitionRecord.model_validate(doc))
        return records
