"""Mission Repository - Missions and their task summaries"""
from datetime import datetime
from typing import List, Optional
from pymongo.collection import Collection
from pymongo import ASCENDING

from .mongo_client import get_collection, storage_errors
from ..domain.models import Mission, OutboxEntry, Task
from ..domain.enums import MissionStatus
from ..domain.errors import MissionNotFoundError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class MissionRepository:
    """Repository for missions"""

    def __init__(self):
        self._missions: Collection = get_collection("missions")

    def create_mission(self, mission: Mission, outbox: Optional[List[OutboxEntry]] = None) -> Mission:
        doc = mission.model_dump()
        doc["_id"] = mission.mission_id
        doc["outbox"] = [entry.model_dump() for entry in outbox or []]

        with storage_errors("create_mission"):
            self._missions.insert_one(doc)
        logger.info(f"Created mission: {mission.name}", extra={"mission_id": mission.mission_id})
        return mission

    def get_mission(self, mission_id: str) -> Optional[Mission]:
        with storage_errors("get_mission"):
            doc = self._missions.find_one({"mission_id": mission_id}, {"outbox": 0})
        if doc:
            doc.pop("_id", None)
            return Mission.model_validate(doc)
        return None

    def get_mission_or_raise(self, mission_id: str) -> Mission:
        mission = self.get_mission(mission_id)
        if not mission:
            raise MissionNotFoundError(
                f"Mission {mission_id} not found",
                details={"mission_id": mission_id}
            )
        return mission

    def exists(self, mission_id: str) -> bool:
        with storage_errors("mission_exists"):
            return self._missions.count_documents({"mission_id": mission_id}, limit=1) > 0

    def get_evidence_count(self, mission_id: str) -> int:
        with storage_errors("get_evidence_count"):
            doc = self._missions.find_one({"mission_id": mission_id}, {"evidence_count": 1})
        if not doc:
            raise MissionNotFoundError(
                f"Mission {mission_id} not found",
                details={"mission_id": mission_id}
            )
        return doc.get("evidence_count", 0)

    def push_evidence(
        self,
        mission_id: str,
        expected_count: int,
        outbox: List[OutboxEntry]
    ) -> bool:
        """
        Claim the next evidence number and commit its outbox entries

        Succeeds only while ``evidence_count`` still equals ``expected_count``;
        the count moves and the entries land in the same single-document
        update. Returns False when another append got there first.
        """
        with storage_errors("push_evidence"):
            result = self._missions.update_one(
                {"mission_id": mission_id, "evidence_count": expected_count},
                {
                    "$inc": {"evidence_count": 1},
                    "$push": {"outbox": {"$each": [entry.model_dump() for entry in outbox]}},
                }
            )
        return result.modified_count == 1

    def mark_completed(self, mission_id: str, completed_at: datetime) -> bool:
        """
        Set status to completed unless it already is

        Returns True only for the call that actually changed the status.
        """
        with storage_errors("mark_mission_completed"):
            result = self._missions.update_one(
                {"mission_id": mission_id, "status": {"$ne": MissionStatus.COMPLETED.value}},
                {"$set": {"status": MissionStatus.COMPLETED.value, "completed_at": completed_at}}
            )
        if result.modified_count:
            logger.info("Mission completed", extra={"mission_id": mission_id, "status": "completed"})
            return True
        return False

    def list_by_organization(
        self,
        organization_id: str,
        status: Optional[MissionStatus] = None,
        limit: int = 100
    ) -> List[Mission]:
        """Missions of one organization, oldest first"""
        query = {"organization_id": organization_id}
        if status:
            query["status"] = status.value
        with storage_errors("list_missions"):
            docs = list(self._missions.find(query, {"outbox": 0}).sort("created_at", ASCENDING).limit(limit))
        missions = []
        for doc in docs:
            doc.pop("_id", None)
            missions.append(Mission.model_validate(doc))
        return missions


class TaskRepository:
    """Read access to tasks (owned by the task CRUD collaborator)"""

    def __init__(self):
        self._tasks: Collection = get_collection("tasks")

    def create_task(self, task: Task) -> Task:
        doc = task.model_dump()
        doc["_id"] = task.task_id
        with storage_errors("create_task"):
            self._tasks.insert_one(doc)
        return task

    def list_by_mission(self, mission_id: str) -> List[Task]:
        with storage_errors("list_tasks"):
            docs = list(self._tasks.find({"mission_id": mission_id}).sort("created_at", ASCENDING))
        tasks = []
        for doc in docs:
            doc.pop("_id", None)
            tasks.append(Task.model_validate(doc))
        return tasks
