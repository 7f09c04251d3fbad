"""Workflow Repository - Data access for published workflow definitions"""
from typing import Any, Dict, List, Optional
from pymongo.collection import Collection
from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError

from .mongo_client import get_collection, storage_errors
from ..domain.models import OutboxEntry, WorkflowDefinition
from ..domain.errors import ConcurrentModificationError, WorkflowDefinitionNotFoundError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class WorkflowRepository:
    """Repository for workflow definitions (insert-only; published versions never change)"""

    def __init__(self):
        self._definitions: Collection = get_collection("workflow_definitions")

    def create_definition(
        self,
        definition: WorkflowDefinition,
        outbox: Optional[List[OutboxEntry]] = None
    ) -> WorkflowDefinition:
        """Insert a published definition together with its pending side effects"""
        doc = definition.model_dump()
        doc["_id"] = definition.definition_id
        doc["outbox"] = [entry.model_dump() for entry in outbox or []]

        with storage_errors("create_definition"):
            try:
                self._definitions.insert_one(doc)
            except DuplicateKeyError:
                # Another publish of the same (organization, name) took this version number
                raise ConcurrentModificationError(
                    f"Workflow '{definition.name}' version {definition.version_number} was published concurrently",
                    details={
                        "organization_id": definition.organization_id,
                        "name": definition.name,
                        "version_number": definition.version_number,
                    }
                )
        logger.info(
            f"Published workflow definition: {definition.name} v{definition.version_number}",
            extra={"definition_id": definition.definition_id}
        )
        return definition

    def get_definition(self, definition_id: str) -> Optional[WorkflowDefinition]:
        """Get definition by ID"""
        with storage_errors("get_definition"):
            doc = self._definitions.find_one({"definition_id": definition_id}, {"outbox": 0})
        if doc:
            doc.pop("_id", None)
            return WorkflowDefinition.model_validate(doc)
        return None

    def get_definition_or_raise(self, definition_id: str) -> WorkflowDefinition:
        """Get definition by ID or raise error"""
        definition = self.get_definition(definition_id)
        if not definition:
            raise WorkflowDefinitionNotFoundError(
                f"Workflow definition {definition_id} not found",
                details={"definition_id": definition_id}
            )
        return definition

    def get_latest_version_number(self, organization_id: str, name: str) -> int:
        """Highest published version for (organization, name), 0 if none"""
        with storage_errors("get_latest_version_number"):
            doc = self._definitions.find_one(
                {"organization_id": organization_id, "name": name},
                {"version_number": 1},
                sort=[("version_number", DESCENDING)]
            )
        return int(doc["version_number"]) if doc else 0

    def list_definitions(
        self,
        organization_id: str,
        name: Optional[str] = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[WorkflowDefinition]:
        """List definitions for one organization, newest first"""
        query: Dict[str, Any] = {"organization_id": organization_id}
        if name:
            query["name"] = name

        with storage_errors("list_definitions"):
            cursor = (
                self._definitions.find(query, {"outbox": 0})
                .sort([("published_at", DESCENDING), ("version_number", DESCENDING)])
                .skip(skip)
                .limit(limit)
            )
            docs = list(cursor)

        definitions = []
        for doc in docs:
            doc.pop("_id", None)
            definitions.append(WorkflowDefinition.model_validate(doc))
        return definitions
