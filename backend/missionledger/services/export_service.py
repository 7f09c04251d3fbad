"""Export Service - Mission evidence pack"""
import hashlib
import json
from typing import Any, Dict, Tuple

from ..domain.models import ActorContext
from ..engine.audit_writer import AuditWriter
from ..engine.engine import INSTANCES, WorkflowInstanceMachine
from ..repositories.evidence_repo import EvidenceRepository
from ..repositories.mission_repo import MissionRepository, TaskRepository
from ..utils.time import format_iso, utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


def bundle_digest(bundle: Dict[str, Any]) -> str:
    """SHA-256 over the canonical JSON of an export bundle"""
    text = json.dumps(bundle, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class ExportService:
    """
    Builds the evidence pack consumed by downstream audit tooling

    The bundle shape is a compatibility surface and is kept field-for-field:
    ``{exportedAt, mission, workflowTimeline, tasks, evidence}``. Timeline and
    evidence are ordered by commit sequence, so a later export only ever
    appends to an earlier one.
    """

    def __init__(self):
        self.mission_repo = MissionRepository()
        self.task_repo = TaskRepository()
        self.evidence_repo = EvidenceRepository()
        self.machine = WorkflowInstanceMachine()
        self.audit_writer = AuditWriter()

    def build_bundle(self, mission_id: str) -> Dict[str, Any]:
        """
        Assemble the bundle without recording an export

        Pending projections of the instance and the mission are applied
        before the mission is read, so a timeline ending in a final state is
        never paired with an active mission.
        """
        instance = self.machine.instance_repo.get_by_mission(mission_id)
        if instance:
            self.machine.relay.drain(INSTANCES, instance.instance_id)
        self.machine.relay.drain("missions", mission_id)

        mission = self.mission_repo.get_mission_or_raise(mission_id)
        timeline = self.machine.transition_repo.list_by_instance(instance.instance_id) if instance else []
        tasks = self.task_repo.list_by_mission(mission_id)
        evidence = self.evidence_repo.list_by_mission(mission_id)

        return {
            "exportedAt": format_iso(utc_now()),
            "mission": {
                "id": mission.mission_id,
                "name": mission.name,
                "description": mission.description,
                "status": mission.status,
            },
            "workflowTimeline": [
                {
                    "from": t.from_state,
                    "to": t.to_state,
                    "timestamp": format_iso(t.timestamp),
                    "notes": t.notes,
                }
                for t in timeline
            ],
            "tasks": [
                {"id": t.task_id, "title": t.title, "status": t.status, "priority": t.priority}
                for t in tasks
            ],
            "evidence": [
                {
                    "id": e.evidence_id,
                    "title": e.title,
                    "type": e.type,
                    "hash": e.content_hash,
                    "createdAt": format_iso(e.created_at),
                    "content": e.content,
                }
                for e in evidence
            ],
        }

    def export_mission(self, mission_id: str, actor: ActorContext) -> Tuple[Dict[str, Any], str]:
        """
        Build the bundle and record exactly one EXPORT audit entry

        Returns:
            (bundle, sha256 hex digest of the canonical bundle)

        Raises:
            MissionNotFoundError: unknown mission
            StorageUnavailableError: the export audit entry could not be
                written, so no bundle is returned
        """
        bundle = self.build_bundle(mission_id)
        digest = bundle_digest(bundle)
        self.audit_writer.write_export(
            actor,
            mission_id,
            digest,
            transition_count=len(bundle["workflowTimeline"]),
            evidence_count=len(bundle["evidence"]),
        )
        logger.info(
            "Exported evidence pack",
            extra={"mission_id": mission_id, "actor_id": actor.actor_id, "action": "EXPORT"}
        )
        return bundle, digest
