"""Mission Service - Mission creation and mission-scoped reads"""
from typing import List, Optional, Tuple

from ..domain.models import ActorContext, AuditLogEntry, AuditWindow, Mission, WorkflowInstance
from ..domain.errors import ValidationError
from ..engine.audit_writer import AuditTrail, AuditWriter
from ..engine.engine import WorkflowInstanceMachine
from ..engine.outbox_relay import OutboxRelay
from ..repositories.mission_repo import MissionRepository
from ..utils.idgen import generate_mission_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class MissionService:
    """Creates missions with their workflow instance; serves the mission audit view"""

    def __init__(self):
        self.repo = MissionRepository()
        self.machine = WorkflowInstanceMachine()
        self.audit_writer = AuditWriter()
        self.audit_trail = AuditTrail()
        self.relay = OutboxRelay()

    def create_mission(
        self,
        name: str,
        description: Optional[str],
        organization_id: str,
        definition_id: str,
        actor: ActorContext,
        template_id: Optional[str] = None
    ) -> Tuple[Mission, WorkflowInstance]:
        """
        Create a mission and start its workflow

        The definition is checked before anything is written, so a bad
        definition never leaves a mission without an instance.

        Returns:
            (mission, workflow instance)
        """
        if not name or not name.strip():
            raise ValidationError("Mission name is required", details={"field": "name"})

        definition = self.machine.workflow_repo.get_definition_or_raise(definition_id)
        if len(definition.initial_states()) != 1:
            raise ValidationError(
                "Workflow definition must have exactly one initial state",
                details={"definition_id": definition_id}
            )

        mission = Mission(
            mission_id=generate_mission_id(),
            name=name.strip(),
            description=description,
            organization_id=organization_id,
            template_id=template_id,
            created_by=actor.actor_id,
            created_at=utc_now(),
        )
        audit_event = self.audit_writer.build_create_mission(actor, mission.mission_id, mission.name)
        self.repo.create_mission(mission, [self.audit_writer.as_outbox_entry(audit_event)])
        self.relay.drain_after_commit("missions", mission.mission_id)

        instance = self.machine.create_instance(mission.mission_id, definition_id, actor)
        return mission, instance

    def get_mission(self, mission_id: str) -> Mission:
        return self.repo.get_mission_or_raise(mission_id)

    def get_instance(self, mission_id: str) -> WorkflowInstance:
        return self.machine.get_instance(mission_id)

    def list_audit(self, mission_id: str, window: AuditWindow) -> List[AuditLogEntry]:
        """
        Mission audit entries, newest first

        Pending outbox entries of the mission and its instance are projected
        first so committed actions are never missing from the view.
        """
        self.repo.get_mission_or_raise(mission_id)
        self.relay.drain("missions", mission_id)
        instance = self.machine.instance_repo.get_by_mission(mission_id)
        if instance:
            self.relay.drain("workflow_instances", instance.instance_id)
        self.relay.drain_where("recommendations", {"mission_id": mission_id})
        return self.audit_trail.list_for_mission(mission_id, window)
