"""
Workflow Instance Machine - Per-mission state machine

This module holds the WorkflowInstanceMachine, which owns the live cursor of
every mission against its workflow definition.

=============================================================================
TRANSITION PROTOCOL
=============================================================================

1. Load the instance and the definition it was created from.
2. Ask the TransitionAuthorizer. A refusal raises TransitionNotAllowedError
   before anything is written.
3. One compare-and-set on {instance_id, version, current_state}. The same
   document update bumps the version and pushes the transition record, the
   TRANSITION audit entry and (for final states) the mission completion onto
   the instance outbox. A lost race raises ConcurrentModificationError.
4. The OutboxRelay projects the outbox entries. Projection is idempotent and
   retried by the background relay if it fails here.
5. Mission completion only flips status when it is not already completed.

The engine never retries on ConcurrentModificationError: the caller re-reads
and decides whether the intent still holds.

=============================================================================
"""

from typing import List, Optional

from ..domain.models import (
    ActorContext, AvailableTransition, InstanceStateView, OutboxEntry,
    TransitionOutcome, WorkflowDefinition, WorkflowInstance, WorkflowTransitionRecord
)
from ..domain.enums import OutboxEntryKind
from ..domain.errors import ConcurrentModificationError, MissionNotFoundError, ValidationError
from ..repositories.instance_repo import InstanceRepository, TransitionRepository
from ..repositories.mission_repo import MissionRepository
from ..repositories.workflow_repo import WorkflowRepository
from .audit_writer import AuditWriter
from .outbox_relay import OutboxRelay
from .transition_authorizer import TransitionAuthorizer
from ..utils.idgen import generate_instance_id, generate_outbox_entry_id, generate_transition_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)

INSTANCES = "workflow_instances"


class WorkflowInstanceMachine:
    """
    The Workflow Instance Machine - sole writer of ``current_state``

    Responsibilities:
    - Create one instance per mission in the definition's initial state
    - Compute role-filtered available transitions
    - Apply transitions atomically with their record and audit entry
    - Mark the mission completed when a final state is reached
    """

    def __init__(self, authorizer: Optional[TransitionAuthorizer] = None):
        self.instance_repo = InstanceRepository()
        self.transition_repo = TransitionRepository()
        self.workflow_repo = WorkflowRepository()
        self.mission_repo = MissionRepository()
        self.audit_writer = AuditWriter()
        self.relay = OutboxRelay()
        self.authorizer = authorizer or TransitionAuthorizer()

    # =========================================================================
    # Instance Creation
    # =========================================================================

    def create_instance(
        self,
        mission_id: str,
        definition_id: str,
        actor: ActorContext
    ) -> WorkflowInstance:
        """
        Start a mission's workflow in the definition's initial state

        Raises:
            WorkflowDefinitionNotFoundError: unknown definition
            MissionNotFoundError: unknown mission
            ValidationError: definition has zero or several initial states
            AlreadyExistsError: mission already has an instance
        """
        definition = self.workflow_repo.get_definition_or_raise(definition_id)
        if not self.mission_repo.exists(mission_id):
            raise MissionNotFoundError(
                f"Mission {mission_id} not found",
                details={"mission_id": mission_id}
            )

        initial_states = definition.initial_states()
        if len(initial_states) != 1:
            raise ValidationError(
                f"Workflow definition must have exactly one initial state, found {len(initial_states)}",
                details={
                    "definition_id": definition_id,
                    "initial_states": [s.name for s in initial_states],
                }
            )

        now = utc_now()
        instance = WorkflowInstance(
            instance_id=generate_instance_id(),
            mission_id=mission_id,
            definition_id=definition_id,
            current_state=initial_states[0].name,
            version=1,
            created_by=actor.actor_id,
            created_at=now,
            updated_at=now,
        )
        audit_event = self.audit_writer.build_create_instance(
            actor, instance.instance_id, mission_id, definition_id, instance.current_state
        )
        self.instance_repo.create_instance(instance, [self.audit_writer.as_outbox_entry(audit_event)])
        self.relay.drain_after_commit(INSTANCES, instance.instance_id)
        return instance

    # =========================================================================
    # Reads
    # =========================================================================

    def _load(self, mission_id: str):
        instance = self.instance_repo.get_by_mission_or_raise(mission_id)
        definition = self.workflow_repo.get_definition_or_raise(instance.definition_id)
        return instance, definition

    def get_instance(self, mission_id: str) -> WorkflowInstance:
        return self.instance_repo.get_by_mission_or_raise(mission_id)

    def available_transitions(self, mission_id: str, actor: ActorContext) -> List[AvailableTransition]:
        """Transitions the actor could legally take from the current state"""
        instance, definition = self._load(mission_id)
        return self._available(definition, instance.current_state, actor)

    def _available(
        self,
        definition: WorkflowDefinition,
        current_state: str,
        actor: ActorContext
    ) -> List[AvailableTransition]:
        return [
            AvailableTransition(to_state=t.to_state, label=t.label)
            for t in self.authorizer.available(definition, current_state, actor.role)
        ]

    def get_state(self, mission_id: str, actor: ActorContext) -> InstanceStateView:
        """Current state and role-filtered next steps"""
        instance, definition = self._load(mission_id)
        return InstanceStateView(
            mission_id=mission_id,
            instance_id=instance.instance_id,
            definition_id=instance.definition_id,
            current_state=instance.current_state,
            version=instance.version,
            is_final=definition.is_final(instance.current_state),
            available_transitions=self._available(definition, instance.current_state, actor),
        )

    def history(self, mission_id: str) -> List[WorkflowTransitionRecord]:
        """Committed transitions in commit order"""
        instance = self.instance_repo.get_by_mission_or_raise(mission_id)
        self.relay.drain(INSTANCES, instance.instance_id)
        return self.transition_repo.list_by_instance(instance.instance_id)

    # =========================================================================
    # Transition
    # =========================================================================

    def transition(
        self,
        mission_id: str,
        to_state: str,
        actor: ActorContext,
        notes: Optional[str] = None,
        expected_version: Optional[int] = None
    ) -> TransitionOutcome:
        """
        Move a mission's instance to ``to_state``

        Args:
            mission_id: Mission whose instance moves
            to_state: Target state name
            actor: Requesting actor; only the role is used for authorization
            notes: Free text stored on the transition record
            expected_version: Version the caller last read, if it wants the
                request rejected when anything moved since

        Raises:
            WorkflowInstanceNotFoundError / WorkflowDefinitionNotFoundError
            TransitionNotAllowedError: no such edge, or role not admitted
            ConcurrentModificationError: another transition won the race
            StorageUnavailableError: nothing was committed
        """
        instance, definition = self._load(mission_id)

        if expected_version is not None and expected_version != instance.version:
            raise ConcurrentModificationError(
                "Workflow instance was modified by another request. Re-read and retry.",
                details={
                    "instance_id": instance.instance_id,
                    "expected_version": expected_version,
                    "actual_version": instance.version,
                    "actual_state": instance.current_state,
                }
            )

        from_state = instance.current_state
        decision = self.authorizer.authorize(definition, from_state, to_state, actor.role)
        reached_final = definition.is_final(to_state)

        now = utc_now()
        record = WorkflowTransitionRecord(
            transition_id=generate_transition_id(),
            instance_id=instance.instance_id,
            mission_id=mission_id,
            sequence=instance.version + 1,
            from_state=from_state,
            to_state=to_state,
            label=decision.transition.label,
            actor_id=actor.actor_id,
            actor_role=actor.role,
            via_override=decision.via_override,
            notes=notes,
            timestamp=now,
        )
        audit_event = self.audit_writer.build_transition(
            actor, instance.instance_id, mission_id, from_state, to_state,
            decision.via_override, notes
        )

        outbox = [
            OutboxEntry(
                entry_id=generate_outbox_entry_id(),
                kind=OutboxEntryKind.TRANSITION_RECORD,
                payload=record.model_dump(),
                created_at=now,
            ),
            self.audit_writer.as_outbox_entry(audit_event),
        ]
        if reached_final:
            outbox.append(OutboxEntry(
                entry_id=generate_outbox_entry_id(),
                kind=OutboxEntryKind.COMPLETE_MISSION,
                payload={"mission_id": mission_id, "completed_at": now},
                created_at=now,
            ))

        updated = self.instance_repo.compare_and_set_state(
            instance_id=instance.instance_id,
            expected_version=instance.version,
            expected_state=from_state,
            new_state=to_state,
            outbox=outbox,
            now=now,
        )

        logger.info(
            f"Transitioned {from_state} -> {to_state}",
            extra={
                "mission_id": mission_id,
                "instance_id": instance.instance_id,
                "actor_id": actor.actor_id,
                "from_state": from_state,
                "to_state": to_state,
                "action": "TRANSITION",
            }
        )

        self.relay.drain_after_commit(INSTANCES, instance.instance_id)

        return TransitionOutcome(
            instance=updated,
            record=record,
            via_override=decision.via_override,
            reached_final=reached_final,
        )
