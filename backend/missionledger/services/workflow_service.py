"""Workflow Service - Definition registry business logic"""
from collections import defaultdict
from typing import Any, Dict, List, Optional, Set, Tuple, Union
from pydantic import ValidationError as PydanticValidationError

from ..domain.models import (
    ActorContext, StateDefinition, TransitionDefinition, WorkflowDefinition, WorkflowSubmission
)
from ..domain.enums import WILDCARD_ROLE, Role
from ..domain.errors import WorkflowValidationError
from ..engine.audit_writer import AuditWriter
from ..engine.outbox_relay import OutboxRelay
from ..repositories.workflow_repo import WorkflowRepository
from ..utils.idgen import generate_definition_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)

KNOWN_ROLES = {r.value for r in Role}


def _issue(issue_type: str, message: str, path: Optional[str]) -> Dict[str, Any]:
    return {"type": issue_type, "message": message, "path": path}


def _pydantic_message(e: PydanticValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'value'}: {err['msg']}"
        for err in e.errors()
    )


class WorkflowService:
    """Service for workflow definitions (publish, validate, read)"""

    def __init__(self):
        self.repo = WorkflowRepository()
        self.audit_writer = AuditWriter()
        self.relay = OutboxRelay()

    # =========================================================================
    # Validation
    # =========================================================================

    def validate(self, submission: Union[WorkflowSubmission, Dict[str, Any]]) -> Dict[str, Any]:
        """Dry-run validation; never writes"""
        result, _, _ = self._validate_definition(self._coerce(submission))
        return result

    @staticmethod
    def _coerce(submission: Union[WorkflowSubmission, Dict[str, Any]]) -> WorkflowSubmission:
        if isinstance(submission, WorkflowSubmission):
            return submission
        try:
            return WorkflowSubmission.model_validate(submission)
        except PydanticValidationError as e:
            raise WorkflowValidationError(
                "Workflow validation failed",
                details={
                    "errors": [
                        _issue(
                            "INVALID_SUBMISSION",
                            err["msg"],
                            ".".join(str(p) for p in err["loc"]) or None
                        )
                        for err in e.errors()
                    ],
                    "warnings": [],
                }
            )

    def _validate_definition(
        self,
        submission: WorkflowSubmission
    ) -> Tuple[Dict[str, Any], List[StateDefinition], List[TransitionDefinition]]:
        """
        Validate a submitted graph, collecting every violation

        Returns validation result with errors and warnings, plus the parsed
        states and transitions (only meaningful when valid).
        """
        errors: List[Dict[str, Any]] = []
        warnings: List[Dict[str, Any]] = []

        if not submission.states:
            errors.append(_issue("EMPTY_STATES", "Workflow must have at least one state", "states"))

        # Parse states
        states: List[StateDefinition] = []
        state_names: Set[str] = set()
        for i, raw in enumerate(submission.states):
            try:
                state = StateDefinition.model_validate(raw)
            except PydanticValidationError as e:
                errors.append(_issue("INVALID_STATE", _pydantic_message(e), f"states[{i}]"))
                continue

            if state.name in state_names:
                errors.append(_issue(
                    "DUPLICATE_STATE",
                    f"Duplicate state name: {state.name}",
                    f"states[{i}].name"
                ))
                continue
            state_names.add(state.name)
            states.append(state)

        initial = [s.name for s in states if s.initial]
        if submission.states and not initial:
            errors.append(_issue("MISSING_INITIAL_STATE", "Workflow must have exactly one initial state", "states"))
        elif len(initial) > 1:
            errors.append(_issue(
                "MULTIPLE_INITIAL_STATES",
                f"Workflow must have exactly one initial state, found: {', '.join(initial)}",
                "states"
            ))

        # Parse transitions
        transitions: List[TransitionDefinition] = []
        for i, raw in enumerate(submission.transitions):
            try:
                transition = TransitionDefinition.model_validate(raw)
            except PydanticValidationError as e:
                errors.append(_issue("INVALID_TRANSITION", _pydantic_message(e), f"transitions[{i}]"))
                continue

            if transition.from_state not in state_names:
                errors.append(_issue(
                    "INVALID_TRANSITION_FROM",
                    f"Transition references non-existent from_state: {transition.from_state}",
                    f"transitions[{i}].from"
                ))
            if transition.to_state not in state_names:
                errors.append(_issue(
                    "INVALID_TRANSITION_TO",
                    f"Transition references non-existent to_state: {transition.to_state}",
                    f"transitions[{i}].to"
                ))

            for role in transition.allowed_roles or []:
                if role != WILDCARD_ROLE and role not in KNOWN_ROLES:
                    errors.append(_issue(
                        "UNKNOWN_ROLE",
                        f"Unknown role '{role}' in transition guard",
                        f"transitions[{i}].roles"
                    ))
            if transition.allowed_roles == []:
                warnings.append(_issue(
                    "EMPTY_ROLE_GUARD",
                    f"Transition {transition.from_state} -> {transition.to_state} admits no role except the override",
                    f"transitions[{i}].roles"
                ))
            transitions.append(transition)

        errors.extend(self._find_ambiguous_transitions(transitions))

        # Graph shape warnings
        if len(initial) == 1 and not errors:
            reachable = self._find_reachable_states(initial[0], transitions)
            for state in states:
                if state.name not in reachable:
                    warnings.append(_issue(
                        "UNREACHABLE_STATE",
                        f"State {state.name} is not reachable from {initial[0]}",
                        None
                    ))

        outgoing = {t.from_state for t in transitions}
        for state in states:
            if state.final and state.name in outgoing:
                warnings.append(_issue(
                    "FINAL_STATE_HAS_TRANSITIONS",
                    f"Final state {state.name} has outgoing transitions",
                    None
                ))
            elif not state.final and state.name not in outgoing and len(states) > 1:
                warnings.append(_issue(
                    "DEAD_END_STATE",
                    f"State {state.name} has no outgoing transitions and is not final",
                    None
                ))

        result = {
            "is_valid": len(errors) == 0,
            "errors": errors,
            "warnings": warnings,
        }
        return result, states, transitions

    @staticmethod
    def _find_ambiguous_transitions(transitions: List[TransitionDefinition]) -> List[Dict[str, Any]]:
        """Same (from, to) pair declared twice with overlapping role guards"""
        errors = []
        by_edge: Dict[Tuple[str, str], List[TransitionDefinition]] = defaultdict(list)
        for t in transitions:
            by_edge[(t.from_state, t.to_state)].append(t)

        for (from_state, to_state), edges in by_edge.items():
            for i in range(len(edges)):
                for other in edges[i + 1:]:
                    first = edges[i]
                    if first.is_wildcard or other.is_wildcard:
                        overlap = True
                    else:
                        overlap = bool(set(first.allowed_roles or []) & set(other.allowed_roles or []))
                    if overlap:
                        errors.append(_issue(
                            "AMBIGUOUS_TRANSITION",
                            f"Transition {from_state} -> {to_state} is declared more than once for the same role",
                            "transitions"
                        ))
        return errors

    @staticmethod
    def _find_reachable_states(initial: str, transitions: List[TransitionDefinition]) -> Set[str]:
        """Find all states reachable from the initial state"""
        reachable = {initial}
        to_visit = [initial]
        while to_visit:
            current = to_visit.pop()
            for t in transitions:
                if t.from_state == current and t.to_state not in reachable:
                    reachable.add(t.to_state)
                    to_visit.append(t.to_state)
        return reachable

    # =========================================================================
    # Publish & Read
    # =========================================================================

    def publish(
        self,
        submission: Union[WorkflowSubmission, Dict[str, Any]],
        organization_id: str,
        actor: ActorContext
    ) -> WorkflowDefinition:
        """
        Publish a definition as a new immutable version

        Raises:
            WorkflowValidationError: with every violation in ``details.errors``
        """
        submission = self._coerce(submission)
        validation, states, transitions = self._validate_definition(submission)
        if not validation["is_valid"]:
            raise WorkflowValidationError(
                "Workflow validation failed",
                details={"errors": validation["errors"], "warnings": validation["warnings"]}
            )

        version_number = self.repo.get_latest_version_number(organization_id, submission.name) + 1
        definition = WorkflowDefinition(
            definition_id=generate_definition_id(),
            name=submission.name,
            description=submission.description,
            organization_id=organization_id,
            version_number=version_number,
            states=states,
            transitions=transitions,
            published_by=actor.actor_id,
            published_at=utc_now(),
        )
        audit_event = self.audit_writer.build_publish_definition(
            actor, definition.definition_id, definition.name, version_number
        )
        self.repo.create_definition(definition, [self.audit_writer.as_outbox_entry(audit_event)])
        self.relay.drain_after_commit("workflow_definitions", definition.definition_id)

        if validation["warnings"]:
            logger.warning(
                f"Published workflow with {len(validation['warnings'])} warning(s)",
                extra={"definition_id": definition.definition_id}
            )
        return definition

    def get_definition(self, definition_id: str) -> WorkflowDefinition:
        """Get definition by ID"""
        return self.repo.get_definition_or_raise(definition_id)

    def list_definitions(
        self,
        organization_id: str,
        name: Optional[str] = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[WorkflowDefinition]:
        """List definitions of one organization"""
        return self.repo.list_definitions(organization_id, name=name, skip=skip, limit=limit)
