"""Transition Authorizer - Decides whether a role may take a workflow edge

Pure: no storage access, no side effects besides logging. Two questions are
answered from the parsed definition:

1. Does an edge ``current_state -> to_state`` exist?  If not the request is
   refused with ``NO_SUCH_TRANSITION`` regardless of role.
2. Does the edge's role guard admit the actor's role?  If not, a role holding
   ``Capability.BYPASS_TRANSITION_GUARDS`` may still take it; the decision is
   then flagged ``via_override`` so it ends up in the audit trail. Otherwise
   the request is refused with ``ROLE_NOT_AUTHORIZED``.
"""
from typing import Dict, FrozenSet, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from ..config.settings import settings
from ..domain.models import TransitionDefinition, WorkflowDefinition
from ..domain.enums import Capability, Role, TransitionDenialReason
from ..domain.errors import TransitionNotAllowedError
from ..utils.logger import get_logger

logger = get_logger(__name__)


def build_role_capabilities(admin_role: str = Role.ADMIN.value) -> Dict[str, FrozenSet[Capability]]:
    """Role -> capability table; ``admin_role`` holds the guard override"""
    table: Dict[str, FrozenSet[Capability]] = {
        Role.OPERATOR.value: frozenset({
            Capability.SUBMIT_RECOMMENDATIONS,
            Capability.REVIEW_RECOMMENDATIONS,
            Capability.EXECUTE_RECOMMENDATIONS,
        }),
        Role.SUPERVISOR.value: frozenset({
            Capability.SUBMIT_RECOMMENDATIONS,
            Capability.REVIEW_RECOMMENDATIONS,
        }),
    }
    table[admin_role] = frozenset(Capability)
    return table


ROLE_CAPABILITIES = build_role_capabilities(settings.admin_role)


def has_capability(
    role: str,
    capability: Capability,
    table: Optional[Mapping[str, FrozenSet[Capability]]] = None
) -> bool:
    """Check the role -> capability table"""
    table = ROLE_CAPABILITIES if table is None else table
    return capability in table.get(role, frozenset())


class AuthorizationDecision(BaseModel):
    """An admitted transition and whether the override was needed"""
    model_config = ConfigDict(frozen=True)

    transition: TransitionDefinition
    via_override: bool = False


class TransitionAuthorizer:
    """Role-guard evaluation over a parsed workflow definition"""

    def __init__(self, role_capabilities: Optional[Mapping[str, FrozenSet[Capability]]] = None):
        self._capabilities = ROLE_CAPABILITIES if role_capabilities is None else role_capabilities

    def can_bypass_guards(self, role: str) -> bool:
        return has_capability(role, Capability.BYPASS_TRANSITION_GUARDS, self._capabilities)

    def authorize(
        self,
        definition: WorkflowDefinition,
        current_state: str,
        to_state: str,
        role: str
    ) -> AuthorizationDecision:
        """
        Admit or refuse ``current_state -> to_state`` for ``role``

        Raises:
            TransitionNotAllowedError: with ``details["reason"]`` set to
                ``NO_SUCH_TRANSITION`` or ``ROLE_NOT_AUTHORIZED``
        """
        candidates = [
            t for t in definition.transitions_from(current_state)
            if t.to_state == to_state
        ]
        if not candidates:
            raise TransitionNotAllowedError(
                f"No transition from '{current_state}' to '{to_state}'",
                details={
                    "reason": TransitionDenialReason.NO_SUCH_TRANSITION.value,
                    "from_state": current_state,
                    "to_state": to_state,
                }
            )

        for transition in candidates:
            if transition.admits(role):
                return AuthorizationDecision(transition=transition)

        if self.can_bypass_guards(role):
            logger.warning(
                f"Role '{role}' bypassing transition guard {current_state} -> {to_state}",
                extra={"from_state": current_state, "to_state": to_state, "definition_id": definition.definition_id}
            )
            return AuthorizationDecision(transition=candidates[0], via_override=True)

        raise TransitionNotAllowedError(
            f"Role '{role}' may not move from '{current_state}' to '{to_state}'",
            details={
                "reason": TransitionDenialReason.ROLE_NOT_AUTHORIZED.value,
                "from_state": current_state,
                "to_state": to_state,
                "role": role,
            }
        )

    def available(
        self,
        definition: WorkflowDefinition,
        current_state: str,
        role: str
    ) -> List[TransitionDefinition]:
        """Outgoing edges the role could take right now, one per target state"""
        bypass = self.can_bypass_guards(role)
        admitted: List[TransitionDefinition] = []
        seen = set()
        for transition in definition.transitions_from(current_state):
            if transition.to_state in seen:
                continue
            if bypass or transition.admits(role):
                admitted.append(transition)
                seen.add(transition.to_state)
        return admitted
