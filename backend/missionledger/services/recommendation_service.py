"""Recommendation Service - Human approval gate for generated recommendations"""
from typing import Any, Dict, List, Optional

from ..domain.models import ActorContext, Recommendation
from ..domain.enums import AuditAction, Capability, RecommendationStatus
from ..domain.errors import InvalidStateError, MissionNotFoundError, PermissionDeniedError
from ..engine.audit_writer import AuditWriter
from ..engine.outbox_relay import OutboxRelay
from ..engine.transition_authorizer import has_capability
from ..repositories.mission_repo import MissionRepository
from ..repositories.recommendation_repo import RecommendationRepository
from ..utils.idgen import generate_recommendation_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)

RECOMMENDATIONS = "recommendations"


class RecommendationGate:
    """
    Approval gate

    pending -> approved | rejected, approved -> executed. Every decision is a
    compare-and-set on the recommendation version with its audit entry in the
    same write. Content generation is the generator collaborator's business.
    """

    def __init__(self):
        self.repo = RecommendationRepository()
        self.mission_repo = MissionRepository()
        self.audit_writer = AuditWriter()
        self.relay = OutboxRelay()

    @staticmethod
    def _require(actor: ActorContext, capability: Capability, action: str) -> None:
        if not has_capability(actor.role, capability):
            raise PermissionDeniedError(
                f"Role '{actor.role}' may not {action} recommendations",
                details={"role": actor.role, "required_capability": capability.value}
            )

    def submit(self, data: Dict[str, Any], actor: ActorContext) -> Recommendation:
        """Store a generated recommendation as pending"""
        self._require(actor, Capability.SUBMIT_RECOMMENDATIONS, "submit")

        mission_id = data.get("mission_id")
        if mission_id and not self.mission_repo.exists(mission_id):
            raise MissionNotFoundError(
                f"Mission {mission_id} not found",
                details={"mission_id": mission_id}
            )

        recommendation = Recommendation(
            recommendation_id=generate_recommendation_id(),
            mission_id=mission_id,
            title=data.get("title") or "Tactical Recommendation",
            category=data.get("category") or "general",
            priority=data.get("priority") or "medium",
            summary=data.get("summary") or "",
            reasoning=data.get("reasoning"),
            suggested_action=data.get("suggested_action") or "",
            confidence=data.get("confidence") or 0.0,
            status=RecommendationStatus.PENDING,
            submitted_by=actor.actor_id,
            created_at=utc_now(),
        )
        audit_event = self.audit_writer.build_recommendation_event(
            actor, AuditAction.CREATE, recommendation.recommendation_id, mission_id,
            {"title": recommendation.title, "category": recommendation.category}
        )
        self.repo.create_recommendation(recommendation, [self.audit_writer.as_outbox_entry(audit_event)])
        self.relay.drain_after_commit(RECOMMENDATIONS, recommendation.recommendation_id)
        return recommendation

    def get(self, recommendation_id: str) -> Recommendation:
        return self.repo.get_recommendation_or_raise(recommendation_id)

    def list_recommendations(self, status: Optional[RecommendationStatus] = None, limit: int = 50) -> List[Recommendation]:
        return self.repo.list_recommendations(status=status, limit=limit)

    def _decide(
        self,
        recommendation_id: str,
        actor: ActorContext,
        from_status: RecommendationStatus,
        updates: Dict[str, Any],
        action: AuditAction,
        details: Dict[str, Any],
        expected_version: Optional[int]
    ) -> Recommendation:
        current = self.repo.get_recommendation_or_raise(recommendation_id)
        if current.status != from_status.value:
            raise InvalidStateError(
                f"Recommendation is {current.status}, expected {from_status.value}",
                details={"recommendation_id": recommendation_id, "status": current.status}
            )

        details = dict(details, title=current.title)
        if action == AuditAction.EXECUTE_RECOMMENDATION:
            details["suggested_action"] = current.suggested_action
        audit_event = self.audit_writer.build_recommendation_event(
            actor, action, recommendation_id, current.mission_id, details
        )
        updated = self.repo.update_status(
            recommendation_id,
            expected_version if expected_version is not None else current.version,
            updates,
            [self.audit_writer.as_outbox_entry(audit_event)],
        )
        self.relay.drain_after_commit(RECOMMENDATIONS, recommendation_id)
        logger.info(
            f"Recommendation {recommendation_id} -> {updated.status}",
            extra={"actor_id": actor.actor_id, "action": action.value, "status": updated.status}
        )
        return updated

    def approve(
        self,
        recommendation_id: str,
        actor: ActorContext,
        notes: Optional[str] = None,
        expected_version: Optional[int] = None
    ) -> Recommendation:
        self._require(actor, Capability.REVIEW_RECOMMENDATIONS, "approve")
        return self._decide(
            recommendation_id, actor, RecommendationStatus.PENDING,
            {
                "status": RecommendationStatus.APPROVED.value,
                "reviewed_by": actor.actor_id,
                "review_notes": notes or "",
                "reviewed_at": utc_now(),
            },
            AuditAction.APPROVE_RECOMMENDATION, {}, expected_version
        )

    def reject(
        self,
        recommendation_id: str,
        actor: ActorContext,
        notes: Optional[str] = None,
        expected_version: Optional[int] = None
    ) -> Recommendation:
        self._require(actor, Capability.REVIEW_RECOMMENDATIONS, "reject")
        return self._decide(
            recommendation_id, actor, RecommendationStatus.PENDING,
            {
                "status": RecommendationStatus.REJECTED.value,
                "reviewed_by": actor.actor_id,
                "review_notes": notes or "",
                "reviewed_at": utc_now(),
            },
            AuditAction.REJECT_RECOMMENDATION, {}, expected_version
        )

    def execute(
        self,
        recommendation_id: str,
        actor: ActorContext,
        expected_version: Optional[int] = None
    ) -> Recommendation:
        """Only an approved recommendation can be executed"""
        self._require(actor, Capability.EXECUTE_RECOMMENDATIONS, "execute")
        return self._decide(
            recommendation_id, actor, RecommendationStatus.APPROVED,
            {
                "status": RecommendationStatus.EXECUTED.value,
                "executed_by": actor.actor_id,
                "executed_at": utc_now(),
            },
            AuditAction.EXECUTE_RECOMMENDATION, {}, expected_version
        )
