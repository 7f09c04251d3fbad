"""Domain Enumerations - All status and type definitions"""
from enum import Enum


WILDCARD_ROLE = "*"


class Role(str, Enum):
    """Actor roles issued by the auth collaborator"""
    ADMIN = "admin"
    OPERATOR = "operator"
    ANALYST = "analyst"
    SUPERVISOR = "supervisor"
    AUDITOR = "auditor"
    EXECUTIVE_VIEWER = "executive_viewer"


class Capability(str, Enum):
    """Capabilities granted to roles beyond per-transition role lists"""
    BYPASS_TRANSITION_GUARDS = "BYPASS_TRANSITION_GUARDS"  # May take any declared transition
    SUBMIT_RECOMMENDATIONS = "SUBMIT_RECOMMENDATIONS"
    REVIEW_RECOMMENDATIONS = "REVIEW_RECOMMENDATIONS"
    EXECUTE_RECOMMENDATIONS = "EXECUTE_RECOMMENDATIONS"


class MissionStatus(str, Enum):
    """Mission status (owned by mission CRUD; core only sets COMPLETED)"""
    ACTIVE = "active"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class AuditAction(str, Enum):
    """Actions recorded in the audit trail"""
    CREATE = "CREATE"
    TRANSITION = "TRANSITION"
    EXPORT = "EXPORT"
    PROBE_RUN = "PROBE_RUN"
    APPROVE_RECOMMENDATION = "APPROVE_AI_RECOMMENDATION"
    REJECT_RECOMMENDATION = "REJECT_AI_RECOMMENDATION"
    EXECUTE_RECOMMENDATION = "EXECUTE_AI_RECOMMENDATION"


class EntityType(str, Enum):
    """Entity types referenced by audit entries"""
    WORKFLOW_DEFINITION = "workflow_definition"
    WORKFLOW_INSTANCE = "workflow"
    MISSION = "mission"
    EVIDENCE = "evidence"
    EVIDENCE_PACK = "evidence_pack"
    PROBE = "probe"
    RECOMMENDATION = "ai_recommendation"


class TransitionDenialReason(str, Enum):
    """Why the authorizer refused a transition"""
    NO_SUCH_TRANSITION = "NO_SUCH_TRANSITION"
    ROLE_NOT_AUTHORIZED = "ROLE_NOT_AUTHORIZED"


class OutboxEntryKind(str, Enum):
    """Side effects committed together with their owning document"""
    AUDIT_EVENT = "AUDIT_EVENT"
    TRANSITION_RECORD = "TRANSITION_RECORD"
    COMPLETE_MISSION = "COMPLETE_MISSION"
    EVIDENCE_ITEM = "EVIDENCE_ITEM"


class RecommendationStatus(str, Enum):
    """Approval-gate states for generated recommendations"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXECUTED = "executed"


class TelemetrySeverity(str, Enum):
    """Telemetry severities emitted by probes"""
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class ProbeRunStatus(str, Enum):
    """Probe run outcomes"""
    PASS = "pass"
    WARNING = "warning"
    FAIL = "fail"
