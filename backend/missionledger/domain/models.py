"""Domain Models - Pydantic schemas for all entities"""
from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional
from pydantic import AfterValidator, AliasChoices, BaseModel, ConfigDict, Field

from .enums import (
    WILDCARD_ROLE, AuditAction, EntityType, MissionStatus, OutboxEntryKind,
    ProbeRunStatus, RecommendationStatus, TelemetrySeverity
)
from ..utils.time import ensure_utc, utc_now


# Stored datetimes come back naive from some drivers; normalize on load
UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


# ============================================================================
# Identity
# ============================================================================

class ActorContext(BaseModel):
    """Current actor context from JWT token"""
    model_config = ConfigDict(extra="forbid")

    actor_id: str = Field(..., description="Subject claim of the session token")
    display_name: str = Field(..., description="User display name")
    role: str = Field(..., description="Role granted by the auth collaborator")


# ============================================================================
# Workflow Definition
# ============================================================================

class StateDefinition(BaseModel):
    """A named state in a workflow graph"""
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    name: str = Field(..., min_length=1)
    label: Optional[str] = None
    initial: bool = Field(
        default=False,
        validation_alias=AliasChoices("initial", "is_initial", "isInitial")
    )
    final: bool = Field(
        default=False,
        validation_alias=AliasChoices("final", "is_final", "isFinal")
    )


class TransitionDefinition(BaseModel):
    """A directed, role-guarded edge between two states"""
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    from_state: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("from_state", "from", "fromState")
    )
    to_state: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("to_state", "to", "toState")
    )
    label: Optional[str] = None
    allowed_roles: Optional[List[str]] = Field(
        default=None,
        validation_alias=AliasChoices("allowed_roles", "roles", "allowedRoles"),
        description="None means any role"
    )

    @property
    def is_wildcard(self) -> bool:
        return self.allowed_roles is None or WILDCARD_ROLE in self.allowed_roles

    def admits(self, role: str) -> bool:
        """Whether the role guard lets this role take the edge"""
        return self.is_wildcard or role in (self.allowed_roles or [])


class WorkflowSubmission(BaseModel):
    """Raw definition as submitted; states/transitions are parsed during validation"""
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    states: List[Any] = Field(default_factory=list)
    transitions: List[Any] = Field(default_factory=list)


class WorkflowDefinition(BaseModel):
    """Published, immutable workflow graph"""
    definition_id: str
    name: str
    description: Optional[str] = None
    organization_id: str
    version_number: int = 1
    states: List[StateDefinition]
    transitions: List[TransitionDefinition] = Field(default_factory=list)
    published_by: str
    published_at: UtcDatetime = Field(default_factory=utc_now)

    def get_state(self, name: str) -> Optional[StateDefinition]:
        for state in self.states:
            if state.name == name:
                return state
        return None

    def initial_states(self) -> List[StateDefinition]:
        return [s for s in self.states if s.initial]

    def is_final(self, name: str) -> bool:
        state = self.get_state(name)
        return bool(state and state.final)

    def transitions_from(self, state_name: str) -> List[TransitionDefinition]:
        """Outgoing edges in declaration order"""
        return [t for t in self.transitions if t.from_state == state_name]


# ============================================================================
# Outbox
# ============================================================================

class OutboxEntry(BaseModel):
    """Side effect committed inside its owning document, projected later by the relay"""
    model_config = ConfigDict(use_enum_values=True)

    entry_id: str
    kind: OutboxEntryKind
    payload: Dict[str, Any] = Field(default_factory=dict)
    created_at: UtcDatetime = Field(default_factory=utc_now)


# ============================================================================
# Workflow Instance
# ============================================================================

class WorkflowInstance(BaseModel):
    """State-machine cursor for one mission"""
    instance_id: str
    mission_id: str
    definition_id: str
    current_state: str
    version: int = Field(default=1, description="Optimistic lock counter")
    created_by: Optional[str] = None
    created_at: UtcDatetime = Field(default_factory=utc_now)
    updated_at: UtcDatetime = Field(default_factory=utc_now)


class WorkflowTransitionRecord(BaseModel):
    """One committed state change"""
    transition_id: str
    instance_id: str
    mission_id: str
    sequence: int = Field(..., description="Instance version produced by this transition")
    from_state: str
    to_state: str
    label: Optional[str] = None
    actor_id: str
    actor_role: str
    via_override: bool = False
    notes: Optional[str] = None
    timestamp: UtcDatetime = Field(default_factory=utc_now)


class AvailableTransition(BaseModel):
    """Legal next step for the current actor"""
    to_state: str
    label: Optional[str] = None


class InstanceStateView(BaseModel):
    """Current state plus role-filtered next steps"""
    mission_id: str
    instance_id: str
    definition_id: str
    current_state: str
    version: int
    is_final: bool = False
    available_transitions: List[AvailableTransition] = Field(default_factory=list)


class TransitionOutcome(BaseModel):
    """What a successful transition committed"""
    instance: WorkflowInstance
    record: WorkflowTransitionRecord
    via_override: bool = False
    reached_final: bool = False


# ============================================================================
# Evidence
# ============================================================================

class EvidenceItem(BaseModel):
    """Immutable, hash-verifiable record attached to a mission"""
    evidence_id: str
    mission_id: str
    source_run_id: Optional[str] = None
    sequence: int
    type: str
    title: str
    content: Dict[str, Any]
    content_hash: str
    hash_scheme: str
    created_by: Optional[str] = None
    created_at: UtcDatetime = Field(default_factory=utc_now)


class EvidenceVerification(BaseModel):
    """Result of re-deriving one item's hash"""
    evidence_id: str
    hash_scheme: str
    stored_hash: str
    computed_hash: str
    valid: bool


class EvidenceVerificationReport(BaseModel):
    mission_id: str
    checked: int
    valid: bool
    mismatches: List[EvidenceVerification] = Field(default_factory=list)


# ============================================================================
# Audit
# ============================================================================

class AuditLogEntry(BaseModel):
    """Append-only record of a privileged action"""
    model_config = ConfigDict(use_enum_values=True)

    audit_event_id: str
    sequence: Optional[int] = Field(None, description="Global order, assigned on projection")
    actor_id: str
    action: AuditAction
    entity_type: EntityType
    entity_id: str
    mission_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    correlation_id: Optional[str] = None
    timestamp: UtcDatetime = Field(default_factory=utc_now)


class AuditQuery(BaseModel):
    """Filter for audit reads; every field narrows the result"""
    model_config = ConfigDict(use_enum_values=True)

    actor_id: Optional[str] = None
    action: Optional[AuditAction] = None
    entity_type: Optional[EntityType] = None
    entity_id: Optional[str] = None
    mission_id: Optional[str] = None


class AuditWindow(BaseModel):
    """Bound on audit reads: a count and an optional time range"""
    limit: int = Field(default=100, ge=1)
    since: Optional[UtcDatetime] = None
    until: Optional[UtcDatetime] = None


# ============================================================================
# Missions & Tasks (owned by the mission/task CRUD collaborators)
# ============================================================================

class Mission(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    mission_id: str
    name: str
    description: Optional[str] = None
    status: MissionStatus = MissionStatus.ACTIVE
    organization_id: str
    template_id: Optional[str] = None
    created_by: Optional[str] = None
    created_at: UtcDatetime = Field(default_factory=utc_now)
    completed_at: Optional[UtcDatetime] = None
    evidence_count: int = 0


class Task(BaseModel):
    task_id: str
    mission_id: str
    instance_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    status: str = "pending"
    priority: Optional[str] = "medium"
    assignee_id: Optional[str] = None
    due_date: Optional[UtcDatetime] = None
    completed_at: Optional[UtcDatetime] = None
    created_at: UtcDatetime = Field(default_factory=utc_now)


# ============================================================================
# Probes & Telemetry
# ============================================================================

class TelemetryEvent(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    telemetry_event_id: str
    probe_run_id: str
    type: str
    severity: TelemetrySeverity = TelemetrySeverity.INFO
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: UtcDatetime = Field(default_factory=utc_now)


class ProbeEvidence(BaseModel):
    """Evidence a probe wants recorded against a mission"""
    mission_id: str
    type: str = "probe_evidence"
    title: str = Field(..., min_length=1)
    content: Dict[str, Any]


class ProbeRunReport(BaseModel):
    """What a probe evaluator hands back after one run"""
    model_config = ConfigDict(use_enum_values=True)

    probe_id: str
    probe_type: str
    status: ProbeRunStatus
    severity: TelemetrySeverity = TelemetrySeverity.INFO
    message: str
    result: Dict[str, Any] = Field(default_factory=dict)
    evidence: List[ProbeEvidence] = Field(default_factory=list)


class ProbeRunReceipt(BaseModel):
    run_id: str
    status: str
    telemetry_event_id: str
    evidence_ids: List[str] = Field(default_factory=list)
    audit_event_id: str


# ============================================================================
# Recommendations
# ============================================================================

class Recommendation(BaseModel):
    """Generated recommendation waiting behind the human approval gate"""
    model_config = ConfigDict(use_enum_values=True)

    recommendation_id: str
    mission_id: Optional[str] = None
    title: str
    category: str
    priority: str = "medium"
    summary: str
    reasoning: Optional[str] = None
    suggested_action: str
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    status: RecommendationStatus = RecommendationStatus.PENDING
    submitted_by: Optional[str] = None
    reviewed_by: Optional[str] = None
    review_notes: Optional[str] = None
    reviewed_at: Optional[UtcDatetime] = None
    executed_by: Optional[str] = None
    executed_at: Optional[UtcDatetime] = None
    created_at: UtcDatetime = Field(default_factory=utc_now)
    version: int = 1