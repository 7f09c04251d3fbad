"""Mission API Routes - Workflow state, evidence, audit and export"""
import json
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response
from pydantic import BaseModel, ConfigDict, Field

from ..deps import get_audit_window_dep, get_current_user_dep, get_correlation_id_dep
from ...domain.models import ActorContext, AuditWindow
from ...domain.errors import DomainError
from ...engine.engine import WorkflowInstanceMachine
from ...services.evidence_service import EvidenceLedger
from ...services.export_service import ExportService
from ...services.mission_service import MissionService
from ...utils.time import format_iso
from ...utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================

class CreateMissionRequest(BaseModel):
    """Request to create a mission bound to a published workflow"""
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    organization_id: str = Field(..., min_length=1)
    definition_id: str = Field(..., min_length=1)
    template_id: Optional[str] = None


class CreateMissionResponse(BaseModel):
    mission_id: str
    instance_id: str
    current_state: str


class AvailableTransitionView(BaseModel):
    toState: str
    label: Optional[str] = None


class WorkflowStateResponse(BaseModel):
    """Current state with the transitions open to the caller's role"""
    currentState: str
    version: int
    isFinal: bool
    availableTransitions: List[AvailableTransitionView] = Field(default_factory=list)


class TransitionRequest(BaseModel):
    """Request to move the mission's workflow"""
    model_config = ConfigDict(populate_by_name=True)

    toState: str = Field(..., min_length=1)
    notes: Optional[str] = Field(None, max_length=5000)
    expectedVersion: Optional[int] = Field(None, ge=1)


class TransitionResponse(BaseModel):
    ok: bool = True
    currentState: str
    version: int
    viaOverride: bool = False
    missionCompleted: bool = False


class AppendEvidenceRequest(BaseModel):
    """Request to append one evidence item"""
    type: str = Field(..., min_length=1, max_length=100)
    title: str = Field(..., min_length=1, max_length=500)
    content: Dict[str, Any]


# ============================================================================
# Mission
# ============================================================================

@router.post("", response_model=CreateMissionResponse, status_code=status.HTTP_201_CREATED)
def create_mission(
    request: CreateMissionRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Create a mission and start its workflow in the initial state"""
    try:
        mission, instance = MissionService().create_mission(
            name=request.name,
            description=request.description,
            organization_id=request.organization_id,
            definition_id=request.definition_id,
            actor=actor,
            template_id=request.template_id
        )
        return CreateMissionResponse(
            mission_id=mission.mission_id,
            instance_id=instance.instance_id,
            current_state=instance.current_state
        )
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/{mission_id}")
def get_mission(
    mission_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Get mission"""
    try:
        return MissionService().get_mission(mission_id).model_dump(mode="json")
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


# ============================================================================
# Workflow
# ============================================================================

@router.get("/{mission_id}/workflow", response_model=WorkflowStateResponse)
def get_workflow_state(
    mission_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Current workflow state and the next steps the caller may take"""
    try:
        view = WorkflowInstanceMachine().get_state(mission_id, actor)
        return WorkflowStateResponse(
            currentState=view.current_state,
            version=view.version,
            isFinal=view.is_final,
            availableTransitions=[
                AvailableTransitionView(toState=t.to_state, label=t.label)
                for t in view.available_transitions
            ]
        )
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.post("/{mission_id}/transition", response_model=TransitionResponse)
def transition_mission(
    mission_id: str,
    request: TransitionRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """
    Move the mission's workflow to another state

    403 when the edge does not exist or the role may not take it (the reason
    is in the error details), 409 when another transition got there first.
    """
    try:
        outcome = WorkflowInstanceMachine().transition(
            mission_id,
            request.toState,
            actor,
            notes=request.notes,
            expected_version=request.expectedVersion
        )
        return TransitionResponse(
            currentState=outcome.instance.current_state,
            version=outcome.instance.version,
            viaOverride=outcome.via_override,
            missionCompleted=outcome.reached_final
        )
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/{mission_id}/timeline")
def get_timeline(
    mission_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Transition history, oldest first"""
    try:
        records = WorkflowInstanceMachine().history(mission_id)
        return {
            "items": [
                {
                    "sequence": r.sequence,
                    "from": r.from_state,
                    "to": r.to_state,
                    "label": r.label,
                    "actorId": r.actor_id,
                    "actorRole": r.actor_role,
                    "viaOverride": r.via_override,
                    "notes": r.notes,
                    "timestamp": format_iso(r.timestamp),
                }
                for r in records
            ]
        }
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


# ============================================================================
# Evidence
# ============================================================================

@router.get("/{mission_id}/evidence")
def list_evidence(
    mission_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Evidence items in creation order"""
    try:
        MissionService().get_mission(mission_id)
        items = EvidenceLedger().list_by_mission(mission_id)
        return {"items": [item.model_dump(mode="json") for item in items]}
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.post("/{mission_id}/evidence", status_code=status.HTTP_201_CREATED)
def append_evidence(
    mission_id: str,
    request: AppendEvidenceRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Append an evidence item; its content hash is computed here"""
    try:
        item = EvidenceLedger().append(
            mission_id=mission_id,
            evidence_type=request.type,
            title=request.title,
            content=request.content,
            actor_id=actor.actor_id
        )
        return item.model_dump(mode="json")
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/{mission_id}/evidence/verify")
def verify_evidence(
    mission_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Recompute every item's hash and report mismatches"""
    try:
        return EvidenceLedger().verify_mission(mission_id).model_dump(mode="json")
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


# ============================================================================
# Audit & Export
# ============================================================================

@router.get("/{mission_id}/audit")
def list_mission_audit(
    mission_id: str,
    window: AuditWindow = Depends(get_audit_window_dep),
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Mission audit entries, newest first"""
    try:
        entries = MissionService().list_audit(mission_id, window)
        return {"items": [e.model_dump(mode="json") for e in entries], "limit": window.limit}
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/{mission_id}/export")
def export_evidence_pack(
    mission_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """
    Download the mission evidence pack

    The body is the bundle JSON; X-Evidence-Pack-SHA256 carries the digest
    recorded in the EXPORT audit entry.
    """
    try:
        bundle, digest = ExportService().export_mission(mission_id, actor)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())

    return Response(
        content=json.dumps(bundle, indent=2, ensure_ascii=False),
        media_type="application/json",
        headers={
            "Content-Disposition": f"attachment; filename=mission-{mission_id}-evidence-pack.json",
            "X-Evidence-Pack-SHA256": digest,
        }
    )
