"""Workflow API Routes - Definition registry endpoints"""
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query
from pydantic import BaseModel, Field

from ..deps import get_current_user_dep, get_correlation_id_dep
from ...domain.models import ActorContext, WorkflowSubmission
from ...domain.errors import DomainError
from ...services.workflow_service import WorkflowService
from ...utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================

class PublishWorkflowRequest(BaseModel):
    """A workflow graph to publish"""
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    organization_id: str = Field(..., min_length=1)
    states: List[Any] = Field(default_factory=list)
    transitions: List[Any] = Field(default_factory=list)


class ValidationResult(BaseModel):
    """Validation result"""
    is_valid: bool
    errors: List[Dict[str, Any]] = Field(default_factory=list)
    warnings: List[Dict[str, Any]] = Field(default_factory=list)


class WorkflowListResponse(BaseModel):
    """Response for workflow list"""
    items: List[Dict[str, Any]]
    skip: int
    limit: int


def _submission(request: PublishWorkflowRequest) -> WorkflowSubmission:
    return WorkflowSubmission(
        name=request.name,
        description=request.description,
        states=request.states,
        transitions=request.transitions,
    )


# ============================================================================
# Routes
# ============================================================================

@router.post("", status_code=status.HTTP_201_CREATED)
def publish_workflow(
    request: PublishWorkflowRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """
    Publish a workflow definition

    Each publish under the same name creates the next immutable version.
    Invalid graphs answer 400 with every violation found.
    """
    try:
        service = WorkflowService()
        definition = service.publish(_submission(request), request.organization_id, actor)

        logger.info(
            f"Published workflow: {definition.definition_id}",
            extra={"definition_id": definition.definition_id, "actor_id": actor.actor_id}
        )
        return definition.model_dump(mode="json")

    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.post("/validate", response_model=ValidationResult)
async def validate_workflow(
    request: PublishWorkflowRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Dry-run validation; nothing is stored"""
    try:
        return ValidationResult(**WorkflowService().validate(_submission(request)))
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("", response_model=WorkflowListResponse)
def list_workflows(
    organization_id: str = Query(..., min_length=1),
    name: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """List published definitions of one organization, newest version first"""
    try:
        definitions = WorkflowService().list_definitions(
            organization_id, name=name, skip=skip, limit=limit
        )
        return WorkflowListResponse(
            items=[d.model_dump(mode="json") for d in definitions],
            skip=skip,
            limit=limit
        )
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/{definition_id}")
def get_workflow(
    definition_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Get one published definition"""
    try:
        return WorkflowService().get_definition(definition_id).model_dump(mode="json")
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
