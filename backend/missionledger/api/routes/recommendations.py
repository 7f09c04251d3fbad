"""Recommendation API Routes - Human approval gate"""
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from ..deps import get_current_user_dep, get_correlation_id_dep
from ...domain.models import ActorContext
from ...domain.enums import RecommendationStatus
from ...domain.errors import DomainError
from ...services.recommendation_service import RecommendationGate
from ...utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


# ============================================================================
# Request Models
# ============================================================================

class SubmitRecommendationRequest(BaseModel):
    """A generated recommendation awaiting review"""
    mission_id: Optional[str] = None
    title: Optional[str] = Field(None, max_length=500)
    category: Optional[str] = Field(None, max_length=100)
    priority: Optional[str] = Field(None, max_length=50)
    summary: Optional[str] = None
    reasoning: Optional[str] = None
    suggested_action: Optional[str] = None
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)


class ReviewRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=5000)
    expected_version: Optional[int] = Field(None, ge=1)


class ExecuteRequest(BaseModel):
    expected_version: Optional[int] = Field(None, ge=1)


# ============================================================================
# Routes
# ============================================================================

@router.post("", status_code=status.HTTP_201_CREATED)
def submit_recommendation(
    request: SubmitRecommendationRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    try:
        recommendation = RecommendationGate().submit(request.model_dump(), actor)
        return recommendation.model_dump(mode="json")
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("")
def list_recommendations(
    status_filter: Optional[RecommendationStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    try:
        items = RecommendationGate().list_recommendations(status=status_filter, limit=limit)
        return {"items": [r.model_dump(mode="json") for r in items]}
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/{recommendation_id}")
def get_recommendation(
    recommendation_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    try:
        return RecommendationGate().get(recommendation_id).model_dump(mode="json")
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.post("/{recommendation_id}/approve")
def approve_recommendation(
    recommendation_id: str,
    request: Optional[ReviewRequest] = None,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Approve a pending recommendation"""
    request = request or ReviewRequest()
    try:
        recommendation = RecommendationGate().approve(
            recommendation_id, actor, notes=request.notes, expected_version=request.expected_version
        )
        return recommendation.model_dump(mode="json")
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.post("/{recommendation_id}/reject")
def reject_recommendation(
    recommendation_id: str,
    request: Optional[ReviewRequest] = None,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Reject a pending recommendation"""
    request = request or ReviewRequest()
    try:
        recommendation = RecommendationGate().reject(
            recommendation_id, actor, notes=request.notes, expected_version=request.expected_version
        )
        return recommendation.model_dump(mode="json")
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.post("/{recommendation_id}/execute")
def execute_recommendation(
    recommendation_id: str,
    request: Optional[ExecuteRequest] = None,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Execute an approved recommendation"""
    request = request or ExecuteRequest()
    try:
        recommendation = RecommendationGate().execute(
            recommendation_id, actor, expected_version=request.expected_version
        )
        logger.info(
            f"Recommendation executed: {recommendation_id}",
            extra={"actor_id": actor.actor_id, "action": "EXECUTE_AI_RECOMMENDATION"}
        )
        return recommendation.model_dump(mode="json")
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
