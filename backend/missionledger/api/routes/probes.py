"""Probe API Routes - Reporting contract for the probe runner"""
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..deps import get_current_user_dep, get_correlation_id_dep
from ...domain.models import ActorContext, ProbeRunReport
from ...domain.errors import DomainError
from ...services.probe_service import ProbeReporter

router = APIRouter()


@router.post("/runs/{run_id}/report", status_code=status.HTTP_201_CREATED)
def report_probe_run(
    run_id: str,
    report: ProbeRunReport,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Record telemetry, evidence and the PROBE_RUN audit entry for one run"""
    try:
        return ProbeReporter().report_run(run_id, report, actor).model_dump(mode="json")
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/telemetry/recent")
def recent_telemetry(
    limit: Optional[int] = Query(None),
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    try:
        events = ProbeReporter().recent_telemetry(limit)
        return {"items": [e.model_dump(mode="json") for e in events]}
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
