"""API Routes module"""
from fastapi import APIRouter

from .workflows import router as workflows_router
from .missions import router as missions_router
from .audit import router as audit_router
from .probes import router as probes_router
from .recommendations import router as recommendations_router

# Main API router
api_router = APIRouter()

api_router.include_router(workflows_router, prefix="/workflows", tags=["Workflows"])
api_router.include_router(missions_router, prefix="/missions", tags=["Missions"])
api_router.include_router(audit_router, prefix="/audit", tags=["Audit"])
api_router.include_router(probes_router, prefix="/probes", tags=["Probes"])
api_router.include_router(recommendations_router, prefix="/recommendations", tags=["Recommendations"])

__all__ = ["api_router"]
