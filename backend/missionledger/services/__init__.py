"""Service modules - Business logic layer"""
from .workflow_service import WorkflowService
from .evidence_service import EvidenceLedger
from .export_service import ExportService
from .mission_service import MissionService
from .probe_service import ProbeReporter
from .recommendation_service import RecommendationGate

__all__ = [
    "WorkflowService",
    "EvidenceLedger",
    "ExportService",
    "MissionService",
    "ProbeReporter",
    "RecommendationGate",
]
