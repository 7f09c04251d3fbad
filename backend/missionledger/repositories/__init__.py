"""Repository modules - Data access layer"""
from .mongo_client import get_database, get_collection, next_sequence, storage_errors
from .workflow_repo import WorkflowRepository
from .instance_repo import InstanceRepository, TransitionRepository
from .evidence_repo import EvidenceRepository
from .audit_repo import AuditRepository
from .mission_repo import MissionRepository, TaskRepository
from .telemetry_repo import TelemetryRepository
from .recommendation_repo import RecommendationRepository
from .outbox_repo import OutboxRepository, OUTBOX_OWNERS

__all__ = [
    "get_database",
    "get_collection",
    "next_sequence",
    "storage_errors",
    "WorkflowRepository",
    "InstanceRepository",
    "TransitionRepository",
    "EvidenceRepository",
    "AuditRepository",
    "MissionRepository",
    "TaskRepository",
    "TelemetryRepository",
    "RecommendationRepository",
    "OutboxRepository",
    "OUTBOX_OWNERS",
]
