"""Probe Service - Reporting contract for health-check probe evaluators

Probe rule bodies live with the probe collaborator. When a run finishes it
reports here: one telemetry event committed with its PROBE_RUN audit entry,
then zero or more evidence items appended through the same ledger contract
as any other writer.
"""
from typing import List, Optional

from ..config.settings import settings
from ..domain.models import ActorContext, ProbeRunReceipt, ProbeRunReport, TelemetryEvent
from ..domain.errors import MissionNotFoundError, ValidationError
from ..engine.audit_writer import AuditWriter
from ..engine.outbox_relay import OutboxRelay
from ..repositories.mission_repo import MissionRepository
from ..repositories.telemetry_repo import TelemetryRepository
from .evidence_service import EvidenceLedger
from ..utils.idgen import generate_telemetry_event_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class ProbeReporter:
    """Accepts probe run reports"""

    def __init__(self, ledger: Optional[EvidenceLedger] = None):
        self.ledger = ledger or EvidenceLedger()
        self.telemetry_repo = TelemetryRepository()
        self.mission_repo = MissionRepository()
        self.audit_writer = AuditWriter()
        self.relay = OutboxRelay()

    def report_run(self, run_id: str, report: ProbeRunReport, actor: ActorContext) -> ProbeRunReceipt:
        """
        Record the outcome of one probe run

        Every referenced mission is checked before anything is written. The
        telemetry event and the PROBE_RUN audit entry commit in one insert;
        each evidence item then commits with its own audit entry.

        Raises:
            MissionNotFoundError: an evidence item names an unknown mission
            StorageUnavailableError: the run is not fully recorded
        """
        for mission_id in {ev.mission_id for ev in report.evidence}:
            if not self.mission_repo.exists(mission_id):
                raise MissionNotFoundError(
                    f"Mission {mission_id} not found",
                    details={"mission_id": mission_id, "run_id": run_id}
                )

        audit_event = self.audit_writer.build_probe_run(
            actor, report.probe_id, run_id, report.status, report.result
        )
        telemetry = self.telemetry_repo.create_event(
            TelemetryEvent(
                telemetry_event_id=generate_telemetry_event_id(),
                probe_run_id=run_id,
                type=report.probe_type,
                severity=report.severity,
                message=report.message,
                data=report.result,
                timestamp=utc_now(),
            ),
            [self.audit_writer.as_outbox_entry(audit_event)]
        )
        self.relay.drain_after_commit("telemetry_events", telemetry.telemetry_event_id)

        evidence_ids: List[str] = []
        for ev in report.evidence:
            item = self.ledger.append(
                mission_id=ev.mission_id,
                evidence_type=ev.type,
                title=ev.title,
                content=ev.content,
                actor_id=actor.actor_id,
                source_run_id=run_id,
            )
            evidence_ids.append(item.evidence_id)

        logger.info(
            f"Probe run {run_id} reported: {report.status}",
            extra={"status": report.status, "actor_id": actor.actor_id}
        )
        return ProbeRunReceipt(
            run_id=run_id,
            status=report.status,
            telemetry_event_id=telemetry.telemetry_event_id,
            evidence_ids=evidence_ids,
            audit_event_id=audit_event.audit_event_id,
        )

    def recent_telemetry(self, limit: Optional[int] = None) -> List[TelemetryEvent]:
        """Most recent telemetry, bounded"""
        if limit is None:
            limit = settings.telemetry_recent_limit
        if limit < 1 or limit > settings.telemetry_max_window:
            raise ValidationError(
                f"Telemetry limit must be between 1 and {settings.telemetry_max_window}",
                details={"limit": limit}
            )
        return self.telemetry_repo.get_recent(limit)
