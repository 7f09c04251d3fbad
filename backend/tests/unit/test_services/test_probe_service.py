"""Tests for ProbeReporter"""

import pytest
from pymongo.errors import AutoReconnect

from missionledger.domain.enums import OutboxEntryKind
from missionledger.domain.errors import MissionNotFoundError, StorageUnavailableError, ValidationError
from missionledger.domain.models import ProbeEvidence, ProbeRunReport
from missionledger.engine.outbox_relay import OutboxRelay
from missionledger.services.evidence_service import EvidenceLedger
from missionledger.services.probe_service import ProbeReporter


def _report(evidence=None, status="warning") -> ProbeRunReport:
    return ProbeRunReport(
        probe_id="PRB-sla",
        probe_type="sla_watch",
        status=status,
        severity="warning",
        message="1 task past due",
        result={"overdue": 1},
        evidence=evidence or [],
    )


class TestReportRun:

    def test_receipt(self, operator) -> None:
        receipt = ProbeReporter().report_run("run-1", _report(), operator)
        assert receipt.run_id == "run-1"
        assert receipt.status == "warning"
        assert receipt.evidence_ids == []

    def test_telemetry_recorded(self, mongo_db, operator) -> None:
        receipt = ProbeReporter().report_run("run-1", _report(), operator)
        doc = mongo_db["telemetry_events"].find_one({"telemetry_event_id": receipt.telemetry_event_id})
        assert doc["probe_run_id"] == "run-1"
        assert doc["type"] == "sla_watch"
        assert doc["severity"] == "warning"
        assert doc["data"] == {"overdue": 1}

    def test_evidence_appended_with_run_id(self, operator, simple_mission) -> None:
        evidence = [ProbeEvidence(
            mission_id=simple_mission.mission_id,
            title="Overdue task",
            content={"taskId": "t1", "dueDate": "2026-01-01"},
        )]
        receipt = ProbeReporter().report_run("run-2", _report(evidence), operator)

        items = EvidenceLedger().list_by_mission(simple_mission.mission_id)
        assert [i.evidence_id for i in items] == receipt.evidence_ids
        assert items[0].source_run_id == "run-2"
        assert items[0].type == "probe_evidence"
        assert EvidenceLedger.verify(items[0]).valid

    def test_probe_run_audited(self, mongo_db, operator) -> None:
        receipt = ProbeReporter().report_run("run-3", _report(status="fail"), operator)
        entry = mongo_db["audit_events"].find_one({"audit_event_id": receipt.audit_event_id})
        assert entry["action"] == "PROBE_RUN"
        assert entry["entity_type"] == "probe"
        assert entry["entity_id"] == "PRB-sla"
        assert entry["details"] == {"run_id": "run-3", "status": "fail", "result": {"overdue": 1}}

    def test_unknown_mission_writes_nothing(self, mongo_db, operator) -> None:
        evidence = [ProbeEvidence(mission_id="MSN-missing", title="Lost", content={"a": 1})]
        with pytest.raises(MissionNotFoundError):
            ProbeReporter().report_run("run-4", _report(evidence), operator)
        assert mongo_db["telemetry_events"].count_documents({}) == 0
        assert mongo_db["audit_events"].count_documents({"action": "PROBE_RUN"}) == 0


class TestRunCommit:
    """Telemetry and its PROBE_RUN audit entry succeed or fail together."""

    def test_audit_entry_rides_with_telemetry(self, monkeypatch, mongo_db, operator) -> None:
        reporter = ProbeReporter()
        monkeypatch.setattr(reporter.relay, "drain_after_commit", lambda collection_name, owner_id: 0)

        receipt = reporter.report_run("run-5", _report(), operator)

        doc = mongo_db["telemetry_events"].find_one({"telemetry_event_id": receipt.telemetry_event_id})
        assert [e["kind"] for e in doc["outbox"]] == [OutboxEntryKind.AUDIT_EVENT.value]
        assert doc["outbox"][0]["payload"]["audit_event_id"] == receipt.audit_event_id
        assert mongo_db["audit_events"].count_documents({"action": "PROBE_RUN"}) == 0

        OutboxRelay().drain_pending()
        assert mongo_db["audit_events"].count_documents({"audit_event_id": receipt.audit_event_id}) == 1

    def test_failed_telemetry_insert_writes_nothing(self, monkeypatch, mongo_db, operator, simple_mission) -> None:
        reporter = ProbeReporter()

        def unavailable(*args, **kwargs):
            raise AutoReconnect("connection reset")

        monkeypatch.setattr(reporter.telemetry_repo._events, "insert_one", unavailable)
        evidence = [ProbeEvidence(mission_id=simple_mission.mission_id, title="Overdue", content={"a": 1})]

        with pytest.raises(StorageUnavailableError):
            reporter.report_run("run-6", _report(evidence), operator)

        assert mongo_db["telemetry_events"].count_documents({}) == 0
        assert mongo_db["audit_events"].count_documents({"action": "PROBE_RUN"}) == 0
        assert EvidenceLedger().list_by_mission(simple_mission.mission_id) == []

    def test_recent_telemetry_hides_outbox(self, operator) -> None:
        reporter = ProbeReporter()
        reporter.report_run("run-7", _report(), operator)
        assert reporter.recent_telemetry()[0].probe_run_id == "run-7"


class TestRecentTelemetry:

    def test_bounded_by_limit(self, operator) -> None:
        reporter = ProbeReporter()
        for i in range(5):
            reporter.report_run(f"run-{i}", _report(), operator)
        assert len(reporter.recent_telemetry(limit=3)) == 3
        assert len(reporter.recent_telemetry()) == 5

    @pytest.mark.parametrize("limit", [0, 501])
    def test_limit_out_of_bounds(self, limit) -> None:
        with pytest.raises(ValidationError):
            ProbeReporter().recent_telemetry(limit=limit)
