"""Tests for MissionService"""

from datetime import timedelta

import pytest

from missionledger.domain.errors import (
    MissionNotFoundError, ValidationError, WorkflowDefinitionNotFoundError
)
from missionledger.engine.audit_writer import AuditTrail
from missionledger.engine.engine import WorkflowInstanceMachine
from missionledger.services.mission_service import MissionService
from missionledger.utils.time import utc_now

from tests.conftest import ORG_ID


class TestCreateMission:

    def test_starts_in_initial_state(self, admin, simple_definition) -> None:
        mission, instance = MissionService().create_mission(
            "Quarterly audit", "desc", ORG_ID, simple_definition.definition_id, admin
        )
        assert mission.status == "active"
        assert mission.created_by == admin.actor_id
        assert instance.mission_id == mission.mission_id
        assert instance.current_state == "draft"
        assert instance.version == 1

    def test_name_is_trimmed(self, admin, simple_definition) -> None:
        mission, _ = MissionService().create_mission(
            "  Padded  ", None, ORG_ID, simple_definition.definition_id, admin
        )
        assert mission.name == "Padded"

    def test_blank_name_rejected(self, admin, simple_definition) -> None:
        with pytest.raises(ValidationError):
            MissionService().create_mission("   ", None, ORG_ID, simple_definition.definition_id, admin)

    def test_unknown_definition_writes_nothing(self, mongo_db, admin) -> None:
        with pytest.raises(WorkflowDefinitionNotFoundError):
            MissionService().create_mission("Orphan", None, ORG_ID, "WFD-missing", admin)
        assert mongo_db["missions"].count_documents({}) == 0

    def test_get_mission_unknown(self) -> None:
        with pytest.raises(MissionNotFoundError):
            MissionService().get_mission("MSN-missing")


class TestMissionAudit:

    def test_newest_first(self, analyst, simple_mission) -> None:
        WorkflowInstanceMachine().transition(simple_mission.mission_id, "review", analyst)

        entries = MissionService().list_audit(simple_mission.mission_id, AuditTrail.window())

        assert [e.action for e in entries] == ["TRANSITION", "CREATE", "CREATE"]
        assert [e.entity_type for e in entries] == ["workflow", "workflow", "mission"]
        sequences = [e.sequence for e in entries]
        assert sequences == sorted(sequences, reverse=True)

    def test_window_limit(self, analyst, simple_mission) -> None:
        WorkflowInstanceMachine().transition(simple_mission.mission_id, "review", analyst)
        entries = MissionService().list_audit(simple_mission.mission_id, AuditTrail.window(limit=1))
        assert len(entries) == 1
        assert entries[0].action == "TRANSITION"

    def test_window_time_range(self, simple_mission) -> None:
        future = utc_now() + timedelta(days=1)
        window = AuditTrail.window(since=future)
        assert MissionService().list_audit(simple_mission.mission_id, window) == []

    def test_unknown_mission(self) -> None:
        with pytest.raises(MissionNotFoundError):
            MissionService().list_audit("MSN-missing", AuditTrail.window())


class TestAuditWindow:

    def test_default_limit(self) -> None:
        assert AuditTrail.window().limit == 100

    @pytest.mark.parametrize("limit", [0, -5, 1001])
    def test_limit_out_of_bounds(self, limit) -> None:
        with pytest.raises(ValidationError):
            AuditTrail.window(limit=limit)

    def test_since_after_until(self) -> None:
        now = utc_now()
        with pytest.raises(ValidationError):
            AuditTrail.window(since=now, until=now - timedelta(hours=1))
