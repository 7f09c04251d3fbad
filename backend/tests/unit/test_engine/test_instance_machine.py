"""Tests for WorkflowInstanceMachine: creation, transitions, concurrency, completion."""

import threading

import pytest
from pymongo.errors import AutoReconnect

from missionledger.domain.enums import AuditAction, MissionStatus, TransitionDenialReason
from missionledger.domain.errors import (
    AlreadyExistsError,
    ConcurrentModificationError,
    MissionNotFoundError,
    StorageUnavailableError,
    TransitionNotAllowedError,
    WorkflowDefinitionNotFoundError,
    WorkflowInstanceNotFoundError,
)
from missionledger.engine.engine import WorkflowInstanceMachine
from missionledger.repositories.instance_repo import InstanceRepository
from missionledger.repositories.mission_repo import MissionRepository
from missionledger.services.workflow_service import WorkflowService

from tests.conftest import ORG_ID


@pytest.fixture
def review_definition(admin):
    """open(initial) -> review -> closed(final)"""
    return WorkflowService().publish(
        {
            "name": "Review Flow",
            "states": [
                {"name": "open", "initial": True},
                {"name": "review"},
                {"name": "closed", "final": True},
            ],
            "transitions": [
                {"from": "open", "to": "review", "roles": ["operator", "admin"]},
                {"from": "review", "to": "closed", "roles": ["supervisor", "admin"]},
            ],
        },
        ORG_ID,
        admin,
    )


@pytest.fixture
def review_mission(review_definition, mission_factory):
    mission, _ = mission_factory(review_definition)
    return mission


def audit_actions(mongo_db, mission_id, action):
    return list(mongo_db["audit_events"].find({"mission_id": mission_id, "action": action}))


class TestCreateInstance:
    """Instances start in the single initial state at version 1."""

    def test_starts_in_initial_state(self, review_definition, mission_factory) -> None:
        _, instance = mission_factory(review_definition)
        assert instance.current_state == "open"
        assert instance.version == 1

    def test_create_is_audited(self, mongo_db, review_definition, mission_factory) -> None:
        mission, instance = mission_factory(review_definition)
        entries = audit_actions(mongo_db, mission.mission_id, AuditAction.CREATE.value)
        entity_ids = {e["entity_id"] for e in entries}
        assert {mission.mission_id, instance.instance_id} <= entity_ids

    def test_one_instance_per_mission(self, admin, review_definition, review_mission) -> None:
        with pytest.raises(AlreadyExistsError):
            WorkflowInstanceMachine().create_instance(
                review_mission.mission_id, review_definition.definition_id, admin
            )

    def test_unknown_definition(self, admin, review_mission) -> None:
        with pytest.raises(WorkflowDefinitionNotFoundError):
            WorkflowInstanceMachine().create_instance(review_mission.mission_id, "WFD-missing", admin)

    def test_unknown_mission(self, admin, review_definition) -> None:
        with pytest.raises(MissionNotFoundError):
            WorkflowInstanceMachine().create_instance("MSN-missing", review_definition.definition_id, admin)


class TestTransitionScenario:
    """open -> review by an operator, then review -> closed by a supervisor."""

    def test_direct_jump_is_refused(self, operator, review_mission) -> None:
        with pytest.raises(TransitionNotAllowedError) as exc_info:
            WorkflowInstanceMachine().transition(review_mission.mission_id, "closed", operator)
        assert exc_info.value.reason == TransitionDenialReason.NO_SUCH_TRANSITION.value

    def test_full_walk_completes_mission(self, operator, supervisor, review_mission) -> None:
        machine = WorkflowInstanceMachine()

        outcome = machine.transition(review_mission.mission_id, "review", operator)
        assert outcome.instance.current_state == "review"
        assert outcome.reached_final is False

        outcome = machine.transition(review_mission.mission_id, "closed", supervisor)
        assert outcome.instance.current_state == "closed"
        assert outcome.reached_final is True

        mission = MissionRepository().get_mission(review_mission.mission_id)
        assert mission.status == MissionStatus.COMPLETED.value
        assert mission.completed_at is not None

    def test_state_is_visible_on_next_read(self, operator, review_mission) -> None:
        machine = WorkflowInstanceMachine()
        machine.transition(review_mission.mission_id, "review", operator)
        assert machine.get_instance(review_mission.mission_id).current_state == "review"
        assert machine.get_instance(review_mission.mission_id).version == 2

    def test_unauthorized_role_writes_nothing(self, mongo_db, analyst, review_mission) -> None:
        with pytest.raises(TransitionNotAllowedError) as exc_info:
            WorkflowInstanceMachine().transition(review_mission.mission_id, "review", analyst)
        assert exc_info.value.reason == TransitionDenialReason.ROLE_NOT_AUTHORIZED.value
        assert mongo_db["workflow_transitions"].count_documents({}) == 0
        assert audit_actions(mongo_db, review_mission.mission_id, "TRANSITION") == []
        assert WorkflowInstanceMachine().get_instance(review_mission.mission_id).version == 1

    def test_unknown_mission(self, operator) -> None:
        with pytest.raises(WorkflowInstanceNotFoundError):
            WorkflowInstanceMachine().transition("MSN-missing", "review", operator)


class TestTransitionRecords:
    """Each successful transition yields exactly one record and one audit entry."""

    def test_one_record_and_one_audit_entry(self, mongo_db, operator, review_mission) -> None:
        WorkflowInstanceMachine().transition(review_mission.mission_id, "review", operator, notes="triaged")

        records = list(mongo_db["workflow_transitions"].find({"mission_id": review_mission.mission_id}))
        entries = audit_actions(mongo_db, review_mission.mission_id, "TRANSITION")
        assert len(records) == 1
        assert len(entries) == 1
        assert records[0]["from_state"] == "open"
        assert records[0]["to_state"] == "review"
        assert records[0]["notes"] == "triaged"
        assert entries[0]["details"]["from"] == "open"
        assert entries[0]["details"]["to"] == "review"
        assert entries[0]["actor_id"] == operator.actor_id

    def test_outbox_is_empty_after_commit(self, mongo_db, operator, review_mission) -> None:
        WorkflowInstanceMachine().transition(review_mission.mission_id, "review", operator)
        doc = mongo_db["workflow_instances"].find_one({"mission_id": review_mission.mission_id})
        assert doc["outbox"] == []

    def test_history_is_ascending(self, admin, operator, review_mission) -> None:
        machine = WorkflowInstanceMachine()
        machine.transition(review_mission.mission_id, "review", operator)
        machine.transition(review_mission.mission_id, "closed", admin)

        history = machine.history(review_mission.mission_id)
        assert [(r.from_state, r.to_state) for r in history] == [("open", "review"), ("review", "closed")]
        assert [r.sequence for r in history] == [2, 3]

    def test_override_is_recorded(self, mongo_db, admin, mission_factory) -> None:
        # admin is not listed on this edge
        definition = WorkflowService().publish(
            {
                "name": "Operator Only",
                "states": [{"name": "a", "initial": True}, {"name": "b", "final": True}],
                "transitions": [{"from": "a", "to": "b", "roles": ["operator"]}],
            },
            ORG_ID,
            admin,
        )
        mission, _ = mission_factory(definition)

        outcome = WorkflowInstanceMachine().transition(mission.mission_id, "b", admin)

        assert outcome.via_override is True
        assert outcome.record.via_override is True
        entry = audit_actions(mongo_db, mission.mission_id, "TRANSITION")[0]
        assert entry["details"]["via_override"] is True


class TestConcurrency:
    """Optimistic compare-and-set on the instance version."""

    def test_stale_expected_version_is_rejected(self, operator, review_mission) -> None:
        machine = WorkflowInstanceMachine()
        machine.transition(review_mission.mission_id, "review", operator, expected_version=1)

        with pytest.raises(ConcurrentModificationError) as exc_info:
            machine.transition(review_mission.mission_id, "review", operator, expected_version=1)
        assert exc_info.value.http_status == 409

    def test_two_readers_one_winner(self, mongo_db, supervisor, operator, review_mission) -> None:
        """Both requests read review@v2; only the first compare-and-set lands."""
        machine = WorkflowInstanceMachine()
        machine.transition(review_mission.mission_id, "review", operator)

        first = WorkflowInstanceMachine()
        second = WorkflowInstanceMachine()
        seen_by_both = first.get_instance(review_mission.mission_id)
        assert second.get_instance(review_mission.mission_id).version == seen_by_both.version

        first.transition(review_mission.mission_id, "closed", supervisor, expected_version=seen_by_both.version)
        with pytest.raises(ConcurrentModificationError):
            second.transition(review_mission.mission_id, "closed", supervisor, expected_version=seen_by_both.version)

        closes = list(mongo_db["workflow_transitions"].find({"to_state": "closed"}))
        assert len(closes) == 1

    def test_lost_race_inside_compare_and_set(self, operator, review_mission) -> None:
        """The repository refuses a write based on an outdated read."""
        machine = WorkflowInstanceMachine()
        instance = machine.get_instance(review_mission.mission_id)
        machine.transition(review_mission.mission_id, "review", operator)

        with pytest.raises(ConcurrentModificationError) as exc_info:
            machine.instance_repo.compare_and_set_state(
                instance_id=instance.instance_id,
                expected_version=instance.version,
                expected_state=instance.current_state,
                new_state="review",
                outbox=[],
                now=instance.updated_at,
            )
        assert exc_info.value.details["actual_state"] == "review"

    def test_threads_racing_on_one_instance(self, monkeypatch, mongo_db, supervisor, operator, review_mission) -> None:
        """Two threads read review@v2 and both try to close; one wins, one conflicts."""
        WorkflowInstanceMachine().transition(review_mission.mission_id, "review", operator)

        both_read = threading.Barrier(2)
        # MongoDB applies find_one_and_update atomically; mongomock does not.
        write_lock = threading.Lock()
        compare_and_set = InstanceRepository.compare_and_set_state

        def after_both_read(repo, *args, **kwargs):
            both_read.wait(timeout=5)
            with write_lock:
                return compare_and_set(repo, *args, **kwargs)

        monkeypatch.setattr(InstanceRepository, "compare_and_set_state", after_both_read)

        outcomes, conflicts, errors = [], [], []

        def close():
            try:
                outcomes.append(WorkflowInstanceMachine().transition(review_mission.mission_id, "closed", supervisor))
            except ConcurrentModificationError as e:
                conflicts.append(e)
            except Exception as e:  # surfaced by the assertions below
                errors.append(e)

        threads = [threading.Thread(target=close) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert errors == []
        assert len(outcomes) == 1
        assert len(conflicts) == 1
        instance = WorkflowInstanceMachine().get_instance(review_mission.mission_id)
        assert instance.version == 3
        assert instance.current_state == "closed"
        assert mongo_db["workflow_transitions"].count_documents({"to_state": "closed"}) == 1
        assert len(audit_actions(mongo_db, review_mission.mission_id, "TRANSITION")) == 2


class TestStorageFailure:
    """A failed compare-and-set leaves state, version and history untouched."""

    def test_write_failure_changes_nothing(self, monkeypatch, mongo_db, operator, review_mission) -> None:
        machine = WorkflowInstanceMachine()

        def unavailable(*args, **kwargs):
            raise AutoReconnect("connection reset")

        monkeypatch.setattr(machine.instance_repo._instances, "find_one_and_update", unavailable)

        with pytest.raises(StorageUnavailableError):
            machine.transition(review_mission.mission_id, "review", operator)

        instance = WorkflowInstanceMachine().get_instance(review_mission.mission_id)
        assert instance.current_state == "open"
        assert instance.version == 1
        assert mongo_db["workflow_transitions"].count_documents({"mission_id": review_mission.mission_id}) == 0
        assert audit_actions(mongo_db, review_mission.mission_id, "TRANSITION") == []
        doc = mongo_db["workflow_instances"].find_one({"mission_id": review_mission.mission_id})
        assert doc["outbox"] == []


class TestCompletion:
    """Reaching a final state completes the mission exactly once."""

    def test_replayed_completion_is_a_no_op(self, admin, operator, supervisor, review_mission) -> None:
        machine = WorkflowInstanceMachine()
        machine.transition(review_mission.mission_id, "review", operator)
        machine.transition(review_mission.mission_id, "closed", supervisor)

        repo = MissionRepository()
        completed_at = repo.get_mission(review_mission.mission_id).completed_at
        assert repo.mark_completed(review_mission.mission_id, completed_at) is False
        assert repo.get_mission(review_mission.mission_id).completed_at == completed_at

    def test_non_final_state_leaves_mission_active(self, operator, review_mission) -> None:
        WorkflowInstanceMachine().transition(review_mission.mission_id, "review", operator)
        assert MissionRepository().get_mission(review_mission.mission_id).status == MissionStatus.ACTIVE.value


class TestStateView:
    """get_state() reports the role-filtered next steps."""

    def test_operator_view(self, operator, review_mission) -> None:
        view = WorkflowInstanceMachine().get_state(review_mission.mission_id, operator)
        assert view.current_state == "open"
        assert [t.to_state for t in view.available_transitions] == ["review"]
        assert view.is_final is False

    def test_supervisor_sees_nothing_from_open(self, supervisor, review_mission) -> None:
        view = WorkflowInstanceMachine().get_state(review_mission.mission_id, supervisor)
        assert view.available_transitions == []
