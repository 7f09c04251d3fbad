"""Tests for EvidenceLedger: hashing, ordering, immutability and verification."""

import threading

import pytest

from missionledger.domain.errors import ConcurrentModificationError, MissionNotFoundError, ValidationError
from missionledger.engine.outbox_relay import OutboxRelay
from missionledger.repositories.mission_repo import MissionRepository
from missionledger.services.evidence_service import EvidenceLedger
from missionledger.utils.hashing import CANONICAL_SCHEME, LEGACY_SCHEME, compute_content_hash


class TestAppend:
    """Items are hashed at append time and stored in mission order."""

    def test_hash_matches_content(self, admin, simple_mission) -> None:
        content = {"taskId": "t1", "dueDate": "2026-01-01"}
        item = EvidenceLedger().append(simple_mission.mission_id, "sla_check", "SLA", content, admin.actor_id)
        assert item.content_hash == compute_content_hash(content)
        assert item.hash_scheme == CANONICAL_SCHEME

    def test_same_content_different_title_same_hash(self, admin, simple_mission) -> None:
        ledger = EvidenceLedger()
        content = {"taskId": "t1", "dueDate": "2026-01-01"}
        first = ledger.append(simple_mission.mission_id, "sla_check", "First", content, admin.actor_id)
        second = ledger.append(simple_mission.mission_id, "sla_check", "Second", dict(content), admin.actor_id)
        assert first.content_hash == second.content_hash
        assert first.evidence_id != second.evidence_id

    def test_sequence_follows_append_order(self, admin, simple_mission) -> None:
        ledger = EvidenceLedger()
        for i in range(3):
            ledger.append(simple_mission.mission_id, "note", f"Note {i}", {"i": i}, admin.actor_id)
        items = ledger.list_by_mission(simple_mission.mission_id)
        assert [item.sequence for item in items] == [1, 2, 3]
        assert [item.title for item in items] == ["Note 0", "Note 1", "Note 2"]

    def test_append_is_audited(self, mongo_db, admin, simple_mission) -> None:
        item = EvidenceLedger().append(simple_mission.mission_id, "note", "Audited", {"a": 1}, admin.actor_id)
        entry = mongo_db["audit_events"].find_one({"entity_id": item.evidence_id})
        assert entry["entity_type"] == "evidence"
        assert entry["details"]["hash"] == item.content_hash

    def test_unknown_mission(self, admin) -> None:
        with pytest.raises(MissionNotFoundError):
            EvidenceLedger().append("MSN-missing", "note", "Orphan", {"a": 1}, admin.actor_id)

    def test_content_must_be_an_object(self, admin, simple_mission) -> None:
        with pytest.raises(ValidationError):
            EvidenceLedger().append(simple_mission.mission_id, "note", "List", [1, 2], admin.actor_id)

    def test_title_required(self, admin, simple_mission) -> None:
        with pytest.raises(ValidationError):
            EvidenceLedger().append(simple_mission.mission_id, "note", "  ", {"a": 1}, admin.actor_id)

    def test_legacy_scheme_is_recorded(self, admin, simple_mission) -> None:
        content = {"b": 1, "a": 2}
        item = EvidenceLedger(hash_scheme=LEGACY_SCHEME).append(
            simple_mission.mission_id, "import", "Imported", content, admin.actor_id
        )
        assert item.hash_scheme == LEGACY_SCHEME
        assert item.content_hash == compute_content_hash(content, LEGACY_SCHEME)
        assert item.content_hash != compute_content_hash(content, CANONICAL_SCHEME)


class TestConcurrentAppend:
    """The sequence number is claimed by the write that commits the item."""

    def test_racing_appends_get_distinct_consecutive_numbers(self, monkeypatch, admin, simple_mission) -> None:
        both_read = threading.Barrier(2)
        # MongoDB applies a single-document update atomically; mongomock does not.
        write_lock = threading.Lock()
        read_count = MissionRepository.get_evidence_count
        push = MissionRepository.push_evidence
        first_read = set()

        def read_together(repo, mission_id):
            count = read_count(repo, mission_id)
            name = threading.current_thread().name
            if name not in first_read:
                first_read.add(name)
                both_read.wait(timeout=5)
            return count

        def push_serialized(repo, mission_id, expected_count, outbox):
            with write_lock:
                return push(repo, mission_id, expected_count, outbox)

        monkeypatch.setattr(MissionRepository, "get_evidence_count", read_together)
        monkeypatch.setattr(MissionRepository, "push_evidence", push_serialized)
        monkeypatch.setattr(OutboxRelay, "drain_after_commit", lambda relay, collection_name, owner_id: 0)

        results, errors = [], []

        def append(title):
            try:
                results.append(
                    EvidenceLedger().append(simple_mission.mission_id, "note", title, {"t": title}, admin.actor_id)
                )
            except Exception as e:  # surfaced by the assertions below
                errors.append(e)

        threads = [threading.Thread(target=append, args=(title,), name=title) for title in ("A", "B")]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert errors == []
        assert sorted(item.sequence for item in results) == [1, 2]
        stored = EvidenceLedger().list_by_mission(simple_mission.mission_id)
        assert [item.sequence for item in stored] == [1, 2]
        assert {item.title for item in stored} == {"A", "B"}

    def test_gives_up_after_repeated_conflicts(self, monkeypatch, mongo_db, admin, simple_mission) -> None:
        monkeypatch.setattr(MissionRepository, "push_evidence", lambda repo, mission_id, expected_count, outbox: False)
        with pytest.raises(ConcurrentModificationError):
            EvidenceLedger().append(simple_mission.mission_id, "note", "Lost", {"a": 1}, admin.actor_id)
        assert mongo_db["evidence_items"].count_documents({}) == 0

    def test_unprojected_items_are_listed_in_order(self, monkeypatch, admin, simple_mission) -> None:
        ledger = EvidenceLedger()
        with monkeypatch.context() as m:
            m.setattr(ledger.relay, "drain_after_commit", lambda collection_name, owner_id: 0)
            ledger.append(simple_mission.mission_id, "note", "Pending", {"a": 1}, admin.actor_id)
        ledger.append(simple_mission.mission_id, "note", "Projected", {"a": 2}, admin.actor_id)

        items = ledger.list_by_mission(simple_mission.mission_id)
        assert [(item.sequence, item.title) for item in items] == [(1, "Pending"), (2, "Projected")]


class TestVerification:
    """Re-deriving the hash detects any change to stored content."""

    def test_untouched_items_verify(self, admin, simple_mission) -> None:
        ledger = EvidenceLedger()
        ledger.append(simple_mission.mission_id, "note", "One", {"a": 1}, admin.actor_id)
        EvidenceLedger(hash_scheme=LEGACY_SCHEME).append(
            simple_mission.mission_id, "note", "Two", {"z": 1, "y": [1, 2]}, admin.actor_id
        )
        report = ledger.verify_mission(simple_mission.mission_id)
        assert report.valid is True
        assert report.checked == 2
        assert report.mismatches == []

    def test_tampered_content_is_reported(self, mongo_db, admin, simple_mission) -> None:
        ledger = EvidenceLedger()
        item = ledger.append(simple_mission.mission_id, "note", "Ledger", {"amount": 100}, admin.actor_id)
        mongo_db["evidence_items"].update_one(
            {"evidence_id": item.evidence_id}, {"$set": {"content.amount": 101}}
        )

        report = ledger.verify_mission(simple_mission.mission_id)

        assert report.valid is False
        assert [m.evidence_id for m in report.mismatches] == [item.evidence_id]
        assert report.mismatches[0].stored_hash == item.content_hash

    def test_unknown_mission(self) -> None:
        with pytest.raises(MissionNotFoundError):
            EvidenceLedger().verify_mission("MSN-missing")
