"""Outbox Relay - Projects committed side effects into their own collections

Writers commit their primary change and every dependent record (audit entry,
transition record, evidence item, mission completion) in one document write,
under that document's ``outbox`` array. The relay then applies each entry with
insert-if-absent semantics and pulls it from the outbox. Applying an entry
twice is harmless, so the relay can be re-run after any crash.
"""
from typing import Any, Dict

from ..domain.models import OutboxEntry
from ..domain.enums import OutboxEntryKind
from ..domain.errors import StorageUnavailableError
from ..repositories.audit_repo import AuditRepository
from ..repositories.evidence_repo import EvidenceRepository
from ..repositories.instance_repo import TransitionRepository
from ..repositories.mission_repo import MissionRepository
from ..repositories.outbox_repo import OUTBOX_OWNERS, OutboxRepository
from ..utils.logger import get_logger
from ..utils.time import parse_iso, utc_now

logger = get_logger(__name__)


class OutboxRelay:
    """Applies and acknowledges outbox entries"""

    def __init__(self):
        self.audit_repo = AuditRepository()
        self.transition_repo = TransitionRepository()
        self.evidence_repo = EvidenceRepository()
        self.mission_repo = MissionRepository()
        self._outboxes: Dict[str, OutboxRepository] = {
            name: OutboxRepository(name) for name in OUTBOX_OWNERS
        }

    def apply(self, entry: OutboxEntry) -> None:
        """Project one entry; safe to call more than once"""
        payload = dict(entry.payload)
        kind = OutboxEntryKind(entry.kind)

        if kind == OutboxEntryKind.AUDIT_EVENT:
            self.audit_repo.insert_if_absent(payload)
        elif kind == OutboxEntryKind.TRANSITION_RECORD:
            self.transition_repo.insert_if_absent(payload)
        elif kind == OutboxEntryKind.EVIDENCE_ITEM:
            self.evidence_repo.insert_if_absent(payload)
        elif kind == OutboxEntryKind.COMPLETE_MISSION:
            completed_at = payload.get("completed_at") or utc_now()
            if isinstance(completed_at, str):
                completed_at = parse_iso(completed_at)
            self.mission_repo.mark_completed(payload["mission_id"], completed_at)

    def drain(self, collection_name: str, owner_id: str) -> int:
        """
        Project every pending entry of one document, in commit order

        Raises:
            StorageUnavailableError: remaining entries stay in the outbox
        """
        outbox = self._outboxes[collection_name]
        applied = 0
        for entry in outbox.get_entries(owner_id):
            self.apply(entry)
            outbox.acknowledge(owner_id, entry.entry_id)
            applied += 1
        return applied

    def drain_after_commit(self, collection_name: str, owner_id: str) -> int:
        """
        Inline drain following a successful write

        The write is already durable with its outbox, so a failure here is
        logged and left for the background relay.
        """
        try:
            return self.drain(collection_name, owner_id)
        except StorageUnavailableError as e:
            logger.error(
                f"Outbox projection deferred for {collection_name}/{owner_id}: {e.message}",
                exc_info=True
            )
            return 0

    def drain_where(self, collection_name: str, query: Dict[str, Any], limit: int = 1000) -> int:
        """Project pending entries of the owner documents matching ``query``"""
        outbox = self._outboxes[collection_name]
        applied = 0
        for owner_id, entries in outbox.find_pending(limit, query):
            for entry in entries:
                self.apply(entry)
                outbox.acknowledge(owner_id, entry.entry_id)
                applied += 1
        return applied

    def backlog(self) -> Dict[str, int]:
        """Owner documents awaiting projection, per collection"""
        return {name: outbox.count_pending() for name, outbox in self._outboxes.items()}

    def drain_pending(self, batch_size: int = 200) -> int:
        """Sweep every owner collection for documents with pending entries"""
        applied = 0
        for collection_name in self._outboxes:
            applied += self.drain_where(collection_name, {}, batch_size)
        if applied:
            logger.info(f"Outbox relay projected {applied} entries")
        return applied
