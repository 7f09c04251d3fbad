"""Evidence Service - Append-only, hash-verifiable evidence ledger"""
from typing import Any, Dict, List, Optional

from ..config.settings import settings
from ..domain.models import EvidenceItem, EvidenceVerification, EvidenceVerificationReport, OutboxEntry
from ..domain.enums import OutboxEntryKind
from ..domain.errors import ConcurrentModificationError, MissionNotFoundError, ValidationError
from ..engine.audit_writer import AuditWriter
from ..engine.outbox_relay import OutboxRelay
from ..repositories.evidence_repo import EvidenceRepository
from ..repositories.mission_repo import MissionRepository
from ..utils.hashing import compute_content_hash, scheme_for_setting
from ..utils.idgen import generate_evidence_id, generate_outbox_entry_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class EvidenceLedger:
    """
    Evidence ledger

    Items are hashed once at append time and never edited or removed; a
    correction is a new item. ``verify`` re-derives the hash with the scheme
    stored on the item.
    """

    def __init__(self, hash_scheme: Optional[str] = None):
        self.repo = EvidenceRepository()
        self.mission_repo = MissionRepository()
        self.audit_writer = AuditWriter()
        self.relay = OutboxRelay()
        self.hash_scheme = hash_scheme or scheme_for_setting(settings.evidence_hash_scheme)

    def append(
        self,
        mission_id: str,
        evidence_type: str,
        title: str,
        content: Dict[str, Any],
        actor_id: str,
        source_run_id: Optional[str] = None
    ) -> EvidenceItem:
        """
        Hash and store a new evidence item

        The sequence number is claimed by the same mission-document update
        that commits the item, so numbering has no gaps or reorderings.

        Raises:
            MissionNotFoundError: unknown mission
            ValidationError: content is not a JSON object
            ConcurrentModificationError: lost every numbering attempt
            StorageUnavailableError: nothing was stored
        """
        if not isinstance(content, dict):
            raise ValidationError(
                "Evidence content must be a JSON object",
                details={"content_type": content.__class__.__name__}
            )
        if not title or not title.strip():
            raise ValidationError("Evidence title is required", details={"field": "title"})
        if not self.mission_repo.exists(mission_id):
            raise MissionNotFoundError(
                f"Mission {mission_id} not found",
                details={"mission_id": mission_id}
            )

        content_hash = compute_content_hash(content, self.hash_scheme)
        evidence_id = generate_evidence_id()
        created_at = utc_now()
        audit_event = self.audit_writer.build_append_evidence(
            actor_id, evidence_id, mission_id, title, content_hash, source_run_id
        )

        for _ in range(max(1, settings.evidence_append_attempts)):
            count = self.mission_repo.get_evidence_count(mission_id)
            item = EvidenceItem(
                evidence_id=evidence_id,
                mission_id=mission_id,
                source_run_id=source_run_id,
                sequence=count + 1,
                type=evidence_type,
                title=title,
                content=content,
                content_hash=content_hash,
                hash_scheme=self.hash_scheme,
                created_by=actor_id,
                created_at=created_at,
            )
            outbox = [
                OutboxEntry(
                    entry_id=generate_outbox_entry_id(),
                    kind=OutboxEntryKind.EVIDENCE_ITEM,
                    payload=item.model_dump(),
                    created_at=created_at,
                ),
                self.audit_writer.as_outbox_entry(audit_event),
            ]
            if self.mission_repo.push_evidence(mission_id, count, outbox):
                self.relay.drain_after_commit("missions", mission_id)
                return item

        raise ConcurrentModificationError(
            "Mission evidence was appended concurrently too many times. Retry.",
            details={"mission_id": mission_id}
        )

    def list_by_mission(self, mission_id: str) -> List[EvidenceItem]:
        """All evidence for a mission in creation order"""
        self.relay.drain("missions", mission_id)
        return self.repo.list_by_mission(mission_id)

    @staticmethod
    def verify(item: EvidenceItem) -> EvidenceVerification:
        """Re-derive one item's hash"""
        computed = compute_content_hash(item.content, item.hash_scheme)
        return EvidenceVerification(
            evidence_id=item.evidence_id,
            hash_scheme=item.hash_scheme,
            stored_hash=item.content_hash,
            computed_hash=computed,
            valid=computed == item.content_hash,
        )

    def verify_mission(self, mission_id: str) -> EvidenceVerificationReport:
        """Integrity report over every item of a mission"""
        self.mission_repo.get_mission_or_raise(mission_id)
        items = self.list_by_mission(mission_id)
        mismatches = [v for v in (self.verify(item) for item in items) if not v.valid]
        if mismatches:
            logger.error(
                f"Evidence integrity check failed for {len(mismatches)} item(s)",
                extra={"mission_id": mission_id}
            )
        return EvidenceVerificationReport(
            mission_id=mission_id,
            checked=len(items),
            valid=not mismatches,
            mismatches=mismatches,
        )
