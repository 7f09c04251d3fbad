"""Dev Scheduler - Background outbox relay

Every audited write commits its audit entry (and, for transitions, the
transition record and mission completion) inside the owning document's
outbox. Requests drain their own outbox inline; this job picks up whatever
an inline drain could not finish, e.g. after a storage outage or a crash.
"""
import socket
import os
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config.settings import settings
from ..domain.errors import StorageUnavailableError
from ..engine.outbox_relay import OutboxRelay
from ..utils.logger import get_logger, set_correlation_id
from ..utils.idgen import generate_correlation_id

logger = get_logger(__name__)


class DevScheduler:
    """
    APScheduler wrapper running the outbox relay on an interval

    Several servers may run it at once: projection is insert-if-absent and
    acknowledgement is a ``$pull`` by entry id, so overlapping sweeps are
    harmless.
    """

    def __init__(self, relay: Optional[OutboxRelay] = None):
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.relay = relay or OutboxRelay()
        self._is_running = False
        self._server_id = f"{socket.gethostname()}-{os.getpid()}"
        self._sweep_count = 0

    def start(self) -> None:
        """Start the scheduler"""
        if self._is_running:
            logger.warning("Scheduler already running")
            return

        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self._relay_outboxes,
            trigger=IntervalTrigger(seconds=settings.outbox_relay_interval_seconds),
            id="relay_outboxes",
            name="Project pending outbox entries",
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )
        self.scheduler.start()
        self._is_running = True
        logger.info(
            f"Scheduler started on {self._server_id}, relay every "
            f"{settings.outbox_relay_interval_seconds}s"
        )

    def stop(self) -> None:
        """Stop the scheduler"""
        if self.scheduler:
            self.scheduler.shutdown()
            self._is_running = False
            logger.info("Dev scheduler stopped")

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running"""
        return self._is_running

    async def _relay_outboxes(self) -> None:
        applied = self.run_once()
        if applied:
            logger.debug(f"Relay sweep {self._sweep_count} projected {applied} entries")

    def run_once(self) -> int:
        """
        One relay sweep

        A storage outage is logged and the sweep ends; entries stay in their
        outboxes for the next run.
        """
        set_correlation_id(generate_correlation_id())
        self._sweep_count += 1
        try:
            return self.relay.drain_pending(batch_size=settings.outbox_relay_batch_size)
        except StorageUnavailableError as e:
            logger.error(f"Outbox relay sweep failed: {e.message}", extra={"details": e.details})
            return 0


# Global scheduler instance
_scheduler: Optional[DevScheduler] = None


def get_scheduler() -> DevScheduler:
    """Get or create scheduler instance"""
    global _scheduler
    if _scheduler is None:
        _scheduler = DevScheduler()
    return _scheduler


def start_scheduler() -> None:
    """Start the global scheduler"""
    scheduler = get_scheduler()
    scheduler.start()


def stop_scheduler() -> None:
    """Stop the global scheduler"""
    global _scheduler
    if _scheduler:
        _scheduler.stop()
        _scheduler = None
