"""Worker process wiring: handlers + scheduler + queue."""

import logging
from typing import Any

from sqlalchemy.orm import sessionmaker

from applydesk.config import settings
from applydesk.db import get_session_factory, session_scope
from applydesk.jobqueue.database_queue import DatabaseQueue, get_health, recover_stalled_jobs
from applydesk.jobqueue.handlers import build_handlers
from applydesk.jobqueue.scheduler import JobScheduler, ScheduleConfig

logger = logging.getLogger(__name__)


class QueueManager:
    """Owns one queue worker and its scheduler."""

    def __init__(
        self,
        session_factory: sessionmaker | None = None,
        schedules: dict[str, ScheduleConfig] | None = None,
        **queue_options: Any,
    ):
        self.session_factory = session_factory or get_session_factory()
        self.scheduler = JobScheduler(self.session_factory, schedules)
        self.queue = DatabaseQueue(
            self.session_factory,
            build_handlers(),
            timeouts=self.scheduler.timeouts(),
            **queue_options,
        )

    def start(self) -> None:
        """Run until ``stop()``. Blocks the calling thread."""
        with session_scope(self.session_factory) as db:
            recover_stalled_jobs(db, settings.queue_stalled_minutes)
        self.scheduler.run_startup_jobs()
        self.queue.run_forever(before_tick=self.scheduler.due_jobs)

    def stop(self) -> None:
        logger.info("Stopping queue manager")
        self.queue.stop(wait=True)

    def health(self) -> dict[str, Any]:
        with session_scope(self.session_factory) as db:
            health = get_health(db)
        return {**health, "schedules": self.scheduler.get_schedules()}
