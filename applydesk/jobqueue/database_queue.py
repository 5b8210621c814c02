"""
Database-backed job queue.

Rows in ``job_queue`` move PENDING -> PROCESSING -> COMPLETED / FAILED.
A failed attempt either goes back to PENDING with a backoff or, once
``max_attempts`` is reached, ends in FAILED. Workers claim rows with a
conditional UPDATE on the status column; that is the only locking.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import timedelta
from typing import Any

from sqlalchemy import func, update
from sqlalchemy.orm import Session, sessionmaker

from applydesk.config import settings
from applydesk.db import JobQueue, QueueStatus, session_scope, utcnow
from applydesk.jobqueue.types import JobHandler, JobOutcome, get_default_priority

logger = logging.getLogger(__name__)

MAX_BACKOFF_SECONDS = 30
ACTIVE_STATUSES = (QueueStatus.PENDING, QueueStatus.PROCESSING)
TERMINAL_STATUSES = (QueueStatus.COMPLETED, QueueStatus.FAILED)


def enqueue_job(
    db: Session,
    job_type: str,
    payload: dict[str, Any] | None = None,
    *,
    priority: int | None = None,
    delay: float = 0,
    max_attempts: int = 3,
    user_id: str | None = None,
    deduplication_key: str | None = None,
) -> str:
    """
    Add a job to the queue and return its id.

    If an active (pending or processing) row already carries the same
    deduplication key, that row's id is returned instead.
    """
    if deduplication_key:
        existing = (
            db.query(JobQueue)
            .filter(
                JobQueue.deduplication_key == deduplication_key,
                JobQueue.status.in_(ACTIVE_STATUSES),
            )
            .first()
        )
        if existing:
            logger.info(f"[{existing.id}] Deduplicated {job_type} ({deduplication_key})")
            return existing.id

    now = utcnow()
    job = JobQueue(
        type=job_type,
        payload=payload or {},
        priority=priority if priority is not None else get_default_priority(job_type),
        max_attempts=max(1, max_attempts),
        user_id=user_id,
        deduplication_key=deduplication_key,
        available_at=now + timedelta(seconds=delay),
        created_at=now,
        updated_at=now,
    )
    db.add(job)
    db.commit()
    logger.info(f"[{job.id}] Enqueued {job_type} (priority {job.priority})")
    return job.id


def claim_batch(db: Session, limit: int) -> list[JobQueue]:
    """Claim up to ``limit`` runnable jobs, highest priority then oldest first."""
    now = utcnow()
    candidates = (
        db.query(JobQueue.id)
        .filter(JobQueue.status == QueueStatus.PENDING, JobQueue.available_at <= now)
        .order_by(JobQueue.priority.desc(), JobQueue.created_at.asc())
        .limit(limit)
        .all()
    )

    claimed_ids = []
    for (job_id,) in candidates:
        result = db.execute(
            update(JobQueue)
            .where(JobQueue.id == job_id, JobQueue.status == QueueStatus.PENDING)
            .values(status=QueueStatus.PROCESSING, updated_at=now)
        )
        # Another worker got there first
        if result.rowcount:
            claimed_ids.append(job_id)
    db.commit()

    if not claimed_ids:
        return []
    jobs = db.query(JobQueue).filter(JobQueue.id.in_(claimed_ids)).all()
    jobs.sort(key=lambda j: (-j.priority, j.created_at))
    return jobs


def complete_job(db: Session, job_id: str) -> None:
    job = db.get(JobQueue, job_id)
    if job is None:
        return
    now = utcnow()
    job.status = QueueStatus.COMPLETED
    job.error_message = None
    job.processed_at = now
    job.updated_at = now
    db.commit()


def fail_job(
    db: Session,
    job_id: str,
    error: str,
    *,
    retry: bool = True,
    retry_delay: float | None = None,
) -> str | None:
    """
    Record a failed attempt.

    Returns the new status: PENDING when the job will be retried, FAILED
    when it has run out of attempts or is not retryable.
    """
    job = db.get(JobQueue, job_id)
    if job is None:
        return None

    now = utcnow()
    job.attempt_count = min(job.attempt_count + 1, job.max_attempts)
    job.error_message = error
    job.updated_at = now

    if retry and job.attempt_count < job.max_attempts:
        delay = retry_delay if retry_delay is not None else min(2**job.attempt_count, MAX_BACKOFF_SECONDS)
        job.status = QueueStatus.PENDING
        job.available_at = now + timedelta(seconds=delay)
        logger.warning(
            f"[{job.id}] {job.type} failed (attempt {job.attempt_count}/{job.max_attempts}), "
            f"retrying in {delay}s: {error}"
        )
    else:
        job.status = QueueStatus.FAILED
        job.processed_at = now
        logger.error(f"[{job.id}] {job.type} failed permanently: {error}")

    db.commit()
    return job.status


def get_metrics(db: Session) -> dict[str, int]:
    counts = dict(db.query(JobQueue.status, func.count(JobQueue.id)).group_by(JobQueue.status).all())
    return {
        "pending": counts.get(QueueStatus.PENDING, 0),
        "processing": counts.get(QueueStatus.PROCESSING, 0),
        "completed": counts.get(QueueStatus.COMPLETED, 0),
        "failed": counts.get(QueueStatus.FAILED, 0),
    }


def get_health(db: Session) -> dict[str, Any]:
    metrics = get_metrics(db)
    issues = []
    if metrics["failed"] >= 100:
        issues.append(f"High number of failed jobs: {metrics['failed']}")
    if metrics["processing"] >= 50:
        issues.append(f"High number of processing jobs: {metrics['processing']}")
    return {"healthy": not issues, "metrics": metrics, "issues": issues}


def cleanup_old_jobs(db: Session, older_than_days: int = 7) -> int:
    """Delete completed and failed rows older than the retention window."""
    cutoff = utcnow() - timedelta(days=older_than_days)
    deleted = (
        db.query(JobQueue)
        .filter(JobQueue.status.in_(TERMINAL_STATUSES), JobQueue.updated_at < cutoff)
        .delete(synchronize_session=False)
    )
    db.commit()
    logger.info(f"Cleaned up {deleted} queue rows older than {older_than_days} days")
    return deleted


def recover_stalled_jobs(db: Session, older_than_minutes: int = 30) -> int:
    """Hand PROCESSING rows abandoned by a dead worker back to the queue."""
    cutoff = utcnow() - timedelta(minutes=older_than_minutes)
    result = db.execute(
        update(JobQueue)
        .where(JobQueue.status == QueueStatus.PROCESSING, JobQueue.updated_at < cutoff)
        .values(status=QueueStatus.PENDING, updated_at=utcnow())
    )
    db.commit()
    if result.rowcount:
        logger.warning(f"Recovered {result.rowcount} stalled queue rows")
    return result.rowcount


def release_jobs(db: Session, job_ids: list[str]) -> int:
    """Put claimed rows that never started back to PENDING. No attempt is counted."""
    result = db.execute(
        update(JobQueue)
        .where(JobQueue.id.in_(job_ids), JobQueue.status == QueueStatus.PROCESSING)
        .values(status=QueueStatus.PENDING, updated_at=utcnow())
    )
    db.commit()
    return result.rowcount


class DatabaseQueue:
    """Polling worker that executes queue rows with registered handlers."""

    def __init__(
        self,
        session_factory: sessionmaker,
        handlers: dict[str, JobHandler] | None = None,
        *,
        batch_size: int | None = None,
        max_concurrency: int | None = None,
        poll_interval: float | None = None,
        job_timeout: float | None = None,
        timeouts: dict[str, float] | None = None,
    ):
        self.session_factory = session_factory
        self.handlers: dict[str, JobHandler] = dict(handlers or {})
        self.batch_size = batch_size or settings.queue_batch_size
        self.max_concurrency = max_concurrency or settings.queue_max_concurrency
        self.poll_interval = poll_interval if poll_interval is not None else settings.queue_poll_interval
        self.job_timeout = job_timeout or settings.queue_job_timeout
        self.timeouts = dict(timeouts or {})
        self._stop = threading.Event()
        self._executor = ThreadPoolExecutor(max_workers=self.max_concurrency, thread_name_prefix="queue-worker")

    def register(self, job_type: str, handler: JobHandler, timeout: float | None = None) -> None:
        self.handlers[job_type] = handler
        if timeout is not None:
            self.timeouts[job_type] = timeout

    def enqueue(self, job_type: str, payload: dict[str, Any] | None = None, **kwargs: Any) -> str:
        with session_scope(self.session_factory) as db:
            return enqueue_job(db, job_type, payload, **kwargs)

    def tick(self) -> int:
        """Claim one batch and run it. Returns the number of jobs processed."""
        with session_scope(self.session_factory) as db:
            claimed = [(job.id, job.type) for job in claim_batch(db, self.batch_size)]
        if not claimed:
            return 0

        started = time.monotonic()
        futures = []
        unstarted = []
        for job_id, job_type in claimed:
            if self._stop.is_set():
                unstarted.append(job_id)
                continue
            try:
                futures.append((job_id, job_type, self._executor.submit(self._run_handler, job_id, job_type)))
            except RuntimeError:
                # stop() shut the executor down after the claim
                unstarted.append(job_id)
        if unstarted:
            with session_scope(self.session_factory) as db:
                release_jobs(db, unstarted)
            logger.info(f"Released {len(unstarted)} claimed jobs on shutdown")

        for job_id, job_type, future in futures:
            timeout = self.timeouts.get(job_type, self.job_timeout)
            remaining = max(0.0, started + timeout - time.monotonic())
            try:
                outcome = future.result(timeout=remaining)
            except FutureTimeoutError:
                outcome = JobOutcome.failed(f"Job timed out after {timeout:.0f}s")
            except Exception as e:
                logger.exception(f"[{job_id}] Handler for {job_type} raised")
                outcome = JobOutcome.failed(str(e) or e.__class__.__name__)
            self._finalize(job_id, job_type, outcome)
        return len(futures)

    def _run_handler(self, job_id: str, job_type: str) -> JobOutcome:
        handler = self.handlers.get(job_type)
        if handler is None:
            return JobOutcome.failed(f"No handler registered for job type: {job_type}", retry=False)

        with session_scope(self.session_factory) as db:
            job = db.get(JobQueue, job_id)
            payload = dict(job.payload or {}) if job else {}
            logger.info(f"[{job_id}] Processing {job_type}")
            return handler(payload, db)

    def _finalize(self, job_id: str, job_type: str, outcome: JobOutcome) -> None:
        with session_scope(self.session_factory) as db:
            if outcome.success:
                complete_job(db, job_id)
                logger.info(f"[{job_id}] Completed {job_type}")
            else:
                fail_job(
                    db,
                    job_id,
                    outcome.error or "Unknown error",
                    retry=outcome.retry,
                    retry_delay=outcome.retry_delay,
                )

    def run_forever(self, before_tick=None) -> None:
        """Poll until ``stop()`` is called. ``before_tick`` runs ahead of every poll."""
        logger.info(
            f"Queue worker started (batch {self.batch_size}, concurrency {self.max_concurrency}, "
            f"poll {self.poll_interval}s)"
        )
        while not self._stop.is_set():
            try:
                if before_tick is not None:
                    before_tick()
                processed = self.tick()
            except Exception:
                logger.exception("Queue tick failed")
                processed = 0
            # Drain without waiting while there is work
            if not processed:
                self._stop.wait(self.poll_interval)
        logger.info("Queue worker stopped")

    def stop(self, wait: bool = True) -> None:
        """Stop polling; in-flight handlers are allowed to finish."""
        self._stop.set()
        self._executor.shutdown(wait=wait)
