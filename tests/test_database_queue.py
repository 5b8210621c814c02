from __future__ import annotations

import threading
from datetime import timedelta

import pytest
from sqlalchemy.orm import Session, sessionmaker

from applydesk.db import JobQueue, QueueStatus, utcnow
from applydesk.jobqueue.database_queue import (
    DatabaseQueue,
    claim_batch,
    cleanup_old_jobs,
    enqueue_job,
    fail_job,
    get_health,
    get_metrics,
    recover_stalled_jobs,
    release_jobs,
)
from applydesk.jobqueue.types import JobOutcome, JobType

pytestmark = pytest.mark.integration


def test_enqueue_uses_default_priority_and_deduplicates_active_rows(db: Session) -> None:
    first = enqueue_job(db, JobType.USER_JOB_SCAN, {"user_id": "u1"}, deduplication_key="user_scan_u1")
    second = enqueue_job(db, JobType.USER_JOB_SCAN, {"user_id": "u1"}, deduplication_key="user_scan_u1")

    assert first == second
    row = db.get(JobQueue, first)
    assert row.priority == 10
    assert row.status == QueueStatus.PENDING

    row.status = QueueStatus.COMPLETED
    db.commit()
    third = enqueue_job(db, JobType.USER_JOB_SCAN, {"user_id": "u1"}, deduplication_key="user_scan_u1")
    assert third != first


def test_claim_orders_by_priority_then_age_and_is_exclusive(db: Session) -> None:
    low = enqueue_job(db, JobType.CLEANUP_QUEUE)
    high = enqueue_job(db, JobType.USER_JOB_SCAN)
    high_later = enqueue_job(db, "custom", priority=10)
    delayed = enqueue_job(db, JobType.USER_JOB_SCAN, delay=3600)

    claimed = [job.id for job in claim_batch(db, 10)]

    assert claimed == [high, high_later, low]
    assert delayed not in claimed
    assert all(db.get(JobQueue, job_id).status == QueueStatus.PROCESSING for job_id in claimed)
    assert claim_batch(db, 10) == []


def test_claim_respects_limit(db: Session) -> None:
    for _ in range(3):
        enqueue_job(db, JobType.CLEANUP_QUEUE)
    assert len(claim_batch(db, 2)) == 2
    assert len(claim_batch(db, 2)) == 1


def test_failures_retry_until_attempts_run_out(db: Session) -> None:
    job_id = enqueue_job(db, JobType.GENERATE_COVER_LETTER, max_attempts=2)

    assert fail_job(db, job_id, "model down") == QueueStatus.PENDING
    row = db.get(JobQueue, job_id)
    assert row.attempt_count == 1
    assert row.available_at > utcnow()

    assert fail_job(db, job_id, "model still down") == QueueStatus.FAILED
    assert fail_job(db, job_id, "again") == QueueStatus.FAILED
    row = db.get(JobQueue, job_id)
    assert row.attempt_count == 2
    assert row.error_message == "again"
    assert row.processed_at is not None


def test_non_retryable_failure_ends_immediately(db: Session) -> None:
    job_id = enqueue_job(db, JobType.PROCESS_APPLICATION, max_attempts=5)
    assert fail_job(db, job_id, "bad payload", retry=False) == QueueStatus.FAILED
    assert db.get(JobQueue, job_id).attempt_count == 1


def test_custom_retry_delay(db: Session) -> None:
    job_id = enqueue_job(db, JobType.USER_JOB_SCAN)
    fail_job(db, job_id, "busy", retry_delay=60)
    row = db.get(JobQueue, job_id)
    assert row.available_at - row.updated_at == timedelta(seconds=60)


def test_cleanup_removes_only_old_terminal_rows(db: Session) -> None:
    old = utcnow() - timedelta(days=10)
    for status in (QueueStatus.COMPLETED, QueueStatus.FAILED, QueueStatus.PENDING, QueueStatus.PROCESSING):
        db.add(JobQueue(type="t", status=status, payload={}, updated_at=old, created_at=old, available_at=old))
    db.add(JobQueue(type="t", status=QueueStatus.COMPLETED, payload={}))
    db.commit()

    assert cleanup_old_jobs(db, 7) == 2
    remaining = sorted(row.status for row in db.query(JobQueue).all())
    assert remaining == [QueueStatus.COMPLETED, QueueStatus.PENDING, QueueStatus.PROCESSING]


def test_recover_stalled_jobs_requeues_old_processing_rows(db: Session) -> None:
    old = utcnow() - timedelta(hours=2)
    stalled = JobQueue(type="t", status=QueueStatus.PROCESSING, payload={}, updated_at=old)
    fresh = JobQueue(type="t", status=QueueStatus.PROCESSING, payload={})
    db.add_all([stalled, fresh])
    db.commit()

    assert recover_stalled_jobs(db, 30) == 1
    db.expire_all()
    assert stalled.status == QueueStatus.PENDING
    assert fresh.status == QueueStatus.PROCESSING


def test_metrics_and_health(db: Session) -> None:
    enqueue_job(db, JobType.CLEANUP_QUEUE)
    assert get_metrics(db) == {"pending": 1, "processing": 0, "completed": 0, "failed": 0}
    assert get_health(db) == {
        "healthy": True,
        "metrics": {"pending": 1, "processing": 0, "completed": 0, "failed": 0},
        "issues": [],
    }


def test_worker_tick_runs_handlers_and_records_outcomes(session_factory: sessionmaker, db: Session) -> None:
    seen: list[dict] = []

    def ok_handler(payload, session):
        seen.append(payload)
        return JobOutcome.ok()

    def failing_handler(payload, session):
        return JobOutcome.failed("nope", retry=False)

    def raising_handler(payload, session):
        raise RuntimeError("kaboom")

    queue = DatabaseQueue(
        session_factory,
        {"ok": ok_handler, "fail": failing_handler, "raise": raising_handler},
        max_concurrency=2,
        poll_interval=0,
    )
    ok_id = queue.enqueue("ok", {"n": 1})
    fail_id = queue.enqueue("fail")
    raise_id = queue.enqueue("raise", max_attempts=1)
    unknown_id = queue.enqueue("unknown")

    try:
        assert queue.tick() == 4
    finally:
        queue.stop()

    statuses = {row.id: row for row in db.query(JobQueue).all()}
    assert seen == [{"n": 1}]
    assert statuses[ok_id].status == QueueStatus.COMPLETED
    assert statuses[fail_id].status == QueueStatus.FAILED
    assert statuses[raise_id].status == QueueStatus.FAILED
    assert statuses[raise_id].error_message == "kaboom"
    assert statuses[unknown_id].status == QueueStatus.FAILED
    assert "No handler registered" in statuses[unknown_id].error_message


def test_worker_times_out_slow_handlers(session_factory: sessionmaker, db: Session) -> None:
    release = threading.Event()

    def slow_handler(payload, session):
        release.wait(5)
        return JobOutcome.ok()

    queue = DatabaseQueue(session_factory, {"slow": slow_handler}, timeouts={"slow": 0.1})
    job_id = queue.enqueue("slow", max_attempts=1)
    try:
        queue.tick()
    finally:
        release.set()
        queue.stop()

    row = db.get(JobQueue, job_id)
    assert row.status == QueueStatus.FAILED
    assert "timed out" in row.error_message


@pytest.mark.parametrize("stop_event_set", [True, False])
def test_jobs_claimed_during_shutdown_go_back_to_pending(
    session_factory: sessionmaker, db: Session, stop_event_set: bool
) -> None:
    ran = []

    def handler(payload, session):
        ran.append(payload)
        return JobOutcome.ok()

    queue = DatabaseQueue(session_factory, {"noop": handler})
    job_id = queue.enqueue("noop")
    if stop_event_set:
        queue.stop()
    else:
        # Executor already gone, stop flag not yet visible
        queue._executor.shutdown()

    assert queue.tick() == 0

    row = db.get(JobQueue, job_id)
    assert row.status == QueueStatus.PENDING
    assert row.attempt_count == 0
    assert ran == []


def test_release_jobs_ignores_rows_that_are_not_processing(db: Session) -> None:
    claimed = enqueue_job(db, "noop")
    done = enqueue_job(db, "noop")
    claim_batch(db, 2)
    db.get(JobQueue, done).status = QueueStatus.COMPLETED
    db.commit()

    assert release_jobs(db, [claimed, done]) == 1
    db.expire_all()
    assert db.get(JobQueue, claimed).status == QueueStatus.PENDING
    assert db.get(JobQueue, done).status == QueueStatus.COMPLETED
