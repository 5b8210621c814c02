"""
Database-backed job queue.

- database_queue: enqueue / claim / complete / fail and the polling worker
- scheduler: recurring jobs and one-off scheduling helpers
- handlers: what each job type does
- manager: wires the three together for the worker process
"""

from applydesk.jobqueue.database_queue import DatabaseQueue, enqueue_job
from applydesk.jobqueue.types import JobOutcome, JobType

__all__ = ["DatabaseQueue", "JobOutcome", "JobType", "enqueue_job"]
