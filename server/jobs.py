"""Job processing system for flusio.

Jobs are rows of the ``jobs`` table polled by workers (``flusio jobs watch``).
A job is locked while it runs, deleted once done, or rescheduled when it is
periodic. Failed jobs are retried later with an increasing delay.
"""

import json
import logging
import time
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from config.database import session_scope
from config.settings import settings
from observability.logging import get_structured_logger
from observability.prometheus_metrics import record_job
from services.shared import utils
from services.shared.models import Job

logger = logging.getLogger(__name__)

QUEUES = ("default", "fetchers", "importators", "all")

JobHandler = Callable[[str, Dict[str, Any]], Optional[Dict[str, Any]]]


def retry_delay(number_attempts: int) -> timedelta:
    """Delay before retrying a job which failed ``number_attempts`` times."""
    return timedelta(seconds=5 + number_attempts ** 4)


class JobManager:
    """Manages background jobs stored in the database."""

    def __init__(self):
        self.job_handlers: Dict[str, JobHandler] = {}

    def register_handler(self, job_name: str, handler: JobHandler):
        self.job_handlers[job_name] = handler
        logger.debug(f"Registered handler for job: {job_name}")

    def enqueue(self, job_name: str, args: Optional[Dict[str, Any]] = None,
                queue: str = "default", perform_at: Optional[datetime] = None) -> int:
        """Store a job to be performed by a worker and return its id."""
        if job_name not in self.job_handlers:
            raise ValueError(f"No handler registered for job: {job_name}")
        if queue not in QUEUES or queue == "all":
            raise ValueError(f"Invalid queue: {queue}")

        with session_scope() as db:
            job = Job(
                created_at=utils.utcnow(),
                name=job_name,
                args=json.dumps(args or {}),
                queue=queue,
                perform_at=perform_at or utils.utcnow(),
            )
            db.add(job)
            db.flush()
            job_id = job.id

        logger.info(f"Enqueued job {job_id} ({job_name}) in queue {queue}")
        return job_id

    def schedule(self, job_name: str, frequency: int, queue: str = "default",
                 args: Optional[Dict[str, Any]] = None) -> int:
        """Register a periodic job, once per name.

        ``frequency`` is in seconds. If the job already exists, its frequency
        is updated and its id returned.
        """
        if job_name not in self.job_handlers:
            raise ValueError(f"No handler registered for job: {job_name}")

        with session_scope() as db:
            job = db.query(Job).filter(Job.name == job_name, Job.frequency.isnot(None)).first()
            if job:
                job.frequency = frequency
                job.queue = queue
                return job.id

            job = Job(
                created_at=utils.utcnow(),
                name=job_name,
                args=json.dumps(args or {}),
                queue=queue,
                perform_at=utils.utcnow(),
                frequency=frequency,
            )
            db.add(job)
            db.flush()
            job_id = job.id

        logger.info(f"Scheduled job {job_name} every {frequency} seconds")
        return job_id

    def install(self) -> List[int]:
        """Schedule the periodic jobs of the application."""
        return [
            self.schedule("feeds_sync", settings.feeds_sync_interval, queue="fetchers"),
            self.schedule("links_sync", 15 * 60, queue="fetchers"),
            self.schedule("cache_clean", 24 * 60 * 60, queue="default"),
        ]

    def list_jobs(self, queue: Optional[str] = None) -> List[Dict[str, Any]]:
        with session_scope() as db:
            query = db.query(Job)
            if queue and queue != "all":
                query = query.filter(Job.queue == queue)
            return [job.to_dict() for job in query.order_by(Job.perform_at.asc(), Job.id.asc())]

    def unlock(self, job_id: int) -> bool:
        with session_scope() as db:
            job = db.get(Job, job_id)
            if not job:
                return False
            job.locked_at = None
            return True

    def _lock_next(self, queue: str) -> Optional[Dict[str, Any]]:
        with session_scope() as db:
            now = utils.utcnow()
            query = db.query(Job).filter(Job.locked_at.is_(None), Job.perform_at <= now)
            if queue != "all":
                query = query.filter(Job.queue == queue)
            job = query.order_by(Job.perform_at.asc(), Job.id.asc()).first()
            if not job:
                return None

            # The update only succeeds if no other worker locked the job meanwhile
            locked = (
                db.query(Job)
                .filter(Job.id == job.id, Job.locked_at.is_(None))
                .update({Job.locked_at: now}, synchronize_session=False)
            )
            if not locked:
                return None

            return {"id": job.id, "name": job.name, "params": job.params}

    def _finish(self, job_id: int, error: Optional[str]) -> None:
        with session_scope() as db:
            job = db.get(Job, job_id)
            if not job:
                return

            now = utils.utcnow()
            job.locked_at = None
            if error is not None:
                job.number_attempts += 1
                job.last_error = error
                job.failed_at = now
                job.perform_at = now + retry_delay(job.number_attempts)
            elif job.frequency:
                job.number_attempts = 0
                job.last_error = None
                job.failed_at = None
                perform_at = job.perform_at
                while perform_at <= now:
                    perform_at += timedelta(seconds=job.frequency)
                job.perform_at = perform_at
            else:
                db.delete(job)

    def run_one(self, queue: str = "all") -> Optional[Dict[str, Any]]:
        """Run the next due job of the queue.

        Returns None if no job is due, else a dict with the job ``id``,
        ``name``, and its ``result`` or ``error``.
        """
        if queue not in QUEUES:
            raise ValueError(f"Invalid queue: {queue}")

        job = self._lock_next(queue)
        if not job:
            return None

        job_id = str(job["id"])
        job_logger = get_structured_logger(__name__, job_id=job_id, job_name=job["name"])
        handler = self.job_handlers.get(job["name"])

        start_time = time.time()
        result = None
        error = None
        if not handler:
            error = f"No handler registered for job: {job['name']}"
            job_logger.error(error)
        else:
            job_logger.info("Job started")
            try:
                result = handler(job_id, job["params"])
            except Exception as e:
                error = f"{type(e).__name__}: {e}"
                job_logger.exception("Job failed")

        duration = time.time() - start_time
        record_job(job["name"], duration, error=error is not None)
        self._finish(job["id"], error)
        if error is None:
            job_logger.info(f"Job done in {duration:.2f}s")

        return {"id": job["id"], "name": job["name"], "result": result, "error": error}

    def watch(self, queue: str = "all", sleep: float = 1.0,
              max_iterations: Optional[int] = None) -> int:
        """Run the jobs of the queue as they become due; return the number run."""
        logger.info(f"Watching queue {queue}")
        iterations = 0
        performed = 0
        try:
            while max_iterations is None or iterations < max_iterations:
                iterations += 1
                if self.run_one(queue):
                    performed += 1
                else:
                    time.sleep(sleep)
        except KeyboardInterrupt:
            logger.info("Worker stopped")
        return performed


job_manager = JobManager()


def register_default_handlers():
    from .job_handlers import (cache_clean_job, feed_fetch_job, feeds_sync_job,
                               link_fetch_job, links_sync_job, opml_import_job,
                               pocket_import_job)

    job_manager.register_handler("feed_fetch", feed_fetch_job)
    job_manager.register_handler("feeds_sync", feeds_sync_job)
    job_manager.register_handler("link_fetch", link_fetch_job)
    job_manager.register_handler("links_sync", links_sync_job)
    job_manager.register_handler("pocket_import", pocket_import_job)
    job_manager.register_handler("opml_import", opml_import_job)
    job_manager.register_handler("cache_clean", cache_clean_job)

    logger.debug("Default job handlers registered")
