from collections.abc import Iterable

from bookmarks_worker.database.models import JobRecord, JobStatus
from bookmarks_worker.jobs.job_queue import JobQueue
from bookmarks_worker.logging.logger import Log
from bookmarks_worker.worker.handlers import BaseJobHandler, HandlerResult


class JobRunner:
    """Run one job through its handler and resolve the outcome in the queue."""

    def __init__(self, handlers: Iterable[BaseJobHandler], queue: JobQueue) -> None:
        self._handlers = {handler.kind.value: handler for handler in handlers}
        self._queue = queue

    def run(self, job: JobRecord) -> JobRecord | None:
        """Execute and resolve a single job.

        Returns the resolved job, or None when the outcome could not be
        written back; that failure is logged so the rest of the batch runs.
        """
        Log.info(f"Running {job.kind} job", job_id=job.id, attempt=job.attempts + 1)
        outcome = self._execute(job)
        try:
            resolved = self._queue.resolve(job.id, outcome.success, outcome.message)
        except Exception as exc:
            Log.exception(f"Job {job.id}: failed to record outcome: {exc}")
            return None

        if resolved is None:
            Log.warning(f"Job {job.id} disappeared before it could be resolved")
        elif outcome.success:
            Log.info(f"Job completed: {outcome.message}", job_id=job.id)
        elif resolved.status == JobStatus.FAILED.value:
            Log.error(
                f"Job {job.id} permanently failed after {resolved.attempts} attempts: "
                f"{outcome.message}"
            )
        else:
            Log.warning(
                f"Job {job.id} failed, will be retried "
                f"(attempt {resolved.attempts} of {self._queue.max_attempts}): {outcome.message}"
            )
        return resolved

    def _execute(self, job: JobRecord) -> HandlerResult:
        handler = self._handlers.get(job.kind)
        if handler is None:
            return HandlerResult(False, f"Unknown job type: {job.kind}")
        try:
            return handler.handle(job)
        except Exception as exc:
            Log.error(f"Job {job.id} raised {type(exc).__name__}: {exc}")
            return HandlerResult(False, str(exc) or type(exc).__name__)
