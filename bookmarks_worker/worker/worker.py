from dataclasses import dataclass

from bookmarks_worker.config.settings import Settings
from bookmarks_worker.database.models import JobStatus
from bookmarks_worker.jobs.job_queue import JobQueue
from bookmarks_worker.logging.logger import Log
from bookmarks_worker.worker.job_runner import JobRunner


@dataclass(frozen=True)
class BatchReport:
    leased: int = 0
    completed: int = 0
    retried: int = 0
    failed: int = 0


class Worker:
    """One bounded pass: lease a batch, run each job, report."""

    def __init__(self, queue: JobQueue, job_runner: JobRunner, settings: Settings) -> None:
        self._queue = queue
        self._job_runner = job_runner
        self._settings = settings

    def run_once(self) -> BatchReport:
        """Process at most ``job_batch_size`` jobs sequentially and return the tally."""
        try:
            jobs = self._queue.lease_next_batch(self._settings.job_batch_size)
        except Exception as exc:
            Log.warning(f"Database error while leasing jobs, will retry next run: {exc}")
            return BatchReport()

        if not jobs:
            Log.debug("No jobs due")
            return BatchReport()

        Log.info(f"Leased {len(jobs)} job(s)")
        counts = {status: 0 for status in JobStatus}
        for job in jobs:
            resolved = self._job_runner.run(job)
            if resolved is not None:
                counts[JobStatus(resolved.status)] += 1

        report = BatchReport(
            leased=len(jobs),
            completed=counts[JobStatus.COMPLETED],
            retried=counts[JobStatus.PENDING],
            failed=counts[JobStatus.FAILED],
        )
        Log.info(
            f"Batch done: {report.completed} completed, {report.retried} to retry, "
            f"{report.failed} failed"
        )
        return report
