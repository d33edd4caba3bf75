"""Durable work queue over the jobs table.

The queue holds no state of its own: every operation is one repository call,
and the atomicity guarantees (single-statement lease, single-statement
resolve) live in the repository SQL.
"""

from bookmarks_worker.config.settings import Settings
from bookmarks_worker.database.models import (
    CheckResultView,
    JobKind,
    JobRecord,
    StatusSummary,
)
from bookmarks_worker.database.repositories.base import (
    BaseBookmarkRepository,
    BaseJobRepository,
)
from bookmarks_worker.logging.logger import Log

ENRICHMENT_KINDS = (JobKind.ARCHIVE, JobKind.THUMBNAIL)


class JobQueue:
    def __init__(
        self,
        job_repo: BaseJobRepository,
        bookmark_repo: BaseBookmarkRepository,
        settings: Settings,
    ) -> None:
        self._job_repo = job_repo
        self._bookmark_repo = bookmark_repo
        self._settings = settings

    @property
    def max_attempts(self) -> int:
        return self._settings.max_job_attempts

    def enqueue(self, subject_id: int, kind: JobKind | str, payload: str) -> JobRecord:
        """Insert a pending job with zero attempts."""
        job = self._job_repo.insert(subject_id, JobKind(kind).value, payload)
        Log.debug(f"Enqueued {job.kind} job {job.id} for bookmark {subject_id}")
        return job

    def lease_next_batch(
        self, limit: int | None = None, max_attempts: int | None = None
    ) -> list[JobRecord]:
        """Atomically claim up to ``limit`` due jobs, oldest first.

        A leased job stays ``processing`` until it is resolved; there is no
        lease expiry, so a runner that dies mid-batch leaves its jobs there.
        """
        return self._job_repo.lease_batch(
            limit if limit is not None else self._settings.job_batch_size,
            max_attempts if max_attempts is not None else self.max_attempts,
        )

    def resolve(self, job_id: int, success: bool, result: str) -> JobRecord | None:
        """Record a job outcome; every resolution consumes one attempt.

        Failures return the job to ``pending`` until attempts reach the
        maximum, then mark it ``failed``. Returns None for an unknown job id.
        """
        if success:
            return self._job_repo.mark_completed(job_id, result)
        return self._job_repo.mark_attempt_failed(job_id, result, self.max_attempts)

    def status_summary(self, kind: JobKind | str = JobKind.CHECK_URL) -> StatusSummary:
        """Job counts per status for one kind."""
        return StatusSummary.from_counts(self._job_repo.count_by_status(JobKind(kind).value))

    def broken_count(self) -> int:
        """Number of bookmarks currently flagged broken."""
        return self._bookmark_repo.count_broken()

    def has_live_duplicate(self, subject_id: int, kind: JobKind | str) -> bool:
        """True when the bookmark already has a pending or processing job of ``kind``."""
        return self._job_repo.has_live_job(subject_id, JobKind(kind).value)

    def enqueue_enrichment(self, subject_id: int, url: str) -> list[JobRecord]:
        """Queue the archive and thumbnail jobs a new bookmark gets."""
        return [self.enqueue(subject_id, kind, url) for kind in ENRICHMENT_KINDS]

    def queue_url_checks(self) -> int:
        """Queue one check_url job per bookmark that has none pending or processing.

        Failed checks do not block a new one.
        """
        queued = 0
        for bookmark in self._bookmark_repo.list_all():
            if self.has_live_duplicate(bookmark.id, JobKind.CHECK_URL):
                continue
            self.enqueue(bookmark.id, JobKind.CHECK_URL, bookmark.url)
            queued += 1
        Log.info(f"Queued {queued} URL checks")
        return queued

    def queue_missing_jobs(self) -> int:
        """Queue enrichment for bookmarks that never had a job; returns jobs created."""
        queued = 0
        for bookmark in self._bookmark_repo.list_without_jobs():
            queued += len(self.enqueue_enrichment(bookmark.id, bookmark.url))
        Log.info(f"Queued {queued} enrichment jobs for bookmarks without jobs")
        return queued

    def recent_checks(self, limit: int | None = None) -> list[CheckResultView]:
        """Most recently resolved check_url jobs, newest first."""
        return self._job_repo.recent_resolved(
            JobKind.CHECK_URL.value,
            limit if limit is not None else self._settings.recent_checks_limit,
        )
