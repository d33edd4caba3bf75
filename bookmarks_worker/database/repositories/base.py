from abc import ABC, abstractmethod
from datetime import datetime

from bookmarks_worker.database.models import BookmarkRecord, CheckResultView, JobRecord


class BaseJobRepository(ABC):
    """Contract for jobs-table storage engines."""

    @abstractmethod
    def insert(self, subject_id: int, kind: str, payload: str) -> JobRecord:
        """Insert a pending job with zero attempts and return it."""

    @abstractmethod
    def lease_batch(self, limit: int, max_attempts: int) -> list[JobRecord]:
        """Atomically move up to ``limit`` due pending jobs to processing.

        Jobs are selected oldest-first among ``status='pending'`` rows with
        ``attempts < max_attempts``. Selection and the status change happen in
        one statement, so two concurrent callers never lease the same job.
        """

    @abstractmethod
    def mark_completed(self, job_id: int, result: str) -> JobRecord | None:
        """Set status completed, store result, increment attempts."""

    @abstractmethod
    def mark_attempt_failed(
        self, job_id: int, result: str, max_attempts: int
    ) -> JobRecord | None:
        """Increment attempts; failed once attempts reach max, pending otherwise."""

    @abstractmethod
    def find_by_id(self, job_id: int) -> JobRecord | None:
        """Find a job by ID."""

    @abstractmethod
    def count_by_status(self, kind: str) -> dict[str, int]:
        """Return ``{status: count}`` for jobs of one kind."""

    @abstractmethod
    def has_live_job(self, subject_id: int, kind: str) -> bool:
        """True when a pending or processing job exists for the subject and kind."""

    @abstractmethod
    def recent_resolved(self, kind: str, limit: int) -> list[CheckResultView]:
        """Most recently resolved jobs of a kind joined with their bookmark."""


class BaseBookmarkRepository(ABC):
    """Contract for the enrichment fields of the bookmarks table."""

    @abstractmethod
    def find_by_id(self, subject_id: int) -> BookmarkRecord:
        """Raises SubjectNotFoundError if the bookmark does not exist."""

    @abstractmethod
    def update_screenshot(self, subject_id: int, screenshot_path: str) -> None:
        """Overwrite the screenshot path."""

    @abstractmethod
    def update_archive_url(self, subject_id: int, archive_url: str) -> None:
        """Overwrite the archive permalink."""

    @abstractmethod
    def update_link_status(
        self, subject_id: int, broken: bool, checked_at: datetime
    ) -> None:
        """Overwrite the broken flag and last-checked timestamp."""

    @abstractmethod
    def count_broken(self) -> int:
        """Number of bookmarks currently flagged broken."""

    @abstractmethod
    def list_all(self) -> list[BookmarkRecord]:
        """Every bookmark, ordered by id."""

    @abstractmethod
    def list_without_jobs(self) -> list[BookmarkRecord]:
        """Bookmarks that have never had any job queued, ordered by id."""
