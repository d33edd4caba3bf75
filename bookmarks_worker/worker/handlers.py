from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import ClassVar

from bookmarks_worker.acquisition.exceptions import ThumbnailStorageError
from bookmarks_worker.acquisition.pipeline import ImageAcquisitionPipeline
from bookmarks_worker.acquisition.storage import ThumbnailStorage
from bookmarks_worker.archive.archive_requester import ArchiveRequester
from bookmarks_worker.archive.exceptions import ArchiveRequestError
from bookmarks_worker.database.models import JobKind, JobRecord
from bookmarks_worker.database.repositories.base import BaseBookmarkRepository
from bookmarks_worker.fetch.safe_fetcher import SafeFetcher
from bookmarks_worker.links.exceptions import UrlNotAllowedError
from bookmarks_worker.links.link_checker import LinkChecker
from bookmarks_worker.logging.logger import Log


@dataclass(frozen=True)
class HandlerResult:
    success: bool
    message: str


class BaseJobHandler(ABC):
    """Contract for the per-kind job executors."""

    kind: ClassVar[JobKind]

    @abstractmethod
    def handle(self, job: JobRecord) -> HandlerResult:
        """Execute ``job`` and describe the outcome.

        Expected failures are returned as ``HandlerResult(success=False)``;
        anything raised is treated as a failure by the runner.
        """


class ArchiveHandler(BaseJobHandler):
    kind = JobKind.ARCHIVE

    def __init__(
        self, requester: ArchiveRequester, bookmark_repo: BaseBookmarkRepository
    ) -> None:
        self._requester = requester
        self._bookmark_repo = bookmark_repo

    def handle(self, job: JobRecord) -> HandlerResult:
        """Request a Wayback snapshot and store its permalink on the bookmark."""
        try:
            archive_url = self._requester.archive(job.payload)
        except (UrlNotAllowedError, ArchiveRequestError) as exc:
            return HandlerResult(False, str(exc))
        self._bookmark_repo.update_archive_url(job.subject_id, archive_url)
        return HandlerResult(True, archive_url)


class ThumbnailHandler(BaseJobHandler):
    """Acquires a thumbnail and replaces the bookmark's previous one."""

    kind = JobKind.THUMBNAIL

    def __init__(
        self,
        fetcher: SafeFetcher,
        pipeline: ImageAcquisitionPipeline,
        storage: ThumbnailStorage,
        bookmark_repo: BaseBookmarkRepository,
    ) -> None:
        self._fetcher = fetcher
        self._pipeline = pipeline
        self._storage = storage
        self._bookmark_repo = bookmark_repo

    def handle(self, job: JobRecord) -> HandlerResult:
        """Run the acquisition pipeline for an allowed URL and swap in the new image."""
        rejection = self._fetcher.check(job.payload)
        if rejection is not None:
            return HandlerResult(False, self._fetcher.rejection_message(rejection))

        previous = self._bookmark_repo.find_by_id(job.subject_id).screenshot
        acquired = self._pipeline.acquire(job.payload)
        if not acquired.success or acquired.storage_path is None:
            return HandlerResult(False, acquired.error or "No thumbnail produced")

        self._bookmark_repo.update_screenshot(job.subject_id, acquired.storage_path)
        if previous and previous != acquired.storage_path:
            self._remove_previous(job, previous)
        return HandlerResult(True, acquired.storage_path)

    def _remove_previous(self, job: JobRecord, previous: str) -> None:
        try:
            self._storage.delete(previous)
        except ThumbnailStorageError as exc:
            Log.warning(f"Job {job.id}: could not remove old thumbnail {previous}: {exc}")


class CheckUrlHandler(BaseJobHandler):
    """Records link liveness; only an SSRF rejection fails the job."""

    kind = JobKind.CHECK_URL

    def __init__(self, checker: LinkChecker, bookmark_repo: BaseBookmarkRepository) -> None:
        self._checker = checker
        self._bookmark_repo = bookmark_repo

    def handle(self, job: JobRecord) -> HandlerResult:
        """HEAD the URL and record whether the bookmark is broken."""
        try:
            check = self._checker.check(job.payload)
        except UrlNotAllowedError as exc:
            return HandlerResult(False, str(exc))
        checked_at = datetime.now(timezone.utc)
        self._bookmark_repo.update_link_status(job.subject_id, check.broken, checked_at)
        if check.broken:
            return HandlerResult(True, f"Broken: {check.message}")
        return HandlerResult(True, f"{check.message} (HTTP {check.http_status})")
