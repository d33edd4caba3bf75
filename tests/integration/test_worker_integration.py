import httpx
import pytest

from bookmarks_worker.acquisition.storage import ThumbnailStorage
from bookmarks_worker.database.models import JobKind
from bookmarks_worker.database.repositories.sqlite_repositories import (
    SqliteBookmarkRepository,
    SqliteJobRepository,
)
from bookmarks_worker.fetch.safe_fetcher import REJECTED_MESSAGE
from bookmarks_worker.main import build_queue, build_worker
from bookmarks_worker.worker.worker import BatchReport


def _site(request: httpx.Request) -> httpx.Response:
    if request.method == "HEAD" and request.url.path == "/gone":
        return httpx.Response(404)
    return httpx.Response(500)


@pytest.mark.integration
class TestWorkerOverSqlite:
    def test_batch_resolves_each_job_kind(
        self, sqlite_db, settings, add_bookmark, make_fetcher
    ) -> None:
        pdf_id = add_bookmark(url="https://example.com/files/report.pdf")
        gone_id = add_bookmark(url="https://example.com/gone")
        private_id = add_bookmark(url="http://127.0.0.1/admin")
        queue = build_queue(settings, sqlite_db)
        thumbnail = queue.enqueue(pdf_id, JobKind.THUMBNAIL, "https://example.com/files/report.pdf")
        check = queue.enqueue(gone_id, JobKind.CHECK_URL, "https://example.com/gone")
        archive = queue.enqueue(private_id, JobKind.ARCHIVE, "http://127.0.0.1/admin")

        worker = build_worker(settings, sqlite_db, fetcher=make_fetcher(_site))
        report = worker.run_once()

        assert report == BatchReport(leased=3, completed=2, retried=1, failed=0)

        jobs = SqliteJobRepository(sqlite_db)
        bookmarks = SqliteBookmarkRepository(sqlite_db)

        thumbnail_job = jobs.find_by_id(thumbnail.id)
        stored = bookmarks.find_by_id(pdf_id).screenshot
        assert thumbnail_job.status == "completed"
        assert thumbnail_job.result == stored
        storage = ThumbnailStorage(settings.screenshots_root, settings.screenshots_url_prefix)
        assert storage.resolve(stored).is_file()

        check_job = jobs.find_by_id(check.id)
        assert (check_job.status, check_job.result) == ("completed", "Broken: HTTP 404")
        assert bookmarks.find_by_id(gone_id).broken_url is True
        assert bookmarks.find_by_id(gone_id).last_checked is not None

        archive_job = jobs.find_by_id(archive.id)
        assert (archive_job.status, archive_job.attempts) == ("pending", 1)
        assert archive_job.result == REJECTED_MESSAGE
        assert bookmarks.find_by_id(private_id).archive_url is None

    def test_rejected_job_fails_permanently_after_max_attempts(
        self, sqlite_db, settings, add_bookmark, make_fetcher
    ) -> None:
        subject_id = add_bookmark(url="http://10.0.0.5/")
        queue = build_queue(settings, sqlite_db)
        job = queue.enqueue(subject_id, JobKind.CHECK_URL, "http://10.0.0.5/")
        worker = build_worker(settings, sqlite_db, fetcher=make_fetcher(_site))

        reports = [worker.run_once() for _ in range(settings.max_job_attempts + 1)]

        assert [r.failed for r in reports] == [0, 0, 1, 0]
        assert reports[-1] == BatchReport()
        resolved = SqliteJobRepository(sqlite_db).find_by_id(job.id)
        assert (resolved.status, resolved.attempts) == ("failed", settings.max_job_attempts)

    def test_empty_queue_reports_nothing(self, sqlite_db, settings, make_fetcher) -> None:
        worker = build_worker(settings, sqlite_db, fetcher=make_fetcher(_site))

        assert worker.run_once() == BatchReport()
