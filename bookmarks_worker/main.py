"""Argument-less entry points, each intended for periodic or manual invocation."""

from bookmarks_worker.acquisition.pipeline import build_pipeline
from bookmarks_worker.acquisition.storage import ThumbnailStorage
from bookmarks_worker.archive.archive_requester import ArchiveRequester
from bookmarks_worker.config.settings import Settings
from bookmarks_worker.database.connection import Database
from bookmarks_worker.database.factory import RepositoryFactory
from bookmarks_worker.database.migrations import run_migrations
from bookmarks_worker.fetch.safe_fetcher import SafeFetcher
from bookmarks_worker.imaging.processor import ImageProcessor
from bookmarks_worker.jobs.job_queue import JobQueue
from bookmarks_worker.links.link_checker import LinkChecker
from bookmarks_worker.logging.logger import Log
from bookmarks_worker.worker.handlers import ArchiveHandler, CheckUrlHandler, ThumbnailHandler
from bookmarks_worker.worker.job_runner import JobRunner
from bookmarks_worker.worker.worker import BatchReport, Worker


def open_database(settings: Settings) -> Database:
    db = RepositoryFactory.create_database(settings)
    if settings.migrate_on_startup:
        run_migrations(db)
    return db


def build_queue(settings: Settings, db: Database) -> JobQueue:
    return JobQueue(
        RepositoryFactory.create_job_repository(db),
        RepositoryFactory.create_bookmark_repository(db),
        settings,
    )


def build_worker(
    settings: Settings, db: Database, fetcher: SafeFetcher | None = None
) -> Worker:
    """Wire fetcher, image pipeline, handlers and runner around one database."""
    queue = build_queue(settings, db)
    bookmark_repo = RepositoryFactory.create_bookmark_repository(db)
    fetcher = fetcher or SafeFetcher(settings)
    processor = ImageProcessor(settings.image_max_memory_bytes)
    storage = ThumbnailStorage(settings.screenshots_root, settings.screenshots_url_prefix)
    handlers = [
        ArchiveHandler(ArchiveRequester(fetcher, settings), bookmark_repo),
        ThumbnailHandler(
            fetcher,
            build_pipeline(settings, fetcher, processor, storage),
            storage,
            bookmark_repo,
        ),
        CheckUrlHandler(LinkChecker(fetcher, settings), bookmark_repo),
    ]
    return Worker(queue, JobRunner(handlers, queue), settings)


def _bootstrap() -> Settings:
    settings = Settings()
    Log.configure(settings.log_level)
    return settings


def run_batch(settings: Settings) -> BatchReport:
    db = open_database(settings)
    try:
        return build_worker(settings, db).run_once()
    finally:
        db.close()


def main() -> None:
    """Run exactly one bounded batch and exit."""
    run_batch(_bootstrap())


def migrate() -> None:
    settings = _bootstrap()
    db = RepositoryFactory.create_database(settings)
    try:
        applied = run_migrations(db)
        Log.info(f"Applied migrations: {applied}" if applied else "No pending migrations")
    finally:
        db.close()


def queue_missing() -> None:
    settings = _bootstrap()
    db = open_database(settings)
    try:
        build_queue(settings, db).queue_missing_jobs()
    finally:
        db.close()


def queue_checks() -> None:
    settings = _bootstrap()
    db = open_database(settings)
    try:
        build_queue(settings, db).queue_url_checks()
    finally:
        db.close()


def status() -> None:
    """Print the URL-check summary, broken count and most recent results."""
    settings = _bootstrap()
    db = open_database(settings)
    try:
        queue = build_queue(settings, db)
        summary = queue.status_summary()
        print(
            f"check_url jobs: {summary.total} total, {summary.pending} pending, "
            f"{summary.processing} processing, {summary.completed} completed, "
            f"{summary.failed} failed"
        )
        print(f"Broken bookmarks: {queue.broken_count()}")
        for check in queue.recent_checks():
            flag = "BROKEN" if check.broken else "ok"
            print(
                f"[{flag}] #{check.subject_id} {check.url} ({check.status}): "
                f"{check.result or ''}"
            )
    finally:
        db.close()


if __name__ == "__main__":
    main()
