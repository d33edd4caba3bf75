from typing import ClassVar

from bookmarks_worker.config.settings import Settings
from bookmarks_worker.database.connection import Database, PostgresDatabase, SqliteDatabase
from bookmarks_worker.database.repositories.base import (
    BaseBookmarkRepository,
    BaseJobRepository,
)
from bookmarks_worker.database.repositories.bookmark_repository import BookmarkRepository
from bookmarks_worker.database.repositories.job_repository import JobRepository
from bookmarks_worker.database.repositories.sqlite_repositories import (
    SqliteBookmarkRepository,
    SqliteJobRepository,
)


class RepositoryFactory:
    """Creates the database and repositories for the configured engine."""

    DATABASES: ClassVar[dict[str, type[PostgresDatabase] | type[SqliteDatabase]]] = {
        "postgres": PostgresDatabase,
        "sqlite": SqliteDatabase,
    }
    JOB_REPOSITORIES: ClassVar[dict[str, type[BaseJobRepository]]] = {
        "postgres": JobRepository,
        "sqlite": SqliteJobRepository,
    }
    BOOKMARK_REPOSITORIES: ClassVar[dict[str, type[BaseBookmarkRepository]]] = {
        "postgres": BookmarkRepository,
        "sqlite": SqliteBookmarkRepository,
    }

    @classmethod
    def create_database(cls, settings: Settings) -> Database:
        engine = settings.db_engine.lower()
        database_cls = cls.DATABASES.get(engine)
        if database_cls is None:
            raise ValueError(
                f"Unknown database engine '{engine}'. Choose from: {list(cls.DATABASES)}"
            )
        return database_cls.from_settings(settings)

    @classmethod
    def create_job_repository(cls, db: Database) -> BaseJobRepository:
        return cls.JOB_REPOSITORIES[db.dialect](db)  # type: ignore[call-arg]

    @classmethod
    def create_bookmark_repository(cls, db: Database) -> BaseBookmarkRepository:
        return cls.BOOKMARK_REPOSITORIES[db.dialect](db)  # type: ignore[call-arg]
