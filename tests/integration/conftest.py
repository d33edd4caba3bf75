import os
from collections.abc import Callable, Generator

import psycopg
import pytest

from bookmarks_worker.config.settings import Settings
from bookmarks_worker.database.connection import (
    Database,
    PostgresDatabase,
    SqliteDatabase,
    build_conninfo,
)
from bookmarks_worker.database.migrations import run_migrations

BookmarkSeeder = Callable[..., int]


def _postgres_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "bookmarks_test")
    return Settings(db_engine="postgres")


@pytest.fixture()
def sqlite_db(tmp_path) -> SqliteDatabase:
    db = SqliteDatabase(tmp_path / "bookmarks.db")
    run_migrations(db)
    return db


@pytest.fixture(scope="session")
def postgres_session_db() -> Generator[PostgresDatabase, None, None]:
    settings = _postgres_settings()
    if not settings.db_database.endswith("_test"):
        pytest.skip("PostgreSQL integration tests only run against a *_test database")
    try:
        psycopg.connect(build_conninfo(settings), connect_timeout=2).close()
    except psycopg.Error as e:
        pytest.skip(f"PostgreSQL test DB not available: {e}. Set DB_* env to enable.")
    db = PostgresDatabase.from_settings(settings)
    run_migrations(db)
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def postgres_db(postgres_session_db: PostgresDatabase) -> PostgresDatabase:
    with postgres_session_db.connection() as conn:
        conn.execute("TRUNCATE jobs, bookmarks RESTART IDENTITY CASCADE")
        conn.commit()
    return postgres_session_db


def _seeder(db: Database) -> BookmarkSeeder:
    marker = "%s" if db.dialect == "postgres" else "?"

    def _add(
        url: str = "https://example.com/",
        title: str = "Example",
        screenshot: str | None = None,
    ) -> int:
        with db.connection() as conn:
            rows = conn.execute(
                f"""
                INSERT INTO bookmarks (url, title, screenshot)
                VALUES ({marker}, {marker}, {marker})
                RETURNING id
                """,
                (url, title, screenshot),
            ).fetchall()
            conn.commit()
        return int(rows[0][0])

    return _add


@pytest.fixture()
def add_bookmark(sqlite_db: SqliteDatabase) -> BookmarkSeeder:
    return _seeder(sqlite_db)


@pytest.fixture()
def add_postgres_bookmark(postgres_db: PostgresDatabase) -> BookmarkSeeder:
    return _seeder(postgres_db)
