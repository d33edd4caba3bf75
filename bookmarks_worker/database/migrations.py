"""Versioned schema migrations, applied once at startup.

Each migration runs in its own transaction and is recorded in
``schema_migrations``; job handlers assume the schema is current.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from bookmarks_worker.database.connection import Database
from bookmarks_worker.database.exceptions import MigrationError
from bookmarks_worker.logging.logger import Log


@dataclass(frozen=True)
class Migration:
    version: int
    name: str
    apply: Callable[[Any, str], None]


def _execute_all(conn: Any, statements: tuple[str, ...]) -> None:
    for statement in statements:
        conn.execute(statement)


def _create_core_tables(conn: Any, dialect: str) -> None:
    if dialect == "postgres":
        _execute_all(
            conn,
            (
                """
                CREATE TABLE IF NOT EXISTS bookmarks (
                    id BIGSERIAL PRIMARY KEY,
                    url TEXT NOT NULL,
                    title TEXT NOT NULL DEFAULT '',
                    screenshot TEXT,
                    archive_url TEXT,
                    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                )
                """,
                """
                CREATE TABLE IF NOT EXISTS jobs (
                    id BIGSERIAL PRIMARY KEY,
                    bookmark_id BIGINT REFERENCES bookmarks(id) ON DELETE CASCADE,
                    job_type TEXT NOT NULL,
                    payload TEXT,
                    status TEXT NOT NULL DEFAULT 'pending',
                    result TEXT,
                    attempts INTEGER NOT NULL DEFAULT 0,
                    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                )
                """,
            ),
        )
        return
    _execute_all(
        conn,
        (
            """
            CREATE TABLE IF NOT EXISTS bookmarks (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                url TEXT NOT NULL,
                title TEXT NOT NULL DEFAULT '',
                screenshot TEXT,
                archive_url TEXT,
                created_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
                updated_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS jobs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                bookmark_id INTEGER,
                job_type TEXT NOT NULL,
                payload TEXT,
                status TEXT DEFAULT 'pending',
                result TEXT,
                attempts INTEGER DEFAULT 0,
                created_at DATETIME NOT NULL,
                updated_at DATETIME NOT NULL,
                FOREIGN KEY (bookmark_id) REFERENCES bookmarks(id) ON DELETE CASCADE
            )
            """,
        ),
    )


def _add_column_if_missing(
    conn: Any, dialect: str, table: str, column: str, definition: str
) -> None:
    if dialect == "postgres":
        conn.execute(f"ALTER TABLE {table} ADD COLUMN IF NOT EXISTS {column} {definition}")
        return
    existing = {row[1] for row in conn.execute(f"PRAGMA table_info({table})").fetchall()}
    if column not in existing:
        conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")


def _add_link_status_columns(conn: Any, dialect: str) -> None:
    if dialect == "postgres":
        _add_column_if_missing(
            conn, dialect, "bookmarks", "broken_url", "BOOLEAN NOT NULL DEFAULT FALSE"
        )
        _add_column_if_missing(conn, dialect, "bookmarks", "last_checked", "TIMESTAMPTZ")
        return
    _add_column_if_missing(conn, dialect, "bookmarks", "broken_url", "INTEGER DEFAULT 0")
    _add_column_if_missing(conn, dialect, "bookmarks", "last_checked", "DATETIME")


def _create_indexes(conn: Any, dialect: str) -> None:
    _ = dialect  # same DDL on both engines
    _execute_all(
        conn,
        (
            "CREATE INDEX IF NOT EXISTS idx_jobs_status ON jobs(status)",
            "CREATE INDEX IF NOT EXISTS idx_jobs_type ON jobs(job_type)",
            "CREATE INDEX IF NOT EXISTS idx_jobs_status_created ON jobs(status, created_at)",
            "CREATE INDEX IF NOT EXISTS idx_jobs_bookmark_id ON jobs(bookmark_id)",
            "CREATE INDEX IF NOT EXISTS idx_bookmarks_broken_url ON bookmarks(broken_url)",
        ),
    )


MIGRATIONS: tuple[Migration, ...] = (
    Migration(1, "create_core_tables", _create_core_tables),
    Migration(2, "add_link_status_columns", _add_link_status_columns),
    Migration(3, "create_job_indexes", _create_indexes),
)


def _placeholder(dialect: str) -> str:
    return "%s" if dialect == "postgres" else "?"


def applied_versions(db: Database) -> set[int]:
    """Versions already recorded in schema_migrations (creating it if needed)."""
    with db.connection() as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                version INTEGER PRIMARY KEY,
                name TEXT NOT NULL,
                applied_at TEXT NOT NULL
            )
            """
        )
        rows = conn.execute("SELECT version FROM schema_migrations").fetchall()
        conn.commit()
    return {int(row[0]) for row in rows}


def run_migrations(
    db: Database, migrations: tuple[Migration, ...] = MIGRATIONS
) -> list[int]:
    """Apply pending migrations in version order and return the applied versions.

    Raises:
        MigrationError: if a migration fails; later migrations are not attempted.
    """
    done = applied_versions(db)
    marker = _placeholder(db.dialect)
    applied: list[int] = []
    for migration in sorted(migrations, key=lambda m: m.version):
        if migration.version in done:
            continue
        Log.info(f"Applying migration {migration.version}: {migration.name}")
        try:
            with db.connection() as conn:
                migration.apply(conn, db.dialect)
                conn.execute(
                    f"""
                    INSERT INTO schema_migrations (version, name, applied_at)
                    VALUES ({marker}, {marker}, CURRENT_TIMESTAMP)
                    """,
                    (migration.version, migration.name),
                )
                conn.commit()
        except Exception as exc:
            raise MigrationError(
                f"Migration {migration.version} ({migration.name}) failed: {exc}"
            ) from exc
        applied.append(migration.version)
    if not applied:
        Log.debug("Schema is up to date")
    return applied
