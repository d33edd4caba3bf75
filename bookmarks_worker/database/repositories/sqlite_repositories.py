"""SQLite implementations of the job and bookmark repositories.

SQLite serializes writers, so leasing runs as a single ``UPDATE ... RETURNING``
inside a ``BEGIN IMMEDIATE`` transaction: a second runner blocks on the write
lock and then sees the leased rows as ``processing``.
"""

from datetime import datetime, timezone
from typing import Any

from bookmarks_worker.database.connection import SqliteDatabase
from bookmarks_worker.database.exceptions import SubjectNotFoundError
from bookmarks_worker.database.models import (
    BookmarkRecord,
    CheckResultView,
    JobRecord,
    bookmark_from_row,
    check_view_from_row,
    job_from_row,
)
from bookmarks_worker.database.repositories.base import (
    BaseBookmarkRepository,
    BaseJobRepository,
)

_JOB_COLUMNS = (
    "id, bookmark_id, job_type, payload, status, result, attempts, created_at, updated_at"
)
_BOOKMARK_COLUMNS = (
    "id, url, title, screenshot, archive_url, broken_url, last_checked, updated_at"
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(sep=" ", timespec="microseconds")


def _first(rows: list[Any]) -> Any:
    # RETURNING cursors are drained fully before commit.
    return rows[0] if rows else None


class SqliteJobRepository(BaseJobRepository):
    """SQLite operations for the jobs table."""

    def __init__(self, db: SqliteDatabase) -> None:
        self._db = db

    def insert(self, subject_id: int, kind: str, payload: str) -> JobRecord:
        now = _now()
        with self._db.connection() as conn:
            rows = conn.execute(
                f"""
                INSERT INTO jobs
                    (bookmark_id, job_type, payload, status, attempts, created_at, updated_at)
                VALUES (?, ?, ?, 'pending', 0, ?, ?)
                RETURNING {_JOB_COLUMNS}
                """,
                (subject_id, kind, payload, now, now),
            ).fetchall()
            conn.commit()
        row = _first(rows)
        if row is None:
            raise RuntimeError("INSERT ... RETURNING produced no row")
        return job_from_row(row)

    def lease_batch(self, limit: int, max_attempts: int) -> list[JobRecord]:
        with self._db.connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            rows = conn.execute(
                f"""
                UPDATE jobs
                SET status = 'processing', updated_at = ?
                WHERE status = 'pending'
                  AND id IN (
                    SELECT id
                    FROM jobs
                    WHERE status = 'pending'
                      AND attempts < ?
                    ORDER BY created_at, id
                    LIMIT ?
                  )
                RETURNING {_JOB_COLUMNS}
                """,
                (_now(), max_attempts, limit),
            ).fetchall()
            conn.commit()

        jobs = [job_from_row(row) for row in rows]
        jobs.sort(key=lambda job: (job.created_at is None, job.created_at, job.id))
        return jobs

    def mark_completed(self, job_id: int, result: str) -> JobRecord | None:
        with self._db.connection() as conn:
            rows = conn.execute(
                f"""
                UPDATE jobs
                SET status = 'completed', result = ?,
                    attempts = attempts + 1, updated_at = ?
                WHERE id = ?
                RETURNING {_JOB_COLUMNS}
                """,
                (result, _now(), job_id),
            ).fetchall()
            conn.commit()
        row = _first(rows)
        return job_from_row(row) if row is not None else None

    def mark_attempt_failed(
        self, job_id: int, result: str, max_attempts: int
    ) -> JobRecord | None:
        with self._db.connection() as conn:
            rows = conn.execute(
                f"""
                UPDATE jobs
                SET attempts = attempts + 1,
                    status = CASE
                        WHEN attempts + 1 >= ? THEN 'failed'
                        ELSE 'pending'
                    END,
                    result = ?,
                    updated_at = ?
                WHERE id = ?
                RETURNING {_JOB_COLUMNS}
                """,
                (max_attempts, result, _now(), job_id),
            ).fetchall()
            conn.commit()
        row = _first(rows)
        return job_from_row(row) if row is not None else None

    def find_by_id(self, job_id: int) -> JobRecord | None:
        with self._db.connection() as conn:
            row = conn.execute(
                f"SELECT {_JOB_COLUMNS} FROM jobs WHERE id = ?", (job_id,)
            ).fetchone()
        return job_from_row(row) if row is not None else None

    def count_by_status(self, kind: str) -> dict[str, int]:
        with self._db.connection() as conn:
            rows = conn.execute(
                "SELECT status, COUNT(*) FROM jobs WHERE job_type = ? GROUP BY status",
                (kind,),
            ).fetchall()
        return {row[0]: int(row[1]) for row in rows}

    def has_live_job(self, subject_id: int, kind: str) -> bool:
        with self._db.connection() as conn:
            row = conn.execute(
                """
                SELECT 1
                FROM jobs
                WHERE bookmark_id = ?
                  AND job_type = ?
                  AND status IN ('pending', 'processing')
                LIMIT 1
                """,
                (subject_id, kind),
            ).fetchone()
        return row is not None

    def recent_resolved(self, kind: str, limit: int) -> list[CheckResultView]:
        with self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT j.id, j.bookmark_id, j.status, j.result, j.updated_at,
                       b.url, b.title, b.broken_url, b.last_checked
                FROM jobs j
                JOIN bookmarks b ON b.id = j.bookmark_id
                WHERE j.job_type = ?
                  AND j.status IN ('completed', 'failed')
                ORDER BY j.updated_at DESC, j.id DESC
                LIMIT ?
                """,
                (kind, limit),
            ).fetchall()
        return [check_view_from_row(row) for row in rows]


class SqliteBookmarkRepository(BaseBookmarkRepository):
    """SQLite operations on the enrichment columns of the bookmarks table."""

    def __init__(self, db: SqliteDatabase) -> None:
        self._db = db

    def find_by_id(self, subject_id: int) -> BookmarkRecord:
        with self._db.connection() as conn:
            row = conn.execute(
                f"SELECT {_BOOKMARK_COLUMNS} FROM bookmarks WHERE id = ?",
                (subject_id,),
            ).fetchone()
        if row is None:
            raise SubjectNotFoundError(f"Bookmark {subject_id} not found")
        return bookmark_from_row(row)

    def update_screenshot(self, subject_id: int, screenshot_path: str) -> None:
        self._update(
            "UPDATE bookmarks SET screenshot = ?, updated_at = ? WHERE id = ?",
            (screenshot_path, _now(), subject_id),
            subject_id,
        )

    def update_archive_url(self, subject_id: int, archive_url: str) -> None:
        self._update(
            "UPDATE bookmarks SET archive_url = ?, updated_at = ? WHERE id = ?",
            (archive_url, _now(), subject_id),
            subject_id,
        )

    def update_link_status(
        self, subject_id: int, broken: bool, checked_at: datetime
    ) -> None:
        self._update(
            """
            UPDATE bookmarks
            SET broken_url = ?, last_checked = ?, updated_at = ?
            WHERE id = ?
            """,
            (
                1 if broken else 0,
                checked_at.isoformat(sep=" ", timespec="seconds"),
                _now(),
                subject_id,
            ),
            subject_id,
        )

    def count_broken(self) -> int:
        with self._db.connection() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM bookmarks WHERE broken_url = 1"
            ).fetchone()
        return int(row[0]) if row is not None else 0

    def list_all(self) -> list[BookmarkRecord]:
        with self._db.connection() as conn:
            rows = conn.execute(
                f"SELECT {_BOOKMARK_COLUMNS} FROM bookmarks ORDER BY id"
            ).fetchall()
        return [bookmark_from_row(row) for row in rows]

    def list_without_jobs(self) -> list[BookmarkRecord]:
        with self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT b.id, b.url, b.title, b.screenshot, b.archive_url,
                       b.broken_url, b.last_checked, b.updated_at
                FROM bookmarks b
                LEFT JOIN jobs j ON j.bookmark_id = b.id
                WHERE j.id IS NULL
                ORDER BY b.id
                """
            ).fetchall()
        return [bookmark_from_row(row) for row in rows]

    def _update(self, sql: str, params: tuple[object, ...], subject_id: int) -> None:
        with self._db.connection() as conn:
            cursor = conn.execute(sql, params)
            if cursor.rowcount == 0:
                raise SubjectNotFoundError(f"Bookmark {subject_id} not found")
            conn.commit()
