from psycopg.rows import dict_row

from bookmarks_worker.database.connection import PostgresDatabase
from bookmarks_worker.database.models import (
    CheckResultView,
    JobRecord,
    check_view_from_row,
    job_from_row,
)
from bookmarks_worker.database.repositories.base import BaseJobRepository

_JOB_COLUMNS = (
    "id, bookmark_id, job_type, payload, status, result, attempts, created_at, updated_at"
)


class JobRepository(BaseJobRepository):
    """PostgreSQL operations for the jobs table."""

    def __init__(self, db: PostgresDatabase) -> None:
        self._db = db

    def insert(self, subject_id: int, kind: str, payload: str) -> JobRecord:
        with self._db.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    INSERT INTO jobs
                        (bookmark_id, job_type, payload, status, attempts,
                         created_at, updated_at)
                    VALUES (%s, %s, %s, 'pending', 0, NOW(), NOW())
                    RETURNING {_JOB_COLUMNS}
                    """,
                    (subject_id, kind, payload),
                )
                row = cur.fetchone()
            conn.commit()

        if row is None:
            raise RuntimeError("INSERT ... RETURNING produced no row")
        return job_from_row(row)

    def lease_batch(self, limit: int, max_attempts: int) -> list[JobRecord]:
        """Lease due jobs with a single UPDATE over a SKIP LOCKED selection."""
        with self._db.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    UPDATE jobs
                    SET status = 'processing', updated_at = NOW()
                    WHERE id IN (
                        SELECT id
                        FROM jobs
                        WHERE status = 'pending'
                          AND attempts < %s
                        ORDER BY created_at, id
                        LIMIT %s
                        FOR UPDATE SKIP LOCKED
                    )
                    RETURNING {_JOB_COLUMNS}
                    """,
                    (max_attempts, limit),
                )
                rows = cur.fetchall()
            conn.commit()

        jobs = [job_from_row(row) for row in rows]
        jobs.sort(key=lambda job: (job.created_at is None, job.created_at, job.id))
        return jobs

    def mark_completed(self, job_id: int, result: str) -> JobRecord | None:
        with self._db.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    UPDATE jobs
                    SET status = 'completed', result = %s,
                        attempts = attempts + 1, updated_at = NOW()
                    WHERE id = %s
                    RETURNING {_JOB_COLUMNS}
                    """,
                    (result, job_id),
                )
                row = cur.fetchone()
            conn.commit()
        return job_from_row(row) if row is not None else None

    def mark_attempt_failed(
        self, job_id: int, result: str, max_attempts: int
    ) -> JobRecord | None:
        with self._db.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    UPDATE jobs
                    SET attempts = attempts + 1,
                        status = CASE
                            WHEN attempts + 1 >= %s THEN 'failed'
                            ELSE 'pending'
                        END,
                        result = %s,
                        updated_at = NOW()
                    WHERE id = %s
                    RETURNING {_JOB_COLUMNS}
                    """,
                    (max_attempts, result, job_id),
                )
                row = cur.fetchone()
            conn.commit()
        return job_from_row(row) if row is not None else None

    def find_by_id(self, job_id: int) -> JobRecord | None:
        with self._db.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"SELECT {_JOB_COLUMNS} FROM jobs WHERE id = %s",
                    (job_id,),
                )
                row = cur.fetchone()
        return job_from_row(row) if row is not None else None

    def count_by_status(self, kind: str) -> dict[str, int]:
        with self._db.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT status, COUNT(*)
                    FROM jobs
                    WHERE job_type = %s
                    GROUP BY status
                    """,
                    (kind,),
                )
                rows = cur.fetchall()
        return {status: int(count) for status, count in rows}

    def has_live_job(self, subject_id: int, kind: str) -> bool:
        with self._db.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT 1
                    FROM jobs
                    WHERE bookmark_id = %s
                      AND job_type = %s
                      AND status IN ('pending', 'processing')
                    LIMIT 1
                    """,
                    (subject_id, kind),
                )
                row = cur.fetchone()
        return row is not None

    def recent_resolved(self, kind: str, limit: int) -> list[CheckResultView]:
        with self._db.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT j.id, j.bookmark_id, j.status, j.result, j.updated_at,
                           b.url, b.title, b.broken_url, b.last_checked
                    FROM jobs j
                    JOIN bookmarks b ON b.id = j.bookmark_id
                    WHERE j.job_type = %s
                      AND j.status IN ('completed', 'failed')
                    ORDER BY j.updated_at DESC, j.id DESC
                    LIMIT %s
                    """,
                    (kind, limit),
                )
                rows = cur.fetchall()
        return [check_view_from_row(row) for row in rows]
