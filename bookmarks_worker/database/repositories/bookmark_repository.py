from datetime import datetime

from psycopg.rows import dict_row

from bookmarks_worker.database.connection import PostgresDatabase
from bookmarks_worker.database.exceptions import SubjectNotFoundError
from bookmarks_worker.database.models import BookmarkRecord, bookmark_from_row
from bookmarks_worker.database.repositories.base import BaseBookmarkRepository

_BOOKMARK_COLUMNS = (
    "id, url, title, screenshot, archive_url, broken_url, last_checked, updated_at"
)


class BookmarkRepository(BaseBookmarkRepository):
    """PostgreSQL operations on the enrichment columns of the bookmarks table."""

    def __init__(self, db: PostgresDatabase) -> None:
        self._db = db

    def find_by_id(self, subject_id: int) -> BookmarkRecord:
        """Find a bookmark by ID.

        Raises:
            SubjectNotFoundError: if no bookmark with this ID exists.
        """
        with self._db.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"SELECT {_BOOKMARK_COLUMNS} FROM bookmarks WHERE id = %s",
                    (subject_id,),
                )
                row = cur.fetchone()

        if row is None:
            raise SubjectNotFoundError(f"Bookmark {subject_id} not found")
        return bookmark_from_row(row)

    def update_screenshot(self, subject_id: int, screenshot_path: str) -> None:
        self._update(
            "UPDATE bookmarks SET screenshot = %s, updated_at = NOW() WHERE id = %s",
            (screenshot_path, subject_id),
            subject_id,
        )

    def update_archive_url(self, subject_id: int, archive_url: str) -> None:
        self._update(
            "UPDATE bookmarks SET archive_url = %s, updated_at = NOW() WHERE id = %s",
            (archive_url, subject_id),
            subject_id,
        )

    def update_link_status(
        self, subject_id: int, broken: bool, checked_at: datetime
    ) -> None:
        self._update(
            """
            UPDATE bookmarks
            SET broken_url = %s, last_checked = %s, updated_at = NOW()
            WHERE id = %s
            """,
            (broken, checked_at, subject_id),
            subject_id,
        )

    def count_broken(self) -> int:
        with self._db.connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT COUNT(*) FROM bookmarks WHERE broken_url")
                row = cur.fetchone()
        return int(row[0]) if row is not None else 0

    def list_all(self) -> list[BookmarkRecord]:
        with self._db.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(f"SELECT {_BOOKMARK_COLUMNS} FROM bookmarks ORDER BY id")
                rows = cur.fetchall()
        return [bookmark_from_row(row) for row in rows]

    def list_without_jobs(self) -> list[BookmarkRecord]:
        with self._db.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT b.id, b.url, b.title, b.screenshot, b.archive_url,
                           b.broken_url, b.last_checked, b.updated_at
                    FROM bookmarks b
                    LEFT JOIN jobs j ON j.bookmark_id = b.id
                    WHERE j.id IS NULL
                    ORDER BY b.id
                    """
                )
                rows = cur.fetchall()
        return [bookmark_from_row(row) for row in rows]

    def _update(self, sql: str, params: tuple[object, ...], subject_id: int) -> None:
        with self._db.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                if cur.rowcount == 0:
                    raise SubjectNotFoundError(f"Bookmark {subject_id} not found")
            conn.commit()
