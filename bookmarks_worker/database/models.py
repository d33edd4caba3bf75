from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class JobKind(str, Enum):
    """Persisted job-type vocabulary."""

    ARCHIVE = "archive"
    THUMBNAIL = "thumbnail"
    CHECK_URL = "check_url"


class JobStatus(str, Enum):
    """Persisted job-status vocabulary."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


LIVE_STATUSES = (JobStatus.PENDING.value, JobStatus.PROCESSING.value)


@dataclass
class JobRecord:
    """Represents a row from the jobs table."""

    id: int
    subject_id: int
    kind: str
    payload: str
    status: str
    attempts: int
    result: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class BookmarkRecord:
    """The subset of a bookmarks row the worker reads and writes."""

    id: int
    url: str
    title: str = ""
    screenshot: str | None = None
    archive_url: str | None = None
    broken_url: bool = False
    last_checked: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class StatusSummary:
    """Per-status job counts for one job kind."""

    total: int = 0
    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0

    @classmethod
    def from_counts(cls, counts: Mapping[str, int]) -> "StatusSummary":
        return cls(
            total=sum(counts.values()),
            pending=counts.get(JobStatus.PENDING.value, 0),
            processing=counts.get(JobStatus.PROCESSING.value, 0),
            completed=counts.get(JobStatus.COMPLETED.value, 0),
            failed=counts.get(JobStatus.FAILED.value, 0),
        )


@dataclass
class CheckResultView:
    """A resolved check_url job joined with its bookmark, for status displays."""

    job_id: int
    subject_id: int
    url: str
    title: str
    status: str
    result: str | None
    broken: bool
    last_checked: datetime | None = None
    updated_at: datetime | None = None


def parse_timestamp(value: Any) -> datetime | None:
    """Normalize a driver timestamp (datetime or SQLite text) to datetime."""
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def job_from_row(row: Mapping[str, Any]) -> JobRecord:
    return JobRecord(
        id=row["id"],
        subject_id=row["bookmark_id"],
        kind=row["job_type"],
        payload=row["payload"] or "",
        status=row["status"],
        attempts=row["attempts"],
        result=row["result"],
        created_at=parse_timestamp(row["created_at"]),
        updated_at=parse_timestamp(row["updated_at"]),
    )


def bookmark_from_row(row: Mapping[str, Any]) -> BookmarkRecord:
    return BookmarkRecord(
        id=row["id"],
        url=row["url"],
        title=row["title"] or "",
        screenshot=row["screenshot"],
        archive_url=row["archive_url"],
        broken_url=bool(row["broken_url"]),
        last_checked=parse_timestamp(row["last_checked"]),
        updated_at=parse_timestamp(row["updated_at"]),
    )


def check_view_from_row(row: Mapping[str, Any]) -> CheckResultView:
    return CheckResultView(
        job_id=row["id"],
        subject_id=row["bookmark_id"],
        url=row["url"],
        title=row["title"] or "",
        status=row["status"],
        result=row["result"],
        broken=bool(row["broken_url"]),
        last_checked=parse_timestamp(row["last_checked"]),
        updated_at=parse_timestamp(row["updated_at"]),
    )
