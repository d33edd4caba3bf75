from dataclasses import dataclass

from bookmarks_worker.imaging.models import ImageInfo


@dataclass
class AcquiredImage:
    success: bool
    method: str
    storage_path: str | None = None
    error: str | None = None

    @classmethod
    def succeeded(cls, method: str, storage_path: str) -> "AcquiredImage":
        return cls(success=True, method=method, storage_path=storage_path)

    @classmethod
    def failed(cls, method: str, error: str) -> "AcquiredImage":
        return cls(success=False, method=method, error=error)


@dataclass(frozen=True)
class PreparedImage:
    """Validated, resized image bytes ready to be stored."""

    data: bytes
    info: ImageInfo
