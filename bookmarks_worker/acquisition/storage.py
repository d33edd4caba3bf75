import hashlib
import re
import time
from collections.abc import Callable
from pathlib import Path
from urllib.parse import urlsplit

from bookmarks_worker.acquisition.exceptions import ThumbnailStorageError
from bookmarks_worker.logging.logger import Log

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_domain(url: str) -> str:
    """Filesystem-safe directory name for the URL's host."""
    host = (urlsplit(url).hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    return _NON_ALNUM.sub("_", host).strip("_") or "unknown"


class ThumbnailStorage:
    """Writes thumbnails under ``<root>/<domain>/`` and hands back prefixed relative paths."""

    def __init__(
        self,
        root: Path,
        url_prefix: str = "screenshots",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._root = Path(root)
        self._prefix = url_prefix.strip("/")
        self._clock = clock

    def save(self, url: str, data: bytes, extension: str) -> str:
        """Store ``data`` for ``url`` and return ``<prefix>/<domain>/<file>``.

        The filename embeds a timestamp and a hash of url+timestamp, so an
        existing thumbnail is never overwritten.
        """
        domain = normalize_domain(url)
        timestamp = int(self._clock())
        digest = hashlib.md5(f"{url}{timestamp}".encode()).hexdigest()[:8]
        filename = f"{timestamp}_{digest}.{extension.lower().lstrip('.')}"
        directory = self._root / domain
        try:
            directory.mkdir(parents=True, exist_ok=True)
            (directory / filename).write_bytes(data)
        except OSError as exc:
            raise ThumbnailStorageError(f"Failed to save thumbnail: {exc}") from exc
        Log.debug(f"Saved {len(data)} byte thumbnail to {directory / filename}")
        return f"{self._prefix}/{domain}/{filename}" if self._prefix else f"{domain}/{filename}"

    def resolve(self, storage_path: str) -> Path | None:
        """Map a stored relative path back to a file under the root, or None if it escapes it."""
        relative = storage_path.strip().lstrip("/")
        if self._prefix and relative.startswith(f"{self._prefix}/"):
            relative = relative[len(self._prefix) + 1 :]
        if not relative:
            return None
        root = self._root.resolve()
        candidate = (root / relative).resolve()
        if not candidate.is_relative_to(root) or candidate == root:
            return None
        return candidate

    def delete(self, storage_path: str) -> bool:
        """Remove a previously stored thumbnail; missing files are not an error."""
        path = self.resolve(storage_path)
        if path is None:
            Log.warning(f"Refusing to delete thumbnail outside storage root: {storage_path}")
            return False
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise ThumbnailStorageError(f"Failed to delete thumbnail: {exc}") from exc
        return True
