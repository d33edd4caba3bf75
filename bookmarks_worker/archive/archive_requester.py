from urllib.parse import urljoin

from bookmarks_worker.archive.exceptions import ArchiveRequestError
from bookmarks_worker.config.settings import Settings
from bookmarks_worker.fetch.models import FetchError, FetchMode
from bookmarks_worker.fetch.safe_fetcher import SafeFetcher
from bookmarks_worker.links.exceptions import UrlNotAllowedError
from bookmarks_worker.logging.logger import Log

ARCHIVE_HOST = "https://web.archive.org"
SAVE_ENDPOINT = f"{ARCHIVE_HOST}/save/"
_TRANSIENT_ERRORS = (FetchError.TIMEOUT, FetchError.CONNECTION_ERROR)


def fallback_permalink(url: str) -> str:
    return f"{ARCHIVE_HOST}/web/*/{url}"


class ArchiveRequester:
    """Asks the Wayback Machine to capture a URL and returns a permalink."""

    def __init__(self, fetcher: SafeFetcher, settings: Settings) -> None:
        self._fetcher = fetcher
        self._settings = settings

    def archive(self, url: str) -> str:
        """Request a capture of ``url``.

        Returns:
            The snapshot URL from the save response, or the wildcard
            listing for ``url`` when the response names none.

        Raises:
            UrlNotAllowedError: if ``url`` fails SSRF validation.
            ArchiveRequestError: on timeout, connection failure or a 5xx response.
        """
        rejection = self._fetcher.check(url)
        if rejection is not None:
            raise UrlNotAllowedError(self._fetcher.rejection_message(rejection))

        result = self._fetcher.fetch(
            f"{SAVE_ENDPOINT}{url}",
            FetchMode.GET,
            timeout=self._settings.archive_timeout_seconds,
            follow_redirects=False,
            read_body=False,
        )
        if not result.success:
            if result.error in _TRANSIENT_ERRORS:
                raise ArchiveRequestError(f"Archive request failed: {result.message}")
            Log.warning(f"Archive request for {url} failed, using fallback: {result.message}")
            return fallback_permalink(url)
        if result.http_status >= 500:
            raise ArchiveRequestError(f"Archive service returned HTTP {result.http_status}")

        location = result.header("location") or result.header("content-location")
        if location:
            return urljoin(ARCHIVE_HOST, location)
        return fallback_permalink(url)
