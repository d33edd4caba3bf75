from dataclasses import dataclass

from bookmarks_worker.config.settings import Settings
from bookmarks_worker.fetch.models import FetchMode
from bookmarks_worker.fetch.safe_fetcher import SafeFetcher
from bookmarks_worker.links.exceptions import UrlNotAllowedError
from bookmarks_worker.logging.logger import Log

RESTRICTED_STATUSES = frozenset({401, 403, 405, 429})


@dataclass(frozen=True)
class LinkCheckResult:
    broken: bool
    message: str
    http_status: int = 0


def classify_status(status: int) -> LinkCheckResult:
    """Map an HTTP status to a liveness verdict.

    Redirects count as healthy and auth/rate-limit responses as accessible,
    since the server is clearly up.
    """
    if 200 <= status < 300:
        return LinkCheckResult(False, "OK", status)
    if 300 <= status < 400:
        return LinkCheckResult(False, "Redirect", status)
    if status in RESTRICTED_STATUSES:
        return LinkCheckResult(False, "Accessible but restricted", status)
    if status == 0:
        return LinkCheckResult(True, "No response", status)
    if status >= 400:
        return LinkCheckResult(True, f"HTTP {status}", status)
    return LinkCheckResult(True, f"Unexpected status {status}", status)


class LinkChecker:
    """HEAD-based liveness check that never follows redirects."""

    def __init__(self, fetcher: SafeFetcher, settings: Settings) -> None:
        self._fetcher = fetcher
        self._settings = settings

    def check(self, url: str) -> LinkCheckResult:
        """Check ``url`` with a single HEAD request.

        Raises:
            UrlNotAllowedError: if the URL fails SSRF validation.
        """
        result = self._fetcher.fetch(
            url,
            FetchMode.HEAD,
            timeout=self._settings.link_check_timeout_seconds,
            follow_redirects=False,
        )
        if not result.success:
            if result.error is not None and result.error.is_policy_rejection:
                raise UrlNotAllowedError(result.message)
            Log.debug(f"Link check for {url} failed: {result.message}")
            return LinkCheckResult(True, result.message or "Request failed", result.http_status)
        return classify_status(result.http_status)
