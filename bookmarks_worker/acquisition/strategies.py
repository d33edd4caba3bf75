import base64
import binascii
import json
from urllib.parse import urlencode, urlsplit

from bookmarks_worker.acquisition.base import AcquisitionStrategy
from bookmarks_worker.acquisition.downloader import CandidateDownloader
from bookmarks_worker.acquisition.exceptions import AcquisitionError, CandidateRejectedError
from bookmarks_worker.acquisition.file_types import file_type_for
from bookmarks_worker.acquisition.html_extraction import (
    absolute_url,
    find_content_images,
    find_meta_image,
)
from bookmarks_worker.acquisition.storage import ThumbnailStorage
from bookmarks_worker.config.settings import Settings
from bookmarks_worker.fetch.models import FetchMode, FetchResult
from bookmarks_worker.fetch.safe_fetcher import SafeFetcher
from bookmarks_worker.imaging.processor import ImageProcessor
from bookmarks_worker.logging.logger import Log

PAGESPEED_ENDPOINT = "https://www.googleapis.com/pagespeedonline/v5/runPagespeed"
PAGE_IMAGE_MIN_SIZE = (200, 100)
FAVICON_MIN_SIZE = (16, 16)


def display_domain(url: str) -> str:
    host = (urlsplit(url).hostname or "").lower()
    return host[4:] if host.startswith("www.") else host


def decode_screenshot_data(data: str) -> bytes:
    """Decode the PageSpeed screenshot payload.

    The payload may be a data URI and may use either the standard or the
    URL-safe base64 alphabet; URL-safe characters are only translated when
    they are actually present.
    """
    if data.startswith("data:"):
        data = data.partition(",")[2]
    data = "".join(data.split())
    if "-" in data or "_" in data:
        data = data.replace("_", "/").replace("-", "+")
    data += "=" * (-len(data) % 4)
    try:
        return base64.b64decode(data, validate=True)
    except binascii.Error as exc:
        raise AcquisitionError(f"Screenshot data is not valid base64: {exc}") from exc


class FileTypeIconStrategy(AcquisitionStrategy):
    """Synthesized icon for links to documents, archives and media files."""

    name = "file-type"

    def __init__(self, processor: ImageProcessor, storage: ThumbnailStorage) -> None:
        self._processor = processor
        self._storage = storage

    def acquire(self, url: str) -> str:
        file_type = file_type_for(url)
        if file_type is None:
            raise AcquisitionError("Not a recognised file type")
        data = self._processor.synthesize_type_icon(file_type.label, file_type.color)
        return self._storage.save(url, data, "png")


class PageSpeedStrategy(AcquisitionStrategy):
    """Rendered screenshot from the PageSpeed Insights API."""

    name = "pagespeed"

    def __init__(
        self,
        fetcher: SafeFetcher,
        downloader: CandidateDownloader,
        storage: ThumbnailStorage,
        settings: Settings,
    ) -> None:
        self._fetcher = fetcher
        self._downloader = downloader
        self._storage = storage
        self._settings = settings

    def api_url(self, url: str) -> str:
        query = urlencode(
            {
                "url": url,
                "key": self._settings.pagespeed_api_key,
                "category": "performance",
                "strategy": self._settings.pagespeed_strategy,
            }
        )
        return f"{PAGESPEED_ENDPOINT}?{query}"

    def acquire(self, url: str) -> str:
        if not self._settings.pagespeed_api_key:
            raise AcquisitionError("PageSpeed API key not configured")

        result = self._fetcher.fetch(
            self.api_url(url),
            FetchMode.GET,
            timeout=self._settings.pagespeed_timeout_seconds,
            max_bytes=self._settings.image_max_bytes,
        )
        if not result.success:
            raise AcquisitionError(f"PageSpeed request failed: {result.message}")
        payload = self._parse(result)
        if not result.ok:
            error = payload.get("error")
            detail = error.get("message") if isinstance(error, dict) else None
            raise AcquisitionError(
                f"PageSpeed API returned HTTP {result.http_status}"
                + (f": {detail}" if detail else "")
            )

        data = self._screenshot_data(payload)
        prepared = self._downloader.prepare(decode_screenshot_data(data), 1, 1)
        return self._storage.save(url, prepared.data, prepared.info.extension)

    @staticmethod
    def _parse(result: FetchResult) -> dict:
        try:
            payload = json.loads(result.content)
        except ValueError as exc:
            if not result.ok:
                return {}
            raise AcquisitionError(f"Invalid JSON from PageSpeed API: {exc}") from exc
        return payload if isinstance(payload, dict) else {}

    @staticmethod
    def _screenshot_data(payload: dict) -> str:
        try:
            data = payload["lighthouseResult"]["audits"]["final-screenshot"]["details"]["data"]
        except (KeyError, TypeError) as exc:
            raise AcquisitionError("No screenshot data in PageSpeed response") from exc
        if not isinstance(data, str) or not data:
            raise AcquisitionError("No screenshot data in PageSpeed response")
        return data


class _PageStrategy(AcquisitionStrategy):
    """Shared page loading for the strategies that read the bookmarked HTML."""

    def __init__(
        self,
        fetcher: SafeFetcher,
        downloader: CandidateDownloader,
        storage: ThumbnailStorage,
        settings: Settings,
    ) -> None:
        self._fetcher = fetcher
        self._downloader = downloader
        self._storage = storage
        self._settings = settings

    def _load_page(self, url: str) -> tuple[str, str]:
        """Return the page text and the URL it was finally served from."""
        result = self._fetcher.fetch_text(
            url,
            timeout=self._settings.http_timeout_seconds,
            max_bytes=self._settings.page_max_bytes,
        )
        if not result.success:
            raise AcquisitionError(f"Failed to fetch page: {result.message}")
        if not result.ok:
            raise AcquisitionError(f"Failed to fetch page: HTTP {result.http_status}")
        return result.text or "", result.final_url or url


class OgImageStrategy(_PageStrategy):
    """Image advertised by the page's og:image or twitter:image meta tag."""

    name = "og:image"

    def acquire(self, url: str) -> str:
        page, base_url = self._load_page(url)
        candidate = find_meta_image(page, self._settings.og_search_chars)
        if candidate is None:
            raise AcquisitionError("No og:image or twitter:image found")
        image_url = absolute_url(candidate, base_url)
        if image_url is None:
            raise AcquisitionError(f"Unusable og:image URL: {candidate}")
        prepared = self._downloader.download(image_url, *PAGE_IMAGE_MIN_SIZE)
        return self._storage.save(url, prepared.data, prepared.info.extension)


class ContentImageStrategy(_PageStrategy):
    """First acceptable image inside the page's main content area."""

    name = "content-image"

    def acquire(self, url: str) -> str:
        page, base_url = self._load_page(url)
        candidates = find_content_images(
            page, base_url, limit=self._settings.content_image_candidates
        )
        if not candidates:
            raise AcquisitionError("No content images found")

        last_error = ""
        for image_url in candidates[: self._settings.content_image_attempts]:
            try:
                prepared = self._downloader.download(image_url, *PAGE_IMAGE_MIN_SIZE)
            except CandidateRejectedError as exc:
                Log.debug(f"Content image candidate rejected: {exc}")
                last_error = str(exc)
                continue
            return self._storage.save(url, prepared.data, prepared.info.extension)
        raise AcquisitionError(f"No usable content image: {last_error}")


class FaviconStrategy(AcquisitionStrategy):
    """Large favicon from a favicon service for the bookmark's domain."""

    name = "favicon"

    def __init__(
        self,
        downloader: CandidateDownloader,
        storage: ThumbnailStorage,
        settings: Settings,
    ) -> None:
        self._downloader = downloader
        self._storage = storage
        self._settings = settings

    def service_url(self, url: str) -> str:
        host = urlsplit(url).hostname
        if not host:
            raise AcquisitionError("URL has no host")
        query = urlencode({"domain": host, "sz": self._settings.favicon_size})
        return f"{self._settings.favicon_service_url}?{query}"

    def acquire(self, url: str) -> str:
        prepared = self._downloader.download(self.service_url(url), *FAVICON_MIN_SIZE)
        return self._storage.save(url, prepared.data, prepared.info.extension)


class PlaceholderStrategy(AcquisitionStrategy):
    """Synthesized domain card; succeeds unless the file cannot be written."""

    name = "placeholder"

    def __init__(self, processor: ImageProcessor, storage: ThumbnailStorage) -> None:
        self._processor = processor
        self._storage = storage

    def acquire(self, url: str) -> str:
        data = self._processor.synthesize_placeholder(display_domain(url) or url)
        return self._storage.save(url, data, "png")
