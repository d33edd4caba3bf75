from bookmarks_worker.acquisition.exceptions import CandidateRejectedError
from bookmarks_worker.acquisition.models import PreparedImage
from bookmarks_worker.config.settings import Settings
from bookmarks_worker.fetch.models import FetchMode
from bookmarks_worker.fetch.safe_fetcher import SafeFetcher
from bookmarks_worker.imaging.exceptions import ImageError
from bookmarks_worker.imaging.processor import ImageProcessor


class CandidateDownloader:
    """Security gate every remote image candidate passes before it is stored.

    SSRF validation, the byte ceiling and the total deadline are enforced by
    the fetcher; decoding, minimum dimensions, the decoded-memory ceiling and
    resizing happen here.
    """

    def __init__(
        self,
        fetcher: SafeFetcher,
        processor: ImageProcessor,
        settings: Settings,
    ) -> None:
        self._fetcher = fetcher
        self._processor = processor
        self._settings = settings

    def download(self, image_url: str, min_width: int, min_height: int) -> PreparedImage:
        """Fetch ``image_url`` and return it validated and resized.

        Raises:
            CandidateRejectedError: if any step of the gate fails.
        """
        result = self._fetcher.fetch(
            image_url,
            FetchMode.GET,
            timeout=self._settings.http_timeout_seconds,
            max_bytes=self._settings.image_max_bytes,
            follow_redirects=True,
        )
        if not result.success:
            raise CandidateRejectedError(f"Failed to download {image_url}: {result.message}")
        if not result.ok:
            raise CandidateRejectedError(
                f"Failed to download {image_url}: HTTP {result.http_status}"
            )
        return self.prepare(result.content, min_width, min_height)

    def prepare(self, data: bytes, min_width: int, min_height: int) -> PreparedImage:
        """Validate raw image bytes and downsample them to the thumbnail width."""
        try:
            info = self._processor.decode(data)
            if not info.meets_minimum(min_width, min_height):
                raise CandidateRejectedError(
                    f"Image too small ({info.width}x{info.height}, "
                    f"minimum {min_width}x{min_height})"
                )
            self._processor.ensure_decodable(info)
            resized = self._processor.resize(data, self._settings.screenshot_max_width)
            final_info = info if resized is data else self._processor.decode(resized)
        except ImageError as exc:
            raise CandidateRejectedError(str(exc)) from exc
        return PreparedImage(data=resized, info=final_info)
