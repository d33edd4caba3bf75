import base64
import io
import json

import httpx
import pytest
from PIL import Image

from bookmarks_worker.acquisition.downloader import CandidateDownloader
from bookmarks_worker.acquisition.exceptions import AcquisitionError
from bookmarks_worker.acquisition.storage import ThumbnailStorage
from bookmarks_worker.acquisition.strategies import (
    ContentImageStrategy,
    FaviconStrategy,
    FileTypeIconStrategy,
    OgImageStrategy,
    PageSpeedStrategy,
    PlaceholderStrategy,
    decode_screenshot_data,
)
from bookmarks_worker.config.settings import Settings
from bookmarks_worker.imaging.processor import ImageProcessor


@pytest.fixture()
def storage(settings: Settings) -> ThumbnailStorage:
    return ThumbnailStorage(settings.screenshots_root, settings.screenshots_url_prefix)


def _stored_size(storage: ThumbnailStorage, path: str) -> tuple[int, int]:
    stored = storage.resolve(path)
    assert stored is not None and stored.exists()
    with Image.open(io.BytesIO(stored.read_bytes())) as image:
        return image.size


def _html(body: str) -> httpx.Response:
    return httpx.Response(200, text=body, headers={"Content-Type": "text/html; charset=utf-8"})


def _image(data: bytes, content_type: str = "image/jpeg") -> httpx.Response:
    return httpx.Response(200, content=data, headers={"Content-Type": content_type})


class TestDecodeScreenshotData:
    def test_standard_alphabet_is_left_alone(self) -> None:
        assert decode_screenshot_data("+//+") == b"\xfb\xff\xfe"

    def test_url_safe_alphabet_is_translated(self) -> None:
        assert decode_screenshot_data("-__-") == b"\xfb\xff\xfe"

    def test_strips_data_uri_prefix_and_fixes_padding(self) -> None:
        assert decode_screenshot_data("data:image/jpeg;base64,+/8") == b"\xfb\xff"

    def test_invalid_payload_raises(self) -> None:
        with pytest.raises(AcquisitionError):
            decode_screenshot_data("@@@@")


class TestFileTypeIconStrategy:
    def test_pdf_gets_red_type_icon(self, storage: ThumbnailStorage) -> None:
        strategy = FileTypeIconStrategy(ImageProcessor(), storage)

        outcome = strategy.try_acquire("https://example.com/files/report.PDF?download=1")

        assert outcome.success is True
        assert outcome.method == "file-type"
        stored = storage.resolve(outcome.storage_path)
        with Image.open(io.BytesIO(stored.read_bytes())) as image:
            assert image.convert("RGB").getpixel((0, 0)) == (211, 47, 47)

    def test_html_page_falls_through(self, storage: ThumbnailStorage) -> None:
        outcome = FileTypeIconStrategy(ImageProcessor(), storage).try_acquire(
            "https://example.com/about.html"
        )

        assert outcome.success is False
        assert outcome.error == "Not a recognised file type"


class TestPageSpeedStrategy:
    def _strategy(self, make_fetcher, settings, storage, handler) -> PageSpeedStrategy:
        fetcher = make_fetcher(handler, fetcher_settings=settings)
        downloader = CandidateDownloader(fetcher, ImageProcessor(), settings)
        return PageSpeedStrategy(fetcher, downloader, storage, settings)

    def test_missing_api_key_falls_through_without_request(
        self, make_fetcher, settings, storage
    ) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(500)

        outcome = self._strategy(make_fetcher, settings, storage, handler).try_acquire(
            "https://example.com/"
        )

        assert outcome.success is False
        assert "not configured" in outcome.error
        assert calls == []

    def test_saves_decoded_screenshot(self, make_fetcher, settings, storage, make_image) -> None:
        keyed = settings.model_copy(update={"pagespeed_api_key": "secret"})
        screenshot = base64.b64encode(make_image(1200, 800, "JPEG")).decode()
        payload = {
            "lighthouseResult": {
                "audits": {
                    "final-screenshot": {
                        "details": {"data": f"data:image/jpeg;base64,{screenshot}"}
                    }
                }
            }
        }
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=json.dumps(payload).encode())

        outcome = self._strategy(make_fetcher, keyed, storage, handler).try_acquire(
            "https://example.com/"
        )

        assert outcome.success is True
        assert outcome.method == "pagespeed"
        assert _stored_size(storage, outcome.storage_path) == (300, 200)
        params = seen[0].url.params
        assert params["url"] == "https://example.com/"
        assert params["key"] == "secret"
        assert params["category"] == "performance"
        assert params["strategy"] == keyed.pagespeed_strategy

    def test_api_error_falls_through(self, make_fetcher, settings, storage) -> None:
        keyed = settings.model_copy(update={"pagespeed_api_key": "secret"})
        body = json.dumps({"error": {"message": "API key not valid"}}).encode()

        outcome = self._strategy(
            make_fetcher, keyed, storage, lambda request: httpx.Response(400, content=body)
        ).try_acquire("https://example.com/")

        assert outcome.success is False
        assert "HTTP 400" in outcome.error
        assert "API key not valid" in outcome.error

    def test_response_without_screenshot_falls_through(
        self, make_fetcher, settings, storage
    ) -> None:
        keyed = settings.model_copy(update={"pagespeed_api_key": "secret"})

        outcome = self._strategy(
            make_fetcher, keyed, storage, lambda request: httpx.Response(200, content=b"{}")
        ).try_acquire("https://example.com/")

        assert outcome.success is False
        assert "No screenshot data" in outcome.error


class TestOgImageStrategy:
    def _strategy(self, make_fetcher, settings, storage, handler) -> OgImageStrategy:
        fetcher = make_fetcher(handler)
        downloader = CandidateDownloader(fetcher, ImageProcessor(), settings)
        return OgImageStrategy(fetcher, downloader, storage, settings)

    def test_downloads_and_resizes_og_image(
        self, make_fetcher, settings, storage, make_image
    ) -> None:
        image = make_image(800, 400, "JPEG")

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "cdn.example.com":
                return _image(image)
            return _html('<meta property="og:image" content="//cdn.example.com/og.jpg">')

        outcome = self._strategy(make_fetcher, settings, storage, handler).try_acquire(
            "https://example.com/post"
        )

        assert outcome.success is True
        assert outcome.method == "og:image"
        assert outcome.storage_path.startswith("screenshots/example_com/")
        assert outcome.storage_path.endswith(".jpg")
        assert _stored_size(storage, outcome.storage_path) == (300, 150)

    def test_rejects_tracking_pixel_sized_og_image(
        self, make_fetcher, settings, storage, make_image
    ) -> None:
        image = make_image(120, 60, "PNG")

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/og.png":
                return _image(image, "image/png")
            return _html('<meta property="og:image" content="/og.png">')

        outcome = self._strategy(make_fetcher, settings, storage, handler).try_acquire(
            "https://example.com/"
        )

        assert outcome.success is False
        assert "too small" in outcome.error

    def test_og_image_on_private_host_is_rejected(
        self, make_fetcher, settings, storage
    ) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return _html('<meta property="og:image" content="http://127.0.0.1/secret.png">')

        outcome = self._strategy(make_fetcher, settings, storage, handler).try_acquire(
            "https://example.com/"
        )

        assert outcome.success is False
        assert "Private/internal" in outcome.error
        assert [request.url.host for request in calls] == ["example.com"]

    def test_tall_image_over_memory_ceiling_is_rejected_before_resize(
        self, make_fetcher, settings, make_image
    ) -> None:
        tight = settings.model_copy(update={"image_max_memory_bytes": 500_000})
        storage = ThumbnailStorage(tight.screenshots_root, tight.screenshots_url_prefix)
        tall = make_image(300, 6000, "PNG")

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/tall.png":
                return _image(tall, "image/png")
            return _html('<meta property="og:image" content="/tall.png">')

        fetcher = make_fetcher(handler, fetcher_settings=tight)
        downloader = CandidateDownloader(
            fetcher, ImageProcessor(tight.image_max_memory_bytes), tight
        )
        outcome = OgImageStrategy(fetcher, downloader, storage, tight).try_acquire(
            "https://example.com/"
        )

        assert outcome.success is False
        assert "decompression bomb" in outcome.error
        assert not any(p.is_file() for p in tight.screenshots_root.rglob("*"))

    def test_favicon_over_memory_ceiling_is_rejected(
        self, make_fetcher, settings, make_image
    ) -> None:
        tight = settings.model_copy(update={"image_max_memory_bytes": 100_000})
        storage = ThumbnailStorage(tight.screenshots_root, tight.screenshots_url_prefix)
        icon = make_image(256, 256, "PNG")

        fetcher = make_fetcher(lambda request: _image(icon, "image/png"), fetcher_settings=tight)
        downloader = CandidateDownloader(
            fetcher, ImageProcessor(tight.image_max_memory_bytes), tight
        )
        outcome = FaviconStrategy(downloader, storage, tight).try_acquire("https://example.com/")

        assert outcome.success is False
        assert "decompression bomb" in outcome.error
        assert not any(p.is_file() for p in tight.screenshots_root.rglob("*"))

    def test_page_without_meta_falls_through(self, make_fetcher, settings, storage) -> None:
        outcome = self._strategy(
            make_fetcher, settings, storage, lambda request: _html("<p>plain</p>")
        ).try_acquire("https://example.com/")

        assert outcome.success is False
        assert outcome.error == "No og:image or twitter:image found"


class TestContentImageStrategy:
    def test_tries_next_candidate_after_failure(
        self, make_fetcher, settings, storage, make_image
    ) -> None:
        image = make_image(600, 400, "PNG")

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/broken.jpg":
                return httpx.Response(404)
            if request.url.path == "/good.png":
                return _image(image, "image/png")
            return _html('<main><img src="/broken.jpg"><img src="/good.png"></main>')

        fetcher = make_fetcher(handler)
        strategy = ContentImageStrategy(
            fetcher, CandidateDownloader(fetcher, ImageProcessor(), settings), storage, settings
        )

        outcome = strategy.try_acquire("https://example.com/article")

        assert outcome.success is True
        assert outcome.method == "content-image"
        assert _stored_size(storage, outcome.storage_path) == (300, 200)

    def test_download_attempts_are_capped(self, make_fetcher, settings, storage) -> None:
        image_requests: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.startswith("/p"):
                image_requests.append(request.url.path)
                return httpx.Response(404)
            return _html(
                "<main>" + "".join(f'<img src="/p{i}.jpg">' for i in range(8)) + "</main>"
            )

        fetcher = make_fetcher(handler)
        strategy = ContentImageStrategy(
            fetcher, CandidateDownloader(fetcher, ImageProcessor(), settings), storage, settings
        )

        outcome = strategy.try_acquire("https://example.com/")

        assert outcome.success is False
        assert len(image_requests) == settings.content_image_attempts


class TestFaviconStrategy:
    def test_requests_service_for_domain(self, make_fetcher, settings, storage, make_image) -> None:
        seen: list[httpx.Request] = []
        icon = make_image(32, 32, "PNG")

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _image(icon, "image/png")

        fetcher = make_fetcher(handler)
        strategy = FaviconStrategy(
            CandidateDownloader(fetcher, ImageProcessor(), settings), storage, settings
        )

        outcome = strategy.try_acquire("https://www.example.com/deep/page")

        assert outcome.success is True
        assert outcome.method == "favicon"
        assert seen[0].url.params["domain"] == "www.example.com"
        assert seen[0].url.params["sz"] == "256"

    def test_rejects_icon_below_sixteen_pixels(
        self, make_fetcher, settings, storage, make_image
    ) -> None:
        icon = make_image(8, 8, "PNG")
        fetcher = make_fetcher(lambda request: _image(icon, "image/png"))
        strategy = FaviconStrategy(
            CandidateDownloader(fetcher, ImageProcessor(), settings), storage, settings
        )

        assert strategy.try_acquire("https://example.com/").success is False


class TestPlaceholderStrategy:
    def test_always_produces_png(self, storage: ThumbnailStorage) -> None:
        outcome = PlaceholderStrategy(ImageProcessor(), storage).try_acquire(
            "https://www.example.com/"
        )

        assert outcome.success is True
        assert outcome.method == "placeholder"
        assert outcome.storage_path.endswith(".png")
        assert _stored_size(storage, outcome.storage_path) == (256, 256)
