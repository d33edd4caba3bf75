import io
import ipaddress
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest
from PIL import Image

from bookmarks_worker.config.settings import Settings
from bookmarks_worker.fetch.safe_fetcher import SafeFetcher

PUBLIC_ADDRESS = ipaddress.ip_address("93.184.216.34")

ImageFactory = Callable[..., bytes]
FetcherFactory = Callable[..., SafeFetcher]


def _public_resolver(host: str) -> list[ipaddress.IPv4Address | ipaddress.IPv6Address]:
    return [PUBLIC_ADDRESS]


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        db_engine="sqlite",
        db_path=tmp_path / "bookmarks.db",
        screenshots_root=tmp_path / "screenshots",
        pagespeed_api_key="",
    )


@pytest.fixture()
def make_image() -> ImageFactory:
    """Build encoded image bytes of a given size, format and mode."""

    def _make(
        width: int = 400,
        height: int = 300,
        image_format: str = "PNG",
        mode: str = "RGB",
        color: tuple[int, ...] = (200, 60, 60),
    ) -> bytes:
        buffer = io.BytesIO()
        Image.new(mode, (width, height), color).save(buffer, format=image_format)
        return buffer.getvalue()

    return _make


@pytest.fixture()
def make_fetcher(settings: Settings) -> FetcherFactory:
    """SafeFetcher over an httpx.MockTransport; DNS answers with a public address."""

    def _make(
        handler: Callable[[httpx.Request], httpx.Response],
        resolver: Callable[[str], list] = _public_resolver,
        fetcher_settings: Settings | None = None,
    ) -> SafeFetcher:
        return SafeFetcher(
            fetcher_settings or settings,
            transport=httpx.MockTransport(handler),
            resolver=resolver,
        )

    return _make
