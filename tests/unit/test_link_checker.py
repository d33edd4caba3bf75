import httpx
import pytest

from bookmarks_worker.links.exceptions import UrlNotAllowedError
from bookmarks_worker.links.link_checker import LinkChecker, classify_status


class TestClassifyStatus:
    @pytest.mark.parametrize(
        "status,broken,message",
        [
            (200, False, "OK"),
            (204, False, "OK"),
            (301, False, "Redirect"),
            (302, False, "Redirect"),
            (401, False, "Accessible but restricted"),
            (403, False, "Accessible but restricted"),
            (405, False, "Accessible but restricted"),
            (429, False, "Accessible but restricted"),
            (404, True, "HTTP 404"),
            (410, True, "HTTP 410"),
            (500, True, "HTTP 500"),
        ],
    )
    def test_maps_status(self, status: int, broken: bool, message: str) -> None:
        result = classify_status(status)

        assert result.broken is broken
        assert result.message == message
        assert result.http_status == status

    def test_status_zero_is_broken(self) -> None:
        assert classify_status(0).broken is True


class TestLinkChecker:
    def _checker(self, make_fetcher, settings, handler) -> LinkChecker:
        return LinkChecker(make_fetcher(handler), settings)

    def test_uses_head_request(self, make_fetcher, settings) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200)

        result = self._checker(make_fetcher, settings, handler).check("https://example.com/")

        assert result.broken is False
        assert [request.method for request in seen] == ["HEAD"]

    def test_forbidden_is_accessible_but_restricted(self, make_fetcher, settings) -> None:
        result = self._checker(
            make_fetcher, settings, lambda request: httpx.Response(403)
        ).check("https://example.com/members")

        assert result.broken is False
        assert result.message == "Accessible but restricted"

    def test_redirect_to_private_address_is_not_followed(self, make_fetcher, settings) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(302, headers={"Location": "http://127.0.0.1/admin"})

        result = self._checker(make_fetcher, settings, handler).check("https://example.com/")

        assert result.broken is False
        assert result.message == "Redirect"
        assert result.http_status == 302
        assert [request.url.host for request in seen] == ["example.com"]

    def test_not_found_is_broken(self, make_fetcher, settings) -> None:
        result = self._checker(
            make_fetcher, settings, lambda request: httpx.Response(404)
        ).check("https://example.com/gone")

        assert result.broken is True
        assert result.http_status == 404

    def test_connection_error_is_broken(self, make_fetcher, settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        result = self._checker(make_fetcher, settings, handler).check("https://example.com/")

        assert result.broken is True
        assert result.http_status == 0

    def test_timeout_is_broken(self, make_fetcher, settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        assert self._checker(make_fetcher, settings, handler).check("https://example.com/").broken

    def test_private_url_raises(self, make_fetcher, settings) -> None:
        checker = self._checker(make_fetcher, settings, lambda request: httpx.Response(200))

        with pytest.raises(UrlNotAllowedError, match="Private/internal"):
            checker.check("http://192.168.0.10/")
