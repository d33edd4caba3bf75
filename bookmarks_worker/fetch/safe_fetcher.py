"""SSRF-guarded, size- and time-bounded HTTP client."""

import ipaddress
import re
import socket
import time
from collections.abc import Callable
from dataclasses import replace
from urllib.parse import urljoin, urlsplit

import httpx

from bookmarks_worker.config.settings import Settings
from bookmarks_worker.fetch.models import FetchError, FetchMode, FetchResult
from bookmarks_worker.logging.logger import Log

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address
Resolver = Callable[[str], list[IPAddress]]

_ALLOWED_SCHEMES = ("http", "https")
_CHARSET_PATTERN = re.compile(r"charset=[\"']?([\w.:-]+)", re.IGNORECASE)

REJECTED_MESSAGE = "URL not allowed: Private/internal addresses are blocked"

# Carrier-grade NAT; not covered by ipaddress.is_private.
_SHARED_ADDRESS_SPACE = ipaddress.ip_network("100.64.0.0/10")


def resolve_host(host: str) -> list[IPAddress]:
    """Resolve a hostname to every address getaddrinfo reports."""
    infos = socket.getaddrinfo(host, None)
    return [ipaddress.ip_address(str(info[4][0]).split("%")[0]) for info in infos]


def is_forbidden_address(address: IPAddress) -> bool:
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        address = address.ipv4_mapped
    return (
        address.is_private
        or address.is_loopback
        or address.is_link_local
        or address.is_reserved
        or address.is_multicast
        or address.is_unspecified
        or (address.version == 4 and address in _SHARED_ADDRESS_SPACE)
    )


class SafeFetcher:
    """Validates URLs against SSRF rules and performs bounded GET/HEAD requests.

    Every request uses a fresh ``httpx.Client`` with automatic redirects
    disabled. When a caller opts into following redirects they are followed
    here, one hop at a time, and each hop is validated like the original URL.

    Addresses are checked when a URL is validated; httpx resolves the host again
    when it connects, so a DNS answer that changes in between is not caught.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        transport: httpx.BaseTransport | None = None,
        resolver: Resolver = resolve_host,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._resolver = resolver

    @property
    def user_agent(self) -> str:
        """User-Agent header sent with every request."""
        return self._settings.http_user_agent

    def validate(self, url: str) -> bool:
        """True when ``url`` passes the SSRF policy."""
        return self.check(url) is None

    def check(self, url: str) -> FetchError | None:
        """Return the reason ``url`` is rejected, or None when it may be fetched.

        Hostnames that fail DNS resolution are allowed: they are treated as
        currently unreachable rather than forbidden.
        """
        try:
            parsed = urlsplit(url.strip())
            parsed.port  # raises ValueError for a malformed port
        except ValueError:
            return FetchError.INVALID_URL

        scheme = parsed.scheme.lower()
        if scheme and scheme not in _ALLOWED_SCHEMES:
            return FetchError.SCHEME_REJECTED
        host = (parsed.hostname or "").strip().rstrip(".")
        if not scheme or not host:
            return FetchError.INVALID_URL

        if host == "localhost" or host.endswith(".localhost"):
            return FetchError.PRIVATE_ADDRESS_REJECTED

        try:
            addresses: list[IPAddress] = [ipaddress.ip_address(host)]
        except ValueError:
            try:
                addresses = self._resolver(host)
            except (OSError, UnicodeError) as exc:
                Log.debug(f"DNS resolution failed for {host}, allowing: {exc}")
                return None

        if any(is_forbidden_address(address) for address in addresses):
            return FetchError.PRIVATE_ADDRESS_REJECTED
        return None

    def fetch(
        self,
        url: str,
        mode: FetchMode = FetchMode.GET,
        *,
        timeout: float | None = None,
        max_bytes: int | None = None,
        follow_redirects: bool = False,
        max_redirects: int | None = None,
        read_body: bool = True,
    ) -> FetchResult:
        """Fetch ``url`` under SSRF, size and time limits.

        Args:
            url: Absolute http(s) URL.
            mode: HEAD never reads a body.
            timeout: Total deadline in seconds across every hop and the body.
            max_bytes: Body ceiling; exceeding it is SIZE_LIMIT_EXCEEDED.
            follow_redirects: Follow 3xx responses manually, validating each hop.
            max_redirects: Hop cap when following.
            read_body: When False a GET returns status and headers only.
        """
        total = timeout if timeout is not None else self._settings.http_timeout_seconds
        ceiling = max_bytes if max_bytes is not None else self._settings.image_max_bytes
        hop_limit = (
            max_redirects if max_redirects is not None else self._settings.http_max_redirects
        )
        deadline = time.monotonic() + total
        current = url
        redirects = 0

        while True:
            rejection = self.check(current)
            if rejection is not None:
                return FetchResult.failure(
                    rejection, self.rejection_message(rejection), final_url=current
                )

            result = self._request(current, mode, deadline, ceiling, read_body)
            location = result.header("location")
            if not (
                follow_redirects
                and result.success
                and 300 <= result.http_status < 400
                and location
            ):
                return result

            redirects += 1
            if redirects > hop_limit:
                return FetchResult.failure(
                    FetchError.TOO_MANY_REDIRECTS,
                    f"Too many redirects (max {hop_limit})",
                    final_url=current,
                    http_status=result.http_status,
                )
            current = urljoin(current, location)
            Log.debug(f"Following redirect {redirects}/{hop_limit} to {current}")

    def fetch_text(
        self,
        url: str,
        *,
        timeout: float | None = None,
        max_bytes: int | None = None,
        follow_redirects: bool = True,
        max_redirects: int | None = None,
    ) -> FetchResult:
        """GET ``url`` and decode the body into ``text`` using the response charset."""
        result = self.fetch(
            url,
            FetchMode.GET,
            timeout=timeout,
            max_bytes=max_bytes,
            follow_redirects=follow_redirects,
            max_redirects=max_redirects,
        )
        if not result.success:
            return result
        encoding = "utf-8"
        match = _CHARSET_PATTERN.search(result.header("content-type") or "")
        if match:
            encoding = match.group(1)
        try:
            text = result.content.decode(encoding, errors="replace")
        except LookupError:
            text = result.content.decode("utf-8", errors="replace")
        return replace(result, text=text, content=b"")

    def _request(
        self,
        url: str,
        mode: FetchMode,
        deadline: float,
        max_bytes: int,
        read_body: bool,
    ) -> FetchResult:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return FetchResult.failure(FetchError.TIMEOUT, "Request timed out", final_url=url)
        timeout = httpx.Timeout(
            remaining, connect=min(self._settings.http_connect_timeout_seconds, remaining)
        )
        try:
            with httpx.Client(
                transport=self._transport,
                timeout=timeout,
                follow_redirects=False,
                headers={"User-Agent": self.user_agent},
            ) as client:
                with client.stream(mode.value.upper(), url) as response:
                    headers = {key.lower(): value for key, value in response.headers.items()}
                    status = response.status_code
                    content = b""
                    if mode is FetchMode.GET and read_body:
                        body = self._read_limited(response, deadline, max_bytes, url)
                        if isinstance(body, FetchResult):
                            return body
                        content = body
        except httpx.TimeoutException as exc:
            return FetchResult.failure(
                FetchError.TIMEOUT, f"Request timed out: {exc}", final_url=url
            )
        except httpx.TransportError as exc:
            return FetchResult.failure(
                FetchError.CONNECTION_ERROR, f"Connection failed: {exc}", final_url=url
            )
        except httpx.InvalidURL as exc:
            return FetchResult.failure(FetchError.INVALID_URL, f"Invalid URL: {exc}", final_url=url)
        except httpx.HTTPError as exc:
            return FetchResult.failure(FetchError.UNKNOWN, f"HTTP error: {exc}", final_url=url)

        return FetchResult(
            success=True,
            content=content,
            final_url=url,
            http_status=status,
            headers=headers,
        )

    @staticmethod
    def _read_limited(
        response: httpx.Response, deadline: float, max_bytes: int, url: str
    ) -> bytes | FetchResult:
        declared = response.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > max_bytes:
            return FetchResult.failure(
                FetchError.SIZE_LIMIT_EXCEEDED,
                f"Response too large: {declared} bytes (max {max_bytes})",
                final_url=url,
                http_status=response.status_code,
            )
        buffer = bytearray()
        for chunk in response.iter_bytes():
            buffer.extend(chunk)
            if len(buffer) > max_bytes:
                return FetchResult.failure(
                    FetchError.SIZE_LIMIT_EXCEEDED,
                    f"Response exceeded {max_bytes} bytes",
                    final_url=url,
                    http_status=response.status_code,
                )
            if time.monotonic() > deadline:
                return FetchResult.failure(
                    FetchError.TIMEOUT,
                    "Download exceeded total timeout",
                    final_url=url,
                    http_status=response.status_code,
                )
        return bytes(buffer)

    @staticmethod
    def rejection_message(error: FetchError) -> str:
        if error is FetchError.PRIVATE_ADDRESS_REJECTED:
            return REJECTED_MESSAGE
        if error is FetchError.SCHEME_REJECTED:
            return "URL not allowed: only http and https are supported"
        return "URL not allowed: malformed URL"
