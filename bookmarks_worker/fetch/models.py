from dataclasses import dataclass, field
from enum import Enum

from bookmarks_worker.fetch.exceptions import FetchFailedError


class FetchMode(str, Enum):
    HEAD = "head"
    GET = "get"


class FetchError(str, Enum):
    """Classified reason a fetch did not produce a usable response."""

    INVALID_URL = "invalid_url"
    SCHEME_REJECTED = "scheme_rejected"
    PRIVATE_ADDRESS_REJECTED = "private_address_rejected"
    TIMEOUT = "timeout"
    CONNECTION_ERROR = "connection_error"
    SIZE_LIMIT_EXCEEDED = "size_limit_exceeded"
    TOO_MANY_REDIRECTS = "too_many_redirects"
    UNKNOWN = "unknown"

    @property
    def is_policy_rejection(self) -> bool:
        return self in (
            FetchError.INVALID_URL,
            FetchError.SCHEME_REJECTED,
            FetchError.PRIVATE_ADDRESS_REJECTED,
        )


@dataclass
class FetchResult:
    """Outcome of a single SafeFetcher call.

    ``success`` means a response was received within every limit; callers
    inspect ``http_status`` (or ``ok``) to decide what the response means.
    Only one of ``content`` and ``text`` is populated.
    """

    success: bool
    content: bytes = b""
    text: str | None = None
    error: FetchError | None = None
    message: str = ""
    final_url: str = ""
    http_status: int = 0
    headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def failure(
        cls,
        error: FetchError,
        message: str,
        final_url: str = "",
        http_status: int = 0,
    ) -> "FetchResult":
        return cls(
            success=False,
            error=error,
            message=message,
            final_url=final_url,
            http_status=http_status,
        )

    @property
    def ok(self) -> bool:
        return self.success and 200 <= self.http_status < 300

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())

    def require_ok(self) -> "FetchResult":
        """Return self for a 2xx response, raise FetchFailedError otherwise."""
        if not self.success:
            raise FetchFailedError(self.message or "Fetch failed", error=self.error)
        if not self.ok:
            raise FetchFailedError(f"HTTP {self.http_status}", http_status=self.http_status)
        return self
