from typing import Any


class FetchFailedError(Exception):
    """Raised when a fetch is required to succeed with a 2xx response and did not."""

    def __init__(self, message: str, *, error: Any = None, http_status: int = 0) -> None:
        super().__init__(message)
        self.error = error
        self.http_status = http_status
