class UrlNotAllowedError(Exception):
    """Raised when a URL is rejected by the SSRF policy before any request is made."""
