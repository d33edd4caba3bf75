"""Thumbnail candidate extraction from untrusted HTML.

Pages are parsed with BeautifulSoup's ``html.parser`` after being cut to a
fixed number of characters, so work per page is bounded and linear.
"""

import html
import re
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup, Tag

from bookmarks_worker.acquisition.file_types import url_extension

_META_IMAGE_KEYS = ("og:image", "twitter:image")
_META_KEY_ATTRIBUTES = ("property", "name")
_BOILERPLATE_TAGS = ["nav", "header", "footer", "aside"]
_CONTENT_SEARCH_CHARS = 1024 * 1024
_MAX_IMG_TAGS = 100

_JUNK_IMAGE = re.compile(r"\b(icon|logo|avatar|pixel|1x1|tracking|sprite)\b", re.IGNORECASE)
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_CONTENT_HINT = re.compile(r"content|main|post|article", re.IGNORECASE)


def _parse(page: str, max_chars: int) -> BeautifulSoup:
    return BeautifulSoup(page[:max_chars], "html.parser")


def find_meta_image(page: str, search_chars: int = 512_000) -> str | None:
    """Return the og:image (else twitter:image) content within the first ``search_chars``."""
    soup = _parse(page, search_chars)
    for key in _META_IMAGE_KEYS:
        exact = re.compile(rf"^\s*{re.escape(key)}\s*$", re.IGNORECASE)
        for attribute in _META_KEY_ATTRIBUTES:
            for meta in soup.find_all("meta", attrs={attribute: exact}):
                content = meta.get("content")
                if isinstance(content, str) and content.strip():
                    return content.strip()
    return None


def _looks_like_content(tag: Tag) -> bool:
    if tag.name != "div":
        return False
    classes = tag.get("class") or []
    if isinstance(classes, str):
        classes = [classes]
    identifier = tag.get("id") or ""
    return any(_CONTENT_HINT.search(value) for value in [*classes, str(identifier)])


def content_region(page: str) -> Tag:
    """Parse the page, drop navigation chrome and narrow to the main content container.

    Only the first MiB of the page is considered.
    """
    soup = _parse(page, _CONTENT_SEARCH_CHARS)
    for element in soup.find_all(_BOILERPLATE_TAGS):
        # Nested chrome is already gone once its ancestor is decomposed.
        if not element.decomposed:
            element.decompose()
    return soup.find("main") or soup.find("article") or soup.find(_looks_like_content) or soup


def is_candidate_image(src: str) -> bool:
    src = src.strip()
    if not src or src.lower().startswith("data:"):
        return False
    if _JUNK_IMAGE.search(src):
        return False
    return url_extension(src) != "svg"


def find_content_images(page: str, base_url: str, limit: int = 10) -> list[str]:
    """Absolute URLs of up to ``limit`` plausible content images, in document order."""
    candidates: list[str] = []
    for img in content_region(page).find_all("img", src=True, limit=_MAX_IMG_TAGS):
        if len(candidates) >= limit:
            break
        src = img.get("src")
        if not isinstance(src, str) or not is_candidate_image(src):
            continue
        absolute = absolute_url(src, base_url)
        if absolute and absolute not in candidates:
            candidates.append(absolute)
    return candidates


def absolute_url(candidate: str, base_url: str) -> str | None:
    """Resolve ``candidate`` against ``base_url``; None unless the result is http(s)."""
    cleaned = _CONTROL_CHARS.sub("", html.unescape(candidate).strip())
    if not cleaned:
        return None
    try:
        resolved = urljoin(base_url, cleaned)
        parsed = urlsplit(resolved)
    except ValueError:
        return None
    if parsed.scheme.lower() not in ("http", "https") or not parsed.hostname:
        return None
    return resolved
