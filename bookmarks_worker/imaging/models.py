from dataclasses import dataclass

_EXTENSIONS = {
    "JPEG": "jpg",
    # Multi-picture JPEG, common from phone cameras.
    "MPO": "jpg",
    "PNG": "png",
    "GIF": "gif",
    "WEBP": "webp",
    "ICO": "ico",
    "BMP": "bmp",
}


@dataclass(frozen=True)
class ImageInfo:
    """Header-level facts about an image; no pixels are decoded to build it."""

    width: int
    height: int
    format: str
    has_alpha: bool = False

    @property
    def extension(self) -> str:
        """File extension for ``format``; formats without a mapping get png."""
        return _EXTENSIONS.get(self.format.upper(), "png")

    def meets_minimum(self, min_width: int, min_height: int) -> bool:
        """Check both dimensions against a lower bound."""
        return self.width >= min_width and self.height >= min_height
