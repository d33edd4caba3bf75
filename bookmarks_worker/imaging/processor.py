"""Pillow-backed image validation, downsampling and synthesis."""

import io

from PIL import Image, ImageDraw, UnidentifiedImageError

from bookmarks_worker.imaging.exceptions import (
    ImageProcessingError,
    ImageTooLargeError,
    NotAnImageError,
)
from bookmarks_worker.imaging.models import ImageInfo
from bookmarks_worker.imaging.synthesis import (
    draw_centered_lines,
    fit_line,
    load_font,
    placeholder_color,
    text_color_for,
    wrap_label,
)

DEFAULT_MAX_WIDTH = 300
DEFAULT_MAX_MEMORY_BYTES = 50 * 1024 * 1024
MAX_RESIZED_HEIGHT = 10_000
BYTES_PER_PIXEL = 4

_DECODE_ERRORS = (UnidentifiedImageError, OSError, ValueError, SyntaxError)


def _has_alpha(image: Image.Image) -> bool:
    return image.mode in ("RGBA", "LA", "PA") or (
        image.mode == "P" and "transparency" in image.info
    )


class ImageProcessor:
    """Validates and downsamples untrusted image bytes under a memory ceiling."""

    def __init__(self, max_memory_bytes: int = DEFAULT_MAX_MEMORY_BYTES) -> None:
        self._max_memory_bytes = max_memory_bytes

    @staticmethod
    def estimate_decoded_memory(width: int, height: int) -> int:
        return width * height * BYTES_PER_PIXEL

    def ensure_decodable(self, info: ImageInfo) -> None:
        """Raise ImageTooLargeError when decoding ``info`` would exceed the ceiling."""
        estimate = self.estimate_decoded_memory(info.width, info.height)
        if estimate > self._max_memory_bytes:
            raise ImageTooLargeError(
                f"Image dimensions too large ({info.width}x{info.height}, "
                f"potential decompression bomb)"
            )

    def decode(self, data: bytes) -> ImageInfo:
        """Identify an image from its header without decoding pixel data.

        Raises:
            NotAnImageError: if the bytes are empty or not a recognised image.
            ImageTooLargeError: if Pillow refuses the header as a decompression bomb.
        """
        if not data:
            raise NotAnImageError("Image data is empty")
        try:
            with Image.open(io.BytesIO(data)) as image:
                width, height = image.size
                return ImageInfo(
                    width=width,
                    height=height,
                    format=(image.format or "").upper(),
                    has_alpha=_has_alpha(image),
                )
        except Image.DecompressionBombError as exc:
            raise ImageTooLargeError(str(exc)) from exc
        except _DECODE_ERRORS as exc:
            raise NotAnImageError(f"Data is not a valid image: {exc}") from exc

    def resize(self, data: bytes, max_width: int = DEFAULT_MAX_WIDTH) -> bytes:
        """Downsample to ``max_width`` keeping aspect ratio and transparency.

        Returns ``data`` unchanged when the image is already narrow enough or
        when Pillow cannot decode or re-encode its format.

        Raises:
            ImageTooLargeError: if decoding would exceed the memory ceiling.
            ImageProcessingError: if the scaled height is out of bounds.
        """
        try:
            image = Image.open(io.BytesIO(data))
        except Image.DecompressionBombError as exc:
            raise ImageTooLargeError(str(exc)) from exc
        except _DECODE_ERRORS:
            return data

        with image:
            width, height = image.size
            if width <= max_width:
                return data
            self.ensure_decodable(
                ImageInfo(width=width, height=height, format=image.format or "")
            )

            new_height = int(height * (max_width / width))
            if new_height < 1 or new_height > MAX_RESIZED_HEIGHT:
                raise ImageProcessingError(
                    f"Resized height {new_height}px is out of bounds"
                )

            source_format = (image.format or "").upper()
            try:
                if _has_alpha(image):
                    converted, target_format = image.convert("RGBA"), "PNG"
                elif source_format in ("JPEG", "WEBP"):
                    converted, target_format = image.convert("RGB"), source_format
                else:
                    converted, target_format = image.convert("RGB"), "PNG"
                resized = converted.resize(
                    (max_width, new_height), Image.Resampling.LANCZOS
                )
                return self._encode(resized, target_format)
            except _DECODE_ERRORS:
                return data

    def synthesize_placeholder(
        self, domain_label: str, width: int = 256, height: int = 256
    ) -> bytes:
        """Render the domain name on a colour derived from the domain's hash."""
        label = domain_label.strip() or "unknown"
        background = placeholder_color(label)
        image = Image.new("RGB", (width, height), background)
        draw = ImageDraw.Draw(image)
        font = load_font(max(12, width // 12))
        max_chars = max(4, width // 16)
        padding = max(8, width // 16)
        lines = [
            fit_line(draw, line, font, width - 2 * padding)
            for line in wrap_label(label, max_chars=max_chars, max_lines=4)
        ]
        draw_centered_lines(draw, lines, font, (width, height), text_color_for(background))
        return self._encode(image, "PNG")

    def synthesize_type_icon(
        self,
        label: str,
        rgb_color: tuple[int, int, int],
        width: int = 256,
        height: int = 256,
    ) -> bytes:
        """Flat-colour icon with a centred label for non-HTML file types."""
        image = Image.new("RGB", (width, height), rgb_color)
        draw = ImageDraw.Draw(image)
        font = load_font(max(14, width // 8))
        padding = max(8, width // 16)
        lines = [fit_line(draw, line, font, width - 2 * padding) for line in label.split()]
        draw_centered_lines(draw, lines, font, (width, height), text_color_for(rgb_color))
        return self._encode(image, "PNG")

    @staticmethod
    def _encode(image: Image.Image, image_format: str) -> bytes:
        buffer = io.BytesIO()
        if image_format == "JPEG":
            image.save(buffer, format="JPEG", quality=85, optimize=True)
        elif image_format == "WEBP":
            image.save(buffer, format="WEBP", quality=85)
        else:
            image.save(buffer, format="PNG", compress_level=8)
        return buffer.getvalue()
