"""Text layout and colour helpers for procedurally drawn thumbnails."""

import colorsys
import hashlib
import re

from PIL import ImageDraw, ImageFont

ELLIPSIS = "..."
_SEGMENT = re.compile(r"[^.\-_/]*[.\-_/]|[^.\-_/]+")

FontType = ImageFont.FreeTypeFont | ImageFont.ImageFont


def placeholder_color(domain: str) -> tuple[int, int, int]:
    """Deterministic mid-tone colour for a domain, derived from its MD5 digest."""
    digest = hashlib.md5(domain.strip().lower().encode("utf-8")).digest()
    hue = int.from_bytes(digest[:2], "big") % 360
    saturation = 0.45 + (digest[2] % 20) / 100
    red, green, blue = colorsys.hls_to_rgb(hue / 360, 0.42, saturation)
    return (round(red * 255), round(green * 255), round(blue * 255))


def text_color_for(background: tuple[int, int, int]) -> tuple[int, int, int]:
    red, green, blue = background
    luminance = 0.299 * red + 0.587 * green + 0.114 * blue
    return (33, 37, 41) if luminance > 160 else (255, 255, 255)


def wrap_label(text: str, max_chars: int = 16, max_lines: int = 4) -> list[str]:
    """Greedy word-wrap that also breaks domains after '.', '-', '_' and '/'.

    Overlong segments are hard-split; when more than ``max_lines`` lines are
    needed, the last kept line ends with an ellipsis.
    """
    pieces: list[str] = []
    for word in text.split():
        for index, part in enumerate(_SEGMENT.findall(word)):
            pieces.append((" " if index == 0 and pieces else "") + part)

    lines: list[str] = []
    current = ""
    for piece in pieces:
        if not current or len(current + piece) <= max_chars:
            current += piece if current else piece.lstrip()
            continue
        lines.append(current)
        current = piece.lstrip()
    if current:
        lines.append(current)

    wrapped: list[str] = []
    for line in lines:
        while len(line) > max_chars:
            wrapped.append(line[:max_chars])
            line = line[max_chars:]
        if line:
            wrapped.append(line)

    if len(wrapped) > max_lines:
        wrapped = wrapped[:max_lines]
        wrapped[-1] = wrapped[-1][: max_chars - len(ELLIPSIS)].rstrip() + ELLIPSIS
    return wrapped


def fit_line(draw: ImageDraw.ImageDraw, line: str, font: FontType, max_width: float) -> str:
    """Shorten ``line`` with an ellipsis until it fits ``max_width`` pixels."""
    if draw.textlength(line, font=font) <= max_width:
        return line
    trimmed = line
    while trimmed and draw.textlength(trimmed + ELLIPSIS, font=font) > max_width:
        trimmed = trimmed[:-1]
    return trimmed.rstrip() + ELLIPSIS


def load_font(size: int) -> FontType:
    return ImageFont.load_default(size=size)


def draw_centered_lines(
    draw: ImageDraw.ImageDraw,
    lines: list[str],
    font: FontType,
    canvas: tuple[int, int],
    fill: tuple[int, int, int],
    line_spacing: int = 6,
) -> None:
    width, height = canvas
    boxes = [draw.textbbox((0, 0), line, font=font) for line in lines]
    heights = [box[3] - box[1] for box in boxes]
    block_height = sum(heights) + line_spacing * max(0, len(lines) - 1)
    y = (height - block_height) / 2
    for line, box, line_height in zip(lines, boxes, heights):
        line_width = box[2] - box[0]
        draw.text(((width - line_width) / 2 - box[0], y - box[1]), line, font=font, fill=fill)
        y += line_height + line_spacing
