from dataclasses import dataclass
from pathlib import PurePosixPath
from urllib.parse import unquote, urlsplit


@dataclass(frozen=True)
class FileType:
    label: str
    color: tuple[int, int, int]


_PDF = FileType("PDF Doc", (211, 47, 47))
_ARCHIVE = FileType("Archive", (121, 85, 72))
_AUDIO = FileType("Audio", (123, 31, 162))
_VIDEO = FileType("Video", (230, 81, 0))
_WORD = FileType("Word Doc", (25, 118, 210))
_EXCEL = FileType("Excel", (46, 125, 50))
_SLIDES = FileType("Slides", (245, 124, 0))

FILE_TYPES: dict[str, FileType] = {
    "pdf": _PDF,
    **dict.fromkeys(("zip", "rar", "gz", "7z", "tar"), _ARCHIVE),
    **dict.fromkeys(("mp3", "wav", "ogg", "flac"), _AUDIO),
    **dict.fromkeys(("mp4", "mov", "avi", "mkv", "webm"), _VIDEO),
    **dict.fromkeys(("doc", "docx"), _WORD),
    **dict.fromkeys(("xls", "xlsx"), _EXCEL),
    **dict.fromkeys(("ppt", "pptx"), _SLIDES),
}


def url_extension(url: str) -> str:
    """Lowercased extension of the URL path, without the dot; query and fragment ignored."""
    path = unquote(urlsplit(url).path)
    return PurePosixPath(path).suffix.lower().lstrip(".")


def file_type_for(url: str) -> FileType | None:
    return FILE_TYPES.get(url_extension(url))
