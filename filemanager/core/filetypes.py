# filemanager/core/filetypes.py
from enum import Enum


class Category(str, Enum):
    IMAGE = "image"
    PDF = "pdf"
    DOCUMENT = "document"
    SPREADSHEET = "spreadsheet"
    PRESENTATION = "presentation"
    TEXT = "text"
    CODE = "code"
    ARCHIVE = "archive"
    AUDIO = "audio"
    VIDEO = "video"
    OTHER = "other"


_EXTENSIONS = {
    Category.IMAGE: ("jpg", "jpeg", "png", "gif", "webp", "bmp", "ico"),
    Category.PDF: ("pdf",),
    Category.DOCUMENT: ("doc", "docx"),
    Category.SPREADSHEET: ("xls", "xlsx"),
    Category.PRESENTATION: ("ppt", "pptx"),
    Category.TEXT: ("txt", "csv", "json", "md", "xml", "log"),
    Category.CODE: ("js", "html", "css", "php", "py", "c", "cpp", "java", "sh"),
    Category.ARCHIVE: ("zip", "tar", "gz", "rar", "7z"),
    Category.AUDIO: ("mp3", "wav", "ogg", "flac"),
    Category.VIDEO: ("mp4", "mov", "avi", "webm", "mkv"),
}

EXTENSION_MAP = {ext: category for category, exts in _EXTENSIONS.items() for ext in exts}

FOLDER_ICON = "fas fa-folder"
DEFAULT_ICON = "fas fa-file"
DEFAULT_COLOR = "text-gray-500"

ICONS = {
    Category.IMAGE: "fas fa-file-image",
    Category.PDF: "fas fa-file-pdf",
    Category.DOCUMENT: "fas fa-file-word",
    Category.SPREADSHEET: "fas fa-file-excel",
    Category.PRESENTATION: "fas fa-file-powerpoint",
    Category.TEXT: "fas fa-file-alt",
    Category.CODE: "fas fa-file-code",
    Category.ARCHIVE: "fas fa-file-archive",
    Category.AUDIO: "fas fa-file-audio",
    Category.VIDEO: "fas fa-file-video",
    Category.OTHER: DEFAULT_ICON,
}

COLORS = {
    Category.IMAGE: "text-green-500",
    Category.PDF: "text-red-500",
    Category.DOCUMENT: "text-blue-600",
    Category.SPREADSHEET: "text-emerald-600",
    Category.PRESENTATION: "text-orange-500",
    Category.TEXT: "text-gray-600",
    Category.CODE: "text-indigo-500",
    Category.ARCHIVE: "text-yellow-600",
    Category.AUDIO: "text-pink-500",
    Category.VIDEO: "text-purple-500",
}


def extension_of(filename: str) -> str:
    """Lower-cased text after the last dot, or "" when there is none.

    A leading dot marks a hidden file, not an extension: ".txt" has none.
    """
    dot = filename.rfind(".")
    if dot <= 0:
        return ""
    return filename[dot + 1:].lower()


def classify(filename: str) -> Category:
    return EXTENSION_MAP.get(extension_of(filename), Category.OTHER)


def icon_for(category) -> str:
    return ICONS.get(category, DEFAULT_ICON)


def color_for(category) -> str:
    return COLORS.get(category, DEFAULT_COLOR)


def is_editable(category: Category) -> bool:
    return category in (Category.TEXT, Category.CODE)


def format_bytes(size: int) -> str:
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB", "TB", "PB"]
    i = 0
    while size >= 1024 ** (i + 1) and i < len(units) - 1:
        i += 1
    value = round(size / 1024 ** i, 2)
    return f"{value:g} {units[i]}"
