# --- categories.py ---

import os
from typing import Dict

from models import FileCategory

# --- Extension Table ---
# Grouped for readability, flattened below into a single dict so that
# classify() is a plain O(1) lookup.

CATEGORY_EXTENSIONS = {
    FileCategory.IMAGE: {
        "jpg", "jpeg", "png", "gif", "bmp", "webp", "heic", "heif",
        "tiff", "svg", "raw", "cr2", "nef"
    },
    FileCategory.VIDEO: {
        "mp4", "mkv", "avi", "mov", "wmv", "flv", "webm", "m4v",
        "3gp", "ts", "mpeg", "mpg"
    },
    FileCategory.AUDIO: {
        "mp3", "aac", "flac", "wav", "ogg", "m4a", "wma", "opus",
        "aiff", "mid"
    },
    FileCategory.DOCUMENT: {
        "pdf", "doc", "docx", "xls", "xlsx", "ppt", "pptx", "txt",
        "csv", "odt", "ods", "odp", "epub", "mobi", "rtf", "md"
    },
    FileCategory.APK: {"apk", "xapk", "apks"},
    FileCategory.ARCHIVE: {
        "zip", "rar", "7z", "tar", "gz", "bz2", "xz", "cab", "iso", "tgz"
    },
}

EXT_TO_CATEGORY: Dict[str, FileCategory] = {
    ext: category
    for category, exts in CATEGORY_EXTENSIONS.items()
    for ext in exts
}

DOWNLOAD_MARKER = "/download/"


def extension_of(name: str) -> str:
    """Lower-cased extension without the dot ("" if there is none)."""
    ext = os.path.splitext(name)[1]
    return ext[1:].lower() if ext else ""


def classify(path: str) -> FileCategory:
    """
    Maps a file path to its category.
    Extension wins; files without a known extension that live under a
    "Download" directory are DOWNLOAD, everything else is OTHER.
    """
    category = EXT_TO_CATEGORY.get(extension_of(os.path.basename(path)))
    if category is not None:
        return category

    normalized = path.replace("\\", "/").lower()
    if DOWNLOAD_MARKER in normalized:
        return FileCategory.DOWNLOAD
    return FileCategory.OTHER
