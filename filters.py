# --- filters.py ---

from typing import Dict, Iterable, List

from models import FileCategory, FileRecord
from categories import extension_of

# --- Configuration for Filters ---
# Using lower-case for case-insensitive matching

JUNK_EXTENSIONS = {
    "tmp", "temp", "log", "cache", "bak", "old", "thumbcache",
    "swp", "swo", "swn", "dmp", "crdownload", "part"
}

JUNK_FILENAMES = {
    "thumbs.db", "desktop.ini", ".ds_store"
}

JUNK_DIRNAMES = {
    "cache", ".cache", "__pycache__", ".thumbnails", ".pytest_cache"
}

# --- Filter Functions ---


def find_large_files(files: Iterable[FileRecord], threshold_bytes: int) -> List[FileRecord]:
    """
    Filters for files of at least `threshold_bytes` (a file exactly at the
    threshold is included).
    Sorts the result from largest to smallest.
    """
    large_files = [f for f in files if f.size >= threshold_bytes]

    # Sort by size, descending
    large_files.sort(key=lambda x: x.size, reverse=True)
    return large_files


def is_junk(record: FileRecord) -> bool:
    """
    Temp/cache/log/backup leftovers and empty files.
    Looks at the file name, its extension and the directories it sits in.
    """
    if record.size == 0:
        return True

    name_lower = record.name.lower()
    if name_lower in JUNK_FILENAMES or extension_of(name_lower) in JUNK_EXTENSIONS:
        return True

    dir_parts = record.path.replace("\\", "/").lower().split("/")[:-1]
    return any(part in JUNK_DIRNAMES for part in dir_parts)


def find_junk(files: Iterable[FileRecord]) -> List[FileRecord]:
    """
    Filters for junk files (see is_junk).
    Sorts by size, descending, to show worst offenders first.
    """
    junk = [f for f in files if is_junk(f)]
    junk.sort(key=lambda x: x.size, reverse=True)
    return junk


def group_by_category(files: Iterable[FileRecord]) -> Dict[FileCategory, List[FileRecord]]:
    """
    Buckets files by category, keeping inventory order inside each bucket.
    Categories with no files are left out.
    """
    groups: Dict[FileCategory, List[FileRecord]] = {}
    for f in files:
        groups.setdefault(f.category, []).append(f)
    return groups
