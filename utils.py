# --- utils.py ---

import os
from typing import Optional


def is_symlink(path: str) -> bool:
    """
Signature: `is_symlink(path: str) -> bool`

Safely checks if a path is a symbolic link.
"""
    try:
        return os.path.islink(path)
    except OSError:
        # e.g., PermissionError or path too long
        return False


def path_exists(path: str) -> bool:
    """
Signature: `path_exists(path: str) -> bool`

Checks that a path still exists on disk. Broken symlinks count as missing.
"""
    try:
        return os.path.exists(path)
    except (OSError, ValueError):
        # ValueError: embedded null byte in a corrupt cache entry
        return False


def to_epoch_millis(timestamp: float) -> int:
    """
Signature: `to_epoch_millis(timestamp: float) -> int`

Converts an os.stat_result timestamp (seconds, float) to epoch milliseconds.
"""
    return int(timestamp * 1000)


def relative_posix_path(path: str, root: str) -> Optional[str]:
    """
Signature: `relative_posix_path(path: str, root: str) -> Optional[str]`

Returns `path` relative to `root`, always '/'-separated so it can be matched
against skip-list entries like "Android/data" on every OS.
Returns None if `path` is not inside `root`.
"""
    try:
        rel = os.path.relpath(path, root)
    except ValueError:
        # Different drives on Windows
        return None
    if rel == os.curdir or rel.startswith(os.pardir):
        return None
    return rel.replace(os.sep, "/")


def base_name(path: str) -> str:
    """
Signature: `base_name(path: str) -> str`

Like os.path.basename, but keeps a usable name for filesystem roots ("/", "C:\\").
"""
    return os.path.basename(path.rstrip("\\/")) or path
