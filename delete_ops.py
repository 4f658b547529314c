# --- delete_ops.py ---

import logging
import os
import shutil
from typing import Callable, List, Optional, Sequence, Set

from send2trash import send2trash

from models import FileRecord

logger = logging.getLogger(__name__)

# Define a type for the progress callback
# Callback(current_path: str, is_error: bool, message: str)
DeleteProgressCallback = Callable[[str, bool, str], None]


class DeleteResult:
    """Holds the summary of the delete operation."""
    def __init__(self):
        self.deleted_paths: Set[str] = set()
        self.failed_count: int = 0
        self.freed_bytes: int = 0
        self.errors: List[str] = []

    @property
    def deleted_count(self) -> int:
        return len(self.deleted_paths)

    def add_success(self, record: FileRecord):
        """Record a successful deletion. Only these count towards freed bytes."""
        self.deleted_paths.add(record.path)
        self.freed_bytes += record.size

    def add_error(self, path: str, error: Exception):
        """Record a failed deletion."""
        self.failed_count += 1
        self.errors.append(f"Failed to delete {path}: {error}")

    def __repr__(self):
        return (f"DeleteResult(deleted={self.deleted_count}, failed={self.failed_count}, "
                f"freed_bytes={self.freed_bytes})")


def delete_files(
    records: Sequence[FileRecord],
    use_permanent_delete: bool = False,
    progress_callback: Optional[DeleteProgressCallback] = None
) -> DeleteResult:
    """
    Deletes each file independently; one failure never stops the batch.

    A file that is already gone counts as a failure, the same as a
    permission error: only paths this call actually removed end up in
    `deleted_paths`. The same path listed twice is deleted once.

    Args:
        records: FileRecords to delete.
        use_permanent_delete: If True, bypasses the trash. DANGEROUS.
        progress_callback: A function to call with progress updates.

    Returns:
        A DeleteResult summarizing the operation.
    """
    result = DeleteResult()
    seen: Set[str] = set()

    for record in records:
        if record.path in seen:
            continue
        seen.add(record.path)

        if progress_callback:
            op_type = "Permanently deleting" if use_permanent_delete else "Sending to Trash"
            progress_callback(record.path, False, f"{op_type} {record.name}...")

        try:
            if use_permanent_delete:
                os.remove(record.path)
            else:
                send2trash(record.path)
        except Exception as e:
            logger.warning("Failed to delete %s: %s", record.path, e)
            result.add_error(record.path, e)
            if progress_callback:
                progress_callback(record.path, True, f"Error deleting {record.name}: {e}")
            continue

        result.add_success(record)
        if progress_callback:
            progress_callback(record.path, False, f"Deleted {record.name}")

    logger.info("Deleted %d files (%d failed), freed %d bytes",
                result.deleted_count, result.failed_count, result.freed_bytes)
    return result


def rename_file(path: str, new_name: str) -> str:
    """
    Renames a file inside its own directory and returns the new path.
    Raises ValueError for names with path separators, FileExistsError if
    the target name is taken, OSError for anything the OS refuses.
    """
    if not new_name or new_name in (os.curdir, os.pardir) or "/" in new_name or os.sep in new_name:
        raise ValueError(f"Invalid file name: {new_name!r}")

    new_path = os.path.join(os.path.dirname(path), new_name)
    if os.path.exists(new_path):
        raise FileExistsError(f"Target already exists: {new_path}")
    os.rename(path, new_path)
    return new_path


def move_file(path: str, target_dir: str) -> str:
    """
    Moves a file into `target_dir` (keeping its name) and returns the new path.
    """
    if not os.path.isdir(target_dir):
        raise NotADirectoryError(f"Not a directory: {target_dir}")

    new_path = os.path.join(target_dir, os.path.basename(path))
    if os.path.exists(new_path):
        raise FileExistsError(f"Target already exists: {new_path}")
    shutil.move(path, new_path)
    return new_path
