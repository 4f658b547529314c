# --- scanner.py ---

import logging
import os
import threading
from collections import deque
from typing import Callable, Dict, Iterable, List, Optional

from models import FileRecord, ScanSnapshot
from categories import classify
from config import DEFAULT_SKIP_DIRS
from tree import DirEntry, assemble_tree
from utils import base_name, is_symlink, relative_posix_path, to_epoch_millis

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]

DEFAULT_PROGRESS_INTERVAL = 100


class ScanCancelled(Exception):
    """Raised out of walk() when the cancel event is set. No snapshot is produced."""


def is_skipped_dir(relative_path: str, name: str, skip_dirs: Iterable[str]) -> bool:
    """
    True if a directory must not be descended into: hidden (dot-prefixed)
    directories, and anything at or below an entry of `skip_dirs`
    (entries are root-relative and '/'-separated).
    """
    if name.startswith("."):
        return True
    for skip in skip_dirs:
        if relative_path == skip or relative_path.startswith(skip + "/"):
            return True
    return False


def _make_record(path: str, name: str, stat: os.stat_result) -> FileRecord:
    return FileRecord(
        path=path,
        name=name,
        size=stat.st_size,
        last_modified=to_epoch_millis(stat.st_mtime),
        category=classify(path),
    )


def walk(root_dir: str,
         on_progress: Optional[ProgressCallback] = None,
         cancel_event: Optional[threading.Event] = None,
         skip_dirs: Iterable[str] = DEFAULT_SKIP_DIRS,
         progress_interval: int = DEFAULT_PROGRESS_INTERVAL,
         skip_symlinks: bool = True) -> ScanSnapshot:
    """
    Walks `root_dir` once and returns the flat inventory plus directory tree.

    The traversal uses an explicit stack, so filesystem depth never turns
    into Python call depth. `cancel_event` is checked once per directory;
    when it is set the walk raises ScanCancelled instead of returning a
    partial result. A directory that cannot be listed becomes an empty leaf.

    `on_progress` gets the cumulative file count every `progress_interval`
    files, from whichever thread runs the walk.
    """
    root_path = os.path.abspath(root_dir)
    if not os.path.isdir(root_path):
        raise NotADirectoryError(f"Path is not a valid directory: {root_path}")

    skip_dirs = tuple(s.strip("/") for s in skip_dirs)
    interval = max(1, progress_interval)

    files: List[FileRecord] = []
    arena: Dict[str, DirEntry] = {
        root_path: DirEntry(path=root_path, name=base_name(root_path), depth=0)
    }
    stack = deque([root_path])
    scanned = 0

    while stack:
        if cancel_event is not None and cancel_event.is_set():
            logger.info("Scan of %s cancelled after %d files", root_path, scanned)
            raise ScanCancelled(root_path)

        dir_path = stack.pop()
        current = arena[dir_path]

        try:
            with os.scandir(dir_path) as it:
                entries = list(it)
        except PermissionError:
            logger.warning("Cannot scan directory: %s (Permission Denied)", dir_path)
            continue
        except OSError as e:
            logger.warning("Error scanning directory: %s (%s)", dir_path, e)
            continue

        for entry in entries:
            entry_path = entry.path

            if skip_symlinks and is_symlink(entry_path):
                continue

            try:
                is_dir = entry.is_dir(follow_symlinks=False)
            except OSError:
                is_dir = False

            if is_dir:
                relative = relative_posix_path(entry_path, root_path) or entry.name
                if is_skipped_dir(relative, entry.name, skip_dirs):
                    continue
                arena[entry_path] = DirEntry(path=entry_path, name=entry.name,
                                             depth=current.depth + 1)
                current.child_paths.append(entry_path)
                stack.append(entry_path)
                continue

            try:
                stat = entry.stat(follow_symlinks=False)
            except OSError as e:
                # Vanished or unreadable between listing and stat
                logger.debug("Cannot access: %s (%s)", entry_path, type(e).__name__)
                continue

            record = _make_record(entry_path, entry.name, stat)
            files.append(record)
            current.files.append(record)

            scanned += 1
            if on_progress is not None and scanned % interval == 0:
                on_progress(scanned)

    root = assemble_tree(arena, root_path)
    logger.info("Scanned %s: %d files in %d directories", root_path, len(files), len(arena))
    return ScanSnapshot(files=tuple(files), root=root)


class Scanner(threading.Thread):
    """
    Runs walk() in a separate thread and reports through callbacks.
    A cancelled scan calls neither on_complete nor on_error.
    """

    def __init__(self,
                 root_path: str,
                 on_progress: Optional[ProgressCallback],
                 on_complete: Callable[[ScanSnapshot], None],
                 on_error: Callable[[str], None],
                 skip_dirs: Iterable[str] = DEFAULT_SKIP_DIRS,
                 progress_interval: int = DEFAULT_PROGRESS_INTERVAL,
                 skip_symlinks: bool = True):

        super().__init__(name=f"scanner:{root_path}")
        self.daemon = True

        self.root_path = root_path
        self.skip_dirs = tuple(skip_dirs)
        self.progress_interval = progress_interval
        self.skip_symlinks = skip_symlinks

        # Callbacks
        self.on_progress = on_progress
        self.on_complete = on_complete
        self.on_error = on_error

        # Thread control
        self._cancel_event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def run(self):
        """The main entry point for the thread."""
        try:
            snapshot = walk(
                self.root_path,
                on_progress=self.on_progress,
                cancel_event=self._cancel_event,
                skip_dirs=self.skip_dirs,
                progress_interval=self.progress_interval,
                skip_symlinks=self.skip_symlinks,
            )
        except ScanCancelled:
            return
        except Exception as e:
            logger.error("Scan of %s failed", self.root_path, exc_info=True)
            self.on_error(str(e) or type(e).__name__)
            return

        if not self.cancelled:
            self.on_complete(snapshot)

    def cancel(self):
        """Signals the scanning thread to stop."""
        self._cancel_event.set()
