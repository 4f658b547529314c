# --- orchestrator.py ---

import logging
import os
import threading
from dataclasses import replace
from types import MappingProxyType
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set

from models import (
    CacheLoadResult, CacheLoadStatus, DirectoryNode, FileRecord, ScanSnapshot,
    ScanState, ScanStatus, ScanViews, StorageStats,
)
from categories import classify
from config import Settings
from delete_ops import DeleteResult, delete_files, move_file, rename_file
from duplicates import Hasher, compute_hash, find_duplicates
from filters import find_junk, find_large_files, group_by_category
from scan_cache import ScanCache
from scanner import Scanner, walk
import tree

logger = logging.getLogger(__name__)

# Listener(event, payload). Events: "state" (ScanState), "views" (ScanViews),
# "delete" (DeleteResult)
Listener = Callable[[str, object], None]


def compute_stats(files: Iterable[FileRecord],
                  junk: Iterable[FileRecord],
                  duplicates: Iterable[FileRecord],
                  large: Iterable[FileRecord]) -> StorageStats:
    """Always computed from the lists themselves, never adjusted incrementally."""
    files = list(files)
    return StorageStats(
        total_files=len(files),
        total_size=sum(f.size for f in files),
        junk_size=sum(f.size for f in junk),
        duplicate_size=sum(f.size for f in duplicates),
        large_size=sum(f.size for f in large),
    )


def build_views(files: Sequence[FileRecord],
                duplicates: Sequence[FileRecord],
                large: Sequence[FileRecord],
                junk: Sequence[FileRecord],
                root: Optional[DirectoryNode]) -> ScanViews:
    return ScanViews(
        files=tuple(files),
        by_category=MappingProxyType(
            {cat: tuple(items) for cat, items in group_by_category(files).items()}),
        duplicates=tuple(duplicates),
        large_files=tuple(large),
        junk_files=tuple(junk),
        stats=compute_stats(files, junk, duplicates, large),
        tree=root,
    )


class ScanOrchestrator:
    """
    Owns the scan state and every derived view.

    Only one scan is in flight: start_scan() cancels any running scan and
    restarts from Scanning(0). Views are published as one immutable
    ScanViews object, and only after the whole pipeline succeeded.
    Observers subscribe() and are pushed "state", "views" and "delete"
    events; they must not block.
    """

    def __init__(self,
                 settings: Optional[Settings] = None,
                 cache: Optional[ScanCache] = None,
                 hasher: Hasher = compute_hash):
        self.settings = settings or Settings()
        self.cache = cache
        self._hasher = hasher

        self._lock = threading.RLock()
        self._listeners: List[Listener] = []
        self._state = ScanState.idle()
        self._views = ScanViews()
        self._generation = 0
        self._scanner: Optional[Scanner] = None
        self._idle = threading.Event()
        self._idle.set()
        self.last_delete_result: Optional[DeleteResult] = None

    # --- Observation ---

    @property
    def state(self) -> ScanState:
        with self._lock:
            return self._state

    @property
    def views(self) -> ScanViews:
        with self._lock:
            return self._views

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Registers a listener and returns a function that removes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)
        return unsubscribe

    def _notify(self, event: str, payload) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event, payload)
            except Exception:
                logger.exception("Listener failed on %r event", event)

    def _set_state(self, state: ScanState) -> None:
        with self._lock:
            self._state = state
        self._notify("state", state)

    # --- Scanning ---

    def start_scan(self, root_path: str) -> None:
        """Runs the whole pipeline on a background thread."""
        with self._lock:
            generation = self._begin()
            scanner = Scanner(
                root_path,
                on_progress=lambda count: self._on_progress(generation, count),
                on_complete=lambda snapshot: self._on_walk_complete(generation, snapshot),
                on_error=lambda message: self._fail(generation, message),
                skip_dirs=self.settings.skip_dirs,
                progress_interval=self.settings.progress_interval,
                skip_symlinks=self.settings.skip_symlinks,
            )
            self._scanner = scanner
        self._notify("state", ScanState.scanning(0))
        scanner.start()

    def run_scan(self, root_path: str) -> ScanState:
        """Same pipeline as start_scan(), on the calling thread. Returns the final state."""
        with self._lock:
            generation = self._begin()
        self._notify("state", ScanState.scanning(0))

        try:
            snapshot = walk(
                root_path,
                on_progress=lambda count: self._on_progress(generation, count),
                skip_dirs=self.settings.skip_dirs,
                progress_interval=self.settings.progress_interval,
                skip_symlinks=self.settings.skip_symlinks,
            )
        except Exception as e:
            logger.error("Scan of %s failed", root_path, exc_info=True)
            self._fail(generation, str(e) or type(e).__name__)
            return self.state

        self._on_walk_complete(generation, snapshot)
        return self.state

    def _begin(self) -> int:
        # Caller holds the lock
        if self._scanner is not None:
            self._scanner.cancel()
            self._scanner = None
        self._generation += 1
        self._state = ScanState.scanning(0)
        self._idle.clear()
        logger.info("Starting scan (generation %d)", self._generation)
        return self._generation

    def cancel_scan(self) -> None:
        """Stops the running scan. Published views stay as they were."""
        with self._lock:
            if self._scanner is not None:
                self._scanner.cancel()
                self._scanner = None
            if self._state.status is not ScanStatus.SCANNING:
                return
            self._generation += 1
        self._set_state(ScanState.idle())
        self._idle.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Blocks until the current scan has finished, failed or been cancelled."""
        return self._idle.wait(timeout)

    def _on_progress(self, generation: int, count: int) -> None:
        with self._lock:
            if generation != self._generation or self._state.status is not ScanStatus.SCANNING:
                return
            state = ScanState.scanning(max(count, self._state.files_found))
            self._state = state
        self._notify("state", state)

    def _on_walk_complete(self, generation: int, snapshot: ScanSnapshot) -> None:
        try:
            views = self.derive_views(snapshot)
        except Exception as e:
            logger.error("Analysis pipeline failed", exc_info=True)
            self._fail(generation, str(e) or type(e).__name__)
            return

        if not self._publish(generation, views):
            return

        if self.cache is not None:
            try:
                self.cache.save(snapshot)
            except (OSError, TypeError, ValueError) as e:
                logger.warning("Could not save scan cache: %s", e)

        self._finish(generation, ScanState.done())

    def _fail(self, generation: int, message: str) -> None:
        self._finish(generation, ScanState.error(message))

    def _finish(self, generation: int, state: ScanState) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._scanner = None
            self._state = state
        self._notify("state", state)
        self._idle.set()

    def _publish(self, generation: int, views: ScanViews) -> bool:
        with self._lock:
            if generation != self._generation:
                logger.debug("Dropping results of superseded scan %d", generation)
                return False
            self._views = views
        self._notify("views", views)
        return True

    def derive_views(self, snapshot: ScanSnapshot) -> ScanViews:
        """
        duplicates -> large files -> junk -> category grouping and stats.
        Inventory records come back tagged with their duplicate group, so
        the grouping runs on the tagged records.
        """
        duplicates = find_duplicates(snapshot.files, hasher=self._hasher)
        by_path: Dict[str, FileRecord] = {d.path: d for d in duplicates}
        files = [by_path.get(f.path, f) for f in snapshot.files]

        large = find_large_files(files, self.settings.large_file_threshold_bytes)
        junk = find_junk(files)
        return build_views(files, duplicates, large, junk, snapshot.root)

    def load_cached(self) -> CacheLoadResult:
        """
        Restores views from the scan cache, if there is one.
        Absent and discarded caches leave the current views alone.
        """
        if self.cache is None:
            return CacheLoadResult(CacheLoadStatus.ABSENT)

        result = self.cache.load()
        if not result.loaded:
            return result

        with self._lock:
            generation = self._begin()
        self._notify("state", ScanState.scanning(0))
        self._on_walk_complete(generation, result.snapshot)
        return result

    # --- Actions ---

    def delete_files(self, records: Sequence[FileRecord]) -> DeleteResult:
        """
        Deletes the given files, then removes exactly the paths that were
        really deleted from every view in a single publication.
        Paths whose deletion failed stay everywhere.
        """
        result = delete_files(records, use_permanent_delete=not self.settings.use_trash)
        self.last_delete_result = result
        self._notify("delete", result)

        deleted = result.deleted_paths
        if deleted:
            with self._lock:
                views = self._without_paths(self._views, deleted)
                self._views = views
            self._notify("views", views)
        return result

    @staticmethod
    def _without_paths(views: ScanViews, removed: Set[str]) -> ScanViews:
        def keep(f: FileRecord) -> bool:
            return f.path not in removed

        root = views.tree
        if root is not None:
            root = tree.rebuild(root, keep_file=keep)
        return build_views(
            [f for f in views.files if keep(f)],
            [f for f in views.duplicates if keep(f)],
            [f for f in views.large_files if keep(f)],
            [f for f in views.junk_files if keep(f)],
            root,
        )

    def rename_file(self, path: str, new_name: str) -> FileRecord:
        """Renames a file on disk and re-derives the views around the new record."""
        record = self._find(path)
        new_path = rename_file(path, new_name)
        return self._replace_record(record, new_path)

    def move_file(self, path: str, target_dir: str) -> FileRecord:
        """Moves a file on disk and re-derives the views around the new record."""
        record = self._find(path)
        new_path = move_file(path, target_dir)
        return self._replace_record(record, new_path)

    def _find(self, path: str) -> FileRecord:
        for f in self.views.files:
            if f.path == path:
                return f
        raise KeyError(f"Not in the current scan: {path}")

    def _replace_record(self, old: FileRecord, new_path: str) -> FileRecord:
        new = replace(old, path=new_path, name=os.path.basename(new_path),
                      category=classify(new_path))

        def swap(f: FileRecord) -> FileRecord:
            return new if f.path == old.path else f

        with self._lock:
            views = self._views
            files = [swap(f) for f in views.files]
            duplicates = [swap(f) for f in views.duplicates]
            root = views.tree
            if root is not None:
                root = tree.relocate(root, old.path, new)
            views = build_views(
                files,
                duplicates,
                find_large_files(files, self.settings.large_file_threshold_bytes),
                find_junk(files),
                root,
            )
            self._views = views
        self._notify("views", views)
        return new
