# --- scan_cache.py ---

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, List, Union

from models import (
    CacheLoadResult, CacheLoadStatus, DirectoryNode, FileCategory, FileRecord,
    ScanSnapshot,
)
from tree import DirEntry, assemble_tree, iter_nodes
from utils import path_exists

logger = logging.getLogger(__name__)

CACHE_VERSION = 1


class CacheFormatError(ValueError):
    """The cache artifact parsed as JSON but does not describe a snapshot."""


# --- Encoding ---

def record_to_json(record: FileRecord) -> Dict[str, Any]:
    return {
        "path": record.path,
        "name": record.name,
        "size": record.size,
        "lastModified": record.last_modified,
        "category": record.category.name,
        "duplicateGroup": record.duplicate_group,
    }


def record_from_json(data: Dict[str, Any]) -> FileRecord:
    path, name = data["path"], data["name"]
    size, last_modified = data["size"], data["lastModified"]
    if not isinstance(path, str) or not isinstance(name, str):
        raise CacheFormatError("file path/name must be strings")
    if not _is_int(size) or size < 0 or not _is_int(last_modified):
        raise CacheFormatError(f"bad size/lastModified for {path}")

    # Categories unknown to this version fall back to OTHER
    category = FileCategory.__members__.get(data.get("category"), FileCategory.OTHER)
    duplicate_group = data.get("duplicateGroup", -1)
    if not _is_int(duplicate_group):
        duplicate_group = -1

    return FileRecord(
        path=path,
        name=name,
        size=size,
        last_modified=last_modified,
        category=category,
        duplicate_group=duplicate_group,
    )


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def tree_to_json(root: DirectoryNode) -> Dict[str, Any]:
    """
    The tree is written as a flat list of directories that name their
    children by path. Aggregates are written for readability only; they are
    recomputed on load.
    """
    directories = []
    for node in iter_nodes(root):
        directories.append({
            "path": node.path,
            "name": node.name,
            "depth": node.depth,
            "totalSize": node.total_size,
            "totalFileCount": node.total_file_count,
            "files": [record_to_json(f) for f in node.files],
            "children": [c.path for c in node.children],
        })
    return {"root": root.path, "directories": directories}


def tree_arena_from_json(data: Dict[str, Any]) -> Dict[str, DirEntry]:
    root_path = data["root"]
    arena: Dict[str, DirEntry] = {}
    for item in data["directories"]:
        path, name, depth = item["path"], item["name"], item["depth"]
        if not isinstance(path, str) or not isinstance(name, str) or not _is_int(depth):
            raise CacheFormatError("directory path/name/depth has the wrong type")
        if path in arena:
            raise CacheFormatError(f"directory listed twice: {path}")
        children = item["children"]
        if not all(isinstance(c, str) for c in children):
            raise CacheFormatError(f"bad child list for {path}")
        arena[path] = DirEntry(
            path=path,
            name=name,
            depth=depth,
            files=[record_from_json(f) for f in item["files"]],
            child_paths=list(children),
        )

    root = arena.get(root_path)
    if root is None or root.depth != 0:
        raise CacheFormatError("tree root is missing")

    # Every directory but the root must be claimed by exactly one parent
    claimed = {root_path}
    for entry in arena.values():
        for child_path in entry.child_paths:
            child = arena.get(child_path)
            # Strictly increasing depth also rules out cycles
            if child is None or child.depth != entry.depth + 1:
                raise CacheFormatError(f"inconsistent child {child_path} of {entry.path}")
            if child_path in claimed:
                raise CacheFormatError(f"directory {child_path} has more than one parent")
            claimed.add(child_path)
    unreachable = arena.keys() - claimed
    if unreachable:
        raise CacheFormatError(f"directory {min(unreachable)} is not reachable from the root")
    return arena


# --- Cache ---

class ScanCache:
    """
    Persists one ScanSnapshot as a JSON file.

    Loading revalidates the snapshot against the disk: files that no longer
    exist are dropped from the inventory and the tree, and every directory
    aggregate is recomputed. A corrupt artifact is deleted and reported as
    DISCARDED, never raised.
    """

    def __init__(self, path: Union[str, Path], exists: Callable[[str], bool] = path_exists):
        self.path = Path(path)
        self._exists = exists

    def save(self, snapshot: ScanSnapshot) -> None:
        payload = {
            "version": CACHE_VERSION,
            "files": [record_to_json(f) for f in snapshot.files],
            "tree": tree_to_json(snapshot.root),
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)

        # Write next to the target and swap in, so a crash never leaves half a file
        fd, tmp_path = tempfile.mkstemp(prefix=self.path.name, suffix=".tmp", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f)
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.remove(tmp_path)
            except OSError:
                pass
            raise
        logger.info("Saved %d files to scan cache %s", len(snapshot.files), self.path)

    def load(self) -> CacheLoadResult:
        if not self.path.exists():
            return CacheLoadResult(CacheLoadStatus.ABSENT)

        try:
            snapshot = self._read()
        except (OSError, ValueError, KeyError, TypeError, AttributeError, RecursionError) as e:
            logger.warning("Discarding corrupt scan cache %s: %s", self.path, e)
            self.clear()
            return CacheLoadResult(CacheLoadStatus.DISCARDED)

        return CacheLoadResult(CacheLoadStatus.LOADED, snapshot)

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not delete scan cache %s: %s", self.path, e)

    def _read(self) -> ScanSnapshot:
        with self.path.open("r", encoding="utf-8") as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise CacheFormatError("top level is not an object")
        if data.get("version", CACHE_VERSION) != CACHE_VERSION:
            raise CacheFormatError(f"unsupported cache version {data.get('version')!r}")

        seen: Dict[str, bool] = {}

        def exists(path: str) -> bool:
            if path not in seen:
                seen[path] = self._exists(path)
            return seen[path]

        # Validate that files still exist on disk, preventing ghost entries
        files: List[FileRecord] = [
            record for record in map(record_from_json, data["files"])
            if exists(record.path)
        ]

        arena = tree_arena_from_json(data["tree"])
        pruned = 0
        for entry in arena.values():
            kept = [f for f in entry.files if exists(f.path)]
            pruned += len(entry.files) - len(kept)
            entry.files = kept
        root = assemble_tree(arena, data["tree"]["root"])

        if pruned:
            logger.info("Pruned %d missing files from scan cache", pruned)
        return ScanSnapshot(files=tuple(files), root=root)
