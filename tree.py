# --- tree.py ---

import os
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional

from models import DirectoryNode, FileRecord


@dataclass
class DirEntry:
    """
    Mutable build record for one directory.
    Directories are kept in a flat dict keyed by path (an arena) while the
    tree is being built; children are referenced by path, never by object,
    so there are no child -> parent links.
    """
    path: str
    name: str
    depth: int
    files: List[FileRecord] = field(default_factory=list)
    child_paths: List[str] = field(default_factory=list)


def assemble_tree(arena: Dict[str, DirEntry], root_path: str) -> DirectoryNode:
    """
    Converts the arena into an immutable DirectoryNode tree.

    Entries are finalized deepest-first, so when a parent is built every one
    of its children already has its final aggregates.
    Child paths missing from the arena are ignored.
    """
    built: Dict[str, DirectoryNode] = {}
    for entry in sorted(arena.values(), key=lambda e: e.depth, reverse=True):
        children = tuple(built[p] for p in entry.child_paths if p in built)
        files = tuple(entry.files)
        built[entry.path] = DirectoryNode(
            path=entry.path,
            name=entry.name,
            files=files,
            children=children,
            total_size=sum(f.size for f in files) + sum(c.total_size for c in children),
            total_file_count=len(files) + sum(c.total_file_count for c in children),
            depth=entry.depth,
        )
    return built[root_path]


def flatten(root: DirectoryNode) -> Dict[str, DirEntry]:
    """Turns a tree back into an arena (iteratively, no recursion)."""
    arena: Dict[str, DirEntry] = {}
    stack = [root]
    while stack:
        node = stack.pop()
        arena[node.path] = DirEntry(
            path=node.path,
            name=node.name,
            depth=node.depth,
            files=list(node.files),
            child_paths=[c.path for c in node.children],
        )
        stack.extend(node.children)
    return arena


def rebuild(root: DirectoryNode,
            keep_file: Optional[Callable[[FileRecord], bool]] = None,
            replace_file: Optional[Callable[[FileRecord], FileRecord]] = None) -> DirectoryNode:
    """
    Returns a new tree with files filtered and/or replaced, and every
    aggregate recomputed bottom-up. The input tree is left untouched.
    """
    arena = flatten(root)
    for entry in arena.values():
        files: Iterable[FileRecord] = entry.files
        if keep_file is not None:
            files = [f for f in files if keep_file(f)]
        if replace_file is not None:
            files = [replace_file(f) for f in files]
        entry.files = list(files)
    return assemble_tree(arena, root.path)


def iter_nodes(root: DirectoryNode):
    """Yields every node of the tree, parents before children."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def find_node(root: DirectoryNode, path: str) -> Optional[DirectoryNode]:
    for node in iter_nodes(root):
        if node.path == path:
            return node
    return None


def relocate(root: DirectoryNode, old_path: str, record: FileRecord) -> DirectoryNode:
    """
    Returns a new tree where the file at `old_path` is replaced by `record`,
    placed under the directory matching `record`'s parent path.
    If that directory is not part of the tree the file simply drops out of it.
    """
    arena = flatten(root)
    for entry in arena.values():
        entry.files = [f for f in entry.files if f.path != old_path]
    target = arena.get(os.path.dirname(record.path))
    if target is not None:
        target.files.append(record)
    return assemble_tree(arena, root.path)
