# --- duplicates.py ---

import hashlib
import logging
from collections import defaultdict
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from models import FileRecord

logger = logging.getLogger(__name__)

Hasher = Callable[[str], Optional[str]]
HashProgressCallback = Callable[[int, int], None]

HASH_BUFFER_SIZE = 65536


def compute_hash(file_path: str, buffer_size: int = HASH_BUFFER_SIZE) -> Optional[str]:
    """
    Calculates the SHA-256 hash for a single file.
    Returns None on error (e.g., PermissionError).
    """
    sha256 = hashlib.sha256()

    try:
        with open(file_path, 'rb') as f:
            while True:
                data = f.read(buffer_size)
                if not data:
                    break
                sha256.update(data)
        return sha256.hexdigest()
    except OSError as e:
        logger.warning("Could not hash %s: %s", file_path, e)
        return None


def find_duplicates(
    files: Sequence[FileRecord],
    progress_callback: Optional[HashProgressCallback] = None,
    hasher: Hasher = compute_hash
) -> List[FileRecord]:
    """
    Finds duplicate files by content: the key is (size, SHA-256).

    Step 1: Group files by size.
    Step 2: Only hash files that share the same size (groups > 1).
    Step 3: Group by (size, hash).
    Step 4: Keep groups with more than one member.

    Group ids are 0, 1, 2... in the order each group's first member appears
    in `files`, so the same input always yields the same ids. Members are
    returned grouped by id, each group in input order, with duplicate_group
    set. Empty files are never considered duplicates.
    """
    # Step 1: Group by size
    size_groups: Dict[int, List[int]] = defaultdict(list)
    for index, record in enumerate(files):
        if record.size > 0:  # Ignore 0-byte
            size_groups[record.size].append(index)

    # Step 2: Filter for potential duplicates, kept in input order
    candidates = sorted(
        index
        for indexes in size_groups.values() if len(indexes) > 1
        for index in indexes
    )

    # Step 3: Hash files and group by key
    key_groups: Dict[Tuple[int, str], List[int]] = defaultdict(list)
    total = len(candidates)
    for done, index in enumerate(candidates, 1):
        record = files[index]
        file_hash = hasher(record.path)
        if file_hash:
            key_groups[(record.size, file_hash)].append(index)
        if progress_callback:
            progress_callback(done, total)

    # Step 4: Filter for actual duplicates and number them by first appearance
    groups = [indexes for indexes in key_groups.values() if len(indexes) > 1]
    groups.sort(key=lambda indexes: indexes[0])

    result: List[FileRecord] = []
    for group_id, indexes in enumerate(groups):
        for index in indexes:
            result.append(replace(files[index], duplicate_group=group_id))
    return result


def newest_first_key(record: FileRecord):
    # Largest timestamp first, then lexical path order for ties
    return (-record.last_modified, record.path)


def select_all_but_newest(duplicates: Sequence[FileRecord]) -> List[FileRecord]:
    """
    For every duplicate group keeps the most recently modified member and
    returns all the others (the ones safe to delete).
    Equal timestamps are resolved by path order, so exactly one member of
    each group is always kept.
    """
    groups: Dict[int, List[FileRecord]] = defaultdict(list)
    for record in duplicates:
        if record.is_duplicate:
            groups[record.duplicate_group].append(record)

    selected: List[FileRecord] = []
    for group_id in sorted(groups):
        members = sorted(groups[group_id], key=newest_first_key)
        selected.extend(members[1:])
    return selected
