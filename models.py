# --- models.py ---

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Tuple


class FileCategory(Enum):
    """Closed set of content categories a file can be classified into."""
    IMAGE = "Images"
    VIDEO = "Videos"
    AUDIO = "Audio"
    DOCUMENT = "Documents"
    APK = "APKs"
    ARCHIVE = "Archives"
    DOWNLOAD = "Downloads"
    OTHER = "Other"

    @property
    def display_name(self) -> str:
        return self.value


@dataclass(frozen=True)
class FileRecord:
    """
    A single file found during the scan.
    This is a pure, immutable data class; updates go through dataclasses.replace.
    """
    path: str
    name: str
    size: int  # bytes
    last_modified: int  # epoch milliseconds
    category: FileCategory = FileCategory.OTHER

    # -1 means "not part of a duplicate set"
    duplicate_group: int = -1

    @property
    def is_duplicate(self) -> bool:
        return self.duplicate_group >= 0

    def __hash__(self):
        # Enable adding FileRecord objects to sets or dict keys
        return hash(self.path)

    def __eq__(self, other):
        # Define equality based on the unique path
        if not isinstance(other, FileRecord):
            return False
        return self.path == other.path


@dataclass(frozen=True)
class DirectoryNode:
    """
    One directory of the scanned tree.

    `files` holds only the files directly inside this directory, while
    `total_size` / `total_file_count` cover the whole subtree.
    """
    path: str
    name: str
    files: Tuple[FileRecord, ...] = ()
    children: Tuple['DirectoryNode', ...] = ()
    total_size: int = 0
    total_file_count: int = 0
    depth: int = 0

    @property
    def own_size(self) -> int:
        return sum(f.size for f in self.files)


@dataclass(frozen=True)
class ScanSnapshot:
    """
    The result of one walk: the flat inventory plus the directory tree.
    This is the unit that gets cached to disk.
    """
    files: Tuple[FileRecord, ...]
    root: DirectoryNode


class ScanStatus(Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class ScanState:
    """
    Idle -> Scanning(count) -> Done, or Idle/Scanning -> Error(message).
    """
    status: ScanStatus = ScanStatus.IDLE
    files_found: int = 0
    message: Optional[str] = None

    @classmethod
    def idle(cls) -> 'ScanState':
        return cls(ScanStatus.IDLE)

    @classmethod
    def scanning(cls, files_found: int = 0) -> 'ScanState':
        return cls(ScanStatus.SCANNING, files_found=files_found)

    @classmethod
    def done(cls) -> 'ScanState':
        return cls(ScanStatus.DONE)

    @classmethod
    def error(cls, message: str) -> 'ScanState':
        return cls(ScanStatus.ERROR, message=message)


@dataclass(frozen=True)
class StorageStats:
    """Summary statistics, always recomputed from the derived views."""
    total_files: int = 0
    total_size: int = 0
    junk_size: int = 0
    duplicate_size: int = 0
    large_size: int = 0


class CacheLoadStatus(Enum):
    LOADED = "loaded"
    ABSENT = "absent"
    DISCARDED = "discarded"  # the artifact was corrupt and has been deleted


@dataclass(frozen=True)
class CacheLoadResult:
    status: CacheLoadStatus
    snapshot: Optional[ScanSnapshot] = None

    @property
    def loaded(self) -> bool:
        return self.status is CacheLoadStatus.LOADED


@dataclass(frozen=True)
class ScanViews:
    """
    Every derived view the orchestrator publishes, swapped as one object
    so observers never see a half-updated set of lists.
    """
    files: Tuple[FileRecord, ...] = ()
    by_category: Mapping[FileCategory, Tuple[FileRecord, ...]] = field(
        default_factory=lambda: MappingProxyType({}))
    duplicates: Tuple[FileRecord, ...] = ()
    large_files: Tuple[FileRecord, ...] = ()
    junk_files: Tuple[FileRecord, ...] = ()
    stats: StorageStats = field(default_factory=StorageStats)
    tree: Optional[DirectoryNode] = None
