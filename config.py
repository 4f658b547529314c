# --- config.py ---

import json
import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Optional, Tuple

from platformdirs import user_cache_dir, user_config_dir

logger = logging.getLogger(__name__)

APP_NAME = "storage-analyzer"
CACHE_FILE_NAME = "scan_cache.json"
SETTINGS_FILE = Path(user_config_dir(APP_NAME)) / "settings.json"

# Directories (relative to the scan root) that are never descended into.
DEFAULT_SKIP_DIRS: Tuple[str, ...] = (
    "Android/data", "Android/obb", ".thumbnails", ".cache",
    "lost+found", "proc", "sys", "dev"
)

MIB = 1024 * 1024


def default_cache_path() -> Path:
    return Path(user_cache_dir(APP_NAME)) / CACHE_FILE_NAME


@dataclass(frozen=True)
class Settings:
    """Tunables for a scan. Defaults match a phone-sized storage volume."""
    large_file_threshold_mb: int = 50
    progress_interval: int = 100  # report progress every N files
    skip_dirs: Tuple[str, ...] = DEFAULT_SKIP_DIRS
    skip_symlinks: bool = True
    use_trash: bool = True  # False = permanent os.remove
    cache_path: Path = field(default_factory=default_cache_path)

    @property
    def large_file_threshold_bytes(self) -> int:
        return self.large_file_threshold_mb * MIB


def load_settings(path: Optional[Path] = None) -> Settings:
    """
    Reads a JSON settings file and merges it over the defaults.
    Unknown keys are ignored; an unreadable file means "use defaults".
    """
    path = path or SETTINGS_FILE
    settings = Settings()
    if not path.exists():
        return settings

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable settings file %s: %s", path, e)
        return settings
    if not isinstance(data, dict):
        logger.warning("Ignoring settings file %s: expected a JSON object", path)
        return settings

    known = {f.name for f in fields(Settings)}
    overrides = {}
    for key, value in data.items():
        if key not in known:
            continue
        converted = _convert(key, value)
        if converted is None:
            logger.warning("Ignoring bad value %r for %s in settings file %s; using the default",
                           value, key, path)
            continue
        overrides[key] = converted
    return replace(settings, **overrides)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _convert(key: str, value):
    """Returns the value in the field's type, or None if it has the wrong shape."""
    if key == "large_file_threshold_mb":
        return value if _is_int(value) and value >= 0 else None
    if key == "progress_interval":
        return value if _is_int(value) and value > 0 else None
    if key in ("skip_symlinks", "use_trash"):
        return value if isinstance(value, bool) else None
    if key == "skip_dirs":
        if isinstance(value, list) and all(isinstance(v, str) for v in value):
            return tuple(value)
        return None
    if key == "cache_path":
        return Path(value).expanduser() if isinstance(value, str) and value else None
    return None


def save_settings(settings: Settings, path: Optional[Path] = None) -> None:
    path = path or SETTINGS_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    data = {
        "large_file_threshold_mb": settings.large_file_threshold_mb,
        "progress_interval": settings.progress_interval,
        "skip_dirs": list(settings.skip_dirs),
        "skip_symlinks": settings.skip_symlinks,
        "use_trash": settings.use_trash,
        "cache_path": str(settings.cache_path),
    }
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
