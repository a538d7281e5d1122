from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

ORIGINAL_DIR = "Ori"
THUMBNAIL_DIR = "Thumb"
THUMBNAIL_SUFFIXES = ("_0", "_720")

_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


def partition_name(msg_time: int) -> str:
    try:
        dt = datetime.fromtimestamp(msg_time, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        dt = _EPOCH
    return f"{dt.year}-{dt.month:02d}"


def thumbnail_names(file_name: str) -> list[str]:
    dot = file_name.rfind(".")
    if dot == -1:
        return [f"{file_name}{suffix}" for suffix in THUMBNAIL_SUFFIXES]
    stem, ext = file_name[:dot], file_name[dot:]
    return [f"{stem}{suffix}{ext}" for suffix in THUMBNAIL_SUFFIXES]


def is_probeable(file_name: str) -> bool:
    """False for names that cannot be turned into a filesystem path."""
    return bool(file_name) and "\x00" not in file_name


def candidate_paths(data_dir: Path, file_name: str, msg_time: int) -> list[tuple[Path, str]]:
    """Original path first, then the two thumbnail variants, each tagged with its subdirectory."""
    if not is_probeable(file_name):
        return []
    base = data_dir / partition_name(msg_time)
    out = [(base / ORIGINAL_DIR / file_name, ORIGINAL_DIR)]
    out.extend((base / THUMBNAIL_DIR / name, THUMBNAIL_DIR) for name in thumbnail_names(file_name))
    return out
