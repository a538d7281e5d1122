from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


class SweepError(Exception):
    """Base class for failures surfaced to the caller."""


class DataDirNotFoundError(SweepError):
    pass


class MetadataStoreError(SweepError):
    pass


class MigrationSetupError(SweepError):
    """The target directory for one group could not be created.

    Only that group's migration is aborted; callers running several groups
    record the error and move on.
    """

    def __init__(self, group_id: str, path: Path, reason: str):
        super().__init__(f"cannot create target directory {path} for group {group_id}: {reason}")
        self.group_id = group_id
        self.path = path
        self.reason = reason


@dataclass(slots=True, frozen=True)
class ResolutionAnomaly:
    """A file the resolver saw on disk that has no source path any more."""

    record_id: str
    file_name: str
    group_id: str
