"""Data models for diskdive."""

import os
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# Size sentinel for entries the scanner has not resolved yet
PENDING_SIZE = -1


class Entry(BaseModel):
    """One file or directory row in the displayed listing."""

    name: str = Field(..., description="Display name")
    path: str = Field(..., description="Absolute path")
    is_dir: bool = Field(False, description="Whether the entry is a directory")
    size: int = Field(PENDING_SIZE, ge=PENDING_SIZE, description="Size in bytes, -1 while pending")
    last_access: Optional[datetime] = Field(None, description="Last access time if known")

    @property
    def pending(self) -> bool:
        """Whether the size is still unresolved."""
        return self.size < 0

    def contains(self, path: str) -> bool:
        """Whether ``path`` lives strictly inside this entry."""
        return self.is_dir and path.startswith(self.path.rstrip(os.sep) + os.sep)


class LargeFile(BaseModel):
    """A file above the large-file threshold."""

    path: str = Field(..., description="Absolute path")
    size: int = Field(..., ge=0, description="Size in bytes")

    @property
    def name(self) -> str:
        return os.path.basename(self.path)


class HistoryFrame(BaseModel):
    """Immutable snapshot of a listing, pushed when drilling into a directory."""

    model_config = ConfigDict(frozen=True)

    path: Optional[str] = Field(None, description="Listed location, None for the overview")
    entries: tuple[Entry, ...] = Field(default_factory=tuple)
    selected: int = 0
    offset: int = 0
    large_files: tuple[LargeFile, ...] = Field(default_factory=tuple)

    @classmethod
    def capture(
        cls,
        path: Optional[str],
        entries: list[Entry],
        selected: int,
        offset: int,
        large_files: list[LargeFile],
    ) -> "HistoryFrame":
        """Build a frame from copies so it never aliases the live listing."""
        return cls(
            path=path,
            entries=tuple(e.model_copy() for e in entries),
            selected=selected,
            offset=offset,
            large_files=tuple(f.model_copy() for f in large_files),
        )

    def restore_entries(self) -> list[Entry]:
        """Fresh copies of the stored entries."""
        return [e.model_copy() for e in self.entries]

    def restore_large_files(self) -> list[LargeFile]:
        return [f.model_copy() for f in self.large_files]


class ProgressSnapshot(BaseModel):
    """Point-in-time read of the scan counters."""

    files: int = 0
    dirs: int = 0
    bytes: int = 0
    current_path: str = ""


class DeleteTally(BaseModel):
    """Outcome of a deletion."""

    removed: int = Field(0, description="Files and directories removed")
    failed: int = Field(0, description="Items that could not be removed")

    @property
    def succeeded(self) -> bool:
        """Whether every item was removed."""
        return self.failed == 0


class Category(BaseModel):
    """A catalog entry describing directories that are safe to clean."""

    id: str = Field(..., description="Unique identifier for the category")
    name: str = Field(..., description="Human-readable name")
    paths: list[str] = Field(default_factory=list, description="Paths (supports ~ expansion)")
    dir_names: list[str] = Field(
        default_factory=list,
        description="Directory names matched anywhere (e.g., 'node_modules')",
    )
    description: str = Field("", description="What this category contains")
