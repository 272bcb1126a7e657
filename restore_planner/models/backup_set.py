"""Backup set models — one record per backup operation, as read from media headers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from restore_planner.utils import normalize_time


class BackupKind(StrEnum):
    """Type of backup operation."""

    FULL = "full"
    DIFFERENTIAL = "differential"
    LOG = "log"


class FileKind(StrEnum):
    """Physical kind of a database file captured in a backup."""

    DATA = "data"
    LOG = "log"
    FILESTREAM = "filestream"


@dataclass(frozen=True)
class BackupFile:
    """A database file contained in a backup set."""

    logical_name: str
    kind: FileKind
    original_path: str
    size: int = 0
    file_id: int = 0


@dataclass(frozen=True)
class MarkEvent:
    """A named transaction mark recorded inside a log backup."""

    name: str
    lsn: int
    time: datetime

    def __post_init__(self) -> None:
        object.__setattr__(self, "time", normalize_time(self.time))


@dataclass(frozen=True)
class BackupSet:
    """
    One logical backup operation.

    A catalog record describes one physical member file (``source_path``).
    Striped backups arrive as several records sharing ``media_set_id``; the
    selector consolidates them and fills ``media_paths`` with the member
    files in family order.
    """

    database: str
    kind: BackupKind
    start_time: datetime
    end_time: datetime
    first_lsn: int
    last_lsn: int
    checkpoint_lsn: int = 0
    database_backup_lsn: int = 0
    is_copy_only: bool = False
    media_set_id: str = ""
    family_count: int = 1
    family_sequence: int = 1
    files: tuple[BackupFile, ...] = ()
    source_path: str = ""
    media_paths: tuple[str, ...] = ()
    server: str = ""
    recovery_fork_id: str = ""
    is_readable: bool = True
    marks: tuple[MarkEvent, ...] = ()
    is_verified: bool = False
    verification_notes: str = ""

    def __post_init__(self) -> None:
        # Stored times are naive; aware input is converted to UTC first
        object.__setattr__(self, "start_time", normalize_time(self.start_time))
        object.__setattr__(self, "end_time", normalize_time(self.end_time))

    @property
    def identity(self) -> tuple[str, str, int, int, int]:
        """Key shared by every copy and every stripe of the same backup."""
        return (
            self.database.casefold(),
            str(self.kind),
            self.first_lsn,
            self.last_lsn,
            self.checkpoint_lsn,
        )

    @property
    def members(self) -> tuple[str, ...]:
        """Physical files the executor must read, never empty."""
        return self.media_paths or ((self.source_path,) if self.source_path else ())

    @property
    def is_complete(self) -> bool:
        return len(self.members) >= self.family_count and self.is_readable

    @property
    def total_size(self) -> int:
        return sum(f.size for f in self.files)

    def label(self) -> str:
        """Short human-readable description used in notes and logs."""
        return (
            f"{self.kind} {self.database} "
            f"[{self.first_lsn}-{self.last_lsn}] @ {self.start_time.isoformat()}"
        )


@dataclass(frozen=True)
class ContinuePoint:
    """State of a database left restoring by an earlier, partial restore."""

    last_restored_lsn: int
    differential_base_lsn: int | None = None
    recovery_fork_id: str = ""


@dataclass(frozen=True)
class DamagedPage:
    """A page reported corrupt by the engine."""

    file_id: int
    page_id: int
    detected_at: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "detected_at", normalize_time(self.detected_at))


@dataclass(frozen=True)
class PageRestoreRequest:
    """Input for the single-page repair workflow."""

    database: str
    pages: tuple[DamagedPage, ...] = field(default_factory=tuple)
    online_capable: bool = False
    restored_through_lsn: int | None = None
    tail_log_dir: str = ""
