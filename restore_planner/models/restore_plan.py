"""Restore plan models — the ordered output handed to a restore executor."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from restore_planner.models.backup_set import BackupKind, BackupSet, DamagedPage, FileKind
from restore_planner.models.diagnostic import Diagnostic, Severity
from restore_planner.utils import format_size


class StopKind(StrEnum):
    TIME = "time"
    MARK = "mark"


@dataclass(frozen=True)
class StopAt:
    """Where the final restore step should stop replaying the log."""

    kind: StopKind
    time: datetime | None = None
    mark: str = ""
    inclusive: bool = True  # False = stop before the mark
    after: datetime | None = None


@dataclass(frozen=True)
class TargetFile:
    """Destination of one database file."""

    logical_name: str
    kind: FileKind
    original_path: str
    target_path: str


@dataclass(frozen=True)
class RestorePlanEntry:
    """One step of a restore plan."""

    backup_set: BackupSet
    position: int
    target_files: tuple[TargetFile, ...] = ()
    is_last: bool = False
    stop_at: StopAt | None = None


@dataclass(frozen=True)
class RestorePlan:
    """Ordered, verified restore steps for one target database."""

    database: str
    source_database: str
    entries: tuple[RestorePlanEntry, ...] = ()
    no_recovery: bool = False
    stop_at: StopAt | None = None
    truncated: bool = False

    @property
    def backup_sets(self) -> list[BackupSet]:
        return [e.backup_set for e in self.entries]

    def summary(self) -> str:
        """One line per step, for previews and logs."""
        lines = [f"Restore plan for {self.database} (from {self.source_database})"]
        for entry in self.entries:
            bs = entry.backup_set
            line = (
                f"  {entry.position:>3}. {bs.kind:<12} "
                f"LSN {bs.first_lsn}-{bs.last_lsn}  {format_size(bs.total_size):>9}  "
                f"{', '.join(bs.members)}"
            )
            if entry.stop_at:
                line += f"  (stop at {entry.stop_at.mark or entry.stop_at.time})"
            if entry.is_last:
                line += "  [recover]"
            lines.append(line)
        return "\n".join(lines)


@dataclass
class PlanResult:
    """Per-database outcome: a plan, diagnostics, or both."""

    database: str
    plan: RestorePlan | None = None
    diagnostics: list[Diagnostic] = field(default_factory=list)
    unverified: list[BackupSet] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.plan is not None and not any(d.is_error for d in self.diagnostics)

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.ERROR]


@dataclass(frozen=True)
class TailLogCapture:
    """Instruction to take a fresh log backup right before the final recovery."""

    database: str
    directory: str = ""


@dataclass(frozen=True)
class PageRestorePlan:
    """Plan for repairing individual pages."""

    database: str
    pages: tuple[DamagedPage, ...]
    entries: tuple[RestorePlanEntry, ...]
    tail_log: TailLogCapture
    online_capable: bool = False

    @property
    def skips_full(self) -> bool:
        return not any(e.backup_set.kind != BackupKind.LOG for e in self.entries)


@dataclass
class PageRestoreResult:
    database: str
    plan: PageRestorePlan | None = None
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.plan is not None and not any(d.is_error for d in self.diagnostics)
