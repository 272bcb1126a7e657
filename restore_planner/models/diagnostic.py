"""Diagnostic models — structured planning outcomes reported per database."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from restore_planner.models.backup_set import BackupSet


class DiagnosticKind(StrEnum):
    """What went wrong (or what the caller should know)."""

    NO_APPLICABLE_FULL = "NoApplicableFull"
    LSN_GAP = "LsnGap"
    DUPLICATE_BACKUP_SET = "DuplicateBackupSet"
    INCOMPLETE_MEDIA_SET = "IncompleteMediaSet"
    CONTINUATION_GAP = "ContinuationGap"
    MARK_NOT_FOUND = "MarkNotFound"
    AMBIGUOUS_DATABASE_IDENTITY = "AmbiguousDatabaseIdentity"
    PATH_COLLISION = "PathCollision"
    # Advisory kinds
    LATEST_NOT_REQUESTED = "LatestNotRequested"
    IGNORED_LINEAGE = "IgnoredLineage"
    NOTHING_TO_RESTORE = "NothingToRestore"
    UNUSABLE_DIFFERENTIAL = "UnusableDifferential"


class Severity(StrEnum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Diagnostic:
    """A single planning finding, optionally tied to the backup set implicated."""

    kind: DiagnosticKind
    message: str
    severity: Severity = Severity.ERROR
    backup_set: BackupSet | None = None

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR


def info(kind: DiagnosticKind, message: str, backup_set: BackupSet | None = None) -> Diagnostic:
    return Diagnostic(kind, message, Severity.INFO, backup_set)


def warning(kind: DiagnosticKind, message: str, backup_set: BackupSet | None = None) -> Diagnostic:
    return Diagnostic(kind, message, Severity.WARNING, backup_set)


def error(kind: DiagnosticKind, message: str, backup_set: BackupSet | None = None) -> Diagnostic:
    return Diagnostic(kind, message, Severity.ERROR, backup_set)
