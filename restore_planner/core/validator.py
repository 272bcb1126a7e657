"""Continuity validator — verify media completeness and LSN adjacency of a chain."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Sequence

from loguru import logger

from restore_planner.models.backup_set import BackupKind, BackupSet, ContinuePoint
from restore_planner.models.diagnostic import Diagnostic, DiagnosticKind, Severity


@dataclass
class Validation:
    """Outcome of validating a candidate chain."""

    verified: list[BackupSet] = field(default_factory=list)
    rejected: list[BackupSet] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return any(d.is_error for d in self.diagnostics)


class ContinuityValidator:
    """
    Re-checks a chain link by link.

    The chain may come straight from a caller (e.g. trusted history) rather
    than from the selector, so nothing about its shape is assumed. Validation
    stops at the first broken link: everything before it is returned as
    verified, everything from it on is returned unverified with a note.
    """

    def validate(
        self,
        chain: Sequence[BackupSet],
        continue_from: ContinuePoint | None = None,
    ) -> Validation:
        result = Validation()

        for index, bs in enumerate(chain):
            previous = result.verified[-1] if result.verified else None
            problem = self._check(bs, previous, index, continue_from)
            if problem is None:
                result.verified.append(replace(bs, is_verified=True, verification_notes=""))
                continue

            kind, note = problem
            if kind == DiagnosticKind.CONTINUATION_GAP or index == 0:
                severity = Severity.ERROR
            else:
                severity = Severity.WARNING
            result.diagnostics.append(
                Diagnostic(kind, f"{note}: {bs.label()}", severity, bs)
            )
            result.rejected = [
                replace(rest, is_verified=False, verification_notes=note)
                for rest in chain[index:]
            ]
            logger.warning(
                f"Chain for {bs.database} broken at position {index + 1}: {note}; "
                f"{len(result.rejected)} backup(s) unverified"
            )
            break

        return result

    def _check(
        self,
        bs: BackupSet,
        previous: BackupSet | None,
        index: int,
        continue_from: ContinuePoint | None,
    ) -> tuple[DiagnosticKind, str] | None:
        if not bs.is_complete:
            if not bs.is_readable:
                return DiagnosticKind.INCOMPLETE_MEDIA_SET, "unreadable file in media set"
            return (
                DiagnosticKind.INCOMPLETE_MEDIA_SET,
                f"missing file in media set ({len(bs.members)} of {bs.family_count} present)",
            )

        if previous is None:
            if continue_from is not None:
                return self._check_continuation(bs, continue_from)
            if bs.kind != BackupKind.FULL:
                return DiagnosticKind.NO_APPLICABLE_FULL, f"chain starts with a {bs.kind} backup"
            return None

        if bs.kind == BackupKind.FULL:
            return DiagnosticKind.LSN_GAP, f"unexpected full backup after {previous.end_time.isoformat()}"

        if bs.kind == BackupKind.DIFFERENTIAL:
            if previous.kind != BackupKind.FULL or bs.database_backup_lsn != previous.checkpoint_lsn:
                return (
                    DiagnosticKind.LSN_GAP,
                    f"differential base {bs.database_backup_lsn} does not match "
                    f"full checkpoint {previous.checkpoint_lsn}",
                )
            return None

        if not (bs.first_lsn <= previous.last_lsn + 1 and bs.last_lsn > previous.last_lsn):
            return DiagnosticKind.LSN_GAP, f"LSN gap after {previous.end_time.isoformat()}"
        return None

    @staticmethod
    def _check_continuation(
        bs: BackupSet, cp: ContinuePoint
    ) -> tuple[DiagnosticKind, str] | None:
        last = cp.last_restored_lsn
        if bs.kind == BackupKind.DIFFERENTIAL:
            if cp.differential_base_lsn == bs.database_backup_lsn and bs.last_lsn > last:
                return None
        elif bs.kind == BackupKind.LOG:
            if bs.first_lsn <= last + 1 and bs.last_lsn > last:
                return None
        return (
            DiagnosticKind.CONTINUATION_GAP,
            f"cannot continue from LSN {last}",
        )
