"""Chain selector — pick the anchor backups and the forward run of log backups."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Iterable

from loguru import logger

from restore_planner.core.lineage import DatabaseLineage, Fork, catalog_order
from restore_planner.models.backup_set import BackupKind, BackupSet, ContinuePoint
from restore_planner.models.diagnostic import (
    Diagnostic,
    DiagnosticKind,
    error,
    info,
    warning,
)
from restore_planner.models.options import RestoreOptions


@dataclass
class Selection:
    """Candidate chain for one fork, before validation."""

    chain: list[BackupSet] = field(default_factory=list)
    truncated: bool = False
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return any(d.is_error for d in self.diagnostics)


def consolidate(backups: Iterable[BackupSet]) -> tuple[list[BackupSet], list[Diagnostic]]:
    """
    Merge stripe members into one set each and drop duplicate copies.

    For every family sequence of a backup, readable copies win over
    unreadable ones, then the lexicographically smallest path wins. Every
    losing copy is reported as ``DuplicateBackupSet``.
    """
    groups: dict[tuple, dict[int, list[BackupSet]]] = {}
    for bs in backups:
        groups.setdefault(bs.identity, {}).setdefault(bs.family_sequence, []).append(bs)

    merged: list[BackupSet] = []
    diagnostics: list[Diagnostic] = []
    for identity in sorted(groups, key=lambda k: (k[2], k[3], k[1], k[4])):
        by_sequence = groups[identity]
        winners: list[BackupSet] = []
        for sequence in sorted(by_sequence):
            copies = sorted(by_sequence[sequence], key=lambda b: (not b.is_readable, b.source_path))
            winner = copies[0]
            winners.append(winner)
            for duplicate in copies[1:]:
                diagnostics.append(
                    info(
                        DiagnosticKind.DUPLICATE_BACKUP_SET,
                        f"{duplicate.source_path} duplicates {winner.source_path}; using the latter",
                        duplicate,
                    )
                )
                logger.debug(f"Duplicate backup ignored: {duplicate.source_path}")

        base = winners[0]
        if len(winners) == 1 and base.media_paths:
            paths = base.media_paths
        else:
            paths = tuple(w.source_path for w in winners if w.source_path)
        merged.append(
            replace(
                base,
                media_paths=paths,
                source_path=paths[0] if paths else base.source_path,
                is_readable=all(w.is_readable for w in winners),
            )
        )

    merged.sort(key=catalog_order)
    return merged, diagnostics


def _latest(candidates: list[BackupSet]) -> BackupSet:
    return max(candidates, key=lambda b: (b.start_time, b.last_lsn))


class ChainSelector:
    """
    Chooses ``[Full?, Differential?, Log...]`` for a fork.

    The log walk is greedy: from the anchor LSN it repeatedly takes the log
    with the smallest ``first_lsn`` that still continues the chain, and stops
    once the chain covers the requested restore time.
    """

    # ── Fork choice ──

    def pick_fork(
        self, lineage: DatabaseLineage, options: RestoreOptions
    ) -> tuple[Fork | None, list[Diagnostic]]:
        """Pick the fork a restore should draw from; report the others."""
        if not lineage.forks:
            return None, []

        chosen: Fork | None = None
        cp = options.continue_from
        if options.explicit_full:
            chosen = next(
                (f for f in lineage.forks if any(_matches_path(b, options.explicit_full) for b in f.fulls)),
                None,
            )
        elif cp is not None:
            candidates = [
                f for f in lineage.forks
                if not cp.recovery_fork_id or f.fork_id == cp.recovery_fork_id
            ]
            if not candidates:
                return None, [
                    error(
                        DiagnosticKind.CONTINUATION_GAP,
                        f"No backups found for recovery fork {cp.recovery_fork_id}",
                    )
                ]
            # Prefer the lineage that can pick up where the restore stopped
            chosen = max(
                candidates,
                key=lambda f: (
                    any(_resumes(b, cp) for b in f.backups),
                    max(b.end_time for b in f.backups),
                    f.root_lsn,
                ),
            )
        else:
            best: tuple[datetime, str, int] | None = None
            for fork in lineage.forks:
                qualifying = [
                    b for b in fork.fulls
                    if not b.is_copy_only and _not_after(b, options.restore_time)
                ]
                if not qualifying:
                    continue
                key = (_latest(qualifying).start_time, fork.fork_id, fork.root_lsn)
                if best is None or key > best:
                    best, chosen = key, fork

        if chosen is None:
            chosen = lineage.forks[-1]

        diagnostics = [
            info(
                DiagnosticKind.IGNORED_LINEAGE,
                f"Ignoring backup lineage from LSN {fork.root_lsn}"
                + (f" in recovery fork '{fork.fork_id}'" if fork.fork_id else "")
                + f" ({len(fork.backups)} backup(s))",
                fork.backups[0] if fork.backups else None,
            )
            for fork in lineage.forks
            if fork is not chosen
        ]
        return chosen, diagnostics

    # ── Selection ──

    def select(self, fork: Fork, options: RestoreOptions) -> Selection:
        backups, diagnostics = consolidate(fork.backups)
        selection = Selection(diagnostics=diagnostics)

        if options.explicit_full:
            return self._select_explicit(fork.backups, backups, options, selection)
        if options.continue_from is not None:
            return self._select_continuation(backups, options, selection)

        restore_time = options.restore_time
        fulls = [
            b for b in backups
            if b.kind == BackupKind.FULL and not b.is_copy_only and _not_after(b, restore_time)
        ]
        if not fulls:
            when = restore_time.isoformat() if restore_time else "now"
            selection.diagnostics.append(
                error(
                    DiagnosticKind.NO_APPLICABLE_FULL,
                    f"No full backup started on or before {when}",
                    backups[0] if backups else None,
                )
            )
            return selection

        full = _latest(fulls)
        selection.chain.append(full)
        anchor_lsn = full.last_lsn

        checkpoints = {b.checkpoint_lsn for b in backups if b.kind == BackupKind.FULL}
        for diff in backups:
            if diff.kind == BackupKind.DIFFERENTIAL and diff.database_backup_lsn not in checkpoints:
                selection.diagnostics.append(
                    info(
                        DiagnosticKind.UNUSABLE_DIFFERENTIAL,
                        f"Differential {diff.source_path} is based on a full backup "
                        f"(checkpoint {diff.database_backup_lsn}) missing from the catalog",
                        diff,
                    )
                )

        if not options.ignore_differential:
            diffs = [
                b for b in backups
                if b.kind == BackupKind.DIFFERENTIAL
                and not b.is_copy_only
                and b.database_backup_lsn == full.checkpoint_lsn
                and _not_after(b, restore_time)
            ]
            if diffs:
                diff = _latest(diffs)
                selection.chain.append(diff)
                anchor_lsn = diff.last_lsn

        if not options.ignore_log:
            self.extend_with_logs(backups, anchor_lsn, restore_time, selection)

        logger.debug(
            f"Selected {len(selection.chain)} backup(s) for {full.database}, "
            f"truncated={selection.truncated}"
        )
        return selection

    def _select_explicit(
        self,
        records: Iterable[BackupSet],
        backups: list[BackupSet],
        options: RestoreOptions,
        selection: Selection,
    ) -> Selection:
        # The requested path may be a duplicate copy that lost to another
        # copy during consolidation, so resolve it on the raw records.
        requested = next(
            (b for b in records if b.kind == BackupKind.FULL and _matches_path(b, options.explicit_full)),
            None,
        )
        full = None
        if requested is not None:
            full = next((b for b in backups if b.identity == requested.identity), None)
        if full is None:
            selection.diagnostics.append(
                error(
                    DiagnosticKind.NO_APPLICABLE_FULL,
                    f"Requested full backup {options.explicit_full} is not in the catalog",
                )
            )
        else:
            selection.chain.append(full)
        return selection

    def _select_continuation(
        self, backups: list[BackupSet], options: RestoreOptions, selection: Selection
    ) -> Selection:
        cp = options.continue_from
        assert cp is not None
        anchor_lsn = cp.last_restored_lsn

        if cp.differential_base_lsn is not None and not options.ignore_differential:
            diffs = [
                b for b in backups
                if b.kind == BackupKind.DIFFERENTIAL
                and not b.is_copy_only
                and b.database_backup_lsn == cp.differential_base_lsn
                and b.last_lsn > anchor_lsn
                and _not_after(b, options.restore_time)
            ]
            if diffs:
                diff = _latest(diffs)
                selection.chain.append(diff)
                anchor_lsn = diff.last_lsn

        if not options.ignore_log:
            self.extend_with_logs(backups, anchor_lsn, options.restore_time, selection)

        if not selection.chain:
            pending = [
                b for b in backups
                if b.kind == BackupKind.LOG and not b.is_copy_only and b.last_lsn > anchor_lsn
            ]
            if pending:
                first = pending[0]
                # The walk already reported the break as a gap; in continue
                # mode a break at the very start is fatal.
                selection.diagnostics = [
                    d for d in selection.diagnostics if d.kind != DiagnosticKind.LSN_GAP
                ]
                selection.diagnostics.append(
                    error(
                        DiagnosticKind.CONTINUATION_GAP,
                        f"Database was restored through LSN {cp.last_restored_lsn} but the "
                        f"next available log starts at LSN {first.first_lsn}",
                        first,
                    )
                )
            else:
                selection.diagnostics.append(
                    info(
                        DiagnosticKind.NOTHING_TO_RESTORE,
                        f"No backups beyond LSN {cp.last_restored_lsn}; database is current",
                    )
                )
        return selection

    def extend_with_logs(
        self,
        backups: list[BackupSet],
        anchor_lsn: int,
        restore_time: datetime | None,
        selection: Selection,
    ) -> None:
        """Append contiguous logs after ``anchor_lsn`` to ``selection.chain``."""
        remaining = sorted(
            (
                b for b in backups
                if b.kind == BackupKind.LOG and not b.is_copy_only and b.last_lsn > anchor_lsn
            ),
            key=lambda b: (b.first_lsn, -b.last_lsn, b.source_path),
        )
        covered_until = selection.chain[-1].end_time if selection.chain else None

        while True:
            if restore_time is not None and covered_until is not None and covered_until >= restore_time:
                selection.truncated = True
                break
            nxt = next((b for b in remaining if b.first_lsn <= anchor_lsn + 1), None)
            if nxt is None:
                break
            selection.chain.append(nxt)
            anchor_lsn = nxt.last_lsn
            covered_until = nxt.end_time
            remaining = [b for b in remaining if b.last_lsn > anchor_lsn]

        if not selection.truncated and remaining:
            gap = remaining[0]
            after = covered_until.isoformat() if covered_until else "start"
            selection.diagnostics.append(
                warning(
                    DiagnosticKind.LSN_GAP,
                    f"LSN gap after {after}: chain ends at LSN {anchor_lsn}, "
                    f"next log {gap.source_path} starts at LSN {gap.first_lsn}",
                    gap,
                )
            )


def _not_after(bs: BackupSet, restore_time: datetime | None) -> bool:
    return restore_time is None or bs.start_time <= restore_time


def _resumes(bs: BackupSet, cp: ContinuePoint) -> bool:
    if bs.kind == BackupKind.DIFFERENTIAL:
        return bs.database_backup_lsn == cp.differential_base_lsn and bs.last_lsn > cp.last_restored_lsn
    if bs.kind == BackupKind.LOG:
        return bs.first_lsn <= cp.last_restored_lsn + 1 and bs.last_lsn > cp.last_restored_lsn
    return False


def _matches_path(bs: BackupSet, path: str) -> bool:
    return path == bs.source_path or path in bs.media_paths
