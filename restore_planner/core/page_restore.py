"""Page restore planner — repair individual corrupt pages from the minimal backups."""

from __future__ import annotations

from typing import Iterable

from loguru import logger

from restore_planner.core.selector import ChainSelector, Selection, consolidate
from restore_planner.core.validator import ContinuityValidator
from restore_planner.models.backup_set import (
    BackupKind,
    BackupSet,
    ContinuePoint,
    PageRestoreRequest,
)
from restore_planner.models.diagnostic import Diagnostic, DiagnosticKind, error
from restore_planner.models.restore_plan import (
    PageRestorePlan,
    PageRestoreResult,
    RestorePlanEntry,
    TailLogCapture,
)


class PageRestorePlanner:
    """
    Plans a page-level repair.

    The anchor is the newest full (plus differential) holding a good copy of
    the pages, i.e. finished before the earliest corruption was detected.
    When the pages were already restored by an earlier step, the anchor is
    skipped and logs run from ``restored_through_lsn``. Logs always run to
    the newest one available, followed by a mandatory tail-log capture.
    """

    def __init__(
        self,
        selector: ChainSelector | None = None,
        validator: ContinuityValidator | None = None,
    ) -> None:
        self._selector = selector or ChainSelector()
        self._validator = validator or ContinuityValidator()

    def plan(self, catalog: Iterable[BackupSet], request: PageRestoreRequest) -> PageRestoreResult:
        if not request.pages:
            raise ValueError("Page restore needs at least one damaged page")

        result = PageRestoreResult(database=request.database)
        wanted = request.database.casefold()
        backups, duplicates = consolidate(b for b in catalog if b.database.casefold() == wanted)
        result.diagnostics.extend(duplicates)

        selection = Selection()
        continue_from: ContinuePoint | None = None
        if request.restored_through_lsn is not None:
            anchor_lsn = request.restored_through_lsn
            continue_from = ContinuePoint(last_restored_lsn=anchor_lsn)
        else:
            anchor = self._anchor(backups, request, result.diagnostics)
            if anchor is None:
                return result
            selection.chain.extend(anchor)
            anchor_lsn = anchor[-1].last_lsn

        self._selector.extend_with_logs(backups, anchor_lsn, None, selection)
        for diagnostic in selection.diagnostics:
            # Pages must be brought fully current; any break is fatal here.
            result.diagnostics.append(
                error(diagnostic.kind, diagnostic.message, diagnostic.backup_set)
            )
        if any(d.is_error for d in result.diagnostics):
            return result

        validation = self._validator.validate(selection.chain, continue_from)
        if validation.rejected:
            result.diagnostics.extend(
                error(d.kind, d.message, d.backup_set) for d in validation.diagnostics
            )
            return result

        entries = tuple(
            RestorePlanEntry(backup_set=bs, position=index + 1)
            for index, bs in enumerate(validation.verified)
        )
        result.plan = PageRestorePlan(
            database=request.database,
            pages=request.pages,
            entries=entries,
            tail_log=TailLogCapture(database=request.database, directory=request.tail_log_dir),
            online_capable=request.online_capable,
        )
        logger.info(
            f"Page restore for {request.database}: {len(request.pages)} page(s), "
            f"{len(entries)} backup(s) + tail log, online={request.online_capable}"
        )
        return result

    @staticmethod
    def _anchor(
        backups: list[BackupSet],
        request: PageRestoreRequest,
        diagnostics: list[Diagnostic],
    ) -> list[BackupSet] | None:
        detected = [p.detected_at for p in request.pages if p.detected_at is not None]
        earliest = min(detected) if detected else None

        def clean(bs: BackupSet) -> bool:
            return earliest is None or bs.end_time < earliest

        fulls = [
            b for b in backups
            if b.kind == BackupKind.FULL and not b.is_copy_only and clean(b)
        ]
        if not fulls:
            when = f" finished before {earliest.isoformat()}" if earliest else ""
            diagnostics.append(
                error(
                    DiagnosticKind.NO_APPLICABLE_FULL,
                    f"No full backup of {request.database}{when} holds a good copy of the pages",
                )
            )
            return None

        full = max(fulls, key=lambda b: (b.start_time, b.last_lsn))
        chain = [full]
        diffs = [
            b for b in backups
            if b.kind == BackupKind.DIFFERENTIAL
            and not b.is_copy_only
            and b.database_backup_lsn == full.checkpoint_lsn
            and clean(b)
        ]
        if diffs:
            chain.append(max(diffs, key=lambda b: (b.start_time, b.last_lsn)))
        return chain
