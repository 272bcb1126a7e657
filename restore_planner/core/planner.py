"""Restore planner — runs grouper → selector → validator → truncator → formatter."""

from __future__ import annotations

from typing import Iterable

from loguru import logger

from restore_planner.core.formatter import PlanDraft, RestorePlanFormatter
from restore_planner.core.lineage import DatabaseLineage, group_lineages
from restore_planner.core.page_restore import PageRestorePlanner
from restore_planner.core.selector import ChainSelector
from restore_planner.core.truncator import MarkTimeTruncator
from restore_planner.core.validator import ContinuityValidator
from restore_planner.models.backup_set import BackupSet, PageRestoreRequest
from restore_planner.models.options import EngineDefaults, RestoreOptions
from restore_planner.models.restore_plan import PageRestoreResult, PlanResult


class RestorePlanner:
    """
    Entry point of the planning core.

    Pure and synchronous: no I/O, no shared state between calls. Each
    database is planned independently; a failure for one database is
    recorded in its own ``PlanResult`` and never stops the others.
    """

    def __init__(
        self,
        engine: EngineDefaults | None = None,
        selector: ChainSelector | None = None,
        validator: ContinuityValidator | None = None,
        truncator: MarkTimeTruncator | None = None,
    ) -> None:
        self._selector = selector or ChainSelector()
        self._validator = validator or ContinuityValidator()
        self._truncator = truncator or MarkTimeTruncator()
        self._formatter = RestorePlanFormatter(engine)
        self._page_planner = PageRestorePlanner(self._selector, self._validator)

    def plan(
        self,
        catalog: Iterable[BackupSet],
        options: RestoreOptions | None = None,
    ) -> dict[str, PlanResult]:
        """Plan every database found in ``catalog``, keyed by target name."""
        options = options or RestoreOptions()
        lineages = group_lineages(catalog, options)

        results: dict[str, PlanResult] = {}
        drafts: list[PlanDraft] = []
        for name, lineage in lineages.items():
            result = PlanResult(database=name, diagnostics=list(lineage.diagnostics))
            results[name] = result
            if lineage.is_ambiguous:
                continue
            draft = self._draft(lineage, options, result)
            if draft is not None:
                drafts.append(draft)

        for name, formatted in self._formatter.format_batch(drafts, options).items():
            results[name].plan = formatted.plan
            results[name].diagnostics.extend(formatted.diagnostics)

        for name, result in results.items():
            if result.ok:
                assert result.plan is not None
                logger.info(f"{name}: {len(result.plan.entries)} restore step(s) planned")
            else:
                for diagnostic in result.errors:
                    logger.warning(f"{name}: {diagnostic.kind}: {diagnostic.message}")
        return results

    def plan_pages(
        self, catalog: Iterable[BackupSet], request: PageRestoreRequest
    ) -> PageRestoreResult:
        return self._page_planner.plan(catalog, request)

    def _draft(
        self, lineage: DatabaseLineage, options: RestoreOptions, result: PlanResult
    ) -> PlanDraft | None:
        fork, fork_diagnostics = self._selector.pick_fork(lineage, options)
        result.diagnostics.extend(fork_diagnostics)
        if fork is None:
            return None

        selection = self._selector.select(fork, options)
        result.diagnostics.extend(selection.diagnostics)
        if selection.failed or not selection.chain:
            return None

        validation = self._validator.validate(selection.chain, options.continue_from)
        result.diagnostics.extend(validation.diagnostics)
        result.unverified.extend(validation.rejected)
        if validation.failed:
            return None

        truncation = self._truncator.truncate(validation.verified, options)
        result.diagnostics.extend(truncation.diagnostics)
        if truncation.failed:
            return None

        return PlanDraft(
            database=lineage.database,
            source_database=lineage.source_database,
            chain=truncation.chain,
            stop_at=truncation.stop_at,
            truncated=selection.truncated,
        )
