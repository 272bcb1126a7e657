"""Restore plan formatter — assign target file paths and emit the ordered plan."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import StrEnum

from loguru import logger

from restore_planner.models.backup_set import BackupFile, BackupSet, FileKind
from restore_planner.models.diagnostic import Diagnostic, DiagnosticKind, error
from restore_planner.models.options import EngineDefaults, RestoreOptions
from restore_planner.models.restore_plan import (
    RestorePlan,
    RestorePlanEntry,
    StopAt,
    TargetFile,
)
from restore_planner.utils import join_path, path_key, sanitize_filename, split_file_path


class MappingRule(StrEnum):
    """Which placement rule produced a target path, in priority order."""

    EXPLICIT = "explicit"
    DIRECTORY = "directory"
    ENGINE_DEFAULT = "engine_default"
    ORIGINAL = "original"


# Rules whose collisions are resolved by relocation instead of being reported.
_RELOCATABLE = {MappingRule.ENGINE_DEFAULT, MappingRule.ORIGINAL}


@dataclass
class PlanDraft:
    """A validated, truncated chain waiting for file placement."""

    database: str
    source_database: str
    chain: list[BackupSet]
    stop_at: StopAt | None = None
    truncated: bool = False


@dataclass
class _Placement:
    file: BackupFile
    rule: MappingRule
    directory: str
    filename: str

    @property
    def path(self) -> str:
        return join_path(self.directory, self.filename) if self.directory else self.filename


@dataclass
class FormattedPlan:
    plan: RestorePlan | None = None
    diagnostics: list[Diagnostic] = field(default_factory=list)


class RestorePlanFormatter:
    """
    Computes ``TargetPath`` for every restored file.

    Priority per file: explicit logical-name mapping, destination directory
    (with prefix/suffix), engine default directory, original recorded path.
    Formatting a batch at once lets collisions between databases be found:
    under the last two rules every colliding database is moved into a
    ``<database>`` subfolder; under the first two a ``PathCollision`` is
    reported instead.
    """

    def __init__(self, engine: EngineDefaults | None = None) -> None:
        self._engine = engine or EngineDefaults()

    def format_batch(
        self, drafts: list[PlanDraft], options: RestoreOptions
    ) -> dict[str, FormattedPlan]:
        placements = {d.database: self._place(d, options) for d in drafts}
        results = {d.database: FormattedPlan() for d in drafts}

        for draft in drafts:
            self._check_within(draft, placements[draft.database], results[draft.database])
        self._resolve_across(placements, results)

        for draft in drafts:
            formatted = results[draft.database]
            if any(d.is_error for d in formatted.diagnostics):
                continue
            formatted.plan = self._build(draft, placements[draft.database], options)
        return results

    def format(self, draft: PlanDraft, options: RestoreOptions) -> FormattedPlan:
        return self.format_batch([draft], options)[draft.database]

    # ── Placement ──

    def _place(self, draft: PlanDraft, options: RestoreOptions) -> dict[str, _Placement]:
        placements: dict[str, _Placement] = {}
        for bs in draft.chain:
            for f in bs.files:
                if f.logical_name not in placements:
                    placements[f.logical_name] = self._place_file(f, draft, options)
        return placements

    def _place_file(self, f: BackupFile, draft: PlanDraft, options: RestoreOptions) -> _Placement:
        explicit = _lookup(options.file_mapping, f.logical_name)
        if explicit:
            directory, stem, ext = split_file_path(explicit)
            return _Placement(f, MappingRule.EXPLICIT, directory, stem + ext)

        original_dir, stem, ext = split_file_path(f.original_path)
        if options.replace_db_name_in_file and draft.source_database:
            stem = re.sub(re.escape(draft.source_database), draft.database, stem, flags=re.IGNORECASE)
        filename = sanitize_filename(f"{options.file_prefix}{stem}{options.file_suffix}") + ext

        directory = _directory_for(
            f.kind,
            options.destination_data_dir,
            options.destination_log_dir,
            options.destination_filestream_dir,
        )
        if directory:
            return _Placement(f, MappingRule.DIRECTORY, directory, filename)

        directory = _directory_for(
            f.kind, self._engine.data_dir, self._engine.log_dir, self._engine.filestream_dir
        )
        if directory:
            return _Placement(f, MappingRule.ENGINE_DEFAULT, directory, filename)

        return _Placement(f, MappingRule.ORIGINAL, original_dir, filename)

    # ── Collisions ──

    @staticmethod
    def _check_within(
        draft: PlanDraft, placements: dict[str, _Placement], result: FormattedPlan
    ) -> None:
        seen: dict[str, str] = {}
        for logical, placement in placements.items():
            key = path_key(placement.path)
            if key in seen:
                result.diagnostics.append(
                    error(
                        DiagnosticKind.PATH_COLLISION,
                        f"Files {seen[key]} and {logical} of {draft.database} "
                        f"would both be restored to {placement.path}",
                        draft.chain[0] if draft.chain else None,
                    )
                )
            else:
                seen[key] = logical

    @staticmethod
    def _resolve_across(
        placements: dict[str, dict[str, _Placement]], results: dict[str, FormattedPlan]
    ) -> None:
        owners: dict[str, list[tuple[str, _Placement]]] = {}
        for database in sorted(placements):
            for placement in placements[database].values():
                owners.setdefault(path_key(placement.path), []).append((database, placement))

        for claims in owners.values():
            databases = sorted({db for db, _ in claims})
            if len(databases) < 2:
                continue
            if all(p.rule in _RELOCATABLE for _, p in claims):
                for database, placement in claims:
                    placement.directory = join_path(
                        placement.directory or ".", sanitize_filename(database)
                    )
                    logger.debug(f"Relocated {placement.file.logical_name} of {database} to {placement.path}")
                continue
            for database in databases:
                results[database].diagnostics.append(
                    error(
                        DiagnosticKind.PATH_COLLISION,
                        f"{claims[0][1].path} is claimed by databases {', '.join(databases)}",
                    )
                )

    # ── Output ──

    @staticmethod
    def _build(
        draft: PlanDraft, placements: dict[str, _Placement], options: RestoreOptions
    ) -> RestorePlan:
        entries: list[RestorePlanEntry] = []
        count = len(draft.chain)
        for index, bs in enumerate(draft.chain):
            is_final = index == count - 1
            targets = tuple(
                TargetFile(
                    logical_name=f.logical_name,
                    kind=f.kind,
                    original_path=f.original_path,
                    target_path=placements[f.logical_name].path,
                )
                for f in bs.files
            )
            entries.append(
                RestorePlanEntry(
                    backup_set=bs,
                    position=index + 1,
                    target_files=targets,
                    is_last=is_final and not options.no_recovery,
                    stop_at=draft.stop_at if is_final else None,
                )
            )
        return RestorePlan(
            database=draft.database,
            source_database=draft.source_database,
            entries=tuple(entries),
            no_recovery=options.no_recovery,
            stop_at=draft.stop_at,
            truncated=draft.truncated,
        )


def _directory_for(kind: FileKind, data_dir: str, log_dir: str, filestream_dir: str) -> str:
    if kind == FileKind.LOG:
        return log_dir or data_dir
    if kind == FileKind.FILESTREAM:
        return filestream_dir or data_dir
    return data_dir


def _lookup(mapping: dict[str, str], logical_name: str) -> str:
    if logical_name in mapping:
        return mapping[logical_name]
    folded = logical_name.casefold()
    return next((v for k, v in mapping.items() if k.casefold() == folded), "")
