"""Lineage grouper — partition a backup catalog by database and recovery fork."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from loguru import logger

from restore_planner.models.backup_set import BackupKind, BackupSet
from restore_planner.models.diagnostic import Diagnostic, DiagnosticKind, error
from restore_planner.models.options import RestoreOptions

_KIND_ORDER = {BackupKind.FULL: 0, BackupKind.DIFFERENTIAL: 1, BackupKind.LOG: 2}


def catalog_order(bs: BackupSet) -> tuple:
    """Deterministic ordering for backup sets regardless of input order."""
    return (bs.first_lsn, bs.last_lsn, _KIND_ORDER[bs.kind], bs.start_time, bs.source_path)


@dataclass(frozen=True)
class Fork:
    """Backups of one database descending from the same Full, or Fulls joined by one log chain."""

    fork_id: str
    backups: tuple[BackupSet, ...] = ()
    root_lsn: int = 0

    def of_kind(self, kind: BackupKind) -> list[BackupSet]:
        return [b for b in self.backups if b.kind == kind]

    @property
    def fulls(self) -> list[BackupSet]:
        return self.of_kind(BackupKind.FULL)


@dataclass
class DatabaseLineage:
    """Everything the catalog holds for one target database."""

    database: str
    source_database: str
    forks: list[Fork] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def is_ambiguous(self) -> bool:
        return any(
            d.kind == DiagnosticKind.AMBIGUOUS_DATABASE_IDENTITY for d in self.diagnostics
        )


def resolve_target_name(source: str, options: RestoreOptions) -> str:
    """Apply rename overrides to a recorded database name."""
    renames = {k.casefold(): v for k, v in options.rename_map.items()}
    name = renames.get(source.casefold(), "")
    if not name and options.database_name:
        # A single override name only makes sense for a single database; with
        # several, every one of them lands on it and is flagged as ambiguous.
        name = options.database_name
    if not name:
        name = source
    if options.database_name_prefix:
        name = f"{options.database_name_prefix}{name}"
    return name


def group_lineages(
    catalog: Iterable[BackupSet],
    options: RestoreOptions | None = None,
) -> dict[str, DatabaseLineage]:
    """
    Partition ``catalog`` into ``{target database → DatabaseLineage}``.

    Database names match case-insensitively. When two distinct source
    databases resolve to the same target name, the target carries an
    ``AmbiguousDatabaseIdentity`` error per source and no forks, so nothing
    downstream can merge unrelated data.
    """
    options = options or RestoreOptions()

    by_source: dict[str, list[BackupSet]] = {}
    spellings: dict[str, set[str]] = {}
    for bs in catalog:
        key = bs.database.casefold()
        by_source.setdefault(key, []).append(bs)
        spellings.setdefault(key, set()).add(bs.database)

    by_target: dict[str, list[str]] = {}
    display: dict[str, str] = {}
    for key in sorted(by_source):
        source_name = min(spellings[key])
        display[key] = source_name
        target = resolve_target_name(source_name, options)
        by_target.setdefault(target.casefold(), []).append(key)

    result: dict[str, DatabaseLineage] = {}
    for target_key, source_keys in sorted(by_target.items()):
        first = source_keys[0]
        target = resolve_target_name(display[first], options)

        if len(source_keys) > 1:
            names = ", ".join(display[k] for k in source_keys)
            lineage = DatabaseLineage(database=target, source_database=names)
            for k in source_keys:
                sample = min(by_source[k], key=catalog_order)
                lineage.diagnostics.append(
                    error(
                        DiagnosticKind.AMBIGUOUS_DATABASE_IDENTITY,
                        f"Databases {names} would all be restored as '{target}'",
                        sample,
                    )
                )
            logger.warning(f"Ambiguous target '{target}' for source databases {names}")
            result[target] = lineage
            continue

        lineage = DatabaseLineage(database=target, source_database=display[first])
        lineage.forks = _split_forks(by_source[first])
        logger.debug(
            f"{display[first]} → {target}: {len(by_source[first])} backup(s) "
            f"in {len(lineage.forks)} fork(s)"
        )
        result[target] = lineage

    return result


def _split_forks(backups: list[BackupSet]) -> list[Fork]:
    by_fork_id: dict[str, list[BackupSet]] = {}
    for bs in backups:
        by_fork_id.setdefault(bs.recovery_fork_id, []).append(bs)

    forks: list[Fork] = []
    for fork_id, members in sorted(by_fork_id.items()):
        for group in _split_by_ancestry(members):
            ordered = tuple(sorted(group, key=catalog_order))
            forks.append(
                Fork(fork_id=fork_id, backups=ordered, root_lsn=min(b.first_lsn for b in ordered))
            )
    forks.sort(key=lambda f: (f.fork_id, f.root_lsn))
    return forks


def _continues(bs: BackupSet, previous: BackupSet) -> bool:
    return bs.first_lsn <= previous.last_lsn + 1 and bs.last_lsn > previous.last_lsn


def _split_by_ancestry(backups: list[BackupSet]) -> list[list[BackupSet]]:
    """
    Partition one database's backups into lineages rooted at a Full.

    Every non-copy-only Full starts a lineage. A differential joins the Full
    whose checkpoint it is based on; a log joins every lineage whose LSN
    chain it continues, merging them. Backups that continue nothing (gap
    logs, orphaned differentials, copy-only Fulls) join the lineage of the
    nearest backup at or below their first LSN. Copies and stripes of one
    backup always stay together.
    """
    representatives: dict[tuple, BackupSet] = {}
    for bs in sorted(backups, key=catalog_order):
        representatives.setdefault(bs.identity, bs)

    parent = {key: key for key in representatives}

    def find(key: tuple) -> tuple:
        while parent[key] != key:
            parent[key] = parent[parent[key]]
            key = parent[key]
        return key

    def union(a: BackupSet, b: BackupSet) -> None:
        root_a, root_b = find(a.identity), find(b.identity)
        if root_a != root_b:
            parent[max(root_a, root_b)] = min(root_a, root_b)

    placed: list[BackupSet] = []
    leftovers: list[BackupSet] = []

    def attach_nearest(bs: BackupSet) -> None:
        preceding = [m for m in placed if m.first_lsn <= bs.first_lsn]
        if preceding:
            union(bs, max(preceding, key=lambda m: (m.last_lsn, catalog_order(m))))

    reps = list(representatives.values())
    fulls = [b for b in reps if b.kind == BackupKind.FULL and not b.is_copy_only]
    placed.extend(fulls)

    for bs in reps:
        if bs.kind != BackupKind.DIFFERENTIAL:
            continue
        base = next((f for f in fulls if f.checkpoint_lsn == bs.database_backup_lsn), None)
        if base is None:
            leftovers.append(bs)
            continue
        union(bs, base)
        placed.append(bs)

    for bs in reps:
        if bs.kind != BackupKind.LOG:
            continue
        continued = [m for m in placed if _continues(bs, m)]
        for m in continued:
            union(bs, m)
        if not continued:
            attach_nearest(bs)
        placed.append(bs)

    leftovers.extend(b for b in reps if b.kind == BackupKind.FULL and b.is_copy_only)
    for bs in leftovers:
        attach_nearest(bs)

    groups: dict[tuple, list[BackupSet]] = {}
    for bs in backups:
        groups.setdefault(find(bs.identity), []).append(bs)
    return [groups[root] for root in sorted(groups)]
