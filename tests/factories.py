"""Builders for compact backup catalogs in tests."""

from __future__ import annotations

from datetime import datetime, timedelta

from restore_planner.models.backup_set import (
    BackupFile,
    BackupKind,
    BackupSet,
    FileKind,
    MarkEvent,
)

BASE = datetime(2024, 5, 1, 9, 0)


def at(minutes: float) -> datetime:
    """09:00 plus ``minutes``."""
    return BASE + timedelta(minutes=minutes)


def files_for(database: str) -> tuple[BackupFile, ...]:
    return (
        BackupFile(database, FileKind.DATA, f"D:\\Data\\{database}.mdf", 8 * 1024 * 1024, 1),
        BackupFile(f"{database}_log", FileKind.LOG, f"L:\\Logs\\{database}_log.ldf", 1024 * 1024, 2),
    )


def _make(
    kind: BackupKind,
    first: int,
    last: int,
    minute: float,
    database: str = "Sales",
    path: str | None = None,
    **kwargs,
) -> BackupSet:
    kwargs.setdefault("files", files_for(database))
    return BackupSet(
        database=database,
        kind=kind,
        start_time=at(minute),
        end_time=at(minute + 1),
        first_lsn=first,
        last_lsn=last,
        source_path=path or f"/backups/{database}/{kind}_{first}_{last}.bak",
        **kwargs,
    )


def full(first: int, last: int, minute: float, checkpoint: int | None = None, **kwargs) -> BackupSet:
    return _make(
        BackupKind.FULL, first, last, minute,
        checkpoint_lsn=first if checkpoint is None else checkpoint,
        **kwargs,
    )


def diff(first: int, last: int, minute: float, base: int, **kwargs) -> BackupSet:
    return _make(BackupKind.DIFFERENTIAL, first, last, minute, database_backup_lsn=base, **kwargs)


def log(first: int, last: int, minute: float, **kwargs) -> BackupSet:
    return _make(BackupKind.LOG, first, last, minute, **kwargs)


def mark(name: str, lsn: int, minute: float) -> MarkEvent:
    return MarkEvent(name=name, lsn=lsn, time=at(minute))


def scenario_a(database: str = "Sales") -> list[BackupSet]:
    """Full(100-200, 09:00) then logs 200-250, 250-300, 300-350 at 09:05/09:10/09:15."""
    return [
        full(100, 200, 0, database=database),
        log(200, 250, 5, database=database),
        log(250, 300, 10, database=database),
        log(300, 350, 15, database=database),
    ]
