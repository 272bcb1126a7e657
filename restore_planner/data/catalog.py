"""Backup catalog — JSON-based backup set records and plan serialization."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable

from loguru import logger

from restore_planner.models.backup_set import (
    BackupFile,
    BackupKind,
    BackupSet,
    FileKind,
    MarkEvent,
)
from restore_planner.models.diagnostic import Diagnostic
from restore_planner.models.restore_plan import (
    PageRestoreResult,
    PlanResult,
    RestorePlan,
    RestorePlanEntry,
    StopAt,
)


class CatalogError(ValueError):
    """Raised when a catalog file or record cannot be understood."""


def _parse_time(value: Any, field_name: str) -> datetime:
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError as e:
        raise CatalogError(f"Invalid {field_name}: {value!r}") from e


def _parse_lsn(value: Any, field_name: str) -> int:
    # LSNs are numeric(25,0) in the engine and often exported as strings
    try:
        return int(value or 0)
    except (TypeError, ValueError) as e:
        raise CatalogError(f"Invalid {field_name}: {value!r}") from e


def backup_set_from_dict(data: dict[str, Any]) -> BackupSet:
    """Reconstruct a BackupSet from a dict (loaded from JSON)."""
    try:
        files = tuple(
            BackupFile(
                logical_name=f["logical_name"],
                kind=FileKind(str(f.get("kind", "data")).lower()),
                original_path=f.get("original_path", ""),
                size=int(f.get("size", 0)),
                file_id=int(f.get("file_id", 0)),
            )
            for f in data.get("files", [])
        )
        marks = tuple(
            MarkEvent(
                name=m["name"],
                lsn=_parse_lsn(m.get("lsn"), "mark lsn"),
                time=_parse_time(m["time"], "mark time"),
            )
            for m in data.get("marks", [])
        )
        return BackupSet(
            database=data["database"],
            kind=BackupKind(str(data["kind"]).lower()),
            start_time=_parse_time(data["start_time"], "start_time"),
            end_time=_parse_time(data.get("end_time", data["start_time"]), "end_time"),
            first_lsn=_parse_lsn(data.get("first_lsn"), "first_lsn"),
            last_lsn=_parse_lsn(data.get("last_lsn"), "last_lsn"),
            checkpoint_lsn=_parse_lsn(data.get("checkpoint_lsn"), "checkpoint_lsn"),
            database_backup_lsn=_parse_lsn(data.get("database_backup_lsn"), "database_backup_lsn"),
            is_copy_only=bool(data.get("is_copy_only", False)),
            media_set_id=str(data.get("media_set_id", "")),
            family_count=int(data.get("family_count", 1)),
            family_sequence=int(data.get("family_sequence", 1)),
            files=files,
            source_path=data.get("source_path", ""),
            media_paths=tuple(data.get("media_paths", ())),
            server=data.get("server", ""),
            recovery_fork_id=str(data.get("recovery_fork_id", "")),
            is_readable=bool(data.get("is_readable", True)),
            marks=marks,
        )
    except KeyError as e:
        raise CatalogError(f"Backup record is missing {e}") from e
    except (TypeError, ValueError) as e:
        if isinstance(e, CatalogError):
            raise
        raise CatalogError(f"Invalid backup record: {e}") from e


def catalog_from_records(records: Iterable[dict[str, Any]]) -> list[BackupSet]:
    """Build a catalog from raw records, skipping the malformed ones."""
    catalog: list[BackupSet] = []
    for index, record in enumerate(records):
        try:
            catalog.append(backup_set_from_dict(dict(record)))
        except CatalogError as e:
            logger.warning(f"Skipping malformed backup record #{index}: {e}")
    return catalog


def load_catalog(path: Path) -> list[BackupSet]:
    """
    Load a catalog file.

    Accepts either ``{"version": 1, "backups": [...]}`` or a bare list of
    backup records.
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        raise CatalogError(f"Failed to load catalog {path}: {e}") from e

    records = data.get("backups", []) if isinstance(data, dict) else data
    if not isinstance(records, list):
        raise CatalogError(f"Catalog {path} has no list of backups")
    catalog = catalog_from_records(records)
    logger.info(f"Loaded {len(catalog)} backup record(s) from {path.name}")
    return catalog


# ── Serialization ──


def _time(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def backup_set_to_dict(bs: BackupSet) -> dict[str, Any]:
    return {
        "database": bs.database,
        "kind": str(bs.kind),
        "start_time": _time(bs.start_time),
        "end_time": _time(bs.end_time),
        "first_lsn": bs.first_lsn,
        "last_lsn": bs.last_lsn,
        "checkpoint_lsn": bs.checkpoint_lsn,
        "database_backup_lsn": bs.database_backup_lsn,
        "is_copy_only": bs.is_copy_only,
        "media_set_id": bs.media_set_id,
        "family_count": bs.family_count,
        "source_path": bs.source_path,
        "media_paths": list(bs.members),
        "recovery_fork_id": bs.recovery_fork_id,
        "is_verified": bs.is_verified,
        "verification_notes": bs.verification_notes,
    }


def _stop_to_dict(stop: StopAt | None) -> dict[str, Any] | None:
    if stop is None:
        return None
    return {
        "kind": str(stop.kind),
        "time": _time(stop.time),
        "mark": stop.mark,
        "inclusive": stop.inclusive,
        "after": _time(stop.after),
    }


def _entry_to_dict(entry: RestorePlanEntry) -> dict[str, Any]:
    return {
        "position": entry.position,
        "is_last": entry.is_last,
        "stop_at": _stop_to_dict(entry.stop_at),
        "backup_set": backup_set_to_dict(entry.backup_set),
        "target_files": [
            {
                "logical_name": t.logical_name,
                "kind": str(t.kind),
                "original_path": t.original_path,
                "target_path": t.target_path,
            }
            for t in entry.target_files
        ],
    }


def diagnostic_to_dict(diagnostic: Diagnostic) -> dict[str, Any]:
    bs = diagnostic.backup_set
    return {
        "kind": str(diagnostic.kind),
        "severity": str(diagnostic.severity),
        "message": diagnostic.message,
        "backup_set": bs.source_path if bs else None,
    }


def plan_to_dict(plan: RestorePlan) -> dict[str, Any]:
    return {
        "database": plan.database,
        "source_database": plan.source_database,
        "no_recovery": plan.no_recovery,
        "truncated": plan.truncated,
        "stop_at": _stop_to_dict(plan.stop_at),
        "entries": [_entry_to_dict(e) for e in plan.entries],
    }


def result_to_dict(result: PlanResult) -> dict[str, Any]:
    return {
        "database": result.database,
        "ok": result.ok,
        "plan": plan_to_dict(result.plan) if result.plan else None,
        "diagnostics": [diagnostic_to_dict(d) for d in result.diagnostics],
        "unverified": [backup_set_to_dict(b) for b in result.unverified],
    }


def page_result_to_dict(result: PageRestoreResult) -> dict[str, Any]:
    plan = result.plan
    return {
        "database": result.database,
        "ok": result.ok,
        "plan": None
        if plan is None
        else {
            "database": plan.database,
            "online_capable": plan.online_capable,
            "pages": [
                {"file_id": p.file_id, "page_id": p.page_id, "detected_at": _time(p.detected_at)}
                for p in plan.pages
            ],
            "entries": [_entry_to_dict(e) for e in plan.entries],
            "tail_log": {"database": plan.tail_log.database, "directory": plan.tail_log.directory},
        },
        "diagnostics": [diagnostic_to_dict(d) for d in result.diagnostics],
    }


def dump_results(results: dict[str, PlanResult]) -> str:
    """Serialize planning results to JSON text (stable across reruns)."""
    payload = {name: result_to_dict(results[name]) for name in sorted(results)}
    return json.dumps(payload, ensure_ascii=False, indent=2)
