"""Mark/time truncator — trim the verified log tail to a point in time or a mark."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Sequence

from loguru import logger

from restore_planner.models.backup_set import BackupKind, BackupSet
from restore_planner.models.diagnostic import Diagnostic, DiagnosticKind, error, warning
from restore_planner.models.options import RestoreOptions
from restore_planner.models.restore_plan import StopAt, StopKind


@dataclass
class Truncation:
    chain: list[BackupSet] = field(default_factory=list)
    dropped: list[BackupSet] = field(default_factory=list)
    stop_at: StopAt | None = None
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return any(d.is_error for d in self.diagnostics)


class MarkTimeTruncator:
    """Applies ``stop_mark`` or ``restore_time`` to a verified chain."""

    def truncate(self, chain: Sequence[BackupSet], options: RestoreOptions) -> Truncation:
        if options.stop_mark:
            return self._at_mark(list(chain), options)
        if options.restore_time is not None:
            return self._at_time(list(chain), options.restore_time)
        return Truncation(chain=list(chain))

    def _at_mark(self, chain: list[BackupSet], options: RestoreOptions) -> Truncation:
        floor = options.stop_after_date
        for index, bs in enumerate(chain):
            if bs.kind != BackupKind.LOG:
                continue
            for mark in sorted(bs.marks, key=lambda m: m.lsn):
                if mark.name != options.stop_mark:
                    continue
                if floor is not None and mark.time < floor:
                    continue
                logger.debug(f"Mark '{mark.name}' found at LSN {mark.lsn} in {bs.source_path}")
                return Truncation(
                    chain=chain[: index + 1],
                    dropped=chain[index + 1 :],
                    stop_at=StopAt(
                        kind=StopKind.MARK,
                        time=mark.time,
                        mark=mark.name,
                        inclusive=not options.stop_before,
                        after=floor,
                    ),
                )

        after = f" after {floor.isoformat()}" if floor else ""
        return Truncation(
            chain=chain,
            diagnostics=[
                error(
                    DiagnosticKind.MARK_NOT_FOUND,
                    f"Mark '{options.stop_mark}' not found{after} in "
                    f"{sum(1 for b in chain if b.kind == BackupKind.LOG)} log backup(s)",
                    chain[-1] if chain else None,
                )
            ],
        )

    def _at_time(self, chain: list[BackupSet], restore_time: datetime) -> Truncation:
        result = Truncation(chain=chain)
        if not chain:
            return result

        for index, bs in enumerate(chain):
            if bs.kind == BackupKind.LOG and bs.end_time >= restore_time:
                result.chain, result.dropped = chain[: index + 1], chain[index + 1 :]
                break

        last = result.chain[-1]
        if last.end_time < restore_time:
            result.diagnostics.append(
                warning(
                    DiagnosticKind.LATEST_NOT_REQUESTED,
                    f"Latest available backup ends at {last.end_time.isoformat()}, "
                    f"restore will stop there instead of {restore_time.isoformat()}",
                    last,
                )
            )
        elif last.kind != BackupKind.LOG:
            result.diagnostics.append(
                warning(
                    DiagnosticKind.LATEST_NOT_REQUESTED,
                    f"{restore_time.isoformat()} falls inside {last.label()}, "
                    f"restore will stop at {last.end_time.isoformat()}",
                    last,
                )
            )

        if last.kind == BackupKind.LOG:
            result.stop_at = StopAt(kind=StopKind.TIME, time=restore_time)
        return result
