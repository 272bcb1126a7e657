"""Restore options — every caller choice that shapes a plan."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from restore_planner.models.backup_set import ContinuePoint
from restore_planner.utils import normalize_time


@dataclass(frozen=True)
class EngineDefaults:
    """Default file directories configured on the target engine."""

    data_dir: str = ""
    log_dir: str = ""
    filestream_dir: str = ""


@dataclass(frozen=True)
class RestoreOptions:
    """
    Options for a restore planning run.

    ``restore_time=None`` means "latest possible". Renaming is resolved in
    the order ``rename_map`` → ``database_name`` → ``database_name_prefix``.
    File placement follows ``file_mapping`` → destination directories →
    engine defaults → original paths.
    """

    restore_time: datetime | None = None
    ignore_differential: bool = False
    ignore_log: bool = False
    no_recovery: bool = False

    # Mark handling
    stop_mark: str = ""
    stop_before: bool = False
    stop_after_date: datetime | None = None

    continue_from: ContinuePoint | None = None
    explicit_full: str = ""  # source path of a full (copy-only allowed) restored alone

    # Database naming
    database_name: str = ""
    rename_map: dict[str, str] = field(default_factory=dict)
    database_name_prefix: str = ""

    # File placement
    file_mapping: dict[str, str] = field(default_factory=dict)
    destination_data_dir: str = ""
    destination_log_dir: str = ""
    destination_filestream_dir: str = ""
    file_prefix: str = ""
    file_suffix: str = ""
    replace_db_name_in_file: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "restore_time", normalize_time(self.restore_time))
        object.__setattr__(self, "stop_after_date", normalize_time(self.stop_after_date))
        if self.explicit_full and self.continue_from is not None:
            raise ValueError("explicit_full cannot be combined with continue_from")
        if self.stop_before and not self.stop_mark:
            raise ValueError("stop_before requires stop_mark")

    @property
    def wants_point_in_time(self) -> bool:
        return self.restore_time is not None
