"""Planner context — service container wiring configuration and the planning core."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from restore_planner.config import Config, get_config
from restore_planner.core.planner import RestorePlanner
from restore_planner.logger import setup_logger
from restore_planner.models.backup_set import DamagedPage, PageRestoreRequest


@dataclass
class PlannerContext:
    """
    Central service container.

    Tools receive this instead of reading the config themselves, so the
    planning core stays free of configuration and I/O.
    """

    config: Config
    planner: RestorePlanner

    def page_request(
        self, database: str, pages: list[DamagedPage], online_capable: bool | None = None
    ) -> PageRestoreRequest:
        """Build a page restore request with configured defaults filled in."""
        tail_dir = self.config.tail_log_dir
        return PageRestoreRequest(
            database=database,
            pages=tuple(pages),
            online_capable=(
                self.config.online_page_restore if online_capable is None else online_capable
            ),
            tail_log_dir=str(tail_dir) if tail_dir else "",
        )


def create_context(config: Config | None = None, log_to_file: bool = False) -> PlannerContext:
    """Wire all services and return a PlannerContext."""
    config = config or get_config()

    # Logger
    log_dir: Path | None = config.data_dir / "logs" if log_to_file else None
    setup_logger(log_dir, level=config.log_level)

    return PlannerContext(
        config=config,
        planner=RestorePlanner(engine=config.engine_defaults()),
    )
