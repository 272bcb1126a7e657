"""Tests for the PageRestorePlanner."""

from __future__ import annotations

import pytest

from restore_planner.core.page_restore import PageRestorePlanner
from restore_planner.models.backup_set import BackupKind, DamagedPage, PageRestoreRequest
from restore_planner.models.diagnostic import DiagnosticKind
from tests.factories import at, full, scenario_a


@pytest.fixture
def planner() -> PageRestorePlanner:
    return PageRestorePlanner()


@pytest.fixture
def catalog():
    # A second full at 09:12 sits in the middle of an unbroken log chain
    return scenario_a() + [full(290, 310, 12)] + scenario_a("Other")


def request(*pages: DamagedPage, **kwargs) -> PageRestoreRequest:
    return PageRestoreRequest(database="sales", pages=pages, **kwargs)


class TestAnchor:
    def test_latest_clean_full_used(self, planner: PageRestorePlanner, catalog) -> None:
        result = planner.plan(catalog, request(DamagedPage(1, 1234, at(20))))
        assert result.ok
        entries = result.plan.entries
        assert [(e.backup_set.kind, e.backup_set.first_lsn) for e in entries] == [
            (BackupKind.FULL, 290),
            (BackupKind.LOG, 300),
        ]
        assert all(e.backup_set.database == "Sales" for e in entries)

    def test_corruption_before_latest_full(self, planner: PageRestorePlanner, catalog) -> None:
        pages = (DamagedPage(1, 1234, at(20)), DamagedPage(1, 99, at(11)))
        result = planner.plan(catalog, request(*pages))
        assert result.plan.entries[0].backup_set.first_lsn == 100
        assert len(result.plan.entries) == 4

    def test_unknown_detection_time_uses_latest_full(self, planner: PageRestorePlanner, catalog) -> None:
        result = planner.plan(catalog, request(DamagedPage(1, 7)))
        assert result.plan.entries[0].backup_set.first_lsn == 290

    def test_no_clean_full(self, planner: PageRestorePlanner, catalog) -> None:
        result = planner.plan(catalog, request(DamagedPage(1, 7, at(-5))))
        assert result.plan is None
        assert result.diagnostics[0].kind == DiagnosticKind.NO_APPLICABLE_FULL


class TestLogsOnly:
    def test_full_skipped_when_pages_already_restored(self, planner: PageRestorePlanner, catalog) -> None:
        result = planner.plan(catalog, request(DamagedPage(1, 7), restored_through_lsn=300))
        assert result.plan.skips_full
        assert [e.backup_set.first_lsn for e in result.plan.entries] == [300]

    def test_gap_is_fatal(self, planner: PageRestorePlanner) -> None:
        catalog = [b for b in scenario_a() if b.first_lsn != 250]
        result = planner.plan(catalog, request(DamagedPage(1, 7), restored_through_lsn=250))
        assert not result.ok
        assert result.diagnostics[0].kind == DiagnosticKind.LSN_GAP


class TestPlanShape:
    def test_tail_log_and_online_flag(self, planner: PageRestorePlanner, catalog) -> None:
        result = planner.plan(
            catalog, request(DamagedPage(1, 7), online_capable=True, tail_log_dir="/tail")
        )
        assert result.plan.tail_log.directory == "/tail"
        assert result.plan.tail_log.database == "sales"
        assert result.plan.online_capable is True
        assert not any(e.is_last for e in result.plan.entries)

    def test_pages_required(self, planner: PageRestorePlanner, catalog) -> None:
        with pytest.raises(ValueError):
            planner.plan(catalog, request())
