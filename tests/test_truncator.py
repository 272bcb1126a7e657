"""Tests for the MarkTimeTruncator."""

from __future__ import annotations

import pytest

from restore_planner.core.truncator import MarkTimeTruncator
from restore_planner.models.diagnostic import DiagnosticKind
from restore_planner.models.options import RestoreOptions
from restore_planner.models.restore_plan import StopKind
from tests.factories import at, full, log, mark


@pytest.fixture
def truncator() -> MarkTimeTruncator:
    return MarkTimeTruncator()


@pytest.fixture
def marked_chain():
    return [
        full(100, 200, 0),
        log(200, 250, 5, marks=(mark("deploy", 240, 4),)),
        log(250, 300, 10, marks=(mark("deploy", 280, 9), mark("audit", 290, 9.5))),
        log(300, 350, 15),
    ]


class TestMarks:
    def test_first_mark_wins(self, truncator: MarkTimeTruncator, marked_chain) -> None:
        result = truncator.truncate(marked_chain, RestoreOptions(stop_mark="deploy"))
        assert len(result.chain) == 2
        assert len(result.dropped) == 2
        assert result.stop_at is not None
        assert result.stop_at.kind == StopKind.MARK
        assert result.stop_at.inclusive is True
        assert result.stop_at.time == at(4)

    def test_stop_before(self, truncator: MarkTimeTruncator, marked_chain) -> None:
        options = RestoreOptions(stop_mark="deploy", stop_before=True)
        result = truncator.truncate(marked_chain, options)
        assert result.stop_at.inclusive is False

    def test_after_date_skips_earlier_mark(self, truncator: MarkTimeTruncator, marked_chain) -> None:
        options = RestoreOptions(stop_mark="deploy", stop_after_date=at(6))
        result = truncator.truncate(marked_chain, options)
        assert len(result.chain) == 3
        assert result.stop_at.time == at(9)
        assert result.stop_at.after == at(6)

    def test_mark_not_found(self, truncator: MarkTimeTruncator, marked_chain) -> None:
        result = truncator.truncate(marked_chain, RestoreOptions(stop_mark="missing"))
        assert result.failed
        assert result.diagnostics[0].kind == DiagnosticKind.MARK_NOT_FOUND

    def test_mark_before_floor_not_found(self, truncator: MarkTimeTruncator, marked_chain) -> None:
        options = RestoreOptions(stop_mark="audit", stop_after_date=at(12))
        result = truncator.truncate(marked_chain, options)
        assert result.diagnostics[0].kind == DiagnosticKind.MARK_NOT_FOUND


class TestTime:
    def test_latest_untouched(self, truncator: MarkTimeTruncator, marked_chain) -> None:
        result = truncator.truncate(marked_chain, RestoreOptions())
        assert result.chain == marked_chain
        assert result.stop_at is None

    def test_drops_logs_past_time(self, truncator: MarkTimeTruncator, marked_chain) -> None:
        result = truncator.truncate(marked_chain, RestoreOptions(restore_time=at(7)))
        assert [b.first_lsn for b in result.chain] == [100, 200, 250]
        assert result.stop_at.kind == StopKind.TIME
        assert result.stop_at.time == at(7)
        assert result.diagnostics == []

    def test_chain_ends_before_time(self, truncator: MarkTimeTruncator, marked_chain) -> None:
        result = truncator.truncate(marked_chain, RestoreOptions(restore_time=at(45)))
        assert len(result.chain) == 4
        assert result.diagnostics[0].kind == DiagnosticKind.LATEST_NOT_REQUESTED
        assert not result.failed

    def test_time_inside_full(self, truncator: MarkTimeTruncator) -> None:
        result = truncator.truncate([full(100, 200, 0)], RestoreOptions(restore_time=at(0.5)))
        assert result.stop_at is None
        assert result.diagnostics[0].kind == DiagnosticKind.LATEST_NOT_REQUESTED
