"""Tests for the ContinuityValidator."""

from __future__ import annotations

import pytest

from restore_planner.core.validator import ContinuityValidator
from restore_planner.models.backup_set import ContinuePoint
from restore_planner.models.diagnostic import DiagnosticKind, Severity
from tests.factories import diff, full, log, scenario_a


@pytest.fixture
def validator() -> ContinuityValidator:
    return ContinuityValidator()


class TestAdjacency:
    def test_contiguous_chain_verified(self, validator: ContinuityValidator) -> None:
        result = validator.validate(scenario_a())
        assert len(result.verified) == 4
        assert all(b.is_verified for b in result.verified)
        assert result.rejected == []
        assert result.diagnostics == []

    def test_verified_pairs_are_adjacent(self, validator: ContinuityValidator) -> None:
        verified = validator.validate(scenario_a()).verified
        for a, b in zip(verified[1:], verified[2:]):
            assert b.first_lsn <= a.last_lsn + 1
            assert b.last_lsn > a.last_lsn

    def test_gap_keeps_prefix(self, validator: ContinuityValidator) -> None:
        chain = [b for b in scenario_a() if b.first_lsn != 250]
        result = validator.validate(chain)
        assert [b.first_lsn for b in result.verified] == [100, 200]
        assert [b.first_lsn for b in result.rejected] == [300]
        assert result.rejected[0].verification_notes.startswith("LSN gap after")
        assert result.diagnostics[0].kind == DiagnosticKind.LSN_GAP
        assert result.diagnostics[0].severity == Severity.WARNING
        assert not result.failed

    def test_everything_after_break_unverified(self, validator: ContinuityValidator) -> None:
        chain = scenario_a()
        chain[1] = log(210, 250, 5)  # starts after the full ends
        result = validator.validate(chain)
        assert len(result.verified) == 1
        assert len(result.rejected) == 3
        assert not any(b.is_verified for b in result.rejected)
        assert len({b.verification_notes for b in result.rejected}) == 1

    def test_overlapping_log_without_progress_rejected(self, validator: ContinuityValidator) -> None:
        result = validator.validate([full(100, 200, 0), log(150, 200, 5)])
        assert len(result.rejected) == 1

    def test_input_records_not_mutated(self, validator: ContinuityValidator) -> None:
        chain = scenario_a()
        validator.validate(chain)
        assert not any(b.is_verified for b in chain)

    def test_differential_must_match_full(self, validator: ContinuityValidator) -> None:
        result = validator.validate([full(100, 200, 0, checkpoint=150), diff(150, 300, 10, base=120)])
        assert result.diagnostics[0].kind == DiagnosticKind.LSN_GAP
        assert len(result.verified) == 1

    def test_chain_must_start_with_full(self, validator: ContinuityValidator) -> None:
        result = validator.validate(scenario_a()[1:])
        assert result.failed
        assert result.verified == []


class TestMediaSets:
    def test_missing_stripe_in_log(self, validator: ContinuityValidator) -> None:
        chain = scenario_a()
        chain[2] = log(250, 300, 10, media_set_id="m", family_count=2)
        result = validator.validate(chain)
        assert len(result.verified) == 2
        assert result.diagnostics[0].kind == DiagnosticKind.INCOMPLETE_MEDIA_SET
        assert result.rejected[0].verification_notes.startswith("missing file in media set")

    def test_incomplete_full_is_fatal(self, validator: ContinuityValidator) -> None:
        chain = scenario_a()
        chain[0] = full(100, 200, 0, is_readable=False)
        result = validator.validate(chain)
        assert result.failed
        assert result.diagnostics[0].kind == DiagnosticKind.INCOMPLETE_MEDIA_SET


class TestContinuation:
    def test_valid_start(self, validator: ContinuityValidator) -> None:
        result = validator.validate(scenario_a()[2:], ContinuePoint(last_restored_lsn=250))
        assert len(result.verified) == 2

    def test_gap_at_start(self, validator: ContinuityValidator) -> None:
        result = validator.validate(scenario_a()[3:], ContinuePoint(last_restored_lsn=250))
        assert result.failed
        assert result.diagnostics[0].kind == DiagnosticKind.CONTINUATION_GAP

    def test_full_cannot_continue(self, validator: ContinuityValidator) -> None:
        result = validator.validate(scenario_a(), ContinuePoint(last_restored_lsn=250))
        assert result.diagnostics[0].kind == DiagnosticKind.CONTINUATION_GAP
