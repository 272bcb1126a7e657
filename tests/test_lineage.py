"""Tests for lineage grouping and database renaming."""

from __future__ import annotations

from restore_planner.core.lineage import group_lineages, resolve_target_name
from restore_planner.models.diagnostic import DiagnosticKind
from restore_planner.models.options import RestoreOptions
from tests.factories import diff, full, log, scenario_a


class TestGrouping:
    def test_groups_by_database(self) -> None:
        lineages = group_lineages(scenario_a("Sales") + scenario_a("Hr"))
        assert sorted(lineages) == ["Hr", "Sales"]
        assert len(lineages["Sales"].forks) == 1
        assert len(lineages["Sales"].forks[0].backups) == 4

    def test_names_match_case_insensitively(self) -> None:
        backups = scenario_a("Sales") + [log(350, 400, 20, database="SALES")]
        lineages = group_lineages(backups)
        assert list(lineages) == ["SALES"]
        assert len(lineages["SALES"].forks[0].backups) == 5

    def test_forks_split_by_recovery_fork(self) -> None:
        backups = scenario_a() + [full(1000, 1100, 60, recovery_fork_id="f2")]
        forks = group_lineages(backups)["Sales"].forks
        assert [f.fork_id for f in forks] == ["", "f2"]

    def test_database_without_full_still_grouped(self) -> None:
        lineages = group_lineages(scenario_a()[1:])
        assert lineages["Sales"].forks[0].fulls == []

    def test_backups_sorted_within_fork(self) -> None:
        backups = list(reversed(scenario_a()))
        fork = group_lineages(backups)["Sales"].forks[0]
        assert [b.first_lsn for b in fork.backups] == [100, 200, 250, 300]

    def test_unrelated_fulls_split_into_lineages(self) -> None:
        backups = scenario_a() + [full(50, 60, 30, checkpoint=55)]
        forks = group_lineages(backups)["Sales"].forks
        assert [[b.first_lsn for b in f.backups] for f in forks] == [[50], [100, 200, 250, 300]]
        assert [f.root_lsn for f in forks] == [50, 100]

    def test_full_inside_log_chain_shares_lineage(self) -> None:
        forks = group_lineages(scenario_a() + [full(290, 310, 12)])["Sales"].forks
        assert len(forks) == 1
        assert len(forks[0].fulls) == 2

    def test_differential_joins_its_base(self) -> None:
        backups = scenario_a() + [
            full(50, 60, 30, checkpoint=55),
            diff(55, 80, 31, base=55),
            diff(100, 300, 11, base=100),
        ]
        forks = group_lineages(backups)["Sales"].forks
        assert [[str(b.kind) for b in f.backups] for f in forks] == [
            ["full", "differential"],
            ["full", "differential", "log", "log", "log"],
        ]

    def test_gap_log_stays_with_its_lineage(self) -> None:
        backups = [b for b in scenario_a() if b.first_lsn != 250]
        forks = group_lineages(backups)["Sales"].forks
        assert len(forks) == 1

    def test_duplicate_fulls_share_lineage(self) -> None:
        backups = [full(100, 200, 0, path="/a/full.bak"), full(100, 200, 0, path="/b/full.bak")]
        forks = group_lineages(backups)["Sales"].forks
        assert len(forks) == 1
        assert len(forks[0].backups) == 2


class TestRenaming:
    def test_rename_map(self) -> None:
        options = RestoreOptions(rename_map={"sales": "Sales_Copy"})
        lineages = group_lineages(scenario_a("Sales") + scenario_a("Hr"), options)
        assert sorted(lineages) == ["Hr", "Sales_Copy"]
        assert lineages["Sales_Copy"].source_database == "Sales"

    def test_prefix_applies_to_every_database(self) -> None:
        options = RestoreOptions(database_name_prefix="dev_")
        assert resolve_target_name("Sales", options) == "dev_Sales"

    def test_single_database_name(self) -> None:
        lineages = group_lineages(scenario_a(), RestoreOptions(database_name="Restored"))
        assert list(lineages) == ["Restored"]
        assert not lineages["Restored"].is_ambiguous

    def test_database_name_with_many_sources_is_ambiguous(self) -> None:
        options = RestoreOptions(database_name="Restored")
        lineages = group_lineages(scenario_a("Sales") + scenario_a("Hr"), options)
        lineage = lineages["Restored"]
        assert lineage.is_ambiguous
        assert lineage.forks == []
        assert [d.kind for d in lineage.diagnostics] == [DiagnosticKind.AMBIGUOUS_DATABASE_IDENTITY] * 2

    def test_rename_onto_existing_name_is_ambiguous(self) -> None:
        options = RestoreOptions(rename_map={"Hr": "Sales"})
        lineages = group_lineages(scenario_a("Sales") + scenario_a("Hr"), options)
        assert list(lineages) == ["Sales"]
        assert lineages["Sales"].is_ambiguous
