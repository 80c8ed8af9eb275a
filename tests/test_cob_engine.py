"""Tests for the COB rule chain and order determination."""

from __future__ import annotations

from datetime import date

import pytest

from cob import CobCoordinator, build_order, evaluate
from cob.models import PatientContext, SpecialSituations

from conftest import FIXED_NOW, FakeClock


class TestEvaluate:
    """Scenarios run through the full rule chain."""

    def test_self_coverage_scenario(self, sample_coverages, clock):
        decision = evaluate(sample_coverages, clock=clock)

        assert decision.primary_index == 0
        assert decision.rule == "self_coverage"
        assert decision.confidence == "high"

    def test_birthday_scenario(self, make_coverage, clock):
        coverages = [
            make_coverage(relationship_to_insured="child", insured={"date_of_birth": "1982-07-01"}),
            make_coverage(relationship_to_insured="child", insured={"date_of_birth": "1980-03-15"}),
        ]
        decision = evaluate(coverages, clock=clock)

        assert decision.rule == "birthday_rule"
        assert decision.primary_index == 1

    def test_working_aged_scenario(self, make_coverage, clock):
        coverages = [
            make_coverage(coverage_type="medicare", relationship_to_insured="other"),
            make_coverage(
                coverage_type="commercial",
                relationship_to_insured="other",
                insured={"employment_status": "active"},
            ),
        ]
        decision = evaluate(
            coverages, PatientContext(date_of_birth=date(1985, 3, 1)), clock=clock
        )

        assert decision.rule == "medicare_working_aged"
        assert decision.primary_index == 1

    def test_esrd_scenario(self, make_coverage, clock):
        coverages = [
            make_coverage(coverage_type="medicare", relationship_to_insured="other"),
            make_coverage(coverage_type="commercial", relationship_to_insured="other"),
        ]
        decision = evaluate(
            coverages,
            situations=SpecialSituations(esrd_start_date=date(2022, 10, 1)),
            clock=clock,
        )

        assert decision.rule == "medicare_esrd"
        assert decision.primary_index == 0
        assert "32 months" in decision.reasoning

    def test_default_decision_when_nothing_applies(self, make_coverage, clock):
        coverages = [
            make_coverage(relationship_to_insured="other", insured={"employment_status": "unemployed"})
        ]
        decision = evaluate(coverages, clock=clock)

        assert decision.rule == "coordination_provision"
        assert decision.primary_index == 0
        assert decision.confidence == "low"
        assert "Manual review recommended" in decision.reasoning

    def test_missing_context_does_not_raise(self, make_coverage, clock):
        coverages = [make_coverage(relationship_to_insured="other", insured={})]
        decision = evaluate(coverages, None, None, clock=clock)

        assert decision.primary_index == 0


class TestRulePriority:
    """An earlier applicable rule always wins over a later one."""

    def test_self_beats_court_order(self, make_coverage, clock):
        coverages = [
            make_coverage(relationship_to_insured="spouse"),
            make_coverage(relationship_to_insured="self"),
        ]
        decision = evaluate(
            coverages, situations=SpecialSituations(court_order_index=0), clock=clock
        )

        assert decision.rule == "self_coverage"
        assert decision.primary_index == 1

    def test_court_order_beats_custodial_parent(self, make_coverage, clock):
        coverages = [
            make_coverage(relationship_to_insured="child"),
            make_coverage(relationship_to_insured="child"),
        ]
        decision = evaluate(
            coverages,
            situations=SpecialSituations(court_order_index=1, custodial_parent_index=0),
            clock=clock,
        )

        assert decision.rule == "court_order"
        assert decision.primary_index == 1

    def test_custodial_parent_beats_birthday(self, make_coverage, clock):
        coverages = [
            make_coverage(relationship_to_insured="child", insured={"date_of_birth": "1980-01-01"}),
            make_coverage(relationship_to_insured="child", insured={"date_of_birth": "1980-12-01"}),
        ]
        decision = evaluate(
            coverages, situations=SpecialSituations(custodial_parent_index=1), clock=clock
        )

        assert decision.rule == "custodial_parent"
        assert decision.primary_index == 1

    def test_esrd_beats_working_aged(self, make_coverage, clock):
        coverages = [
            make_coverage(coverage_type="medicare", relationship_to_insured="other"),
            make_coverage(
                coverage_type="commercial",
                relationship_to_insured="other",
                insured={"employment_status": "active"},
            ),
        ]
        decision = evaluate(
            coverages,
            PatientContext(date_of_birth=date(1985, 3, 1)),
            SpecialSituations(esrd_start_date=date(2020, 1, 1)),
            clock=clock,
        )

        assert decision.rule == "medicare_esrd"
        assert decision.primary_index == 0

    def test_working_aged_shadows_disabled(self, make_coverage, clock):
        coverages = [
            make_coverage(coverage_type="medicare", relationship_to_insured="other"),
            make_coverage(
                coverage_type="commercial",
                relationship_to_insured="other",
                insured={"employment_status": "active"},
            ),
        ]
        decision = evaluate(
            coverages, PatientContext(date_of_birth=date(1985, 3, 1)), clock=clock
        )

        assert decision.rule == "medicare_working_aged"
        assert decision.confidence == "high"

    def test_active_inactive_beats_birthday(self, make_coverage, clock):
        coverages = [
            make_coverage(
                relationship_to_insured="child",
                insured={"date_of_birth": "1980-01-01", "employment_status": "retired"},
            ),
            make_coverage(
                relationship_to_insured="child",
                insured={"date_of_birth": "1980-12-01", "employment_status": "active"},
            ),
        ]
        decision = evaluate(coverages, clock=clock)

        assert decision.rule == "active_inactive"
        assert decision.primary_index == 1


class TestDetermineOrder:
    def test_order_is_permutation_with_contiguous_priorities(self, make_coverage, coordinator):
        coverages = [
            make_coverage(payer_id=f"P{i}", policy_number=f"N{i}", relationship_to_insured="other")
            for i in range(5)
        ]
        coverages[3] = make_coverage(
            payer_id="P3", policy_number="N3", relationship_to_insured="self"
        )
        result = coordinator.determine_order(coverages)

        assert result.primary_index == 3
        assert sorted(e.coverage_index for e in result.order) == [0, 1, 2, 3, 4]
        assert [e.priority for e in result.order] == [1, 2, 3, 4, 5]
        assert [e.coverage_index for e in result.order] == [3, 0, 1, 2, 4]
        assert result.order[0].payer_id == "P3"
        assert result.order[0].policy_number == "N3"

    def test_single_coverage(self, make_coverage, coordinator):
        result = coordinator.determine_order([make_coverage(relationship_to_insured="self")])

        assert result.primary_index == 0
        assert len(result.order) == 1
        assert result.order[0].priority == 1

    def test_decisions_hold_only_the_applied_rule(self, sample_coverages, coordinator):
        result = coordinator.determine_order(sample_coverages)

        assert len(result.decisions) == 1
        assert result.decisions[0].rule == "self_coverage"

    def test_deterministic_for_same_inputs(self, make_coverage):
        coverages = [
            make_coverage(relationship_to_insured="child", insured={"date_of_birth": "1980-09-01"}),
            make_coverage(relationship_to_insured="child", insured={"date_of_birth": "1980-02-01"}),
        ]
        first = CobCoordinator(clock=FakeClock(FIXED_NOW)).determine_order(coverages)
        second = CobCoordinator(clock=FakeClock(FIXED_NOW)).determine_order(coverages)

        assert first == second

    @pytest.mark.parametrize("primary", [0, 1, 2])
    def test_build_order_puts_primary_first(self, make_coverage, primary):
        coverages = [make_coverage(payer_id=f"P{i}") for i in range(3)]
        order = build_order(coverages, primary)

        assert order[0].coverage_index == primary
        assert order[0].priority == 1
        rest = [e.coverage_index for e in order[1:]]
        assert rest == [i for i in range(3) if i != primary]
