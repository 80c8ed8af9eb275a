"""Tests for COB conflict detection."""

from __future__ import annotations

from datetime import date

from cob import detect_conflicts
from cob.dates import date_ranges_overlap
from cob.models import OrderResult, RuleDecision

from conftest import FIXED_NOW


def _result(confidence: str = "high") -> OrderResult:
    decision = RuleDecision(
        rule="self_coverage" if confidence != "low" else "coordination_provision",
        description="",
        primary_index=0,
        confidence=confidence,
        reasoning="",
        applied_at=FIXED_NOW,
    )
    return OrderResult(order=(), decisions=(decision,), primary_index=0)


class TestMultiplePrimary:
    def test_overlapping_priority_one_pair_flagged(self, make_coverage):
        coverages = [
            make_coverage(payer_name="Alpha", priority=1, effective_date="2024-01-01"),
            make_coverage(payer_name="Beta", priority=1, effective_date="2024-06-01"),
        ]
        conflicts = detect_conflicts(coverages, _result())

        assert len(conflicts) == 1
        assert conflicts[0].type == "multiple_primary"
        assert conflicts[0].severity == "critical"
        assert "Alpha" in conflicts[0].description
        assert "Beta" in conflicts[0].description

    def test_disjoint_periods_not_flagged(self, make_coverage):
        coverages = [
            make_coverage(priority=1, effective_date="2023-01-01", termination_date="2023-12-31"),
            make_coverage(priority=1, effective_date="2024-01-01"),
        ]
        assert detect_conflicts(coverages, _result()) == []

    def test_touching_periods_overlap_inclusively(self, make_coverage):
        coverages = [
            make_coverage(priority=1, effective_date="2023-01-01", termination_date="2024-01-01"),
            make_coverage(priority=1, effective_date="2024-01-01"),
        ]
        conflicts = detect_conflicts(coverages, _result())

        assert [c.type for c in conflicts] == ["multiple_primary"]

    def test_only_one_marked_primary_not_flagged(self, make_coverage):
        coverages = [make_coverage(priority=1), make_coverage(priority=2)]
        assert detect_conflicts(coverages, _result()) == []

    def test_three_way_overlap_reports_every_pair(self, make_coverage):
        coverages = [make_coverage(priority=1) for _ in range(3)]
        conflicts = detect_conflicts(coverages, _result())

        assert len([c for c in conflicts if c.type == "multiple_primary"]) == 3

    def test_single_coverage_never_multiple_primary(self, make_coverage):
        conflicts = detect_conflicts([make_coverage(priority=1)], _result())
        assert conflicts == []


class TestMissingInformation:
    def test_child_without_insured_birth_date(self, make_coverage):
        coverages = [
            make_coverage(
                payer_name="Kids Plan",
                relationship_to_insured="child",
                insured={"date_of_birth": None},
            )
        ]
        conflicts = detect_conflicts(coverages, _result())

        assert len(conflicts) == 1
        assert conflicts[0].type == "missing_information"
        assert conflicts[0].severity == "high"
        assert "Kids Plan" in conflicts[0].description

    def test_missing_effective_date(self, make_coverage):
        coverages = [make_coverage(effective_date=None)]
        conflicts = detect_conflicts(coverages, _result())

        assert len(conflicts) == 1
        assert conflicts[0].type == "missing_information"
        assert conflicts[0].severity == "medium"


class TestRuleConflict:
    def test_low_confidence_flagged(self, make_coverage):
        conflicts = detect_conflicts([make_coverage()], _result("low"))

        assert len(conflicts) == 1
        assert conflicts[0].type == "rule_conflict"
        assert conflicts[0].severity == "medium"

    def test_medium_confidence_not_flagged(self, make_coverage):
        assert detect_conflicts([make_coverage()], _result("medium")) == []


class TestConflictsAreAdditive:
    def test_checks_combine(self, make_coverage):
        coverages = [
            make_coverage(priority=1, effective_date=None, relationship_to_insured="child",
                          insured={"date_of_birth": None}),
            make_coverage(priority=1),
        ]
        conflicts = detect_conflicts(coverages, _result("low"))

        assert sorted(c.type for c in conflicts) == [
            "missing_information",
            "missing_information",
            "multiple_primary",
            "rule_conflict",
        ]

    def test_inputs_not_mutated(self, make_coverage):
        coverages = [make_coverage(priority=1), make_coverage(priority=1)]
        snapshot = list(coverages)
        result = _result()

        detect_conflicts(coverages, result)

        assert coverages == snapshot
        assert result == _result()


class TestDateRangesOverlap:
    def test_open_ended_ranges(self):
        assert date_ranges_overlap(None, None, date(2024, 1, 1), date(2024, 1, 2))

    def test_disjoint(self):
        assert not date_ranges_overlap(
            date(2020, 1, 1), date(2020, 12, 31), date(2021, 1, 1), None
        )
