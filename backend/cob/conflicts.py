"""Conflict detection over a coverage list and its determined order."""
from __future__ import annotations

from collections.abc import Sequence

from .dates import date_ranges_overlap
from .models import (
    Confidence,
    Conflict,
    ConflictType,
    Coverage,
    OrderResult,
    Relationship,
    Severity,
)


def detect_conflicts(coverages: Sequence[Coverage], result: OrderResult) -> list[Conflict]:
    """Flag configurations that need manual attention.

    Checks run independently of each other and of the ordering. Every pair of
    overlapping coverages both claiming priority 1 is reported, so three such
    coverages produce three conflicts.
    """
    conflicts: list[Conflict] = []

    for i, first in enumerate(coverages):
        for second in coverages[i + 1 :]:
            if first.priority != 1 or second.priority != 1:
                continue
            if date_ranges_overlap(
                first.effective_date,
                first.termination_date,
                second.effective_date,
                second.termination_date,
            ):
                conflicts.append(
                    Conflict(
                        type=ConflictType.MULTIPLE_PRIMARY.value,
                        description=(
                            f"Both {first.display_name} and {second.display_name} "
                            "marked as primary"
                        ),
                        severity=Severity.CRITICAL.value,
                    )
                )

    for coverage in coverages:
        if (
            coverage.relationship_to_insured == Relationship.CHILD
            and coverage.insured.date_of_birth is None
        ):
            conflicts.append(
                Conflict(
                    type=ConflictType.MISSING_INFORMATION.value,
                    description=f"Missing insured date of birth for {coverage.display_name}",
                    severity=Severity.HIGH.value,
                )
            )

        if coverage.effective_date is None:
            conflicts.append(
                Conflict(
                    type=ConflictType.MISSING_INFORMATION.value,
                    description=f"Missing effective date for {coverage.display_name}",
                    severity=Severity.MEDIUM.value,
                )
            )

    applied = result.applied_decision
    if applied is not None and applied.confidence == Confidence.LOW:
        conflicts.append(
            Conflict(
                type=ConflictType.RULE_CONFLICT.value,
                description="COB order determined with low confidence. Manual review recommended.",
                severity=Severity.MEDIUM.value,
            )
        )

    return conflicts
