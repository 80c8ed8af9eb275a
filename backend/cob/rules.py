"""Coordination of benefits rules.

Each rule inspects the coverage list and either names the primary coverage
or returns ``None`` when its preconditions are not met. Rules never consult
each other; ``RULE_CHAIN`` fixes the order in which the engine probes them.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from .dates import calculate_age, months_between
from .models import (
    Confidence,
    Coverage,
    CoverageType,
    EmploymentStatus,
    PatientContext,
    Relationship,
    RuleDecision,
    SpecialSituations,
)
from .policy import CobPolicy

EMPLOYMENT_RANK = [status.value for status in EmploymentStatus]


@dataclass(frozen=True)
class RuleContext:
    """Inputs shared by every rule evaluation."""

    coverages: tuple[Coverage, ...]
    patient: PatientContext
    situations: SpecialSituations
    now: datetime
    policy: CobPolicy


CobRule = Callable[[RuleContext], RuleDecision | None]


def _first_index(coverages: tuple[Coverage, ...], predicate: Callable[[Coverage], bool]) -> int:
    for idx, coverage in enumerate(coverages):
        if predicate(coverage):
            return idx
    return -1


def _valid_index(context: RuleContext, index: int | None) -> bool:
    return index is not None and 0 <= index < len(context.coverages)


def _patient_age(context: RuleContext) -> int | None:
    dob = context.patient.date_of_birth
    if dob is None:
        return None
    return calculate_age(dob, context.now.date())


def _medicare_and_active_employer(context: RuleContext) -> tuple[int, int]:
    coverages = context.coverages
    medicare = _first_index(coverages, lambda c: c.coverage_type == CoverageType.MEDICARE)
    employer = _first_index(
        coverages,
        lambda c: c.coverage_type == CoverageType.COMMERCIAL
        and c.insured.employment_status == EmploymentStatus.ACTIVE,
    )
    return medicare, employer


def self_coverage_rule(context: RuleContext) -> RuleDecision | None:
    """Coverage where the patient is the insured is primary."""
    idx = _first_index(
        context.coverages, lambda c: c.relationship_to_insured == Relationship.SELF
    )
    if idx == -1:
        return None

    return RuleDecision(
        rule="self_coverage",
        description="Patient's own coverage is primary",
        primary_index=idx,
        confidence=Confidence.HIGH.value,
        reasoning=(
            "Coverage where patient is the insured is always primary over "
            "coverage where patient is a dependent"
        ),
        applied_at=context.now,
    )


def court_order_rule(context: RuleContext) -> RuleDecision | None:
    """Court-ordered coverage is primary."""
    idx = context.situations.court_order_index
    if not _valid_index(context, idx):
        return None

    return RuleDecision(
        rule="court_order",
        description="Court-ordered coverage is primary",
        primary_index=idx,
        confidence=Confidence.HIGH.value,
        reasoning="Court order specifies this coverage as primary",
        applied_at=context.now,
    )


def custodial_parent_rule(context: RuleContext) -> RuleDecision | None:
    """Coverage of the parent with custody is primary."""
    idx = context.situations.custodial_parent_index
    if not _valid_index(context, idx):
        return None

    return RuleDecision(
        rule="custodial_parent",
        description="Custodial parent's coverage is primary",
        primary_index=idx,
        confidence=Confidence.HIGH.value,
        reasoning="Coverage of parent with custody is primary",
        applied_at=context.now,
    )


def medicare_esrd_rule(context: RuleContext) -> RuleDecision | None:
    """Employer coverage pays first during the ESRD coordination period, then Medicare."""
    esrd_start = context.situations.esrd_start_date
    if esrd_start is None:
        return None

    coverages = context.coverages
    medicare = _first_index(coverages, lambda c: c.coverage_type == CoverageType.MEDICARE)
    employer = _first_index(coverages, lambda c: c.coverage_type == CoverageType.COMMERCIAL)
    if medicare == -1 or employer == -1:
        return None

    months = months_between(esrd_start, context.now.date())
    limit = context.policy.esrd_coordination_months

    if months <= limit:
        return RuleDecision(
            rule="medicare_esrd",
            description=f"Employer coverage is primary for first {limit} months of ESRD",
            primary_index=employer,
            confidence=Confidence.HIGH.value,
            reasoning=(
                f"{months} months since ESRD diagnosis. "
                f"Employer coverage is primary for first {limit} months."
            ),
            applied_at=context.now,
        )

    return RuleDecision(
        rule="medicare_esrd",
        description=f"Medicare is primary after {limit} months of ESRD",
        primary_index=medicare,
        confidence=Confidence.HIGH.value,
        reasoning=(
            f"{months} months since ESRD diagnosis. "
            f"Medicare becomes primary after {limit} months."
        ),
        applied_at=context.now,
    )


def medicare_working_aged_rule(context: RuleContext) -> RuleDecision | None:
    """Active employer coverage is primary over Medicare for a working patient."""
    age = _patient_age(context)
    if age is None or age >= context.policy.medicare_age:
        return None

    medicare, employer = _medicare_and_active_employer(context)
    if medicare == -1 or employer == -1:
        return None

    return RuleDecision(
        rule="medicare_working_aged",
        description=(
            f"Employer coverage is primary for working aged under {context.policy.medicare_age}"
        ),
        primary_index=employer,
        confidence=Confidence.HIGH.value,
        reasoning=(
            f"Patient is {age} years old and working. "
            "Employer coverage is primary over Medicare."
        ),
        applied_at=context.now,
    )


def medicare_disabled_rule(context: RuleContext) -> RuleDecision | None:
    """Employer coverage is primary for a disabled patient, pending employer size check.

    Shares its preconditions with ``medicare_working_aged_rule``, which runs
    first, so this rule only decides when that one is absent from the chain.
    """
    age = _patient_age(context)
    if age is None or age >= context.policy.medicare_age:
        return None

    medicare, employer = _medicare_and_active_employer(context)
    if medicare == -1 or employer == -1:
        return None

    return RuleDecision(
        rule="medicare_disabled",
        description=(
            f"Employer coverage is primary for disabled under {context.policy.medicare_age} "
            "(if large employer)"
        ),
        primary_index=employer,
        confidence=Confidence.MEDIUM.value,
        reasoning=(
            "If employer has 100+ employees, employer coverage is primary. "
            "Verify employer size."
        ),
        applied_at=context.now,
    )


def _employment_rank(coverage: Coverage) -> int:
    status = coverage.insured.employment_status or EmploymentStatus.UNEMPLOYED.value
    if status not in EMPLOYMENT_RANK:
        status = EmploymentStatus.UNEMPLOYED.value
    return EMPLOYMENT_RANK.index(status)


def active_inactive_rule(context: RuleContext) -> RuleDecision | None:
    """Active employment coverage is primary over retired, COBRA and other inactive coverage."""
    coverages = context.coverages
    ranked = sorted(range(len(coverages)), key=lambda i: _employment_rank(coverages[i]))
    if not ranked:
        return None

    best = coverages[ranked[0]]
    runner_up = coverages[ranked[1]] if len(ranked) > 1 else None

    if best.insured.employment_status != EmploymentStatus.ACTIVE:
        return None
    if runner_up is not None and runner_up.insured.employment_status == EmploymentStatus.ACTIVE:
        return None

    other_status = (runner_up.insured.employment_status if runner_up else None) or "inactive"
    return RuleDecision(
        rule="active_inactive",
        description="Active employment coverage is primary",
        primary_index=ranked[0],
        confidence=Confidence.HIGH.value,
        reasoning=f"Active employment coverage takes priority over {other_status} coverage",
        applied_at=context.now,
    )


def _birthday_key(coverages: tuple[Coverage, ...], idx: int) -> tuple[int, int, str]:
    insured = coverages[idx].insured
    dob = insured.date_of_birth
    # Unknown birthdays sort after every real calendar day
    month, day = (dob.month, dob.day) if dob else (13, 32)
    return month, day, (insured.last_name or "").casefold()


def birthday_rule(context: RuleContext) -> RuleDecision | None:
    """NAIC birthday rule: the parent whose birthday falls earlier in the year is primary."""
    coverages = context.coverages
    dependents = [
        idx
        for idx, coverage in enumerate(coverages)
        if coverage.relationship_to_insured == Relationship.CHILD
    ]
    if len(dependents) < 2:
        return None

    # sorted() is stable, so full ties keep input order
    ranked = sorted(dependents, key=lambda i: _birthday_key(coverages, i))
    winner = coverages[ranked[0]].insured

    name = " ".join(part for part in (winner.first_name, winner.last_name) if part) or "Insured"
    birthday = winner.date_of_birth.strftime("%m/%d") if winner.date_of_birth else "unknown"
    return RuleDecision(
        rule="birthday_rule",
        description="Parent with earlier birthday is primary",
        primary_index=ranked[0],
        confidence=Confidence.HIGH.value,
        reasoning=f"{name}'s birthday ({birthday}) is earliest in the calendar year",
        applied_at=context.now,
    )


RULE_CHAIN: tuple[CobRule, ...] = (
    self_coverage_rule,
    court_order_rule,
    custodial_parent_rule,
    medicare_esrd_rule,
    medicare_working_aged_rule,
    medicare_disabled_rule,
    active_inactive_rule,
    birthday_rule,
)
