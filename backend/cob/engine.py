"""Rule chain evaluation for primary-coverage decisions."""
from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from .dates import Clock, system_clock
from .models import Confidence, Coverage, PatientContext, RuleDecision, SpecialSituations
from .policy import CobPolicy
from .rules import RULE_CHAIN, RuleContext

logger = logging.getLogger(__name__)

DEFAULT_RULE = "coordination_provision"


def default_decision(now: datetime) -> RuleDecision:
    """Decision used when no rule in the chain applies."""
    return RuleDecision(
        rule=DEFAULT_RULE,
        description="Default order based on plan provisions",
        primary_index=0,
        confidence=Confidence.LOW.value,
        reasoning=(
            "No specific COB rule applied. Using default order. Manual review recommended."
        ),
        applied_at=now,
    )


def evaluate(
    coverages: Sequence[Coverage],
    patient: PatientContext | None = None,
    situations: SpecialSituations | None = None,
    clock: Clock = system_clock,
    policy: CobPolicy | None = None,
) -> RuleDecision:
    """Return the decision of the first applicable rule, in fixed priority order.

    Never raises for missing data: a rule whose inputs are absent declines and
    the chain moves on, ending in the low-confidence default decision.
    """
    context = RuleContext(
        coverages=tuple(coverages),
        patient=patient or PatientContext(),
        situations=situations or SpecialSituations(),
        now=clock(),
        policy=policy or CobPolicy(),
    )

    for rule in RULE_CHAIN:
        decision = rule(context)
        if decision is not None:
            return decision

    logger.debug(f"No COB rule applied to {len(context.coverages)} coverage(s)")
    return default_decision(context.now)
