"""Coordination of benefits (COB) decision engine."""

from .conflicts import detect_conflicts
from .coordinator import CobCoordinator, build_order
from .engine import evaluate
from .errors import CobError, NotFoundError, ValidationError
from .models import (
    CobOrderEntry,
    CobRecord,
    Conflict,
    Coverage,
    Insured,
    OrderResult,
    PatientContext,
    RuleDecision,
    SpecialSituations,
)
from .policy import CobPolicy, load_policy
from .service import CobService
from .store import CobRecordStore

__all__ = [
    "evaluate",
    "detect_conflicts",
    "build_order",
    "load_policy",
    "CobCoordinator",
    "CobError",
    "CobOrderEntry",
    "CobPolicy",
    "CobRecord",
    "CobRecordStore",
    "CobService",
    "Conflict",
    "Coverage",
    "Insured",
    "NotFoundError",
    "OrderResult",
    "PatientContext",
    "RuleDecision",
    "SpecialSituations",
    "ValidationError",
]
