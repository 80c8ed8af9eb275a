"""Data models for coordination of benefits (COB) decisions."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any

from utils.date_parser import parse_flexible_date


class Relationship(str, Enum):
    """Relationship of the patient to the insured person."""

    SELF = "self"
    SPOUSE = "spouse"
    CHILD = "child"
    OTHER = "other"


class CoverageType(str, Enum):
    COMMERCIAL = "commercial"
    MEDICARE = "medicare"
    MEDICAID = "medicaid"
    TRICARE = "tricare"
    WORKERS_COMP = "workers_comp"
    AUTO_INSURANCE = "auto_insurance"
    OTHER = "other"


class EmploymentStatus(str, Enum):
    """Employment status of the insured, in active/inactive rule rank order."""

    ACTIVE = "active"
    RETIRED = "retired"
    COBRA = "cobra"
    DISABLED = "disabled"
    UNEMPLOYED = "unemployed"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ConflictType(str, Enum):
    MULTIPLE_PRIMARY = "multiple_primary"
    MISSING_INFORMATION = "missing_information"
    RULE_CONFLICT = "rule_conflict"


class RecordStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    CONFLICT = "conflict"
    PENDING_VERIFICATION = "pending_verification"


class VerificationMethod(str, Enum):
    MANUAL = "manual"
    ELIGIBILITY_API = "eligibility_api"
    PHONE = "phone"
    PORTAL = "portal"
    OTHER = "other"


class VerificationStatus(str, Enum):
    VERIFIED = "verified"
    UNVERIFIED = "unverified"
    FAILED = "failed"
    PENDING = "pending"


class AuditAction(str, Enum):
    """Actions recorded in a COB record's audit trail."""

    CREATED = "created"
    UPDATED = "updated"
    VERIFIED = "verified"
    ORDER_CHANGED = "order_changed"
    CONFLICT_RESOLVED = "conflict_resolved"
    PLAN_ADDED = "plan_added"
    PLAN_REMOVED = "plan_removed"
    STATUS_CHANGED = "status_changed"


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


@dataclass(frozen=True)
class Insured:
    """The person who holds the policy a coverage belongs to."""

    first_name: str | None = None
    last_name: str | None = None
    date_of_birth: date | None = None
    employer_name: str | None = None
    employment_status: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Insured:
        data = data or {}
        return cls(
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            date_of_birth=parse_flexible_date(data.get("date_of_birth")),
            employer_name=data.get("employer_name"),
            employment_status=data.get("employment_status"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "date_of_birth": _iso(self.date_of_birth),
            "employer_name": self.employer_name,
            "employment_status": self.employment_status,
        }


@dataclass(frozen=True)
class Coverage:
    """One insurance plan held by the patient.

    ``priority`` is the caller's own claim about payment order (1 = primary)
    and is only consulted by conflict detection, never by the rule chain.
    """

    payer_id: str
    policy_number: str
    relationship_to_insured: str
    payer_name: str | None = None
    coverage_type: str | None = None
    insured: Insured = field(default_factory=Insured)
    effective_date: date | None = None
    termination_date: date | None = None
    group_number: str | None = None
    plan_name: str | None = None
    is_active: bool = True
    priority: int | None = None

    @property
    def display_name(self) -> str:
        return self.payer_name or self.payer_id

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Coverage:
        return cls(
            payer_id=str(data.get("payer_id") or ""),
            policy_number=str(data.get("policy_number") or ""),
            relationship_to_insured=data.get("relationship_to_insured") or "",
            payer_name=data.get("payer_name"),
            coverage_type=data.get("coverage_type"),
            insured=Insured.from_dict(data.get("insured")),
            effective_date=parse_flexible_date(data.get("effective_date")),
            termination_date=parse_flexible_date(data.get("termination_date")),
            group_number=data.get("group_number"),
            plan_name=data.get("plan_name"),
            is_active=bool(data.get("is_active", True)),
            priority=data.get("priority"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "payer_id": self.payer_id,
            "payer_name": self.payer_name,
            "policy_number": self.policy_number,
            "group_number": self.group_number,
            "plan_name": self.plan_name,
            "relationship_to_insured": self.relationship_to_insured,
            "coverage_type": self.coverage_type,
            "insured": self.insured.to_dict(),
            "effective_date": _iso(self.effective_date),
            "termination_date": _iso(self.termination_date),
            "is_active": self.is_active,
            "priority": self.priority,
        }


@dataclass(frozen=True)
class PatientContext:
    """Facts about the patient used by age-dependent rules."""

    date_of_birth: date | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> PatientContext:
        data = data or {}
        return cls(date_of_birth=parse_flexible_date(data.get("date_of_birth")))

    def to_dict(self) -> dict[str, Any]:
        return {"date_of_birth": _iso(self.date_of_birth)}


@dataclass(frozen=True)
class SpecialSituations:
    """Situational overrides supplied by the caller."""

    court_order_index: int | None = None
    custodial_parent_index: int | None = None
    esrd_start_date: date | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> SpecialSituations:
        data = data or {}
        return cls(
            court_order_index=data.get("court_order_index"),
            custodial_parent_index=data.get("custodial_parent_index"),
            esrd_start_date=parse_flexible_date(data.get("esrd_start_date")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "court_order_index": self.court_order_index,
            "custodial_parent_index": self.custodial_parent_index,
            "esrd_start_date": _iso(self.esrd_start_date),
        }


@dataclass(frozen=True)
class RuleDecision:
    """Output of the rule that determined the primary coverage."""

    rule: str
    description: str
    primary_index: int
    confidence: str
    reasoning: str
    applied_at: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RuleDecision:
        return cls(
            rule=data["rule"],
            description=data.get("description", ""),
            primary_index=int(data["primary_index"]),
            confidence=data.get("confidence", Confidence.HIGH.value),
            reasoning=data.get("reasoning", ""),
            applied_at=_parse_timestamp(data.get("applied_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule": self.rule,
            "description": self.description,
            "primary_index": self.primary_index,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "applied_at": _iso(self.applied_at),
        }


@dataclass(frozen=True)
class CobOrderEntry:
    coverage_index: int
    priority: int
    payer_id: str
    policy_number: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CobOrderEntry:
        return cls(
            coverage_index=int(data["coverage_index"]),
            priority=int(data["priority"]),
            payer_id=data.get("payer_id", ""),
            policy_number=data.get("policy_number", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "coverage_index": self.coverage_index,
            "priority": self.priority,
            "payer_id": self.payer_id,
            "policy_number": self.policy_number,
        }


@dataclass(frozen=True)
class OrderResult:
    """Full payment order produced from one rule decision."""

    order: tuple[CobOrderEntry, ...]
    decisions: tuple[RuleDecision, ...]
    primary_index: int

    @property
    def applied_decision(self) -> RuleDecision | None:
        return self.decisions[0] if self.decisions else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "order": [entry.to_dict() for entry in self.order],
            "decisions": [decision.to_dict() for decision in self.decisions],
            "primary_index": self.primary_index,
        }


@dataclass(frozen=True)
class Conflict:
    type: str
    description: str
    severity: str
    resolved: bool = False
    resolved_by: str | None = None
    resolved_at: datetime | None = None
    resolution: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Conflict:
        return cls(
            type=data["type"],
            description=data.get("description", ""),
            severity=data.get("severity", Severity.MEDIUM.value),
            resolved=bool(data.get("resolved", False)),
            resolved_by=data.get("resolved_by"),
            resolved_at=_parse_timestamp(data.get("resolved_at")),
            resolution=data.get("resolution"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "description": self.description,
            "severity": self.severity,
            "resolved": self.resolved,
            "resolved_by": self.resolved_by,
            "resolved_at": _iso(self.resolved_at),
            "resolution": self.resolution,
        }


@dataclass(frozen=True)
class VerificationInfo:
    last_verified: datetime | None = None
    verified_by: str | None = None
    method: str | None = None
    status: str | None = None
    notes: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> VerificationInfo | None:
        if not data:
            return None
        return cls(
            last_verified=_parse_timestamp(data.get("last_verified")),
            verified_by=data.get("verified_by"),
            method=data.get("method"),
            status=data.get("status"),
            notes=data.get("notes"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "last_verified": _iso(self.last_verified),
            "verified_by": self.verified_by,
            "method": self.method,
            "status": self.status,
            "notes": self.notes,
        }


@dataclass(frozen=True)
class AuditEntry:
    action: str
    timestamp: datetime
    performed_by: str | None = None
    changes: dict[str, Any] = field(default_factory=dict)
    notes: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AuditEntry:
        return cls(
            action=data["action"],
            timestamp=_parse_timestamp(data["timestamp"]),
            performed_by=data.get("performed_by"),
            changes=data.get("changes") or {},
            notes=data.get("notes"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "timestamp": _iso(self.timestamp),
            "performed_by": self.performed_by,
            "changes": self.changes,
            "notes": self.notes,
        }


@dataclass(frozen=True)
class PrimaryDecision:
    coverage_index: int
    rule: str
    applied_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "coverage_index": self.coverage_index,
            "rule": self.rule,
            "applied_at": _iso(self.applied_at),
        }


@dataclass(frozen=True)
class CobRecord:
    """A persisted coordination decision for one patient and service date.

    Records are immutable values: every change produces a new record with
    the audit trail extended, so a stored record is never edited in place.
    """

    id: str
    patient_id: str
    service_date: date
    coverages: tuple[Coverage, ...]
    order: tuple[CobOrderEntry, ...]
    decisions: tuple[RuleDecision, ...]
    primary_decision: PrimaryDecision
    status: str
    conflicts: tuple[Conflict, ...]
    effective_date: date
    created_at: datetime
    updated_at: datetime
    patient: PatientContext = field(default_factory=PatientContext)
    special_situations: SpecialSituations = field(default_factory=SpecialSituations)
    verification: VerificationInfo | None = None
    audit_trail: tuple[AuditEntry, ...] = ()
    expiration_date: date | None = None
    created_by: str | None = None
    updated_by: str | None = None

    def _coverage_at(self, priority: int) -> Coverage | None:
        for entry in self.order:
            if entry.priority == priority:
                return self.coverages[entry.coverage_index]
        return None

    @property
    def primary_coverage(self) -> Coverage | None:
        return self._coverage_at(1)

    @property
    def secondary_coverage(self) -> Coverage | None:
        return self._coverage_at(2)

    @property
    def tertiary_coverage(self) -> Coverage | None:
        return self._coverage_at(3)

    @property
    def unresolved_conflicts(self) -> list[Conflict]:
        return [c for c in self.conflicts if not c.resolved]

    @property
    def has_conflicts(self) -> bool:
        return any(not c.resolved for c in self.conflicts)

    def is_effective_for(self, on: date) -> bool:
        if on < self.effective_date:
            return False
        if self.expiration_date is not None and on > self.expiration_date:
            return False
        return True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CobRecord:
        primary = data["primary_decision"]
        return cls(
            id=data["id"],
            patient_id=data["patient_id"],
            service_date=parse_flexible_date(data["service_date"]),
            coverages=tuple(Coverage.from_dict(c) for c in data["coverages"]),
            order=tuple(CobOrderEntry.from_dict(o) for o in data["order"]),
            decisions=tuple(RuleDecision.from_dict(d) for d in data["decisions"]),
            primary_decision=PrimaryDecision(
                coverage_index=int(primary["coverage_index"]),
                rule=primary["rule"],
                applied_at=_parse_timestamp(primary["applied_at"]),
            ),
            status=data["status"],
            conflicts=tuple(Conflict.from_dict(c) for c in data.get("conflicts", [])),
            effective_date=parse_flexible_date(data["effective_date"]),
            created_at=_parse_timestamp(data["created_at"]),
            updated_at=_parse_timestamp(data["updated_at"]),
            patient=PatientContext.from_dict(data.get("patient")),
            special_situations=SpecialSituations.from_dict(data.get("special_situations")),
            verification=VerificationInfo.from_dict(data.get("verification")),
            audit_trail=tuple(AuditEntry.from_dict(a) for a in data.get("audit_trail", [])),
            expiration_date=parse_flexible_date(data.get("expiration_date")),
            created_by=data.get("created_by"),
            updated_by=data.get("updated_by"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "patient_id": self.patient_id,
            "service_date": _iso(self.service_date),
            "coverages": [c.to_dict() for c in self.coverages],
            "order": [o.to_dict() for o in self.order],
            "decisions": [d.to_dict() for d in self.decisions],
            "primary_decision": self.primary_decision.to_dict(),
            "status": self.status,
            "conflicts": [c.to_dict() for c in self.conflicts],
            "has_conflicts": self.has_conflicts,
            "effective_date": _iso(self.effective_date),
            "expiration_date": _iso(self.expiration_date),
            "patient": self.patient.to_dict(),
            "special_situations": self.special_situations.to_dict(),
            "verification": self.verification.to_dict() if self.verification else None,
            "audit_trail": [a.to_dict() for a in self.audit_trail],
            "created_by": self.created_by,
            "updated_by": self.updated_by,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
