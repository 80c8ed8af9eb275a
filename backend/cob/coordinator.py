"""COB coordinator: turns rule decisions into orders and record payloads.

The coordinator is pure with respect to storage. It builds and transforms
``CobRecord`` values; persisting them is the job of ``CobRecordStore``.

Usage:
    coordinator = CobCoordinator(clock=system_clock)
    result = coordinator.determine_order(coverages, patient, situations)
    record = coordinator.create_record("patient-1", coverages, date(2024, 3, 1))
"""
from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from dataclasses import replace
from datetime import date
from typing import Any

from . import conflicts as conflict_checks
from . import engine
from .dates import Clock, system_clock, verification_cutoff
from .errors import ValidationError
from .models import (
    AuditAction,
    AuditEntry,
    CobOrderEntry,
    CobRecord,
    Conflict,
    Coverage,
    OrderResult,
    PatientContext,
    PrimaryDecision,
    RecordStatus,
    SpecialSituations,
    VerificationInfo,
    VerificationMethod,
    VerificationStatus,
)
from .policy import CobPolicy

logger = logging.getLogger(__name__)


def build_order(coverages: Sequence[Coverage], primary_index: int) -> tuple[CobOrderEntry, ...]:
    """Primary first, then every other coverage in input order."""
    indices = [primary_index] + [i for i in range(len(coverages)) if i != primary_index]
    return tuple(
        CobOrderEntry(
            coverage_index=idx,
            priority=priority,
            payer_id=coverages[idx].payer_id,
            policy_number=coverages[idx].policy_number,
        )
        for priority, idx in enumerate(indices, start=1)
    )


def status_for(conflicts: Sequence[Conflict]) -> str:
    if any(not c.resolved for c in conflicts):
        return RecordStatus.CONFLICT.value
    return RecordStatus.ACTIVE.value


class CobCoordinator:
    """Determines payment order and assembles COB record payloads."""

    def __init__(self, policy: CobPolicy | None = None, clock: Clock = system_clock) -> None:
        self.policy = policy or CobPolicy()
        self.clock = clock

    def validate_coverages(self, coverages: Sequence[Coverage] | None) -> None:
        if not coverages:
            raise ValidationError(
                "At least one insurance plan is required",
                errors=[{"field": "coverages", "error": "empty"}],
            )
        if not self.policy.coverage_count_ok(len(coverages)):
            raise ValidationError(
                f"Must have between {self.policy.min_coverages} and "
                f"{self.policy.max_coverages} insurance plans",
                errors=[{"field": "coverages", "error": "count", "count": len(coverages)}],
            )

    def determine_order(
        self,
        coverages: Sequence[Coverage],
        patient: PatientContext | None = None,
        situations: SpecialSituations | None = None,
    ) -> OrderResult:
        decision = engine.evaluate(
            coverages, patient, situations, clock=self.clock, policy=self.policy
        )
        logger.debug(
            f"COB order determined by {decision.rule}: "
            f"primary={decision.primary_index} confidence={decision.confidence}"
        )
        return OrderResult(
            order=build_order(coverages, decision.primary_index),
            decisions=(decision,),
            primary_index=decision.primary_index,
        )

    def detect_conflicts(
        self, coverages: Sequence[Coverage], result: OrderResult
    ) -> list[Conflict]:
        return conflict_checks.detect_conflicts(coverages, result)

    def create_record(
        self,
        patient_id: str,
        coverages: Sequence[Coverage],
        service_date: date | None = None,
        situations: SpecialSituations | None = None,
        patient: PatientContext | None = None,
        created_by: str | None = None,
        expiration_date: date | None = None,
    ) -> CobRecord:
        """Build a new record.

        Raises:
            ValidationError: If the coverage count is outside the allowed range
        """
        self.validate_coverages(coverages)
        patient = patient or PatientContext()
        situations = situations or SpecialSituations()

        result = self.determine_order(coverages, patient, situations)
        found = self.detect_conflicts(coverages, result)

        now = self.clock()
        service_date = service_date or now.date()
        applied = result.decisions[0]

        return CobRecord(
            id=str(uuid.uuid4()),
            patient_id=patient_id,
            service_date=service_date,
            coverages=tuple(coverages),
            order=result.order,
            decisions=result.decisions,
            primary_decision=PrimaryDecision(
                coverage_index=result.primary_index,
                rule=applied.rule,
                applied_at=now,
            ),
            status=status_for(found),
            conflicts=tuple(found),
            effective_date=service_date,
            expiration_date=expiration_date,
            patient=patient,
            special_situations=situations,
            audit_trail=(
                AuditEntry(
                    action=AuditAction.CREATED.value,
                    timestamp=now,
                    performed_by=created_by,
                    changes={
                        "coverage_count": len(coverages),
                        "rule": applied.rule,
                        "conflict_count": len(found),
                    },
                ),
            ),
            created_by=created_by,
            updated_by=created_by,
            created_at=now,
            updated_at=now,
        )

    def _redetermine(
        self,
        record: CobRecord,
        coverages: Sequence[Coverage],
        patient: PatientContext,
        situations: SpecialSituations,
        performed_by: str | None,
    ) -> CobRecord:
        """Recompute order and conflicts from scratch for a new coverage list."""
        self.validate_coverages(coverages)
        result = self.determine_order(coverages, patient, situations)
        found = self.detect_conflicts(coverages, result)
        applied = result.decisions[0]
        now = self.clock()

        order_changed = AuditEntry(
            action=AuditAction.ORDER_CHANGED.value,
            timestamp=now,
            performed_by=performed_by,
            changes={
                "from": [o.to_dict() for o in record.order],
                "to": [o.to_dict() for o in result.order],
                "decision": applied.to_dict(),
            },
        )

        return replace(
            record,
            coverages=tuple(coverages),
            order=result.order,
            decisions=(applied,) + record.decisions,
            primary_decision=PrimaryDecision(
                coverage_index=result.primary_index,
                rule=applied.rule,
                applied_at=now,
            ),
            conflicts=tuple(found),
            status=status_for(found),
            patient=patient,
            special_situations=situations,
            audit_trail=record.audit_trail + (order_changed,),
            updated_by=performed_by,
            updated_at=now,
        )

    def update_record(
        self,
        record: CobRecord,
        coverages: Sequence[Coverage] | None = None,
        service_date: date | None = None,
        situations: SpecialSituations | None = None,
        patient: PatientContext | None = None,
        expiration_date: date | None = None,
        updated_by: str | None = None,
    ) -> CobRecord:
        """Apply changes to a record.

        New coverages trigger a full re-determination. Without them only the
        plain fields change and the existing order is left alone.
        """
        changes: dict[str, Any] = {}
        updated = record

        if coverages is not None:
            updated = self._redetermine(
                record,
                coverages,
                patient or record.patient,
                situations or record.special_situations,
                updated_by,
            )
            changes["coverages"] = [c.to_dict() for c in coverages]
        else:
            if patient is not None:
                updated = replace(updated, patient=patient)
            if situations is not None:
                updated = replace(updated, special_situations=situations)

        if patient is not None:
            changes["patient"] = patient.to_dict()
        if situations is not None:
            changes["special_situations"] = situations.to_dict()
        if service_date is not None:
            updated = replace(updated, service_date=service_date)
            changes["service_date"] = service_date.isoformat()
        if expiration_date is not None:
            updated = replace(updated, expiration_date=expiration_date)
            changes["expiration_date"] = expiration_date.isoformat()

        now = self.clock()
        entry = AuditEntry(
            action=AuditAction.UPDATED.value,
            timestamp=now,
            performed_by=updated_by,
            changes=changes,
        )
        return replace(
            updated,
            audit_trail=updated.audit_trail + (entry,),
            updated_by=updated_by,
            updated_at=now,
        )

    def verify(
        self,
        record: CobRecord,
        method: str,
        status: str = VerificationStatus.VERIFIED.value,
        notes: str | None = None,
        verified_by: str | None = None,
    ) -> CobRecord:
        """Stamp verification metadata without re-running the determination.

        Only a ``verified`` outcome refreshes ``last_verified`` and moves a
        ``pending_verification`` record back to its conflict-derived status.
        Any other outcome is recorded but leaves staleness untouched.
        """
        methods = [m.value for m in VerificationMethod]
        if method not in methods:
            raise ValidationError(
                f"Invalid verification method: {method}",
                errors=[{"field": "method", "allowed": methods}],
                record_id=record.id,
            )
        statuses = [s.value for s in VerificationStatus]
        if status not in statuses:
            raise ValidationError(
                f"Invalid verification status: {status}",
                errors=[{"field": "status", "allowed": statuses}],
                record_id=record.id,
            )

        now = self.clock()
        succeeded = status == VerificationStatus.VERIFIED
        if not notes:
            notes = f"Verified via {method}" if succeeded else f"Verification {status} via {method}"
        previous = record.verification.last_verified if record.verification else None
        record_status = record.status
        if succeeded and record_status == RecordStatus.PENDING_VERIFICATION:
            record_status = status_for(record.conflicts)

        entry = AuditEntry(
            action=AuditAction.VERIFIED.value,
            timestamp=now,
            performed_by=verified_by,
            changes={"method": method, "status": status, "notes": notes},
        )
        return replace(
            record,
            verification=VerificationInfo(
                last_verified=now if succeeded else previous,
                verified_by=verified_by,
                method=method,
                status=status,
                notes=notes,
            ),
            status=record_status,
            audit_trail=record.audit_trail + (entry,),
            updated_by=verified_by,
            updated_at=now,
        )

    def resolve_conflict(
        self,
        record: CobRecord,
        conflict_index: int,
        resolution: str,
        resolved_by: str | None = None,
    ) -> CobRecord:
        if not 0 <= conflict_index < len(record.conflicts):
            raise ValidationError(
                f"Conflict index {conflict_index} out of range",
                errors=[{"field": "conflict_index", "count": len(record.conflicts)}],
                record_id=record.id,
            )

        now = self.clock()
        resolved = replace(
            record.conflicts[conflict_index],
            resolved=True,
            resolved_by=resolved_by,
            resolved_at=now,
            resolution=resolution,
        )
        conflicts = (
            record.conflicts[:conflict_index] + (resolved,) + record.conflicts[conflict_index + 1 :]
        )
        status = record.status
        if status == RecordStatus.CONFLICT and not any(not c.resolved for c in conflicts):
            status = RecordStatus.ACTIVE.value

        entry = AuditEntry(
            action=AuditAction.CONFLICT_RESOLVED.value,
            timestamp=now,
            performed_by=resolved_by,
            changes={"conflict": resolved.to_dict(), "resolution": resolution},
        )
        return replace(
            record,
            conflicts=conflicts,
            status=status,
            audit_trail=record.audit_trail + (entry,),
            updated_by=resolved_by,
            updated_at=now,
        )

    def add_coverage(
        self,
        record: CobRecord,
        coverage: Coverage,
        performed_by: str | None = None,
    ) -> CobRecord:
        coverages = record.coverages + (coverage,)
        updated = self._redetermine(
            record, coverages, record.patient, record.special_situations, performed_by
        )
        entry = AuditEntry(
            action=AuditAction.PLAN_ADDED.value,
            timestamp=self.clock(),
            performed_by=performed_by,
            changes={"plan": coverage.to_dict()},
            notes=f"Added {coverage.display_name} - {coverage.policy_number}",
        )
        return replace(updated, audit_trail=updated.audit_trail + (entry,))

    def remove_coverage(
        self,
        record: CobRecord,
        coverage_index: int,
        reason: str | None = None,
        performed_by: str | None = None,
    ) -> CobRecord:
        if not 0 <= coverage_index < len(record.coverages):
            raise ValidationError(
                f"Coverage index {coverage_index} out of range",
                errors=[{"field": "coverage_index", "count": len(record.coverages)}],
                record_id=record.id,
            )

        removed = record.coverages[coverage_index]
        coverages = record.coverages[:coverage_index] + record.coverages[coverage_index + 1 :]
        updated = self._redetermine(
            record, coverages, record.patient, record.special_situations, performed_by
        )
        entry = AuditEntry(
            action=AuditAction.PLAN_REMOVED.value,
            timestamp=self.clock(),
            performed_by=performed_by,
            changes={"removed": removed.to_dict()},
            notes=reason or f"Removed {removed.display_name} - {removed.policy_number}",
        )
        return replace(updated, audit_trail=updated.audit_trail + (entry,))

    def is_verification_stale(self, record: CobRecord) -> bool:
        last_verified = record.verification.last_verified if record.verification else None
        if last_verified is None:
            return True
        cutoff = verification_cutoff(self.clock(), self.policy.verification_stale_days)
        return last_verified < cutoff

    def refresh_staleness(self, record: CobRecord) -> CobRecord:
        """Move an active record to pending_verification once its verification is stale.

        Returns the record unchanged when no transition applies.
        """
        if record.status != RecordStatus.ACTIVE or not self.is_verification_stale(record):
            return record

        now = self.clock()
        entry = AuditEntry(
            action=AuditAction.STATUS_CHANGED.value,
            timestamp=now,
            changes={
                "from": record.status,
                "to": RecordStatus.PENDING_VERIFICATION.value,
            },
            notes=f"Verification older than {self.policy.verification_stale_days} days",
        )
        return replace(
            record,
            status=RecordStatus.PENDING_VERIFICATION.value,
            audit_trail=record.audit_trail + (entry,),
            updated_at=now,
        )
