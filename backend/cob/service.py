"""COB service: coordinator decisions persisted through the record store."""
from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date
from typing import Any

from .coordinator import CobCoordinator
from .errors import NotFoundError
from .models import (
    CobRecord,
    Coverage,
    OrderResult,
    PatientContext,
    RecordStatus,
    SpecialSituations,
    VerificationStatus,
)
from .store import CobRecordStore

logger = logging.getLogger(__name__)


class CobService:
    """Read-modify-write operations over COB records."""

    def __init__(self, store: CobRecordStore, coordinator: CobCoordinator | None = None) -> None:
        self.store = store
        self.coordinator = coordinator or CobCoordinator()

    @property
    def policy(self):
        return self.coordinator.policy

    def _require(self, record_id: str) -> CobRecord:
        record = self.store.get(record_id)
        if record is None:
            raise NotFoundError("COB record", record_id)
        return record

    def get_record(self, record_id: str) -> CobRecord:
        return self._require(record_id)

    def preview_order(
        self,
        coverages: Sequence[Coverage],
        patient: PatientContext | None = None,
        situations: SpecialSituations | None = None,
    ) -> dict[str, Any]:
        """Determine order and conflicts without persisting anything."""
        self.coordinator.validate_coverages(coverages)
        result: OrderResult = self.coordinator.determine_order(coverages, patient, situations)
        found = self.coordinator.detect_conflicts(coverages, result)
        return {**result.to_dict(), "conflicts": [c.to_dict() for c in found]}

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
        """Create the record for a patient and service date.

        A record already stored for the same patient and service date is
        re-determined with the new coverages instead of being duplicated.
        """
        service_date = service_date or self.coordinator.clock().date()
        existing = self.store.find_by_patient_and_date(patient_id, service_date)
        if existing is not None:
            updated = self.coordinator.update_record(
                existing,
                coverages=coverages,
                situations=situations,
                patient=patient,
                expiration_date=expiration_date,
                updated_by=created_by,
            )
            self.store.save(updated)

            logger.info(
                f"COB record re-determined: id={updated.id} patient={patient_id} "
                f"service_date={service_date.isoformat()} rule={updated.primary_decision.rule}"
            )
            return updated

        record = self.coordinator.create_record(
            patient_id,
            coverages,
            service_date=service_date,
            situations=situations,
            patient=patient,
            created_by=created_by,
            expiration_date=expiration_date,
        )
        self.store.save(record)

        logger.info(
            f"COB record created: id={record.id} patient={patient_id} "
            f"plans={len(record.coverages)} rule={record.primary_decision.rule} "
            f"conflicts={len(record.conflicts)}"
        )
        return record

    def update_record(
        self,
        record_id: str,
        coverages: Sequence[Coverage] | None = None,
        service_date: date | None = None,
        situations: SpecialSituations | None = None,
        patient: PatientContext | None = None,
        expiration_date: date | None = None,
        updated_by: str | None = None,
    ) -> CobRecord:
        record = self._require(record_id)
        updated = self.coordinator.update_record(
            record,
            coverages=coverages,
            service_date=service_date,
            situations=situations,
            patient=patient,
            expiration_date=expiration_date,
            updated_by=updated_by,
        )
        self.store.save(updated)

        logger.info(f"COB record updated: id={record_id} status={updated.status}")
        return updated

    def verify_record(
        self,
        record_id: str,
        method: str,
        status: str = VerificationStatus.VERIFIED.value,
        notes: str | None = None,
        verified_by: str | None = None,
    ) -> CobRecord:
        record = self._require(record_id)
        verified = self.coordinator.verify(
            record, method, status=status, notes=notes, verified_by=verified_by
        )
        self.store.save(verified)

        logger.info(f"COB verified: id={record_id} method={method}")
        return verified

    def resolve_conflict(
        self,
        record_id: str,
        conflict_index: int,
        resolution: str,
        resolved_by: str | None = None,
    ) -> CobRecord:
        record = self._require(record_id)
        updated = self.coordinator.resolve_conflict(
            record, conflict_index, resolution, resolved_by=resolved_by
        )
        self.store.save(updated)

        logger.info(f"COB conflict resolved: id={record_id} conflict_index={conflict_index}")
        return updated

    def add_coverage(
        self, record_id: str, coverage: Coverage, performed_by: str | None = None
    ) -> CobRecord:
        record = self._require(record_id)
        updated = self.coordinator.add_coverage(record, coverage, performed_by=performed_by)
        self.store.save(updated)

        logger.info(f"COB plan added: id={record_id} payer={coverage.payer_id}")
        return updated

    def remove_coverage(
        self,
        record_id: str,
        coverage_index: int,
        reason: str | None = None,
        performed_by: str | None = None,
    ) -> CobRecord:
        record = self._require(record_id)
        updated = self.coordinator.remove_coverage(
            record, coverage_index, reason=reason, performed_by=performed_by
        )
        self.store.save(updated)

        logger.info(f"COB plan removed: id={record_id} coverage_index={coverage_index}")
        return updated

    def get_for_patient(self, patient_id: str, service_date: date | None = None) -> CobRecord | None:
        """Current record for a patient, applying the lazy staleness transition."""
        on = service_date or self.coordinator.clock().date()
        record = self.store.find_active_for_patient(patient_id, on)
        if record is None:
            return None

        refreshed = self.coordinator.refresh_staleness(record)
        if refreshed is not record:
            self.store.save(refreshed)
            logger.warning(
                f"COB record {record.id} verification is stale; "
                f"status set to {RecordStatus.PENDING_VERIFICATION.value}"
            )
        return refreshed

    def get_summary(self, patient_id: str) -> dict[str, Any]:
        all_records = self.store.find_all_for_patient(patient_id)
        current = self.store.find_active_for_patient(
            patient_id, self.coordinator.clock().date()
        )
        return {
            "current": current.to_dict() if current else None,
            "total_records": len(all_records),
            "has_conflicts": current.has_conflicts if current else False,
            "needs_verification": (
                current is not None
                and current.status == RecordStatus.PENDING_VERIFICATION
            ),
            "history": [r.to_dict() for r in all_records[: self.policy.summary_history_limit]],
        }

    def records_with_conflicts(self) -> list[CobRecord]:
        return self.store.find_with_conflicts()

    def records_needing_verification(self, days: int | None = None) -> list[CobRecord]:
        days = self.policy.verification_stale_days if days is None else days
        return self.store.find_needing_verification(days, self.coordinator.clock())

    def records_needing_attention(self) -> dict[str, Any]:
        conflicts = self.records_with_conflicts()
        needing_verification = self.records_needing_verification()
        return {
            "conflicts": [r.to_dict() for r in conflicts],
            "needing_verification": [r.to_dict() for r in needing_verification],
            "total": len(conflicts) + len(needing_verification),
        }

    def get_stats(self) -> dict[str, Any]:
        by_status = self.store.count_by_status()
        return {
            "total": sum(by_status.values()),
            "active": by_status.get(RecordStatus.ACTIVE.value, 0),
            "conflicts": self.store.count_with_conflicts(),
            "needing_verification": len(self.records_needing_verification()),
            "by_status": by_status,
        }
