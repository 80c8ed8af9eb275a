"""Coordination of benefits routes.

Endpoints for determining payment order across a patient's coverages and
managing the resulting COB records:
- Create, read and update records
- Verify records and resolve conflicts
- Add or remove a plan (re-runs the determination)
- Worklists for records with conflicts or stale verification

Security Note:
    Authentication and role checks are expected to be enforced by middleware
    in front of this router; ``user_id`` in request bodies is recorded in the
    audit trail as given.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, Request

from cob import CobCoordinator, CobPolicy, CobRecordStore, CobService, load_policy
from config import COB_POLICY_FILE, COB_WRITE_RATE_LIMIT, DB_PATH
from rate_limit import limiter
from schemas.cob import (
    AddCoverageRequest,
    CreateCobRecordRequest,
    DetermineOrderRequest,
    RemoveCoverageRequest,
    ResolveConflictRequest,
    UpdateCobRecordRequest,
    VerifyCobRecordRequest,
    to_date,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cob", tags=["cob"])

_policy: CobPolicy | None = None
_stores: dict[str, CobRecordStore] = {}


def get_policy() -> CobPolicy:
    """Get or load the global COB policy."""
    global _policy
    if _policy is None:
        _policy = load_policy(COB_POLICY_FILE)
    return _policy


def get_service() -> CobService:
    """Build a service over the store for the configured database."""
    store = _stores.get(DB_PATH)
    if store is None:
        store = CobRecordStore(DB_PATH)
        _stores[DB_PATH] = store
    return CobService(store, CobCoordinator(policy=get_policy()))


def _ok(data: Any) -> dict[str, Any]:
    return {"success": True, "data": data}


@router.post("", status_code=201)
@limiter.limit(COB_WRITE_RATE_LIMIT)
async def create_cob_record(
    request: Request,
    body: CreateCobRecordRequest,
    service: CobService = Depends(get_service),
):
    """Determine COB order for a patient's plans and save the record."""
    record = service.create_record(
        body.patient_id,
        [c.to_coverage() for c in body.coverages],
        service_date=to_date(body.service_date),
        situations=body.special_situations.to_situations() if body.special_situations else None,
        patient=body.patient_info.to_context() if body.patient_info else None,
        created_by=body.user_id,
        expiration_date=to_date(body.expiration_date),
    )
    return _ok({"cob_record": record.to_dict()})


@router.post("/determine-order")
async def determine_order(body: DetermineOrderRequest, service: CobService = Depends(get_service)):
    """Preview the COB order and conflicts without creating a record."""
    result = service.preview_order(
        [c.to_coverage() for c in body.coverages],
        patient=body.patient_info.to_context() if body.patient_info else None,
        situations=body.special_situations.to_situations() if body.special_situations else None,
    )
    return _ok(result)


@router.get("/patient/{patient_id}")
async def get_patient_cob(
    patient_id: str,
    service_date: str | None = Query(default=None),
    service: CobService = Depends(get_service),
):
    """Get the current COB record for a patient and service date."""
    record = service.get_for_patient(patient_id, to_date(service_date))
    if record is None:
        return _ok(
            {
                "has_cob": False,
                "message": "No COB record found for this patient and date",
            }
        )
    return _ok({"has_cob": True, "cob_record": record.to_dict()})


@router.get("/patient/{patient_id}/summary")
async def get_patient_summary(patient_id: str, service: CobService = Depends(get_service)):
    return _ok(service.get_summary(patient_id))


@router.get("/needs-attention")
async def get_needs_attention(service: CobService = Depends(get_service)):
    """Records with unresolved conflicts or stale verification."""
    return _ok(service.records_needing_attention())


@router.get("/conflicts")
async def get_conflicts(service: CobService = Depends(get_service)):
    records = service.records_with_conflicts()
    return _ok({"count": len(records), "records": [r.to_dict() for r in records]})


@router.get("/verification-needed")
async def get_verification_needed(
    days_threshold: int = Query(default=90, ge=0, le=3650),
    service: CobService = Depends(get_service),
):
    records = service.records_needing_verification(days_threshold)
    return _ok(
        {
            "count": len(records),
            "records": [r.to_dict() for r in records],
            "threshold": f"{days_threshold} days",
        }
    )


@router.get("/stats")
async def get_cob_stats(service: CobService = Depends(get_service)):
    return _ok(service.get_stats())


@router.get("/{record_id}")
async def get_cob_record(record_id: str, service: CobService = Depends(get_service)):
    return _ok({"cob_record": service.get_record(record_id).to_dict()})


@router.put("/{record_id}")
@limiter.limit(COB_WRITE_RATE_LIMIT)
async def update_cob_record(
    request: Request,
    record_id: str,
    body: UpdateCobRecordRequest,
    service: CobService = Depends(get_service),
):
    """Update a record; new coverages re-run the full determination."""
    record = service.update_record(
        record_id,
        coverages=[c.to_coverage() for c in body.coverages] if body.coverages is not None else None,
        service_date=to_date(body.service_date),
        situations=body.special_situations.to_situations() if body.special_situations else None,
        patient=body.patient_info.to_context() if body.patient_info else None,
        expiration_date=to_date(body.expiration_date),
        updated_by=body.user_id,
    )
    return _ok({"cob_record": record.to_dict()})


@router.post("/{record_id}/verify")
async def verify_cob_record(
    record_id: str,
    body: VerifyCobRecordRequest,
    service: CobService = Depends(get_service),
):
    record = service.verify_record(
        record_id,
        body.method,
        status=body.status,
        notes=body.notes,
        verified_by=body.user_id,
    )
    return _ok({"cob_record": record.to_dict()})


@router.post("/{record_id}/conflicts/{conflict_index}/resolve")
async def resolve_cob_conflict(
    record_id: str,
    conflict_index: int,
    body: ResolveConflictRequest,
    service: CobService = Depends(get_service),
):
    record = service.resolve_conflict(
        record_id, conflict_index, body.resolution, resolved_by=body.user_id
    )
    return _ok({"cob_record": record.to_dict()})


@router.post("/{record_id}/plans")
async def add_cob_plan(
    record_id: str,
    body: AddCoverageRequest,
    service: CobService = Depends(get_service),
):
    """Add a plan to a record and redetermine the order."""
    record = service.add_coverage(record_id, body.plan.to_coverage(), performed_by=body.user_id)
    return _ok({"cob_record": record.to_dict()})


@router.delete("/{record_id}/plans/{plan_index}")
async def remove_cob_plan(
    record_id: str,
    plan_index: int,
    body: RemoveCoverageRequest | None = None,
    service: CobService = Depends(get_service),
):
    """Remove a plan from a record and redetermine the order."""
    body = body or RemoveCoverageRequest()
    record = service.remove_coverage(
        record_id, plan_index, reason=body.reason, performed_by=body.user_id
    )
    return _ok({"cob_record": record.to_dict()})
