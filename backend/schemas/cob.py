"""Pydantic schemas for COB endpoints."""

from __future__ import annotations

from datetime import date
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from cob.models import Coverage, PatientContext, SpecialSituations
from utils.date_parser import parse_flexible_date

VerificationMethodLiteral = Literal["manual", "eligibility_api", "phone", "portal", "other"]
VerificationStatusLiteral = Literal["verified", "unverified", "failed", "pending"]


def _validate_date(value: str | None) -> str | None:
    """Reject dates that are present but unparseable."""
    if value in (None, ""):
        return None
    if parse_flexible_date(value) is None:
        raise ValueError(f"Invalid date: {value}")
    return value


class InsuredIn(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    date_of_birth: str | None = None
    employer_name: str | None = None
    employment_status: Literal["active", "retired", "cobra", "disabled", "unemployed"] | None = None

    @field_validator("date_of_birth")
    @classmethod
    def validate_dob(cls, v: str | None) -> str | None:
        return _validate_date(v)


class CoverageIn(BaseModel):
    """One insurance plan as submitted by a client."""

    payer_id: str = Field(min_length=1)
    payer_name: str | None = None
    policy_number: str = Field(min_length=1)
    group_number: str | None = None
    plan_name: str | None = None
    relationship_to_insured: Literal["self", "spouse", "child", "other"]
    coverage_type: (
        Literal[
            "commercial",
            "medicare",
            "medicaid",
            "tricare",
            "workers_comp",
            "auto_insurance",
            "other",
        ]
        | None
    ) = None
    insured: InsuredIn = Field(default_factory=InsuredIn)
    effective_date: str | None = None
    termination_date: str | None = None
    is_active: bool = True
    priority: int | None = Field(default=None, ge=1, le=10)

    @field_validator("effective_date", "termination_date")
    @classmethod
    def validate_dates(cls, v: str | None) -> str | None:
        return _validate_date(v)

    def to_coverage(self) -> Coverage:
        return Coverage.from_dict(self.model_dump())


class PatientInfoIn(BaseModel):
    date_of_birth: str | None = None

    @field_validator("date_of_birth")
    @classmethod
    def validate_dob(cls, v: str | None) -> str | None:
        return _validate_date(v)

    def to_context(self) -> PatientContext:
        return PatientContext.from_dict(self.model_dump())


class SpecialSituationsIn(BaseModel):
    court_order_index: int | None = Field(default=None, ge=0)
    custodial_parent_index: int | None = Field(default=None, ge=0)
    esrd_start_date: str | None = None

    @field_validator("esrd_start_date")
    @classmethod
    def validate_esrd(cls, v: str | None) -> str | None:
        return _validate_date(v)

    def to_situations(self) -> SpecialSituations:
        return SpecialSituations.from_dict(self.model_dump())


class DetermineOrderRequest(BaseModel):
    """Request model for previewing a COB order without saving it."""

    coverages: list[CoverageIn]
    patient_info: PatientInfoIn | None = None
    special_situations: SpecialSituationsIn | None = None


class CreateCobRecordRequest(DetermineOrderRequest):
    patient_id: str = Field(min_length=1)
    service_date: str | None = None
    expiration_date: str | None = None
    user_id: str | None = None

    @field_validator("service_date", "expiration_date")
    @classmethod
    def validate_dates(cls, v: str | None) -> str | None:
        return _validate_date(v)


class UpdateCobRecordRequest(BaseModel):
    coverages: list[CoverageIn] | None = None
    service_date: str | None = None
    expiration_date: str | None = None
    patient_info: PatientInfoIn | None = None
    special_situations: SpecialSituationsIn | None = None
    user_id: str | None = None

    @field_validator("service_date", "expiration_date")
    @classmethod
    def validate_dates(cls, v: str | None) -> str | None:
        return _validate_date(v)


class VerifyCobRecordRequest(BaseModel):
    method: VerificationMethodLiteral
    status: VerificationStatusLiteral = "verified"
    notes: str | None = None
    user_id: str | None = None


class ResolveConflictRequest(BaseModel):
    resolution: str
    user_id: str | None = None

    @field_validator("resolution")
    @classmethod
    def validate_resolution(cls, v: str) -> str:
        """Resolution text is required and trimmed."""
        v = v.strip()
        if not v:
            raise ValueError("Resolution required")
        return v


class AddCoverageRequest(BaseModel):
    plan: CoverageIn
    user_id: str | None = None


class RemoveCoverageRequest(BaseModel):
    reason: str | None = None
    user_id: str | None = None


def to_date(value: str | None) -> date | None:
    return parse_flexible_date(value)
