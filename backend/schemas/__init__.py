"""Shared Pydantic schemas for the COB backend.

This module centralizes request models used by the COB router so the
HTTP layer and its tests agree on one definition.
"""

from .cob import (
    AddCoverageRequest,
    CoverageIn,
    CreateCobRecordRequest,
    DetermineOrderRequest,
    InsuredIn,
    PatientInfoIn,
    RemoveCoverageRequest,
    ResolveConflictRequest,
    SpecialSituationsIn,
    UpdateCobRecordRequest,
    VerifyCobRecordRequest,
)

__all__ = [
    "AddCoverageRequest",
    "CoverageIn",
    "CreateCobRecordRequest",
    "DetermineOrderRequest",
    "InsuredIn",
    "PatientInfoIn",
    "RemoveCoverageRequest",
    "ResolveConflictRequest",
    "SpecialSituationsIn",
    "UpdateCobRecordRequest",
    "VerifyCobRecordRequest",
]
