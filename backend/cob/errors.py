"""Exceptions raised by the COB coordinator and service."""
from __future__ import annotations

from typing import Any


class CobError(Exception):
    """Base exception for COB errors."""

    def __init__(self, message: str, record_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.record_id = record_id


class ValidationError(CobError):
    """Structurally invalid input, such as a coverage count outside the allowed range."""

    def __init__(
        self,
        message: str,
        errors: list[dict[str, Any]] | None = None,
        record_id: str | None = None,
    ) -> None:
        super().__init__(message, record_id=record_id)
        self.errors = errors or []


class NotFoundError(CobError):
    """A record lookup by id found nothing."""

    def __init__(self, resource: str, record_id: str) -> None:
        super().__init__(f"{resource} not found: {record_id}", record_id=record_id)
        self.resource = resource
