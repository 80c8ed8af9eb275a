"""Coordination of Benefits (COB) Backend Package.

This package provides the FastAPI backend for deciding which of a
patient's overlapping insurance coverages pays first, including:

- Prioritized COB rule chain (self, court order, custodial parent,
  Medicare ESRD / working aged / disabled, active-inactive, birthday)
- Conflict detection over coverage lists
- SQLite-backed COB record store with audit trail and verification

Usage:
    # Development (from project root):
    PYTHONPATH=backend uvicorn app:app --reload --port 8080

Modules:
    app: FastAPI application entry point
    cob: COB rule engine, coordinator, record store and service
    routes: HTTP routers
    schemas: Pydantic request models
    utils: Date parsing helpers
"""

__version__ = "0.1.0"
