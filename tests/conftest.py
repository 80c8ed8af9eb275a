"""Pytest configuration and fixtures."""

from __future__ import annotations

import atexit
import os
import sys
import tempfile
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest

# Add backend to path for imports
backend_path = str(Path(__file__).parent.parent / "backend")
if backend_path not in sys.path:
    sys.path.insert(0, backend_path)

# Set test database path before importing app
_temp_db = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
_temp_db_path = _temp_db.name
os.environ["DB_PATH"] = _temp_db_path


def _cleanup_test_db() -> None:
    """Clean up temporary test database file."""
    if os.path.exists(_temp_db_path):
        try:
            os.unlink(_temp_db_path)
        except OSError:
            pass  # File may already be deleted or locked


# Register cleanup to run at exit
atexit.register(_cleanup_test_db)


@pytest.fixture(scope="session", autouse=True)
def cleanup_test_db() -> None:
    """Pytest fixture to ensure test database cleanup after session."""
    yield
    _cleanup_test_db()


FIXED_NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock so tests can move time forward."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_coverage() -> Callable[..., Any]:
    """Factory for Coverage objects with sensible defaults."""
    from cob.models import Coverage

    def _make(**overrides: Any) -> Coverage:
        insured = overrides.pop("insured", {})
        data: dict[str, Any] = {
            "payer_id": "PAYER-1",
            "payer_name": "Acme Health",
            "policy_number": "POL-1",
            "relationship_to_insured": "spouse",
            "coverage_type": "commercial",
            "effective_date": "2024-01-01",
            "insured": {
                "first_name": "Pat",
                "last_name": "Doe",
                "date_of_birth": "1975-05-20",
                **insured,
            },
        }
        data.update(overrides)
        return Coverage.from_dict(data)

    return _make


@pytest.fixture
def coordinator(clock: FakeClock):
    from cob import CobCoordinator

    return CobCoordinator(clock=clock)


@pytest.fixture
def store(tmp_path: Path):
    from cob import CobRecordStore

    return CobRecordStore(str(tmp_path / "cob.db"))


@pytest.fixture
def service(store, coordinator):
    from cob import CobService

    return CobService(store, coordinator)


@pytest.fixture
def sample_coverages(make_coverage) -> list[Any]:
    """Patient's own plan plus a spouse's plan."""
    return [
        make_coverage(
            payer_id="SELF-1",
            payer_name="Employer Plan",
            policy_number="E-100",
            relationship_to_insured="self",
        ),
        make_coverage(
            payer_id="SPOUSE-1",
            payer_name="Spouse Plan",
            policy_number="S-200",
            relationship_to_insured="spouse",
        ),
    ]
