"""SQLite persistence for COB records.

Each record is stored as one JSON document plus a handful of indexed
columns used by the lookup queries. Saves replace the whole document, so
concurrent writers to the same record resolve as last-writer-wins.

Usage:
    store = CobRecordStore(db_path)
    store.save(record)
    current = store.find_active_for_patient("patient-1", date.today())
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections import defaultdict
from datetime import date, datetime

from .dates import verification_cutoff
from .models import CobRecord, RecordStatus

logger = logging.getLogger(__name__)


class CobRecordStore:
    """Storage for COB records keyed by id and indexed by patient and service date.

    Attributes:
        db_path: Path to the SQLite database
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._init_tables()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def _init_tables(self) -> None:
        """Initialize database tables if they don't exist."""
        with self._connect() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS cob_records (
                    id TEXT PRIMARY KEY,
                    patient_id TEXT NOT NULL,
                    service_date TEXT NOT NULL,
                    effective_date TEXT NOT NULL,
                    expiration_date TEXT,
                    status TEXT NOT NULL,
                    has_conflicts INTEGER NOT NULL DEFAULT 0,
                    last_verified TEXT,
                    document TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_cob_patient_service
                ON cob_records(patient_id, service_date DESC)
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_cob_patient_effective
                ON cob_records(patient_id, effective_date, expiration_date)
            """)
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_cob_status ON cob_records(status)"
            )

            conn.commit()
            logger.info("COB record tables initialized")

    def save(self, record: CobRecord) -> CobRecord:
        """Insert or replace a record."""
        last_verified = record.verification.last_verified if record.verification else None
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO cob_records (
                    id, patient_id, service_date, effective_date, expiration_date,
                    status, has_conflicts, last_verified, document, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.patient_id,
                    record.service_date.isoformat(),
                    record.effective_date.isoformat(),
                    record.expiration_date.isoformat() if record.expiration_date else None,
                    record.status,
                    1 if record.has_conflicts else 0,
                    last_verified.isoformat() if last_verified else None,
                    json.dumps(record.to_dict()),
                    record.created_at.isoformat(),
                    record.updated_at.isoformat(),
                ),
            )
            conn.commit()
        return record

    @staticmethod
    def _rows_to_records(rows: list[tuple[str]]) -> list[CobRecord]:
        return [CobRecord.from_dict(json.loads(row[0])) for row in rows]

    def get(self, record_id: str) -> CobRecord | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT document FROM cob_records WHERE id = ?", (record_id,)
            ).fetchone()
        return CobRecord.from_dict(json.loads(row[0])) if row else None

    def find_by_patient_and_date(self, patient_id: str, service_date: date) -> CobRecord | None:
        """Most recently updated record for an exact patient and service date."""
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT document FROM cob_records
                WHERE patient_id = ? AND service_date = ?
                ORDER BY updated_at DESC
                LIMIT 1
                """,
                (patient_id, service_date.isoformat()),
            ).fetchone()
        return CobRecord.from_dict(json.loads(row[0])) if row else None

    def find_active_for_patient(self, patient_id: str, on: date) -> CobRecord | None:
        """Latest effective, non-inactive record whose window contains ``on``."""
        day = on.isoformat()
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT document FROM cob_records
                WHERE patient_id = ?
                  AND status != ?
                  AND effective_date <= ?
                  AND (expiration_date IS NULL OR expiration_date >= ?)
                ORDER BY effective_date DESC, created_at DESC
                LIMIT 1
                """,
                (patient_id, RecordStatus.INACTIVE.value, day, day),
            ).fetchone()
        return CobRecord.from_dict(json.loads(row[0])) if row else None

    def find_all_for_patient(self, patient_id: str) -> list[CobRecord]:
        """All records for a patient, newest effective date first."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT document FROM cob_records
                WHERE patient_id = ?
                ORDER BY effective_date DESC, created_at DESC
                """,
                (patient_id,),
            ).fetchall()
        return self._rows_to_records(rows)

    def find_with_conflicts(self) -> list[CobRecord]:
        """Records holding at least one unresolved conflict."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT document FROM cob_records
                WHERE has_conflicts = 1
                ORDER BY created_at DESC
                """
            ).fetchall()
        return self._rows_to_records(rows)

    def find_needing_verification(self, days: int, now: datetime) -> list[CobRecord]:
        """Active records never verified, or last verified before ``now - days``."""
        cutoff = verification_cutoff(now, days).isoformat()
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT document FROM cob_records
                WHERE status = ?
                  AND (last_verified IS NULL OR last_verified < ?)
                ORDER BY created_at DESC
                """,
                (RecordStatus.ACTIVE.value, cutoff),
            ).fetchall()
        return self._rows_to_records(rows)

    def count_by_status(self) -> dict[str, int]:
        counts: dict[str, int] = defaultdict(int)
        with self._connect() as conn:
            for status, count in conn.execute(
                "SELECT status, COUNT(*) FROM cob_records GROUP BY status"
            ):
                counts[status] = count
        return dict(counts)

    def count_with_conflicts(self) -> int:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM cob_records WHERE has_conflicts = 1"
            ).fetchone()
        return row[0] if row else 0
