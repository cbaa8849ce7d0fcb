# WORKFLOW: Compliance record store interface and implementations.
# Used by: Compliance engine (injected at construction), API startup, tests
# Classes:
# 1. ComplianceStore - Abstract interface (get, put, list, delete, find_by_key)
# 2. InMemoryComplianceStore - Dict-backed store, copies records on read and write
# 3. SqlComplianceStore - SQLAlchemy store, one row per record with a JSON document
#
# Store flow: Engine -> store.get(id) -> mutate a private copy -> store.put(record)
# Stores never hand out shared references, so a failed update leaves the stored
# record untouched. Locking is the engine's job, not the store's.

from abc import ABC, abstractmethod
from typing import Dict, List, Optional
import logging
import threading

from sqlalchemy import select
from sqlalchemy.engine import Engine

from api.schemas.compliance import ComplianceRecord
from db.models import ComplianceRecordRow
from db.session import get_engine, get_session_factory, init_db

logger = logging.getLogger(__name__)


class ComplianceStore(ABC):
    """Abstract compliance record store."""

    @abstractmethod
    def get(self, record_id: str) -> Optional[ComplianceRecord]:
        """Get a copy of a record, or None when it does not exist."""
        pass

    @abstractmethod
    def put(self, record: ComplianceRecord) -> None:
        """Insert or replace a record."""
        pass

    @abstractmethod
    def list(self) -> List[ComplianceRecord]:
        """List all records, oldest first."""
        pass

    @abstractmethod
    def delete(self, record_id: str) -> bool:
        """Delete a record. Returns False when it did not exist."""
        pass

    @abstractmethod
    def find_by_key(
        self, batch_id: str, destination_country: str, buyer_id: str
    ) -> Optional[ComplianceRecord]:
        """Find the most recent record for a (batch, destination, buyer) key."""
        pass


class InMemoryComplianceStore(ComplianceStore):
    """In-memory compliance record store."""

    def __init__(self):
        self._records: Dict[str, ComplianceRecord] = {}
        self._mutex = threading.Lock()

    def get(self, record_id: str) -> Optional[ComplianceRecord]:
        with self._mutex:
            record = self._records.get(record_id)
            return record.model_copy(deep=True) if record else None

    def put(self, record: ComplianceRecord) -> None:
        with self._mutex:
            self._records[record.compliance_id] = record.model_copy(deep=True)

    def list(self) -> List[ComplianceRecord]:
        with self._mutex:
            records = [r.model_copy(deep=True) for r in self._records.values()]
        return sorted(records, key=lambda r: r.created_at)

    def delete(self, record_id: str) -> bool:
        with self._mutex:
            return self._records.pop(record_id, None) is not None

    def find_by_key(
        self, batch_id: str, destination_country: str, buyer_id: str
    ) -> Optional[ComplianceRecord]:
        with self._mutex:
            matches = [
                r for r in self._records.values()
                if r.batch_id == batch_id
                and r.destination_country == destination_country
                and r.buyer_id == buyer_id
            ]
            if not matches:
                return None
            return max(matches, key=lambda r: r.created_at).model_copy(deep=True)


class SqlComplianceStore(ComplianceStore):
    """SQLAlchemy-backed compliance record store."""

    def __init__(self, engine: Optional[Engine] = None, create_tables: bool = True):
        self.bind = engine if engine is not None else get_engine()
        self._session_factory = get_session_factory(self.bind)
        if create_tables:
            init_db(self.bind)

    def _to_record(self, row: ComplianceRecordRow) -> ComplianceRecord:
        return ComplianceRecord.model_validate(row.document)

    def get(self, record_id: str) -> Optional[ComplianceRecord]:
        with self._session_factory() as session:
            row = session.get(ComplianceRecordRow, record_id)
            return self._to_record(row) if row else None

    def put(self, record: ComplianceRecord) -> None:
        document = record.model_dump(mode="json")
        with self._session_factory() as session:
            try:
                row = session.get(ComplianceRecordRow, record.compliance_id)
                if row is None:
                    row = ComplianceRecordRow(compliance_id=record.compliance_id)
                    session.add(row)
                row.batch_id = record.batch_id
                row.destination_country = record.destination_country
                row.buyer_id = record.buyer_id
                row.compliance_status = record.compliance_status.value
                row.compliance_score = record.compliance_score
                row.created_at = record.created_at
                row.updated_at = record.updated_at
                row.expires_at = record.expires_at
                row.document = document
                session.commit()
            except Exception as e:
                logger.error(f"Failed to store record {record.compliance_id}: {e}")
                session.rollback()
                raise

    def list(self) -> List[ComplianceRecord]:
        with self._session_factory() as session:
            rows = session.execute(
                select(ComplianceRecordRow).order_by(ComplianceRecordRow.created_at)
            ).scalars().all()
            return [self._to_record(row) for row in rows]

    def delete(self, record_id: str) -> bool:
        with self._session_factory() as session:
            row = session.get(ComplianceRecordRow, record_id)
            if row is None:
                return False
            session.delete(row)
            session.commit()
            return True

    def find_by_key(
        self, batch_id: str, destination_country: str, buyer_id: str
    ) -> Optional[ComplianceRecord]:
        with self._session_factory() as session:
            row = session.execute(
                select(ComplianceRecordRow)
                .where(
                    ComplianceRecordRow.batch_id == batch_id,
                    ComplianceRecordRow.destination_country == destination_country,
                    ComplianceRecordRow.buyer_id == buyer_id,
                )
                .order_by(ComplianceRecordRow.created_at.desc())
                .limit(1)
            ).scalars().first()
            return self._to_record(row) if row else None


def create_store(backend: str, engine: Optional[Engine] = None) -> ComplianceStore:
    """Create the record store for a configured backend name."""
    if backend == "sql":
        logger.info("Using SQL compliance store")
        return SqlComplianceStore(engine)
    logger.info("Using in-memory compliance store")
    return InMemoryComplianceStore()
