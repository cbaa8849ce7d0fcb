# WORKFLOW: Compliance engine exposing the boundary operations over injected collaborators.
# Used by: API routers, bootstrap script, tests
# Functions:
# 1. initialize() - Build and store a record for a (batch, destination, buyer) key
# 2. apply_update() - Apply per-ledger commands atomically, book spend, rescore
# 3. recompute_score() / record_spend() / reassess_risk() - Targeted mutations
# 4. get_record() / list_records() - Reads with lazy expiry and timeline sync
# 5. generate_report() / validate_export_readiness() - Derived outputs
#
# Concurrency: every operation on a record runs under that record's lock, so
# "read -> validate -> write" sequences never interleave. Mutations work on the
# store's private copy and are only put back when every step succeeded.
# Reads take the lock too because lapsed certificates and delays are written back.

from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Dict, Hashable, Iterator, List, Optional, Sequence
import logging
import threading

from api.schemas.compliance import (
    BatchDescriptor,
    ComplianceRecord,
    CostCategory,
    CostEntry,
    ExportRequirements,
    RiskAssessment,
)
from api.schemas.request import (
    ApproveDocument,
    CompleteChecklistItem,
    ScheduleTest,
    SubmitTestResult,
    UpdateCertification,
)
from api.schemas.response import ComplianceReport, ReadinessResult
from core.clock import utc_now
from core.config import Settings, settings as default_settings
from core.exceptions import (
    CatalogDataUnavailableError,
    InvalidTransitionError,
    RecordAlreadyExistsError,
    RecordNotFoundError,
)
from db.store import ComplianceStore
from services.catalog import RegulationCatalog
from services.cost_ledger import CostLedger
from services.readiness import ReadinessValidator
from services.record_builder import ComplianceRecordBuilder
from services.report import ComplianceReportGenerator
from services.risk_assessor import RiskAssessor
from services.scorer import ComplianceScorer
from services.timeline import TimelineScheduler
from services.trackers import TrackerSet, expire_lapsed_certifications

logger = logging.getLogger(__name__)


class _LockEntry:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class LockRegistry:
    """
    One lock per key while anyone holds or waits for it.

    Entries are dropped when their last user leaves, so ids that were only
    looked up (including ids that do not exist) leave nothing behind.
    """

    def __init__(self):
        self._entries: Dict[Hashable, _LockEntry] = {}
        self._mutex = threading.Lock()

    def __len__(self) -> int:
        with self._mutex:
            return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        with self._mutex:
            return key in self._entries

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._mutex:
            entry = self._entries.get(key)
            if entry is None:
                entry = _LockEntry()
                self._entries[key] = entry
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._mutex:
                entry.users -= 1
                if entry.users == 0:
                    del self._entries[key]


class ComplianceEngine:
    """Boundary operations for export compliance records."""

    def __init__(
        self,
        store: ComplianceStore,
        catalog: RegulationCatalog,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.catalog = catalog
        self.settings = settings or default_settings
        self.clock = clock

        self.risk_assessor = RiskAssessor(self.settings)
        self.scheduler = TimelineScheduler(self.settings)
        self.cost_ledger = CostLedger()
        self.builder = ComplianceRecordBuilder(
            catalog, self.settings, self.risk_assessor, self.scheduler, self.cost_ledger
        )
        self.trackers = TrackerSet()
        self.scorer = ComplianceScorer(self.settings)
        self.readiness = ReadinessValidator(self.settings)
        self.reporter = ComplianceReportGenerator(self.settings)
        self._locks = LockRegistry()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _load(self, record_id: str) -> ComplianceRecord:
        record = self.store.get(record_id)
        if record is None:
            raise RecordNotFoundError(record_id)
        return record

    def _refresh(self, record: ComplianceRecord, now: datetime) -> ComplianceRecord:
        """Apply time-driven changes: certificate expiry and milestone delays."""
        lapsed = expire_lapsed_certifications(record, now)
        if lapsed:
            self.scorer.apply(record)
        self.scheduler.sync(record, now)
        return record

    def _read(self, record_id: str, now: datetime) -> ComplianceRecord:
        """Load and refresh a record, writing back any time-driven change. Caller holds the lock."""
        stored = self._load(record_id)
        record = self._refresh(stored.model_copy(deep=True), now)
        if record != stored:
            self.store.put(record)
        return record

    def _ensure_live(self, record: ComplianceRecord, now: datetime) -> None:
        if record.is_expired(now):
            raise InvalidTransitionError(
                f"Compliance record {record.compliance_id} expired on {record.expires_at.isoformat()}; "
                f"initialize a new record"
            )

    # ------------------------------------------------------------------
    # Boundary operations
    # ------------------------------------------------------------------

    def initialize(
        self,
        batch: BatchDescriptor,
        destination_country: str,
        buyer_id: str,
        requirements: Optional[ExportRequirements] = None,
    ) -> ComplianceRecord:
        """
        Create the compliance record for a (batch, destination, buyer) triple.

        A live record for the same triple is rejected; an expired one is replaced.

        Args:
            batch: Batch descriptor
            destination_country: Destination country code
            buyer_id: Buyer identifier
            requirements: Buyer-specific overrides

        Returns:
            The stored record (score 0, status pending)

        Raises:
            CatalogDataUnavailableError: No catalog data for the market, crop or a template
            RecordAlreadyExistsError: A live record exists for the triple
        """
        destination = destination_country.strip().upper()
        key = ("key", batch.batch_id, destination, buyer_id)
        with self._locks.hold(key):
            now = self.clock()
            existing = self.store.find_by_key(batch.batch_id, destination, buyer_id)
            if existing is not None and not existing.is_expired(now):
                raise RecordAlreadyExistsError(existing.compliance_id)

            record = self.builder.build(batch, destination, buyer_id, requirements, now)

            if existing is not None:
                with self._locks.hold(existing.compliance_id):
                    self.store.delete(existing.compliance_id)
                logger.info(f"Replaced expired record {existing.compliance_id} with {record.compliance_id}")
            self.store.put(record)

        logger.info(f"Initialized compliance record {record.compliance_id}")
        return record

    def apply_update(
        self,
        record_id: str,
        checklist_updates: Sequence[CompleteChecklistItem] = (),
        test_results: Sequence[SubmitTestResult] = (),
        document_approvals: Sequence[ApproveDocument] = (),
        certification_updates: Sequence[UpdateCertification] = (),
        test_schedules: Sequence[ScheduleTest] = (),
    ) -> ComplianceRecord:
        """
        Apply a batch of ledger updates atomically and recompute score and status.

        Commands run in ledger order: certifications, test scheduling, test results,
        checklist, documents. If any command fails nothing is stored.

        Returns:
            The updated record

        Raises:
            RecordNotFoundError, UnknownItemError, InvalidTransitionError
        """
        with self._locks.hold(record_id):
            now = self.clock()
            record = self._refresh(self._load(record_id), now)
            self._ensure_live(record, now)

            commands = [
                *certification_updates,
                *test_schedules,
                *test_results,
                *checklist_updates,
                *document_approvals,
            ]
            events = []
            for command in commands:
                events.extend(self.trackers.apply(record, command, now))

            self.cost_ledger.book_events(record.cost_breakdown, events, now)
            self.scorer.apply(record)
            self.scheduler.sync(record, now)
            record.updated_at = now
            self.store.put(record)

        logger.info(
            f"Applied {len(commands)} updates to {record_id}: score {record.compliance_score}, "
            f"status {record.compliance_status.value}"
        )
        return record

    def recompute_score(self, record_id: str) -> ComplianceRecord:
        """Recompute score and status from the current sub-ledger states."""
        with self._locks.hold(record_id):
            now = self.clock()
            record = self._refresh(self._load(record_id), now)
            self.scorer.apply(record)
            record.updated_at = now
            self.store.put(record)
            return record

    def record_spend(
        self,
        record_id: str,
        category: CostCategory,
        amount: float,
        description: str,
        reference: Optional[str] = None,
        milestone_id: Optional[str] = None,
    ) -> CostEntry:
        """Book actual spend against a record's cost breakdown."""
        with self._locks.hold(record_id):
            now = self.clock()
            record = self._refresh(self._load(record_id), now)
            self._ensure_live(record, now)
            entry = self.cost_ledger.record_spend(
                record.cost_breakdown, category, amount, description, now,
                reference=reference, milestone_id=milestone_id,
            )
            record.updated_at = now
            self.store.put(record)
            return entry

    def reassess_risk(self, record_id: str) -> RiskAssessment:
        """Re-run the risk assessment against the record's current ledger state."""
        with self._locks.hold(record_id):
            now = self.clock()
            record = self._refresh(self._load(record_id), now)
            market = self.catalog.get_market(record.destination_country)
            if market is None:
                raise CatalogDataUnavailableError(
                    f"No market data for destination {record.destination_country}"
                )
            record.risk_assessment = self.risk_assessor.assess(
                record.batch,
                record.export_regulations,
                market,
                now,
                certifications=record.certification_requirements,
                testing=record.testing_requirements,
                previous=record.risk_assessment,
                alternative_markets=self.catalog.markets(),
            )
            record.updated_at = now
            self.store.put(record)
            return record.risk_assessment

    def get_record(self, record_id: str) -> ComplianceRecord:
        with self._locks.hold(record_id):
            return self._read(record_id, self.clock())

    def list_records(self) -> List[ComplianceRecord]:
        records = []
        for stored in self.store.list():
            try:
                records.append(self.get_record(stored.compliance_id))
            except RecordNotFoundError:
                # Deleted between listing and reading
                continue
        return records

    def generate_report(self, record_id: str) -> ComplianceReport:
        with self._locks.hold(record_id):
            now = self.clock()
            record = self._read(record_id, now)
            return self.reporter.generate(record, now)

    def validate_export_readiness(self, record_id: str) -> ReadinessResult:
        with self._locks.hold(record_id):
            now = self.clock()
            record = self._read(record_id, now)
            return self.readiness.validate(record, now)
