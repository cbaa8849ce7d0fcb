"""Tests for the compliance engine: atomic updates, record lifecycle and locking."""

from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from api.schemas.compliance import (
    BatchDescriptor,
    CertificationStatus,
    ChecklistStatus,
    ComplianceStatus,
    CostCategory,
    RiskLevel,
    RiskTrend,
)
from api.schemas.request import (
    ApproveDocument,
    CompleteChecklistItem,
    SubmitTestResult,
    TestResultInput as ResultInput,
    UpdateCertification,
)
from core.exceptions import (
    CatalogDataUnavailableError,
    InvalidTransitionError,
    RecordAlreadyExistsError,
    RecordNotFoundError,
    UnknownItemError,
)
from db.session import build_engine
from db.store import InMemoryComplianceStore, SqlComplianceStore
from services.compliance_engine import ComplianceEngine, LockRegistry

from conftest import START

CHECKLIST_IDS = ["CHK-REG_FS-R1", "CHK-REG_FS-R2", "CHK-CERT-CERT_A"]


@pytest.fixture
def sql_engine(catalog, settings, clock):
    store = SqlComplianceStore(build_engine("sqlite://"))
    return ComplianceEngine(store=store, catalog=catalog, settings=settings, clock=clock)


@pytest.fixture(params=["memory", "sql"])
def any_engine(request, engine, sql_engine):
    return engine if request.param == "memory" else sql_engine


class TestInitialize:

    def test_initialize_stores_a_pending_record(self, any_engine, batch):
        record = any_engine.initialize(batch, "xx", "BUYER-1")
        assert record.destination_country == "XX"
        assert record.compliance_status == ComplianceStatus.PENDING
        assert record.expires_at == START + timedelta(days=365)
        stored = any_engine.get_record(record.compliance_id)
        assert stored.compliance_id == record.compliance_id

    def test_live_duplicate_is_rejected(self, any_engine, batch):
        record = any_engine.initialize(batch, "XX", "BUYER-1")
        with pytest.raises(RecordAlreadyExistsError) as exc_info:
            any_engine.initialize(batch, "XX", "BUYER-1")
        assert exc_info.value.record_id == record.compliance_id
        # A different buyer is a different key
        any_engine.initialize(batch, "XX", "BUYER-2")

    def test_expired_duplicate_is_replaced(self, any_engine, batch, clock):
        old = any_engine.initialize(batch, "XX", "BUYER-1")
        clock.advance(days=365)
        new = any_engine.initialize(batch, "XX", "BUYER-1")
        assert new.compliance_id != old.compliance_id
        with pytest.raises(RecordNotFoundError):
            any_engine.get_record(old.compliance_id)

    def test_unknown_market_stores_nothing(self, any_engine, batch):
        with pytest.raises(CatalogDataUnavailableError):
            any_engine.initialize(batch, "ZZ", "BUYER-1")
        assert any_engine.list_records() == []


class TestApplyUpdate:

    def test_failing_command_leaves_record_unchanged(self, any_engine, batch):
        record = any_engine.initialize(batch, "XX", "BUYER-1")
        with pytest.raises(UnknownItemError):
            any_engine.apply_update(
                record.compliance_id,
                checklist_updates=[CompleteChecklistItem(item_id="CHK-REG_FS-R1")],
                document_approvals=[ApproveDocument(document_id="DOC_MISSING")],
            )
        stored = any_engine.get_record(record.compliance_id)
        assert stored.compliance_checklist[0].completion_status == ChecklistStatus.NOT_STARTED
        assert stored.compliance_score == 0

    def test_invalid_transition_leaves_record_unchanged(self, engine, batch):
        record = engine.initialize(batch, "XX", "BUYER-1")
        approve = UpdateCertification(
            certification_id="CERT_A", status=CertificationStatus.APPROVED, certificate_number="FS-1"
        )
        engine.apply_update(record.compliance_id, certification_updates=[approve])
        with pytest.raises(InvalidTransitionError):
            engine.apply_update(
                record.compliance_id,
                checklist_updates=[CompleteChecklistItem(item_id="CHK-REG_FS-R1")],
                certification_updates=[
                    UpdateCertification(certification_id="CERT_A", status=CertificationStatus.REJECTED)
                ],
            )
        stored = engine.get_record(record.compliance_id)
        assert stored.certification_requirements[0].status == CertificationStatus.APPROVED
        assert stored.compliance_checklist[0].completion_status == ChecklistStatus.NOT_STARTED
        assert stored.compliance_score == 30

    def test_unknown_record(self, engine):
        with pytest.raises(RecordNotFoundError):
            engine.apply_update("COMP-MISSING", checklist_updates=[CompleteChecklistItem(item_id="X")])
        with pytest.raises(RecordNotFoundError):
            engine.recompute_score("COMP-MISSING")

    def test_update_books_spend(self, engine, batch):
        record = engine.initialize(batch, "XX", "BUYER-1")
        record = engine.apply_update(
            record.compliance_id,
            certification_updates=[UpdateCertification(
                certification_id="CERT_A",
                status=CertificationStatus.APPROVED,
                certificate_number="FS-1",
                actual_cost=950,
            )],
        )
        assert record.cost_breakdown.total_actual_cost == 950
        assert record.cost_breakdown.actual_cost_categories[CostCategory.CERTIFICATION_FEES] == 950

    def test_expired_record_rejects_mutations(self, engine, batch, clock):
        record = engine.initialize(batch, "XX", "BUYER-1")
        clock.now = record.expires_at
        with pytest.raises(InvalidTransitionError):
            engine.apply_update(
                record.compliance_id, checklist_updates=[CompleteChecklistItem(item_id="CHK-REG_FS-R1")]
            )
        with pytest.raises(InvalidTransitionError):
            engine.record_spend(record.compliance_id, CostCategory.OTHER_COSTS, 10.0, "Courier")
        # Reads still work
        assert engine.get_record(record.compliance_id).compliance_id == record.compliance_id


class TestTimeDrivenChanges:

    def test_lapsed_certificate_is_expired_on_read(self, any_engine, batch, clock):
        record = any_engine.initialize(batch, "XX", "BUYER-1")
        record = any_engine.apply_update(
            record.compliance_id,
            certification_updates=[UpdateCertification(
                certification_id="CERT_A",
                status=CertificationStatus.APPROVED,
                certificate_number="FS-OLD",
                issue_date=START - timedelta(days=334),
            )],
        )
        assert record.compliance_score == 30

        clock.advance(days=40)
        record = any_engine.get_record(record.compliance_id)
        certification = record.certification_requirements[0]
        assert certification.status == CertificationStatus.EXPIRED
        assert certification.certificate_number is None
        assert record.compliance_score == 0
        # Written back, not only computed for the read
        assert any_engine.store.get(record.compliance_id).certification_requirements[0].status == (
            CertificationStatus.EXPIRED
        )

    def test_reassess_risk_tracks_trend(self, engine, batch):
        record = engine.initialize(batch, "XX", "BUYER-1")
        engine.apply_update(
            record.compliance_id,
            test_results=[SubmitTestResult(
                test_id="RESIDUE_T", result=ResultInput(parameter="Glyphosate", result_value=9.0)
            )],
        )
        assessment = engine.reassess_risk(record.compliance_id)
        assert assessment.overall_risk_level == RiskLevel.HIGH
        assert assessment.risk_trend == RiskTrend.WORSENING
        assert engine.get_record(record.compliance_id).risk_assessment == assessment


class TestSpendAndListing:

    def test_record_spend(self, any_engine, batch):
        record = any_engine.initialize(batch, "XX", "BUYER-1")
        entry = any_engine.record_spend(
            record.compliance_id, CostCategory.TESTING_COSTS, 260.0, "Residue screen", reference="INV-9"
        )
        assert entry.amount == 260
        cost = any_engine.get_record(record.compliance_id).cost_breakdown
        assert cost.total_actual_cost == 260
        assert cost.budget_variance == 260 - 1760

    def test_list_records(self, any_engine, clock):
        first = any_engine.initialize(BatchDescriptor(batch_id="B-1", crop_type="coffee"), "XX", "BUYER-1")
        clock.advance(hours=1)
        second = any_engine.initialize(BatchDescriptor(batch_id="B-2", crop_type="coffee"), "YY", "BUYER-1")
        assert [r.compliance_id for r in any_engine.list_records()] == [
            first.compliance_id, second.compliance_id,
        ]


def _certification_updates(**kwargs):
    return [UpdateCertification(
        certification_id="CERT_A", status=CertificationStatus.APPROVED, certificate_number="FS-2025-001", **kwargs
    )]


def _full_commands():
    return {
        "checklist_updates": [CompleteChecklistItem(item_id=item_id) for item_id in CHECKLIST_IDS],
        "certification_updates": _certification_updates(),
        "test_results": [
            SubmitTestResult(test_id="RESIDUE_T", result=ResultInput(parameter="Glyphosate", result_value=1.2)),
            SubmitTestResult(test_id="RESIDUE_T", result=ResultInput(parameter="CPF", result_value=0.02)),
        ],
        "document_approvals": [ApproveDocument(document_id="DOC_A")],
    }


def _ledger_sizes(record):
    return (
        len(record.compliance_checklist),
        len(record.certification_requirements),
        len(record.testing_requirements),
        len(record.documentation_requirements),
    )


class TestUpdateProperties:

    def test_ledger_sizes_never_change(self, any_engine, batch):
        record = any_engine.initialize(batch, "XX", "BUYER-1")
        sizes = _ledger_sizes(record)
        record = any_engine.apply_update(record.compliance_id, **_full_commands())
        assert _ledger_sizes(record) == sizes
        record = any_engine.recompute_score(record.compliance_id)
        assert _ledger_sizes(any_engine.get_record(record.compliance_id)) == sizes

    def test_result_is_independent_of_update_order(self, engine, catalog, settings, clock, batch):
        one_call = engine.apply_update(engine.initialize(batch, "XX", "BUYER-1").compliance_id, **_full_commands())

        other = ComplianceEngine(store=InMemoryComplianceStore(), catalog=catalog, settings=settings, clock=clock)
        record_id = other.initialize(batch, "XX", "BUYER-1").compliance_id
        commands = _full_commands()
        other.apply_update(record_id, document_approvals=commands["document_approvals"])
        other.apply_update(record_id, test_results=list(reversed(commands["test_results"])))
        for item in reversed(commands["checklist_updates"]):
            other.apply_update(record_id, checklist_updates=[item])
        split = other.apply_update(record_id, certification_updates=commands["certification_updates"])

        # CPF 0.02 exceeds its 0.01 limit, so the test fails in both orders
        assert split.compliance_score == one_call.compliance_score == 80
        assert split.compliance_status == one_call.compliance_status == ComplianceStatus.CONDITIONAL
        assert split.score_breakdown == one_call.score_breakdown

    def test_reapplying_an_approval_is_idempotent(self, any_engine, batch, clock):
        record_id = any_engine.initialize(batch, "XX", "BUYER-1").compliance_id
        first = any_engine.apply_update(record_id, certification_updates=_certification_updates(actual_cost=950))

        clock.advance(days=5)
        again = any_engine.apply_update(record_id, certification_updates=_certification_updates(actual_cost=950))

        assert again.certification_requirements[0].issue_date == first.certification_requirements[0].issue_date
        assert again.certification_requirements[0].expiry_date == first.certification_requirements[0].expiry_date
        assert again.cost_breakdown.total_actual_cost == 950
        assert len(again.cost_breakdown.spend_entries) == 1
        assert again.compliance_score == first.compliance_score


class TestConcurrency:

    def test_lock_registry_drops_idle_keys(self):
        registry = LockRegistry()
        with registry.hold("COMP-1"):
            assert "COMP-1" in registry
            with registry.hold("COMP-2"):
                assert len(registry) == 2
        assert len(registry) == 0

    def test_lookups_of_unknown_ids_leave_no_locks(self, engine, batch):
        record = engine.initialize(batch, "XX", "BUYER-1")
        for index in range(50):
            with pytest.raises(RecordNotFoundError):
                engine.get_record(f"COMP-NOPE-{index}")
            with pytest.raises(RecordNotFoundError):
                engine.generate_report(f"COMP-NOPE-{index}")
        engine.get_record(record.compliance_id)
        assert len(engine._locks) == 0

    def test_concurrent_updates_are_all_applied(self, engine, batch):
        record = engine.initialize(batch, "XX", "BUYER-1")
        record_id = record.compliance_id

        def complete(item_id):
            return engine.apply_update(record_id, checklist_updates=[CompleteChecklistItem(item_id=item_id)])

        def spend(index):
            return engine.record_spend(record_id, CostCategory.OTHER_COSTS, 10.0, f"Courier {index}")

        with ThreadPoolExecutor(max_workers=8) as pool:
            futures = [pool.submit(complete, item_id) for item_id in CHECKLIST_IDS]
            futures += [pool.submit(spend, i) for i in range(20)]
            for future in futures:
                future.result()

        stored = engine.get_record(record_id)
        assert all(i.completion_status == ChecklistStatus.COMPLETED for i in stored.compliance_checklist)
        assert stored.compliance_score == 40
        assert len(stored.cost_breakdown.spend_entries) == 20
        assert stored.cost_breakdown.total_actual_cost == pytest.approx(200)
