# WORKFLOW: Unit tests for the per-ledger trackers.
# Used by: CI/CD pipelines, development testing
# Test scenarios:
# 1. Checklist transitions, verifier rules and rework of failed items
# 2. Certification approval, expiry and renewal
# 3. Test scheduling, result validation and status resolution
# 4. Document review flow and third-party verification gate
#
# Testing flow: Build record -> Apply command through TrackerSet -> Assert item state

from datetime import timedelta

import pytest

from api.schemas.compliance import (
    CertificationStatus,
    ChecklistStatus,
    CostCategory,
    DocumentStatus,
    ExportRequirements,
    TestingStatus as LabTestStatus,
    VerificationStatus,
)
from api.schemas.request import (
    ApproveDocument,
    CompleteChecklistItem,
    ScheduleTest,
    SubmitTestResult,
    TestResultInput as ResultInput,
    UpdateCertification,
)
from core.exceptions import InvalidTransitionError, UnknownItemError
from services import trackers
from services.record_builder import ComplianceRecordBuilder

from conftest import START


@pytest.fixture
def record(catalog, settings, batch):
    builder = ComplianceRecordBuilder(catalog, settings)
    return builder.build(batch, "XX", "BUYER-1", ExportRequirements(additional_documents=["DOC_V"]), START)


@pytest.fixture
def tracker_set():
    return trackers.TrackerSet()


def _item(record, item_id):
    return next(i for i in record.compliance_checklist if i.item_id == item_id)


def _cert(record, certification_id="CERT_A"):
    return next(c for c in record.certification_requirements if c.certification_id == certification_id)


def _test(record):
    return record.testing_requirements[0]


def _doc(record, document_id):
    return next(d for d in record.documentation_requirements if d.document_id == document_id)


def _result(parameter, value, **kwargs):
    return SubmitTestResult(test_id="RESIDUE_T", result=ResultInput(parameter=parameter, result_value=value, **kwargs))


class TestChecklistTracker:

    def test_complete_then_verify(self, record, tracker_set):
        tracker_set.apply(record, CompleteChecklistItem(item_id="CHK-REG_FS-R1"), START)
        item = _item(record, "CHK-REG_FS-R1")
        assert item.completion_status == ChecklistStatus.COMPLETED
        assert item.completion_date == START

        later = START + timedelta(days=1)
        tracker_set.apply(
            record,
            CompleteChecklistItem(item_id="CHK-REG_FS-R1", status=ChecklistStatus.VERIFIED, verified_by="QA Lead"),
            later,
        )
        assert item.completion_status == ChecklistStatus.VERIFIED
        assert item.verification_by == "QA Lead"
        assert item.verification_date == later
        assert item.completion_date == START

    def test_verifier_must_differ_from_assignee(self, record, tracker_set):
        tracker_set.apply(record, CompleteChecklistItem(item_id="CHK-REG_FS-R1"), START)
        with pytest.raises(InvalidTransitionError):
            tracker_set.apply(
                record,
                CompleteChecklistItem(
                    item_id="CHK-REG_FS-R1", status=ChecklistStatus.VERIFIED, verified_by="Compliance Team"
                ),
                START,
            )

    def test_verifier_comparison_ignores_case(self, record, tracker_set):
        tracker_set.apply(record, CompleteChecklistItem(item_id="CHK-REG_FS-R1"), START)
        with pytest.raises(InvalidTransitionError):
            tracker_set.apply(
                record,
                CompleteChecklistItem(
                    item_id="CHK-REG_FS-R1", status=ChecklistStatus.VERIFIED, verified_by=" compliance team"
                ),
                START,
            )
        assert _item(record, "CHK-REG_FS-R1").completion_status == ChecklistStatus.COMPLETED

    def test_verification_needs_verifier(self, record, tracker_set):
        tracker_set.apply(record, CompleteChecklistItem(item_id="CHK-REG_FS-R1"), START)
        with pytest.raises(InvalidTransitionError):
            tracker_set.apply(
                record, CompleteChecklistItem(item_id="CHK-REG_FS-R1", status=ChecklistStatus.VERIFIED), START
            )

    def test_no_backward_moves(self, record, tracker_set):
        tracker_set.apply(record, CompleteChecklistItem(item_id="CHK-REG_FS-R2"), START)
        with pytest.raises(InvalidTransitionError):
            tracker_set.apply(
                record, CompleteChecklistItem(item_id="CHK-REG_FS-R2", status=ChecklistStatus.IN_PROGRESS), START
            )

    def test_failed_item_can_be_reworked(self, record, tracker_set):
        item_id = "CHK-CERT-CERT_A"
        tracker_set.apply(record, CompleteChecklistItem(item_id=item_id, status=ChecklistStatus.FAILED), START)
        tracker_set.apply(record, CompleteChecklistItem(item_id=item_id, status=ChecklistStatus.IN_PROGRESS), START)
        tracker_set.apply(record, CompleteChecklistItem(item_id=item_id), START)
        assert _item(record, item_id).completion_status == ChecklistStatus.COMPLETED

    def test_repeat_is_a_no_op(self, record, tracker_set):
        tracker_set.apply(record, CompleteChecklistItem(item_id="CHK-REG_FS-R1"), START)
        snapshot = record.model_copy(deep=True)
        events = tracker_set.apply(
            record, CompleteChecklistItem(item_id="CHK-REG_FS-R1"), START + timedelta(days=2)
        )
        assert events == []
        assert record == snapshot

    def test_unknown_item(self, record, tracker_set):
        with pytest.raises(UnknownItemError) as exc_info:
            tracker_set.apply(record, CompleteChecklistItem(item_id="CHK-NOPE"), START)
        assert exc_info.value.item_id == "CHK-NOPE"


class TestCertificationTracker:

    def test_approval_sets_expiry_by_calendar_months(self, record, tracker_set):
        tracker_set.apply(
            record,
            UpdateCertification(certification_id="CERT_A", status=CertificationStatus.APPROVED, certificate_number="N-1"),
            START,
        )
        certification = _cert(record)
        assert certification.status == CertificationStatus.APPROVED
        assert certification.issue_date == START
        assert certification.expiry_date == START.replace(year=START.year + 1)

    def test_approval_requires_certificate_number(self, record, tracker_set):
        with pytest.raises(InvalidTransitionError):
            tracker_set.apply(
                record, UpdateCertification(certification_id="CERT_A", status=CertificationStatus.APPROVED), START
            )
        assert _cert(record).status == CertificationStatus.NOT_STARTED

    def test_already_lapsed_certificate_is_rejected(self, record, tracker_set):
        with pytest.raises(InvalidTransitionError):
            tracker_set.apply(
                record,
                UpdateCertification(
                    certification_id="CERT_A",
                    status=CertificationStatus.APPROVED,
                    certificate_number="OLD-1",
                    issue_date=START - timedelta(days=800),
                ),
                START,
            )

    def test_reapproval_with_other_number_conflicts(self, record, tracker_set):
        approve = UpdateCertification(
            certification_id="CERT_A", status=CertificationStatus.APPROVED, certificate_number="N-1"
        )
        tracker_set.apply(record, approve, START)
        assert tracker_set.apply(record, approve, START) == []
        with pytest.raises(InvalidTransitionError):
            tracker_set.apply(
                record,
                UpdateCertification(certification_id="CERT_A", status=CertificationStatus.APPROVED, certificate_number="N-2"),
                START,
            )

    def test_rejected_cannot_jump_to_approved(self, record, tracker_set):
        tracker_set.apply(record, UpdateCertification(certification_id="CERT_A", status=CertificationStatus.APPLIED), START)
        tracker_set.apply(record, UpdateCertification(certification_id="CERT_A", status=CertificationStatus.REJECTED), START)
        with pytest.raises(InvalidTransitionError):
            tracker_set.apply(
                record,
                UpdateCertification(certification_id="CERT_A", status=CertificationStatus.APPROVED, certificate_number="N-1"),
                START,
            )

    def test_lapsed_certificates_expire_and_can_be_renewed(self, record, tracker_set):
        tracker_set.apply(
            record,
            UpdateCertification(certification_id="CERT_A", status=CertificationStatus.APPROVED, certificate_number="N-1"),
            START,
        )
        later = START + timedelta(days=400)
        assert trackers.expire_lapsed_certifications(record, later) == ["CERT_A"]
        certification = _cert(record)
        assert certification.status == CertificationStatus.EXPIRED
        assert certification.certificate_number is None
        assert certification.renewal_date == later
        assert trackers.expire_lapsed_certifications(record, later) == []

        tracker_set.apply(record, UpdateCertification(certification_id="CERT_A", status=CertificationStatus.APPLIED), later)
        assert certification.status == CertificationStatus.APPLIED

    def test_fee_is_reported_as_spend(self, record, tracker_set):
        events = tracker_set.apply(
            record,
            UpdateCertification(certification_id="CERT_A", status=CertificationStatus.APPLIED, actual_cost=450.0),
            START,
        )
        assert len(events) == 1
        assert events[0].category == CostCategory.CERTIFICATION_FEES
        assert events[0].amount == 450.0

    def test_add_months_clamps_to_month_end(self):
        moment = START.replace(month=1, day=31)
        assert trackers.add_months(moment, 1).day == 28
        assert trackers.add_months(moment, 13).month == 2


class TestTestingTracker:

    def test_results_resolve_status(self, record, tracker_set):
        tracker_set.apply(record, _result("Glyphosate", 1.0), START)
        requirement = _test(record)
        assert requirement.status == LabTestStatus.TESTING
        assert requirement.compliance_met is False

        tracker_set.apply(record, _result("cpf", 0.005), START)
        assert requirement.status == LabTestStatus.COMPLETED
        assert requirement.compliance_met is True
        assert {r.parameter for r in requirement.results} == {"Glyphosate", "Chlorpyrifos"}

    def test_critical_exceedance_fails_immediately(self, record, tracker_set):
        tracker_set.apply(record, _result("GLY", 9.0), START)
        requirement = _test(record)
        assert requirement.status == LabTestStatus.FAILED
        assert requirement.results[0].retest_required is True

    def test_non_critical_exceedance_fails_once_all_reported(self, record, tracker_set):
        tracker_set.apply(record, _result("Chlorpyrifos", 0.5), START)
        assert _test(record).status == LabTestStatus.TESTING
        tracker_set.apply(record, _result("Glyphosate", 0.1), START)
        assert _test(record).status == LabTestStatus.FAILED

    def test_unknown_parameter(self, record, tracker_set):
        with pytest.raises(UnknownItemError):
            tracker_set.apply(record, _result("Lead", 0.1), START)

    def test_unit_mismatch(self, record, tracker_set):
        with pytest.raises(InvalidTransitionError):
            tracker_set.apply(record, _result("Glyphosate", 1.0, unit="ppb"), START)

    def test_resubmitting_same_result_is_a_no_op(self, record, tracker_set):
        tracker_set.apply(record, _result("Glyphosate", 1.0), START)
        snapshot = record.model_copy(deep=True)
        assert tracker_set.apply(record, _result("Glyphosate", 1.0), START + timedelta(hours=1)) == []
        assert record == snapshot

    def test_schedule_moves_forward_only(self, record, tracker_set):
        tracker_set.apply(record, ScheduleTest(test_id="RESIDUE_T", lab_id="LAB_X2", sample_id="S-1"), START)
        requirement = _test(record)
        assert requirement.status == LabTestStatus.SCHEDULED
        assert requirement.lab_id == "LAB_X2"

        tracker_set.apply(record, ScheduleTest(test_id="RESIDUE_T", status=LabTestStatus.SAMPLING), START)
        with pytest.raises(InvalidTransitionError):
            tracker_set.apply(record, ScheduleTest(test_id="RESIDUE_T", status=LabTestStatus.SCHEDULED), START)

    def test_unknown_lab(self, record, tracker_set):
        with pytest.raises(UnknownItemError):
            tracker_set.apply(record, ScheduleTest(test_id="RESIDUE_T", lab_id="LAB_ELSEWHERE"), START)

    def test_retest_after_failure_clears_results(self, record, tracker_set):
        tracker_set.apply(record, _result("Glyphosate", 9.0), START)
        tracker_set.apply(record, ScheduleTest(test_id="RESIDUE_T", sample_id="S-2"), START)
        requirement = _test(record)
        assert requirement.status == LabTestStatus.SCHEDULED
        assert requirement.results == []
        assert requirement.sample_id == "S-2"


class TestDocumentationTracker:

    def test_review_flow(self, record, tracker_set):
        for status in (DocumentStatus.DRAFT, DocumentStatus.SUBMITTED, DocumentStatus.UNDER_REVIEW):
            tracker_set.apply(record, ApproveDocument(document_id="DOC_A", status=status), START)
        tracker_set.apply(record, ApproveDocument(document_id="DOC_A"), START)
        assert _doc(record, "DOC_A").status == DocumentStatus.APPROVED

        with pytest.raises(InvalidTransitionError):
            tracker_set.apply(record, ApproveDocument(document_id="DOC_A", status=DocumentStatus.DRAFT), START)

    def test_verification_gate(self, record, tracker_set):
        with pytest.raises(InvalidTransitionError):
            tracker_set.apply(record, ApproveDocument(document_id="DOC_V"), START)
        assert _doc(record, "DOC_V").status == DocumentStatus.NOT_STARTED

        tracker_set.apply(
            record,
            ApproveDocument(
                document_id="DOC_V", verification_status=VerificationStatus.VERIFIED, verified_by="Plant Health Office"
            ),
            START,
        )
        document = _doc(record, "DOC_V")
        assert document.status == DocumentStatus.APPROVED
        assert document.verified_by == "Plant Health Office"

    def test_verification_is_only_recorded_with_approval(self, record, tracker_set):
        with pytest.raises(InvalidTransitionError):
            tracker_set.apply(
                record,
                ApproveDocument(
                    document_id="DOC_V", status=DocumentStatus.SUBMITTED, verification_status=VerificationStatus.VERIFIED
                ),
                START,
            )
        document = _doc(record, "DOC_V")
        assert document.status == DocumentStatus.NOT_STARTED
        assert document.verification_status is None

    def test_moving_back_resets_verification(self, record, tracker_set):
        tracker_set.apply(record, ApproveDocument(document_id="DOC_V", status=DocumentStatus.SUBMITTED), START)
        tracker_set.apply(
            record,
            ApproveDocument(
                document_id="DOC_V",
                status=DocumentStatus.UNDER_REVIEW,
                verification_status=VerificationStatus.REJECTED,
                verified_by="Plant Health Office",
            ),
            START,
        )
        tracker_set.apply(record, ApproveDocument(document_id="DOC_V", status=DocumentStatus.REJECTED), START)
        document = _doc(record, "DOC_V")
        assert document.verification_status == VerificationStatus.PENDING
        assert document.verified_by is None

        tracker_set.apply(record, ApproveDocument(document_id="DOC_V", status=DocumentStatus.SUBMITTED), START)
        with pytest.raises(InvalidTransitionError):
            tracker_set.apply(record, ApproveDocument(document_id="DOC_V"), START)
        tracker_set.apply(
            record, ApproveDocument(document_id="DOC_V", verification_status=VerificationStatus.VERIFIED), START
        )
        assert document.status == DocumentStatus.APPROVED
        assert document.verification_status == VerificationStatus.VERIFIED

    def test_approved_verification_is_final(self, record, tracker_set):
        tracker_set.apply(
            record, ApproveDocument(document_id="DOC_V", verification_status=VerificationStatus.VERIFIED), START
        )
        with pytest.raises(InvalidTransitionError):
            tracker_set.apply(
                record, ApproveDocument(document_id="DOC_V", verification_status=VerificationStatus.REJECTED), START
            )
        # Repeating the approval is a no-op
        assert tracker_set.apply(record, ApproveDocument(document_id="DOC_V"), START) == []
        assert _doc(record, "DOC_V").verification_status == VerificationStatus.VERIFIED

    def test_verified_only_when_approved(self, record, tracker_set):
        steps = [
            ApproveDocument(document_id="DOC_V", status=DocumentStatus.DRAFT),
            ApproveDocument(document_id="DOC_V", status=DocumentStatus.SUBMITTED),
            ApproveDocument(document_id="DOC_V", status=DocumentStatus.REJECTED),
            ApproveDocument(document_id="DOC_V", status=DocumentStatus.SUBMITTED),
            ApproveDocument(document_id="DOC_V", status=DocumentStatus.UNDER_REVIEW),
            ApproveDocument(document_id="DOC_V", verification_status=VerificationStatus.VERIFIED),
        ]
        for step in steps:
            tracker_set.apply(record, step, START)
            for document in record.documentation_requirements:
                if document.verification_status == VerificationStatus.VERIFIED:
                    assert document.status == DocumentStatus.APPROVED

    def test_rejected_document_returns_to_draft(self, record, tracker_set):
        tracker_set.apply(record, ApproveDocument(document_id="DOC_A", status=DocumentStatus.SUBMITTED), START)
        tracker_set.apply(record, ApproveDocument(document_id="DOC_A", status=DocumentStatus.REJECTED), START)
        tracker_set.apply(record, ApproveDocument(document_id="DOC_A", status=DocumentStatus.DRAFT), START)
        assert _doc(record, "DOC_A").status == DocumentStatus.DRAFT

    def test_unknown_document(self, record, tracker_set):
        with pytest.raises(UnknownItemError):
            tracker_set.apply(record, ApproveDocument(document_id="DOC_MISSING"), START)
