# WORKFLOW: End-to-end readiness scenarios through the compliance engine.
# Used by: CI/CD pipelines, development testing
# Test scenarios:
# 1. Fresh record with a rejection history -> non_compliant, four critical issues
# 2. Critical residue exceedance -> in_progress, not ready
# 3. Every ledger satisfied -> compliant, ready, authorization issued
# 4. Record past its validity window -> report void, readiness blocked
#
# Testing flow: Initialize record -> Apply updates -> Score -> Readiness gate / report

from api.schemas.compliance import (
    BatchDescriptor,
    CertificationStatus,
    ComplianceStatus,
    RiskLevel,
)
from api.schemas.request import (
    ApproveDocument,
    CompleteChecklistItem,
    SubmitTestResult,
    TestResultInput as ResultInput,
    UpdateCertification,
)
from services.readiness import STANDARD_CONDITION

CHECKLIST_IDS = ["CHK-REG_FS-R1", "CHK-REG_FS-R2", "CHK-CERT-CERT_A"]


def _complete_checklist():
    return [CompleteChecklistItem(item_id=item_id) for item_id in CHECKLIST_IDS]


def _approve_cert():
    return [UpdateCertification(
        certification_id="CERT_A", status=CertificationStatus.APPROVED, certificate_number="FS-2025-001"
    )]


def _results(glyphosate: float, chlorpyrifos: float = 0.002):
    return [
        SubmitTestResult(test_id="RESIDUE_T", result=ResultInput(parameter="Glyphosate", result_value=glyphosate)),
        SubmitTestResult(test_id="RESIDUE_T", result=ResultInput(parameter="CPF", result_value=chlorpyrifos)),
    ]


class TestFreshRecordWithRejections:
    """Nothing done yet and a supply chain with five prior rejections."""

    def setup_method(self):
        self.batch = BatchDescriptor(batch_id="BATCH-REJ", crop_type="coffee", previous_rejections=5)

    def test_recomputed_score_is_non_compliant(self, engine):
        record = engine.initialize(self.batch, "XX", "BUYER-1")
        assert record.compliance_status == ComplianceStatus.PENDING
        assert record.compliance_score == 0

        record = engine.recompute_score(record.compliance_id)
        assert record.compliance_score == 0
        assert record.compliance_status == ComplianceStatus.NON_COMPLIANT

    def test_readiness_lists_every_blocking_ledger(self, engine):
        record = engine.initialize(self.batch, "XX", "BUYER-1")
        assert record.risk_assessment.overall_risk_level == RiskLevel.CRITICAL

        result = engine.validate_export_readiness(record.compliance_id)

        assert result.ready is False
        assert result.score == 0
        assert len(result.critical_issues) == 4
        assert result.authorization is None
        assert len(result.warnings) == 1
        assert "Obtain approval for certification CERT_A" in result.required_actions
        assert "Pass test RESIDUE_T" in result.required_actions
        assert "Approve document DOC_A" in result.required_actions
        for item_id in CHECKLIST_IDS:
            assert f"Complete checklist item {item_id}" in result.required_actions


class TestCriticalResidueFailure:

    def test_score_and_gate(self, engine, batch):
        record = engine.initialize(batch, "XX", "BUYER-1")
        record = engine.apply_update(
            record.compliance_id,
            checklist_updates=_complete_checklist(),
            certification_updates=_approve_cert(),
            test_results=_results(glyphosate=7.5)[:1],
        )

        assert record.compliance_score == 70
        assert record.compliance_status == ComplianceStatus.IN_PROGRESS
        assert record.testing_requirements[0].status.value == "failed"

        result = engine.validate_export_readiness(record.compliance_id)
        assert result.ready is False
        assert result.score == 30 + 15 + 10
        assert any("RESIDUE_T" in issue for issue in result.critical_issues)

    def test_report_recommends_retest(self, engine, batch):
        record = engine.initialize(batch, "XX", "BUYER-1")
        engine.apply_update(record.compliance_id, test_results=_results(glyphosate=7.5)[:1])

        report = engine.generate_report(record.compliance_id)
        assert any("Glyphosate" in r and "retest" in r for r in report.recommendations)
        assert report.detailed_status.testing.completed == 0


class TestFullyCompliantBatch:

    def test_ready_with_authorization(self, engine, batch, clock):
        record = engine.initialize(batch, "XX", "BUYER-1")
        clock.advance(days=3)
        record = engine.apply_update(
            record.compliance_id,
            checklist_updates=_complete_checklist(),
            certification_updates=_approve_cert(),
            test_results=_results(glyphosate=1.2),
            document_approvals=[ApproveDocument(document_id="DOC_A")],
        )
        assert record.compliance_score == 100
        assert record.compliance_status == ComplianceStatus.COMPLIANT

        result = engine.validate_export_readiness(record.compliance_id)
        assert result.ready is True
        assert result.score == 100
        assert result.critical_issues == []
        assert result.required_actions == []
        authorization = result.authorization
        assert authorization.authorization_number.startswith("AUTH-")
        assert authorization.issued_date == clock.now
        assert (authorization.valid_until - authorization.issued_date).days == 180
        assert authorization.batch_id == "BATCH-001"
        assert authorization.conditions == [STANDARD_CONDITION]

    def test_report_for_compliant_record(self, engine, batch):
        record = engine.initialize(batch, "XX", "BUYER-1")
        engine.apply_update(
            record.compliance_id,
            checklist_updates=_complete_checklist(),
            certification_updates=_approve_cert(),
            test_results=_results(glyphosate=1.2),
            document_approvals=[ApproveDocument(document_id="DOC_A")],
        )
        report = engine.generate_report(record.compliance_id)

        assert report.executive_summary.effective_status == ComplianceStatus.COMPLIANT
        assert report.next_steps == ["Request export readiness validation"]
        assert report.timeline_status.current_phase == "Completed"
        assert report.executive_summary.completion_percentage == 100


class TestExpiredRecord:

    def test_report_is_void_and_gate_blocked(self, engine, batch, clock):
        record = engine.initialize(batch, "XX", "BUYER-1")
        clock.now = record.expires_at

        report = engine.generate_report(record.compliance_id)
        assert report.executive_summary.expired is True
        assert report.executive_summary.effective_status == "void"
        assert report.next_steps == ["Initialize a new compliance record for this batch"]
        assert report.recommendations[0].startswith("Record has expired")

        result = engine.validate_export_readiness(record.compliance_id)
        assert result.ready is False
        assert any("expired" in issue for issue in result.critical_issues)

    def test_expired_record_blocks_even_a_full_gate(self, engine, batch, clock):
        record = engine.initialize(batch, "XX", "BUYER-1")
        engine.apply_update(
            record.compliance_id,
            checklist_updates=_complete_checklist(),
            certification_updates=_approve_cert(),
            test_results=_results(glyphosate=1.2),
            document_approvals=[ApproveDocument(document_id="DOC_A")],
        )
        clock.advance(days=366)

        result = engine.validate_export_readiness(record.compliance_id)
        assert result.ready is False
        assert result.authorization is None
