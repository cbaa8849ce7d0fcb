"""Tests for the weighted compliance scorer and the score -> status mapping."""

import pytest

from api.schemas.compliance import (
    BatchDescriptor,
    CertificationStatus,
    ChecklistStatus,
    ComplianceStatus,
    DocumentStatus,
    TestingStatus as LabTestStatus,
)
from core.config import Settings
from services.record_builder import ComplianceRecordBuilder
from services.scorer import ComplianceScorer, ledger_counts, round_half_up, status_for_score

from conftest import START


@pytest.fixture
def record(catalog, settings, batch):
    return ComplianceRecordBuilder(catalog, settings).build(batch, "XX", "BUYER-1", None, START)


@pytest.fixture
def empty_record(catalog, settings):
    batch = BatchDescriptor(batch_id="BATCH-EMPTY", crop_type="coffee")
    return ComplianceRecordBuilder(catalog, settings).build(batch, "YY", "BUYER-1", None, START)


@pytest.mark.parametrize("score,expected", [
    (100, ComplianceStatus.COMPLIANT),
    (95, ComplianceStatus.COMPLIANT),
    (94, ComplianceStatus.CONDITIONAL),
    (80, ComplianceStatus.CONDITIONAL),
    (79, ComplianceStatus.IN_PROGRESS),
    (50, ComplianceStatus.IN_PROGRESS),
    (49, ComplianceStatus.NON_COMPLIANT),
    (0, ComplianceStatus.NON_COMPLIANT),
])
def test_status_buckets(score, expected):
    assert status_for_score(score) == expected


def test_round_half_up():
    assert round_half_up(0.5) == 1
    assert round_half_up(2.5) == 3
    assert round_half_up(26.49) == 26


def test_partial_ledgers(record, settings):
    record.compliance_checklist[0].completion_status = ChecklistStatus.COMPLETED
    record.compliance_checklist[1].completion_status = ChecklistStatus.VERIFIED
    record.documentation_requirements[0].status = DocumentStatus.APPROVED

    score, breakdown = ComplianceScorer(settings).compute(record)

    # 2/3 of 40 + 10
    assert score == 37
    assert breakdown.checklist == pytest.approx(80 / 3)
    assert breakdown.documentation == 10
    assert breakdown.empty_ledgers == []


def test_failed_items_do_not_count(record):
    record.compliance_checklist[0].completion_status = ChecklistStatus.FAILED
    record.certification_requirements[0].status = CertificationStatus.EXPIRED
    counts = ledger_counts(record)
    assert counts["checklist"] == (0, 3)
    assert counts["certifications"] == (0, 1)


def test_apply_sets_status(record, settings):
    for item in record.compliance_checklist:
        item.completion_status = ChecklistStatus.COMPLETED
    record.certification_requirements[0].status = CertificationStatus.APPROVED

    ComplianceScorer(settings).apply(record)
    assert record.compliance_score == 70
    assert record.compliance_status == ComplianceStatus.IN_PROGRESS
    assert record.score_breakdown.certifications == 30


class TestEmptyLedgers:

    def test_empty_ledgers_score_zero_by_default(self, empty_record, settings):
        score, breakdown = ComplianceScorer(settings).compute(empty_record)
        assert score == 0
        assert breakdown.empty_ledgers == ["checklist", "certifications", "testing", "documentation"]

    def test_full_credit_flag(self, empty_record):
        scorer = ComplianceScorer(Settings(empty_ledger_full_credit=True))
        scorer.apply(empty_record)
        assert empty_record.compliance_score == 100
        assert empty_record.compliance_status == ComplianceStatus.COMPLIANT


def test_custom_weights(record):
    settings = Settings(score_weights={"checklist": 25, "certifications": 25, "testing": 25, "documentation": 25})
    record.testing_requirements[0].status = LabTestStatus.COMPLETED
    record.testing_requirements[0].compliance_met = True
    score, _ = ComplianceScorer(settings).compute(record)
    assert score == 25


def test_weights_must_sum_to_100():
    with pytest.raises(ValueError):
        Settings(score_weights={"checklist": 50, "certifications": 30, "testing": 20, "documentation": 10})
