# WORKFLOW: Compliance scoring and the score -> status state machine.
# Used by: Compliance engine (after every update), timeline scheduler, report generator
# Functions:
# 1. ledger_counts() - (completed, total) per sub-ledger
# 2. status_for_score() - Total mapping of an integer score to a ComplianceStatus
# 3. ComplianceScorer.compute() - Weighted score with per-ledger breakdown
# 4. ComplianceScorer.apply() - Write score, breakdown and status onto a record
#
# Score flow: Sub-ledger states -> completion ratios -> weighted points -> round half up
# -> status bucket. The result depends only on sub-ledger states, never on update order.

from math import floor
from typing import Dict, Tuple
import logging

from api.schemas.compliance import (
    CertificationStatus,
    ChecklistStatus,
    ComplianceRecord,
    ComplianceStatus,
    DocumentStatus,
    ScoreBreakdown,
    TestingStatus,
)
from core.config import Settings

logger = logging.getLogger(__name__)

LEDGERS = ("checklist", "certifications", "testing", "documentation")

_CHECKLIST_DONE = {ChecklistStatus.COMPLETED, ChecklistStatus.VERIFIED}


def checklist_item_done(status: ChecklistStatus) -> bool:
    return status in _CHECKLIST_DONE


def ledger_counts(record: ComplianceRecord) -> Dict[str, Tuple[int, int]]:
    """
    Count satisfied items per sub-ledger.

    A checklist item counts once completed or verified, a certification once approved,
    a test once completed with every parameter compliant, and a document once approved.

    Args:
        record: Compliance record

    Returns:
        Mapping of ledger name to (completed, total)
    """
    checklist = record.compliance_checklist
    certifications = record.certification_requirements
    tests = record.testing_requirements
    documents = record.documentation_requirements
    return {
        "checklist": (
            sum(1 for item in checklist if checklist_item_done(item.completion_status)),
            len(checklist),
        ),
        "certifications": (
            sum(1 for c in certifications if c.status == CertificationStatus.APPROVED),
            len(certifications),
        ),
        "testing": (
            sum(1 for t in tests if t.status == TestingStatus.COMPLETED and t.compliance_met),
            len(tests),
        ),
        "documentation": (
            sum(1 for d in documents if d.status == DocumentStatus.APPROVED),
            len(documents),
        ),
    }


def round_half_up(value: float) -> int:
    return int(floor(value + 0.5))


def status_for_score(score: int) -> ComplianceStatus:
    """Map a score to its status bucket. Defined for every integer."""
    if score >= 95:
        return ComplianceStatus.COMPLIANT
    if score >= 80:
        return ComplianceStatus.CONDITIONAL
    if score >= 50:
        return ComplianceStatus.IN_PROGRESS
    return ComplianceStatus.NON_COMPLIANT


class ComplianceScorer:
    """Weighted scorer over the four sub-ledgers."""

    def __init__(self, settings: Settings):
        self.weights = dict(settings.score_weights)
        self.empty_ledger_full_credit = settings.empty_ledger_full_credit

    def compute(self, record: ComplianceRecord) -> Tuple[int, ScoreBreakdown]:
        """
        Compute the compliance score for a record.

        Empty ledgers contribute 0 points unless full credit is enabled in settings;
        either way they are listed in the breakdown so reports can surface them.

        Args:
            record: Compliance record

        Returns:
            Tuple of (integer score in [0, 100], per-ledger breakdown)
        """
        counts = ledger_counts(record)
        points: Dict[str, float] = {}
        empty = []
        for ledger in LEDGERS:
            completed, total = counts[ledger]
            weight = self.weights[ledger]
            if total == 0:
                empty.append(ledger)
                points[ledger] = float(weight) if self.empty_ledger_full_credit else 0.0
            else:
                points[ledger] = completed / total * weight

        score = round_half_up(sum(points.values()))
        breakdown = ScoreBreakdown(empty_ledgers=empty, **points)
        return score, breakdown

    def apply(self, record: ComplianceRecord) -> ComplianceRecord:
        """Recompute score, breakdown and status in place."""
        score, breakdown = self.compute(record)
        status = status_for_score(score)
        if score != record.compliance_score or status != record.compliance_status:
            logger.info(
                f"Record {record.compliance_id}: score {record.compliance_score} -> {score}, "
                f"status {record.compliance_status.value} -> {status.value}"
            )
        record.compliance_score = score
        record.compliance_status = status
        record.score_breakdown = breakdown
        return record
