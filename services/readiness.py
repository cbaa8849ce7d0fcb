# WORKFLOW: Point-based export readiness gate and advisory export authorization.
# Used by: Compliance engine (validate_export_readiness), readiness endpoint
# Functions:
# 1. validate() - Score the five gate checks, collect issues and required actions
# 2. _authorize() - Issue the advisory authorization on a passing gate
#
# Gate points (independent of the display score):
#   +30 no non-approved mandatory certification   (else critical issue)
#   +25 no non-compliant test                     (else critical issue)
#   +20 no non-approved document                  (else warning only)
#   +15 no incomplete mandatory checklist item    (else critical issue)
#   +10 overall risk level is not critical        (else critical issue)
# ready = points >= pass points AND no critical issues. An expired record is a critical issue.

from datetime import datetime, timedelta
from typing import List
import logging
import uuid

from api.schemas.compliance import (
    CertificationStatus,
    ComplianceRecord,
    DocumentStatus,
    RiskLevel,
    TestingStatus,
)
from api.schemas.response import ExportAuthorization, ReadinessResult
from core.config import Settings
from services.scorer import checklist_item_done

logger = logging.getLogger(__name__)

STANDARD_CONDITION = "Shipment must match the batch, destination and buyer on this authorization"


class ReadinessValidator:
    """Evaluates whether a record's batch may be exported."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def validate(self, record: ComplianceRecord, now: datetime) -> ReadinessResult:
        """
        Run the readiness gate for a record.

        Args:
            record: Compliance record, already refreshed for `now`
            now: Evaluation time

        Returns:
            ReadinessResult; carries an authorization only when ready
        """
        points = 0
        critical_issues: List[str] = []
        warnings: List[str] = []
        required_actions: List[str] = []

        pending_certifications = [
            c for c in record.certification_requirements
            if c.mandatory and c.status != CertificationStatus.APPROVED
        ]
        if not pending_certifications:
            points += 30
        else:
            critical_issues.append(
                f"{len(pending_certifications)} mandatory certification(s) not approved: "
                f"{', '.join(c.certification_id for c in pending_certifications)}"
            )

        failing_tests = [
            t for t in record.testing_requirements
            if not (t.status == TestingStatus.COMPLETED and t.compliance_met)
        ]
        if not failing_tests:
            points += 25
        else:
            critical_issues.append(
                f"{len(failing_tests)} test(s) not compliant: {', '.join(t.test_id for t in failing_tests)}"
            )

        pending_documents = [
            d for d in record.documentation_requirements if d.status != DocumentStatus.APPROVED
        ]
        if not pending_documents:
            points += 20
        else:
            warnings.append(
                f"{len(pending_documents)} document(s) not approved: "
                f"{', '.join(d.document_id for d in pending_documents)}"
            )

        incomplete_items = [
            item for item in record.compliance_checklist
            if item.mandatory and not checklist_item_done(item.completion_status)
        ]
        if not incomplete_items:
            points += 15
        else:
            critical_issues.append(f"{len(incomplete_items)} mandatory checklist item(s) incomplete")

        if record.risk_assessment.overall_risk_level != RiskLevel.CRITICAL:
            points += 10
        else:
            critical_issues.append("Overall risk level is critical")

        if record.is_expired(now):
            critical_issues.append(
                f"Compliance record expired on {record.expires_at.date().isoformat()}; re-initialize the record"
            )

        ready = points >= self.settings.readiness_pass_points and not critical_issues

        if not ready:
            required_actions.extend(f"Resolve: {issue}" for issue in critical_issues)
            required_actions.extend(
                f"Obtain approval for certification {c.certification_id}" for c in pending_certifications
            )
            required_actions.extend(f"Pass test {t.test_id}" for t in failing_tests)
            required_actions.extend(f"Complete checklist item {item.item_id}" for item in incomplete_items)
            if points < self.settings.readiness_pass_points:
                # Documents only warn, but their points can still keep the gate below the pass mark
                required_actions.extend(f"Approve document {d.document_id}" for d in pending_documents)

        result = ReadinessResult(
            compliance_id=record.compliance_id,
            ready=ready,
            score=points,
            critical_issues=critical_issues,
            warnings=warnings,
            required_actions=required_actions,
            authorization=self._authorize(record, warnings, now) if ready else None,
            evaluated_at=now,
        )
        logger.info(
            f"Readiness for {record.compliance_id}: ready={ready}, points={points}, "
            f"{len(critical_issues)} critical issues, {len(warnings)} warnings"
        )
        return result

    def _authorize(self, record: ComplianceRecord, warnings: List[str], now: datetime) -> ExportAuthorization:
        return ExportAuthorization(
            authorization_number=f"AUTH-{uuid.uuid4().hex[:12].upper()}",
            issued_date=now,
            valid_until=now + timedelta(days=self.settings.authorization_validity_days),
            compliance_id=record.compliance_id,
            destination_country=record.destination_country,
            batch_id=record.batch_id,
            buyer_id=record.buyer_id,
            conditions=list(warnings) or [STANDARD_CONDITION],
        )
